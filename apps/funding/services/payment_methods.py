"""
Payment method management service.

Handles the shopper's saved funding instruments: listing, creation,
default selection and deletion.
"""

import logging
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.accounts.models import User
from apps.funding.models import PaymentMethod, PaymentMethodKind

from .exceptions import PaymentMethodNotFoundError

logger = logging.getLogger(__name__)


def get_payment_method_label(method: PaymentMethod) -> str:
    """
    Return a human-readable label for a payment method.

    An explicit ``name`` always wins. Otherwise the label is built from the
    kind-specific fields, e.g. ``VISA ending in 4242`` or
    ``Bank account ending in 6789``.
    """
    if method.name:
        return method.name

    if method.kind == PaymentMethodKind.CARD:
        brand = (method.brand or 'card').upper()
        if method.last_four:
            return f"{brand} ending in {method.last_four}"
        return brand
    if method.kind == PaymentMethodKind.BANK_ACCOUNT:
        if method.last_four:
            return f"Bank account ending in {method.last_four}"
        return method.bank_name or 'Bank account'
    if method.kind == PaymentMethodKind.WALLET:
        provider = (method.provider or 'Wallet').title()
        if method.email:
            return f"{provider} ({method.email})"
        return provider
    return f"Payment method ({method.id})"


def list_payment_methods(*, user: User):
    """Return the user's payment methods, default first."""
    return PaymentMethod.objects.filter(user=user).order_by('-is_default', 'created_at')


def get_payment_method(*, user: User, method_id) -> PaymentMethod:
    """
    Get one of the user's payment methods.

    Args:
        user: Owner of the payment method
        method_id: UUID (or its string form) of the payment method

    Returns:
        PaymentMethod instance

    Raises:
        PaymentMethodNotFoundError: If it doesn't exist, the id is malformed,
            or it belongs to another user
    """
    try:
        return PaymentMethod.objects.get(id=method_id, user=user)
    except (PaymentMethod.DoesNotExist, ValidationError, ValueError):
        raise PaymentMethodNotFoundError(f"Payment method {method_id} not found")


@transaction.atomic
def create_payment_method(
    *,
    user: User,
    kind: str,
    is_default: Optional[bool] = None,
    **fields
) -> PaymentMethod:
    """
    Save a new payment method for the user.

    The first method a user saves becomes the default. Passing
    ``is_default=True`` moves the default flag to the new method.

    Args:
        user: Owner of the payment method
        kind: One of PaymentMethodKind
        is_default: Force (or refuse) default status; None means automatic
        **fields: Remaining PaymentMethod fields (brand, last_four, ...)

    Returns:
        Created PaymentMethod instance
    """
    has_methods = (
        PaymentMethod.objects.select_for_update()
        .filter(user=user)
        .exists()
    )
    if is_default is None:
        is_default = not has_methods

    if is_default and has_methods:
        PaymentMethod.objects.filter(user=user, is_default=True).update(is_default=False)

    method = PaymentMethod.objects.create(
        user=user,
        kind=kind,
        is_default=is_default,
        **fields
    )
    logger.info("Saved %s payment method %s for user %s", kind, method.id, user.id)
    return method


@transaction.atomic
def set_default_payment_method(*, user: User, method_id: UUID) -> PaymentMethod:
    """
    Make one payment method the user's default.

    Raises:
        PaymentMethodNotFoundError: If the method is not the user's
    """
    method = get_payment_method(user=user, method_id=method_id)

    (
        PaymentMethod.objects.select_for_update()
        .filter(user=user, is_default=True)
        .exclude(id=method.id)
        .update(is_default=False)
    )
    if not method.is_default:
        method.is_default = True
        method.save(update_fields=['is_default', 'updated_at'])

    return method


@transaction.atomic
def delete_payment_method(*, user: User, method_id: UUID) -> None:
    """
    Delete a payment method.

    When the default method is deleted, the most recently saved remaining
    method becomes the new default.

    Raises:
        PaymentMethodNotFoundError: If the method is not the user's
    """
    method = get_payment_method(user=user, method_id=method_id)
    was_default = method.is_default
    method.delete()

    if was_default:
        replacement = (
            PaymentMethod.objects.select_for_update()
            .filter(user=user)
            .order_by('-created_at')
            .first()
        )
        if replacement:
            replacement.is_default = True
            replacement.save(update_fields=['is_default', 'updated_at'])
