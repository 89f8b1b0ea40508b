"""
Checkout flow service.

Drives one CheckoutAttempt through its states:

    collecting -> valid -> submitting -> succeeded | failed
        ^           |                                  |
        +-----------+----------------------------------+  (reopen)

Every validation stores a fresh charge snapshot (or clears it), and a
submission only ever charges that snapshot. The move to ``submitting`` is
committed under a row lock before the processor is called, so at most one
submission per attempt can be in flight.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.checkout.models import CheckoutAttempt, CheckoutStatus
from apps.funding.services import get_payment_method_label, list_payment_methods

from .allocation import (
    ALLOCATION_TOLERANCE,
    PaymentSource,
    AllocationSummary,
    summarize_allocation,
    to_decimal,
)
from .charge_request import ChargeRequest, build_charge_request, verify_charge_request
from .collaborators import get_card_issuer, get_payment_processor
from .exceptions import (
    CheckoutAttemptNotFoundError,
    InvalidChargeRequestError,
    InvalidStateTransitionError,
    SubmissionInProgressError,
    UnknownPaymentSourceError,
)
from .session import SessionContext

logger = logging.getLogger(__name__)

PROCESSING_ERROR = "Error processing split payment"
COLLECTION_MISMATCH = "Collected amount does not match the total charged"


def get_default_service_fee_percent() -> Decimal:
    return to_decimal(settings.BPAY_SERVICE_FEE_PERCENT)


def get_minimum_service_fee() -> Decimal:
    return to_decimal(settings.BPAY_MINIMUM_SERVICE_FEE)


def build_checkout_sources(*, user: User) -> List[PaymentSource]:
    """Unselected, zero-amount sources for each saved payment method, default first."""
    return [
        PaymentSource(
            id=str(method.id),
            kind=method.kind,
            label=get_payment_method_label(method),
        )
        for method in list_payment_methods(user=user)
    ]


def serialize_source(source: PaymentSource) -> dict:
    """JSON form of a source as stored on the attempt."""
    return {
        'id': source.id,
        'type': str(source.kind),
        'isSelected': source.is_selected,
        'amount': source.amount,
        'amountType': str(source.amount_type),
        'label': source.label,
    }


def _resolve_owned_sources(user: User, sources: Sequence[PaymentSource]) -> List[PaymentSource]:
    """
    Match sources against the user's saved payment methods.

    Kind and label are taken from the saved method, not from the client.

    Raises:
        UnknownPaymentSourceError: If a source id is not one of the user's methods
    """
    methods = {str(method.id): method for method in list_payment_methods(user=user)}

    resolved = []
    for source in sources:
        method = methods.get(str(source.id))
        if method is None:
            raise UnknownPaymentSourceError(f"Payment source {source.id} not found")
        resolved.append(replace(
            source,
            id=str(method.id),
            kind=method.kind,
            label=get_payment_method_label(method),
        ))
    return resolved


def list_attempts(*, session: SessionContext):
    return CheckoutAttempt.objects.filter(user=session.user)


def get_attempt_for_user(
    *,
    session: SessionContext,
    attempt_id: UUID,
    for_update: bool = False
) -> CheckoutAttempt:
    """
    Get one of the session user's checkout attempts.

    Raises:
        CheckoutAttemptNotFoundError: If it doesn't exist, the id is malformed,
            or it belongs to another user
    """
    queryset = CheckoutAttempt.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=attempt_id, user=session.user)
    except (CheckoutAttempt.DoesNotExist, ValidationError, ValueError):
        raise CheckoutAttemptNotFoundError(f"Checkout attempt {attempt_id} not found")


@transaction.atomic
def open_attempt(
    *,
    session: SessionContext,
    cart_total,
    card_name: str = '',
    service_fee_percent=None,
    currency: Optional[str] = None
) -> Tuple[CheckoutAttempt, List[PaymentSource]]:
    """
    Start a checkout for a cart.

    Args:
        session: Session of the paying user
        cart_total: Merchandise total before fees
        card_name: Name for the virtual card; settings default when blank
        service_fee_percent: Fee override; settings default when None
        currency: Currency code; settings default when None

    Returns:
        tuple: The new attempt (collecting) and the user's saved payment
            methods as unselected zero-amount sources
    """
    if service_fee_percent is None:
        service_fee_percent = get_default_service_fee_percent()

    attempt = CheckoutAttempt.objects.create(
        user=session.user,
        card_name=card_name or settings.BPAY_DEFAULT_CARD_NAME,
        cart_total=to_decimal(cart_total),
        service_fee_percent=to_decimal(service_fee_percent),
        currency=(currency or settings.BPAY_CURRENCY).lower(),
    )
    logger.info(
        "Opened checkout attempt %s for user %s: %s %s",
        attempt.id, session.user.id, attempt.cart_total, attempt.currency
    )
    return attempt, build_checkout_sources(user=session.user)


@transaction.atomic
def validate_attempt(
    *,
    session: SessionContext,
    attempt_id: UUID,
    sources: Sequence[PaymentSource]
) -> Tuple[CheckoutAttempt, AllocationSummary]:
    """
    Validate an allocation for an attempt and snapshot the charge.

    A valid allocation moves the attempt to ``valid`` and replaces the
    charge snapshot. An invalid one moves it back to ``collecting``, clears
    the snapshot and records the error, so a stale snapshot can never be
    submitted.

    Returns:
        tuple: The updated attempt and the allocation summary

    Raises:
        CheckoutAttemptNotFoundError: If the attempt is not the user's
        SubmissionInProgressError: If the attempt is being submitted
        InvalidStateTransitionError: If the attempt has failed or succeeded
        UnknownPaymentSourceError: If a source is not a saved payment method
    """
    attempt = get_attempt_for_user(session=session, attempt_id=attempt_id, for_update=True)

    if attempt.status == CheckoutStatus.SUBMITTING:
        raise SubmissionInProgressError("Checkout attempt is already being submitted")
    if not attempt.can_transition_to(CheckoutStatus.VALID):
        raise InvalidStateTransitionError(
            f"Cannot validate a checkout attempt that is {attempt.status}"
        )

    sources = _resolve_owned_sources(session.user, sources)
    summary = summarize_allocation(
        attempt.cart_total,
        attempt.service_fee_percent,
        sources,
        minimum_fee=get_minimum_service_fee(),
    )
    validation = summary.validation

    attempt.sources = [serialize_source(source) for source in sources]
    if validation.is_valid:
        charge_request = build_charge_request(
            attempt.card_name,
            summary.cart_total,
            summary.service_fee,
            summary.total_with_fee,
            summary.sources,
        )
        attempt.status = CheckoutStatus.VALID
        attempt.charge_request = charge_request.to_wire()
        attempt.last_error = ''
        attempt.last_error_message = ''
        attempt.validated_at = timezone.now()
    else:
        attempt.status = CheckoutStatus.COLLECTING
        attempt.charge_request = None
        attempt.last_error = validation.error
        attempt.last_error_message = validation.message
        attempt.validated_at = None

    attempt.save()
    attempt.refresh_from_db()
    logger.info(
        "Validated checkout attempt %s: %s",
        attempt.id, validation.error or 'valid'
    )
    return attempt, summary


def _begin_submission(session: SessionContext, attempt_id: UUID) -> CheckoutAttempt:
    with transaction.atomic():
        attempt = get_attempt_for_user(session=session, attempt_id=attempt_id, for_update=True)

        if attempt.status == CheckoutStatus.SUBMITTING:
            raise SubmissionInProgressError("Checkout attempt is already being submitted")
        if not attempt.can_transition_to(CheckoutStatus.SUBMITTING) or not attempt.charge_request:
            raise InvalidStateTransitionError(
                f"Cannot submit a checkout attempt that is {attempt.status}"
            )

        attempt.status = CheckoutStatus.SUBMITTING
        attempt.submitted_at = timezone.now()
        attempt.save(update_fields=['status', 'submitted_at', 'updated_at'])
    return attempt


def _record_outcome(
    attempt_id: UUID,
    *,
    succeeded: bool,
    reference: str = '',
    collected: Optional[Decimal] = None,
    results: Optional[list] = None,
    failure_reason: str = '',
    error_code: str = '',
    issued_card: Optional[dict] = None
) -> CheckoutAttempt:
    status = CheckoutStatus.SUCCEEDED if succeeded else CheckoutStatus.FAILED

    with transaction.atomic():
        attempt = CheckoutAttempt.objects.select_for_update().get(id=attempt_id)
        if not attempt.can_transition_to(status):
            raise InvalidStateTransitionError(
                f"Cannot record {status} for a checkout attempt that is {attempt.status}"
            )

        attempt.status = status
        attempt.processor_reference = reference
        attempt.amount_collected = collected
        attempt.processor_results = results or []
        attempt.failure_reason = failure_reason
        attempt.last_error = error_code
        attempt.last_error_message = failure_reason if error_code else ''
        if issued_card is not None:
            attempt.issued_card = {key: value for key, value in issued_card.items() if key != 'cvv'}
        attempt.completed_at = timezone.now()
        attempt.save()
        attempt.refresh_from_db()
    return attempt


def _release_submission(attempt_id: UUID) -> None:
    """Fail an attempt left in ``submitting`` without a recorded outcome."""
    released = CheckoutAttempt.objects.filter(
        id=attempt_id, status=CheckoutStatus.SUBMITTING
    ).update(
        status=CheckoutStatus.FAILED,
        failure_reason=PROCESSING_ERROR,
        completed_at=timezone.now(),
        updated_at=timezone.now(),
    )
    if released:
        logger.error("Checkout attempt %s had no recorded outcome; marked failed", attempt_id)


def _charge_snapshot(
    session: SessionContext,
    attempt: CheckoutAttempt
) -> Tuple[CheckoutAttempt, Optional[dict]]:
    charge_request = ChargeRequest.from_wire(attempt.charge_request)
    logger.info(
        "Submitting checkout attempt %s: %s charged over %s sources",
        attempt.id, charge_request.total_charged, len(charge_request.payment_sources)
    )

    try:
        verify_charge_request(
            charge_request,
            attempt.service_fee_percent,
            minimum_fee=get_minimum_service_fee(),
        )
        outcome = get_payment_processor(session).charge(charge_request, session)
        succeeded = outcome.succeeded
        failure_reason = outcome.failure_reason
        collection_gap = abs(to_decimal(outcome.collected) - charge_request.total_charged)
        if succeeded and collection_gap > ALLOCATION_TOLERANCE:
            succeeded = False
            failure_reason = COLLECTION_MISMATCH

        card = None
        if succeeded:
            card = get_card_issuer(session).issue_card(
                cardholder_name=session.cardholder_name,
                card_name=charge_request.name,
                balance=charge_request.amount,
                currency=attempt.currency,
            )
    except InvalidChargeRequestError as e:
        logger.error("Checkout attempt %s rejected: %s", attempt.id, e)
        attempt = _record_outcome(
            attempt.id, succeeded=False, failure_reason=str(e), error_code=e.code
        )
        return attempt, None
    except Exception:
        logger.exception("Split payment failed for checkout attempt %s", attempt.id)
        attempt = _record_outcome(attempt.id, succeeded=False, failure_reason=PROCESSING_ERROR)
        return attempt, None

    if not succeeded:
        logger.error(
            "Charge for checkout attempt %s failed: %s (collected %s of %s)",
            attempt.id, failure_reason, outcome.collected, charge_request.total_charged
        )
    attempt = _record_outcome(
        attempt.id,
        succeeded=succeeded,
        reference=outcome.reference,
        collected=outcome.collected,
        results=outcome.results,
        failure_reason=failure_reason,
        issued_card=card,
    )
    logger.info("Checkout attempt %s finished: %s", attempt.id, attempt.status)
    return attempt, card


def submit_attempt(
    *,
    session: SessionContext,
    attempt_id: UUID
) -> Tuple[CheckoutAttempt, Optional[dict]]:
    """
    Charge the validated snapshot of an attempt and issue the virtual card.

    The attempt is moved to ``submitting`` and committed before the
    processor is called. The stored snapshot is re-verified and charged
    as-is; nothing is recomputed. A charge only succeeds when the processor
    reports the whole total charged as collected. Processor and issuer
    errors end the attempt in ``failed``; they do not propagate. If the
    outcome itself cannot be recorded the error propagates, and the attempt
    is still moved out of ``submitting`` to ``failed`` so it can be reopened.

    Returns:
        tuple: The finished attempt and the issued card (including its CVV,
            which is not stored), or None when the charge failed

    Raises:
        CheckoutAttemptNotFoundError: If the attempt is not the user's
        SubmissionInProgressError: If a submission is already in flight
        InvalidStateTransitionError: If the attempt is not valid
    """
    attempt = _begin_submission(session, attempt_id)
    try:
        return _charge_snapshot(session, attempt)
    finally:
        _release_submission(attempt.id)


@transaction.atomic
def reopen_attempt(*, session: SessionContext, attempt_id: UUID) -> CheckoutAttempt:
    """
    Return a failed attempt to ``collecting`` so it can be validated again.

    Raises:
        CheckoutAttemptNotFoundError: If the attempt is not the user's
        InvalidStateTransitionError: If the attempt has not failed
    """
    attempt = get_attempt_for_user(session=session, attempt_id=attempt_id, for_update=True)

    if attempt.status != CheckoutStatus.FAILED:
        raise InvalidStateTransitionError(
            f"Cannot reopen a checkout attempt that is {attempt.status}"
        )

    attempt.status = CheckoutStatus.COLLECTING
    attempt.charge_request = None
    attempt.last_error = ''
    attempt.last_error_message = ''
    attempt.validated_at = None
    attempt.save()
    logger.info("Reopened checkout attempt %s", attempt.id)
    return attempt
