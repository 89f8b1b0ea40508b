"""
External collaborators of the checkout flow.

The payment processor charges each funding source and the card issuer
creates the virtual card once the charge succeeds. Both are reached only
through the interfaces below; the concrete classes are named in settings
(``BPAY_PAYMENT_PROCESSOR`` / ``BPAY_CARD_ISSUER``) so a real gateway can
replace the demo ones without touching the flow. Demo sessions
(``BPAY_DEMO_MODE``) always get the demo classes.
"""

import logging
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from apps.funding.models import PaymentMethodKind

from .allocation import ZERO, round_currency

logger = logging.getLogger(__name__)


@dataclass
class ChargeOutcome:
    """What the processor reports back for one charge request."""

    succeeded: bool
    reference: str = ''
    collected: Decimal = ZERO
    results: List[dict] = field(default_factory=list)
    failure_reason: str = ''


class PaymentProcessor:
    """Charges every source of a charge request."""

    def charge(self, charge_request, session) -> ChargeOutcome:
        raise NotImplementedError


class CardIssuer:
    """Creates the virtual card funded by a successful charge."""

    def issue_card(self, *, cardholder_name, card_name, balance, currency) -> dict:
        raise NotImplementedError


class DemoPaymentProcessor(PaymentProcessor):
    """
    Simulated processor.

    Cards and wallets settle immediately, bank accounts report
    ``processing`` but count as collected. Any other kind is unsupported
    and fails the whole charge.
    """

    STATUS_BY_KIND = {
        PaymentMethodKind.CARD: 'succeeded',
        PaymentMethodKind.BANK_ACCOUNT: 'processing',
        PaymentMethodKind.WALLET: 'succeeded',
    }

    def get_or_create_customer(self, user) -> str:
        if not user.processor_customer_id:
            user.processor_customer_id = f"cus_demo_{secrets.token_hex(6)}"
            user.save(update_fields=['processor_customer_id'])
        return user.processor_customer_id

    def charge(self, charge_request, session) -> ChargeOutcome:
        customer_id = self.get_or_create_customer(session.user)
        reference = f"demo_{secrets.token_hex(8)}"
        collected = ZERO
        results = []
        failures = []

        for source in charge_request.payment_sources:
            status = self.STATUS_BY_KIND.get(source.type)
            if status is None:
                error = f"Unsupported payment method type: {source.type}"
                failures.append(error)
                results.append({
                    'source': source.id,
                    'success': False,
                    'amount': source.amount,
                    'error': error,
                })
                continue

            collected += source.amount
            results.append({
                'source': source.id,
                'success': True,
                'amount': source.amount,
                'status': status,
                'simulated': True,
            })

        logger.info(
            "Demo charge %s for %s (customer %s): collected %s of %s",
            reference, charge_request.name, customer_id, collected, charge_request.total_charged
        )
        return ChargeOutcome(
            succeeded=not failures,
            reference=reference,
            collected=collected,
            results=results,
            failure_reason='; '.join(failures),
        )


class DemoCardIssuer(CardIssuer):
    """Issues a masked single-use card valid for three years."""

    VALIDITY_YEARS = 3

    def issue_card(self, *, cardholder_name, card_name, balance, currency) -> dict:
        last_four = str(1000 + secrets.randbelow(9000))
        today = timezone.now()

        return {
            'id': f"card_{secrets.token_hex(4)}",
            'name': card_name,
            'cardholderName': cardholder_name or 'Virtual Card',
            'cardNumber': f"XXXX-XXXX-XXXX-{last_four}",
            'lastFour': last_four,
            'expiryDate': f"{today.month:02d}/{today.year + self.VALIDITY_YEARS}",
            'cvv': str(100 + secrets.randbelow(900)),
            'balance': str(round_currency(balance)),
            'currency': currency,
            'status': 'active',
            'isOneTime': True,
        }


def get_payment_processor(session=None) -> PaymentProcessor:
    """The configured processor; demo sessions never reach a real gateway."""
    if session is not None and session.is_demo:
        return DemoPaymentProcessor()
    return import_string(settings.BPAY_PAYMENT_PROCESSOR)()


def get_card_issuer(session=None) -> CardIssuer:
    if session is not None and session.is_demo:
        return DemoCardIssuer()
    return import_string(settings.BPAY_CARD_ISSUER)()
