"""
Charge request assembly and verification.

A ChargeRequest is what the payment processor receives: the cart total,
the fee, the grand total and one entry per funding source with the amount
to charge it. The wire shape uses camelCase keys; ``to_wire`` and
``from_wire`` are the only places that know about them.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from apps.checkout.models import AmountType, ChargeRequestError

from .allocation import (
    ALLOCATION_TOLERANCE,
    ZERO,
    ResolvedSource,
    compute_service_fee,
    to_decimal,
)
from .exceptions import InvalidChargeRequestError


def _optional_decimal(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    return to_decimal(value)


@dataclass(frozen=True)
class ChargeSource:
    """One funding source line of a charge request."""

    id: str
    type: str
    amount: Decimal
    original_amount: Optional[Decimal] = None
    fee_contribution: Optional[Decimal] = None
    total_charge: Optional[Decimal] = None
    amount_type: str = AmountType.FIXED
    percentage: Optional[Decimal] = None

    def to_wire(self) -> dict:
        return {
            'id': self.id,
            'type': self.type,
            'originalAmount': self.original_amount,
            'feeContribution': self.fee_contribution,
            'totalCharge': self.total_charge,
            'amount': self.amount,
            'amountType': str(self.amount_type),
            'percentage': self.percentage,
        }

    @classmethod
    def from_wire(cls, data: dict) -> 'ChargeSource':
        return cls(
            id=str(data.get('id', '')),
            type=data.get('type', ''),
            amount=_optional_decimal(data.get('amount')) or ZERO,
            original_amount=_optional_decimal(data.get('originalAmount')),
            fee_contribution=_optional_decimal(data.get('feeContribution')),
            total_charge=_optional_decimal(data.get('totalCharge')),
            amount_type=data.get('amountType') or AmountType.FIXED,
            percentage=_optional_decimal(data.get('percentage')),
        )


@dataclass(frozen=True)
class ChargeRequest:
    """The numbers handed to the payment processor for one checkout."""

    name: str
    amount: Optional[Decimal]
    total_charged: Optional[Decimal]
    service_fee: Optional[Decimal]
    payment_sources: List[ChargeSource] = field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            'name': self.name,
            'amount': self.amount,
            'totalCharged': self.total_charged,
            'serviceFee': self.service_fee,
            'paymentSources': [source.to_wire() for source in self.payment_sources],
        }

    @classmethod
    def from_wire(cls, data: dict) -> 'ChargeRequest':
        return cls(
            name=data.get('name') or '',
            amount=_optional_decimal(data.get('amount')),
            total_charged=_optional_decimal(data.get('totalCharged')),
            service_fee=_optional_decimal(data.get('serviceFee')),
            payment_sources=[
                ChargeSource.from_wire(source)
                for source in (data.get('paymentSources') or [])
            ],
        )


def build_charge_request(
    card_name: str,
    cart_total,
    service_fee,
    total_with_fee,
    resolved_sources: Sequence[ResolvedSource],
) -> ChargeRequest:
    """
    Package a fee-distributed allocation as a charge request.

    Each source is charged its ``total_charge``, so the wire ``amount`` of a
    source carries that value. Nothing is recomputed here.
    """
    return ChargeRequest(
        name=card_name,
        amount=to_decimal(cart_total),
        total_charged=to_decimal(total_with_fee),
        service_fee=to_decimal(service_fee),
        payment_sources=[
            ChargeSource(
                id=source.id,
                type=source.kind,
                amount=source.total_charge,
                original_amount=source.original_amount,
                fee_contribution=source.fee_contribution,
                total_charge=source.total_charge,
                amount_type=source.amount_type,
                percentage=source.percentage,
            )
            for source in resolved_sources
        ],
    )


def _reject(code: ChargeRequestError):
    raise InvalidChargeRequestError(code, code.label)


def verify_charge_request(charge_request: ChargeRequest, service_fee_percent, minimum_fee=ZERO) -> None:
    """
    Re-check a charge request before any money moves.

    Checks, in order:
        1. name, amount, fee, total and at least one source are present
        2. the fee matches the fee expected for the amount (1 cent slack)
        3. total charged equals amount plus fee (1 cent slack)
        4. the source amounts add up to the total charged (1 cent slack)

    Raises:
        InvalidChargeRequestError: With the ChargeRequestError code of the
            first failed check
    """
    if (
        not charge_request.name
        or charge_request.amount is None
        or charge_request.amount <= ZERO
        or charge_request.service_fee is None
        or charge_request.total_charged is None
        or not charge_request.payment_sources
    ):
        _reject(ChargeRequestError.INCOMPLETE_REQUEST)

    expected_fee = compute_service_fee(charge_request.amount, service_fee_percent, minimum_fee)
    if abs(charge_request.service_fee - expected_fee) > ALLOCATION_TOLERANCE:
        _reject(ChargeRequestError.INVALID_SERVICE_FEE)

    expected_total = charge_request.amount + charge_request.service_fee
    if abs(charge_request.total_charged - expected_total) > ALLOCATION_TOLERANCE:
        _reject(ChargeRequestError.INVALID_TOTAL_CHARGED)

    funding = sum((source.amount for source in charge_request.payment_sources), ZERO)
    if abs(funding - charge_request.total_charged) > ALLOCATION_TOLERANCE:
        _reject(ChargeRequestError.FUNDING_MISMATCH)
