"""
Split-Payment Allocation Engine
===============================

This module holds the arithmetic that turns a cart total, a service fee
percentage and a set of user-selected payment sources into a validated,
fee-inclusive allocation. Every presentation surface (in-app checkout,
browser-extension modal, e-commerce plugin) goes through these functions.

All functions are pure: no database access, no settings, no request or
session state. They can be called on every keystroke.

Conventions:
    - Amounts are ``decimal.Decimal``.
    - Percent-typed sources resolve against the pre-fee cart total. The
      sources fund the cart total; the service fee is spread on top of them
      in proportion to what each one contributes.
    - Rounding is half-up to 2 decimal places and happens only on derived
      currency outputs (service fee, fee contribution, total charge).
      Ratios and resolved amounts are never rounded.

Example:
    Two cards splitting a 100.00 cart::

        from decimal import Decimal
        from apps.checkout.services.allocation import (
            PaymentSource, summarize_allocation,
        )

        summary = summarize_allocation(
            cart_total=Decimal('100.00'),
            service_fee_percent=Decimal('2.5'),
            sources=[
                PaymentSource(id='a', kind='card', is_selected=True, amount=Decimal('60.00')),
                PaymentSource(id='b', kind='card', is_selected=True, amount=Decimal('40.00')),
            ],
        )
        summary.service_fee                 # Decimal('2.50')
        [s.total_charge for s in summary.sources]
        # [Decimal('61.50'), Decimal('41.00')]
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import List, Optional, Sequence

from apps.checkout.models import AmountType, AllocationError
from apps.funding.models import PaymentMethodKind

from .exceptions import UnknownPaymentSourceError


ZERO = Decimal('0')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')
PERCENT_PRECISION = Decimal('0.0001')

# Largest gap between allocated and required amounts still accepted as equal
ALLOCATION_TOLERANCE = CENT

# Share of the unallocated amount offered when a source is first selected
DEFAULT_SELECTION_SHARE = Decimal('0.25')
DEFAULT_SELECTION_PERCENT = Decimal('25')


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_currency(value) -> Decimal:
    """Round half-up to whole cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# =============================================================================
# Data shapes
# =============================================================================

@dataclass(frozen=True)
class PaymentSource:
    """
    A funding instrument as the shopper has configured it for this checkout.

    ``amount`` is a currency value when ``amount_type`` is fixed and a
    0-100 percentage when it is percent. It only counts while
    ``is_selected`` is true.
    """

    id: str
    kind: str = PaymentMethodKind.OTHER
    is_selected: bool = False
    amount: Decimal = ZERO
    amount_type: str = AmountType.FIXED
    label: str = ''


@dataclass(frozen=True)
class ResolvedSource:
    """A participating source with its share of the service fee."""

    id: str
    kind: str
    amount: Decimal
    amount_type: str
    original_amount: Decimal
    fee_contribution: Decimal
    total_charge: Decimal
    percentage: Decimal
    label: str = ''


@dataclass(frozen=True)
class AllocationValidation:
    """Outcome of ``validate_allocation``; ``error`` is None when valid."""

    error: Optional[str]
    allocated_amount: Decimal
    remaining_amount: Decimal

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error is None:
            return ''
        return AllocationError(self.error).label


@dataclass(frozen=True)
class AllocationSummary:
    """Everything a checkout surface displays for one allocation request."""

    cart_total: Decimal
    service_fee_percent: Decimal
    service_fee: Decimal
    total_with_fee: Decimal
    validation: AllocationValidation
    sources: List[ResolvedSource] = field(default_factory=list)

    @property
    def allocated_amount(self) -> Decimal:
        return self.validation.allocated_amount

    @property
    def remaining_amount(self) -> Decimal:
        return self.validation.remaining_amount


# =============================================================================
# Core arithmetic
# =============================================================================

def resolve_source_amount(source: PaymentSource, basis) -> Decimal:
    """
    Return the currency amount a source stands for.

    Fixed sources resolve to their amount unchanged; percent sources to
    ``amount / 100 * basis``. No bounds checking happens here: negative
    amounts or percentages above 100 resolve arithmetically and are
    rejected at the API boundary instead.
    """
    amount = to_decimal(source.amount)
    if source.amount_type == AmountType.PERCENT:
        return amount / HUNDRED * to_decimal(basis)
    return amount


def participates(source: PaymentSource, basis) -> bool:
    """A source counts only when selected and resolving to a positive amount."""
    return source.is_selected and resolve_source_amount(source, basis) > ZERO


def compute_allocated_amount(sources: Sequence[PaymentSource], basis) -> Decimal:
    """Sum of resolved amounts over the participating sources."""
    return sum(
        (resolve_source_amount(source, basis) for source in sources if participates(source, basis)),
        ZERO,
    )


def compute_remaining_amount(sources: Sequence[PaymentSource], basis) -> Decimal:
    """
    Amount still to allocate against ``basis``.

    Not clamped: a negative result means the sources are over-allocated.
    """
    return to_decimal(basis) - compute_allocated_amount(sources, basis)


def compute_service_fee(cart_total, service_fee_percent, minimum_fee=ZERO) -> Decimal:
    """
    Service fee for a cart, rounded to cents.

    ``minimum_fee`` is a floor applied to positive carts only.
    """
    cart_total = to_decimal(cart_total)
    fee = round_currency(cart_total * to_decimal(service_fee_percent) / HUNDRED)
    minimum_fee = to_decimal(minimum_fee)
    if cart_total > ZERO and fee < minimum_fee:
        fee = round_currency(minimum_fee)
    return fee


def validate_allocation(cart_total, sources: Sequence[PaymentSource]) -> AllocationValidation:
    """
    Check that the selected sources fully cover the cart total.

    Checks run in order and stop at the first failure, because the order
    decides which message the shopper sees:

        1. cart total is zero or negative        -> INVALID_TOTAL
        2. no source is selected                 -> NO_SOURCE_SELECTED
        3. remaining amount off by over 1 cent   -> ALLOCATION_MISMATCH

    Failures are returned, never raised; the engine is called on every
    edit and the caller decides how to render the error.
    """
    cart_total = to_decimal(cart_total)
    allocated = compute_allocated_amount(sources, cart_total)
    remaining = cart_total - allocated

    if cart_total <= ZERO:
        error = AllocationError.INVALID_TOTAL
    elif not any(source.is_selected for source in sources):
        error = AllocationError.NO_SOURCE_SELECTED
    elif abs(remaining) > ALLOCATION_TOLERANCE:
        error = AllocationError.ALLOCATION_MISMATCH
    else:
        error = None

    return AllocationValidation(
        error=error,
        allocated_amount=allocated,
        remaining_amount=remaining,
    )


def _source_percentage(source: PaymentSource, amount: Decimal, cart_total: Decimal) -> Decimal:
    if cart_total <= ZERO:
        return ZERO
    if source.amount_type == AmountType.PERCENT:
        return to_decimal(source.amount)
    return amount / cart_total * HUNDRED


def _to_cents(value: Decimal) -> int:
    return int(round_currency(value) / CENT)


def _apportion_cents(total_cents: int, weights: Sequence[Decimal]) -> List[int]:
    """
    Split whole cents in proportion to ``weights`` with no cent lost.

    Every share is first floored; the cents left over go one each to the
    shares with the largest fractional remainders, earlier entries first on
    ties, so the shares always sum to ``total_cents``::

        250 cents over weights 1, 1, 1 -> 84, 83, 83
    """
    total_weight = sum(weights, ZERO)
    if not weights or total_weight <= ZERO:
        return [0] * len(weights)

    exact = [Decimal(total_cents) * weight / total_weight for weight in weights]
    shares = [int(value.to_integral_value(rounding=ROUND_FLOOR)) for value in exact]

    leftover = total_cents - sum(shares)
    by_remainder = sorted(range(len(exact)), key=lambda index: (shares[index] - exact[index], index))
    for index in by_remainder[:leftover]:
        shares[index] += 1

    return shares


def distribute_fee(sources: Sequence[PaymentSource], cart_total, service_fee) -> List[ResolvedSource]:
    """
    Spread the service fee over the participating sources.

    Each source pays a share of the fee equal to its share of the allocated
    total::

        proportion       = amount / total_allocated
        fee_contribution = service_fee * proportion
        total_charge     = amount + fee_contribution

    Both the fee and the allocated total are apportioned in whole cents
    (largest remainder first), so the fee contributions add up to
    ``service_fee`` exactly and the total charges add up to the rounded
    allocated total plus the fee. A source's figures can therefore differ
    by one cent from rounding its own share in isolation.

    Non-participating sources are dropped; the rest keep their input order.
    A zero allocated total yields zero shares instead of dividing by zero.

    Args:
        sources: Payment sources in display order.
        cart_total: Pre-fee cart total; percent sources resolve against it.
        service_fee: The already rounded fee to distribute.

    Returns:
        list[ResolvedSource]: One entry per participating source.

    Example:
        A 2.50 fee over seven equal shares of 100.00::

            fee contributions: 0.36, 0.36, 0.36, 0.36, 0.36, 0.35, 0.35
    """
    cart_total = to_decimal(cart_total)
    service_fee = to_decimal(service_fee)

    participating = [source for source in sources if participates(source, cart_total)]
    amounts = [resolve_source_amount(source, cart_total) for source in participating]
    total_allocated = sum(amounts, ZERO)

    amount_cents = _apportion_cents(_to_cents(total_allocated), amounts)
    fee_cents = _apportion_cents(_to_cents(service_fee), amounts)

    resolved = []
    for source, amount, charged_cents, fee_share in zip(participating, amounts, amount_cents, fee_cents):
        fee_contribution = Decimal(fee_share) / HUNDRED

        resolved.append(ResolvedSource(
            id=source.id,
            kind=source.kind,
            amount=to_decimal(source.amount),
            amount_type=source.amount_type,
            original_amount=amount,
            fee_contribution=fee_contribution,
            total_charge=Decimal(charged_cents + fee_share) / HUNDRED,
            percentage=_source_percentage(source, amount, cart_total),
            label=source.label,
        ))

    return resolved


def summarize_allocation(
    cart_total,
    service_fee_percent,
    sources: Sequence[PaymentSource],
    minimum_fee=ZERO,
) -> AllocationSummary:
    """Fee, totals, validation and fee distribution in one pass."""
    cart_total = to_decimal(cart_total)
    service_fee_percent = to_decimal(service_fee_percent)
    service_fee = compute_service_fee(cart_total, service_fee_percent, minimum_fee)

    return AllocationSummary(
        cart_total=cart_total,
        service_fee_percent=service_fee_percent,
        service_fee=service_fee,
        total_with_fee=cart_total + service_fee,
        validation=validate_allocation(cart_total, sources),
        sources=distribute_fee(sources, cart_total, service_fee) if cart_total > ZERO else [],
    )


# =============================================================================
# Editing helpers
# =============================================================================

def _find_source(sources: Sequence[PaymentSource], source_id) -> PaymentSource:
    for source in sources:
        if source.id == source_id:
            return source
    raise UnknownPaymentSourceError(f"Payment source {source_id} not found")


def _replace_source(sources, source_id, updated: PaymentSource) -> List[PaymentSource]:
    return [updated if source.id == source_id else source for source in sources]


def select_source(sources: Sequence[PaymentSource], source_id, cart_total) -> List[PaymentSource]:
    """
    Select a source, seeding a starting amount when it has none.

    The seed deliberately leaves room for other sources: a fixed source
    gets a quarter of what is still unallocated, a percent source gets
    ``min(25, round(remaining / cart_total * 25))`` percent.
    """
    cart_total = to_decimal(cart_total)
    source = _find_source(sources, source_id)
    amount = to_decimal(source.amount)

    if amount == ZERO:
        remaining = max(ZERO, compute_remaining_amount(sources, cart_total))
        if source.amount_type == AmountType.PERCENT:
            if cart_total > ZERO:
                seeded = (remaining / cart_total * DEFAULT_SELECTION_PERCENT).quantize(
                    Decimal('1'), rounding=ROUND_HALF_UP
                )
                amount = min(DEFAULT_SELECTION_PERCENT, seeded)
        else:
            amount = round_currency(remaining * DEFAULT_SELECTION_SHARE)

    return _replace_source(sources, source_id, replace(source, is_selected=True, amount=amount))


def deselect_source(sources: Sequence[PaymentSource], source_id) -> List[PaymentSource]:
    """Deselect a source and reset its amount so it stops contributing."""
    source = _find_source(sources, source_id)
    return _replace_source(sources, source_id, replace(source, is_selected=False, amount=ZERO))


def change_amount_type(
    sources: Sequence[PaymentSource],
    source_id,
    amount_type,
    cart_total,
) -> List[PaymentSource]:
    """
    Switch a source between fixed and percent, keeping its currency value.

    Fixed values are rounded to cents, percentages to 4 decimal places.
    """
    cart_total = to_decimal(cart_total)
    source = _find_source(sources, source_id)
    amount_type = AmountType(amount_type)

    if source.amount_type == amount_type:
        return list(sources)

    amount = to_decimal(source.amount)
    if amount_type == AmountType.FIXED:
        amount = round_currency(amount / HUNDRED * cart_total)
    elif cart_total > ZERO:
        amount = (amount / cart_total * HUNDRED).quantize(PERCENT_PRECISION, rounding=ROUND_HALF_UP)
    else:
        amount = ZERO

    return _replace_source(
        sources, source_id, replace(source, amount_type=amount_type, amount=amount)
    )


def split_evenly(sources: Sequence[PaymentSource], cart_total) -> List[PaymentSource]:
    """
    Split the cart total into equal fixed shares, cent-exact.

    Shares go to the selected sources, or to every source when none is
    selected yet. The total is converted to cents and divided with integer
    arithmetic; the first ``remainder`` sources receive one extra cent, so
    the shares always sum exactly to the cart total::

        100.00 over 3 sources -> 33.34, 33.33, 33.33

    Unselected sources keep a zero amount. An empty source list or a
    non-positive cart total leaves the sources unchanged.
    """
    cart_total = round_currency(cart_total)
    if not sources or cart_total <= ZERO:
        return list(sources)

    targets = [source.id for source in sources if source.is_selected]
    if not targets:
        targets = [source.id for source in sources]

    total_cents = int(cart_total * 100)
    base_cents, remainder_cents = divmod(total_cents, len(targets))
    shares = {
        source_id: Decimal(base_cents + (1 if index < remainder_cents else 0)) / HUNDRED
        for index, source_id in enumerate(targets)
    }

    split = []
    for source in sources:
        if source.id in shares:
            split.append(replace(
                source,
                is_selected=True,
                amount_type=AmountType.FIXED,
                amount=shares[source.id],
            ))
        else:
            split.append(replace(source, is_selected=False, amount=ZERO))
    return split
