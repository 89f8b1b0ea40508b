"""
Unit tests for the split-payment allocation engine.

No database access: every function under test is pure.
"""

import pytest
from decimal import Decimal

from apps.checkout.models import AllocationError, AmountType
from apps.checkout.services.allocation import (
    PaymentSource,
    round_currency,
    resolve_source_amount,
    participates,
    compute_allocated_amount,
    compute_remaining_amount,
    compute_service_fee,
    validate_allocation,
    distribute_fee,
    summarize_allocation,
    select_source,
    deselect_source,
    change_amount_type,
    split_evenly,
)
from apps.checkout.services.exceptions import UnknownPaymentSourceError


D = Decimal


def fixed(source_id, amount, selected=True, kind='card'):
    return PaymentSource(id=source_id, kind=kind, is_selected=selected, amount=D(amount))


def percent(source_id, amount, selected=True, kind='card'):
    return PaymentSource(
        id=source_id,
        kind=kind,
        is_selected=selected,
        amount=D(amount),
        amount_type=AmountType.PERCENT,
    )


# =============================================================================
# Worked Checkout Scenarios
# =============================================================================

class TestCheckoutScenarios:

    def test_single_fixed_source_covers_cart(self):
        summary = summarize_allocation(D('100.00'), D('2.5'), [fixed('a', '100.00')])

        assert summary.service_fee == D('2.50')
        assert summary.total_with_fee == D('102.50')
        assert summary.remaining_amount == D('0')
        assert summary.validation.is_valid
        assert summary.sources[0].fee_contribution == D('2.50')
        assert summary.sources[0].total_charge == D('102.50')

    def test_two_fixed_sources_share_fee_proportionally(self):
        summary = summarize_allocation(
            D('100.00'), D('2.5'), [fixed('a', '60.00'), fixed('b', '40.00')]
        )

        assert summary.allocated_amount == D('100.00')
        assert summary.service_fee == D('2.50')
        a, b = summary.sources
        assert a.fee_contribution == D('1.50')
        assert a.total_charge == D('61.50')
        assert b.fee_contribution == D('1.00')
        assert b.total_charge == D('41.00')
        assert a.total_charge + b.total_charge == D('102.50')

    def test_half_percent_source_is_under_allocated(self):
        sources = [percent('a', '50')]

        assert resolve_source_amount(sources[0], D('50.00')) == D('25.00')
        result = validate_allocation(D('50.00'), sources)

        assert result.remaining_amount == D('25.00')
        assert result.error == AllocationError.ALLOCATION_MISMATCH
        assert result.message == 'Please allocate the entire amount'

    def test_zero_cart_total_is_invalid(self):
        result = validate_allocation(D('0'), [fixed('a', '10.00')])

        assert not result.is_valid
        assert result.error == AllocationError.INVALID_TOTAL
        assert result.message == 'Please enter a valid amount'

    def test_no_source_selected(self):
        result = validate_allocation(
            D('100.00'), [fixed('a', '0', selected=False), fixed('b', '0', selected=False)]
        )

        assert result.error == AllocationError.NO_SOURCE_SELECTED
        assert result.message == 'Please select at least one payment method'

    def test_deselect_removes_contribution(self):
        sources = [fixed('a', '60.00'), fixed('b', '40.00')]
        assert compute_allocated_amount(sources, D('100.00')) == D('100.00')

        sources = deselect_source(sources, 'b')

        assert sources[1].amount == D('0')
        assert sources[1].is_selected is False
        assert compute_allocated_amount(sources, D('100.00')) == D('60.00')


# =============================================================================
# Resolution and Aggregates
# =============================================================================

class TestResolution:

    def test_fixed_resolves_to_amount(self):
        assert resolve_source_amount(fixed('a', '12.34'), D('100')) == D('12.34')

    def test_percent_resolves_against_basis(self):
        assert resolve_source_amount(percent('a', '25'), D('80.00')) == D('20.00')

    def test_no_bounds_checking(self):
        assert resolve_source_amount(fixed('a', '-5'), D('100')) == D('-5')
        assert resolve_source_amount(percent('a', '150'), D('100')) == D('150')

    def test_unselected_or_non_positive_sources_do_not_participate(self):
        basis = D('100')

        assert participates(fixed('a', '10'), basis)
        assert not participates(fixed('a', '10', selected=False), basis)
        assert not participates(fixed('a', '0'), basis)
        assert not participates(fixed('a', '-10'), basis)

    def test_allocated_ignores_non_participants(self):
        sources = [
            fixed('a', '30.00'),
            fixed('b', '50.00', selected=False),
            fixed('c', '-10.00'),
            percent('d', '20'),
        ]

        assert compute_allocated_amount(sources, D('100.00')) == D('50.00')

    def test_remaining_is_not_clamped(self):
        sources = [fixed('a', '70.00'), fixed('b', '40.00')]

        assert compute_remaining_amount(sources, D('100.00')) == D('-10.00')

    def test_allocated_is_idempotent(self):
        sources = [fixed('a', '33.33'), percent('b', '66.67')]

        first = compute_allocated_amount(sources, D('100.00'))
        second = compute_allocated_amount(sources, D('100.00'))

        assert first == second

    def test_percent_and_fixed_are_equivalent(self):
        cart_total = D('150.00')
        as_fixed = fixed('a', '37.50')
        as_percent = percent('a', D('37.50') / cart_total * 100)

        assert resolve_source_amount(as_fixed, cart_total) == resolve_source_amount(as_percent, cart_total)


# =============================================================================
# Service Fee
# =============================================================================

class TestServiceFee:

    def test_percentage_of_cart(self):
        assert compute_service_fee(D('100.00'), D('2.5')) == D('2.50')

    def test_rounds_half_up(self):
        assert compute_service_fee(D('1.00'), D('2.5')) == D('0.03')

    def test_zero_percent(self):
        assert compute_service_fee(D('100.00'), D('0')) == D('0.00')

    def test_minimum_fee_applies_to_small_carts(self):
        assert compute_service_fee(D('10.00'), D('2.5'), D('0.50')) == D('0.50')

    def test_minimum_fee_does_not_lower_larger_fees(self):
        assert compute_service_fee(D('100.00'), D('2.5'), D('0.50')) == D('2.50')

    def test_minimum_fee_ignored_for_empty_cart(self):
        assert compute_service_fee(D('0'), D('2.5'), D('0.50')) == D('0.00')

    def test_round_currency(self):
        assert round_currency(D('0.125')) == D('0.13')
        assert round_currency(2) == D('2.00')


# =============================================================================
# Validation
# =============================================================================

class TestValidateAllocation:

    def test_one_cent_short_is_accepted(self):
        result = validate_allocation(D('100.00'), [fixed('a', '99.99')])

        assert result.is_valid
        assert result.error is None
        assert result.message == ''

    def test_two_cents_short_is_rejected(self):
        result = validate_allocation(D('100.00'), [fixed('a', '99.98')])

        assert result.error == AllocationError.ALLOCATION_MISMATCH

    def test_over_allocation_is_rejected(self):
        result = validate_allocation(D('100.00'), [fixed('a', '60.00'), fixed('b', '40.02')])

        assert result.error == AllocationError.ALLOCATION_MISMATCH
        assert result.remaining_amount == D('-0.02')

    def test_invalid_total_checked_before_selection(self):
        result = validate_allocation(D('-5.00'), [])

        assert result.error == AllocationError.INVALID_TOTAL

    def test_empty_source_list(self):
        result = validate_allocation(D('100.00'), [])

        assert result.error == AllocationError.NO_SOURCE_SELECTED

    def test_mixed_fixed_and_percent(self):
        result = validate_allocation(D('200.00'), [fixed('a', '50.00'), percent('b', '75')])

        assert result.is_valid
        assert result.allocated_amount == D('200.00')


# =============================================================================
# Fee Distribution
# =============================================================================

class TestDistributeFee:

    def test_empty_input(self):
        assert distribute_fee([], D('100.00'), D('2.50')) == []

    def test_non_participants_dropped_and_order_kept(self):
        sources = [
            fixed('a', '20.00'),
            fixed('b', '30.00', selected=False),
            fixed('c', '80.00'),
        ]

        resolved = distribute_fee(sources, D('100.00'), D('2.50'))

        assert [source.id for source in resolved] == ['a', 'c']

    def test_single_source_takes_whole_fee(self):
        resolved = distribute_fee([percent('a', '100')], D('59.99'), D('1.50'))

        assert resolved[0].original_amount == D('59.99')
        assert resolved[0].fee_contribution == D('1.50')
        assert resolved[0].total_charge == D('61.49')

    def test_percentage_reported(self):
        resolved = distribute_fee(
            [fixed('a', '60.00'), percent('b', '40')], D('100.00'), D('2.50')
        )

        assert resolved[0].percentage == D('60')
        assert resolved[1].percentage == D('40')
        assert resolved[1].amount == D('40')
        assert resolved[1].original_amount == D('40.00')

    def test_percentage_is_zero_for_non_positive_cart(self):
        resolved = distribute_fee([fixed('a', '10.00')], D('0'), D('0'))

        assert resolved[0].percentage == D('0')

    def test_is_idempotent(self):
        sources = [fixed('a', '33.34'), fixed('b', '33.33'), fixed('c', '33.33')]

        assert distribute_fee(sources, D('100.00'), D('2.50')) == distribute_fee(
            sources, D('100.00'), D('2.50')
        )

    @pytest.mark.parametrize('cart_total,amounts', [
        ('100.00', ['60.00', '40.00']),
        ('87.45', ['50.00', '37.45']),
        ('100.00', ['33.34', '33.33', '33.33']),
        ('19.99', ['19.99']),
        ('100.00', ['14.29', '14.29', '14.29', '14.29', '14.28', '14.28', '14.28']),
        ('10.00', ['1.43', '1.43', '1.43', '1.43', '1.43', '1.43', '1.42']),
        ('999.99', ['333.33', '333.33', '333.33']),
    ])
    def test_conservation(self, cart_total, amounts):
        sources = [fixed(str(index), amount) for index, amount in enumerate(amounts)]

        summary = summarize_allocation(D(cart_total), D('2.5'), sources)

        assert summary.validation.is_valid
        fees = sum(source.fee_contribution for source in summary.sources)
        charged = sum(source.total_charge for source in summary.sources)
        assert fees == summary.service_fee
        assert abs(charged - summary.total_with_fee) <= D('0.01')

    def test_pay_equal_seven_ways(self):
        sources = split_evenly([fixed(name, '0', selected=False) for name in 'abcdefg'], D('100.00'))

        summary = summarize_allocation(D('100.00'), D('2.5'), sources)

        assert summary.validation.is_valid
        assert [source.fee_contribution for source in summary.sources] == [
            D('0.36'), D('0.36'), D('0.36'), D('0.36'), D('0.36'), D('0.35'), D('0.35'),
        ]
        assert sum(source.total_charge for source in summary.sources) == D('102.50')

    def test_repeating_percentages(self):
        sources = [percent(name, '33.3333') for name in 'abc']

        summary = summarize_allocation(D('100.00'), D('2.5'), sources)

        assert summary.validation.is_valid
        assert [source.fee_contribution for source in summary.sources] == [
            D('0.84'), D('0.83'), D('0.83'),
        ]
        assert [source.total_charge for source in summary.sources] == [
            D('34.18'), D('34.16'), D('34.16'),
        ]
        assert sum(source.total_charge for source in summary.sources) == D('102.50')

    def test_leftover_cents_go_to_largest_remainders(self):
        resolved = distribute_fee(
            [fixed('a', '10.00'), fixed('b', '20.00'), fixed('c', '70.00')],
            D('100.00'),
            D('0.05'),
        )

        # exact shares 0.5, 1.0 and 3.5 cents
        assert [source.fee_contribution for source in resolved] == [
            D('0.01'), D('0.01'), D('0.03'),
        ]
        assert sum(source.fee_contribution for source in resolved) == D('0.05')

    def test_summary_has_no_sources_for_invalid_total(self):
        summary = summarize_allocation(D('0'), D('2.5'), [fixed('a', '10.00')])

        assert summary.sources == []
        assert summary.validation.error == AllocationError.INVALID_TOTAL


# =============================================================================
# Editing Helpers
# =============================================================================

class TestSelectSource:

    def test_fixed_source_gets_quarter_of_remaining(self):
        sources = [fixed('a', '0', selected=False), fixed('b', '60.00')]

        updated = select_source(sources, 'a', D('100.00'))

        assert updated[0].is_selected is True
        assert updated[0].amount == D('10.00')
        assert updated[1] == sources[1]

    def test_percent_source_gets_scaled_share(self):
        sources = [percent('a', '0', selected=False), fixed('b', '60.00')]

        updated = select_source(sources, 'a', D('100.00'))

        assert updated[0].amount == D('10')

    def test_percent_share_is_capped_at_25(self):
        sources = [percent('a', '0', selected=False)]

        updated = select_source(sources, 'a', D('100.00'))

        assert updated[0].amount == D('25')

    def test_over_allocated_seeds_zero(self):
        sources = [fixed('a', '0', selected=False), fixed('b', '120.00')]

        updated = select_source(sources, 'a', D('100.00'))

        assert updated[0].amount == D('0.00')

    def test_existing_amount_is_kept(self):
        sources = [fixed('a', '15.00', selected=False)]

        updated = select_source(sources, 'a', D('100.00'))

        assert updated[0].amount == D('15.00')
        assert updated[0].is_selected is True

    def test_unknown_source(self):
        with pytest.raises(UnknownPaymentSourceError):
            select_source([fixed('a', '0')], 'missing', D('100.00'))

    def test_input_is_not_mutated(self):
        sources = [fixed('a', '0', selected=False)]

        select_source(sources, 'a', D('100.00'))

        assert sources[0].is_selected is False


class TestChangeAmountType:

    def test_fixed_to_percent(self):
        updated = change_amount_type([fixed('a', '25.00')], 'a', AmountType.PERCENT, D('200.00'))

        assert updated[0].amount_type == AmountType.PERCENT
        assert updated[0].amount == D('12.5000')

    def test_percent_to_fixed(self):
        updated = change_amount_type([percent('a', '12.5')], 'a', AmountType.FIXED, D('200.00'))

        assert updated[0].amount_type == AmountType.FIXED
        assert updated[0].amount == D('25.00')

    def test_repeating_percentage_is_rounded(self):
        updated = change_amount_type([fixed('a', '10.00')], 'a', 'percent', D('30.00'))

        assert updated[0].amount == D('33.3333')

    def test_same_type_is_unchanged(self):
        sources = [fixed('a', '25.00')]

        assert change_amount_type(sources, 'a', AmountType.FIXED, D('200.00')) == sources

    def test_resolved_value_is_preserved(self):
        cart_total = D('80.00')
        before = fixed('a', '20.00')

        after = change_amount_type([before], 'a', AmountType.PERCENT, cart_total)[0]

        assert resolve_source_amount(after, cart_total) == resolve_source_amount(before, cart_total)


class TestSplitEvenly:

    def test_cents_go_to_first_sources(self):
        sources = [fixed(name, '0', selected=False) for name in 'abc']

        split = split_evenly(sources, D('100.00'))

        assert [source.amount for source in split] == [D('33.34'), D('33.33'), D('33.33')]
        assert all(source.is_selected for source in split)
        assert sum(source.amount for source in split) == D('100.00')

    def test_only_selected_sources_share(self):
        sources = [
            fixed('a', '10.00'),
            fixed('b', '0', selected=False),
            percent('c', '20'),
        ]

        split = split_evenly(sources, D('100.00'))

        assert split[0].amount == D('50.00')
        assert split[1].is_selected is False
        assert split[1].amount == D('0')
        assert split[2].amount == D('50.00')
        assert split[2].amount_type == AmountType.FIXED

    def test_split_validates(self):
        sources = [fixed(name, '0', selected=False) for name in 'abcdefg']

        split = split_evenly(sources, D('123.45'))

        assert validate_allocation(D('123.45'), split).is_valid

    def test_empty_sources(self):
        assert split_evenly([], D('100.00')) == []
