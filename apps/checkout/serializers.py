"""
Checkout serializers.

The checkout API speaks camelCase on the wire (``cartTotal``,
``isSelected``, ...). Every field maps to its snake_case attribute
explicitly through ``source``.
"""

from decimal import Decimal, ROUND_HALF_UP

from rest_framework import serializers

from apps.funding.models import PaymentMethodKind
from .models import AmountType, CheckoutAttempt
from .services import PaymentSource


class MoneyField(serializers.DecimalField):
    """Read-only currency amount rendered to cents."""

    def __init__(self, **kwargs):
        kwargs.setdefault('max_digits', None)
        kwargs.setdefault('decimal_places', 2)
        kwargs.setdefault('rounding', ROUND_HALF_UP)
        kwargs.setdefault('read_only', True)
        super().__init__(**kwargs)


# =============================================================================
# Input Serializers
# =============================================================================

class PaymentSourceSerializer(serializers.Serializer):
    """
    One payment source of an allocation.

    Amounts must be non-negative and percentages at most 100. A source sent
    with ``isSelected: false`` is normalized to amount 0.
    """

    id = serializers.CharField(max_length=64)
    type = serializers.ChoiceField(
        source='kind',
        choices=PaymentMethodKind.choices,
        default=PaymentMethodKind.OTHER
    )
    isSelected = serializers.BooleanField(source='is_selected', default=False)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        min_value=Decimal('0'),
        default=Decimal('0')
    )
    amountType = serializers.ChoiceField(
        source='amount_type',
        choices=AmountType.choices,
        default=AmountType.FIXED
    )
    label = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['amount_type'] == AmountType.PERCENT and attrs['amount'] > 100:
            raise serializers.ValidationError({'amount': 'Percentage cannot exceed 100.'})
        if not attrs['is_selected']:
            attrs['amount'] = Decimal('0')
        return attrs


class PaymentSourceListMixin:
    """Shared handling of the ``sources`` list."""

    def validate_sources(self, value):
        ids = [source['id'] for source in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError('Payment source ids must be unique.')
        return value

    def get_sources(self):
        return [PaymentSource(**source) for source in self.validated_data['sources']]


class SourcesEditSerializer(PaymentSourceListMixin, serializers.Serializer):
    """Cart total plus the sources being edited."""

    cartTotal = serializers.DecimalField(source='cart_total', max_digits=10, decimal_places=2)
    sources = PaymentSourceSerializer(many=True)


class AllocationRequestSerializer(SourcesEditSerializer):
    """
    Input for a quote.

    ``cartTotal`` is not range-checked here: a zero or negative total is
    reported by the allocation itself as ``invalid_total``.
    """

    serviceFeePercent = serializers.DecimalField(
        source='service_fee_percent',
        max_digits=5,
        decimal_places=2,
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        required=False
    )


class AdjustSourcesSerializer(SourcesEditSerializer):
    """Select, deselect or switch the amount type of one source."""

    SELECT = 'select'
    DESELECT = 'deselect'
    SET_AMOUNT_TYPE = 'set_amount_type'

    sourceId = serializers.CharField(source='source_id', max_length=64)
    action = serializers.ChoiceField(choices=[SELECT, DESELECT, SET_AMOUNT_TYPE])
    amountType = serializers.ChoiceField(
        source='amount_type',
        choices=AmountType.choices,
        required=False
    )

    def validate(self, attrs):
        if attrs['action'] == self.SET_AMOUNT_TYPE and not attrs.get('amount_type'):
            raise serializers.ValidationError({'amountType': 'This field is required.'})
        return attrs


class CheckoutAttemptCreateSerializer(serializers.Serializer):
    """Input for opening a checkout attempt."""

    cartTotal = serializers.DecimalField(
        source='cart_total',
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01')
    )
    cardName = serializers.CharField(source='card_name', max_length=100, required=False, allow_blank=True)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)


class CheckoutAttemptValidateSerializer(PaymentSourceListMixin, serializers.Serializer):
    """Sources to validate against an attempt's cart total."""

    sources = PaymentSourceSerializer(many=True)


# =============================================================================
# Output Serializers
# =============================================================================

class ResolvedSourceSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    type = serializers.CharField(source='kind', read_only=True)
    label = serializers.CharField(read_only=True)
    amount = serializers.DecimalField(max_digits=None, decimal_places=4, read_only=True)
    amountType = serializers.CharField(source='amount_type', read_only=True)
    originalAmount = MoneyField(source='original_amount')
    feeContribution = MoneyField(source='fee_contribution')
    totalCharge = MoneyField(source='total_charge')
    percentage = MoneyField()


class AllocationSummarySerializer(serializers.Serializer):
    """Everything a checkout surface shows while the shopper edits amounts."""

    cartTotal = MoneyField(source='cart_total')
    serviceFeePercent = serializers.DecimalField(
        source='service_fee_percent', max_digits=None, decimal_places=2, read_only=True
    )
    serviceFee = MoneyField(source='service_fee')
    totalWithFee = MoneyField(source='total_with_fee')
    allocatedAmount = MoneyField(source='allocated_amount')
    remainingAmount = MoneyField(source='remaining_amount')
    isValid = serializers.BooleanField(source='validation.is_valid', read_only=True)
    error = serializers.CharField(source='validation.error', read_only=True, allow_null=True)
    message = serializers.CharField(source='validation.message', read_only=True)
    sources = ResolvedSourceSerializer(many=True, read_only=True)


class CheckoutAttemptSerializer(serializers.ModelSerializer):
    cardName = serializers.CharField(source='card_name', read_only=True)
    cartTotal = serializers.DecimalField(
        source='cart_total', max_digits=10, decimal_places=2, read_only=True
    )
    serviceFeePercent = serializers.DecimalField(
        source='service_fee_percent', max_digits=5, decimal_places=2, read_only=True
    )
    lastError = serializers.CharField(source='last_error', read_only=True)
    lastErrorMessage = serializers.CharField(source='last_error_message', read_only=True)
    chargeRequest = serializers.JSONField(source='charge_request', read_only=True)
    processorReference = serializers.CharField(source='processor_reference', read_only=True)
    amountCollected = serializers.DecimalField(
        source='amount_collected', max_digits=12, decimal_places=2, read_only=True
    )
    processorResults = serializers.JSONField(source='processor_results', read_only=True)
    failureReason = serializers.CharField(source='failure_reason', read_only=True)
    issuedCard = serializers.JSONField(source='issued_card', read_only=True)
    validatedAt = serializers.DateTimeField(source='validated_at', read_only=True)
    submittedAt = serializers.DateTimeField(source='submitted_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = CheckoutAttempt
        fields = [
            'id',
            'cardName',
            'cartTotal',
            'serviceFeePercent',
            'currency',
            'status',
            'lastError',
            'lastErrorMessage',
            'sources',
            'chargeRequest',
            'processorReference',
            'amountCollected',
            'processorResults',
            'failureReason',
            'issuedCard',
            'validatedAt',
            'submittedAt',
            'completedAt',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


class CheckoutAttemptOpenedSerializer(serializers.Serializer):
    attempt = CheckoutAttemptSerializer(read_only=True)
    sources = PaymentSourceSerializer(many=True, read_only=True)


class CheckoutAttemptValidatedSerializer(serializers.Serializer):
    attempt = CheckoutAttemptSerializer(read_only=True)
    allocation = AllocationSummarySerializer(read_only=True)


class CheckoutAttemptSubmittedSerializer(serializers.Serializer):
    attempt = CheckoutAttemptSerializer(read_only=True)
    virtualCard = serializers.JSONField(source='virtual_card', read_only=True, allow_null=True)
