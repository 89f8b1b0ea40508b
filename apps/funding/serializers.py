from rest_framework import serializers
from .models import PaymentMethod, PaymentMethodKind
from .services import get_payment_method_label


# =============================================================================
# Input Serializers
# =============================================================================

class PaymentMethodCreateSerializer(serializers.ModelSerializer):
    """
    Validate input for saving a payment method.

    Fields:
        kind (str): card, bank_account, wallet or other
        last_four (str): Last four digits (cards and bank accounts)
        is_default (bool): Optional, make this the default method
    """

    is_default = serializers.BooleanField(required=False, allow_null=True, default=None)

    class Meta:
        model = PaymentMethod
        fields = [
            'kind',
            'name',
            'brand',
            'last_four',
            'expiry_month',
            'expiry_year',
            'bank_name',
            'account_type',
            'provider',
            'email',
            'is_default',
            'processor_method_id',
        ]
        extra_kwargs = {'kind': {'required': True}}

    def validate_last_four(self, value):
        if value and (len(value) != 4 or not value.isdigit()):
            raise serializers.ValidationError('Must be exactly four digits')
        return value

    def validate_expiry_month(self, value):
        if value is not None and not 1 <= value <= 12:
            raise serializers.ValidationError('Month must be between 1 and 12')
        return value

    def validate(self, attrs):
        """Require the fields each kind is identified by."""
        kind = attrs.get('kind', PaymentMethodKind.CARD)

        if kind == PaymentMethodKind.CARD and not attrs.get('last_four'):
            raise serializers.ValidationError({
                'last_four': 'Cards require the last four digits'
            })
        if kind == PaymentMethodKind.WALLET and not attrs.get('provider'):
            raise serializers.ValidationError({
                'provider': 'Wallets require a provider'
            })

        return attrs


# =============================================================================
# Output Serializers
# =============================================================================

class PaymentMethodSerializer(serializers.ModelSerializer):
    """Serializer for saved payment methods."""

    label = serializers.SerializerMethodField()

    class Meta:
        model = PaymentMethod
        fields = [
            'id',
            'kind',
            'label',
            'name',
            'brand',
            'last_four',
            'expiry_month',
            'expiry_year',
            'bank_name',
            'account_type',
            'provider',
            'email',
            'is_default',
            'created_at',
        ]
        read_only_fields = fields

    def get_label(self, obj):
        return get_payment_method_label(obj)
