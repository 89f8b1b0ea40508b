from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal
import uuid


class AmountType(models.TextChoices):
    FIXED = 'fixed', 'Fixed amount'
    PERCENT = 'percent', 'Percentage'


class AllocationError(models.TextChoices):
    INVALID_TOTAL = 'invalid_total', 'Please enter a valid amount'
    NO_SOURCE_SELECTED = 'no_source_selected', 'Please select at least one payment method'
    ALLOCATION_MISMATCH = 'allocation_mismatch', 'Please allocate the entire amount'


class ChargeRequestError(models.TextChoices):
    INCOMPLETE_REQUEST = 'incomplete_request', 'Missing required split payment information'
    INVALID_SERVICE_FEE = 'invalid_service_fee', 'Invalid service fee calculation'
    INVALID_TOTAL_CHARGED = 'invalid_total_charged', 'Invalid total charge calculation'
    FUNDING_MISMATCH = 'funding_mismatch', 'Total funding amount does not match total charged amount'


class CheckoutStatus(models.TextChoices):
    COLLECTING = 'collecting', 'Collecting'
    VALID = 'valid', 'Valid'
    SUBMITTING = 'submitting', 'Submitting'
    SUCCEEDED = 'succeeded', 'Succeeded'
    FAILED = 'failed', 'Failed'


# Allowed moves of the per-attempt state machine. Validation is instantaneous,
# so "validating" and "invalid" are not stored: an invalid allocation keeps
# the attempt in COLLECTING with last_error set.
ALLOWED_TRANSITIONS = {
    CheckoutStatus.COLLECTING: {CheckoutStatus.COLLECTING, CheckoutStatus.VALID},
    CheckoutStatus.VALID: {CheckoutStatus.COLLECTING, CheckoutStatus.VALID, CheckoutStatus.SUBMITTING},
    CheckoutStatus.SUBMITTING: {CheckoutStatus.SUCCEEDED, CheckoutStatus.FAILED},
    CheckoutStatus.FAILED: {CheckoutStatus.COLLECTING},
    CheckoutStatus.SUCCEEDED: set(),
}


class CheckoutAttempt(models.Model):
    """One run of the split-payment checkout for a single cart."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='checkout_attempts'
    )

    # What is being bought
    card_name = models.CharField(max_length=100)
    cart_total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    service_fee_percent = models.DecimalField(max_digits=5, decimal_places=2)
    currency = models.CharField(max_length=3, default='usd')

    status = models.CharField(
        max_length=20,
        choices=CheckoutStatus.choices,
        default=CheckoutStatus.COLLECTING
    )

    # Outcome of the last validation
    last_error = models.CharField(max_length=30, blank=True)
    last_error_message = models.CharField(max_length=255, blank=True)
    sources = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)

    # Snapshot of the most recently validated charge; the only numbers ever charged
    charge_request = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    # Processor / issuer outcome
    processor_reference = models.CharField(max_length=100, blank=True)
    amount_collected = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    processor_results = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    failure_reason = models.CharField(max_length=255, blank=True)
    issued_card = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    # Timestamps
    validated_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'checkout_attempts'
        indexes = [
            models.Index(fields=['user', 'status'], name='checkout_user_status_idx'),
            models.Index(fields=['status', 'created_at'], name='checkout_status_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.card_name} - {self.cart_total} {self.currency.upper()} ({self.status})"

    def can_transition_to(self, status):
        return status in ALLOWED_TRANSITIONS[CheckoutStatus(self.status)]
