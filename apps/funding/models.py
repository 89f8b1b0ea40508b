from django.db import models
import uuid


class PaymentMethodKind(models.TextChoices):
    CARD = 'card', 'Card'
    BANK_ACCOUNT = 'bank_account', 'Bank account'
    WALLET = 'wallet', 'Wallet'
    OTHER = 'other', 'Other'


class PaymentMethod(models.Model):
    """Saved funding instrument a shopper can allocate checkout amounts to."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='payment_methods'
    )
    kind = models.CharField(
        max_length=20,
        choices=PaymentMethodKind.choices,
        default=PaymentMethodKind.CARD
    )

    # Display name chosen by the user (overrides the generated label)
    name = models.CharField(max_length=100, blank=True)

    # Cards
    brand = models.CharField(max_length=30, blank=True)
    last_four = models.CharField(max_length=4, blank=True)
    expiry_month = models.PositiveSmallIntegerField(null=True, blank=True)
    expiry_year = models.PositiveSmallIntegerField(null=True, blank=True)

    # Bank accounts
    bank_name = models.CharField(max_length=100, blank=True)
    account_type = models.CharField(max_length=30, blank=True)

    # Wallets
    provider = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)

    is_default = models.BooleanField(default=False)

    # Id of this method at the payment processor
    processor_method_id = models.CharField(max_length=100, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_methods'
        indexes = [
            models.Index(fields=['user', 'is_default'], name='payment_met_user_default_idx'),
        ]
        ordering = ['-is_default', 'created_at']

    def __str__(self):
        from .services import get_payment_method_label
        return f"{get_payment_method_label(self)} ({self.user})"
