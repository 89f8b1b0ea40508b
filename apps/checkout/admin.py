from django.contrib import admin
from .models import CheckoutAttempt


@admin.register(CheckoutAttempt)
class CheckoutAttemptAdmin(admin.ModelAdmin):
    """Admin interface for checkout attempts (read-mostly)."""

    list_display = ['card_name', 'user', 'cart_total', 'currency', 'status', 'created_at']
    list_filter = ['status', 'currency', 'created_at']
    search_fields = ['user__email', 'card_name', 'processor_reference']
    readonly_fields = [
        'id', 'sources', 'charge_request', 'processor_reference', 'amount_collected',
        'processor_results', 'issued_card', 'validated_at', 'submitted_at', 'completed_at',
        'created_at', 'updated_at',
    ]
    raw_id_fields = ['user']
    date_hierarchy = 'created_at'
