from django.contrib import admin
from .models import PaymentMethod
from .services import get_payment_method_label


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    """Admin interface for saved payment methods."""

    list_display = ['get_label', 'user', 'kind', 'is_default', 'created_at']
    list_filter = ['kind', 'is_default', 'created_at']
    search_fields = ['user__email', 'name', 'last_four', 'provider', 'email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['user']

    def get_label(self, obj):
        return get_payment_method_label(obj)
    get_label.short_description = 'Payment method'
