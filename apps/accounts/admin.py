from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for bPay shoppers (email identity, no username)."""

    list_display = [
        'email',
        'full_name',
        'is_active',
        'is_staff',
        'processor_customer_id',
        'created_at',
    ]
    list_filter = ['is_active', 'is_staff', 'is_superuser', 'created_at']
    search_fields = ['email', 'full_name', 'processor_customer_id']
    ordering = ['-created_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'full_name', 'password')
        }),
        ('Payments', {
            'fields': ('processor_customer_id',),
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'full_name', 'password1', 'password2'),
        }),
    )

    readonly_fields = ['created_at', 'last_login']
