# core/admin.py

from django.contrib import admin
from .models import FinancialSettings


@admin.register(FinancialSettings)
class FinancialSettingsAdmin(admin.ModelAdmin):
    list_display = [
        'school_currency', 'requires_payment_approval', 'strict_payment_plans',
        'late_fee_enabled', 'late_fee_percentage', 'grace_period_days'
    ]
    readonly_fields = ['created_at', 'updated_at', 'created_by_id', 'updated_by_id']

    fieldsets = (
        ('Currency', {
            'fields': ('school_currency', 'currency_symbol')
        }),
        ('Payment Workflow', {
            'fields': ('requires_payment_approval', 'strict_payment_plans', 'send_payment_notifications')
        }),
        ('References', {
            'fields': ('transaction_prefix', 'overpayment_prefix')
        }),
        ('Late Fees', {
            'fields': ('late_fee_enabled', 'late_fee_percentage', 'grace_period_days')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at', 'created_by_id', 'updated_by_id'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        # Singleton
        return not FinancialSettings.objects.exists()
