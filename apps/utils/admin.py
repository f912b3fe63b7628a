# utils/admin.py

from django.contrib import admin
from .models import FinancialAuditLog


@admin.register(FinancialAuditLog)
class FinancialAuditLogAdmin(admin.ModelAdmin):
    list_display = [
        'timestamp', 'action', 'object_type', 'student_name',
        'amount_involved', 'user_name', 'risk_level'
    ]
    list_filter = ['action', 'risk_level', 'timestamp']
    search_fields = ['object_id', 'object_description', 'student_name', 'user_name']
    readonly_fields = [
        'timestamp', 'action', 'user_id', 'user_name', 'user_role', 'ip_address',
        'object_type', 'object_id', 'object_description', 'amount_involved',
        'currency', 'student_id', 'student_name', 'old_values', 'new_values',
        'additional_data', 'notes', 'risk_level', 'is_automated', 'batch_id',
    ]

    def has_add_permission(self, request):
        # Entries are written by the billing services only
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser
