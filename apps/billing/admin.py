# billing/admin.py

from django.contrib import admin, messages

from .exceptions import BillingError
from .models import Program, Enrollment, Bill
from .services import EnrollmentService, PaymentReviewService


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'price', 'is_active']
    list_filter = ['is_active']
    search_fields = ['code', 'name']
    readonly_fields = ['created_at', 'updated_at', 'created_by_id', 'updated_by_id']


class BillInline(admin.TabularInline):
    model = Bill
    extra = 0
    can_delete = False
    fields = ['due_date', 'amount', 'status', 'payment_date', 'transaction_reference']
    readonly_fields = fields
    ordering = ['due_date', 'id']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ['student', 'program', 'academic_year', 'semester', 'payment_plan', 'tuition_fee', 'status']
    list_filter = ['status', 'payment_plan', 'academic_year']
    search_fields = ['student__username', 'student__first_name', 'student__last_name', 'program__name']
    readonly_fields = [
        'status', 'approved_at', 'approved_by_id', 'rejection_reason',
        'created_at', 'updated_at', 'created_by_id', 'updated_by_id'
    ]
    inlines = [BillInline]
    actions = ['approve_selected']

    @admin.action(description="Approve selected enrollments and generate billing")
    def approve_selected(self, request, queryset):
        approved = 0
        for enrollment in queryset.filter(status=Enrollment.STATUS_PENDING):
            try:
                EnrollmentService.approve_enrollment(enrollment, approved_by=request.user)
                approved += 1
            except BillingError as e:
                self.message_user(request, f"{enrollment}: {e.message}", messages.ERROR)
        if approved:
            self.message_user(request, f"Approved {approved} enrollment(s).", messages.SUCCESS)


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ['student', 'due_date', 'amount', 'status', 'payment_method', 'transaction_reference']
    list_filter = ['status', 'due_date', 'payment_method']
    search_fields = ['student__username', 'transaction_reference', 'notes']
    date_hierarchy = 'due_date'
    ordering = ['due_date', 'id']
    readonly_fields = [
        'status', 'payment_date', 'payment_method', 'transaction_reference',
        'created_at', 'updated_at', 'created_by_id', 'updated_by_id'
    ]
    actions = ['approve_payments']

    @admin.action(description="Approve selected payments")
    def approve_payments(self, request, queryset):
        results = PaymentReviewService.bulk_approve_payments(
            queryset.filter(status=Bill.STATUS_PENDING_APPROVAL),
            approved_by=request.user
        )
        self.message_user(request, f"Approved {len(results['approved'])} payment(s).", messages.SUCCESS)
        for failure in results['failed']:
            self.message_user(request, f"{failure['bill']}: {failure['error']}", messages.WARNING)
