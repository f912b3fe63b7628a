# utils/models.py

"""
Base models for SchoolPay with audit trail fields and school-timezone
timestamps, plus the financial audit log used by the billing app.
"""

from django.db import models
import uuid
import logging
from decimal import Decimal

logger = logging.getLogger(__name__)


def _context_user_id(context):
    """Actor id from the request context; None for anonymous or unsaved users"""
    user_pk = getattr(context.get('user'), 'pk', None) if context else None
    return str(user_pk) if user_pk is not None else None


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Abstract base model with audit trail fields.

    - created_at / updated_at are set in the school's operational timezone
    - created_by_id / updated_by_id and IPs come from the thread-local
      request context (see utils.context)

    Queryset ``update()`` calls bypass ``save()``; callers doing conditional
    updates must pass ``updated_at`` themselves.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField("Created At", db_index=True)
    updated_at = models.DateTimeField("Updated At", db_index=True)

    # CharField so audit fields survive user deletion
    created_by_id = models.CharField("Created By ID", max_length=50, null=True, blank=True, db_index=True)
    updated_by_id = models.CharField("Updated By ID", max_length=50, null=True, blank=True, db_index=True)

    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        from utils.context import get_request_context
        from core.utils import get_school_current_time

        is_new = self._state.adding
        now = get_school_current_time()

        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = now
        else:
            self.updated_at = now

        context = get_request_context()
        if context:
            user_id = _context_user_id(context)
            ip_address = context.get('ip_address')

            if is_new:
                if user_id and not self.created_by_id:
                    self.created_by_id = user_id
                if ip_address and not self.created_from_ip:
                    self.created_from_ip = ip_address

            if user_id:
                self.updated_by_id = user_id
            if ip_address:
                self.updated_from_ip = ip_address
        elif is_new:
            logger.debug(
                f"No request context available when creating {self.__class__.__name__}. "
                f"Audit fields will not be populated."
            )

        return super().save(*args, **kwargs)

    def stamp_audit_fields(self):
        """
        Fill timestamps and user tracking without saving.
        Used before ``bulk_create``, which never calls ``save()``.
        """
        from utils.context import get_request_context
        from core.utils import get_school_current_time

        now = get_school_current_time()
        self.created_at = self.created_at or now
        self.updated_at = self.updated_at or now

        context = get_request_context()
        user_id = _context_user_id(context)
        if user_id:
            self.created_by_id = self.created_by_id or user_id
            self.updated_by_id = self.updated_by_id or user_id
        return self


# =============================================================================
# FINANCIAL AUDIT LOG
# =============================================================================

class FinancialAuditLog(models.Model):
    """
    Append-only audit trail for billing actions.
    Timestamps use the school timezone.
    """

    FINANCIAL_ACTIONS = [
        ('SCHEDULE_GENERATE', 'Billing Schedule Generated'),
        ('ENROLLMENT_APPROVE', 'Enrollment Approved'),
        ('ENROLLMENT_REJECT', 'Enrollment Rejected'),
        ('PAYMENT_SUBMIT', 'Payment Submitted'),
        ('PAYMENT_RECORD', 'Payment Recorded'),
        ('OVERPAYMENT_CREDIT', 'Overpayment Credit Applied'),
        ('PAYMENT_APPROVE', 'Payment Approved'),
        ('PAYMENT_REJECT', 'Payment Rejected'),
        ('FINANCIAL_DATA_EXPORT', 'Financial Data Exported'),
    ]

    RISK_LEVELS = [
        ('LOW', 'Low Risk'),
        ('MEDIUM', 'Medium Risk'),
        ('HIGH', 'High Risk'),
        ('CRITICAL', 'Critical Risk'),
    ]

    id = models.AutoField(primary_key=True)

    timestamp = models.DateTimeField(db_index=True)
    action = models.CharField(max_length=30, choices=FINANCIAL_ACTIONS, db_index=True)

    user_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    user_name = models.CharField(max_length=200, null=True, blank=True)
    user_role = models.CharField(max_length=100, null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    object_type = models.CharField(max_length=100, null=True, blank=True)
    object_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    object_description = models.CharField(max_length=500, null=True, blank=True)

    amount_involved = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, null=True, blank=True)

    student_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    student_name = models.CharField(max_length=200, null=True, blank=True)

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    additional_data = models.JSONField(default=dict, blank=True)
    notes = models.TextField(null=True, blank=True)

    risk_level = models.CharField(max_length=10, choices=RISK_LEVELS, default='LOW', db_index=True)
    is_automated = models.BooleanField(default=False)
    batch_id = models.CharField(max_length=100, null=True, blank=True)

    class Meta:
        verbose_name = "Financial Audit Log"
        verbose_name_plural = "Financial Audit Logs"
        ordering = ['-timestamp', '-id']
        indexes = [
            models.Index(fields=['timestamp', 'action'], name='audit_timestamp_action_idx'),
            models.Index(fields=['student_id', 'timestamp'], name='audit_student_timestamp_idx'),
        ]

    def __str__(self):
        return f"{self.get_action_display()} at {self.timestamp}"

    def save(self, *args, **kwargs):
        from core.utils import get_school_current_time

        if not self.timestamp:
            self.timestamp = get_school_current_time()
        return super().save(*args, **kwargs)

    @classmethod
    def log_financial_action(
        cls,
        action,
        user=None,
        target_object=None,
        amount=None,
        student=None,
        old_values=None,
        new_values=None,
        risk_level='LOW',
        additional_data=None,
        notes=None,
        currency=None,
        ip_address=None,
        is_automated=False,
        batch_id=None,
    ):
        """
        Create a financial audit entry.

        Example:
            FinancialAuditLog.log_financial_action(
                action='PAYMENT_SUBMIT',
                user=request.user,
                target_object=bill,
                amount=bill.amount,
                student=bill.student,
            )
        """
        log_data = {
            'action': action,
            'risk_level': risk_level,
            'notes': (notes or '')[:2000],
            'old_values': old_values,
            'new_values': new_values,
            'additional_data': additional_data or {},
            'is_automated': bool(is_automated),
            'batch_id': batch_id,
            'ip_address': ip_address,
            'currency': str(currency)[:3].upper() if currency else None,
        }

        if amount is not None:
            log_data['amount_involved'] = Decimal(str(amount))

        if user is not None and getattr(user, 'pk', None):
            from accounts.models import get_user_role

            log_data['user_id'] = str(user.pk)
            log_data['user_name'] = (user.get_full_name() or user.get_username())[:200]
            log_data['user_role'] = get_user_role(user)

        if target_object is not None:
            log_data['object_type'] = target_object.__class__.__name__
            log_data['object_id'] = str(target_object.pk)
            log_data['object_description'] = str(target_object)[:500]

        if student is not None:
            log_data['student_id'] = str(student.pk)
            log_data['student_name'] = (student.get_full_name() or student.get_username())[:200]

        return cls.objects.create(**log_data)
