# billing/models.py

"""
Billing Models

- Program: catalogue entry whose price seeds an enrollment's tuition fee
- Enrollment: a student's registration in a program for one term
- Bill: one installment the student owes

All user tracking handled automatically by BaseModel
"""

from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import logging

from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# PROGRAM
# =============================================================================

class Program(BaseModel):
    """Academic program offered by the school"""

    code = models.CharField("Program Code", max_length=20, unique=True)
    name = models.CharField("Program Name", max_length=200)
    price = models.DecimalField(
        "Tuition Price",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Program"
        verbose_name_plural = "Programs"
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}"


# =============================================================================
# ENROLLMENT
# =============================================================================

class Enrollment(BaseModel):
    """Student enrollment that drives billing once approved"""

    PLAN_MONTHLY = 'monthly'
    PLAN_QUARTERLY = 'quarterly'
    PLAN_FULL = 'full'

    PAYMENT_PLAN_CHOICES = [
        (PLAN_MONTHLY, 'Monthly (10 installments)'),
        (PLAN_QUARTERLY, 'Quarterly (4 installments)'),
        (PLAN_FULL, 'Full Payment'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending Review'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    program = models.ForeignKey(
        Program,
        verbose_name="Program",
        on_delete=models.PROTECT,
        related_name='enrollments',
        null=True,
        blank=True
    )

    # -------------------------------------------------------------------------
    # BILLING TERMS
    # -------------------------------------------------------------------------

    tuition_fee = models.DecimalField(
        "Tuition Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Fixed when the enrollment is approved"
    )
    payment_plan = models.CharField(
        "Payment Plan",
        max_length=20,
        choices=PAYMENT_PLAN_CHOICES,
        default=PLAN_MONTHLY
    )

    # -------------------------------------------------------------------------
    # ACADEMIC CONTEXT
    # -------------------------------------------------------------------------

    academic_year = models.CharField("Academic Year", max_length=20, help_text="e.g. 2024-2025")
    semester = models.CharField("Semester", max_length=20, blank=True)

    # -------------------------------------------------------------------------
    # REVIEW
    # -------------------------------------------------------------------------

    status = models.CharField("Status", max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    approved_at = models.DateTimeField("Approved At", null=True, blank=True)
    approved_by_id = models.CharField("Approved By ID", max_length=50, null=True, blank=True)
    rejection_reason = models.TextField("Rejection Reason", blank=True)
    notes = models.TextField("Notes", blank=True)

    class Meta:
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['student', 'status'], name='enrollment_student_status_idx'),
        ]

    def __str__(self):
        program = self.program.name if self.program_id else 'No program'
        return f"{self.student.get_username()} - {program} ({self.academic_year} {self.semester})".strip()

    @property
    def is_approved(self):
        return self.status == self.STATUS_APPROVED


# =============================================================================
# BILL
# =============================================================================

class Bill(BaseModel):
    """One payable installment belonging to a student"""

    STATUS_PENDING = 'pending'
    STATUS_PENDING_APPROVAL = 'pending_approval'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PENDING_APPROVAL, 'Pending Approval'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Statuses a bill reaches once a payment has been applied to it
    SETTLED_STATUSES = [STATUS_PENDING_APPROVAL, STATUS_PAID]

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='bills'
    )
    enrollment = models.ForeignKey(
        Enrollment,
        verbose_name="Enrollment",
        on_delete=models.SET_NULL,
        related_name='bills',
        null=True,
        blank=True
    )

    # -------------------------------------------------------------------------
    # AMOUNT AND DATES
    # -------------------------------------------------------------------------

    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    due_date = models.DateField("Due Date", db_index=True)
    status = models.CharField("Status", max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    payment_date = models.DateField("Payment Date", null=True, blank=True)
    payment_method = models.CharField("Payment Method", max_length=100, blank=True)
    transaction_reference = models.CharField(
        "Transaction Reference",
        max_length=100,
        unique=True,
        null=True,
        blank=True
    )
    notes = models.TextField("Notes", blank=True)

    class Meta:
        verbose_name = "Bill"
        verbose_name_plural = "Bills"
        ordering = ['due_date', 'id']
        indexes = [
            models.Index(fields=['student', 'status', 'due_date'], name='bill_student_status_due_idx'),
            models.Index(fields=['enrollment'], name='bill_enrollment_idx'),
        ]

    def __str__(self):
        return f"Bill {self.amount} due {self.due_date} ({self.get_status_display()})"

    # -------------------------------------------------------------------------
    # DERIVED STATE
    # -------------------------------------------------------------------------

    @property
    def is_overdue(self):
        """Pending and past its due date in school time"""
        from core.utils import get_school_today
        return self.status == self.STATUS_PENDING and self.due_date < get_school_today()

    @property
    def days_overdue(self):
        from core.utils import get_school_today
        if not self.is_overdue:
            return 0
        return (get_school_today() - self.due_date).days

    @property
    def late_fee(self):
        """Informational late fee; never added to the bill amount"""
        return self.get_late_fee()

    def get_late_fee(self, settings=None):
        """late_fee with an already loaded FinancialSettings, for listings"""
        from billing.utils import calculate_late_fee
        return calculate_late_fee(self.amount, self.days_overdue, settings=settings)
