# billing/schedule_generators.py

"""
Installment schedule generation for approved enrollments.

The tuition fee is split in integer minor units: every installment but the
last is ceil(fee / N), the last takes the remainder, so the schedule always
sums to the fee exactly.
"""

from decimal import Decimal, InvalidOperation
import logging

from django.db import transaction, DatabaseError

from billing.models import Bill, Enrollment
from billing.exceptions import (
    InvalidAmount,
    InvalidTuitionFee,
    InvalidPaymentPlan,
    EnrollmentNotApproved,
    ScheduleAlreadyGenerated,
    StoreUnavailable,
)
from billing.signals import schedule_generated, send_after_commit
from billing.utils import to_minor_units, from_minor_units, ceil_div, installment_note
from core.models import FinancialSettings
from core.utils import add_months, get_school_today, get_school_timezone

logger = logging.getLogger(__name__)


# (installment count, months between due dates)
PLAN_SCHEDULES = {
    Enrollment.PLAN_MONTHLY: (10, 1),
    Enrollment.PLAN_QUARTERLY: (4, 3),
    Enrollment.PLAN_FULL: (1, 1),
}


# =============================================================================
# PURE HELPERS
# =============================================================================

def resolve_payment_plan(payment_plan, strict=False):
    """
    Installment count and cadence for a payment plan.

    Unknown plans bill as a single full payment unless ``strict`` is set.

    Returns:
        tuple: (installment_count, months_per_step)

    Raises:
        InvalidPaymentPlan: unknown plan in strict mode
    """
    if payment_plan in PLAN_SCHEDULES:
        return PLAN_SCHEDULES[payment_plan]

    if strict:
        raise InvalidPaymentPlan(f"Unknown payment plan '{payment_plan}'.")

    logger.warning(f"Unknown payment plan '{payment_plan}', billing as a single full payment")
    return PLAN_SCHEDULES[Enrollment.PLAN_FULL]


def split_installments(total_minor, count):
    """
    Split an amount in minor units into ``count`` installments.

    Example:
        >>> split_installments(10005, 10)
        [1001, 1001, 1001, 1001, 1001, 1001, 1001, 1001, 1001, 996]

    Raises:
        InvalidTuitionFee: negative total, or a total too small to give
            every installment a positive amount
    """
    if count < 1:
        raise ValueError("Installment count must be at least 1")
    if total_minor < 0:
        raise InvalidTuitionFee()
    if total_minor == 0:
        return []

    installment = ceil_div(total_minor, count)
    last = total_minor - installment * (count - 1)

    if last <= 0:
        raise InvalidTuitionFee(
            f"Tuition fee of {from_minor_units(total_minor)} is too small "
            f"to split into {count} installments."
        )

    return [installment] * (count - 1) + [last]


def installment_due_dates(start_date, payment_plan, strict=False):
    """
    Due dates for a plan: installment i is due on the 1st of the month
    (i + 1) cadence steps after ``start_date``.

    Example:
        >>> installment_due_dates(date(2024, 8, 15), 'quarterly')
        [date(2024, 11, 1), date(2025, 2, 1), date(2025, 5, 1), date(2025, 8, 1)]
    """
    count, months_per_step = resolve_payment_plan(payment_plan, strict=strict)
    return [add_months(start_date, (i + 1) * months_per_step) for i in range(count)]


# =============================================================================
# BILLING SCHEDULE GENERATOR
# =============================================================================

class BillingScheduleGenerator:
    """Turn an approved enrollment into its installment bills"""

    @staticmethod
    def default_start_date(enrollment):
        if enrollment.approved_at:
            return enrollment.approved_at.astimezone(get_school_timezone()).date()
        return get_school_today()

    @staticmethod
    def generate(enrollment, start_date=None, settings=None):
        """
        Build the installment bills for an enrollment without saving them.

        Args:
            enrollment: Enrollment instance (tuition_fee, payment_plan, student)
            start_date: Reference date; defaults to the approval date
            settings: FinancialSettings; loaded when omitted

        Returns:
            list of unsaved Bill instances ordered by due date. Empty for a
            zero tuition fee.

        Raises:
            InvalidTuitionFee: fee negative, not finite, or not splittable
            InvalidPaymentPlan: unknown plan with strict payment plans on
        """
        try:
            fee = Decimal(str(enrollment.tuition_fee))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidTuitionFee()

        if not fee.is_finite() or fee < 0:
            raise InvalidTuitionFee()

        try:
            fee_minor = to_minor_units(fee)
        except InvalidAmount:
            raise InvalidTuitionFee("Tuition fee cannot have more than two decimal places.")

        if settings is None:
            settings = FinancialSettings.get_instance()

        payment_plan = enrollment.payment_plan
        count, _ = resolve_payment_plan(payment_plan, strict=settings.strict_payment_plans)

        amounts = split_installments(fee_minor, count)
        if not amounts:
            logger.info(f"Enrollment {enrollment.pk} has no tuition fee, no bills generated")
            return []

        start_date = start_date or BillingScheduleGenerator.default_start_date(enrollment)
        due_dates = installment_due_dates(start_date, payment_plan, strict=settings.strict_payment_plans)

        return [
            Bill(
                student_id=enrollment.student_id,
                enrollment=enrollment,
                amount=from_minor_units(amount),
                due_date=due_date,
                status=Bill.STATUS_PENDING,
                notes=installment_note(payment_plan, number, count),
            )
            for number, (amount, due_date) in enumerate(zip(amounts, due_dates), start=1)
        ]

    @staticmethod
    def create_for_enrollment(enrollment, start_date=None):
        """
        Generate and persist the schedule for an approved enrollment.
        All installments are inserted or none are.

        Returns:
            list of saved Bill instances

        Raises:
            EnrollmentNotApproved: enrollment status is not approved
            ScheduleAlreadyGenerated: bills already exist for the enrollment
            StoreUnavailable: the database failed; nothing was persisted
        """
        if enrollment.status != Enrollment.STATUS_APPROVED:
            raise EnrollmentNotApproved()

        bills = BillingScheduleGenerator.generate(enrollment, start_date=start_date)

        try:
            with transaction.atomic():
                locked = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
                if locked.status != Enrollment.STATUS_APPROVED:
                    raise EnrollmentNotApproved()
                if Bill.objects.filter(enrollment_id=enrollment.pk).exists():
                    raise ScheduleAlreadyGenerated()

                for bill in bills:
                    bill.stamp_audit_fields()
                Bill.objects.bulk_create(bills)

                send_after_commit(
                    schedule_generated,
                    sender=BillingScheduleGenerator,
                    enrollment=enrollment,
                    bills=bills,
                )
        except Enrollment.DoesNotExist:
            raise EnrollmentNotApproved("Enrollment no longer exists.")
        except DatabaseError as e:
            logger.error(f"Failed to persist billing schedule for enrollment {enrollment.pk}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        total = sum((bill.amount for bill in bills), Decimal('0.00'))
        logger.info(
            f"Generated {len(bills)} {enrollment.payment_plan} installments totalling {total} "
            f"for enrollment {enrollment.pk}"
        )
        return bills


def generate_billing_schedule(enrollment, start_date=None, dry_run=False):
    """
    Convenience function used by enrollment approval and the management command.

    Example:
        bills = generate_billing_schedule(enrollment)
    """
    if dry_run:
        return BillingScheduleGenerator.generate(enrollment, start_date=start_date)
    return BillingScheduleGenerator.create_for_enrollment(enrollment, start_date=start_date)
