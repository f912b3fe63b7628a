# billing/services.py

"""
Billing Services

- PaymentApplicationEngine: settle a bill and cascade any overpayment
- EnrollmentService: registrar approval/rejection (approval bills the student)
- PaymentReviewService: accountant approval/rejection/recording of payments
- BillingQueries: read-side summaries for students and reports

Every bill state change is a conditional update guarded on the status (and
amount) read beforehand, so concurrent payments never double-settle a bill.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
import logging
import uuid

from django.core.exceptions import ValidationError
from django.db import transaction, DatabaseError
from django.db.models import Sum, Count, Q

from billing.models import Bill, Enrollment
from billing.exceptions import (
    BillingError,
    BillingValidationError,
    InsufficientAmount,
    BillNotPending,
    BillNotAwaitingApproval,
    BillNotFound,
    EnrollmentNotPending,
    StoreUnavailable,
)
from billing.schedule_generators import BillingScheduleGenerator
from billing.signals import (
    payment_applied,
    payment_reviewed,
    enrollment_reviewed,
    send_after_commit,
)
from billing.utils import (
    parse_payment_amount,
    to_minor_units,
    from_minor_units,
    generate_transaction_reference,
    generate_overpayment_reference,
    format_credit_note,
    append_note,
)
from core.models import FinancialSettings
from core.utils import get_school_current_time, get_school_today
from utils.context import get_current_user

logger = logging.getLogger(__name__)


MANUAL_PAYMENT = "Manual Payment"
OVERPAYMENT_CREDIT = "Overpayment Credit"


def _actor_id(user):
    user = user or get_current_user()
    return str(user.pk) if user is not None and user.pk else None


# =============================================================================
# PAYMENT APPLICATION
# =============================================================================

@dataclass
class PaymentApplicationResult:
    """What one apply_payment call changed"""

    target_bill_id: str
    transaction_reference: str
    settled_status: str
    settled_bill_ids: List[str] = field(default_factory=list)
    partially_applied_bill_id: Optional[str] = None
    credited_amount: Decimal = Decimal('0.00')
    unabsorbed_credit: Decimal = Decimal('0.00')
    skipped_bill_ids: List[str] = field(default_factory=list)

    def as_dict(self):
        return {
            'target_bill_id': self.target_bill_id,
            'transaction_reference': self.transaction_reference,
            'settled_status': self.settled_status,
            'settled_bill_ids': list(self.settled_bill_ids),
            'partially_applied_bill_id': self.partially_applied_bill_id,
            'credited_amount': str(self.credited_amount),
            'unabsorbed_credit': str(self.unabsorbed_credit),
            'skipped_bill_ids': list(self.skipped_bill_ids),
        }


class PaymentApplicationEngine:
    """Apply a tendered payment to a bill and cascade the excess"""

    @staticmethod
    def apply_payment(
        bill_id,
        amount,
        payment_method=MANUAL_PAYMENT,
        student=None,
        requires_approval=None,
        recorded_by=None,
    ):
        """
        Settle ``bill_id`` and credit any excess to the student's later
        pending bills in (due_date, id) order.

        Args:
            bill_id: Target bill primary key
            amount: Tendered amount; must cover the bill's current amount
            payment_method (str): Label stored on the target bill
            student (User, optional): When given, must own the bill
            requires_approval (bool, optional): pending_approval when True,
                paid when False; defaults to FinancialSettings
            recorded_by (User, optional): Accountant recording the payment

        Returns:
            PaymentApplicationResult

        Raises:
            InvalidAmount: not a positive finite amount (no database access)
            BillNotFound: no such bill, or owned by another student
            BillNotPending: the bill is not (or no longer) pending
            InsufficientAmount: amount below the bill amount
            StoreUnavailable: database failure; ``progress`` holds the
                partial result when the target was already settled

        Example:
            result = PaymentApplicationEngine.apply_payment(bill.pk, Decimal('2500.00'))
            result.settled_bill_ids  # [target, next bill]
        """
        tendered = parse_payment_amount(amount)
        payment_method = (payment_method or MANUAL_PAYMENT).strip()[:100]

        # -------------------------------------------------------------------------
        # READ AND VALIDATE TARGET
        # -------------------------------------------------------------------------

        try:
            settings = FinancialSettings.get_instance()
            bill = Bill.objects.select_related('student').get(pk=bill_id)
        except (Bill.DoesNotExist, ValidationError, ValueError):
            raise BillNotFound()
        except DatabaseError as e:
            logger.error(f"Failed to read bill {bill_id}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        if student is not None and bill.student_id != student.pk:
            logger.warning(f"User {student.pk} attempted to pay bill {bill.pk} owned by {bill.student_id}")
            raise BillNotFound()

        if bill.status != Bill.STATUS_PENDING:
            raise BillNotPending()

        if tendered < bill.amount:
            raise InsufficientAmount(
                f"Payment amount must be at least the bill amount of {settings.format_currency(bill.amount)}."
            )

        if requires_approval is None:
            requires_approval = settings.requires_payment_approval
        settled_status = Bill.STATUS_PENDING_APPROVAL if requires_approval else Bill.STATUS_PAID

        # -------------------------------------------------------------------------
        # SETTLE TARGET
        # -------------------------------------------------------------------------

        reference = generate_transaction_reference(settings.transaction_prefix)
        payment_date = get_school_today()
        actor_id = _actor_id(recorded_by)

        try:
            settled = PaymentApplicationEngine._settle(
                bill, settled_status, payment_date, payment_method, reference, actor_id
            )
        except DatabaseError as e:
            logger.error(f"Failed to settle bill {bill.pk}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        if not settled:
            logger.warning(f"Bill {bill.pk} changed before payment {reference} could be applied")
            raise BillNotPending()

        result = PaymentApplicationResult(
            target_bill_id=str(bill.pk),
            transaction_reference=reference,
            settled_status=settled_status,
            settled_bill_ids=[str(bill.pk)],
        )

        logger.info(
            f"Payment {reference} of {tendered} settled bill {bill.pk} ({bill.amount}) as {settled_status}"
        )

        # -------------------------------------------------------------------------
        # CASCADE OVERPAYMENT
        # -------------------------------------------------------------------------

        remaining = to_minor_units(tendered) - to_minor_units(bill.amount)
        credited = 0

        if remaining > 0:
            try:
                candidates = list(
                    Bill.objects.filter(
                        student_id=bill.student_id,
                        status=Bill.STATUS_PENDING,
                        due_date__gt=bill.due_date,
                    ).order_by('due_date', 'id')
                )

                for candidate in candidates:
                    if remaining <= 0:
                        break

                    candidate_minor = to_minor_units(candidate.amount)

                    if remaining >= candidate_minor:
                        settled = PaymentApplicationEngine._settle(
                            candidate,
                            settled_status,
                            payment_date,
                            OVERPAYMENT_CREDIT,
                            generate_overpayment_reference(candidate.pk, settings.overpayment_prefix),
                            actor_id,
                        )
                        if not settled:
                            logger.warning(f"Skipped bill {candidate.pk} in cascade of {reference}: no longer pending")
                            result.skipped_bill_ids.append(str(candidate.pk))
                            continue

                        remaining -= candidate_minor
                        credited += candidate_minor
                        result.settled_bill_ids.append(str(candidate.pk))
                        logger.info(f"Overpayment from {reference} settled bill {candidate.pk} ({candidate.amount})")
                    else:
                        credit = from_minor_units(remaining)
                        reduced = PaymentApplicationEngine._apply_partial_credit(
                            candidate, credit, settings, actor_id
                        )
                        if not reduced:
                            logger.warning(f"Skipped bill {candidate.pk} in cascade of {reference}: no longer pending")
                            result.skipped_bill_ids.append(str(candidate.pk))
                            continue

                        credited += remaining
                        remaining = 0
                        result.partially_applied_bill_id = str(candidate.pk)
                        logger.info(
                            f"Overpayment from {reference} credited {credit} to bill {candidate.pk}, "
                            f"{candidate.amount - credit} still due"
                        )

            except DatabaseError as e:
                result.credited_amount = from_minor_units(credited)
                result.unabsorbed_credit = from_minor_units(remaining)
                logger.error(
                    f"Cascade of payment {reference} interrupted after {len(result.settled_bill_ids)} bill(s): {e}",
                    exc_info=True
                )
                raise StoreUnavailable(progress=result) from e

        result.credited_amount = from_minor_units(credited)
        result.unabsorbed_credit = from_minor_units(remaining)

        if result.unabsorbed_credit > 0:
            logger.info(
                f"Payment {reference} left {result.unabsorbed_credit} unabsorbed for student {bill.student_id}"
            )

        send_after_commit(
            payment_applied,
            sender=PaymentApplicationEngine,
            result=result,
            bill=bill,
            student=bill.student,
            amount=tendered,
            payment_method=payment_method,
            recorded_by=recorded_by,
        )

        return result

    @staticmethod
    def _settle(bill, status, payment_date, payment_method, reference, actor_id):
        """Conditionally move a pending bill to ``status``. False if the guard failed."""
        rows = Bill.objects.filter(
            pk=bill.pk,
            status=Bill.STATUS_PENDING,
            amount=bill.amount,
        ).update(
            status=status,
            payment_date=payment_date,
            payment_method=payment_method,
            transaction_reference=reference,
            updated_at=get_school_current_time(),
            updated_by_id=actor_id,
        )
        return rows == 1

    @staticmethod
    def _apply_partial_credit(bill, credit, settings, actor_id):
        """Conditionally reduce a pending bill by ``credit`` and annotate it."""
        note = format_credit_note(bill.amount, credit, format_amount=settings.format_currency)
        rows = Bill.objects.filter(
            pk=bill.pk,
            status=Bill.STATUS_PENDING,
            amount=bill.amount,
        ).update(
            amount=bill.amount - credit,
            notes=append_note(bill.notes, note),
            updated_at=get_school_current_time(),
            updated_by_id=actor_id,
        )
        return rows == 1


def apply_payment(bill_id, amount, payment_method=MANUAL_PAYMENT, **kwargs):
    """
    Convenience wrapper around PaymentApplicationEngine.apply_payment.

    Example:
        result = apply_payment(bill.pk, '2500.00', student=request.user)
    """
    return PaymentApplicationEngine.apply_payment(bill_id, amount, payment_method, **kwargs)


# =============================================================================
# ENROLLMENT SERVICE
# =============================================================================

class EnrollmentService:
    """Registrar decisions on enrollments"""

    @staticmethod
    def approve_enrollment(enrollment, approved_by=None, start_date=None):
        """
        Approve a pending enrollment and generate its billing schedule.
        Approval and schedule are committed together.

        Args:
            enrollment: Enrollment instance
            approved_by: User approving
            start_date: Schedule reference date (defaults to approval date)

        Returns:
            list of created Bill instances

        Raises:
            EnrollmentNotPending: already approved or rejected
            InvalidTuitionFee / InvalidPaymentPlan: schedule cannot be built
            StoreUnavailable: database failure; nothing was changed
        """
        previous = (enrollment.status, enrollment.approved_at, enrollment.approved_by_id, enrollment.tuition_fee)

        tuition_fee = enrollment.tuition_fee
        if not tuition_fee and enrollment.program_id:
            tuition_fee = enrollment.program.price

        now = get_school_current_time()
        actor_id = _actor_id(approved_by)

        try:
            with transaction.atomic():
                rows = Enrollment.objects.filter(
                    pk=enrollment.pk,
                    status=Enrollment.STATUS_PENDING,
                ).update(
                    status=Enrollment.STATUS_APPROVED,
                    tuition_fee=tuition_fee,
                    approved_at=now,
                    approved_by_id=actor_id,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                if rows == 0:
                    raise EnrollmentNotPending()

                enrollment.status = Enrollment.STATUS_APPROVED
                enrollment.tuition_fee = tuition_fee
                enrollment.approved_at = now
                enrollment.approved_by_id = actor_id

                bills = BillingScheduleGenerator.create_for_enrollment(enrollment, start_date=start_date)

                send_after_commit(
                    enrollment_reviewed,
                    sender=EnrollmentService,
                    enrollment=enrollment,
                    action='approved',
                    reviewed_by=approved_by,
                    reason='',
                )

        except (BillingError, DatabaseError) as e:
            enrollment.status, enrollment.approved_at, enrollment.approved_by_id, enrollment.tuition_fee = previous
            if isinstance(e, DatabaseError):
                logger.error(f"Failed to approve enrollment {enrollment.pk}: {e}", exc_info=True)
                raise StoreUnavailable() from e
            raise

        logger.info(f"Approved enrollment {enrollment.pk} with {len(bills)} bill(s)")
        return bills

    @staticmethod
    def reject_enrollment(enrollment, reason, rejected_by=None):
        """
        Reject a pending enrollment. No bills are created.

        Raises:
            BillingValidationError: blank reason
            EnrollmentNotPending: already approved or rejected
        """
        reason = (reason or '').strip()
        if not reason:
            raise BillingValidationError("A rejection reason is required.")

        now = get_school_current_time()
        actor_id = _actor_id(rejected_by)

        try:
            with transaction.atomic():
                rows = Enrollment.objects.filter(
                    pk=enrollment.pk,
                    status=Enrollment.STATUS_PENDING,
                ).update(
                    status=Enrollment.STATUS_REJECTED,
                    rejection_reason=reason,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                if rows == 0:
                    raise EnrollmentNotPending()

                enrollment.status = Enrollment.STATUS_REJECTED
                enrollment.rejection_reason = reason

                send_after_commit(
                    enrollment_reviewed,
                    sender=EnrollmentService,
                    enrollment=enrollment,
                    action='rejected',
                    reviewed_by=rejected_by,
                    reason=reason,
                )
        except DatabaseError as e:
            logger.error(f"Failed to reject enrollment {enrollment.pk}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        logger.info(f"Rejected enrollment {enrollment.pk}: {reason}")
        return enrollment


# =============================================================================
# PAYMENT REVIEW SERVICE
# =============================================================================

class PaymentReviewService:
    """Accountant workflow for submitted payments"""

    @staticmethod
    def approve_payment(bill, approved_by=None):
        """
        Confirm a submitted payment: pending_approval -> paid.

        Raises:
            BillNotAwaitingApproval: the bill is not awaiting approval
        """
        old_values = {'status': bill.status}

        try:
            rows = Bill.objects.filter(
                pk=bill.pk,
                status=Bill.STATUS_PENDING_APPROVAL,
            ).update(
                status=Bill.STATUS_PAID,
                updated_at=get_school_current_time(),
                updated_by_id=_actor_id(approved_by),
            )
        except DatabaseError as e:
            logger.error(f"Failed to approve payment for bill {bill.pk}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        if rows == 0:
            raise BillNotAwaitingApproval()

        bill.status = Bill.STATUS_PAID
        logger.info(f"Approved payment {bill.transaction_reference} for bill {bill.pk}")

        send_after_commit(
            payment_reviewed,
            sender=PaymentReviewService,
            bill=bill,
            action='approved',
            reviewed_by=approved_by,
            reason='',
            old_values=old_values,
        )
        return bill

    @staticmethod
    def reject_payment(bill, reason='', rejected_by=None):
        """
        Send a submitted payment back: pending_approval -> pending, clearing
        the payment date, method and reference.

        Raises:
            BillNotAwaitingApproval: the bill is not awaiting approval
        """
        reason = (reason or '').strip()
        old_values = {
            'status': bill.status,
            'payment_date': str(bill.payment_date) if bill.payment_date else None,
            'payment_method': bill.payment_method,
            'transaction_reference': bill.transaction_reference,
        }
        notes = append_note(bill.notes, f"Payment rejected: {reason}") if reason else bill.notes

        try:
            rows = Bill.objects.filter(
                pk=bill.pk,
                status=Bill.STATUS_PENDING_APPROVAL,
            ).update(
                status=Bill.STATUS_PENDING,
                payment_date=None,
                payment_method='',
                transaction_reference=None,
                notes=notes,
                updated_at=get_school_current_time(),
                updated_by_id=_actor_id(rejected_by),
            )
        except DatabaseError as e:
            logger.error(f"Failed to reject payment for bill {bill.pk}: {e}", exc_info=True)
            raise StoreUnavailable() from e

        if rows == 0:
            raise BillNotAwaitingApproval()

        bill.status = Bill.STATUS_PENDING
        bill.payment_date = None
        bill.payment_method = ''
        bill.transaction_reference = None
        bill.notes = notes
        logger.info(f"Rejected payment {old_values['transaction_reference']} for bill {bill.pk}")

        send_after_commit(
            payment_reviewed,
            sender=PaymentReviewService,
            bill=bill,
            action='rejected',
            reviewed_by=rejected_by,
            reason=reason,
            old_values=old_values,
        )
        return bill

    @staticmethod
    def record_payment(bill, payment_method='cash', recorded_by=None):
        """
        Accountant marks a pending bill as paid directly (no approval step).

        Returns:
            PaymentApplicationResult
        """
        return PaymentApplicationEngine.apply_payment(
            bill.pk,
            bill.amount,
            payment_method=payment_method,
            requires_approval=False,
            recorded_by=recorded_by,
        )

    @staticmethod
    def bulk_approve_payments(bills, approved_by=None):
        """
        Approve several submitted payments. Failures are collected, not raised.

        Returns:
            dict: {'approved': [...], 'failed': [{'bill': ..., 'error': ...}], 'total': n, 'batch_id': ...}
        """
        bills = list(bills)
        results = {
            'approved': [],
            'failed': [],
            'total': len(bills),
            'batch_id': uuid.uuid4().hex,
        }

        for bill in bills:
            try:
                PaymentReviewService.approve_payment(bill, approved_by)
                results['approved'].append(bill)
            except BillingError as e:
                logger.warning(f"Could not approve payment for bill {bill.pk}: {e.message}")
                results['failed'].append({
                    'bill': bill,
                    'error': e.message
                })

        logger.info(
            f"Bulk approval {results['batch_id']}: {len(results['approved'])} approved, "
            f"{len(results['failed'])} failed"
        )
        return results


# =============================================================================
# BILLING QUERIES
# =============================================================================

class BillingQueries:
    """Read-side helpers for dashboards, statements and reports"""

    @staticmethod
    def student_bills(student):
        return Bill.objects.filter(student=student).exclude(
            status=Bill.STATUS_CANCELLED
        ).order_by('due_date', 'id')

    @staticmethod
    def student_summary(student, as_of=None):
        """
        Totals for one student's billing dashboard.

        Returns:
            dict with total_billed, total_paid, awaiting_approval,
            outstanding, overdue_count and next_due_bill
        """
        as_of = as_of or get_school_today()
        bills = BillingQueries.student_bills(student)
        zero = Decimal('0.00')

        totals = bills.aggregate(
            total_billed=Sum('amount'),
            total_paid=Sum('amount', filter=Q(status=Bill.STATUS_PAID)),
            awaiting_approval=Sum('amount', filter=Q(status=Bill.STATUS_PENDING_APPROVAL)),
            outstanding=Sum('amount', filter=Q(status__in=[Bill.STATUS_PENDING, Bill.STATUS_OVERDUE])),
            overdue_count=Count(
                'id',
                filter=Q(status=Bill.STATUS_OVERDUE) | Q(status=Bill.STATUS_PENDING, due_date__lt=as_of)
            ),
        )

        return {
            'total_billed': totals['total_billed'] or zero,
            'total_paid': totals['total_paid'] or zero,
            'awaiting_approval': totals['awaiting_approval'] or zero,
            'outstanding': totals['outstanding'] or zero,
            'overdue_count': totals['overdue_count'] or 0,
            'next_due_bill': bills.filter(status=Bill.STATUS_PENDING).first(),
        }

    @staticmethod
    def overdue_bills(as_of=None):
        """Unpaid bills whose due date is before ``as_of`` (school today by default)"""
        as_of = as_of or get_school_today()
        return Bill.objects.filter(
            status__in=[Bill.STATUS_PENDING, Bill.STATUS_OVERDUE],
            due_date__lt=as_of,
        ).select_related('student').order_by('due_date', 'id')

    @staticmethod
    def collection_report(start_date=None, end_date=None, status=None):
        """Bills due within a date range, optionally filtered by status"""
        bills = Bill.objects.select_related('student', 'enrollment').order_by('due_date', 'id')
        if start_date:
            bills = bills.filter(due_date__gte=start_date)
        if end_date:
            bills = bills.filter(due_date__lte=end_date)
        if status:
            bills = bills.filter(status=status)
        return bills
