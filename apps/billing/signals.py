# billing/signals.py

"""
Billing Signals and Handlers

Signals sent by the billing services after their changes commit:
- schedule_generated: installments created for an enrollment
- payment_applied: a payment settled a bill (and possibly cascaded)
- payment_reviewed: an accountant approved or rejected a payment
- enrollment_reviewed: a registrar approved or rejected an enrollment

Handlers write the financial audit log and notify the student. A failing
handler is logged and never undoes the billing change.
"""

from decimal import Decimal
from django.db import transaction
from django.dispatch import Signal, receiver
import logging

from billing import notifications
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


schedule_generated = Signal()     # enrollment, bills
payment_applied = Signal()        # result, bill, student, amount, payment_method, recorded_by
payment_reviewed = Signal()       # bill, action, reviewed_by, reason, old_values
enrollment_reviewed = Signal()    # enrollment, action, reviewed_by, reason


def send_after_commit(signal, **kwargs):
    """Send ``signal`` once the surrounding transaction commits; receiver errors are logged."""
    def send():
        for handler, response in signal.send_robust(**kwargs):
            if isinstance(response, Exception):
                logger.error(
                    f"Billing signal receiver {getattr(handler, '__name__', handler)} failed: {response}",
                    exc_info=response
                )
    transaction.on_commit(send)


def _money(amount):
    from core.utils import format_money
    return format_money(amount)


# =============================================================================
# SCHEDULE SIGNALS
# =============================================================================

@receiver(schedule_generated)
def schedule_generated_handler(sender, enrollment, bills, **kwargs):
    """Audit and announce a new billing schedule"""
    if not bills:
        return

    total = sum((bill.amount for bill in bills), Decimal('0.00'))

    log_financial_activity(
        action='SCHEDULE_GENERATE',
        target_object=enrollment,
        amount=total,
        student=enrollment.student,
        new_values={
            'payment_plan': enrollment.payment_plan,
            'installments': len(bills),
            'bill_ids': [str(bill.pk) for bill in bills],
        },
        notes=f"{enrollment.payment_plan} schedule for {enrollment.academic_year} {enrollment.semester}".strip(),
    )

    notifications.notify(
        notifications.SCHEDULE_GENERATED,
        enrollment.student,
        {
            'academic_year': enrollment.academic_year,
            'count': len(bills),
            'total': _money(total),
            'first_due_date': bills[0].due_date.strftime('%B %d, %Y'),
        },
    )


# =============================================================================
# PAYMENT SIGNALS
# =============================================================================

@receiver(payment_applied)
def payment_applied_audit_handler(sender, result, bill, student, amount, payment_method, recorded_by=None, **kwargs):
    """One audit entry for the payment, one per bill settled from credit"""
    try:
        action = 'PAYMENT_RECORD' if recorded_by is not None else 'PAYMENT_SUBMIT'
        log_financial_activity(
            action=action,
            user=recorded_by,
            target_object=bill,
            amount=amount,
            student=student,
            old_values={'status': 'pending', 'amount': str(bill.amount)},
            new_values={
                'status': result.settled_status,
                'transaction_reference': result.transaction_reference,
                'payment_method': payment_method,
            },
            additional_data=result.as_dict(),
            batch_id=result.transaction_reference,
        )

        if result.credited_amount > 0:
            log_financial_activity(
                action='OVERPAYMENT_CREDIT',
                user=recorded_by,
                target_object=bill,
                amount=result.credited_amount,
                student=student,
                new_values={
                    'settled_bill_ids': result.settled_bill_ids[1:],
                    'partially_applied_bill_id': result.partially_applied_bill_id,
                    'unabsorbed_credit': str(result.unabsorbed_credit),
                },
                risk_level='MEDIUM' if result.unabsorbed_credit > 0 else 'LOW',
                batch_id=result.transaction_reference,
            )
    except Exception as e:
        logger.error(f"Error auditing payment {result.transaction_reference}: {e}", exc_info=True)


@receiver(payment_applied)
def payment_applied_notification_handler(sender, result, bill, student, amount, payment_method, **kwargs):
    if result.settled_status == 'paid':
        status_message = "Your bill has been marked as paid."
    else:
        status_message = "It is awaiting approval by the accounting office."

    notifications.notify(
        notifications.PAYMENT_SUBMITTED,
        student,
        {
            'amount': _money(amount),
            'transaction_reference': result.transaction_reference,
            'status_message': status_message,
        },
    )

    if result.credited_amount > 0 or result.unabsorbed_credit > 0:
        if result.unabsorbed_credit > 0:
            unabsorbed_message = (
                f"{_money(result.unabsorbed_credit)} could not be applied to any bill "
                f"and will be credited to your account."
            )
        else:
            unabsorbed_message = ""

        notifications.notify(
            notifications.PAYMENT_CREDIT,
            student,
            {
                'amount': _money(amount),
                'credited_amount': _money(result.credited_amount),
                'settled_count': len(result.settled_bill_ids) - 1 + (1 if result.partially_applied_bill_id else 0),
                'unabsorbed_message': unabsorbed_message,
            },
        )


@receiver(payment_reviewed)
def payment_reviewed_handler(sender, bill, action, reviewed_by=None, reason='', old_values=None, **kwargs):
    """Audit an approval or rejection and tell the student"""
    approved = action == 'approved'

    log_financial_activity(
        action='PAYMENT_APPROVE' if approved else 'PAYMENT_REJECT',
        user=reviewed_by,
        target_object=bill,
        amount=bill.amount,
        student=bill.student,
        old_values=old_values,
        new_values={'status': bill.status},
        notes=reason or None,
        risk_level='LOW' if approved else 'MEDIUM',
    )

    if approved:
        notifications.notify(
            notifications.PAYMENT_APPROVED,
            bill.student,
            {'amount': _money(bill.amount), 'due_date': bill.due_date.strftime('%B %d, %Y')},
        )
    else:
        notifications.notify(
            notifications.PAYMENT_REJECTED,
            bill.student,
            {'due_date': bill.due_date.strftime('%B %d, %Y'), 'reason': reason or 'not specified'},
        )


# =============================================================================
# ENROLLMENT SIGNALS
# =============================================================================

@receiver(enrollment_reviewed)
def enrollment_reviewed_handler(sender, enrollment, action, reviewed_by=None, reason='', **kwargs):
    approved = action == 'approved'

    log_financial_activity(
        action='ENROLLMENT_APPROVE' if approved else 'ENROLLMENT_REJECT',
        user=reviewed_by,
        target_object=enrollment,
        amount=enrollment.tuition_fee,
        student=enrollment.student,
        new_values={'status': enrollment.status, 'payment_plan': enrollment.payment_plan},
        notes=reason or None,
    )

    # Approval is announced by the schedule notification
    if not approved:
        notifications.notify(
            notifications.ENROLLMENT_REJECTED,
            enrollment.student,
            {'academic_year': enrollment.academic_year, 'reason': reason},
        )
