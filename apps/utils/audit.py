# utils/audit.py

import logging

from utils.context import get_current_user, get_current_ip

audit_logger = logging.getLogger("financial_audit")
logger = logging.getLogger(__name__)


def log_financial_activity(
    action,
    user=None,
    target_object=None,
    amount=None,
    student=None,
    old_values=None,
    new_values=None,
    notes=None,
    risk_level='LOW',
    additional_data=None,
    batch_id=None,
    is_automated=False,
    currency=None,
):
    """
    Record a billing action in FinancialAuditLog.

    The acting user and IP default to the thread-local request context.
    Audit failures never propagate to the caller; they are logged.

    Args:
        action (str): One of FinancialAuditLog.FINANCIAL_ACTIONS (e.g. PAYMENT_SUBMIT).
        user (User, optional): Actor; defaults to the current request user.
        target_object (Model, optional): Bill or Enrollment affected.
        amount (Decimal, optional): Amount involved.
        student (User, optional): Student the action concerns.
        old_values / new_values (dict, optional): Snapshot before/after.
        notes (str, optional): Free text.
        risk_level (str, optional): LOW, MEDIUM, HIGH or CRITICAL.
        additional_data (dict, optional): Extra JSON context.
        batch_id (str, optional): Groups bulk operations.
        is_automated (bool, optional): True for commands/system actions.
        currency (str, optional): ISO currency code.
    """
    try:
        from utils.models import FinancialAuditLog

        if user is None:
            user = get_current_user()

        entry = FinancialAuditLog.log_financial_action(
            action=action,
            user=user,
            target_object=target_object,
            amount=amount,
            student=student,
            old_values=old_values,
            new_values=new_values,
            risk_level=risk_level,
            additional_data=additional_data,
            notes=notes,
            currency=currency,
            ip_address=get_current_ip(),
            is_automated=is_automated,
            batch_id=batch_id,
        )
        audit_logger.info(
            f"{action} object={entry.object_id} student={entry.student_id} "
            f"amount={entry.amount_involved} user={entry.user_id}"
        )
        return entry

    except Exception as e:
        logger.error(f"Error in financial activity logging: {e}", exc_info=True)
        return None
