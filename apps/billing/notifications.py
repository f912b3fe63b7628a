# billing/notifications.py

"""
Student notifications for billing events.

notify() is fire-and-forget: delivery failures are logged and never reach
the billing operation that triggered them.
"""

from django.conf import settings
from django.core.mail import send_mail
from django.utils.module_loading import import_string
import logging

logger = logging.getLogger(__name__)


SCHEDULE_GENERATED = 'schedule_generated'
PAYMENT_SUBMITTED = 'payment_submitted'
PAYMENT_CREDIT = 'payment_credit'
PAYMENT_APPROVED = 'payment_approved'
PAYMENT_REJECTED = 'payment_rejected'
PAYMENT_REMINDER = 'payment_reminder'
ENROLLMENT_REJECTED = 'enrollment_rejected'

MESSAGES = {
    SCHEDULE_GENERATED: (
        "Your billing schedule is ready",
        "Your enrollment for {academic_year} has been approved. "
        "{count} installment(s) totalling {total} have been added to your account. "
        "The first payment is due on {first_due_date}.",
    ),
    PAYMENT_SUBMITTED: (
        "Payment received",
        "We received your payment of {amount} (reference {transaction_reference}). "
        "{status_message}",
    ),
    PAYMENT_CREDIT: (
        "Overpayment credit applied",
        "Your payment of {amount} exceeded the bill amount. "
        "{credited_amount} was credited to {settled_count} upcoming bill(s). "
        "{unabsorbed_message}",
    ),
    PAYMENT_APPROVED: (
        "Payment approved",
        "Your payment of {amount} for the bill due {due_date} has been approved.",
    ),
    PAYMENT_REJECTED: (
        "Payment rejected",
        "Your payment for the bill due {due_date} was rejected. Reason: {reason}. "
        "The bill is pending again.",
    ),
    PAYMENT_REMINDER: (
        "Payment reminder",
        "Your bill of {amount} was due on {due_date} and is {days_overdue} day(s) overdue. "
        "Late fee: {late_fee}.",
    ),
    ENROLLMENT_REJECTED: (
        "Enrollment not approved",
        "Your enrollment for {academic_year} was not approved. Reason: {reason}.",
    ),
}


# =============================================================================
# BACKENDS
# =============================================================================

class BaseNotificationBackend:
    """Deliver one rendered message to one recipient"""

    def send(self, kind, recipient, subject, message, payload):
        raise NotImplementedError


class EmailNotificationBackend(BaseNotificationBackend):
    """Send through Django's configured EMAIL_BACKEND"""

    def send(self, kind, recipient, subject, message, payload):
        if not recipient.email:
            logger.info(f"User {recipient.pk} has no email address, skipping {kind} notification")
            return False

        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient.email],
            fail_silently=False,
        )
        return True


class LoggingNotificationBackend(BaseNotificationBackend):
    """Development backend: write notifications to the log"""

    def send(self, kind, recipient, subject, message, payload):
        logger.info(f"[{kind}] to {recipient.get_username()}: {subject} - {message}")
        return True


def get_backend():
    backend_path = getattr(
        settings,
        'BILLING_NOTIFICATION_BACKEND',
        'billing.notifications.EmailNotificationBackend'
    )
    return import_string(backend_path)()


# =============================================================================
# DISPATCH
# =============================================================================

def render_message(kind, payload):
    subject, template = MESSAGES[kind]
    return subject, template.format(**payload)


def wants_notifications(recipient):
    profile = getattr(recipient, 'profile', None)
    if profile is not None and not profile.email_notifications:
        return False
    return True


def notify(kind, recipient, payload=None):
    """
    Notify a user about a billing event.

    Args:
        kind (str): One of the MESSAGES keys (e.g. PAYMENT_SUBMITTED)
        recipient (User): The student
        payload (dict): Values for the message template

    Returns:
        bool: True when the backend accepted the message
    """
    payload = payload or {}

    try:
        from core.models import FinancialSettings

        if not FinancialSettings.get_instance().send_payment_notifications:
            logger.debug(f"Payment notifications disabled, skipping {kind}")
            return False

        if not wants_notifications(recipient):
            logger.debug(f"User {recipient.pk} opted out of notifications, skipping {kind}")
            return False

        subject, message = render_message(kind, payload)
        return bool(get_backend().send(kind, recipient, subject, message, payload))

    except Exception as e:
        logger.error(f"Error sending {kind} notification to user {getattr(recipient, 'pk', None)}: {e}", exc_info=True)
        return False
