from smtplib import SMTPException
from unittest.mock import patch

import pytest
from django.contrib.auth.models import User
from django.core import mail

from billing import notifications

pytestmark = pytest.mark.django_db


PAYLOAD = {
    'amount': '₱1,000.00',
    'due_date': 'January 01, 2025',
}


def test_email_backend_sends_rendered_message(student, financial_settings):
    assert notifications.notify(notifications.PAYMENT_APPROVED, student, PAYLOAD) is True

    assert len(mail.outbox) == 1
    message = mail.outbox[0]
    assert message.subject == "Payment approved"
    assert message.to == ['ana.reyes@example.com']
    assert "₱1,000.00" in message.body


def test_logging_backend(student, financial_settings, settings):
    settings.BILLING_NOTIFICATION_BACKEND = 'billing.notifications.LoggingNotificationBackend'

    assert notifications.notify(notifications.PAYMENT_APPROVED, student, PAYLOAD) is True
    assert mail.outbox == []


def test_disabled_in_settings(student, financial_settings):
    financial_settings.send_payment_notifications = False
    financial_settings.save()

    assert notifications.notify(notifications.PAYMENT_APPROVED, student, PAYLOAD) is False
    assert mail.outbox == []


def test_user_without_email_is_skipped(financial_settings):
    user = User.objects.create_user(username='no.email', password='s3cure-pass-123')

    assert notifications.notify(notifications.PAYMENT_APPROVED, user, PAYLOAD) is False
    assert mail.outbox == []


def test_delivery_failure_is_swallowed(student, financial_settings):
    with patch('billing.notifications.send_mail', side_effect=SMTPException('mailbox unavailable')):
        assert notifications.notify(notifications.PAYMENT_APPROVED, student, PAYLOAD) is False


def test_missing_payload_value_is_swallowed(student, financial_settings):
    assert notifications.notify(notifications.PAYMENT_APPROVED, student, {}) is False
    assert mail.outbox == []


def test_unknown_backend_is_swallowed(student, financial_settings, settings):
    settings.BILLING_NOTIFICATION_BACKEND = 'billing.notifications.CarrierPigeonBackend'
    assert notifications.notify(notifications.PAYMENT_APPROVED, student, PAYLOAD) is False
