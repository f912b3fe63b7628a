from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.core import mail
from django.db import DatabaseError

from billing.exceptions import (
    BillingValidationError,
    BillNotAwaitingApproval,
    EnrollmentNotPending,
    InvalidTuitionFee,
)
from billing.models import Bill, Enrollment
from billing.services import BillingQueries, EnrollmentService, PaymentReviewService
from billing.utils import calculate_late_fee
from core.utils import get_school_today
from utils.models import FinancialAuditLog

pytestmark = pytest.mark.django_db


@pytest.fixture
def submitted_bill(make_bill, financial_settings):
    return make_bill(
        '1000.00',
        date(2025, 1, 1),
        status=Bill.STATUS_PENDING_APPROVAL,
        payment_date=date(2024, 12, 20),
        payment_method='GCash',
        transaction_reference='TXN-20241220101010000000-ABC123',
    )


# =============================================================================
# PAYMENT REVIEW
# =============================================================================

class TestPaymentReview:

    def test_approve_payment(self, submitted_bill, accountant, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            PaymentReviewService.approve_payment(submitted_bill, approved_by=accountant)

        bill = Bill.objects.get(pk=submitted_bill.pk)
        assert bill.status == Bill.STATUS_PAID
        assert bill.updated_by_id == str(accountant.pk)

        entry = FinancialAuditLog.objects.get(action='PAYMENT_APPROVE')
        assert entry.user_id == str(accountant.pk)
        assert entry.user_role == 'accountant'
        assert mail.outbox[0].subject == "Payment approved"

    def test_approve_requires_pending_approval(self, make_bill, financial_settings):
        bill = make_bill('1000.00', date(2025, 1, 1))
        with pytest.raises(BillNotAwaitingApproval):
            PaymentReviewService.approve_payment(bill)
        assert Bill.objects.get(pk=bill.pk).status == Bill.STATUS_PENDING

    def test_reject_payment_reopens_bill(self, submitted_bill, accountant, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            PaymentReviewService.reject_payment(submitted_bill, 'Receipt is unreadable', rejected_by=accountant)

        bill = Bill.objects.get(pk=submitted_bill.pk)
        assert bill.status == Bill.STATUS_PENDING
        assert bill.payment_date is None
        assert bill.payment_method == ''
        assert bill.transaction_reference is None
        assert 'Payment rejected: Receipt is unreadable' in bill.notes

        entry = FinancialAuditLog.objects.get(action='PAYMENT_REJECT')
        assert entry.old_values['transaction_reference'] == 'TXN-20241220101010000000-ABC123'
        assert 'Receipt is unreadable' in mail.outbox[0].body

    def test_rejected_bill_can_be_paid_again(self, submitted_bill):
        from billing.services import PaymentApplicationEngine

        PaymentReviewService.reject_payment(submitted_bill)
        result = PaymentApplicationEngine.apply_payment(submitted_bill.pk, Decimal('1000.00'))

        assert result.settled_bill_ids == [str(submitted_bill.pk)]

    def test_reject_twice(self, submitted_bill):
        PaymentReviewService.reject_payment(submitted_bill, 'Wrong amount')
        with pytest.raises(BillNotAwaitingApproval):
            PaymentReviewService.reject_payment(submitted_bill, 'Wrong amount')

    def test_record_payment_marks_paid(self, make_bill, accountant, financial_settings, django_capture_on_commit_callbacks):
        bill = make_bill('1500.00', date(2025, 1, 1))

        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentReviewService.record_payment(bill, payment_method='cash', recorded_by=accountant)

        bill = Bill.objects.get(pk=bill.pk)
        assert result.settled_status == Bill.STATUS_PAID
        assert bill.status == Bill.STATUS_PAID
        assert bill.payment_method == 'cash'
        assert FinancialAuditLog.objects.get(action='PAYMENT_RECORD').user_id == str(accountant.pk)

    def test_bulk_approve_collects_failures(self, submitted_bill, make_bill, accountant):
        second = make_bill('800.00', date(2025, 2, 1), status=Bill.STATUS_PENDING_APPROVAL)
        pending = make_bill('800.00', date(2025, 3, 1))

        results = PaymentReviewService.bulk_approve_payments(
            Bill.objects.filter(pk__in=[submitted_bill.pk, second.pk, pending.pk]),
            approved_by=accountant,
        )

        assert results['total'] == 3
        assert {bill.pk for bill in results['approved']} == {submitted_bill.pk, second.pk}
        assert results['failed'][0]['bill'].pk == pending.pk
        assert results['failed'][0]['error'] == BillNotAwaitingApproval.default_message


# =============================================================================
# ENROLLMENT REVIEW
# =============================================================================

class TestEnrollmentReview:

    def test_approve_generates_schedule(self, enrollment, registrar, financial_settings):
        bills = EnrollmentService.approve_enrollment(
            enrollment, approved_by=registrar, start_date=date(2024, 8, 15)
        )

        enrollment.refresh_from_db()
        assert enrollment.status == Enrollment.STATUS_APPROVED
        assert enrollment.approved_at is not None
        assert enrollment.approved_by_id == str(registrar.pk)
        assert len(bills) == 10
        assert Bill.objects.filter(enrollment=enrollment).count() == 10
        assert bills[0].due_date == date(2024, 9, 1)

    def test_failing_schedule_announcement_keeps_approval(
        self, enrollment, registrar, financial_settings, django_capture_on_commit_callbacks
    ):
        with patch('billing.signals._money', side_effect=DatabaseError('audit table locked')):
            with django_capture_on_commit_callbacks(execute=True):
                bills = EnrollmentService.approve_enrollment(enrollment, approved_by=registrar)

        assert len(bills) == 10
        assert enrollment.status == Enrollment.STATUS_APPROVED
        enrollment.refresh_from_db()
        assert enrollment.status == Enrollment.STATUS_APPROVED
        assert Bill.objects.filter(enrollment=enrollment).count() == 10
        assert FinancialAuditLog.objects.filter(action='ENROLLMENT_APPROVE').exists()

    def test_approve_uses_program_price_when_fee_unset(self, enrollment, financial_settings):
        Enrollment.objects.filter(pk=enrollment.pk).update(tuition_fee=Decimal('0.00'))
        enrollment.refresh_from_db()
        enrollment.payment_plan = Enrollment.PLAN_FULL
        Enrollment.objects.filter(pk=enrollment.pk).update(payment_plan=Enrollment.PLAN_FULL)

        bills = EnrollmentService.approve_enrollment(enrollment)

        enrollment.refresh_from_db()
        assert enrollment.tuition_fee == Decimal('45000.00')
        assert [bill.amount for bill in bills] == [Decimal('45000.00')]

    def test_approve_twice(self, enrollment, financial_settings):
        EnrollmentService.approve_enrollment(enrollment)
        with pytest.raises(EnrollmentNotPending):
            EnrollmentService.approve_enrollment(enrollment)
        assert Bill.objects.filter(enrollment=enrollment).count() == 10

    def test_unsplittable_fee_rolls_back_approval(self, enrollment, financial_settings):
        Enrollment.objects.filter(pk=enrollment.pk).update(tuition_fee=Decimal('0.05'))
        enrollment.refresh_from_db()

        with pytest.raises(InvalidTuitionFee):
            EnrollmentService.approve_enrollment(enrollment)

        assert enrollment.status == Enrollment.STATUS_PENDING
        enrollment.refresh_from_db()
        assert enrollment.status == Enrollment.STATUS_PENDING
        assert Bill.objects.count() == 0

    def test_reject_requires_reason(self, enrollment):
        with pytest.raises(BillingValidationError):
            EnrollmentService.reject_enrollment(enrollment, '   ')

    def test_reject(self, enrollment, registrar, financial_settings, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            EnrollmentService.reject_enrollment(enrollment, 'Missing transcript', rejected_by=registrar)

        enrollment.refresh_from_db()
        assert enrollment.status == Enrollment.STATUS_REJECTED
        assert enrollment.rejection_reason == 'Missing transcript'
        assert Bill.objects.count() == 0
        assert mail.outbox[0].subject == "Enrollment not approved"
        assert FinancialAuditLog.objects.filter(action='ENROLLMENT_REJECT').exists()

    def test_rejected_enrollment_cannot_be_approved(self, enrollment):
        EnrollmentService.reject_enrollment(enrollment, 'Duplicate application')
        with pytest.raises(EnrollmentNotPending):
            EnrollmentService.approve_enrollment(enrollment)


# =============================================================================
# QUERIES AND LATE FEES
# =============================================================================

class TestBillingQueries:

    def test_student_summary(self, make_bill, student, financial_settings):
        today = get_school_today()
        make_bill('1000.00', today - timedelta(days=40))
        make_bill('1000.00', today + timedelta(days=20))
        make_bill('500.00', today - timedelta(days=70), status=Bill.STATUS_PAID)
        make_bill('750.00', today - timedelta(days=10), status=Bill.STATUS_PENDING_APPROVAL)
        make_bill('300.00', today, status=Bill.STATUS_CANCELLED)

        summary = BillingQueries.student_summary(student)

        assert summary['total_billed'] == Decimal('3250.00')
        assert summary['total_paid'] == Decimal('500.00')
        assert summary['awaiting_approval'] == Decimal('750.00')
        assert summary['outstanding'] == Decimal('2000.00')
        assert summary['overdue_count'] == 1
        assert summary['next_due_bill'].due_date == today - timedelta(days=40)

    def test_summary_for_student_without_bills(self, student, financial_settings):
        summary = BillingQueries.student_summary(student)
        assert summary['total_billed'] == Decimal('0.00')
        assert summary['next_due_bill'] is None

    def test_overdue_bills(self, make_bill, other_student, financial_settings):
        as_of = date(2025, 3, 15)
        overdue = make_bill('1000.00', date(2025, 2, 1))
        other = make_bill('1000.00', date(2025, 1, 1), owner=other_student)
        make_bill('1000.00', date(2025, 3, 15))
        make_bill('1000.00', date(2025, 1, 1), status=Bill.STATUS_PAID)

        assert list(BillingQueries.overdue_bills(as_of=as_of)) == [other, overdue]

    def test_collection_report_filters(self, make_bill, financial_settings):
        january = make_bill('1000.00', date(2025, 1, 1), status=Bill.STATUS_PAID)
        make_bill('1000.00', date(2025, 2, 1))
        make_bill('1000.00', date(2025, 4, 1), status=Bill.STATUS_PAID)

        report = BillingQueries.collection_report(
            start_date=date(2025, 1, 1), end_date=date(2025, 3, 31), status=Bill.STATUS_PAID
        )
        assert list(report) == [january]


class TestLateFees:

    @pytest.mark.parametrize('days,expected', [
        (0, '0.00'),
        (1, '20.00'),
        (30, '20.00'),
        (31, '40.00'),
        (45, '40.00'),
        (91, '80.00'),
    ])
    def test_rate_per_started_month(self, financial_settings, days, expected):
        assert calculate_late_fee(Decimal('1000.00'), days) == Decimal(expected)

    def test_rounded_to_centavo(self, financial_settings):
        assert calculate_late_fee(Decimal('333.33'), 10) == Decimal('6.67')

    def test_grace_period(self, financial_settings):
        financial_settings.grace_period_days = 7
        financial_settings.save()

        assert calculate_late_fee(Decimal('1000.00'), 7) == Decimal('0.00')
        assert calculate_late_fee(Decimal('1000.00'), 8) == Decimal('20.00')

    def test_disabled(self, financial_settings):
        financial_settings.late_fee_enabled = False
        financial_settings.save()
        assert calculate_late_fee(Decimal('1000.00'), 60) == Decimal('0.00')

    def test_bill_late_fee_property(self, make_bill, financial_settings):
        bill = make_bill('1000.00', get_school_today() - timedelta(days=45))

        assert bill.is_overdue
        assert bill.days_overdue == 45
        assert bill.late_fee == Decimal('40.00')

    def test_settled_bill_has_no_late_fee(self, make_bill, financial_settings):
        bill = make_bill('1000.00', get_school_today() - timedelta(days=45), status=Bill.STATUS_PAID)
        assert not bill.is_overdue
        assert bill.late_fee == Decimal('0.00')
