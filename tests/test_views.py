from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import patch
import uuid

import pytest
from django.urls import reverse
from openpyxl import load_workbook

from billing.exceptions import StoreUnavailable
from billing.models import Bill, Enrollment
from billing.services import PaymentApplicationResult
from core.models import FinancialSettings
from utils.models import FinancialAuditLog

pytestmark = pytest.mark.django_db


def pay_url(bill):
    return reverse('billing:pay_bill', args=[bill.pk])


# =============================================================================
# STUDENT ENDPOINTS
# =============================================================================

class TestPayBill:

    def test_pay_with_overpayment(self, client, student, three_bills):
        client.force_login(student)

        response = client.post(pay_url(three_bills[0]), {'amount': '2500.00', 'payment_method': 'GCash'})

        assert response.status_code == 200
        data = response.json()
        assert data['success'] is True
        assert data['result']['settled_bill_ids'] == [str(three_bills[0].pk), str(three_bills[1].pk)]
        assert data['result']['partially_applied_bill_id'] == str(three_bills[2].pk)
        assert Bill.objects.get(pk=three_bills[0].pk).payment_method == 'GCash'

    def test_default_payment_method(self, client, student, three_bills):
        client.force_login(student)
        client.post(pay_url(three_bills[0]), {'amount': '1000'})
        assert Bill.objects.get(pk=three_bills[0].pk).payment_method == 'Manual Payment'

    def test_insufficient_amount_is_400(self, client, student, three_bills):
        client.force_login(student)

        response = client.post(pay_url(three_bills[0]), {'amount': '500.00'})

        assert response.status_code == 400
        assert 'at least the bill amount' in response.json()['error']

    def test_malformed_amount_is_400(self, client, student, three_bills):
        client.force_login(student)
        response = client.post(pay_url(three_bills[0]), {'amount': 'lots'})

        assert response.status_code == 400
        assert 'amount' in response.json()['errors']

    def test_other_students_bill_is_404(self, client, other_student, three_bills):
        client.force_login(other_student)
        response = client.post(pay_url(three_bills[0]), {'amount': '1000.00'})

        assert response.status_code == 404
        assert Bill.objects.get(pk=three_bills[0].pk).status == Bill.STATUS_PENDING

    def test_unknown_bill_is_404(self, client, student, financial_settings):
        client.force_login(student)
        response = client.post(reverse('billing:pay_bill', args=[uuid.uuid4()]), {'amount': '1000.00'})
        assert response.status_code == 404

    def test_already_paid_is_409(self, client, student, three_bills):
        client.force_login(student)
        client.post(pay_url(three_bills[0]), {'amount': '1000.00'})

        response = client.post(pay_url(three_bills[0]), {'amount': '1000.00'})

        assert response.status_code == 409
        assert 'no longer pending' in response.json()['error']

    def test_store_failure_is_503_with_progress(self, client, student, three_bills):
        client.force_login(student)
        progress = PaymentApplicationResult(
            target_bill_id=str(three_bills[0].pk),
            transaction_reference='TXN-1',
            settled_status=Bill.STATUS_PENDING_APPROVAL,
            settled_bill_ids=[str(three_bills[0].pk)],
            unabsorbed_credit=Decimal('1500.00'),
        )

        with patch(
            'billing.views.PaymentApplicationEngine.apply_payment',
            side_effect=StoreUnavailable(progress=progress),
        ):
            response = client.post(pay_url(three_bills[0]), {'amount': '2500.00'})

        assert response.status_code == 503
        data = response.json()
        assert data['error'] == StoreUnavailable.default_message
        assert data['progress']['unabsorbed_credit'] == '1500.00'

    def test_anonymous_is_401(self, client, three_bills):
        response = client.post(pay_url(three_bills[0]), {'amount': '1000.00'})
        assert response.status_code == 401

    def test_accountant_cannot_use_student_payment(self, client, accountant, three_bills):
        client.force_login(accountant)
        response = client.post(pay_url(three_bills[0]), {'amount': '1000.00'})
        assert response.status_code == 403

    def test_get_not_allowed(self, client, student, three_bills):
        client.force_login(student)
        assert client.get(pay_url(three_bills[0])).status_code == 405


class TestMyBills:

    def test_lists_own_bills(self, client, student, other_student, make_bill, three_bills):
        make_bill('999.00', date(2025, 1, 1), owner=other_student)
        client.force_login(student)

        response = client.get(reverse('billing:my_bills'))

        assert response.status_code == 200
        data = response.json()
        assert [bill['id'] for bill in data['bills']] == [str(bill.pk) for bill in three_bills]
        assert data['summary']['total_billed'] == '3000.00'
        assert data['summary']['next_due_bill']['id'] == str(three_bills[0].pk)

    def test_settings_loaded_once_for_listing(self, client, student, three_bills):
        client.force_login(student)

        with patch.object(
            FinancialSettings, 'get_instance', wraps=FinancialSettings.get_instance
        ) as get_instance:
            response = client.get(reverse('billing:my_bills'))

        assert response.status_code == 200
        assert all(bill['is_overdue'] for bill in response.json()['bills'])
        assert get_instance.call_count == 1

    def test_statement_pdf(self, client, student, three_bills):
        client.force_login(student)

        response = client.get(reverse('billing:statement_pdf'))

        assert response.status_code == 200
        assert response['Content-Type'] == 'application/pdf'
        assert response.content.startswith(b'%PDF')

    def test_accountant_statement_for_student(self, client, accountant, student, three_bills):
        client.force_login(accountant)
        response = client.get(reverse('billing:statement_pdf'), {'student': student.pk})

        assert response.status_code == 200
        assert student.username in response['Content-Disposition']


# =============================================================================
# ACCOUNTANT ENDPOINTS
# =============================================================================

class TestAccountantEndpoints:

    def test_approve_payment(self, client, accountant, student, three_bills):
        client.force_login(student)
        client.post(pay_url(three_bills[0]), {'amount': '1000.00'})

        client.force_login(accountant)
        response = client.post(reverse('billing:approve_payment', args=[three_bills[0].pk]))

        assert response.status_code == 200
        assert response.json()['bill']['status'] == Bill.STATUS_PAID

    def test_approve_pending_bill_is_409(self, client, accountant, three_bills):
        client.force_login(accountant)
        response = client.post(reverse('billing:approve_payment', args=[three_bills[0].pk]))
        assert response.status_code == 409

    def test_student_cannot_approve(self, client, student, three_bills):
        client.force_login(student)
        response = client.post(reverse('billing:approve_payment', args=[three_bills[0].pk]))
        assert response.status_code == 403

    def test_reject_payment(self, client, accountant, student, three_bills):
        client.force_login(student)
        client.post(pay_url(three_bills[0]), {'amount': '1000.00'})

        client.force_login(accountant)
        response = client.post(
            reverse('billing:reject_payment', args=[three_bills[0].pk]),
            {'reason': 'Reference not found in bank statement'}
        )

        assert response.status_code == 200
        assert response.json()['bill']['status'] == Bill.STATUS_PENDING

    def test_record_payment(self, client, accountant, three_bills):
        client.force_login(accountant)
        response = client.post(
            reverse('billing:record_payment', args=[three_bills[0].pk]),
            {'payment_method': 'cash'}
        )

        assert response.status_code == 200
        assert response.json()['result']['settled_status'] == Bill.STATUS_PAID

    def test_billing_report_xlsx(self, client, accountant, three_bills):
        client.force_login(accountant)

        response = client.get(reverse('billing:bills_report_xlsx'), {'status': Bill.STATUS_PENDING})

        assert response.status_code == 200
        wb = load_workbook(BytesIO(response.content))
        ws = wb.active
        assert ws['A1'].value == 'Billing Report'
        assert [cell.value for cell in ws[4]][:5] == ['#', 'Student', 'Username', 'Due Date', 'Amount']
        assert ws['C5'].value == 'ana.reyes'
        assert ws.freeze_panes == 'A5'
        assert FinancialAuditLog.objects.filter(action='FINANCIAL_DATA_EXPORT').exists()

    def test_report_rejects_inverted_dates(self, client, accountant, financial_settings):
        client.force_login(accountant)
        response = client.get(
            reverse('billing:bills_report_xlsx'),
            {'start_date': '2025-03-01', 'end_date': '2025-01-01'}
        )
        assert response.status_code == 400


# =============================================================================
# REGISTRAR ENDPOINTS
# =============================================================================

class TestRegistrarEndpoints:

    def test_approve_enrollment(self, client, registrar, enrollment, financial_settings):
        client.force_login(registrar)

        response = client.post(
            reverse('billing:approve_enrollment', args=[enrollment.pk]),
            {'start_date': '2024-08-15'}
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data['bills']) == 10
        assert data['bills'][0]['due_date'] == '2024-09-01'
        assert sum(Decimal(bill['amount']) for bill in data['bills']) == Decimal('10000.00')

    def test_approve_enrollment_twice_is_409(self, client, registrar, enrollment, financial_settings):
        client.force_login(registrar)
        url = reverse('billing:approve_enrollment', args=[enrollment.pk])
        client.post(url)

        assert client.post(url).status_code == 409

    def test_reject_enrollment_requires_reason(self, client, registrar, enrollment):
        client.force_login(registrar)
        response = client.post(reverse('billing:reject_enrollment', args=[enrollment.pk]), {'reason': ''})

        assert response.status_code == 400
        assert Enrollment.objects.get(pk=enrollment.pk).status == Enrollment.STATUS_PENDING

    def test_reject_enrollment(self, client, registrar, enrollment, financial_settings):
        client.force_login(registrar)
        response = client.post(
            reverse('billing:reject_enrollment', args=[enrollment.pk]),
            {'reason': 'Incomplete requirements'}
        )

        assert response.status_code == 200
        assert response.json()['status'] == Enrollment.STATUS_REJECTED

    def test_accountant_cannot_approve_enrollment(self, client, accountant, enrollment):
        client.force_login(accountant)
        response = client.post(reverse('billing:approve_enrollment', args=[enrollment.pk]))
        assert response.status_code == 403
