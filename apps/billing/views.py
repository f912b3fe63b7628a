# billing/views.py

"""
Billing endpoints (JSON) and exports.

Billing errors map to status codes:
validation 400, not found 404, precondition 409, store failure 503.
"""

from django.http import JsonResponse, HttpResponse
from django.views.decorators.http import require_http_methods
import logging

from accounts.decorators import role_required
from accounts.models import UserProfile, get_user_role
from core.models import FinancialSettings
from utils.audit import log_financial_activity

from .exceptions import (
    BillingError,
    BillingValidationError,
    BillingPreconditionError,
    BillNotFound,
    StoreUnavailable,
)
from .exports import build_statement_pdf, build_billing_workbook
from .forms import (
    PaymentForm,
    RecordPaymentForm,
    PaymentRejectionForm,
    EnrollmentApprovalForm,
    EnrollmentRejectionForm,
    BillReportFilterForm,
)
from .models import Bill, Enrollment
from .services import (
    PaymentApplicationEngine,
    EnrollmentService,
    PaymentReviewService,
    BillingQueries,
)

logger = logging.getLogger(__name__)

STUDENT = UserProfile.ROLE_STUDENT
ACCOUNTANT = UserProfile.ROLE_ACCOUNTANT
REGISTRAR = UserProfile.ROLE_REGISTRAR
SUPER_ADMIN = UserProfile.ROLE_SUPER_ADMIN


# =============================================================================
# HELPERS
# =============================================================================

def serialize_bill(bill, settings=None):
    return {
        'id': str(bill.pk),
        'enrollment_id': str(bill.enrollment_id) if bill.enrollment_id else None,
        'amount': str(bill.amount),
        'due_date': bill.due_date.isoformat(),
        'status': bill.status,
        'status_display': bill.get_status_display(),
        'payment_date': bill.payment_date.isoformat() if bill.payment_date else None,
        'payment_method': bill.payment_method,
        'transaction_reference': bill.transaction_reference,
        'notes': bill.notes,
        'is_overdue': bill.is_overdue,
        'late_fee': str(bill.get_late_fee(settings)),
    }


def billing_error_response(error):
    """JSON response for a billing exception; never exposes internals."""
    if isinstance(error, BillingValidationError):
        status = 400
    elif isinstance(error, BillNotFound):
        status = 404
    elif isinstance(error, BillingPreconditionError):
        status = 409
    else:
        status = 503

    payload = {'success': False, 'error': error.message}
    if isinstance(error, StoreUnavailable) and error.progress is not None:
        payload['progress'] = error.progress.as_dict()

    return JsonResponse(payload, status=status)


def form_error_response(form):
    return JsonResponse({'success': False, 'errors': form.errors}, status=400)


def _get_or_none(model, pk, **filters):
    return model.objects.filter(pk=pk, **filters).first()


def _not_found(message):
    return JsonResponse({'success': False, 'error': message}, status=404)


# =============================================================================
# STUDENT VIEWS
# =============================================================================

@require_http_methods(["GET"])
@role_required(STUDENT, SUPER_ADMIN)
def my_bills(request):
    """Current user's bills with dashboard totals"""
    settings = FinancialSettings.get_instance()
    bills = BillingQueries.student_bills(request.user)
    summary = BillingQueries.student_summary(request.user)
    next_due = summary.pop('next_due_bill')

    return JsonResponse({
        'bills': [serialize_bill(bill, settings) for bill in bills],
        'summary': {
            **{key: str(value) for key, value in summary.items()},
            'next_due_bill': serialize_bill(next_due, settings) if next_due else None,
        },
    })


@require_http_methods(["POST"])
@role_required(STUDENT)
def pay_bill(request, pk):
    """Student pays a bill; any excess is credited to later bills"""
    form = PaymentForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)

    try:
        result = PaymentApplicationEngine.apply_payment(
            pk,
            form.cleaned_data['amount'],
            payment_method=form.cleaned_data['payment_method'],
            student=request.user,
        )
    except BillingError as e:
        logger.info(f"Payment on bill {pk} by user {request.user.pk} refused: {e.__class__.__name__}")
        return billing_error_response(e)

    return JsonResponse({'success': True, 'result': result.as_dict()})


@require_http_methods(["GET"])
@role_required(STUDENT, ACCOUNTANT, SUPER_ADMIN)
def statement_pdf(request):
    """Billing statement; staff may pass ?student=<id>"""
    student = request.user
    student_id = request.GET.get('student')

    if student_id and get_user_role(request.user) in [ACCOUNTANT, SUPER_ADMIN]:
        from django.contrib.auth import get_user_model
        student = get_user_model().objects.filter(pk=student_id).first()
        if student is None:
            return _not_found("Student not found.")

    bills = BillingQueries.student_bills(student)
    pdf = build_statement_pdf(student, bills)

    response = HttpResponse(content_type='application/pdf')
    filename = f"billing_statement_{student.get_username()}.pdf"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    response.write(pdf)
    return response


# =============================================================================
# ACCOUNTANT VIEWS
# =============================================================================

@require_http_methods(["POST"])
@role_required(ACCOUNTANT, SUPER_ADMIN)
def approve_payment(request, pk):
    bill = _get_or_none(Bill, pk)
    if bill is None:
        return _not_found(BillNotFound.default_message)

    try:
        PaymentReviewService.approve_payment(bill, approved_by=request.user)
    except BillingError as e:
        return billing_error_response(e)

    return JsonResponse({'success': True, 'bill': serialize_bill(bill)})


@require_http_methods(["POST"])
@role_required(ACCOUNTANT, SUPER_ADMIN)
def reject_payment(request, pk):
    bill = _get_or_none(Bill, pk)
    if bill is None:
        return _not_found(BillNotFound.default_message)

    form = PaymentRejectionForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)

    try:
        PaymentReviewService.reject_payment(bill, form.cleaned_data['reason'], rejected_by=request.user)
    except BillingError as e:
        return billing_error_response(e)

    return JsonResponse({'success': True, 'bill': serialize_bill(bill)})


@require_http_methods(["POST"])
@role_required(ACCOUNTANT, SUPER_ADMIN)
def record_payment(request, pk):
    """Accountant marks a pending bill paid (cash at the counter)"""
    bill = _get_or_none(Bill, pk)
    if bill is None:
        return _not_found(BillNotFound.default_message)

    form = RecordPaymentForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)

    try:
        result = PaymentReviewService.record_payment(
            bill,
            payment_method=form.cleaned_data['payment_method'],
            recorded_by=request.user,
        )
    except BillingError as e:
        return billing_error_response(e)

    return JsonResponse({'success': True, 'result': result.as_dict()})


@require_http_methods(["GET"])
@role_required(ACCOUNTANT, SUPER_ADMIN)
def bills_report_xlsx(request):
    """Filtered billing report as an Excel workbook"""
    form = BillReportFilterForm(request.GET)
    if not form.is_valid():
        return form_error_response(form)

    bills = BillingQueries.collection_report(
        start_date=form.cleaned_data.get('start_date'),
        end_date=form.cleaned_data.get('end_date'),
        status=form.cleaned_data.get('status') or None,
    )
    wb = build_billing_workbook(bills, title="Billing Report")

    log_financial_activity(
        action='FINANCIAL_DATA_EXPORT',
        user=request.user,
        additional_data={
            'report': 'bills.xlsx',
            'filters': {key: str(value) for key, value in form.cleaned_data.items() if value},
        },
    )

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = 'attachment; filename="billing_report.xlsx"'
    wb.save(response)
    return response


# =============================================================================
# REGISTRAR VIEWS
# =============================================================================

@require_http_methods(["POST"])
@role_required(REGISTRAR, SUPER_ADMIN)
def approve_enrollment(request, pk):
    """Approve an enrollment and generate its billing schedule"""
    enrollment = _get_or_none(Enrollment, pk)
    if enrollment is None:
        return _not_found("Enrollment not found.")

    form = EnrollmentApprovalForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)

    try:
        bills = EnrollmentService.approve_enrollment(
            enrollment,
            approved_by=request.user,
            start_date=form.cleaned_data.get('start_date'),
        )
    except BillingError as e:
        return billing_error_response(e)

    settings = FinancialSettings.get_instance()
    return JsonResponse({
        'success': True,
        'enrollment_id': str(enrollment.pk),
        'bills': [serialize_bill(bill, settings) for bill in bills],
    })


@require_http_methods(["POST"])
@role_required(REGISTRAR, SUPER_ADMIN)
def reject_enrollment(request, pk):
    enrollment = _get_or_none(Enrollment, pk)
    if enrollment is None:
        return _not_found("Enrollment not found.")

    form = EnrollmentRejectionForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)

    try:
        EnrollmentService.reject_enrollment(enrollment, form.cleaned_data['reason'], rejected_by=request.user)
    except BillingError as e:
        return billing_error_response(e)

    return JsonResponse({'success': True, 'enrollment_id': str(enrollment.pk), 'status': enrollment.status})
