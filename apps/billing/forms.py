# billing/forms.py

"""
Billing Forms

Input validation for the billing endpoints:
- Payment submission and accountant recording
- Payment and enrollment review
- Report filters
"""

from django import forms
from decimal import Decimal

from .models import Bill


class PaymentForm(forms.Form):
    """Student payment against one bill"""

    amount = forms.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal('0.01'),
        error_messages={
            'required': "Please enter a payment amount.",
            'invalid': "Please enter a valid payment amount.",
        }
    )
    payment_method = forms.CharField(max_length=100, required=False)

    def clean_payment_method(self):
        return self.cleaned_data.get('payment_method', '').strip() or "Manual Payment"


class RecordPaymentForm(forms.Form):
    """Accountant records an over-the-counter payment"""

    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('bank_transfer', 'Bank Transfer'),
        ('check', 'Check'),
        ('gcash', 'GCash'),
        ('card', 'Card'),
    ]

    payment_method = forms.ChoiceField(choices=PAYMENT_METHOD_CHOICES, required=False)

    def clean_payment_method(self):
        return self.cleaned_data.get('payment_method') or 'cash'


class PaymentRejectionForm(forms.Form):
    reason = forms.CharField(max_length=500, required=False, widget=forms.Textarea)


class EnrollmentApprovalForm(forms.Form):
    start_date = forms.DateField(
        required=False,
        help_text="Schedule reference date; defaults to today"
    )


class EnrollmentRejectionForm(forms.Form):
    reason = forms.CharField(
        max_length=1000,
        widget=forms.Textarea,
        error_messages={'required': "A rejection reason is required."}
    )

    def clean_reason(self):
        reason = self.cleaned_data['reason'].strip()
        if not reason:
            raise forms.ValidationError("A rejection reason is required.")
        return reason


class BillReportFilterForm(forms.Form):
    """Filters for the accountant billing report"""

    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)
    status = forms.ChoiceField(
        choices=[('', 'All Statuses')] + Bill.STATUS_CHOICES,
        required=False
    )

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get('start_date')
        end_date = cleaned_data.get('end_date')

        if start_date and end_date and start_date > end_date:
            raise forms.ValidationError("Start date must be before end date.")

        return cleaned_data
