# core/models.py

"""
Core configuration models.

FinancialSettings is a singleton holding the school's billing policy:
currency display, payment approval workflow, reference prefixes and
late-fee rules.
"""

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from decimal import Decimal, InvalidOperation
import logging

import pycountry

from utils.models import BaseModel

logger = logging.getLogger(__name__)


class FinancialSettings(BaseModel):
    """
    Financial settings for the school.
    Singleton pattern - use FinancialSettings.get_instance().
    """

    # -------------------------------------------------------------------------
    # CURRENCY CONFIGURATION
    # -------------------------------------------------------------------------

    school_currency = models.CharField(
        "School Currency",
        max_length=3,
        default='PHP',
        help_text='Primary currency for this school (ISO 4217 code)'
    )

    currency_symbol = models.CharField(
        "Currency Symbol",
        max_length=5,
        default='₱',
        blank=True,
        help_text="Symbol shown before amounts (falls back to the currency code)"
    )

    # -------------------------------------------------------------------------
    # PAYMENT WORKFLOW
    # -------------------------------------------------------------------------

    requires_payment_approval = models.BooleanField(
        "Require Payment Approval",
        default=True,
        help_text="Student payments wait for accountant approval before being marked paid"
    )

    strict_payment_plans = models.BooleanField(
        "Strict Payment Plans",
        default=False,
        help_text="Reject unknown payment plans instead of billing them as a single full payment"
    )

    send_payment_notifications = models.BooleanField(
        "Send Payment Notifications",
        default=True,
        help_text="Notify students when schedules are generated and payments change state"
    )

    # -------------------------------------------------------------------------
    # NUMBERING CONFIGURATION
    # -------------------------------------------------------------------------

    transaction_prefix = models.CharField(
        "Transaction Reference Prefix",
        max_length=10,
        default="TXN",
        help_text="Prefix for payment transaction references"
    )

    overpayment_prefix = models.CharField(
        "Overpayment Reference Prefix",
        max_length=10,
        default="OVP",
        help_text="Prefix for references of bills settled from overpayment credit"
    )

    # -------------------------------------------------------------------------
    # LATE FEES
    # -------------------------------------------------------------------------

    late_fee_enabled = models.BooleanField(
        "Enable Late Fees",
        default=True,
        help_text="Show late fees on overdue bills"
    )

    late_fee_percentage = models.DecimalField(
        "Late Fee Percentage",
        max_digits=5,
        decimal_places=2,
        default=Decimal('2.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Percentage of the bill amount charged per started month overdue"
    )

    grace_period_days = models.PositiveIntegerField(
        "Grace Period (Days)",
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(90)],
        help_text="Days after due date before late fees apply"
    )

    class Meta:
        verbose_name = "Financial Settings"
        verbose_name_plural = "Financial Settings"

    def __str__(self):
        return f"Financial Settings ({self.school_currency})"

    @classmethod
    def get_instance(cls):
        """Get or create the singleton instance of FinancialSettings."""
        instance = cls.objects.order_by('created_at').first()
        if instance is None:
            instance = cls.objects.create()
            logger.info("Created default FinancialSettings")
        return instance

    def format_currency(self, amount, include_symbol=True):
        """Format amount with thousand separators and two decimal places."""
        try:
            formatted = f"{Decimal(str(amount or 0)):,.2f}"
        except (ValueError, TypeError, InvalidOperation) as e:
            logger.warning(f"Error formatting currency: {e}")
            formatted = "0.00"

        if not include_symbol:
            return formatted
        if self.currency_symbol:
            return f"{self.currency_symbol}{formatted}"
        return f"{self.school_currency} {formatted}"

    def clean(self):
        super().clean()
        errors = {}

        if self.school_currency:
            if not pycountry.currencies.get(alpha_3=self.school_currency.upper()):
                errors['school_currency'] = f"'{self.school_currency}' is not a valid ISO 4217 currency code"
            else:
                self.school_currency = self.school_currency.upper()

        if self.transaction_prefix and self.transaction_prefix == self.overpayment_prefix:
            errors['overpayment_prefix'] = "Overpayment prefix must differ from the transaction prefix"

        if errors:
            raise ValidationError(errors)
