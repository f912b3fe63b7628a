# billing/utils.py

"""
Billing Utility Functions

Contains:
- Money conversion between Decimal amounts and integer minor units
- Payment amount parsing and validation
- Transaction reference generation
- Credit note formatting
- Late fee calculation
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import math
import secrets
import logging

from django.utils import timezone

from .exceptions import InvalidAmount

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
MINOR_UNITS_PER_MAJOR = 100


# =============================================================================
# MONEY
# =============================================================================

def to_minor_units(amount):
    """
    Convert a Decimal amount to integer minor units (centavos).

    Raises InvalidAmount if the amount has more precision than the minor unit.

    Example:
        >>> to_minor_units(Decimal('100.05'))
        10005
    """
    amount = Decimal(amount)
    scaled = amount * MINOR_UNITS_PER_MAJOR
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(f"Amount {amount} has more than two decimal places.")
    return int(scaled)


def from_minor_units(minor):
    """
    Example:
        >>> from_minor_units(10005)
        Decimal('100.05')
    """
    return (Decimal(minor) / MINOR_UNITS_PER_MAJOR).quantize(CENT)


def ceil_div(numerator, denominator):
    """Integer ceiling division for non-negative numerators."""
    return -(-numerator // denominator)


def parse_payment_amount(value):
    """
    Validate a tendered amount before any database access.

    Accepts Decimal, int, str or float input. Returns a Decimal with two
    decimal places.

    Raises:
        InvalidAmount: not a number, not finite, not positive, or finer
            than the currency minor unit
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount()

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount()

    if not amount.is_finite():
        raise InvalidAmount()

    if amount <= 0:
        raise InvalidAmount("Payment amount must be greater than zero.")

    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise InvalidAmount("Payment amount cannot have more than two decimal places.")

    return amount.quantize(CENT)


# =============================================================================
# REFERENCES
# =============================================================================

def generate_transaction_reference(prefix='TXN'):
    """
    Unique reference for one payment event.
    Format: TXN-20240915103045123456-4F2A9C
    """
    stamp = timezone.now().strftime('%Y%m%d%H%M%S%f')
    return f"{prefix}-{stamp}-{secrets.token_hex(3).upper()}"


def generate_overpayment_reference(bill_id, prefix='OVP'):
    """
    Reference for a bill settled from overpayment credit.
    Format: OVP-20240915103045123456-1A2B3C4D
    """
    stamp = timezone.now().strftime('%Y%m%d%H%M%S%f')
    return f"{prefix}-{stamp}-{str(bill_id).replace('-', '')[:8].upper()}"


# =============================================================================
# NOTES
# =============================================================================

def format_credit_note(original_amount, credited_amount, format_amount=None):
    """
    Note recorded on a partially credited bill.

    Example:
        >>> format_credit_note(Decimal('1000.00'), Decimal('500.00'))
        'Original amount: ₱1,000.00, Credit applied: ₱500.00'
    """
    if format_amount is None:
        from core.utils import format_money
        format_amount = format_money
    return (
        f"Original amount: {format_amount(original_amount)}, "
        f"Credit applied: {format_amount(credited_amount)}"
    )


def append_note(existing, note):
    return f"{existing}\n{note}" if existing else note


def installment_note(payment_plan, number, count):
    """e.g. 'monthly payment 3 of 10'"""
    return f"{payment_plan} payment {number} of {count}"


# =============================================================================
# LATE FEES
# =============================================================================

def calculate_late_fee(amount, days_overdue, settings=None):
    """
    Late fee for an overdue bill.

    The rate applies once per started 30-day month overdue, after the grace
    period. Rounded to the minor unit.

    Example:
        >>> calculate_late_fee(Decimal('1000.00'), 45)   # 2% x 2 months
        Decimal('40.00')
    """
    if settings is None:
        from core.models import FinancialSettings
        settings = FinancialSettings.get_instance()

    if not settings.late_fee_enabled or days_overdue <= settings.grace_period_days:
        return Decimal('0.00')

    months_overdue = math.ceil(days_overdue / 30)
    rate = Decimal(settings.late_fee_percentage) / 100
    return (Decimal(amount) * rate * months_overdue).quantize(CENT, rounding=ROUND_HALF_UP)
