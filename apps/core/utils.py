# core/utils.py

"""
Shared helpers: money display and school-timezone dates.
"""
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# MONEY FORMATTING
# =============================================================================

def format_money(amount, include_symbol=True):
    """
    Format an amount using the school's currency settings.

    Example:
        >>> format_money(Decimal('1500.5'))   # "₱1,500.50"
        >>> format_money(1500, False)          # "1,500.00"
    """
    from core.models import FinancialSettings
    return FinancialSettings.get_instance().format_currency(amount, include_symbol)


# =============================================================================
# SCHOOL TIMEZONE
# =============================================================================

def get_school_timezone():
    from django.utils import timezone
    return timezone.get_default_timezone()


def get_school_current_time():
    """Current datetime in the school's timezone."""
    from django.utils import timezone
    return timezone.localtime(timezone.now(), get_school_timezone())


def get_school_today():
    """
    Today's date in the school's timezone.

    Due dates and overdue checks compare against this, never date.today().
    """
    return get_school_current_time().date()


def add_months(value, months):
    """
    First day of the month `months` calendar months after `value`.

    Example:
        >>> add_months(date(2024, 11, 15), 3)
        datetime.date(2025, 2, 1)
    """
    month_index = value.year * 12 + (value.month - 1) + months
    return value.replace(year=month_index // 12, month=month_index % 12 + 1, day=1)
