# billing/exceptions.py

"""
Billing error taxonomy.

- Validation errors: bad input, rejected before the database is touched
- Precondition errors: the data changed under us (a legitimate race)
- StoreUnavailable: database failure, optionally with partial progress
"""

from django.core.exceptions import ValidationError


class BillingError(Exception):
    """Base class; ``message`` is safe to show to the user."""

    default_message = "The billing operation could not be completed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# VALIDATION
# =============================================================================

class BillingValidationError(BillingError, ValidationError):
    """Rejected input. Also a Django ValidationError so forms can surface it."""

    def __str__(self):
        return self.message


class InvalidAmount(BillingValidationError):
    default_message = "Please enter a valid payment amount."


class InsufficientAmount(BillingValidationError):
    default_message = "Payment amount must be at least the bill amount."


class InvalidTuitionFee(BillingValidationError):
    default_message = "Tuition fee must be a non-negative amount."


class InvalidPaymentPlan(BillingValidationError):
    default_message = "Payment plan must be monthly, quarterly or full."


# =============================================================================
# PRECONDITION
# =============================================================================

class BillingPreconditionError(BillingError):
    default_message = "This record was changed by someone else. Please refresh and try again."


class BillNotPending(BillingPreconditionError):
    default_message = "This bill is no longer pending. It may already have been paid."


class BillNotAwaitingApproval(BillingPreconditionError):
    default_message = "This payment is not awaiting approval."


class EnrollmentNotApproved(BillingPreconditionError):
    default_message = "Billing can only be generated for an approved enrollment."


class EnrollmentNotPending(BillingPreconditionError):
    default_message = "This enrollment has already been reviewed."


class ScheduleAlreadyGenerated(BillingPreconditionError):
    default_message = "A billing schedule already exists for this enrollment."


# =============================================================================
# LOOKUP / STORE
# =============================================================================

class BillNotFound(BillingError):
    default_message = "Bill not found."


class StoreUnavailable(BillingError):
    """
    The database failed a read or write.

    ``progress`` holds the PaymentApplicationResult accumulated before the
    failure (None when nothing was committed).
    """

    default_message = "The billing service is temporarily unavailable. Please try again."

    def __init__(self, message=None, progress=None):
        super().__init__(message)
        self.progress = progress
