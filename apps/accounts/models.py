# accounts/models.py

from django.contrib.auth.models import User
from django.db import models
from django.core.validators import RegexValidator
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
)


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfile(models.Model):
    """Role and contact preferences for a SchoolPay user"""

    ROLE_STUDENT = 'student'
    ROLE_ACCOUNTANT = 'accountant'
    ROLE_REGISTRAR = 'registrar'
    ROLE_SUPER_ADMIN = 'super_admin'

    USER_ROLES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_ACCOUNTANT, 'Accountant'),
        (ROLE_REGISTRAR, 'Registrar'),
        (ROLE_SUPER_ADMIN, 'Super Administrator'),
    ]

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    role = models.CharField(
        "Role",
        max_length=20,
        choices=USER_ROLES,
        default=ROLE_STUDENT,
        db_index=True
    )
    phone_number = models.CharField(
        "Phone Number",
        max_length=16,
        blank=True,
        validators=[phone_validator]
    )

    # -------------------------------------------------------------------------
    # NOTIFICATION PREFERENCES
    # -------------------------------------------------------------------------

    email_notifications = models.BooleanField("Email Notifications", default=True)

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"

    def __str__(self):
        return f"{self.user.username} - {self.get_role_display()}"


def get_user_role(user):
    """
    Resolve the role of a user.

    Superusers are always super_admin; users without a profile are treated
    as students.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    if user.is_superuser:
        return UserProfile.ROLE_SUPER_ADMIN
    try:
        return user.profile.role
    except UserProfile.DoesNotExist:
        return UserProfile.ROLE_STUDENT
