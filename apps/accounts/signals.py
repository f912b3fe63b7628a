# accounts/signals.py

from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

from .models import UserProfile

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """Every new user gets a profile, students by default."""
    if kwargs.get('raw', False):
        return

    if created:
        role = UserProfile.ROLE_SUPER_ADMIN if instance.is_superuser else UserProfile.ROLE_STUDENT
        UserProfile.objects.get_or_create(user=instance, defaults={'role': role})
        logger.debug(f"Created {role} profile for user {instance.username}")
