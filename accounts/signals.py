from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth import get_user_model
import logging

from .models import UserProfile, IdVerification

User = get_user_model()

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    if created:
        UserProfile.objects.get_or_create(user=instance)


@receiver(post_save, sender=User)
def create_id_verification(sender, instance, created, **kwargs):
    """New accounts start without a verification status."""
    if created:
        IdVerification.objects.get_or_create(user=instance)
        logger.info(f"[AUDIT] Created ID verification record for user {instance.pk}")
