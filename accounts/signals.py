from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Profile, Role


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created, **kwargs):
    """Every new user starts with a profile; superusers start as admins."""

    if not created:
        return
    role = Role.ADMIN if instance.is_superuser else Role.STUDENT
    Profile.objects.get_or_create(user=instance, defaults={"role": role})
