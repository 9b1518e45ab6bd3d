from django.conf import settings
from django.db import models


class Role(models.TextChoices):
    STUDENT = "student", "Student"
    TEACHER = "teacher", "Teacher"
    ADMIN = "admin", "Admin"


class Profile(models.Model):
    """Portal role of an auth user.

    Every user gets a profile on creation (see ``signals``); the role decides
    which assignment, grading and reporting operations the user may perform.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile"
    )
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)
    bio = models.TextField(blank=True)

    class Meta:
        indexes = [models.Index(fields=["role"], name="accounts_profile_role_idx")]

    def __str__(self):
        return f"{self.user.username} ({self.role})"


def role_for_user(user) -> Role:
    """Resolve the portal role of ``user``; superusers are always admins."""

    if user.is_superuser:
        return Role.ADMIN
    try:
        return Role(user.profile.role)
    except Profile.DoesNotExist:
        return Role.STUDENT


def has_role(user, role: Role) -> bool:
    return role_for_user(user) == role


def display_name(user) -> str:
    return user.get_full_name() or user.username
