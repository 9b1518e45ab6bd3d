from django.conf import settings
from django.db import models


class Course(models.Model):
    slug = models.SlugField(unique=True, db_index=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="taught_courses",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("title",)

    def __str__(self) -> str:
        return self.title

    def enrolled_students(self):
        """Users with a live enrollment in the course."""

        return (
            self.enrollments.filter(status__in=CourseEnrollment.ACTIVE_STATUSES)
            .select_related("student")
            .order_by("student__last_name", "student__first_name", "student__username")
        )

    def is_student_enrolled(self, student_id) -> bool:
        return self.enrollments.filter(
            student_id=student_id, status__in=CourseEnrollment.ACTIVE_STATUSES
        ).exists()


class CourseEnrollment(models.Model):
    class Status(models.TextChoices):
        APPLIED = "applied", "Applied"
        ENROLLED = "enrolled", "Enrolled"
        COMPLETED = "completed", "Completed"
        ARCHIVED = "archived", "Archived"

    # Statuses that grant read/submit access and appear in the gradebook.
    ACTIVE_STATUSES = (Status.ENROLLED, Status.COMPLETED)

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="enrollments",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_enrollments",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ENROLLED,
    )
    enrolled_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("course", "student")
        verbose_name = "Course enrollment"
        verbose_name_plural = "Course enrollments"

    def __str__(self) -> str:
        return f"{self.student} → {self.course} ({self.status})"
