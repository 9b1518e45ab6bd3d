"""Models for assignments, student submissions and their attachments."""

from django.conf import settings
from django.core.validators import (
    MaxLengthValidator,
    MaxValueValidator,
    MinLengthValidator,
    MinValueValidator,
)
from django.db import models
from django.utils import timezone

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 2000
POINT_VALUE_MAX = 1000
SUBMISSION_TEXT_MAX_LENGTH = 5000
FEEDBACK_MAX_LENGTH = 2000


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StoredFile(models.Model):
    """Metadata of an uploaded file referenced by assignments or submissions."""

    original_name = models.CharField(max_length=255)
    file = models.FileField(upload_to="assignments/files/%Y/%m/")
    mimetype = models.CharField(max_length=255)
    size = models.PositiveBigIntegerField()
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="uploaded_files",
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-uploaded_at",)
        indexes = [
            models.Index(fields=["uploaded_by", "uploaded_at"], name="assign_file_uploader_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - representation only
        return self.original_name


class Assignment(TimeStampedModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        DEACTIVATED = "deactivated", "Deactivated"

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    title = models.CharField(
        max_length=TITLE_MAX_LENGTH,
        validators=[MinLengthValidator(TITLE_MIN_LENGTH)],
    )
    description = models.TextField(
        validators=[
            MinLengthValidator(DESCRIPTION_MIN_LENGTH),
            MaxLengthValidator(DESCRIPTION_MAX_LENGTH),
        ],
    )
    due_date = models.DateTimeField()
    point_value = models.PositiveIntegerField(
        validators=[MinValueValidator(0), MaxValueValidator(POINT_VALUE_MAX)],
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    allow_late_submissions = models.BooleanField(
        default=False,
        help_text="Keep accepting work after the due date; such submissions are flagged late.",
    )

    class Meta:
        ordering = ("due_date", "id")
        indexes = [
            models.Index(fields=["course", "due_date"], name="assign_course_due_idx"),
            models.Index(fields=["status"], name="assign_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.course}: {self.title}"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    def is_overdue(self, now=None) -> bool:
        now = now or timezone.now()
        return now > self.due_date

    def accepts_submissions(self, now=None) -> bool:
        """Single gate consulted before new work is accepted."""

        if not self.is_active:
            return False
        now = now or timezone.now()
        return now <= self.due_date or self.allow_late_submissions


class AssignmentAttachment(models.Model):
    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name="attachments",
    )
    name = models.CharField(max_length=255)
    file = models.ForeignKey(
        StoredFile,
        on_delete=models.PROTECT,
        related_name="assignment_attachments",
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("assignment", "position", "id")

    def __str__(self) -> str:  # pragma: no cover - representation only
        return f"{self.assignment} → {self.name}"


class Submission(TimeStampedModel):
    """One student's work against one assignment.

    There is exactly one row per (assignment, student); resubmitting overwrites
    it in place and clears any previous grade.
    """

    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name="submissions",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="submissions",
    )
    body = models.TextField(
        blank=True,
        validators=[MaxLengthValidator(SUBMISSION_TEXT_MAX_LENGTH)],
    )
    submitted_at = models.DateTimeField(default=timezone.now)
    is_late = models.BooleanField(default=False)
    grade = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    feedback = models.TextField(
        blank=True,
        validators=[MaxLengthValidator(FEEDBACK_MAX_LENGTH)],
    )
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="graded_submissions",
    )

    class Meta:
        ordering = ("-submitted_at", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["assignment", "student"],
                name="unique_submission_per_student",
            ),
        ]
        indexes = [
            models.Index(fields=["student", "submitted_at"], name="assign_sub_student_idx"),
            models.Index(fields=["assignment", "submitted_at"], name="assign_sub_assignment_idx"),
            models.Index(fields=["graded_by", "graded_at"], name="assign_sub_grader_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.student} - {self.assignment}"

    @property
    def is_graded(self) -> bool:
        return self.grade is not None

    def clear_grade(self) -> None:
        self.grade = None
        self.feedback = ""
        self.graded_at = None
        self.graded_by = None


class SubmissionAttachment(models.Model):
    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        related_name="attachments",
    )
    name = models.CharField(max_length=255)
    file = models.ForeignKey(
        StoredFile,
        on_delete=models.PROTECT,
        related_name="submission_attachments",
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("submission", "position", "id")

    def __str__(self) -> str:  # pragma: no cover - representation only
        return f"{self.submission} → {self.name}"
