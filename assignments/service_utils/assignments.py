"""Assignment lifecycle: creation, partial updates and soft deactivation.

Assignments are never hard-deleted.  Deactivation hides an assignment from
listings and closes it for new submissions while existing submissions and
grades stay untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from courses.models import Course

from .. import access
from ..access import Principal
from ..exceptions import Forbidden, NotFound, ValidationError
from ..models import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    POINT_VALUE_MAX,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    Assignment,
    AssignmentAttachment,
    Submission,
)
from .files import resolve_attachments

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "course", "due_date", "point_value")

ATTACHMENTS_PREFETCH = Prefetch(
    "attachments",
    queryset=AssignmentAttachment.objects.select_related("file").order_by("position", "id"),
)


def get_course_or_404(course_id: int) -> Course:
    try:
        return Course.objects.select_related("teacher").get(pk=course_id)
    except Course.DoesNotExist as exc:
        raise NotFound("Course not found") from exc


def get_assignment_or_404(assignment_id: int, *, for_update: bool = False) -> Assignment:
    queryset = Assignment.objects.select_related("course")
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=assignment_id)
    except Assignment.DoesNotExist as exc:
        raise NotFound("Assignment not found") from exc


def accepts_submissions(assignment: Assignment, now: datetime | None = None) -> bool:
    return assignment.accepts_submissions(now)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_due_date(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value).strip())
        if parsed is None:
            raise ValidationError(
                "Due date must be a valid date and time",
                field_errors={"due_date": [f"Could not parse {value!r}."]},
            )
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _parse_point_value(value) -> int:
    if isinstance(value, bool):
        raise ValidationError(
            "Point value must be a whole number",
            field_errors={"point_value": ["Expected a number."]},
        )
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Point value must be a whole number",
            field_errors={"point_value": ["Expected a number."]},
        ) from exc
    if not number.is_integer():
        raise ValidationError(
            "Point value must be a whole number",
            field_errors={"point_value": ["Fractional points are not supported."]},
        )
    points = int(number)
    if points < 0:
        raise ValidationError(
            "Point value cannot be negative", field_errors={"point_value": ["Must be ≥ 0."]}
        )
    if points > POINT_VALUE_MAX:
        raise ValidationError(
            f"Point value cannot exceed {POINT_VALUE_MAX}",
            field_errors={"point_value": [f"Must be ≤ {POINT_VALUE_MAX}."]},
        )
    return points


def _clean_title(value) -> str:
    title = str(value).strip()
    if len(title) < TITLE_MIN_LENGTH:
        raise ValidationError(
            f"Assignment title must be at least {TITLE_MIN_LENGTH} characters long",
            field_errors={"title": ["Too short."]},
        )
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Assignment title cannot exceed {TITLE_MAX_LENGTH} characters",
            field_errors={"title": ["Too long."]},
        )
    return title


def _clean_description(value) -> str:
    description = str(value).strip()
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationError(
            f"Assignment description must be at least {DESCRIPTION_MIN_LENGTH} characters long",
            field_errors={"description": ["Too short."]},
        )
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Assignment description cannot exceed {DESCRIPTION_MAX_LENGTH} characters",
            field_errors={"description": ["Too long."]},
        )
    return description


def _append_attachments(assignment: Assignment, pairs) -> None:
    if not pairs:
        return
    start = assignment.attachments.count()
    AssignmentAttachment.objects.bulk_create(
        [
            AssignmentAttachment(
                assignment=assignment, name=name, file=stored, position=start + offset
            )
            for offset, (name, stored) in enumerate(pairs)
        ]
    )


@transaction.atomic
def create_assignment(
    principal: Principal,
    *,
    course_id,
    title,
    description,
    due_date,
    point_value,
    attachments: Iterable = (),
    allow_late_submissions: bool = False,
    now: datetime | None = None,
) -> Assignment:
    """Create an active assignment in ``course_id``.

    The due date has to be strictly in the future at creation time.
    """

    supplied = {
        "title": title,
        "description": description,
        "course": course_id,
        "due_date": due_date,
        "point_value": point_value,
    }
    missing = [name for name in REQUIRED_FIELDS if _is_blank(supplied[name])]
    if missing:
        raise ValidationError(
            "All fields are required: " + ", ".join(REQUIRED_FIELDS),
            field_errors={name: ["This field is required."] for name in missing},
        )

    course = get_course_or_404(course_id)
    access.ensure_can_manage_course(
        principal,
        course,
        "Access denied. Only the course teacher or an administrator can create assignments",
    )

    now = now or timezone.now()
    title = _clean_title(title)
    description = _clean_description(description)
    points = _parse_point_value(point_value)
    due = _parse_due_date(due_date)
    if due <= now:
        raise ValidationError(
            "Due date must be in the future",
            field_errors={"due_date": [f"{due.isoformat()} is not after {now.isoformat()}."]},
        )
    pairs = resolve_attachments(principal, attachments or ())

    assignment = Assignment.objects.create(
        course=course,
        title=title,
        description=description,
        due_date=due,
        point_value=points,
        allow_late_submissions=bool(allow_late_submissions),
    )
    _append_attachments(assignment, pairs)

    logger.info(
        "Assignment created",
        extra={
            "assignment_id": assignment.id,
            "course_id": course.id,
            "user_id": principal.user_id,
        },
    )
    return assignment


@transaction.atomic
def update_assignment(
    principal: Principal,
    assignment_id: int,
    *,
    title=None,
    description=None,
    due_date=None,
    point_value=None,
    allow_late_submissions: Optional[bool] = None,
    attachments: Optional[Iterable] = None,
) -> Assignment:
    """Apply a partial patch; only supplied (non-``None``) fields change.

    An edited due date is deliberately not checked against the current time,
    so it can be moved into the past for corrections.  New attachments are
    appended after the existing ones.
    """

    assignment = get_assignment_or_404(assignment_id, for_update=True)
    access.ensure_can_manage_course(principal, assignment.course)

    changed: list[str] = []
    if not _is_blank(title):
        assignment.title = _clean_title(title)
        changed.append("title")
    if not _is_blank(description):
        assignment.description = _clean_description(description)
        changed.append("description")
    if not _is_blank(due_date):
        assignment.due_date = _parse_due_date(due_date)
        changed.append("due_date")
    if not _is_blank(point_value):
        assignment.point_value = _parse_point_value(point_value)
        changed.append("point_value")
    if allow_late_submissions is not None:
        assignment.allow_late_submissions = bool(allow_late_submissions)
        changed.append("allow_late_submissions")

    if changed:
        assignment.save(update_fields=[*changed, "updated_at"])
    if attachments:
        _append_attachments(assignment, resolve_attachments(principal, attachments))

    logger.info(
        "Assignment updated",
        extra={
            "assignment_id": assignment.id,
            "fields": changed,
            "user_id": principal.user_id,
        },
    )
    return assignment


@transaction.atomic
def deactivate_assignment(principal: Principal, assignment_id: int) -> Assignment:
    assignment = get_assignment_or_404(assignment_id, for_update=True)
    access.ensure_can_manage_course(principal, assignment.course)

    if assignment.status != Assignment.Status.DEACTIVATED:
        assignment.status = Assignment.Status.DEACTIVATED
        assignment.save(update_fields=["status", "updated_at"])
        logger.info(
            "Assignment deactivated",
            extra={"assignment_id": assignment.id, "user_id": principal.user_id},
        )
    return assignment


def get_assignment(principal: Principal, assignment_id: int) -> Assignment:
    try:
        assignment = (
            Assignment.objects.select_related("course")
            .prefetch_related(ATTACHMENTS_PREFETCH)
            .get(pk=assignment_id)
        )
    except Assignment.DoesNotExist as exc:
        raise NotFound("Assignment not found") from exc
    access.ensure_can_view_assignment(principal, assignment)
    return assignment


@dataclass
class CourseAssignmentEntry:
    assignment: Assignment
    submission: Submission | None = None


def list_course_assignments(principal: Principal, course_id: int) -> List[CourseAssignmentEntry]:
    """Active assignments of a course ordered by due date.

    Students additionally get their own submission (or ``None``) per entry.
    """

    course = get_course_or_404(course_id)
    if not (
        access.can_manage_course(principal, course) or access.is_enrolled(principal, course)
    ):
        raise Forbidden(
            "Access denied. You are not authorized to view assignments for this course"
        )

    assignments = list(
        course.assignments.filter(status=Assignment.Status.ACTIVE)
        .prefetch_related(ATTACHMENTS_PREFETCH)
        .order_by("due_date", "id")
    )

    own_submissions: dict[int, Submission] = {}
    if principal.is_student:
        own_submissions = {
            submission.assignment_id: submission
            for submission in Submission.objects.filter(
                student_id=principal.user_id, assignment__in=assignments
            )
        }

    return [
        CourseAssignmentEntry(assignment=assignment, submission=own_submissions.get(assignment.id))
        for assignment in assignments
    ]
