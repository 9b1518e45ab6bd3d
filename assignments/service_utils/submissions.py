"""Submission lifecycle: first submission, resubmission and read access.

A (assignment, student) pair has at most one submission.  Submitting again
overwrites the row in place: body and attachments are replaced when supplied,
the timestamp and late flag are recomputed, and any grade is voided so that a
regrade is always an explicit action.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Prefetch
from django.utils import timezone

from .. import access
from ..access import Principal
from ..exceptions import NotFound, SubmissionClosed, ValidationError
from ..grades import derive
from ..models import SUBMISSION_TEXT_MAX_LENGTH, Submission, SubmissionAttachment
from .assignments import get_assignment_or_404
from .files import resolve_attachments

logger = logging.getLogger(__name__)

SUBMISSION_ATTACHMENTS_PREFETCH = Prefetch(
    "attachments",
    queryset=SubmissionAttachment.objects.select_related("file").order_by("position", "id"),
)


@dataclass
class SubmissionOutcome:
    submission: Submission
    created: bool

    @property
    def is_resubmission(self) -> bool:
        return not self.created

    @property
    def message(self) -> str:
        if self.created:
            return "Assignment submitted successfully"
        return "Assignment resubmitted successfully"


def _clean_body(body) -> Optional[str]:
    if body is None:
        return None
    text = str(body).strip()
    if not text:
        return None
    if len(text) > SUBMISSION_TEXT_MAX_LENGTH:
        raise ValidationError(
            f"Submission text cannot exceed {SUBMISSION_TEXT_MAX_LENGTH} characters",
            field_errors={"body": [f"{len(text)} characters given."]},
        )
    return text


def _replace_attachments(submission: Submission, pairs) -> None:
    submission.attachments.all().delete()
    SubmissionAttachment.objects.bulk_create(
        [
            SubmissionAttachment(submission=submission, name=name, file=stored, position=index)
            for index, (name, stored) in enumerate(pairs)
        ]
    )


def _overwrite(submission: Submission, *, body, pairs, now: datetime, is_late: bool) -> None:
    if body is not None:
        submission.body = body
    if pairs:
        _replace_attachments(submission, pairs)
    submission.submitted_at = now
    submission.is_late = is_late
    submission.clear_grade()
    submission.save(
        update_fields=[
            "body",
            "submitted_at",
            "is_late",
            "grade",
            "feedback",
            "graded_at",
            "graded_by",
            "updated_at",
        ]
    )


def submit(
    principal: Principal,
    assignment_id: int,
    student_id: int,
    *,
    body: str | None = None,
    attachments: Optional[Iterable] = None,
    now: datetime | None = None,
) -> SubmissionOutcome:
    """Create or overwrite the submission of ``student_id`` for an assignment.

    Lateness is fixed at write time from the due date in force at ``now``.
    """

    assignment = get_assignment_or_404(assignment_id)
    access.ensure_can_submit(principal, assignment, student_id)

    now = now or timezone.now()
    if not assignment.accepts_submissions(now):
        raise SubmissionClosed()
    is_late = now > assignment.due_date

    body = _clean_body(body)
    pairs = resolve_attachments(principal, attachments) if attachments else []

    with transaction.atomic():
        submission = (
            Submission.objects.select_for_update()
            .filter(assignment=assignment, student_id=student_id)
            .first()
        )
        created = False
        if submission is None:
            if body is None and not pairs:
                raise ValidationError(
                    "Submission must include text or at least one attachment",
                    field_errors={"body": ["Provide text or attach a file."]},
                )
            try:
                with transaction.atomic():
                    submission = Submission.objects.create(
                        assignment=assignment,
                        student_id=student_id,
                        body=body or "",
                        submitted_at=now,
                        is_late=is_late,
                    )
                created = True
            except IntegrityError:
                # A concurrent first submission won the insert; last writer wins.
                submission = Submission.objects.select_for_update().get(
                    assignment=assignment, student_id=student_id
                )

        if created:
            _replace_attachments(submission, pairs)
        else:
            _overwrite(submission, body=body, pairs=pairs, now=now, is_late=is_late)

    logger.info(
        "Submission created" if created else "Submission overwritten",
        extra={
            "submission_id": submission.id,
            "assignment_id": assignment.id,
            "student_id": student_id,
            "is_late": is_late,
        },
    )
    return SubmissionOutcome(submission=submission, created=created)


def list_assignment_submissions(principal: Principal, assignment_id: int) -> List[Submission]:
    assignment = get_assignment_or_404(assignment_id)
    access.ensure_can_manage_course(principal, assignment.course)
    return list(
        assignment.submissions.select_related("student", "graded_by")
        .prefetch_related(SUBMISSION_ATTACHMENTS_PREFETCH)
        .order_by("-submitted_at", "id")
    )


def days_late(submission: Submission) -> int:
    if not submission.is_late:
        return 0
    delta: timedelta = submission.submitted_at - submission.assignment.due_date
    return max(0, math.ceil(delta.total_seconds() / 86400))


@dataclass
class SubmissionDetails:
    submission: Submission
    percentage: Decimal | None
    letter_grade: str | None
    days_late: int


def get_submission_or_404(submission_id: int, *, for_update: bool = False) -> Submission:
    queryset = Submission.objects.select_related(
        "assignment__course", "student", "graded_by"
    )
    if for_update:
        queryset = queryset.select_for_update(of=("self",))
    try:
        return queryset.get(pk=submission_id)
    except Submission.DoesNotExist as exc:
        raise NotFound("Submission not found") from exc


def get_submission_details(principal: Principal, submission_id: int) -> SubmissionDetails:
    submission = get_submission_or_404(submission_id)
    access.ensure_can_view_submission(principal, submission)
    derivation = derive(submission.grade, submission.assignment.point_value)
    return SubmissionDetails(
        submission=submission,
        percentage=derivation.percentage,
        letter_grade=derivation.letter_grade,
        days_late=days_late(submission),
    )
