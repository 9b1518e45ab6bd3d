"""Grading of single submissions and best-effort batches."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Mapping, Union

from django.db import DatabaseError, transaction
from django.utils import timezone

from .. import access
from ..access import Principal
from ..exceptions import (
    InvalidGradeFormat,
    InvalidGradeRange,
    PortalError,
    ValidationError,
)
from ..grades import as_decimal, derive, round2
from ..models import FEEDBACK_MAX_LENGTH, Assignment, Submission
from .assignments import get_assignment_or_404
from .submissions import get_submission_or_404

logger = logging.getLogger(__name__)


def parse_grade(value) -> Decimal:
    """Coerce a raw grade into a finite ``Decimal``."""

    if value is None or isinstance(value, bool):
        raise InvalidGradeFormat()
    if isinstance(value, str):
        value = value.strip()
    try:
        grade = as_decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidGradeFormat() from exc
    if not grade.is_finite():
        raise InvalidGradeFormat()
    return grade


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_feedback(feedback) -> str:
    if feedback is None:
        return ""
    text = str(feedback).strip()
    if len(text) > FEEDBACK_MAX_LENGTH:
        raise ValidationError(
            f"Feedback cannot exceed {FEEDBACK_MAX_LENGTH} characters",
            field_errors={"feedback": [f"{len(text)} characters given."]},
        )
    return text


@dataclass
class GradeOutcome:
    submission: Submission
    grade: Decimal
    percentage: Decimal | None
    letter_grade: str | None
    is_regrade: bool
    previous_grade: Decimal | None
    was_graded: bool = False

    @property
    def message(self) -> str:
        if self.was_graded:
            return "Submission regraded successfully"
        return "Submission graded successfully"


def _apply_grade(
    principal: Principal,
    submission: Submission,
    assignment: Assignment,
    raw_grade,
    feedback,
    now: datetime,
) -> GradeOutcome:
    grade = parse_grade(raw_grade)
    if grade < 0 or grade > assignment.point_value:
        raise InvalidGradeRange(assignment.point_value)
    grade = round2(grade)
    feedback = _clean_feedback(feedback)

    was_graded = submission.is_graded
    previous_grade = submission.grade
    is_regrade = was_graded and previous_grade != grade

    submission.grade = grade
    submission.feedback = feedback
    submission.graded_at = now
    submission.graded_by_id = principal.user_id
    submission.save(update_fields=["grade", "feedback", "graded_at", "graded_by", "updated_at"])

    derivation = derive(grade, assignment.point_value)
    logger.info(
        "Submission regraded" if was_graded else "Submission graded",
        extra={
            "submission_id": submission.id,
            "assignment_id": assignment.id,
            "grader_id": principal.user_id,
            "is_regrade": is_regrade,
        },
    )
    return GradeOutcome(
        submission=submission,
        grade=grade,
        percentage=derivation.percentage,
        letter_grade=derivation.letter_grade,
        is_regrade=is_regrade,
        previous_grade=previous_grade if is_regrade else None,
        was_graded=was_graded,
    )


@transaction.atomic
def grade_submission(
    principal: Principal,
    submission_id: int,
    grade,
    feedback: str | None = None,
    now: datetime | None = None,
) -> GradeOutcome:
    if _is_blank(grade):
        raise ValidationError("Grade is required", field_errors={"grade": ["This field is required."]})

    submission = get_submission_or_404(submission_id, for_update=True)
    assignment = submission.assignment
    access.ensure_can_manage_course(
        principal,
        assignment.course,
        "Access denied. Only teachers and admins can grade submissions",
    )
    return _apply_grade(principal, submission, assignment, grade, feedback, now or timezone.now())


@dataclass(frozen=True)
class GradeSuccess:
    submission_id: int
    outcome: GradeOutcome

    ok = True


@dataclass(frozen=True)
class GradeFailure:
    submission_id: object
    kind: str
    detail: str

    ok = False


GradeResult = Union[GradeSuccess, GradeFailure]


@dataclass
class BulkGradeResult:
    successful: List[GradeSuccess] = field(default_factory=list)
    failed: List[GradeFailure] = field(default_factory=list)
    total_processed: int = 0

    def add(self, result: GradeResult) -> None:
        if result.ok:
            self.successful.append(result)
        else:
            self.failed.append(result)

    @property
    def message(self) -> str:
        return (
            f"Bulk grading completed. {len(self.successful)} successful, "
            f"{len(self.failed)} failed."
        )


def _entry_id(entry: Mapping) -> int | None:
    """Primary key named by a batch entry; only ints and digit strings count."""

    raw = entry.get("submission_id")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        raw = raw.strip()
        if raw.isascii() and raw.isdigit():
            return int(raw)
    return None


def _grade_entry(
    principal: Principal, assignment: Assignment, entry, now: datetime
) -> GradeResult:
    if not isinstance(entry, Mapping):
        return GradeFailure(None, "missing_fields", "Missing submission_id or grade")

    submission_id = _entry_id(entry)
    grade = entry.get("grade")
    if submission_id is None or _is_blank(grade):
        reported = entry.get("submission_id")
        return GradeFailure(
            "unknown" if reported is None else reported,
            "missing_fields",
            "Missing submission_id or grade",
        )

    try:
        with transaction.atomic():
            try:
                submission = (
                    Submission.objects.select_for_update()
                    .select_related("student")
                    .get(pk=submission_id)
                )
            except Submission.DoesNotExist:
                return GradeFailure(submission_id, "not_found", "Submission not found")
            if submission.assignment_id != assignment.id:
                return GradeFailure(
                    submission_id,
                    "wrong_assignment",
                    "Submission does not belong to this assignment",
                )
            outcome = _apply_grade(
                principal, submission, assignment, grade, entry.get("feedback"), now
            )
    except PortalError as exc:
        logger.warning(
            "Bulk grade entry rejected",
            extra={"submission_id": submission_id, "kind": exc.kind},
        )
        return GradeFailure(submission_id, exc.kind, exc.message)
    except DatabaseError:
        logger.exception(
            "Could not persist grade",
            extra={"submission_id": submission_id, "assignment_id": assignment.id},
        )
        return GradeFailure(submission_id, "persistence_error", "Grade could not be saved")
    return GradeSuccess(submission_id=submission.id, outcome=outcome)


def bulk_grade(
    principal: Principal,
    assignment_id: int,
    entries: Iterable[Mapping] | None,
    now: datetime | None = None,
) -> BulkGradeResult:
    """Grade every entry independently and partition the results.

    Authorization happens once for the whole batch; per-entry problems end up
    in ``failed`` instead of being raised, and earlier successes are kept.
    """

    entries = list(entries or ())
    if not entries:
        raise ValidationError(
            "Grades array is required and must not be empty",
            field_errors={"grades": ["Provide at least one entry."]},
        )

    assignment = get_assignment_or_404(assignment_id)
    access.ensure_can_manage_course(
        principal,
        assignment.course,
        "Access denied. Only teachers and admins can grade submissions",
    )

    now = now or timezone.now()
    result = BulkGradeResult(total_processed=len(entries))
    for entry in entries:
        result.add(_grade_entry(principal, assignment, entry, now))

    logger.info(
        "Bulk grading completed",
        extra={
            "assignment_id": assignment.id,
            "grader_id": principal.user_id,
            "successful": len(result.successful),
            "failed": len(result.failed),
        },
    )
    return result

