"""Read-only grade reports: a student's grade history and a course gradebook.

Both reports are plain dicts ready to be rendered by the API layer.  Money-like
arithmetic (points and percentages) stays in ``Decimal``.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from django.contrib.auth import get_user_model

from accounts.models import Role, display_name, role_for_user

from .. import access
from ..access import Principal
from ..exceptions import NotFound
from ..grades import derive, grade_percentage, percent_of, round2
from ..models import Assignment, Submission
from .assignments import get_course_or_404

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _user_summary(user) -> dict:
    return {"id": user.pk, "name": display_name(user), "email": user.email}


def _get_student_or_404(student_id):
    User = get_user_model()
    student = User.objects.select_related("profile").filter(pk=student_id).first()
    if student is None or role_for_user(student) != Role.STUDENT:
        raise NotFound("Student not found")
    return student


def _points_stats(earned: Decimal, possible: int, count: int) -> dict:
    return {
        "total_assignments": count,
        "total_points_earned": round2(earned),
        "total_points_possible": possible,
        "average_percentage": percent_of(earned, possible),
    }


def student_grades(principal: Principal, student_id) -> dict:
    """Fold every graded submission of a student into overall and per-course stats.

    Ungraded submissions are left out completely.  Assignments that have since
    been deactivated remain part of the history and carry ``is_active=False``.
    """

    student = _get_student_or_404(student_id)
    access.ensure_can_view_student_grades(principal, student)

    submissions = (
        Submission.objects.filter(student=student, grade__isnull=False)
        .select_related("assignment__course", "graded_by")
        .order_by("-graded_at", "-id")
    )

    earned = ZERO
    possible = 0
    count = 0
    courses: dict[int, dict] = {}
    for submission in submissions:
        assignment = submission.assignment
        course = assignment.course
        derivation = derive(submission.grade, assignment.point_value)

        entry = courses.get(course.pk)
        if entry is None:
            entry = courses[course.pk] = {
                "course_id": course.pk,
                "course_title": course.title,
                "assignments": [],
                "_earned": ZERO,
                "_possible": 0,
            }
        entry["assignments"].append(
            {
                "assignment_id": assignment.pk,
                "assignment_title": assignment.title,
                "is_active": assignment.is_active,
                "grade": submission.grade,
                "point_value": assignment.point_value,
                "percentage": derivation.percentage,
                "letter_grade": derivation.letter_grade,
                "graded_at": submission.graded_at,
                "graded_by": display_name(submission.graded_by) if submission.graded_by else None,
                "feedback": submission.feedback,
                "is_late": submission.is_late,
            }
        )
        entry["_earned"] += submission.grade
        entry["_possible"] += assignment.point_value

        earned += submission.grade
        possible += assignment.point_value
        count += 1

    course_grades = []
    for entry in courses.values():
        course_earned = entry.pop("_earned")
        course_possible = entry.pop("_possible")
        entry["course_stats"] = _points_stats(
            course_earned, course_possible, len(entry["assignments"])
        )
        course_grades.append(entry)

    overall = _points_stats(earned, possible, count)
    overall["average_grade"] = round2(earned / count) if count else ZERO

    logger.debug(
        "Student grade report built",
        extra={"student_id": student.pk, "user_id": principal.user_id, "graded": count},
    )
    return {
        "student": _user_summary(student),
        "overall_stats": overall,
        "course_grades": course_grades,
    }


def _gradebook_cell(assignment: Assignment, submission: Submission | None) -> dict:
    if submission is None:
        return {
            "assignment_id": assignment.pk,
            "submitted": False,
            "submitted_at": None,
            "is_late": False,
            "grade": None,
            "feedback": None,
            "graded_at": None,
            "percentage": None,
        }
    return {
        "assignment_id": assignment.pk,
        "submitted": True,
        "submitted_at": submission.submitted_at,
        "is_late": submission.is_late,
        "grade": submission.grade,
        "feedback": submission.feedback if submission.is_graded else None,
        "graded_at": submission.graded_at,
        "percentage": grade_percentage(submission.grade, assignment.point_value),
    }


def course_gradebook(principal: Principal, course_id) -> dict:
    """Matrix of enrolled students by active assignments plus aggregates."""

    course = get_course_or_404(course_id)
    access.ensure_can_manage_course(principal, course, "Access denied")

    assignments = list(
        course.assignments.filter(status=Assignment.Status.ACTIVE).order_by("due_date", "id")
    )
    students = [enrollment.student for enrollment in course.enrolled_students()]
    points_possible = sum(assignment.point_value for assignment in assignments)

    submissions = {
        (submission.student_id, submission.assignment_id): submission
        for submission in Submission.objects.filter(
            assignment__in=assignments, student__in=students
        )
    }

    rows = []
    total_submitted = 0
    total_graded = 0
    for student in students:
        cells = []
        earned = ZERO
        submitted = 0
        graded = 0
        for assignment in assignments:
            submission = submissions.get((student.pk, assignment.pk))
            cells.append(_gradebook_cell(assignment, submission))
            if submission is None:
                continue
            submitted += 1
            if submission.is_graded:
                graded += 1
                earned += submission.grade

        rows.append(
            {
                "student": _user_summary(student),
                "assignments": cells,
                "stats": {
                    "total_points_earned": round2(earned),
                    "total_points_possible": points_possible,
                    "average_percentage": percent_of(earned, points_possible),
                    "submitted_count": submitted,
                    "graded_count": graded,
                },
            }
        )
        total_submitted += submitted
        total_graded += graded

    # Mean over students with a non-zero average.
    class_grades = [
        row["stats"]["average_percentage"]
        for row in rows
        if row["stats"]["average_percentage"] > 0
    ]
    course_stats = {
        "total_students": len(rows),
        "total_assignments": len(assignments),
        "average_class_grade": round2(sum(class_grades) / len(class_grades))
        if class_grades
        else ZERO,
        "submission_rate": percent_of(total_submitted, len(rows) * len(assignments)),
        "grading_progress": percent_of(total_graded, total_submitted),
    }

    return {
        "course": {
            "id": course.pk,
            "title": course.title,
            "teacher": display_name(course.teacher),
        },
        "assignments": [
            {
                "id": assignment.pk,
                "title": assignment.title,
                "point_value": assignment.point_value,
                "due_date": assignment.due_date,
            }
            for assignment in assignments
        ],
        "students": rows,
        "course_stats": course_stats,
    }
