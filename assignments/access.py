"""Authorization rules for assignments, submissions, grades and files.

Every rule is a predicate over an explicit :class:`Principal` and the resource
relationship it touches; services call the ``ensure_*`` helpers, which raise
``Forbidden`` (or ``NotEnrolled`` for submission flows).
"""
from __future__ import annotations

from dataclasses import dataclass

from accounts.models import Role, role_for_user
from courses.models import Course, CourseEnrollment

from .exceptions import Forbidden, NotEnrolled
from .models import Assignment, StoredFile, Submission


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: identity plus role."""

    user_id: int
    role: Role

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.pk, role=role_for_user(user))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == Role.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT


def owns_course(principal: Principal, course: Course) -> bool:
    return principal.is_teacher and course.teacher_id == principal.user_id


def is_enrolled(principal: Principal, course: Course) -> bool:
    return principal.is_student and course.is_student_enrolled(principal.user_id)


def can_manage_course(principal: Principal, course: Course) -> bool:
    """Assignment CRUD, submission listing, grading and the gradebook."""

    return principal.is_admin or owns_course(principal, course)


def can_view_assignment(principal: Principal, assignment: Assignment) -> bool:
    course = assignment.course
    return can_manage_course(principal, course) or is_enrolled(principal, course)


def is_submission_owner(principal: Principal, submission: Submission) -> bool:
    return principal.is_student and submission.student_id == principal.user_id


def can_view_submission(principal: Principal, submission: Submission) -> bool:
    return is_submission_owner(principal, submission) or can_manage_course(
        principal, submission.assignment.course
    )


def can_view_student_grades(principal: Principal, student) -> bool:
    if principal.is_admin or principal.user_id == student.pk:
        return True
    if not principal.is_teacher:
        return False
    return Course.objects.filter(
        teacher_id=principal.user_id,
        enrollments__student=student,
        enrollments__status__in=CourseEnrollment.ACTIVE_STATUSES,
    ).exists()


def can_download_file(principal: Principal, stored_file: StoredFile) -> bool:
    if principal.is_admin or stored_file.uploaded_by_id == principal.user_id:
        return True

    assignments = (
        Assignment.objects.filter(
            attachments__file=stored_file, status=Assignment.Status.ACTIVE
        )
        .select_related("course")
        .distinct()
    )
    for assignment in assignments:
        if owns_course(principal, assignment.course) or is_enrolled(
            principal, assignment.course
        ):
            return True

    submissions = (
        Submission.objects.filter(attachments__file=stored_file)
        .select_related("assignment__course")
        .distinct()
    )
    for submission in submissions:
        if is_submission_owner(principal, submission) or owns_course(
            principal, submission.assignment.course
        ):
            return True

    return False


def ensure_can_manage_course(principal: Principal, course: Course, message: str | None = None) -> None:
    if not can_manage_course(principal, course):
        raise Forbidden(message)


def ensure_can_view_assignment(principal: Principal, assignment: Assignment) -> None:
    if not can_view_assignment(principal, assignment):
        raise Forbidden()


def ensure_can_view_submission(principal: Principal, submission: Submission) -> None:
    if not can_view_submission(principal, submission):
        raise Forbidden()


def ensure_can_view_student_grades(principal: Principal, student) -> None:
    if not can_view_student_grades(principal, student):
        raise Forbidden()


def ensure_can_submit(principal: Principal, assignment: Assignment, student_id) -> None:
    """Only the student themself, enrolled in the course, may submit."""

    if not principal.is_student or principal.user_id != student_id:
        raise Forbidden("Only the student can submit their own work.")
    if not assignment.course.is_student_enrolled(student_id):
        raise NotEnrolled()


def ensure_can_download_file(principal: Principal, stored_file: StoredFile) -> None:
    if not can_download_file(principal, stored_file):
        raise Forbidden()
