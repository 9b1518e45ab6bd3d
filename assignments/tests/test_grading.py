from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from assignments.exceptions import (
    Forbidden,
    InvalidGradeFormat,
    InvalidGradeRange,
    NotFound,
    ValidationError,
)
from assignments.service_utils import grading as grading_service

from . import factories


class ParseGradeTests(TestCase):
    def test_accepts_numbers_and_numeric_strings(self):
        self.assertEqual(grading_service.parse_grade(85), Decimal(85))
        self.assertEqual(grading_service.parse_grade("72.5"), Decimal("72.5"))
        self.assertEqual(grading_service.parse_grade(" 10 "), Decimal(10))
        self.assertEqual(grading_service.parse_grade(9.5), Decimal("9.5"))

    def test_rejects_non_numbers(self):
        for value in ("abc", True, "NaN", float("inf"), [], {}):
            with self.subTest(value=value):
                with self.assertRaises(InvalidGradeFormat):
                    grading_service.parse_grade(value)


class GradeSubmissionTests(TestCase):
    def setUp(self):
        self.teacher = factories.create_teacher()
        self.student = factories.create_student()
        self.course = factories.create_course(teacher=self.teacher)
        factories.enroll(self.course, self.student)
        self.assignment = factories.create_assignment(course=self.course, point_value=100)
        self.submission = factories.create_submission(
            assignment=self.assignment, student=self.student
        )
        self.principal = factories.principal(self.teacher)

    def test_grade_is_persisted_with_derived_fields(self):
        now = timezone.now()
        outcome = grading_service.grade_submission(
            self.principal, self.submission.pk, 85, "  Solid work  ", now=now
        )
        self.assertEqual(outcome.percentage, Decimal("85.00"))
        self.assertEqual(outcome.letter_grade, "B")
        self.assertFalse(outcome.is_regrade)
        self.assertIsNone(outcome.previous_grade)
        self.assertEqual(outcome.message, "Submission graded successfully")

        self.submission.refresh_from_db()
        self.assertEqual(self.submission.grade, Decimal("85"))
        self.assertEqual(self.submission.feedback, "Solid work")
        self.assertEqual(self.submission.graded_at, now)
        self.assertEqual(self.submission.graded_by, self.teacher)

    def test_out_of_range_message_cites_point_value(self):
        with self.assertRaises(InvalidGradeRange) as ctx:
            grading_service.grade_submission(self.principal, self.submission.pk, 150)
        self.assertIn("0 and 100", ctx.exception.message)
        self.assertEqual(ctx.exception.kind, "invalid_grade_range")

    def test_negative_grade_out_of_range(self):
        with self.assertRaises(InvalidGradeRange):
            grading_service.grade_submission(self.principal, self.submission.pk, -1)

    def test_bounds_are_inclusive(self):
        grading_service.grade_submission(self.principal, self.submission.pk, 0)
        outcome = grading_service.grade_submission(self.principal, self.submission.pk, 100)
        self.assertEqual(outcome.letter_grade, "A+")

    def test_invalid_format(self):
        with self.assertRaises(InvalidGradeFormat):
            grading_service.grade_submission(self.principal, self.submission.pk, "eighty")

    def test_missing_grade(self):
        with self.assertRaises(ValidationError):
            grading_service.grade_submission(self.principal, self.submission.pk, None)
        with self.assertRaises(ValidationError):
            grading_service.grade_submission(self.principal, self.submission.pk, "  ")

    def test_unknown_submission(self):
        with self.assertRaises(NotFound):
            grading_service.grade_submission(self.principal, 999999, 50)

    def test_only_course_owner_or_admin(self):
        with self.assertRaises(Forbidden):
            grading_service.grade_submission(
                factories.principal(factories.create_teacher()), self.submission.pk, 50
            )
        with self.assertRaises(Forbidden):
            grading_service.grade_submission(
                factories.principal(self.student), self.submission.pk, 50
            )
        outcome = grading_service.grade_submission(
            factories.principal(factories.create_admin()), self.submission.pk, 50
        )
        self.assertEqual(outcome.grade, Decimal("50"))

    def test_feedback_length_limit(self):
        with self.assertRaises(ValidationError):
            grading_service.grade_submission(
                self.principal, self.submission.pk, 50, "x" * 2001
            )

    def test_regrade_reports_previous_grade(self):
        grading_service.grade_submission(self.principal, self.submission.pk, 70)
        outcome = grading_service.grade_submission(self.principal, self.submission.pk, 75)
        self.assertTrue(outcome.is_regrade)
        self.assertEqual(outcome.previous_grade, Decimal("70"))
        self.assertEqual(outcome.message, "Submission regraded successfully")

    def test_same_grade_again_is_not_a_regrade(self):
        grading_service.grade_submission(self.principal, self.submission.pk, 70)
        outcome = grading_service.grade_submission(self.principal, self.submission.pk, "70.00")
        self.assertFalse(outcome.is_regrade)
        self.assertIsNone(outcome.previous_grade)

    def test_zero_point_assignment_has_no_percentage(self):
        assignment = factories.create_assignment(course=self.course, point_value=0)
        submission = factories.create_submission(assignment=assignment, student=self.student)
        outcome = grading_service.grade_submission(self.principal, submission.pk, 0)
        self.assertIsNone(outcome.percentage)
        self.assertIsNone(outcome.letter_grade)

    def test_uses_current_time_by_default(self):
        fixed = timezone.now() - timedelta(minutes=5)
        with mock.patch("assignments.service_utils.grading.timezone.now", return_value=fixed):
            grading_service.grade_submission(self.principal, self.submission.pk, 60)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.graded_at, fixed)


class BulkGradeTests(TestCase):
    def setUp(self):
        self.teacher = factories.create_teacher()
        self.course = factories.create_course(teacher=self.teacher)
        self.assignment = factories.create_assignment(course=self.course, point_value=100)
        self.students = [factories.create_student() for _ in range(3)]
        for student in self.students:
            factories.enroll(self.course, student)
        self.submissions = [
            factories.create_submission(assignment=self.assignment, student=student)
            for student in self.students
        ]
        self.principal = factories.principal(self.teacher)

    def test_mixed_batch_keeps_valid_entries(self):
        valid, invalid = self.submissions[:2]
        result = grading_service.bulk_grade(
            self.principal,
            self.assignment.pk,
            [
                {"submission_id": valid.pk, "grade": 85},
                {"submission_id": invalid.pk, "grade": 150},
            ],
        )
        self.assertEqual(len(result.successful), 1)
        self.assertEqual(len(result.failed), 1)
        self.assertEqual(result.total_processed, 2)
        self.assertEqual(result.failed[0].kind, "invalid_grade_range")
        self.assertIn("0 and 100", result.failed[0].detail)

        valid.refresh_from_db()
        invalid.refresh_from_db()
        self.assertEqual(valid.grade, Decimal("85"))
        self.assertIsNone(invalid.grade)

    def test_failure_kinds(self):
        other_assignment = factories.create_assignment(course=self.course)
        foreign = factories.create_submission(
            assignment=other_assignment, student=self.students[0]
        )
        result = grading_service.bulk_grade(
            self.principal,
            self.assignment.pk,
            [
                {"grade": 10},
                {"submission_id": self.submissions[0].pk},
                {"submission_id": 999999, "grade": 10},
                {"submission_id": foreign.pk, "grade": 10},
                {"submission_id": self.submissions[1].pk, "grade": "ten"},
                {"submission_id": self.submissions[2].pk, "grade": 10, "feedback": "x" * 2001},
                "not an entry",
                {"submission_id": self.submissions[0].pk + 0.9, "grade": 70},
                {"submission_id": True, "grade": 10},
                {"submission_id": "1e3", "grade": 10},
                {"submission_id": self.submissions[0].pk, "grade": "   "},
            ],
        )
        self.assertEqual(result.successful, [])
        self.assertEqual(
            [failure.kind for failure in result.failed],
            [
                "missing_fields",
                "missing_fields",
                "not_found",
                "wrong_assignment",
                "invalid_grade_format",
                "validation_error",
                "missing_fields",
                "missing_fields",
                "missing_fields",
                "missing_fields",
                "missing_fields",
            ],
        )
        self.assertEqual(result.total_processed, 11)
        for submission in self.submissions:
            submission.refresh_from_db()
            self.assertIsNone(submission.grade)

    def test_digit_string_id_is_accepted(self):
        target = self.submissions[1]
        result = grading_service.bulk_grade(
            self.principal,
            self.assignment.pk,
            [{"submission_id": f" {target.pk} ", "grade": "77.5"}],
        )
        self.assertEqual([success.submission_id for success in result.successful], [target.pk])
        target.refresh_from_db()
        self.assertEqual(target.grade, Decimal("77.50"))

    def test_partition_is_order_independent(self):
        entries = [
            {"submission_id": self.submissions[0].pk, "grade": 90},
            {"submission_id": self.submissions[1].pk, "grade": 101},
            {"submission_id": self.submissions[2].pk, "grade": 40, "feedback": "Redo part 2"},
        ]

        forward = grading_service.bulk_grade(self.principal, self.assignment.pk, entries)
        backward = grading_service.bulk_grade(
            self.principal, self.assignment.pk, list(reversed(entries))
        )

        def partition(result):
            return (
                {success.submission_id for success in result.successful},
                {(failure.submission_id, failure.kind) for failure in result.failed},
            )

        self.assertEqual(partition(forward), partition(backward))

    def test_empty_batch_rejected(self):
        for entries in (None, []):
            with self.subTest(entries=entries):
                with self.assertRaises(ValidationError):
                    grading_service.bulk_grade(self.principal, self.assignment.pk, entries)

    def test_authorized_once_for_the_batch(self):
        with self.assertRaises(Forbidden):
            grading_service.bulk_grade(
                factories.principal(factories.create_teacher()),
                self.assignment.pk,
                [{"submission_id": self.submissions[0].pk, "grade": 10}],
            )

    def test_database_failure_is_isolated_to_its_entry(self):
        original_save = type(self.submissions[0]).save
        broken_pk = self.submissions[1].pk

        def flaky_save(instance, *args, **kwargs):
            if instance.pk == broken_pk:
                raise DatabaseError("disk full")
            return original_save(instance, *args, **kwargs)

        with mock.patch.object(type(self.submissions[0]), "save", flaky_save):
            result = grading_service.bulk_grade(
                self.principal,
                self.assignment.pk,
                [
                    {"submission_id": submission.pk, "grade": 50}
                    for submission in self.submissions
                ],
            )

        self.assertEqual(len(result.successful), 2)
        self.assertEqual(
            [(failure.submission_id, failure.kind) for failure in result.failed],
            [(broken_pk, "persistence_error")],
        )
        self.submissions[2].refresh_from_db()
        self.assertEqual(self.submissions[2].grade, Decimal("50"))
