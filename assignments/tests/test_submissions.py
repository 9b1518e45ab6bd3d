from datetime import timedelta
from unittest import mock

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from assignments.exceptions import (
    Forbidden,
    NotEnrolled,
    NotFound,
    SubmissionClosed,
    ValidationError,
)
from assignments.models import Submission
from assignments.service_utils import grading as grading_service
from assignments.service_utils import submissions as submission_service

from . import factories


class SubmitTests(TestCase):
    def setUp(self):
        self.teacher = factories.create_teacher()
        self.student = factories.create_student()
        self.course = factories.create_course(teacher=self.teacher)
        factories.enroll(self.course, self.student)
        self.due = timezone.now() + timedelta(days=2)
        self.assignment = factories.create_assignment(
            course=self.course, due_date=self.due, point_value=100
        )
        self.principal = factories.principal(self.student)

    def _submit(self, now, **kwargs):
        kwargs.setdefault("body", "First draft")
        return submission_service.submit(
            self.principal, self.assignment.pk, self.student.pk, now=now, **kwargs
        )

    def test_first_submission_is_created(self):
        outcome = self._submit(self.due - timedelta(hours=1))
        self.assertTrue(outcome.created)
        self.assertFalse(outcome.submission.is_late)
        self.assertEqual(outcome.submission.body, "First draft")

    def test_repeated_submits_keep_one_record(self):
        for index in range(3):
            outcome = self._submit(self.due - timedelta(hours=3 - index), body=f"Draft {index}")
        self.assertFalse(outcome.created)
        self.assertEqual(
            Submission.objects.filter(assignment=self.assignment, student=self.student).count(), 1
        )
        self.assertEqual(outcome.submission.body, "Draft 2")

    def test_resubmission_clears_grade_even_without_new_attachments(self):
        self._submit(self.due - timedelta(hours=2))
        submission = Submission.objects.get(assignment=self.assignment, student=self.student)
        grading_service.grade_submission(
            factories.principal(self.teacher), submission.pk, 90, "Good"
        )

        self._submit(self.due - timedelta(hours=1), body="Fixed a typo")

        submission.refresh_from_db()
        self.assertIsNone(submission.grade)
        self.assertEqual(submission.feedback, "")
        self.assertIsNone(submission.graded_at)
        self.assertIsNone(submission.graded_by)

    def test_late_resubmission_overwrites_and_flags_late(self):
        self.assignment.allow_late_submissions = True
        self.assignment.save()

        first = self._submit(self.due - timedelta(seconds=1))
        self.assertFalse(first.submission.is_late)
        grading_service.grade_submission(
            factories.principal(self.teacher), first.submission.pk, 80
        )

        second = self._submit(self.due + timedelta(seconds=1), body="Late fix")
        self.assertFalse(second.created)
        self.assertEqual(second.submission.pk, first.submission.pk)
        self.assertTrue(second.submission.is_late)
        self.assertIsNone(second.submission.grade)

    def test_past_due_rejected_without_late_policy(self):
        with self.assertRaises(SubmissionClosed):
            self._submit(self.due + timedelta(seconds=1))

    def test_exactly_at_due_date_is_on_time(self):
        outcome = self._submit(self.due)
        self.assertFalse(outcome.submission.is_late)

    def test_blank_first_submission_rejected(self):
        with self.assertRaises(ValidationError):
            self._submit(self.due - timedelta(hours=1), body="   ")

    def test_body_length_limit(self):
        with self.assertRaises(ValidationError):
            self._submit(self.due - timedelta(hours=1), body="x" * 5001)

    def test_omitted_body_keeps_previous_text(self):
        self._submit(self.due - timedelta(hours=2))
        outcome = self._submit(self.due - timedelta(hours=1), body=None)
        self.assertEqual(outcome.submission.body, "First draft")

    def test_attachments_replace_previous_ones(self):
        first_file = factories.create_file_record(uploaded_by=self.student, name="a.pdf")
        second_file = factories.create_file_record(uploaded_by=self.student, name="b.pdf")
        self._submit(self.due - timedelta(hours=2), attachments=[first_file.pk])
        outcome = self._submit(
            self.due - timedelta(hours=1), attachments=[{"file_id": second_file.pk, "name": "v2"}]
        )
        attachments = list(outcome.submission.attachments.all())
        self.assertEqual([(item.name, item.file_id) for item in attachments], [("v2", second_file.pk)])

    def test_authorization_order(self):
        with self.assertRaises(NotFound):
            submission_service.submit(self.principal, 999999, self.student.pk, body="x")

        outsider = factories.create_student()
        with self.assertRaises(NotEnrolled):
            submission_service.submit(
                factories.principal(outsider), self.assignment.pk, outsider.pk, body="x"
            )

        with self.assertRaises(Forbidden):
            submission_service.submit(
                factories.principal(self.teacher), self.assignment.pk, self.student.pk, body="x"
            )

    def test_lost_insert_race_becomes_resubmission(self):
        existing = factories.create_submission(
            assignment=self.assignment, student=self.student, body="Other tab", grade=50
        )
        real_select_for_update = Submission.objects.select_for_update
        calls = {"count": 0}

        def missing_on_first_lookup(*args, **kwargs):
            # The first lookup pretends the row does not exist yet.
            calls["count"] += 1
            queryset = real_select_for_update(*args, **kwargs)
            return queryset.none() if calls["count"] == 1 else queryset

        with mock.patch.object(
            Submission.objects, "select_for_update", side_effect=missing_on_first_lookup
        ):
            outcome = self._submit(self.due - timedelta(hours=1), body="This tab")

        self.assertFalse(outcome.created)
        existing.refresh_from_db()
        self.assertEqual(existing.body, "This tab")
        self.assertIsNone(existing.grade)


class SubmissionReadTests(TestCase):
    def setUp(self):
        self.teacher = factories.create_teacher()
        self.student = factories.create_student()
        self.course = factories.create_course(teacher=self.teacher)
        factories.enroll(self.course, self.student)
        self.assignment = factories.create_assignment(course=self.course, point_value=40)

    def test_list_newest_first_for_owner(self):
        now = timezone.now()
        older = factories.create_submission(
            assignment=self.assignment, student=self.student, submitted_at=now - timedelta(hours=2)
        )
        other = factories.create_student()
        factories.enroll(self.course, other)
        newer = factories.create_submission(
            assignment=self.assignment, student=other, submitted_at=now
        )
        submissions = submission_service.list_assignment_submissions(
            factories.principal(self.teacher), self.assignment.pk
        )
        self.assertEqual(submissions, [newer, older])

        with self.assertRaises(Forbidden):
            submission_service.list_assignment_submissions(
                factories.principal(self.student), self.assignment.pk
            )

    def test_details_derive_grade_and_days_late(self):
        submission = factories.create_submission(
            assignment=self.assignment,
            student=self.student,
            grade=36,
            is_late=True,
            submitted_at=self.assignment.due_date + timedelta(days=1, hours=1),
        )
        details = submission_service.get_submission_details(
            factories.principal(self.student), submission.pk
        )
        self.assertEqual(str(details.percentage), "90.00")
        self.assertEqual(details.letter_grade, "A-")
        self.assertEqual(details.days_late, 2)

    def test_details_hidden_from_classmates(self):
        submission = factories.create_submission(assignment=self.assignment, student=self.student)
        classmate = factories.create_student()
        factories.enroll(self.course, classmate)
        with self.assertRaises(Forbidden):
            submission_service.get_submission_details(
                factories.principal(classmate), submission.pk
            )

    def test_unique_constraint_enforced_by_database(self):
        factories.create_submission(assignment=self.assignment, student=self.student)
        with self.assertRaises(IntegrityError), transaction.atomic():
            factories.create_submission(assignment=self.assignment, student=self.student)
