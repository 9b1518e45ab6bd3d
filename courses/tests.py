from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase

from courses.models import Course, CourseEnrollment

User = get_user_model()


class CourseEnrollmentTests(TestCase):
    def setUp(self):
        self.teacher = User.objects.create_user(username="teacher")
        self.course = Course.objects.create(slug="algebra", title="Algebra", teacher=self.teacher)
        self.student = User.objects.create_user(username="student", last_name="Zed")
        self.other = User.objects.create_user(username="other", last_name="Adams")

    def test_only_live_statuses_count_as_enrolled(self):
        expectations = {
            CourseEnrollment.Status.APPLIED: False,
            CourseEnrollment.Status.ENROLLED: True,
            CourseEnrollment.Status.COMPLETED: True,
            CourseEnrollment.Status.ARCHIVED: False,
        }
        for status, enrolled in expectations.items():
            with self.subTest(status=status):
                CourseEnrollment.objects.update_or_create(
                    course=self.course, student=self.student, defaults={"status": status}
                )
                self.assertEqual(self.course.is_student_enrolled(self.student.pk), enrolled)

    def test_enrolled_students_sorted_by_name(self):
        CourseEnrollment.objects.create(course=self.course, student=self.student)
        CourseEnrollment.objects.create(course=self.course, student=self.other)
        self.assertEqual(
            [enrollment.student for enrollment in self.course.enrolled_students()],
            [self.other, self.student],
        )

    def test_one_enrollment_per_student(self):
        CourseEnrollment.objects.create(course=self.course, student=self.student)
        with self.assertRaises(IntegrityError), transaction.atomic():
            CourseEnrollment.objects.create(course=self.course, student=self.student)
