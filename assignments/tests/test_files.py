import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings

from assignments.exceptions import Forbidden, NotFound, ValidationError
from assignments.models import AssignmentAttachment
from assignments.service_utils import files as file_service

from . import factories

MEDIA_ROOT = tempfile.mkdtemp()


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class StoreUploadTests(TestCase):
    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.teacher = factories.create_teacher()

    def test_records_owner_and_metadata(self):
        upload = SimpleUploadedFile("syllabus.pdf", b"%PDF-1.4", content_type="application/pdf")
        stored = file_service.store_upload(factories.principal(self.teacher), upload)
        self.assertEqual(stored.original_name, "syllabus.pdf")
        self.assertEqual(stored.uploaded_by, self.teacher)
        self.assertEqual(stored.size, 8)
        self.assertTrue(stored.file.storage.exists(stored.file.name))

    def test_rejects_unknown_mimetype(self):
        upload = SimpleUploadedFile("run.sh", b"echo", content_type="application/x-sh")
        with self.assertRaises(ValidationError):
            file_service.store_upload(factories.principal(self.teacher), upload)

    @override_settings(ASSIGNMENTS_MAX_UPLOAD_SIZE=4)
    def test_rejects_oversized_file(self):
        upload = SimpleUploadedFile("notes.txt", b"12345", content_type="text/plain")
        with self.assertRaises(ValidationError):
            file_service.store_upload(factories.principal(self.teacher), upload)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class AuthorizeDownloadTests(TestCase):
    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.teacher = factories.create_teacher()
        self.student = factories.create_student()
        self.course = factories.create_course(teacher=self.teacher)
        factories.enroll(self.course, self.student)
        self.assignment = factories.create_assignment(course=self.course)

    def test_enrolled_student_downloads_brief(self):
        stored = factories.create_stored_file(uploaded_by=self.teacher)
        AssignmentAttachment.objects.create(assignment=self.assignment, name="brief", file=stored)
        self.assertEqual(
            file_service.authorize_download(factories.principal(self.student), stored.pk), stored
        )

    def test_unknown_file(self):
        with self.assertRaises(NotFound):
            file_service.authorize_download(factories.principal(self.teacher), 999999)

    def test_outsider_forbidden(self):
        stored = factories.create_stored_file(uploaded_by=self.teacher)
        with self.assertRaises(Forbidden):
            file_service.authorize_download(
                factories.principal(factories.create_student()), stored.pk
            )

    def test_missing_bytes(self):
        stored = factories.create_file_record(uploaded_by=self.teacher, name="gone.pdf")
        with self.assertRaises(NotFound) as ctx:
            file_service.authorize_download(factories.principal(self.teacher), stored.pk)
        self.assertEqual(ctx.exception.message, "File not found on server")


class ResolveAttachmentsTests(TestCase):
    def test_keeps_order_and_display_names(self):
        teacher = factories.create_teacher()
        first = factories.create_file_record(uploaded_by=teacher, name="one.pdf")
        second = factories.create_file_record(uploaded_by=teacher, name="two.pdf")
        pairs = file_service.resolve_attachments(
            factories.principal(teacher),
            [{"file_id": second.pk, "name": "Part B"}, file_service.AttachmentRef(first.pk)],
        )
        self.assertEqual(pairs, [("Part B", second), ("one.pdf", first)])

    def test_admin_may_attach_any_file(self):
        stored = factories.create_file_record(uploaded_by=factories.create_teacher())
        pairs = file_service.resolve_attachments(
            factories.principal(factories.create_admin()), [stored.pk]
        )
        self.assertEqual(pairs, [(stored.original_name, stored)])

    def test_bad_reference(self):
        with self.assertRaises(ValidationError):
            file_service.resolve_attachments(
                factories.principal(factories.create_teacher()), ["not-a-number"]
            )
