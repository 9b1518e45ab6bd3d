from django.http import FileResponse
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from ..access import Principal
from ..exceptions import ValidationError
from ..service_utils import assignments as assignment_service
from ..service_utils import files as file_service
from ..service_utils import grading as grading_service
from ..service_utils import reports as report_service
from ..service_utils import submissions as submission_service
from .serializers import (
    AssignmentInputSerializer,
    AssignmentSerializer,
    BulkGradeInputSerializer,
    BulkGradeResultSerializer,
    CourseAssignmentEntrySerializer,
    GradeInputSerializer,
    GradeOutcomeSerializer,
    StoredFileSerializer,
    SubmissionDetailSerializer,
    SubmissionSerializer,
    SubmitInputSerializer,
)


class PortalAPIView(APIView):
    """Base view resolving the caller into an explicit principal."""

    permission_classes = [permissions.IsAuthenticated]

    def get_principal(self, request) -> Principal:
        return Principal.from_user(request.user)


class CourseAssignmentListView(PortalAPIView):
    """Active assignments of a course; students also get their own submission."""

    def get(self, request, course_id: int, *args, **kwargs):
        entries = assignment_service.list_course_assignments(
            self.get_principal(request), course_id
        )
        serializer = CourseAssignmentEntrySerializer(
            entries, many=True, context={"request": request}
        )
        return Response(serializer.data)


class AssignmentCreateView(PortalAPIView):
    def post(self, request, *args, **kwargs):
        serializer = AssignmentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        assignment = assignment_service.create_assignment(
            self.get_principal(request),
            course_id=data.get("course"),
            title=data.get("title"),
            description=data.get("description"),
            due_date=data.get("due_date"),
            point_value=data.get("point_value"),
            attachments=data.get("attachments") or (),
            allow_late_submissions=data.get("allow_late_submissions", False),
        )
        assignment = assignment_service.get_assignment(
            self.get_principal(request), assignment.pk
        )
        return Response(
            AssignmentSerializer(assignment, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class AssignmentDetailView(PortalAPIView):
    def get(self, request, assignment_id: int, *args, **kwargs):
        assignment = assignment_service.get_assignment(self.get_principal(request), assignment_id)
        return Response(AssignmentSerializer(assignment, context={"request": request}).data)

    def patch(self, request, assignment_id: int, *args, **kwargs):
        serializer = AssignmentInputSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        principal = self.get_principal(request)
        assignment_service.update_assignment(
            principal,
            assignment_id,
            title=data.get("title"),
            description=data.get("description"),
            due_date=data.get("due_date"),
            point_value=data.get("point_value"),
            allow_late_submissions=data.get("allow_late_submissions"),
            attachments=data.get("attachments"),
        )
        assignment = assignment_service.get_assignment(principal, assignment_id)
        return Response(AssignmentSerializer(assignment, context={"request": request}).data)

    def delete(self, request, assignment_id: int, *args, **kwargs):
        assignment_service.deactivate_assignment(self.get_principal(request), assignment_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AssignmentSubmitView(PortalAPIView):
    """Submit (201) or resubmit (200) the caller's own work."""

    def post(self, request, assignment_id: int, *args, **kwargs):
        serializer = SubmitInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = submission_service.submit(
            self.get_principal(request),
            assignment_id,
            request.user.pk,
            body=serializer.validated_data.get("body"),
            attachments=serializer.validated_data.get("attachments"),
        )
        data = SubmissionSerializer(outcome.submission, context={"request": request}).data
        return Response(
            {"submission": data, "message": outcome.message},
            status=status.HTTP_201_CREATED if outcome.created else status.HTTP_200_OK,
        )


class AssignmentSubmissionListView(PortalAPIView):
    def get(self, request, assignment_id: int, *args, **kwargs):
        submissions = submission_service.list_assignment_submissions(
            self.get_principal(request), assignment_id
        )
        serializer = SubmissionSerializer(submissions, many=True, context={"request": request})
        return Response(serializer.data)


class BulkGradeView(PortalAPIView):
    def post(self, request, assignment_id: int, *args, **kwargs):
        serializer = BulkGradeInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = grading_service.bulk_grade(
            self.get_principal(request),
            assignment_id,
            serializer.validated_data.get("grades"),
        )
        return Response(BulkGradeResultSerializer(result).data)


class SubmissionDetailView(PortalAPIView):
    def get(self, request, submission_id: int, *args, **kwargs):
        details = submission_service.get_submission_details(
            self.get_principal(request), submission_id
        )
        return Response(SubmissionDetailSerializer(details, context={"request": request}).data)


class SubmissionGradeView(PortalAPIView):
    def post(self, request, submission_id: int, *args, **kwargs):
        serializer = GradeInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = grading_service.grade_submission(
            self.get_principal(request),
            submission_id,
            serializer.validated_data.get("grade"),
            serializer.validated_data.get("feedback"),
        )
        return Response(GradeOutcomeSerializer(outcome, context={"request": request}).data)


class StudentGradesView(PortalAPIView):
    def get(self, request, student_id: int, *args, **kwargs):
        return Response(report_service.student_grades(self.get_principal(request), student_id))


class CourseGradebookView(PortalAPIView):
    def get(self, request, course_id: int, *args, **kwargs):
        return Response(report_service.course_gradebook(self.get_principal(request), course_id))


class FileUploadView(PortalAPIView):
    def post(self, request, *args, **kwargs):
        uploaded = request.FILES.get("file")
        if uploaded is None:
            raise ValidationError(
                "No file uploaded", field_errors={"file": ["This field is required."]}
            )
        stored = file_service.store_upload(self.get_principal(request), uploaded)
        return Response(
            StoredFileSerializer(stored, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class FileDownloadView(PortalAPIView):
    def get(self, request, file_id: int, *args, **kwargs):
        stored = file_service.authorize_download(self.get_principal(request), file_id)
        return FileResponse(
            stored.file.open("rb"),
            as_attachment=True,
            filename=stored.original_name,
            content_type=stored.mimetype or None,
        )
