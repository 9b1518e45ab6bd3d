from rest_framework import serializers

from django.urls import reverse

from accounts.models import display_name

from ..models import Assignment, StoredFile, Submission


class UserSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField(source="pk", read_only=True)
    name = serializers.SerializerMethodField()
    email = serializers.EmailField(read_only=True)

    def get_name(self, obj):
        return display_name(obj)


class StoredFileSerializer(serializers.ModelSerializer):
    download_url = serializers.SerializerMethodField()

    class Meta:
        model = StoredFile
        fields = ["id", "original_name", "mimetype", "size", "uploaded_at", "download_url"]
        read_only_fields = fields

    def get_download_url(self, obj):
        url = reverse("assignments:file-download", args=[obj.pk])
        request = self.context.get("request")
        return request.build_absolute_uri(url) if request else url


class AttachmentSerializer(serializers.Serializer):
    """Assignment and submission attachments share the same shape."""

    id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(read_only=True)
    file = StoredFileSerializer(read_only=True)


class AttachmentRefSerializer(serializers.Serializer):
    file_id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)


class AssignmentSerializer(serializers.ModelSerializer):
    course = serializers.PrimaryKeyRelatedField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    accepts_submissions = serializers.SerializerMethodField()
    attachments = AttachmentSerializer(many=True, read_only=True)

    class Meta:
        model = Assignment
        fields = [
            "id",
            "course",
            "title",
            "description",
            "due_date",
            "point_value",
            "status",
            "is_active",
            "allow_late_submissions",
            "accepts_submissions",
            "attachments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_accepts_submissions(self, obj):
        return obj.accepts_submissions()


class AssignmentInputSerializer(serializers.Serializer):
    """Loose shape check only; the lifecycle service validates values."""

    course = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    due_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    point_value = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    allow_late_submissions = serializers.BooleanField(required=False)
    attachments = AttachmentRefSerializer(many=True, required=False)


class SubmissionSerializer(serializers.ModelSerializer):
    student = UserSummarySerializer(read_only=True)
    graded_by = UserSummarySerializer(read_only=True, allow_null=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    is_graded = serializers.BooleanField(read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id",
            "assignment",
            "student",
            "body",
            "attachments",
            "submitted_at",
            "is_late",
            "is_graded",
            "grade",
            "feedback",
            "graded_at",
            "graded_by",
        ]
        read_only_fields = fields


class SubmissionDetailSerializer(serializers.Serializer):
    submission = SubmissionSerializer(read_only=True)
    percentage = serializers.DecimalField(
        max_digits=7, decimal_places=2, allow_null=True, read_only=True
    )
    letter_grade = serializers.CharField(allow_null=True, read_only=True)
    days_late = serializers.IntegerField(read_only=True)


class CourseAssignmentEntrySerializer(serializers.Serializer):
    assignment = AssignmentSerializer(read_only=True)
    submission = SubmissionSerializer(read_only=True, allow_null=True)


class SubmitInputSerializer(serializers.Serializer):
    body = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, trim_whitespace=False
    )
    attachments = AttachmentRefSerializer(many=True, required=False)


class GradeInputSerializer(serializers.Serializer):
    # Raw value; numeric parsing happens in the grading service.
    grade = serializers.JSONField(required=False, allow_null=True)
    feedback = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BulkGradeInputSerializer(serializers.Serializer):
    # Entries stay raw so a malformed one fails on its own in the service.
    grades = serializers.ListField(
        child=serializers.JSONField(allow_null=True), required=False, allow_empty=True
    )


class GradeOutcomeSerializer(serializers.Serializer):
    submission = SubmissionSerializer(read_only=True)
    grade = serializers.DecimalField(max_digits=7, decimal_places=2, read_only=True)
    percentage = serializers.DecimalField(
        max_digits=7, decimal_places=2, allow_null=True, read_only=True
    )
    letter_grade = serializers.CharField(allow_null=True, read_only=True)
    is_regrade = serializers.BooleanField(read_only=True)
    previous_grade = serializers.DecimalField(
        max_digits=7, decimal_places=2, allow_null=True, read_only=True
    )
    message = serializers.CharField(read_only=True)


class GradeSuccessSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField(read_only=True)
    student_name = serializers.SerializerMethodField()
    grade = serializers.DecimalField(
        source="outcome.grade", max_digits=7, decimal_places=2, read_only=True
    )
    percentage = serializers.DecimalField(
        source="outcome.percentage",
        max_digits=7,
        decimal_places=2,
        allow_null=True,
        read_only=True,
    )
    letter_grade = serializers.CharField(
        source="outcome.letter_grade", allow_null=True, read_only=True
    )
    is_regrade = serializers.BooleanField(source="outcome.is_regrade", read_only=True)
    previous_grade = serializers.DecimalField(
        source="outcome.previous_grade",
        max_digits=7,
        decimal_places=2,
        allow_null=True,
        read_only=True,
    )

    def get_student_name(self, obj):
        return display_name(obj.outcome.submission.student)


class GradeFailureSerializer(serializers.Serializer):
    submission_id = serializers.ReadOnlyField()
    kind = serializers.CharField(read_only=True)
    detail = serializers.CharField(read_only=True)


class BulkGradeResultSerializer(serializers.Serializer):
    successful = GradeSuccessSerializer(many=True, read_only=True)
    failed = GradeFailureSerializer(many=True, read_only=True)
    total_processed = serializers.IntegerField(read_only=True)
    message = serializers.CharField(read_only=True)
