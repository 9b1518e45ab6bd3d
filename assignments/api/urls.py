from django.urls import path

from .views import (
    AssignmentCreateView,
    AssignmentDetailView,
    AssignmentSubmissionListView,
    AssignmentSubmitView,
    BulkGradeView,
    CourseAssignmentListView,
    CourseGradebookView,
    FileDownloadView,
    FileUploadView,
    StudentGradesView,
    SubmissionDetailView,
    SubmissionGradeView,
)

urlpatterns = [
    path(
        "courses/<int:course_id>/assignments/",
        CourseAssignmentListView.as_view(),
        name="course-assignment-list",
    ),
    path(
        "courses/<int:course_id>/gradebook/",
        CourseGradebookView.as_view(),
        name="course-gradebook",
    ),
    path("assignments/", AssignmentCreateView.as_view(), name="assignment-create"),
    path(
        "assignments/<int:assignment_id>/",
        AssignmentDetailView.as_view(),
        name="assignment-detail",
    ),
    path(
        "assignments/<int:assignment_id>/submit/",
        AssignmentSubmitView.as_view(),
        name="assignment-submit",
    ),
    path(
        "assignments/<int:assignment_id>/submissions/",
        AssignmentSubmissionListView.as_view(),
        name="assignment-submission-list",
    ),
    path(
        "assignments/<int:assignment_id>/bulk-grade/",
        BulkGradeView.as_view(),
        name="assignment-bulk-grade",
    ),
    path(
        "submissions/<int:submission_id>/",
        SubmissionDetailView.as_view(),
        name="submission-detail",
    ),
    path(
        "submissions/<int:submission_id>/grade/",
        SubmissionGradeView.as_view(),
        name="submission-grade",
    ),
    path(
        "students/<int:student_id>/grades/",
        StudentGradesView.as_view(),
        name="student-grades",
    ),
    path("files/", FileUploadView.as_view(), name="file-upload"),
    path("files/<int:file_id>/", FileDownloadView.as_view(), name="file-download"),
]
