from django.contrib import admin

from .models import Assignment, AssignmentAttachment, StoredFile, Submission, SubmissionAttachment


class AssignmentAttachmentInline(admin.TabularInline):
    model = AssignmentAttachment
    extra = 0
    autocomplete_fields = ("file",)


class SubmissionAttachmentInline(admin.TabularInline):
    model = SubmissionAttachment
    extra = 0
    autocomplete_fields = ("file",)


@admin.register(StoredFile)
class StoredFileAdmin(admin.ModelAdmin):
    list_display = ("original_name", "mimetype", "size", "uploaded_by", "uploaded_at")
    search_fields = ("original_name", "uploaded_by__username")
    list_filter = ("mimetype",)
    readonly_fields = ("uploaded_at",)


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("title", "course", "due_date", "point_value", "status")
    list_filter = ("status", "allow_late_submissions", "course")
    search_fields = ("title", "course__title")
    date_hierarchy = "due_date"
    readonly_fields = ("created_at", "updated_at")
    inlines = (AssignmentAttachmentInline,)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("assignment", "student", "submitted_at", "is_late", "grade", "graded_by")
    list_filter = ("is_late", "assignment__course")
    search_fields = ("student__username", "assignment__title")
    raw_id_fields = ("assignment", "student", "graded_by")
    readonly_fields = ("created_at", "updated_at")
    inlines = (SubmissionAttachmentInline,)
