from django.contrib import admin

from .models import Course, CourseEnrollment


class CourseEnrollmentInline(admin.TabularInline):
    model = CourseEnrollment
    extra = 0
    autocomplete_fields = ("student",)
    fields = ("student", "status", "enrolled_at")
    readonly_fields = ("enrolled_at",)


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "teacher", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("title", "slug", "description", "teacher__username")
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ("created_at", "updated_at")
    autocomplete_fields = ("teacher",)
    inlines = (CourseEnrollmentInline,)


@admin.register(CourseEnrollment)
class CourseEnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "course", "status", "enrolled_at")
    list_filter = ("status", "course")
    search_fields = ("student__username", "course__title")
    autocomplete_fields = ("student", "course")
    readonly_fields = ("enrolled_at",)
