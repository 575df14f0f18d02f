"""
Course Administration Configuration

- Course: coordinator, publication status, batch count
- Course Batch: dates, capacity and teachers are editable; status only moves
  through the lifecycle actions so history stays consistent
- Enrollment: read-mostly listing
"""

import copy

from django import forms
from django.contrib import admin, messages
from django.db.models import Count

from lms.exceptions import BatchError, BatchValidationError
from lms.models.models_course import BatchStatusHistory, Course, CourseBatch
from lms.models.models_enrollment import Enrollment
from lms.services.batch_scheduler import reconcile_all_batches
from lms.services.batch_service import BatchLifecycleService
from lms.services.batch_validation import validate_batch

# ========== Course ==========


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "coordinator", "status", "is_active", "batch_count")
    list_filter = ("status", "is_active")
    search_fields = ("title", "coordinator__email")
    prepopulated_fields = {"slug": ("title",)}
    autocomplete_fields = ("coordinator",)

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(num_batches=Count("batches"))

    @admin.display(description="Batches", ordering="num_batches")
    def batch_count(self, obj):
        return obj.num_batches


# ========== Course Batch ==========


class CourseBatchAdminForm(forms.ModelForm):
    """Runs the batch invariants as form validation so the admin shows them inline."""

    class Meta:
        model = CourseBatch
        fields = "__all__"

    def clean(self):
        cleaned_data = super().clean()
        if self.errors or not (cleaned_data.get("course") or self.instance.course_id):
            return cleaned_data

        candidate = copy.copy(self.instance)
        for field, value in cleaned_data.items():
            if field != "teachers":
                setattr(candidate, field, value)
        try:
            validate_batch(candidate)
        except BatchValidationError as exc:
            field = exc.field if exc.field in self.fields else None
            self.add_error(field, exc.message)
        return cleaned_data


class BatchStatusHistoryInline(admin.TabularInline):
    model = BatchStatusHistory
    extra = 0
    can_delete = False
    fields = (
        "sequence",
        "status",
        "is_automatic",
        "updated_at",
        "enrollment_start_date",
        "enrollment_end_date",
        "batch_start_date",
        "batch_end_date",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(CourseBatch)
class CourseBatchAdmin(admin.ModelAdmin):
    form = CourseBatchAdminForm
    inlines = [BatchStatusHistoryInline]
    list_display = (
        "course",
        "batch_number",
        "name",
        "status",
        "is_auto_updated",
        "enrollment_count",
        "max_students",
        "enrollment_start_date",
        "batch_start_date",
    )
    list_filter = ("status", "is_auto_updated", "course")
    search_fields = ("name", "slug", "course__title")
    readonly_fields = ("batch_number", "slug", "status", "enrollment_count", "last_status_update", "rolled_back_at")
    filter_horizontal = ("teachers",)
    actions = ("rollback_last_change", "run_status_update")

    fieldsets = (
        (None, {"fields": ("course", "batch_number", "name", "slug", "description")}),
        (
            "Schedule",
            {"fields": ("enrollment_start_date", "enrollment_end_date", "batch_start_date", "batch_end_date")},
        ),
        ("Capacity", {"fields": ("max_students", "enrollment_count", "teachers")}),
        ("Lifecycle", {"fields": ("status", "is_auto_updated", "last_status_update", "rolled_back_at")}),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return self.readonly_fields
        return self.readonly_fields + ("course",)

    @admin.action(description="Roll back the last status change")
    def rollback_last_change(self, request, queryset):
        service = BatchLifecycleService()
        for batch in queryset:
            try:
                service.rollback_last_status_change(batch.pk)
            except BatchError as exc:
                self.message_user(request, f"{batch}: {exc.message}", messages.WARNING)
            else:
                self.message_user(request, f"{batch}: rolled back")

    @admin.action(description="Run the batch status update now")
    def run_status_update(self, request, queryset):
        summary = reconcile_all_batches()
        if summary.lock_held:
            self.message_user(request, "A status update is already running.", messages.WARNING)
            return
        self.message_user(request, f"{summary.changed} batch(es) updated, {summary.skipped} skipped")


# ========== Enrollment ==========


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("user", "batch", "course", "status", "is_active", "created_at")
    list_filter = ("status", "is_active")
    search_fields = ("user__email", "batch__name", "course__title")
    readonly_fields = ("user", "batch", "course", "created_at")

    def has_add_permission(self, request):
        # Enrollments bump the batch counter; create them through the API.
        return False
