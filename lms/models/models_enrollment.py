import uuid

from django.conf import settings
from django.db import models

from lms.utils.helper_models import TimeStampedModel


class Enrollment(TimeStampedModel):
    """A student's seat in a course batch.

    Enrollments are created through ``BatchLifecycleService.enroll_student``,
    which also bumps the batch's denormalized ``enrollment_count``. The
    ``course`` field mirrors ``batch.course`` for quick lookups.
    """

    STATUS_CHOICES = [
        ("active", "Active"),
        ("completed", "Completed"),
        ("dropped", "Dropped"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
        help_text="Student enrolled in the batch",
    )
    batch = models.ForeignKey(
        "lms.CourseBatch",
        on_delete=models.PROTECT,
        related_name="enrollments",
        help_text="Course batch the student is enrolled in",
    )
    course = models.ForeignKey(
        "lms.Course",
        on_delete=models.CASCADE,
        related_name="enrollments",
        help_text="Course the student is enrolled in (auto-set from batch)",
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    is_active = models.BooleanField(default=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(TimeStampedModel.Meta):
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        unique_together = [("user", "batch")]
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_active"], name="enrollment_user_active_idx"),
            models.Index(fields=["batch", "is_active"], name="enrollment_batch_active_idx"),
        ]

    def save(self, *args, **kwargs):
        """Auto-set course from batch."""
        if self.batch_id and not self.course_id:
            self.course_id = self.batch.course_id
        super().save(*args, **kwargs)

    @property
    def enrolled_at(self):
        return self.created_at

    def __str__(self):
        return f"{self.user} enrolled in {self.batch.get_display_name()}"
