import uuid

from django.conf import settings
from django.db import models
from django.db.models import Max, Q
from django.utils import timezone
from django.utils.text import slugify

from lms.utils.helper_models import TimeStampedModel


class BatchStatus(models.TextChoices):
    UPCOMING = "upcoming", "Upcoming"
    ENROLLING = "enrolling", "Enrolling"
    ONGOING = "ongoing", "Ongoing"
    COMPLETED = "completed", "Completed"


# Statuses that may be held by at most one batch per course
EXCLUSIVE_STATUSES = (BatchStatus.ENROLLING, BatchStatus.ONGOING)

BATCH_DATE_FIELDS = (
    "enrollment_start_date",
    "enrollment_end_date",
    "batch_start_date",
    "batch_end_date",
)


class Course(TimeStampedModel):
    """Course offered by the academy. Students never enroll here directly,
    they enroll in one of the course's batches."""

    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200, help_text="Course title")
    slug = models.SlugField(
        max_length=220, unique=True, db_index=True, blank=True, help_text="URL-friendly version of the title"
    )
    description = models.TextField(blank=True)
    coordinator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="coordinated_courses",
        help_text="Course coordinator allowed to manage this course's batches",
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="draft",
        help_text="Publication status of the course",
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta(TimeStampedModel.Meta):
        verbose_name = "Course"
        verbose_name_plural = "Courses"
        ordering = ["title"]
        indexes = [
            models.Index(fields=["coordinator", "status"], name="course_coordinator_status_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.title) or "course"
            self.slug = base_slug
            counter = 1
            while Course.objects.filter(slug=self.slug).exclude(pk=self.pk).exists():
                self.slug = f"{base_slug}-{counter}"
                counter += 1
        super().save(*args, **kwargs)

    def get_active_batch(self):
        """Return the earliest-starting batch that is enrolling or ongoing, if any."""
        return (
            self.batches.filter(status__in=EXCLUSIVE_STATUSES)
            .order_by("batch_start_date")
            .first()
        )

    def can_start_new_batch(self):
        """A new batch may open enrollment unless another one is already enrolling.

        An ongoing batch does not block the next cohort's enrollment.
        """
        return not self.batches.filter(status=BatchStatus.ENROLLING).exists()

    def __str__(self):
        return self.title


class CourseBatch(TimeStampedModel):
    """One scheduled cohort of a course.

    A batch opens enrollment, runs, and completes. Transitions are either
    driven by the hourly scheduler (``is_auto_updated=True``) or forced by the
    course coordinator. Use ``lms.services.batch_service`` to change status;
    saving a batch only re-validates it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    course = models.ForeignKey(
        Course,
        related_name="batches",
        on_delete=models.CASCADE,
        help_text="The course this batch is running for",
    )

    batch_number = models.PositiveIntegerField(
        editable=False, help_text="Batch sequence number within the course (1, 2, 3, etc.)"
    )

    name = models.CharField(
        max_length=50,
        blank=True,
        help_text="Optional batch name, unique within the course (e.g., 'Winter 2025')",
    )

    slug = models.SlugField(
        max_length=300,
        unique=True,
        db_index=True,
        blank=True,
        help_text="URL-friendly slug (auto-generated from course + batch number)",
    )

    teachers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="teaching_batches",
        blank=True,
        help_text="Teachers assigned to this batch",
    )

    # Scheduling
    enrollment_start_date = models.DateTimeField(help_text="When enrollment opens")
    enrollment_end_date = models.DateTimeField(help_text="When enrollment closes")
    batch_start_date = models.DateTimeField(help_text="When classes start")
    batch_end_date = models.DateTimeField(help_text="When classes end")

    # Capacity
    max_students = models.PositiveIntegerField(
        default=30, help_text="Maximum number of students allowed in this batch"
    )
    enrollment_count = models.PositiveIntegerField(
        default=0,
        editable=False,
        help_text="Number of students enrolled so far",
    )

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=BatchStatus.choices,
        default=BatchStatus.UPCOMING,
        db_index=True,
        help_text="Current lifecycle status of this batch",
    )
    is_auto_updated = models.BooleanField(
        default=True,
        help_text="Let the scheduler move this batch through its statuses based on its dates",
    )
    last_status_update = models.DateTimeField(
        default=timezone.now, help_text="When the status last changed"
    )
    rolled_back_at = models.DateTimeField(
        null=True,
        blank=True,
        editable=False,
        help_text="When the last status change was rolled back; cleared by the next transition",
    )

    description = models.TextField(blank=True, help_text="Batch-specific notes (optional)")

    class Meta(TimeStampedModel.Meta):
        verbose_name = "Course Batch"
        verbose_name_plural = "Course Batches"
        ordering = ["course", "-batch_number"]
        unique_together = ["course", "batch_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["course", "status"],
                condition=Q(status__in=["enrolling", "ongoing"]),
                name="unique_active_status_per_course",
            ),
            models.UniqueConstraint(
                fields=["course", "name"],
                condition=~Q(name=""),
                name="unique_batch_name_per_course",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "enrollment_start_date"], name="batch_status_enroll_idx"),
            models.Index(fields=["status", "batch_start_date"], name="batch_status_start_idx"),
            models.Index(fields=["status", "batch_end_date"], name="batch_status_end_idx"),
            models.Index(fields=["course", "batch_start_date"], name="batch_course_start_idx"),
        ]

    @staticmethod
    def next_batch_number(course_id):
        """Highest existing batch number for the course plus one, starting at 1."""
        highest = CourseBatch.objects.filter(course_id=course_id).aggregate(highest=Max("batch_number"))["highest"]
        return (highest or 0) + 1

    def save(self, *args, **kwargs):
        """Assign numbering on creation, then validate before writing."""
        from lms.services.batch_validation import validate_batch

        if self._state.adding:
            self.status = BatchStatus.UPCOMING
            if not self.batch_number:
                self.batch_number = CourseBatch.next_batch_number(self.course_id)

        if not self.slug:
            base_slug = f"{self.course.slug}-batch-{self.batch_number}"
            self.slug = base_slug

            # Ensure uniqueness
            counter = 1
            while CourseBatch.objects.filter(slug=self.slug).exclude(pk=self.pk).exists():
                self.slug = f"{base_slug}-{counter}"
                counter += 1

        validate_batch(self)
        super().save(*args, **kwargs)

    @property
    def available_seats(self):
        return max(0, self.max_students - self.enrollment_count)

    @property
    def is_full(self):
        return self.enrollment_count >= self.max_students

    def is_enrollment_window_open(self, now=None):
        now = now or timezone.now()
        return self.enrollment_start_date <= now <= self.enrollment_end_date

    def get_display_name(self):
        if self.name:
            return self.name
        return f"Batch {self.batch_number}"

    def __str__(self):
        return f"{self.course} - {self.get_display_name()}"


class BatchStatusHistory(models.Model):
    """One accepted status change of a batch.

    Holds the status the batch had *before* the change and the four dates in
    effect before the change, so the change can be undone.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(
        CourseBatch,
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    sequence = models.PositiveIntegerField(help_text="Position of this entry in the batch's history (1-based)")
    status = models.CharField(max_length=20, choices=BatchStatus.choices, help_text="Status before the change")
    updated_at = models.DateTimeField(default=timezone.now, help_text="When the change happened")
    is_automatic = models.BooleanField(default=False, help_text="Made by the scheduler rather than a coordinator")

    # Dates in effect before the change
    enrollment_start_date = models.DateTimeField()
    enrollment_end_date = models.DateTimeField()
    batch_start_date = models.DateTimeField()
    batch_end_date = models.DateTimeField()

    class Meta:
        verbose_name = "Batch Status History"
        verbose_name_plural = "Batch Status History"
        ordering = ["batch", "sequence"]
        unique_together = ["batch", "sequence"]

    def __str__(self):
        origin = "auto" if self.is_automatic else "manual"
        return f"{self.batch} #{self.sequence}: from {self.status} ({origin})"
