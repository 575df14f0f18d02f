"""Per-save invariant checks for course batches.

``validate_batch`` runs from ``CourseBatch.save`` and raises
``BatchValidationError`` before anything is written.

Date ordering (``enrollment_start < enrollment_end <= batch_start <
batch_end``) is only checked for batches under automatic management. A
coordinator who takes a batch over manually may move dates freely, including
the snapping done by early transitions. Only the four-date ordering is
relaxed: capacity, name and status uniqueness apply to every batch.
"""

import logging

from django.conf import settings

from lms.exceptions import BatchValidationError
from lms.models.models_course import BATCH_DATE_FIELDS, EXCLUSIVE_STATUSES

logger = logging.getLogger(__name__)


def validate_dates(batch):
    for field in BATCH_DATE_FIELDS:
        if getattr(batch, field) is None:
            raise BatchValidationError(f"{field} is required", field=field)

    if not batch.is_auto_updated:
        return

    if batch.enrollment_start_date >= batch.enrollment_end_date:
        raise BatchValidationError(
            "Enrollment start date must be before enrollment end date", field="enrollment_start_date"
        )
    if batch.enrollment_end_date > batch.batch_start_date:
        raise BatchValidationError(
            "Enrollment must end on or before the batch start date", field="enrollment_end_date"
        )
    if batch.batch_start_date >= batch.batch_end_date:
        raise BatchValidationError("Batch start date must be before batch end date", field="batch_end_date")


def validate_capacity(batch):
    low, high = settings.BATCH_MIN_STUDENTS, settings.BATCH_MAX_STUDENTS
    if batch.max_students is None or not low <= batch.max_students <= high:
        raise BatchValidationError(
            f"Maximum students must be between {low} and {high}", field="max_students"
        )
    if batch.enrollment_count > batch.max_students:
        raise BatchValidationError("Batch has reached maximum student capacity", field="enrollment_count")


def validate_uniqueness(batch):
    siblings = type(batch).objects.filter(course_id=batch.course_id).exclude(pk=batch.pk)

    if batch.name:
        if not 3 <= len(batch.name) <= 50:
            raise BatchValidationError("Batch name must be between 3 and 50 characters", field="name")
        if siblings.filter(name=batch.name).exists():
            raise BatchValidationError("Batch name must be unique within the course", field="name")

    if batch.status in EXCLUSIVE_STATUSES:
        holder = siblings.filter(status=batch.status).first()
        if holder is not None:
            raise BatchValidationError(
                f"{holder.get_display_name()} is already {batch.status} for this course",
                field="status",
            )


def validate_batch(batch):
    """Run every invariant check; the first violation wins."""
    try:
        validate_dates(batch)
        validate_capacity(batch)
        validate_uniqueness(batch)
    except BatchValidationError as exc:
        logger.debug("Batch %s rejected on save: %s", batch.pk, exc.message)
        raise
