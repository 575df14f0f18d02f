"""Batch lifecycle service.

Entry point for everything that changes a batch: creation, edits,
coordinator status changes, scheduler promotions, rollback, automatic
management toggling, teacher assignment and student enrollment.

Each operation runs in one transaction. Status changes lock the course row
first and then the batch row, so two coordinators racing to open enrollment
on two batches of the same course are serialized; the partial unique
constraint on ``(course, status)`` catches anything that slips past and is
reported as a conflict.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from lms.exceptions import (
    BatchConflictError,
    BatchNotFoundError,
    BatchValidationError,
)
from lms.models.models_course import BATCH_DATE_FIELDS, BatchStatus, Course, CourseBatch
from lms.services.batch_history import append_history, apply_rollback
from lms.services.batch_transitions import BatchDates, BatchSnapshot, decide_transition
from lms.services.repositories import CourseRepository, EnrollmentRepository
from lms.signals import batch_status_changed

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = BATCH_DATE_FIELDS + ("max_students", "name", "description")


class BatchLifecycleService:
    def __init__(self, courses=None, enrollments=None):
        self.courses = courses or CourseRepository()
        self.enrollments = enrollments or EnrollmentRepository()

    # ----------------------------
    # Lookups
    # ----------------------------

    def get_batch(self, batch_id, course_id=None, lock=False):
        if lock:
            queryset = CourseBatch.objects.select_for_update()
        else:
            queryset = CourseBatch.objects.select_related("course")
        if course_id is not None:
            queryset = queryset.filter(course_id=course_id)
        try:
            return queryset.get(pk=batch_id)
        except (CourseBatch.DoesNotExist, DjangoValidationError):
            raise BatchNotFoundError()

    def _get_course(self, course, lock=False):
        course_id = course.pk if isinstance(course, Course) else course
        try:
            return self.courses.get(course_id, lock=lock)
        except (Course.DoesNotExist, DjangoValidationError):
            raise BatchNotFoundError("Course not found.")

    def _lock_batch(self, batch_id, course_id=None):
        """Lock the owning course, then the batch. Call inside ``transaction.atomic``."""
        owner_id = course_id
        if owner_id is None:
            try:
                owner_id = CourseBatch.objects.filter(pk=batch_id).values_list("course_id", flat=True).first()
            except DjangoValidationError:
                raise BatchNotFoundError()
        if owner_id is None:
            raise BatchNotFoundError()
        self._get_course(owner_id, lock=True)
        return self.get_batch(batch_id, course_id=owner_id, lock=True)

    # ----------------------------
    # Create / edit / delete
    # ----------------------------

    def create_batch(
        self,
        course,
        dates,
        max_students,
        name="",
        teachers=(),
        is_auto_updated=True,
        description="",
    ):
        """Create a batch in ``upcoming`` with the next batch number of the course."""
        if isinstance(dates, BatchDates):
            dates = dates.as_dict()
        unknown = set(dates) - set(BATCH_DATE_FIELDS)
        if unknown:
            raise BatchValidationError(f"Unknown date fields: {', '.join(sorted(unknown))}")

        try:
            with transaction.atomic():
                course = self._get_course(course, lock=True)
                batch = CourseBatch(
                    course=course,
                    name=name or "",
                    description=description or "",
                    max_students=max_students,
                    is_auto_updated=is_auto_updated,
                    **{field: dates.get(field) for field in BATCH_DATE_FIELDS},
                )
                batch.batch_number = CourseBatch.next_batch_number(course.pk)
                batch.save()
                if teachers:
                    batch.teachers.set(self._resolve_teachers(teachers))
        except IntegrityError as exc:
            logger.warning("Batch creation for course %s hit a constraint: %s", course, exc)
            raise BatchValidationError("Batch conflicts with an existing batch of this course")

        logger.info("Created %s (batch #%s) for course %s", batch.pk, batch.batch_number, course.pk)
        return batch

    def update_batch(self, batch_id, course_id=None, **changes):
        """Edit dates, capacity, name or description. Status goes through ``request_status_change``."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise BatchValidationError(
                f"Fields cannot be edited: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )

        try:
            with transaction.atomic():
                batch = self._lock_batch(batch_id, course_id)
                for field, value in changes.items():
                    setattr(batch, field, value)
                batch.save()
        except IntegrityError as exc:
            logger.warning("Update of batch %s hit a constraint: %s", batch_id, exc)
            raise BatchValidationError("Batch conflicts with an existing batch of this course")
        return batch

    def delete_batch(self, batch_id, course_id=None):
        with transaction.atomic():
            batch = self._lock_batch(batch_id, course_id)
            if self.enrollments.has_enrollments(batch.pk):
                raise BatchConflictError("Cannot delete batch with existing enrollments")
            batch.delete()
        logger.info("Deleted batch %s", batch_id)

    def assign_teachers(self, batch_id, teacher_ids, course_id=None):
        with transaction.atomic():
            batch = self._lock_batch(batch_id, course_id)
            batch.teachers.set(self._resolve_teachers(teacher_ids))
        return batch

    def _resolve_teachers(self, teachers):
        User = get_user_model()
        ids = [getattr(teacher, "pk", teacher) for teacher in teachers]
        found = list(User.objects.filter(pk__in=ids, role=User.Role.TEACHER))
        if len(found) != len(set(ids)):
            raise BatchValidationError("Every assigned teacher must be an existing teacher account", field="teachers")
        return found

    # ----------------------------
    # Status lifecycle
    # ----------------------------

    def request_status_change(self, batch_id, target_status, is_manual=True, now=None, course_id=None):
        """Move a batch to ``target_status``.

        Coordinator calls (``is_manual=True``) may run ahead of schedule and
        take the batch out of automatic management. Scheduler calls must
        respect the batch dates.
        """
        now = now or timezone.now()
        try:
            with transaction.atomic():
                batch = self._lock_batch(batch_id, course_id)
                blocking = self.courses.find_batch_with_status(batch.course_id, target_status, exclude_batch_id=batch.pk)
                decision = decide_transition(
                    BatchSnapshot.from_batch(batch),
                    target_status,
                    now,
                    is_manual=is_manual,
                    blocking_label=blocking.get_display_name() if blocking else None,
                )

                append_history(batch, decision.history_entry)
                batch.status = decision.status
                for field, value in decision.dates.as_dict().items():
                    setattr(batch, field, value)
                batch.is_auto_updated = decision.is_auto_updated
                batch.last_status_update = decision.decided_at
                batch.rolled_back_at = None
                batch.save()
        except IntegrityError as exc:
            logger.warning("Concurrent %s transition for batch %s: %s", target_status, batch_id, exc)
            raise BatchConflictError(f"Another batch is currently {target_status} for this course")

        logger.info(
            "Batch %s: %s -> %s (%s)%s",
            batch.pk,
            decision.before.status,
            decision.status,
            "automatic" if decision.is_automatic else "manual",
            f", dates snapped: {sorted(decision.changed_dates)}" if decision.changed_dates else "",
        )
        transaction.on_commit(
            lambda: batch_status_changed.send(
                sender=CourseBatch,
                batch=batch,
                previous_status=decision.before.status,
                status=decision.status,
                is_automatic=decision.is_automatic,
                rollback=False,
            )
        )
        return batch

    def rollback_last_status_change(self, batch_id, now=None, course_id=None):
        """Undo the most recent manual status change of a batch.

        Only one step: a second rollback fails until another transition is made.
        """
        now = now or timezone.now()
        try:
            with transaction.atomic():
                batch = self._lock_batch(batch_id, course_id)
                undone_status = batch.status
                apply_rollback(batch, now)
        except IntegrityError as exc:
            logger.warning("Rollback of batch %s collided with a sibling: %s", batch_id, exc)
            raise BatchConflictError("Another batch of this course already holds the restored status")

        transaction.on_commit(
            lambda: batch_status_changed.send(
                sender=CourseBatch,
                batch=batch,
                previous_status=undone_status,
                status=batch.status,
                is_automatic=False,
                rollback=True,
            )
        )
        return batch

    def toggle_auto_management(self, batch_id, enabled, course_id=None):
        """Hand a batch to the scheduler, or take it back.

        Enabling re-validates the date ordering, so a batch with manually
        shuffled dates cannot be put back under automatic management.
        """
        with transaction.atomic():
            batch = self._lock_batch(batch_id, course_id)
            batch.is_auto_updated = bool(enabled)
            batch.save()
        logger.info("Batch %s automatic management %s", batch.pk, "enabled" if enabled else "disabled")
        return batch

    # ----------------------------
    # Enrollment
    # ----------------------------

    def enroll_student(self, batch_id, user, now=None, course_id=None):
        """Give ``user`` a seat in an enrolling batch and bump its counter."""
        now = now or timezone.now()
        with transaction.atomic():
            batch = self._lock_batch(batch_id, course_id)
            if batch.status != BatchStatus.ENROLLING:
                raise BatchConflictError("Batch is not open for enrollment")
            if not batch.is_enrollment_window_open(now):
                raise BatchConflictError("Enrollment period is not active")
            if batch.is_full:
                raise BatchConflictError("Batch is full")
            if self.enrollments.is_enrolled(user.pk, batch.pk):
                raise BatchConflictError("Already enrolled in this batch")

            enrollment = self.enrollments.create(user, batch)
            batch.enrollment_count += 1
            batch.save(update_fields=["enrollment_count", "updated_at"])

        logger.info("User %s enrolled in batch %s (%s/%s)", user.pk, batch.pk, batch.enrollment_count, batch.max_students)
        return enrollment
