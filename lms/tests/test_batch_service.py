"""Integration tests for BatchLifecycleService."""

from datetime import timedelta
from unittest import mock

from django.db import IntegrityError
from django.test import TestCase

from lms.exceptions import (
    BatchConflictError,
    BatchNotFoundError,
    BatchValidationError,
    InvalidTransitionError,
    RollbackUnavailableError,
)
from lms.models import BatchStatus, BatchStatusHistory, CourseBatch, Enrollment
from lms.services.batch_service import BatchLifecycleService
from lms.tests.helpers import T0, batch_dates, make_course, make_user


class BatchServiceTestCase(TestCase):
    def setUp(self):
        self.service = BatchLifecycleService()
        self.coordinator = make_user("coord_svc@example.com", role="coordinator")
        self.teacher = make_user("teacher_svc@example.com", role="teacher")
        self.student = make_user("student_svc@example.com")
        self.course = make_course(self.coordinator)

    def create(self, course=None, **kwargs):
        kwargs.setdefault("dates", batch_dates())
        kwargs.setdefault("max_students", 10)
        return self.service.create_batch(course or self.course, **kwargs)

    def open_enrollment(self, batch, now=T0):
        return self.service.request_status_change(batch.pk, BatchStatus.ENROLLING, now=now)

    def make_ready(self, batch, now=T0):
        """Open enrollment now, enroll one student and assign a teacher."""
        batch = self.open_enrollment(batch, now)
        self.service.enroll_student(batch.pk, self.student, now=now)
        return self.service.assign_teachers(batch.pk, [self.teacher.pk])


class CreateBatchTestCase(BatchServiceTestCase):
    def test_create_assigns_number_and_upcoming(self):
        batch = self.create(name="Spring Cohort", teachers=[self.teacher.pk])

        self.assertEqual(batch.batch_number, 1)
        self.assertEqual(batch.status, BatchStatus.UPCOMING)
        self.assertTrue(batch.is_auto_updated)
        self.assertEqual(list(batch.teachers.all()), [self.teacher])

    def test_batch_number_follows_highest_existing(self):
        first = self.create()
        second = self.create()
        self.assertEqual((first.batch_number, second.batch_number), (1, 2))

        self.service.delete_batch(first.pk)
        self.assertEqual(self.create().batch_number, 3)

    def test_numbering_is_per_course(self):
        other = make_course(self.coordinator, title="Go Bootcamp")
        self.create()
        self.assertEqual(self.create(course=other).batch_number, 1)

    def test_invalid_dates_rejected(self):
        dates = batch_dates()
        dates["batch_end_date"] = dates["batch_start_date"] - timedelta(days=1)
        with self.assertRaises(BatchValidationError):
            self.create(dates=dates)
        self.assertFalse(CourseBatch.objects.exists())

    def test_non_teacher_cannot_be_assigned(self):
        with self.assertRaises(BatchValidationError):
            self.create(teachers=[self.student.pk])
        self.assertFalse(CourseBatch.objects.exists())

    def test_missing_course(self):
        with self.assertRaises(BatchNotFoundError):
            self.create(course="00000000-0000-0000-0000-000000000000")

    def test_update_batch_fields(self):
        batch = self.create()
        batch = self.service.update_batch(batch.pk, max_students=20, name="Evening")
        self.assertEqual(batch.max_students, 20)
        self.assertEqual(batch.name, "Evening")

    def test_update_constraint_race_becomes_validation_error(self):
        batch = self.create(name="Evening")
        with mock.patch.object(CourseBatch, "save", side_effect=IntegrityError("duplicate key")):
            with self.assertRaises(BatchValidationError):
                self.service.update_batch(batch.pk, name="Morning")
        batch.refresh_from_db()
        self.assertEqual(batch.name, "Evening")

    def test_update_refuses_status(self):
        batch = self.create()
        with self.assertRaises(BatchValidationError):
            self.service.update_batch(batch.pk, status=BatchStatus.ONGOING)

    def test_unknown_batch(self):
        with self.assertRaises(BatchNotFoundError):
            self.service.request_status_change("00000000-0000-0000-0000-000000000000", "enrolling")
        with self.assertRaises(BatchNotFoundError):
            self.service.rollback_last_status_change("not-a-uuid")


class StatusChangeTestCase(BatchServiceTestCase):
    def test_start_without_enrollments_is_refused(self):
        batch = self.open_enrollment(self.create())
        self.service.assign_teachers(batch.pk, [self.teacher.pk])

        with self.assertRaises(BatchConflictError) as ctx:
            self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0)
        self.assertEqual(ctx.exception.message, "Cannot start batch: no enrollments")
        batch.refresh_from_db()
        self.assertEqual(batch.status, BatchStatus.ENROLLING)

    def test_second_enrolling_batch_is_refused(self):
        first = self.open_enrollment(self.create())
        second = self.create()

        with self.assertRaises(BatchConflictError) as ctx:
            self.open_enrollment(second)
        self.assertIn("Batch 1", ctx.exception.message)
        second.refresh_from_db()
        self.assertEqual(second.status, BatchStatus.UPCOMING)
        self.assertEqual(second.status_history.count(), 0)
        self.assertEqual(first.status, BatchStatus.ENROLLING)

    def test_second_ongoing_batch_is_refused(self):
        first = self.make_ready(self.create())
        self.service.request_status_change(first.pk, BatchStatus.ONGOING, now=T0)
        second = self.make_ready(self.create())

        with self.assertRaises(BatchConflictError) as ctx:
            self.service.request_status_change(second.pk, BatchStatus.ONGOING, now=T0)
        self.assertEqual(ctx.exception.blocking_batch, "Batch 1")
        second.refresh_from_db()
        self.assertEqual(second.status, BatchStatus.ENROLLING)
        self.assertEqual(second.status_history.count(), 1)

    def test_enrolling_and_ongoing_may_coexist(self):
        first = self.make_ready(self.create())
        self.service.request_status_change(first.pk, BatchStatus.ONGOING, now=T0)
        second = self.open_enrollment(self.create())
        self.assertEqual(second.status, BatchStatus.ENROLLING)

    def test_early_start_snaps_batch_start_date(self):
        batch = self.make_ready(self.create())
        now = batch.batch_start_date - timedelta(days=5)

        batch = self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=now)

        batch.refresh_from_db()
        self.assertEqual(batch.status, BatchStatus.ONGOING)
        self.assertEqual(batch.batch_start_date, now)
        self.assertEqual(batch.last_status_update, now)
        self.assertFalse(batch.is_auto_updated)

    def test_manual_transition_records_history(self):
        batch = self.create()
        original_start = batch.enrollment_start_date
        self.open_enrollment(batch)

        entry = BatchStatusHistory.objects.get(batch=batch)
        self.assertEqual(entry.sequence, 1)
        self.assertEqual(entry.status, BatchStatus.UPCOMING)
        self.assertFalse(entry.is_automatic)
        self.assertEqual(entry.enrollment_start_date, original_start)

    def test_invalid_transition(self):
        batch = self.create()
        with self.assertRaises(InvalidTransitionError):
            self.service.request_status_change(batch.pk, BatchStatus.COMPLETED, now=T0)
        with self.assertRaises(InvalidTransitionError):
            self.service.request_status_change(batch.pk, "cancelled", now=T0)

    def test_constraint_race_becomes_conflict(self):
        batch = self.create()
        with mock.patch.object(CourseBatch, "save", side_effect=IntegrityError("duplicate key")):
            with self.assertRaises(BatchConflictError):
                self.open_enrollment(batch)
        self.assertEqual(BatchStatusHistory.objects.count(), 0)

    def test_status_change_signal_sent_on_commit(self):
        batch = self.create()
        received = []

        def listener(sender, **kwargs):
            received.append((kwargs["previous_status"], kwargs["status"], kwargs["rollback"]))

        from lms.signals import batch_status_changed

        batch_status_changed.connect(listener)
        self.addCleanup(batch_status_changed.disconnect, listener)
        with self.captureOnCommitCallbacks(execute=True):
            self.open_enrollment(batch)

        self.assertEqual(received, [(BatchStatus.UPCOMING, BatchStatus.ENROLLING, False)])


class RollbackTestCase(BatchServiceTestCase):
    def test_rollback_restores_pre_transition_state(self):
        batch = self.make_ready(self.create())
        batch.refresh_from_db()
        before = {
            "enrollment_start_date": batch.enrollment_start_date,
            "enrollment_end_date": batch.enrollment_end_date,
            "batch_start_date": batch.batch_start_date,
            "batch_end_date": batch.batch_end_date,
        }
        self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0 + timedelta(days=2))

        batch = self.service.rollback_last_status_change(batch.pk, now=T0 + timedelta(days=3))

        batch.refresh_from_db()
        self.assertEqual(batch.status, BatchStatus.ENROLLING)
        for field, value in before.items():
            self.assertEqual(getattr(batch, field), value, field)
        self.assertEqual(batch.status_history.count(), 1)

    def test_rollback_without_history(self):
        batch = self.create()
        with self.assertRaises(RollbackUnavailableError) as ctx:
            self.service.rollback_last_status_change(batch.pk)
        self.assertEqual(ctx.exception.reason, RollbackUnavailableError.NO_HISTORY)

    def test_rollback_twice_fails(self):
        batch = self.open_enrollment(self.create())
        self.service.rollback_last_status_change(batch.pk)

        with self.assertRaises(RollbackUnavailableError):
            self.service.rollback_last_status_change(batch.pk)
        batch.refresh_from_db()
        self.assertEqual(batch.status, BatchStatus.UPCOMING)

    def test_automatic_change_cannot_be_rolled_back(self):
        batch = self.create()
        self.service.request_status_change(
            batch.pk, BatchStatus.ENROLLING, is_manual=False, now=batch.enrollment_start_date
        )
        with self.assertRaises(RollbackUnavailableError) as ctx:
            self.service.rollback_last_status_change(batch.pk)
        self.assertEqual(ctx.exception.reason, RollbackUnavailableError.LAST_CHANGE_AUTOMATIC)

    def test_second_rollback_after_two_manual_changes_fails(self):
        batch = self.make_ready(self.create())
        self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0)

        batch = self.service.rollback_last_status_change(batch.pk, now=T0 + timedelta(hours=1))
        self.assertEqual(batch.status, BatchStatus.ENROLLING)
        self.assertEqual(batch.rolled_back_at, T0 + timedelta(hours=1))

        with self.assertRaises(RollbackUnavailableError) as ctx:
            self.service.rollback_last_status_change(batch.pk)
        self.assertEqual(ctx.exception.reason, RollbackUnavailableError.ALREADY_ROLLED_BACK)
        batch.refresh_from_db()
        self.assertEqual(batch.status, BatchStatus.ENROLLING)
        self.assertEqual(batch.status_history.count(), 1)

    def test_new_transition_allows_another_rollback(self):
        batch = self.make_ready(self.create())
        self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0)
        self.service.rollback_last_status_change(batch.pk, now=T0)

        batch = self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0 + timedelta(hours=1))
        self.assertIsNone(batch.rolled_back_at)

        batch = self.service.rollback_last_status_change(batch.pk)
        self.assertEqual(batch.status, BatchStatus.ENROLLING)

    def test_rollback_into_taken_status_is_rejected(self):
        first = self.make_ready(self.create())
        self.service.request_status_change(first.pk, BatchStatus.ONGOING, now=T0)
        second = self.open_enrollment(self.create())
        self.assertEqual(second.status, BatchStatus.ENROLLING)

        # Undoing the start would put the first batch back into enrolling.
        with self.assertRaises(BatchValidationError):
            self.service.rollback_last_status_change(first.pk)
        first.refresh_from_db()
        self.assertEqual(first.status, BatchStatus.ONGOING)


class AutoManagementTestCase(BatchServiceTestCase):
    def test_toggle(self):
        batch = self.create()
        batch = self.service.toggle_auto_management(batch.pk, False)
        self.assertFalse(batch.is_auto_updated)
        batch = self.service.toggle_auto_management(batch.pk, True)
        self.assertTrue(batch.is_auto_updated)

    def test_cannot_reenable_with_disordered_dates(self):
        batch = self.create(is_auto_updated=False)
        self.service.update_batch(batch.pk, enrollment_start_date=batch.batch_end_date + timedelta(days=1))

        with self.assertRaises(BatchValidationError):
            self.service.toggle_auto_management(batch.pk, True)
        batch.refresh_from_db()
        self.assertFalse(batch.is_auto_updated)


class EnrollmentTestCase(BatchServiceTestCase):
    def test_enroll_increments_count(self):
        batch = self.open_enrollment(self.create())
        enrollment = self.service.enroll_student(batch.pk, self.student, now=T0)

        batch.refresh_from_db()
        self.assertEqual(batch.enrollment_count, 1)
        self.assertEqual(enrollment.course_id, self.course.pk)

    def test_enroll_requires_enrolling_status(self):
        batch = self.create()
        with self.assertRaises(BatchConflictError):
            self.service.enroll_student(batch.pk, self.student, now=batch.enrollment_start_date)

    def test_enroll_outside_window(self):
        batch = self.open_enrollment(self.create())
        with self.assertRaises(BatchConflictError) as ctx:
            self.service.enroll_student(batch.pk, self.student, now=batch.enrollment_end_date + timedelta(hours=1))
        self.assertEqual(ctx.exception.message, "Enrollment period is not active")

    def test_duplicate_enrollment(self):
        batch = self.open_enrollment(self.create())
        self.service.enroll_student(batch.pk, self.student, now=T0)
        with self.assertRaises(BatchConflictError):
            self.service.enroll_student(batch.pk, self.student, now=T0)
        self.assertEqual(Enrollment.objects.count(), 1)

    def test_full_batch(self):
        batch = self.open_enrollment(self.create(max_students=5))
        for i in range(5):
            self.service.enroll_student(batch.pk, make_user(f"s{i}_full@example.com"), now=T0)
        with self.assertRaises(BatchConflictError) as ctx:
            self.service.enroll_student(batch.pk, self.student, now=T0)
        self.assertEqual(ctx.exception.message, "Batch is full")

    def test_delete_blocked_by_enrollments(self):
        batch = self.open_enrollment(self.create())
        self.service.enroll_student(batch.pk, self.student, now=T0)
        with self.assertRaises(BatchConflictError):
            self.service.delete_batch(batch.pk)
        self.assertTrue(CourseBatch.objects.filter(pk=batch.pk).exists())


class CourseActiveBatchTestCase(BatchServiceTestCase):
    def test_enrolling_batch_blocks_new_enrollment_round(self):
        self.assertTrue(self.course.can_start_new_batch())
        self.assertIsNone(self.course.get_active_batch())

        batch = self.open_enrollment(self.create())

        self.assertFalse(self.course.can_start_new_batch())
        self.assertEqual(self.course.get_active_batch(), batch)

    def test_ongoing_batch_does_not_block_new_enrollment_round(self):
        batch = self.make_ready(self.create())
        self.service.request_status_change(batch.pk, BatchStatus.ONGOING, now=T0)

        self.assertTrue(self.course.can_start_new_batch())
        self.assertEqual(self.course.get_active_batch(), batch)
