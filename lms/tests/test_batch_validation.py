"""Tests for the per-save batch invariants."""

from datetime import timedelta

from django.test import TestCase, override_settings

from lms.exceptions import BatchValidationError
from lms.models import BatchStatus, CourseBatch
from lms.tests.helpers import T0, batch_dates, make_batch, make_course, make_user


class BatchDateValidationTestCase(TestCase):
    def setUp(self):
        self.coordinator = make_user("coord_val@example.com", role="coordinator")
        self.course = make_course(self.coordinator)

    def test_ordered_dates_are_accepted(self):
        batch = make_batch(self.course)
        self.assertEqual(batch.status, BatchStatus.UPCOMING)
        self.assertEqual(batch.batch_number, 1)

    def test_enrollment_end_may_equal_batch_start(self):
        dates = batch_dates(gap=0)
        self.assertEqual(dates["enrollment_end_date"], dates["batch_start_date"])
        make_batch(self.course, **dates)

    def test_enrollment_start_after_end_is_rejected(self):
        dates = batch_dates()
        dates["enrollment_start_date"] = dates["enrollment_end_date"]
        with self.assertRaises(BatchValidationError) as ctx:
            make_batch(self.course, **dates)
        self.assertEqual(ctx.exception.field, "enrollment_start_date")

    def test_enrollment_ending_after_batch_start_is_rejected(self):
        dates = batch_dates()
        dates["enrollment_end_date"] = dates["batch_start_date"] + timedelta(hours=1)
        with self.assertRaises(BatchValidationError):
            make_batch(self.course, **dates)

    def test_batch_end_before_start_is_rejected(self):
        dates = batch_dates()
        dates["batch_end_date"] = dates["batch_start_date"]
        with self.assertRaises(BatchValidationError):
            make_batch(self.course, **dates)
        self.assertFalse(CourseBatch.objects.exists())

    def test_missing_date_is_rejected(self):
        dates = batch_dates()
        dates["batch_end_date"] = None
        with self.assertRaises(BatchValidationError) as ctx:
            make_batch(self.course, **dates)
        self.assertEqual(ctx.exception.field, "batch_end_date")


class ManualModeValidationTestCase(TestCase):
    """Manual management relaxes the date ordering and nothing else."""

    def setUp(self):
        self.coordinator = make_user("coord_manual@example.com", role="coordinator")
        self.course = make_course(self.coordinator)

    def test_manual_batch_skips_date_ordering(self):
        dates = batch_dates()
        dates["enrollment_start_date"] = dates["batch_end_date"] + timedelta(days=1)
        batch = make_batch(self.course, is_auto_updated=False, **dates)
        self.assertFalse(batch.is_auto_updated)

    def test_manual_batch_still_enforces_capacity(self):
        batch = make_batch(self.course, max_students=5, is_auto_updated=False)
        batch.enrollment_count = 6
        with self.assertRaises(BatchValidationError) as ctx:
            batch.save()
        self.assertEqual(ctx.exception.message, "Batch has reached maximum student capacity")

    def test_reenabling_auto_management_revalidates_dates(self):
        dates = batch_dates()
        dates["batch_start_date"], dates["batch_end_date"] = dates["batch_end_date"], dates["batch_start_date"]
        batch = make_batch(self.course, is_auto_updated=False, **dates)
        batch.is_auto_updated = True
        with self.assertRaises(BatchValidationError):
            batch.save()


class CapacityValidationTestCase(TestCase):
    def setUp(self):
        self.coordinator = make_user("coord_cap@example.com", role="coordinator")
        self.course = make_course(self.coordinator)

    def test_capacity_bounds(self):
        make_batch(self.course, max_students=5)
        make_batch(self.course, max_students=50)
        for bad in (4, 51, 0):
            with self.subTest(max_students=bad):
                with self.assertRaises(BatchValidationError) as ctx:
                    make_batch(self.course, max_students=bad)
                self.assertEqual(ctx.exception.field, "max_students")

    @override_settings(BATCH_MIN_STUDENTS=1, BATCH_MAX_STUDENTS=3)
    def test_capacity_bounds_come_from_settings(self):
        make_batch(self.course, max_students=1)
        with self.assertRaises(BatchValidationError) as ctx:
            make_batch(self.course, max_students=4)
        self.assertIn("between 1 and 3", ctx.exception.message)

    def test_enrollment_count_may_reach_capacity(self):
        batch = make_batch(self.course, max_students=5)
        batch.enrollment_count = 5
        batch.save()
        self.assertTrue(batch.is_full)
        self.assertEqual(batch.available_seats, 0)


class UniquenessValidationTestCase(TestCase):
    def setUp(self):
        self.coordinator = make_user("coord_uniq@example.com", role="coordinator")
        self.course = make_course(self.coordinator)
        self.other_course = make_course(self.coordinator, title="Data Science")

    def test_name_unique_within_course(self):
        make_batch(self.course, name="Winter 2025")
        with self.assertRaises(BatchValidationError) as ctx:
            make_batch(self.course, name="Winter 2025")
        self.assertEqual(ctx.exception.field, "name")
        make_batch(self.other_course, name="Winter 2025")

    def test_name_length(self):
        with self.assertRaises(BatchValidationError):
            make_batch(self.course, name="ab")

    def test_unnamed_batches_do_not_collide(self):
        first = make_batch(self.course)
        second = make_batch(self.course)
        self.assertEqual(first.get_display_name(), "Batch 1")
        self.assertEqual(second.get_display_name(), "Batch 2")

    def test_saving_a_second_enrolling_batch_is_rejected(self):
        first = make_batch(self.course)
        second = make_batch(self.course)
        CourseBatch.objects.filter(pk=first.pk).update(status=BatchStatus.ENROLLING)

        second.status = BatchStatus.ENROLLING
        with self.assertRaises(BatchValidationError) as ctx:
            second.save()
        self.assertEqual(ctx.exception.field, "status")

    def test_new_batches_always_start_upcoming(self):
        batch = make_batch(self.course, status=BatchStatus.ONGOING)
        self.assertEqual(batch.status, BatchStatus.UPCOMING)
        self.assertEqual(batch.slug, f"{self.course.slug}-batch-1")
        self.assertLess(T0, batch.enrollment_start_date)
