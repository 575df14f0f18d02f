"""Shared builders for batch lifecycle tests."""

from datetime import datetime, timedelta, timezone as dt_timezone

from lms.models import Course, CourseBatch, CustomUser

T0 = datetime(2025, 3, 1, 10, 0, tzinfo=dt_timezone.utc)


def make_user(email, role="student", **extra):
    return CustomUser.objects.create_user(
        email=email, password="testpass123", role=role, first_name="Test", last_name=role.title(), **extra
    )


def make_course(coordinator, title="Python Bootcamp"):
    return Course.objects.create(title=title, coordinator=coordinator, status="published")


def batch_dates(base=T0, enroll_in=1, enroll_days=9, gap=0, run_days=30):
    """Ordered dates: enrollment opens ``enroll_in`` days after ``base``."""
    enrollment_start = base + timedelta(days=enroll_in)
    enrollment_end = enrollment_start + timedelta(days=enroll_days)
    batch_start = enrollment_end + timedelta(days=gap)
    return {
        "enrollment_start_date": enrollment_start,
        "enrollment_end_date": enrollment_end,
        "batch_start_date": batch_start,
        "batch_end_date": batch_start + timedelta(days=run_days),
    }


def make_batch(course, max_students=10, **fields):
    """Create a batch directly through the model (numbering and validation still apply)."""
    dates = batch_dates()
    dates.update({k: fields.pop(k) for k in list(fields) if k in dates})
    return CourseBatch.objects.create(course=course, max_students=max_students, **dates, **fields)
