"""Read-side lookups the batch lifecycle needs from courses and enrollments.

The lifecycle service never walks Course -> Batch -> Enrollment object
graphs. It asks these repositories by id, which keeps the dependency one-way
and lets tests swap in fakes.
"""

from lms.models.models_course import EXCLUSIVE_STATUSES, Course, CourseBatch
from lms.models.models_enrollment import Enrollment


class CourseRepository:
    """Course and sibling-batch queries."""

    def get(self, course_id, lock=False):
        queryset = Course.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        return queryset.get(pk=course_id)

    def find_batch_with_status(self, course_id, status, exclude_batch_id=None):
        """Return the sibling batch holding ``status`` in the course, if any."""
        if status not in EXCLUSIVE_STATUSES:
            return None
        queryset = CourseBatch.objects.filter(course_id=course_id, status=status)
        if exclude_batch_id is not None:
            queryset = queryset.exclude(pk=exclude_batch_id)
        return queryset.first()


class EnrollmentRepository:
    """Enrollment queries keyed by batch."""

    def has_enrollments(self, batch_id):
        return Enrollment.objects.filter(batch_id=batch_id).exists()

    def is_enrolled(self, user_id, batch_id):
        return Enrollment.objects.filter(user_id=user_id, batch_id=batch_id).exists()

    def for_batch(self, batch_id):
        return Enrollment.objects.filter(batch_id=batch_id).select_related("user").order_by("created_at")

    def create(self, user, batch):
        return Enrollment.objects.create(user=user, batch=batch, course_id=batch.course_id)
