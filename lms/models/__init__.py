"""Model package exports.

Provides convenient imports for commonly used models.
"""

from .models_auth import CustomUser
from .models_course import (
    BATCH_DATE_FIELDS,
    EXCLUSIVE_STATUSES,
    BatchStatus,
    BatchStatusHistory,
    Course,
    CourseBatch,
)
from .models_enrollment import Enrollment
