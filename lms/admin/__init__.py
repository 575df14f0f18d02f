"""Admin site registrations for the LMS app."""

from .admin_auth import *  # noqa: F403
from .admin_course import *  # noqa: F403
