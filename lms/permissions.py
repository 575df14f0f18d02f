"""Role-based permission classes for course batch management.

Coordinators (and admins) manage batches; a coordinator may only touch the
batches of courses they coordinate. Students may enroll.
"""

from rest_framework import permissions

MANAGER_ROLES = ("coordinator", "admin", "superadmin")


class IsCourseCoordinator(permissions.BasePermission):
    """
    Only the coordinator of the batch's course, or an admin, can change it.
    """
    message = "Only the course coordinator can manage its batches."

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in MANAGER_ROLES

    def has_object_permission(self, request, view, obj):
        if request.user.role in ("admin", "superadmin"):
            return True
        course = getattr(obj, "course", obj)
        return course.coordinator_id == request.user.pk


class IsStudent(permissions.BasePermission):
    """
    Only students can access.
    """
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == "student"
