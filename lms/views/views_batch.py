"""Course batch API views.

Batches are nested under their course:
``/api/courses/{course_id}/batches/``. Every write goes through
``BatchLifecycleService``; lifecycle errors propagate to
``custom_exception_handler`` which renders them in the standard envelope.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action

from lms.exceptions import BatchNotFoundError
from lms.models.models_course import Course, CourseBatch
from lms.permissions import IsCourseCoordinator, IsStudent
from lms.serializers.serializers_batch import (
    BatchAutoManagementSerializer,
    BatchEnrollmentSerializer,
    BatchStatusChangeSerializer,
    BatchStatusHistorySerializer,
    BatchTeachersSerializer,
    CourseBatchCreateSerializer,
    CourseBatchDetailSerializer,
    CourseBatchSerializer,
    CourseBatchUpdateSerializer,
)
from lms.services.batch_service import BatchLifecycleService
from lms.utils.pagination import StandardResultsSetPagination
from lms.utils.response_utils import api_response

COURSE_PARAMETER = OpenApiParameter(
    name="course_pk",
    type=str,
    location=OpenApiParameter.PATH,
    description="Course UUID",
)

COORDINATOR_ACTIONS = {
    "create",
    "partial_update",
    "destroy",
    "change_status",
    "rollback",
    "auto_management",
    "teachers",
    "students",
}


@extend_schema_view(
    list=extend_schema(
        summary="List course batches",
        description="""All batches of a course, newest batch number first.

        **Filters:** `status`, `is_auto_updated`
        **Search:** `name`
        **Ordering:** `batch_number`, `enrollment_start_date`, `batch_start_date`
        """,
        parameters=[COURSE_PARAMETER],
        tags=["Course - Batches"],
    ),
    retrieve=extend_schema(
        summary="Get batch details",
        description="Batch with teachers and full status history.",
        parameters=[COURSE_PARAMETER],
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batches"],
    ),
    create=extend_schema(
        summary="Create a batch (coordinator)",
        description="""Creates a batch in `upcoming` with the next batch number of the course.

        With `is_auto_updated` (default) the dates must be ordered:
        enrollment start < enrollment end <= batch start < batch end.
        """,
        parameters=[COURSE_PARAMETER],
        request=CourseBatchCreateSerializer,
        responses={201: CourseBatchDetailSerializer},
        tags=["Course - Batches"],
    ),
    partial_update=extend_schema(
        summary="Edit batch dates, capacity or name (coordinator)",
        parameters=[COURSE_PARAMETER],
        request=CourseBatchUpdateSerializer,
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batches"],
    ),
    destroy=extend_schema(
        summary="Delete a batch (coordinator)",
        description="Refused with 409 while the batch has enrollments.",
        parameters=[COURSE_PARAMETER],
        tags=["Course - Batches"],
    ),
)
class CourseBatchViewSet(viewsets.ModelViewSet):
    """Course batches and their lifecycle."""

    serializer_class = CourseBatchSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]
    filterset_fields = ["status", "is_auto_updated"]
    search_fields = ["name", "description"]
    ordering_fields = ["batch_number", "enrollment_start_date", "batch_start_date"]
    ordering = ["-batch_number"]

    service_class = BatchLifecycleService

    def get_permissions(self):
        if self.action in COORDINATOR_ACTIONS:
            return [IsCourseCoordinator()]
        if self.action == "enroll":
            return [IsStudent()]
        return [permissions.IsAuthenticated()]

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CourseBatchDetailSerializer
        return CourseBatchSerializer

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return CourseBatch.objects.none()
        return (
            CourseBatch.objects.filter(course_id=self.kwargs["course_pk"])
            .select_related("course")
            .prefetch_related("teachers", "status_history")
        )

    @property
    def service(self):
        return self.service_class()

    def get_course(self):
        try:
            return Course.objects.get(pk=self.kwargs["course_pk"])
        except (Course.DoesNotExist, DjangoValidationError):
            raise BatchNotFoundError("Course not found.")

    def get_object(self):
        self.get_course()
        return super().get_object()

    def batch_response(self, batch, message, status_code=status.HTTP_200_OK):
        batch = self.get_queryset().get(pk=batch.pk)
        return api_response(
            success=True,
            message=message,
            data=CourseBatchDetailSerializer(batch, context=self.get_serializer_context()).data,
            status_code=status_code,
        )

    # ----------------------------
    # CRUD
    # ----------------------------

    def list(self, request, *args, **kwargs):
        self.get_course()
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        serializer = self.get_serializer(queryset, many=True)
        return api_response(True, "Batches retrieved successfully", serializer.data)

    def retrieve(self, request, *args, **kwargs):
        batch = self.get_object()
        return api_response(True, "Batch retrieved successfully", self.get_serializer(batch).data)

    def create(self, request, *args, **kwargs):
        course = self.get_course()
        self.check_object_permissions(request, course)

        serializer = CourseBatchCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        batch = self.service.create_batch(
            course,
            dates={
                field: data.pop(field)
                for field in ("enrollment_start_date", "enrollment_end_date", "batch_start_date", "batch_end_date")
            },
            max_students=data.pop("max_students"),
            name=data.get("name", ""),
            teachers=data.get("teachers", []),
            is_auto_updated=data.get("is_auto_updated", True),
            description=data.get("description", ""),
        )
        return self.batch_response(batch, "Batch created successfully", status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        batch = self.get_object()
        serializer = CourseBatchUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        batch = self.service.update_batch(batch.pk, course_id=batch.course_id, **serializer.validated_data)
        return self.batch_response(batch, "Batch updated successfully")

    def destroy(self, request, *args, **kwargs):
        batch = self.get_object()
        self.service.delete_batch(batch.pk, course_id=batch.course_id)
        return api_response(True, "Batch deleted successfully", status_code=status.HTTP_200_OK)

    # ----------------------------
    # Lifecycle
    # ----------------------------

    @extend_schema(
        summary="Change batch status (coordinator)",
        description="""Move the batch one step along upcoming -> enrolling -> ongoing -> completed.

        A coordinator may move ahead of schedule: the boundary date of the new
        status is pulled back to now and the batch leaves automatic management.

        **Errors:**
        - 400: not the next status in the lifecycle
        - 409: another batch of the course holds that status, or the batch has
          no enrollments / teachers when starting
        """,
        parameters=[COURSE_PARAMETER],
        request=BatchStatusChangeSerializer,
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batch Lifecycle"],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        serializer = BatchStatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        batch = self.service.request_status_change(
            batch.pk, serializer.validated_data["status"], is_manual=True, course_id=batch.course_id
        )
        return self.batch_response(batch, f"Batch is now {batch.status}")

    @extend_schema(
        summary="Roll back the last status change (coordinator)",
        description="""Restores the status and dates the batch had before its most recent
        manual change. Changes made by the scheduler cannot be rolled back, and
        neither can a change that was already rolled back (409).
        """,
        parameters=[COURSE_PARAMETER],
        request=None,
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batch Lifecycle"],
    )
    @action(detail=True, methods=["post"], url_path="rollback")
    def rollback(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        batch = self.service.rollback_last_status_change(batch.pk, course_id=batch.course_id)
        return self.batch_response(batch, f"Status change rolled back; batch is {batch.status}")

    @extend_schema(
        summary="Enable or disable automatic status management (coordinator)",
        parameters=[COURSE_PARAMETER],
        request=BatchAutoManagementSerializer,
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batch Lifecycle"],
    )
    @action(detail=True, methods=["post"], url_path="auto-management")
    def auto_management(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        serializer = BatchAutoManagementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        enabled = serializer.validated_data["is_auto_updated"]
        batch = self.service.toggle_auto_management(batch.pk, enabled, course_id=batch.course_id)
        return self.batch_response(
            batch, "Automatic management enabled" if enabled else "Automatic management disabled"
        )

    @extend_schema(
        summary="Status history of a batch",
        parameters=[COURSE_PARAMETER],
        responses={200: BatchStatusHistorySerializer(many=True)},
        tags=["Course - Batch Lifecycle"],
    )
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        entries = batch.status_history.order_by("sequence")
        return api_response(
            True, "Batch history retrieved successfully", BatchStatusHistorySerializer(entries, many=True).data
        )

    # ----------------------------
    # Teachers and students
    # ----------------------------

    @extend_schema(
        summary="Replace the teachers of a batch (coordinator)",
        parameters=[COURSE_PARAMETER],
        request=BatchTeachersSerializer,
        responses={200: CourseBatchDetailSerializer},
        tags=["Course - Batches"],
    )
    @action(detail=True, methods=["post"], url_path="teachers")
    def teachers(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        serializer = BatchTeachersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        batch = self.service.assign_teachers(batch.pk, serializer.validated_data["teachers"], course_id=batch.course_id)
        return self.batch_response(batch, "Teachers updated successfully")

    @extend_schema(
        summary="Students enrolled in a batch (coordinator)",
        parameters=[COURSE_PARAMETER],
        responses={200: BatchEnrollmentSerializer(many=True)},
        tags=["Course - Batches"],
    )
    @action(detail=True, methods=["get"], url_path="students")
    def students(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        enrollments = self.service.enrollments.for_batch(batch.pk)
        return api_response(
            True, "Batch students retrieved successfully", BatchEnrollmentSerializer(enrollments, many=True).data
        )

    @extend_schema(
        summary="Enroll in a batch (student)",
        description="""Enrolls the current student. The batch must be enrolling, inside its
        enrollment window and not full.
        """,
        parameters=[COURSE_PARAMETER],
        request=None,
        responses={201: BatchEnrollmentSerializer},
        tags=["Course - Batches"],
    )
    @action(detail=True, methods=["post"], url_path="enroll")
    def enroll(self, request, course_pk=None, pk=None):
        batch = self.get_object()
        enrollment = self.service.enroll_student(batch.pk, request.user, course_id=batch.course_id)
        return api_response(
            True,
            "Enrolled successfully",
            BatchEnrollmentSerializer(enrollment).data,
            status.HTTP_201_CREATED,
        )
