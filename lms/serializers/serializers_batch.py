from rest_framework import serializers

from lms.models.models_auth import CustomUser
from lms.models.models_course import BatchStatusHistory, CourseBatch
from lms.models.models_enrollment import Enrollment

# ========== Read Serializers ==========


class BatchTeacherSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = CustomUser
        fields = ["id", "email", "full_name"]
        read_only_fields = fields


class BatchStatusHistorySerializer(serializers.ModelSerializer):
    """One history entry: the status and dates a batch had before a change."""

    class Meta:
        model = BatchStatusHistory
        fields = [
            "sequence",
            "status",
            "updated_at",
            "is_automatic",
            "enrollment_start_date",
            "enrollment_end_date",
            "batch_start_date",
            "batch_end_date",
        ]
        read_only_fields = fields


class CourseBatchSerializer(serializers.ModelSerializer):
    """Serializer for course batches (read-only, for listings)."""

    course_title = serializers.CharField(source="course.title", read_only=True)
    display_name = serializers.CharField(source="get_display_name", read_only=True)
    available_seats = serializers.IntegerField(read_only=True)
    is_full = serializers.BooleanField(read_only=True)
    teachers = BatchTeacherSerializer(many=True, read_only=True)

    class Meta:
        model = CourseBatch
        fields = [
            "id",
            "course",
            "course_title",
            "batch_number",
            "name",
            "slug",
            "display_name",
            "status",
            "is_auto_updated",
            "last_status_update",
            "rolled_back_at",
            "enrollment_start_date",
            "enrollment_end_date",
            "batch_start_date",
            "batch_end_date",
            "max_students",
            "enrollment_count",
            "available_seats",
            "is_full",
            "teachers",
            "description",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CourseBatchDetailSerializer(CourseBatchSerializer):
    """Batch with its full status history, oldest first."""

    status_history = BatchStatusHistorySerializer(many=True, read_only=True)

    class Meta(CourseBatchSerializer.Meta):
        fields = CourseBatchSerializer.Meta.fields + ["status_history"]
        read_only_fields = fields


class BatchEnrollmentSerializer(serializers.ModelSerializer):
    student = BatchTeacherSerializer(source="user", read_only=True)
    enrolled_at = serializers.DateTimeField(read_only=True)

    class Meta:
        model = Enrollment
        fields = ["id", "student", "batch", "course", "status", "is_active", "enrolled_at"]
        read_only_fields = fields


# ========== Write Serializers ==========
# Input only. Persisting goes through BatchLifecycleService so numbering,
# validation and locking stay in one place.


class CourseBatchCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    enrollment_start_date = serializers.DateTimeField()
    enrollment_end_date = serializers.DateTimeField()
    batch_start_date = serializers.DateTimeField()
    batch_end_date = serializers.DateTimeField()
    max_students = serializers.IntegerField()
    is_auto_updated = serializers.BooleanField(required=False, default=True)
    teachers = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class CourseBatchUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    enrollment_start_date = serializers.DateTimeField(required=False)
    enrollment_end_date = serializers.DateTimeField(required=False)
    batch_start_date = serializers.DateTimeField(required=False)
    batch_end_date = serializers.DateTimeField(required=False)
    max_students = serializers.IntegerField(required=False)

    def validate(self, data):
        if not data:
            raise serializers.ValidationError("Provide at least one field to update.")
        return data


class BatchStatusChangeSerializer(serializers.Serializer):
    # Free text on purpose: unknown targets are rejected by the transition table.
    status = serializers.CharField(max_length=20, help_text="Target status: enrolling, ongoing or completed")


class BatchAutoManagementSerializer(serializers.Serializer):
    is_auto_updated = serializers.BooleanField()


class BatchTeachersSerializer(serializers.Serializer):
    teachers = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
