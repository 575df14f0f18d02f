import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import lms.models.models_auth


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="CustomUser",
            fields=[
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                (
                    "is_superuser",
                    models.BooleanField(
                        default=False,
                        help_text="Designates that this user has all permissions without explicitly assigning them.",
                        verbose_name="superuser status",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique UUID identifier for this user.",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "first_name",
                    models.CharField(
                        blank=True, help_text="User's first name (max 150 chars).", max_length=150, verbose_name="first name"
                    ),
                ),
                (
                    "last_name",
                    models.CharField(
                        blank=True, help_text="User's last name (max 150 chars).", max_length=150, verbose_name="last name"
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        db_index=True,
                        help_text="Unique email address used for login. Must be valid email format.",
                        max_length=254,
                        unique=True,
                        verbose_name="email address",
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("superadmin", "Super Admin"),
                            ("admin", "Admin"),
                            ("coordinator", "Course Coordinator"),
                            ("teacher", "Teacher"),
                            ("student", "Student"),
                        ],
                        default="student",
                        help_text="User's role in the system (max 15 chars). Determines access permissions.",
                        max_length=15,
                    ),
                ),
                (
                    "is_staff",
                    models.BooleanField(
                        default=False, help_text="Check to allow admin site access. Staff can log into admin panel."
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True, help_text="Uncheck to disable account. Inactive users cannot log in."
                    ),
                ),
                (
                    "date_joined",
                    models.DateTimeField(auto_now_add=True, help_text="Date and time when the user account was created."),
                ),
                (
                    "groups",
                    models.ManyToManyField(
                        blank=True,
                        help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.group",
                        verbose_name="groups",
                    ),
                ),
                (
                    "user_permissions",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Specific permissions for this user.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.permission",
                        verbose_name="user permissions",
                    ),
                ),
            ],
            options={
                "verbose_name": "LMS User",
                "verbose_name_plural": "All Users",
            },
            managers=[
                ("objects", lms.models.models_auth.CustomUserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Course",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last modified")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(help_text="Course title", max_length=200)),
                (
                    "slug",
                    models.SlugField(
                        blank=True, help_text="URL-friendly version of the title", max_length=220, unique=True
                    ),
                ),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("published", "Published"), ("archived", "Archived")],
                        default="draft",
                        help_text="Publication status of the course",
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "coordinator",
                    models.ForeignKey(
                        help_text="Course coordinator allowed to manage this course's batches",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="coordinated_courses",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Course",
                "verbose_name_plural": "Courses",
                "ordering": ["title"],
                "indexes": [
                    models.Index(fields=["coordinator", "status"], name="course_coordinator_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CourseBatch",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last modified")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "batch_number",
                    models.PositiveIntegerField(
                        editable=False, help_text="Batch sequence number within the course (1, 2, 3, etc.)"
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        blank=True,
                        help_text="Optional batch name, unique within the course (e.g., 'Winter 2025')",
                        max_length=50,
                    ),
                ),
                (
                    "slug",
                    models.SlugField(
                        blank=True,
                        help_text="URL-friendly slug (auto-generated from course + batch number)",
                        max_length=300,
                        unique=True,
                    ),
                ),
                ("enrollment_start_date", models.DateTimeField(help_text="When enrollment opens")),
                ("enrollment_end_date", models.DateTimeField(help_text="When enrollment closes")),
                ("batch_start_date", models.DateTimeField(help_text="When classes start")),
                ("batch_end_date", models.DateTimeField(help_text="When classes end")),
                (
                    "max_students",
                    models.PositiveIntegerField(
                        default=30, help_text="Maximum number of students allowed in this batch"
                    ),
                ),
                (
                    "enrollment_count",
                    models.PositiveIntegerField(
                        default=0, editable=False, help_text="Number of students enrolled so far"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("upcoming", "Upcoming"),
                            ("enrolling", "Enrolling"),
                            ("ongoing", "Ongoing"),
                            ("completed", "Completed"),
                        ],
                        db_index=True,
                        default="upcoming",
                        help_text="Current lifecycle status of this batch",
                        max_length=20,
                    ),
                ),
                (
                    "is_auto_updated",
                    models.BooleanField(
                        default=True,
                        help_text="Let the scheduler move this batch through its statuses based on its dates",
                    ),
                ),
                (
                    "last_status_update",
                    models.DateTimeField(
                        default=django.utils.timezone.now, help_text="When the status last changed"
                    ),
                ),
                ("description", models.TextField(blank=True, help_text="Batch-specific notes (optional)")),
                (
                    "course",
                    models.ForeignKey(
                        help_text="The course this batch is running for",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="batches",
                        to="lms.course",
                    ),
                ),
                (
                    "teachers",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Teachers assigned to this batch",
                        related_name="teaching_batches",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Course Batch",
                "verbose_name_plural": "Course Batches",
                "ordering": ["course", "-batch_number"],
                "unique_together": {("course", "batch_number")},
                "indexes": [
                    models.Index(fields=["status", "enrollment_start_date"], name="batch_status_enroll_idx"),
                    models.Index(fields=["status", "batch_start_date"], name="batch_status_start_idx"),
                    models.Index(fields=["status", "batch_end_date"], name="batch_status_end_idx"),
                    models.Index(fields=["course", "batch_start_date"], name="batch_course_start_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["enrolling", "ongoing"])),
                        fields=("course", "status"),
                        name="unique_active_status_per_course",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("name", ""), _negated=True),
                        fields=("course", "name"),
                        name="unique_batch_name_per_course",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BatchStatusHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "sequence",
                    models.PositiveIntegerField(help_text="Position of this entry in the batch's history (1-based)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("upcoming", "Upcoming"),
                            ("enrolling", "Enrolling"),
                            ("ongoing", "Ongoing"),
                            ("completed", "Completed"),
                        ],
                        help_text="Status before the change",
                        max_length=20,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(default=django.utils.timezone.now, help_text="When the change happened"),
                ),
                (
                    "is_automatic",
                    models.BooleanField(default=False, help_text="Made by the scheduler rather than a coordinator"),
                ),
                ("enrollment_start_date", models.DateTimeField()),
                ("enrollment_end_date", models.DateTimeField()),
                ("batch_start_date", models.DateTimeField()),
                ("batch_end_date", models.DateTimeField()),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="lms.coursebatch",
                    ),
                ),
            ],
            options={
                "verbose_name": "Batch Status History",
                "verbose_name_plural": "Batch Status History",
                "ordering": ["batch", "sequence"],
                "unique_together": {("batch", "sequence")},
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last modified")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("completed", "Completed"), ("dropped", "Dropped")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "batch",
                    models.ForeignKey(
                        help_text="Course batch the student is enrolled in",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="enrollments",
                        to="lms.coursebatch",
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        help_text="Course the student is enrolled in (auto-set from batch)",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollments",
                        to="lms.course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Student enrolled in the batch",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Enrollment",
                "verbose_name_plural": "Enrollments",
                "ordering": ["-created_at"],
                "unique_together": {("user", "batch")},
                "indexes": [
                    models.Index(fields=["user", "is_active"], name="enrollment_user_active_idx"),
                    models.Index(fields=["batch", "is_active"], name="enrollment_batch_active_idx"),
                ],
            },
        ),
    ]
