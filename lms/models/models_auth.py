"""Authentication-related models: CustomUser and its manager.

Users carry a role that decides what they may do with courses and batches:
coordinators manage the batches of their courses, teachers are assigned to
batches and students enroll in them.
"""

import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils.translation import gettext_lazy as _

# -----------------------------------------------------------
# Custom Manager
# -----------------------------------------------------------


class CustomUserManager(BaseUserManager):
    """
    Custom user model manager where email is the unique identifier.
    """

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_("The Email field must be set"))

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password, **extra_fields):
        """
        Create and save a SuperUser with the given email and password.
        Ensures the superuser has the correct flags and the SUPERADMIN role.
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("role", CustomUser.Role.SUPERADMIN)

        if extra_fields.get("role") != CustomUser.Role.SUPERADMIN:
            raise ValueError("Superuser must have role of Super Admin.")
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **extra_fields)


# -----------------------------------------------------------
# CustomUser Model
# -----------------------------------------------------------


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """Custom user model with email authentication and role-based access."""

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False, help_text="Unique UUID identifier for this user."
    )

    class Role(models.TextChoices):
        SUPERADMIN = "superadmin", _("Super Admin")
        ADMIN = "admin", _("Admin")
        COORDINATOR = "coordinator", _("Course Coordinator")
        TEACHER = "teacher", _("Teacher")
        STUDENT = "student", _("Student")

    first_name = models.CharField(_("first name"), max_length=150, blank=True, help_text="User's first name (max 150 chars).")
    last_name = models.CharField(_("last name"), max_length=150, blank=True, help_text="User's last name (max 150 chars).")
    email = models.EmailField(
        _("email address"),
        unique=True,
        db_index=True,
        help_text="Unique email address used for login. Must be valid email format.",
    )

    role = models.CharField(
        max_length=15,
        choices=Role.choices,
        default=Role.STUDENT,
        help_text="User's role in the system (max 15 chars). Determines access permissions.",
    )

    is_staff = models.BooleanField(
        default=False, help_text=_("Check to allow admin site access. Staff can log into admin panel.")
    )
    is_active = models.BooleanField(default=True, help_text=_("Uncheck to disable account. Inactive users cannot log in."))

    date_joined = models.DateTimeField(auto_now_add=True, help_text="Date and time when the user account was created.")

    USERNAME_FIELD = "email"

    REQUIRED_FIELDS = ["first_name", "last_name"]

    objects = CustomUserManager()

    class Meta:
        verbose_name = "LMS User"
        verbose_name_plural = "All Users"

    def __str__(self):
        return self.get_full_name or self.email

    @property
    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
