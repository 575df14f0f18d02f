"""Django app configuration for the LMS application.

Connects the batch lifecycle signal receivers on app ready.
"""

from django.apps import AppConfig


class LmsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lms"
    verbose_name = "LMS Courses & Batches"

    def ready(self):
        import lms.signals  # noqa: F401

        # The batch scheduler is not started here. Run it from a worker with
        # `python manage.py update_batch_statuses --loop`.
