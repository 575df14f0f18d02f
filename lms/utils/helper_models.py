"""Abstract model helpers shared by LMS models."""

from django.db import models


class TimeStampedModel(models.Model):
    """Adds created_at / updated_at bookkeeping to a model."""

    created_at = models.DateTimeField(auto_now_add=True, help_text="When this record was created")
    updated_at = models.DateTimeField(auto_now=True, help_text="When this record was last modified")

    class Meta:
        abstract = True
