"""Periodic reconciliation of batch statuses against their dates.

Each run makes three passes, in order:

1. ``upcoming -> enrolling`` for auto-managed batches whose enrollment has
   opened;
2. ``enrolling -> ongoing`` for auto-managed batches whose start date has
   passed;
3. ``ongoing -> completed`` for every batch whose end date has passed,
   manually managed or not.

Every promotion goes through ``BatchLifecycleService`` as an automatic
transition, so the same gates and history apply as for coordinator
requests. A batch the gates reject stays where it is until a later run.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from lms.exceptions import BatchError
from lms.models.models_course import BatchStatus, CourseBatch
from lms.services.batch_service import BatchLifecycleService
from lms.utils.locks import cache_lock

logger = logging.getLogger(__name__)


@dataclass
class ReconcileSummary:
    enrolling: List[str] = field(default_factory=list)
    ongoing: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    skipped: int = 0
    lock_held: bool = False

    @property
    def changed(self) -> int:
        return len(self.enrolling) + len(self.ongoing) + len(self.completed)

    def as_dict(self):
        return {
            "enrolling": self.enrolling,
            "ongoing": self.ongoing,
            "completed": self.completed,
            "skipped": self.skipped,
            "lock_held": self.lock_held,
        }


def _due_for_enrollment(now):
    return CourseBatch.objects.filter(
        status=BatchStatus.UPCOMING,
        is_auto_updated=True,
        enrollment_start_date__lte=now,
    ).order_by("enrollment_start_date", "batch_number")


def _due_for_start(now):
    return CourseBatch.objects.filter(
        status=BatchStatus.ENROLLING,
        is_auto_updated=True,
        batch_start_date__lte=now,
    ).order_by("batch_start_date", "batch_number")


def _due_for_completion(now):
    return CourseBatch.objects.filter(
        status=BatchStatus.ONGOING,
        batch_end_date__lte=now,
    ).order_by("batch_end_date", "batch_number")


PHASES = (
    (BatchStatus.ENROLLING, _due_for_enrollment),
    (BatchStatus.ONGOING, _due_for_start),
    (BatchStatus.COMPLETED, _due_for_completion),
)


def reconcile_all_batches(now=None, service=None) -> ReconcileSummary:
    """Promote every batch whose dates say it is due. Safe to call repeatedly."""
    now = now or timezone.now()
    service = service or BatchLifecycleService()
    summary = ReconcileSummary()

    with cache_lock(settings.BATCH_SCHEDULER_LOCK_KEY, settings.BATCH_SCHEDULER_LOCK_TIMEOUT) as acquired:
        if not acquired:
            logger.warning("Batch status update already running elsewhere; skipping this run")
            summary.lock_held = True
            return summary

        for target_status, due in PHASES:
            promoted = getattr(summary, target_status)
            for batch_id in list(due(now).values_list("pk", flat=True)):
                try:
                    service.request_status_change(batch_id, target_status, is_manual=False, now=now)
                except BatchError as exc:
                    summary.skipped += 1
                    logger.info("Batch %s not moved to %s: %s", batch_id, target_status, exc.message)
                except DatabaseError:
                    summary.skipped += 1
                    logger.exception("Batch %s failed to move to %s", batch_id, target_status)
                except Exception:
                    summary.skipped += 1
                    logger.exception("Unexpected error moving batch %s to %s", batch_id, target_status)
                else:
                    promoted.append(str(batch_id))

    logger.info(
        "Batch status update finished: %d enrolling, %d ongoing, %d completed, %d skipped",
        len(summary.enrolling),
        len(summary.ongoing),
        len(summary.completed),
        summary.skipped,
    )
    return summary
