"""Status history and single-step rollback for course batches.

Every accepted transition appends one ``BatchStatusHistory`` row holding the
status and the four dates the batch had *before* the change. Rolling back
takes the last row, puts the batch back to that status and those dates, and
deletes the row. A rollback is not a transition: it appends nothing. It
stamps ``rolled_back_at`` on the batch instead, and a second rollback is
refused until the next accepted transition clears the stamp.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from django.db.models import Max

from lms.exceptions import RollbackUnavailableError
from lms.models.models_course import BatchStatusHistory
from lms.services.batch_transitions import BatchDates, HistoryEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RollbackPlan:
    entry_id: object
    status: str
    dates: BatchDates


def append_history(batch, entry: HistoryEntry) -> BatchStatusHistory:
    """Persist ``entry`` as the newest history row of ``batch``."""
    highest = batch.status_history.aggregate(highest=Max("sequence"))["highest"]
    return BatchStatusHistory.objects.create(
        batch=batch,
        sequence=(highest or 0) + 1,
        status=entry.status,
        updated_at=entry.updated_at,
        is_automatic=entry.is_automatic,
        **entry.dates.as_dict(),
    )


def get_history(batch) -> Sequence[BatchStatusHistory]:
    return list(batch.status_history.order_by("sequence"))


def plan_rollback(entries: Sequence[BatchStatusHistory], already_rolled_back: bool = False) -> RollbackPlan:
    """Decide what undoing the newest of ``entries`` restores.

    The last entry holds exactly the pre-change status and dates of the change
    being undone, so both come from it.
    """
    if already_rolled_back:
        raise RollbackUnavailableError(RollbackUnavailableError.ALREADY_ROLLED_BACK)
    if not entries:
        raise RollbackUnavailableError(RollbackUnavailableError.NO_HISTORY)

    last = entries[-1]
    if last.is_automatic:
        raise RollbackUnavailableError(RollbackUnavailableError.LAST_CHANGE_AUTOMATIC)

    return RollbackPlan(entry_id=last.pk, status=last.status, dates=BatchDates.from_instance(last))


def apply_rollback(batch, now: datetime, plan: Optional[RollbackPlan] = None):
    """Undo the last manual transition of ``batch``.

    Must run inside the caller's transaction with the batch row locked. The
    save re-validates the restored state but appends no history.
    """
    if plan is None:
        plan = plan_rollback(get_history(batch), already_rolled_back=batch.rolled_back_at is not None)

    undone_status = batch.status
    batch.status = plan.status
    for field, value in plan.dates.as_dict().items():
        setattr(batch, field, value)
    batch.last_status_update = now
    batch.rolled_back_at = now
    batch.save()

    BatchStatusHistory.objects.filter(pk=plan.entry_id).delete()
    logger.info(
        "Rolled back batch %s from %s to %s", batch.pk, undone_status, plan.status
    )
    return batch
