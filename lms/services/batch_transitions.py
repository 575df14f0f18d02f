"""Batch status transition engine.

Pure decision logic: given a snapshot of a batch, the requested status, the
current time and whether a coordinator or the scheduler is asking, decide
whether the change is allowed and what it does to the batch. Nothing here
touches the database. ``BatchLifecycleService`` gathers the inputs (sibling
lookups, teacher count) and applies the returned decision.

State machine::

    upcoming -> enrolling -> ongoing -> completed

Gates, checked in this order once the transition itself is legal:

1. mutual exclusion: another batch of the course already holds the target
   status (enrolling/ongoing only);
2. readiness for ongoing: at least one enrollment and one teacher;
3. schedule (automatic only): the boundary date has been reached;
4. manual early transition: the boundary date is snapped to ``now``.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from lms.exceptions import BatchConflictError, InvalidTransitionError
from lms.models.models_course import BATCH_DATE_FIELDS, EXCLUSIVE_STATUSES, BatchStatus

ALLOWED_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    BatchStatus.UPCOMING: (BatchStatus.ENROLLING,),
    BatchStatus.ENROLLING: (BatchStatus.ONGOING,),
    BatchStatus.ONGOING: (BatchStatus.COMPLETED,),
    BatchStatus.COMPLETED: (),
}

# Date that marks the scheduled moment of entering each status
SCHEDULE_BOUNDARIES: Dict[str, str] = {
    BatchStatus.ENROLLING: "enrollment_start_date",
    BatchStatus.ONGOING: "batch_start_date",
    BatchStatus.COMPLETED: "batch_end_date",
}

SCHEDULE_GATE_MESSAGES: Dict[str, str] = {
    BatchStatus.ENROLLING: "Cannot start enrollment before scheduled date",
    BatchStatus.ONGOING: "Cannot start batch before scheduled date",
    BatchStatus.COMPLETED: "Cannot complete batch before end date",
}


@dataclass(frozen=True)
class BatchDates:
    enrollment_start_date: datetime
    enrollment_end_date: datetime
    batch_start_date: datetime
    batch_end_date: datetime

    @classmethod
    def from_instance(cls, obj) -> "BatchDates":
        """Read the four dates off a batch or a history entry."""
        return cls(**{field: getattr(obj, field) for field in BATCH_DATE_FIELDS})

    def as_dict(self) -> Dict[str, datetime]:
        return dataclasses.asdict(self)

    def replace(self, **changes) -> "BatchDates":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class BatchSnapshot:
    """Everything the engine needs to know about a batch, captured up front."""

    batch_id: object
    label: str
    status: str
    dates: BatchDates
    enrollment_count: int
    teacher_count: int
    is_auto_updated: bool

    @classmethod
    def from_batch(cls, batch, teacher_count: Optional[int] = None) -> "BatchSnapshot":
        if teacher_count is None:
            teacher_count = batch.teachers.count()
        return cls(
            batch_id=batch.pk,
            label=batch.get_display_name(),
            status=batch.status,
            dates=BatchDates.from_instance(batch),
            enrollment_count=batch.enrollment_count,
            teacher_count=teacher_count,
            is_auto_updated=batch.is_auto_updated,
        )


@dataclass(frozen=True)
class HistoryEntry:
    """What gets appended to the batch's status history."""

    status: str
    updated_at: datetime
    is_automatic: bool
    dates: BatchDates


@dataclass(frozen=True)
class TransitionDecision:
    """An accepted transition: the state before, and the state to write."""

    before: BatchSnapshot
    status: str
    dates: BatchDates
    is_auto_updated: bool
    decided_at: datetime
    history_entry: HistoryEntry

    @property
    def is_automatic(self) -> bool:
        return self.history_entry.is_automatic

    @property
    def changed_dates(self) -> Dict[str, datetime]:
        before = self.before.dates.as_dict()
        return {field: value for field, value in self.dates.as_dict().items() if before[field] != value}


def allowed_targets(status: str) -> Tuple[str, ...]:
    return ALLOWED_TRANSITIONS.get(status, ())


def check_transition(current_status: str, target_status: str) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is in the table."""
    if target_status not in allowed_targets(current_status):
        raise InvalidTransitionError(current_status, target_status)


def check_mutual_exclusion(target_status: str, blocking_label: Optional[str]) -> None:
    if target_status in EXCLUSIVE_STATUSES and blocking_label is not None:
        raise BatchConflictError(
            f"Another batch ({blocking_label}) is currently {target_status} for this course",
            blocking_batch=blocking_label,
        )


def check_readiness(snapshot: BatchSnapshot, target_status: str) -> None:
    if target_status != BatchStatus.ONGOING:
        return
    if snapshot.enrollment_count <= 0:
        raise BatchConflictError("Cannot start batch: no enrollments")
    if snapshot.teacher_count <= 0:
        raise BatchConflictError("Cannot start batch: no teachers assigned")


def check_schedule(snapshot: BatchSnapshot, target_status: str, now: datetime) -> None:
    boundary = SCHEDULE_BOUNDARIES.get(target_status)
    if boundary and now < getattr(snapshot.dates, boundary):
        raise BatchConflictError(SCHEDULE_GATE_MESSAGES[target_status])


def snap_early_boundary(dates: BatchDates, target_status: str, now: datetime) -> BatchDates:
    """Pull the boundary date of the target status back to ``now`` if it lies ahead."""
    boundary = SCHEDULE_BOUNDARIES.get(target_status)
    if boundary and getattr(dates, boundary) > now:
        return dates.replace(**{boundary: now})
    return dates


def decide_transition(
    snapshot: BatchSnapshot,
    target_status: str,
    now: datetime,
    *,
    is_manual: bool,
    blocking_label: Optional[str] = None,
) -> TransitionDecision:
    """Accept or reject ``snapshot.status -> target_status``.

    ``blocking_label`` names the sibling batch already holding the target
    status, if the caller found one. Raises ``InvalidTransitionError`` or
    ``BatchConflictError``; otherwise returns the decision to apply.
    """
    check_transition(snapshot.status, target_status)
    check_mutual_exclusion(target_status, blocking_label)
    check_readiness(snapshot, target_status)

    if is_manual:
        dates = snap_early_boundary(snapshot.dates, target_status, now)
    else:
        check_schedule(snapshot, target_status, now)
        dates = snapshot.dates

    return TransitionDecision(
        before=snapshot,
        status=target_status,
        dates=dates,
        # Scheduler transitions keep the flag as-is so auto-completing a
        # manually managed batch does not re-enable date validation.
        is_auto_updated=False if is_manual else snapshot.is_auto_updated,
        decided_at=now,
        history_entry=HistoryEntry(
            status=snapshot.status,
            updated_at=now,
            is_automatic=not is_manual,
            dates=snapshot.dates,
        ),
    )
