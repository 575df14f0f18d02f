from .batch_scheduler import ReconcileSummary, reconcile_all_batches
from .batch_service import BatchLifecycleService

__all__ = ["BatchLifecycleService", "ReconcileSummary", "reconcile_all_batches"]
