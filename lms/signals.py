"""Batch lifecycle signals.

``batch_status_changed`` fires after the transaction that changed a batch's
status commits, for both forward transitions and rollbacks. Receivers get
``batch``, ``previous_status``, ``status``, ``is_automatic`` and ``rollback``.
"""

import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

batch_status_changed = Signal()


@receiver(batch_status_changed)
def log_batch_status_change(sender, batch, previous_status, status, is_automatic=False, rollback=False, **kwargs):
    if rollback:
        logger.info("Batch %s rolled back: %s -> %s", batch.pk, previous_status, status)
        return
    logger.info(
        "Batch %s status committed: %s -> %s%s",
        batch.pk,
        previous_status,
        status,
        " (scheduler)" if is_automatic else "",
    )
