"""State transition helpers for offline queue entries."""

from __future__ import annotations

from datetime import datetime

from tracking import t

from .operations import QueueItemStatus, QueueOperation


def mark_completed(item: QueueOperation, now: datetime) -> QueueOperation:
    """Mark ``item`` as dispatched successfully."""

    t('reservations.queue.transitions.mark_completed')
    item.status = QueueItemStatus.COMPLETED
    item.completed_at = now
    item.error = None
    return item


def record_failure(item: QueueOperation, error: BaseException, max_retries: int) -> bool:
    """Count a failed attempt; returns True once ``item`` is permanently failed."""

    t('reservations.queue.transitions.record_failure')
    item.retries += 1
    item.error = f"{type(error).__name__}: {error}"
    if item.retries >= max_retries:
        item.status = QueueItemStatus.FAILED
        return True
    return False


def revive(item: QueueOperation) -> bool:
    """Reset retries on a retried or failed item; returns True when anything changed."""

    t('reservations.queue.transitions.revive')
    if item.status is QueueItemStatus.COMPLETED:
        return False
    if item.retries == 0 and item.status is QueueItemStatus.PENDING:
        return False
    item.retries = 0
    item.error = None
    item.status = QueueItemStatus.PENDING
    return True
