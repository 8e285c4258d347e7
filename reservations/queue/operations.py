"""Queue item records, status snapshots and counters."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from tracking import t

from reservations.models import TOGGLE_FIELDS
from reservations.models.payload import parse_datetime


class QueueOperationKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    TOGGLE_FIELD = "toggle_field"


class QueueItemStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class QueuedMutation:
    """The mutation intent carried by a queue item.

    ``data`` holds JSON-friendly values (see ``encode_patch``).
    """

    kind: QueueOperationKind
    reservation_id: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    field: Optional[str] = None

    def validate(self) -> Dict[str, str]:
        t('reservations.queue.operations.QueuedMutation.validate')
        errors: Dict[str, str] = {}
        if self.kind is QueueOperationKind.CREATE:
            if not self.data:
                errors["data"] = "Create operations need reservation data"
            return errors

        if not self.reservation_id:
            errors["reservation_id"] = f"{self.kind.value} operations need a reservation id"
        if self.kind is QueueOperationKind.UPDATE and not self.data:
            errors["data"] = "Update operations need a patch"
        if self.kind is QueueOperationKind.TOGGLE_FIELD and self.field not in TOGGLE_FIELDS:
            errors["field"] = f"Field {self.field!r} cannot be toggled"
        return errors

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reservation_id": self.reservation_id,
            "data": dict(self.data),
            "field": self.field,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "QueuedMutation":
        return cls(
            kind=QueueOperationKind(payload["kind"]),
            reservation_id=payload.get("reservation_id"),
            data=dict(payload.get("data") or {}),
            field=payload.get("field"),
        )


@dataclass
class QueueOperation:
    """A persisted queue entry. Mutated in place by the transition helpers."""

    id: str
    timestamp: datetime
    operation: QueuedMutation
    status: QueueItemStatus = QueueItemStatus.PENDING
    retries: int = 0
    error: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status is QueueItemStatus.PENDING

    def copy(self) -> "QueueOperation":
        return replace(self)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "operation": self.operation.to_payload(),
            "status": self.status.value,
            "retries": self.retries,
            "error": self.error,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "QueueOperation":
        t('reservations.queue.operations.QueueOperation.from_payload')
        return cls(
            id=str(payload["id"]),
            timestamp=parse_datetime(payload["timestamp"]),
            operation=QueuedMutation.from_payload(payload["operation"]),
            status=QueueItemStatus(payload.get("status") or QueueItemStatus.PENDING.value),
            retries=int(payload.get("retries") or 0),
            error=payload.get("error"),
            completed_at=parse_datetime(payload.get("completed_at")),
        )


@dataclass(frozen=True)
class QueueStatus:
    """Point-in-time view of the queue for status displays."""

    is_online: bool
    is_processing: bool
    pending_count: int
    retrying_count: int
    failed_count: int
    completed_count: int
    items: Tuple[QueueOperation, ...] = ()


@dataclass(frozen=True)
class QueuePassSummary:
    """What a single :meth:`OfflineMutationQueue.process_queue` pass did."""

    attempted: int = 0
    succeeded: int = 0
    retried: int = 0
    failed: int = 0
    remaining: int = 0
    skipped: bool = False


@dataclass
class QueueStats:
    """Mutable counters tracking queue dispatch."""

    enqueued: int = 0
    completed: int = 0
    failed: int = 0
    attempts: int = 0
    passes: int = 0

    def record_success(self) -> None:
        t('reservations.queue.operations.QueueStats.record_success')
        self.attempts += 1
        self.completed += 1

    def record_failure(self, exhausted: bool) -> None:
        t('reservations.queue.operations.QueueStats.record_failure')
        self.attempts += 1
        if exhausted:
            self.failed += 1

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.0
        return (self.completed / self.attempts) * 100

    def format_report(self) -> str:
        lines = [
            "Offline Queue Report",
            f"Enqueued: {self.enqueued}",
            f"Completed: {self.completed}",
            f"Failed: {self.failed}",
            f"Attempts: {self.attempts}",
            f"Passes: {self.passes}",
            f"Success Rate: {self.success_rate:.2f}%",
        ]
        return "\n".join(lines)
