"""Pending optimistic records and the bounded operation history."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, List, Mapping, Optional

from tracking import t

from infrastructure.constants import DEFAULT_ACTOR, OPERATION_HISTORY_LIMIT
from reservations.models import MUTABLE_FIELDS, Reservation
from .events import MutationType


@dataclass(frozen=True)
class OptimisticUpdate:
    """A speculative change awaiting backend confirmation.

    ``previous`` is the visible snapshot when the change was applied; it is
    None for creates. ``patch`` holds the changed fields of updates and moves
    so the change can be replayed over a newer confirmed snapshot.
    ``sequence`` orders operations on the same reservation.
    """

    operation_id: str
    mutation: MutationType
    reservation_id: str
    snapshot: Optional[Reservation]
    previous: Optional[Reservation]
    applied_at: datetime
    sequence: int = 0
    patch: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationRecord:
    """A committed mutation that can be undone."""

    operation_id: str
    mutation: MutationType
    reservation_id: str
    before: Optional[Reservation]
    after: Optional[Reservation]
    timestamp: datetime
    actor: str = DEFAULT_ACTOR

    def changed_fields(self) -> List[str]:
        """Mutable fields whose value differs between ``before`` and ``after``."""
        if self.before is None or self.after is None:
            return []
        return sorted(
            name for name in MUTABLE_FIELDS
            if getattr(self.before, name) != getattr(self.after, name)
        )


class OperationHistory:
    """Most-recent-last history that drops the oldest entry when full."""

    def __init__(self, limit: int = OPERATION_HISTORY_LIMIT) -> None:
        t('reservations.state.history.OperationHistory.__init__')
        self.limit = max(1, int(limit))
        self._entries: Deque[OperationRecord] = deque(maxlen=self.limit)

    def record(self, entry: OperationRecord) -> None:
        self._entries.append(entry)

    def pop(self) -> Optional[OperationRecord]:
        t('reservations.state.history.OperationHistory.pop')
        if not self._entries:
            return None
        return self._entries.pop()

    def restore(self, entry: OperationRecord) -> None:
        """Put back an entry previously returned by :meth:`pop`."""
        self._entries.append(entry)

    def entries(self) -> List[OperationRecord]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
