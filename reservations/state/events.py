"""Events published by :class:`ReservationStateManager` to its subscribers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from reservations.models import Reservation


class MutationType(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"


class StateEventKind(Enum):
    BULK_UPDATE = "bulk_update"
    OPTIMISTIC_APPLY = "optimistic_apply"
    OPTIMISTIC_ROLLBACK = "optimistic_rollback"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    BATCH_COMPLETE = "batch_complete"
    CLEARED = "cleared"
    OPERATION_UNDONE = "operation_undone"


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one operation inside a batch."""

    success: bool
    data: Any = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class BulkUpdate:
    reservations: Tuple[Reservation, ...]
    kind: StateEventKind = field(default=StateEventKind.BULK_UPDATE, init=False)


@dataclass(frozen=True)
class OptimisticApply:
    operation_id: str
    mutation: MutationType
    reservation_id: str
    reservation: Optional[Reservation]
    previous: Optional[Reservation] = None
    kind: StateEventKind = field(default=StateEventKind.OPTIMISTIC_APPLY, init=False)


@dataclass(frozen=True)
class OptimisticRollback:
    operation_id: str
    mutation: MutationType
    reservation_id: str
    restored: Optional[Reservation]
    error: BaseException
    kind: StateEventKind = field(default=StateEventKind.OPTIMISTIC_ROLLBACK, init=False)


@dataclass(frozen=True)
class Created:
    reservation: Reservation
    operation_id: Optional[str] = None
    kind: StateEventKind = field(default=StateEventKind.CREATED, init=False)


@dataclass(frozen=True)
class Updated:
    reservation: Reservation
    previous: Reservation
    operation_id: Optional[str] = None
    mutation: MutationType = MutationType.UPDATE
    kind: StateEventKind = field(default=StateEventKind.UPDATED, init=False)


@dataclass(frozen=True)
class Deleted:
    reservation_id: str
    previous: Reservation
    operation_id: Optional[str] = None
    kind: StateEventKind = field(default=StateEventKind.DELETED, init=False)


@dataclass(frozen=True)
class BatchComplete:
    results: Tuple[BatchResult, ...]
    kind: StateEventKind = field(default=StateEventKind.BATCH_COMPLETE, init=False)


@dataclass(frozen=True)
class Cleared:
    kind: StateEventKind = field(default=StateEventKind.CLEARED, init=False)


@dataclass(frozen=True)
class OperationUndone:
    operation_id: str
    mutation: MutationType
    reservation_id: str
    reservation: Optional[Reservation]
    kind: StateEventKind = field(default=StateEventKind.OPERATION_UNDONE, init=False)


StateEvent = Union[
    BulkUpdate,
    OptimisticApply,
    OptimisticRollback,
    Created,
    Updated,
    Deleted,
    BatchComplete,
    Cleared,
    OperationUndone,
]
