"""In-memory reservation state with optimistic mutations."""

from .events import (
    BatchComplete,
    BatchResult,
    BulkUpdate,
    Cleared,
    Created,
    Deleted,
    MutationType,
    OperationUndone,
    OptimisticApply,
    OptimisticRollback,
    StateEvent,
    StateEventKind,
    Updated,
)
from .history import OperationHistory, OperationRecord, OptimisticUpdate
from .state_manager import BatchOperation, ReservationStateManager, StateStats

__all__ = [
    "BatchComplete",
    "BatchOperation",
    "BatchResult",
    "BulkUpdate",
    "Cleared",
    "Created",
    "Deleted",
    "MutationType",
    "OperationHistory",
    "OperationRecord",
    "OperationUndone",
    "OptimisticApply",
    "OptimisticRollback",
    "OptimisticUpdate",
    "ReservationStateManager",
    "StateEvent",
    "StateEventKind",
    "StateStats",
    "Updated",
]
