"""Exception taxonomy for the reservation core."""

from __future__ import annotations

from typing import Dict, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from reservations.availability.conflicts import Conflict


class ReservationError(Exception):
    """Base class for reservation core errors."""


class ValidationError(ReservationError):
    """Malformed reservation input, reported as a field-error map."""

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None) -> None:
        self.field_errors = dict(field_errors)
        if message is None:
            message = "Validation failed: " + ", ".join(
                f"{key}: {value}" for key, value in sorted(self.field_errors.items())
            )
        super().__init__(message)


class ConflictError(ReservationError):
    """A detected overlap prevents the requested mutation."""

    def __init__(self, conflicts: Sequence["Conflict"], message: Optional[str] = None) -> None:
        self.conflicts = list(conflicts)
        if message is None:
            labels = ", ".join(
                f"{c.type.value} with {c.reservation.id} ({c.overlap_days} day(s))"
                for c in self.conflicts
            )
            message = f"Reservation conflicts detected: {labels}"
        super().__init__(message)


class ReservationNotFoundError(ReservationError, LookupError):
    """No reservation with the given id is held in memory."""

    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"Reservation with ID {reservation_id} not found")


class MutationFailure(ReservationError):
    """The external mutation API rejected or could not perform a commit."""


class MutationValidationError(MutationFailure):
    """The backend rejected the payload as invalid."""


class MutationConflictError(MutationFailure):
    """The backend detected a conflicting write."""


class NetworkError(MutationFailure):
    """The backend could not be reached."""


class MutationPermissionError(MutationFailure):
    """The caller is not allowed to perform the mutation."""


class QueueCapacityError(ReservationError):
    """The offline queue holds its maximum number of operations."""

    def __init__(self, max_size: int) -> None:
        self.max_size = max_size
        super().__init__(f"Offline queue is full ({max_size} operations)")


class StorageCapacityError(ReservationError):
    """The durable store refused a write because it is full."""

