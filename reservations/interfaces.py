"""Contracts for the collaborators the reservation core talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from reservations.models import Reservation


class MutationAPI(ABC):
    """Remote persistence backend.

    Every method may raise a :class:`reservations.errors.MutationFailure`
    subclass; callers surface those unchanged.
    """

    @abstractmethod
    async def create(self, data: Mapping[str, Any]) -> Reservation:
        """Persist a new reservation and return the stored snapshot."""

    @abstractmethod
    async def update(self, reservation_id: str, patch: Mapping[str, Any]) -> Reservation:
        """Apply ``patch`` and return the stored snapshot."""

    @abstractmethod
    async def delete(self, reservation_id: str) -> bool:
        """Remove the reservation; False means the backend refused."""

    @abstractmethod
    async def toggle_field(self, reservation_id: str, field: str) -> Reservation:
        """Flip a boolean field (payment flags) and return the stored snapshot."""


class DurableStore(ABC):
    """Synchronous key/value store holding serialized queue lists.

    ``set`` raises :class:`reservations.errors.StorageCapacityError` when the
    store is full.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""
