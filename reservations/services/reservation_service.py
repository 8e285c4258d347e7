"""Domain service tying reservation state to the offline queue."""

from __future__ import annotations
from tracking import t

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from reservations.availability import (
    AlternativeSuggestions,
    ConflictCheckResult,
    DateValidationOptions,
    DateValidationResult,
    check_conflicts,
    suggest_alternatives,
    validate_dates,
)
from reservations.errors import NetworkError, ReservationNotFoundError, ValidationError
from reservations.models import TOGGLE_FIELDS, Reservation, build_reservation
from reservations.network import NetworkStatus
from reservations.queue import OfflineMutationQueue, QueueStatus
from reservations.registry import ResourceRegistry
from reservations.state import ReservationStateManager


@dataclass(frozen=True)
class MutationOutcome:
    """Result of a service mutation: committed now or queued for later."""

    reservation: Optional[Reservation] = None
    queued: bool = False
    queue_id: Optional[str] = None


class ReservationService:
    """High-level API for reservation orchestration."""

    def __init__(
        self,
        state: ReservationStateManager,
        queue: OfflineMutationQueue,
        *,
        registry: Optional[ResourceRegistry] = None,
        network: Optional[NetworkStatus] = None,
        timezone: Optional[str] = None,
    ) -> None:
        t('reservations.services.reservation_service.ReservationService.__init__')
        self.logger = logging.getLogger(self.__class__.__name__)
        self.state = state
        self.queue = queue
        self.registry = registry
        self.network = network
        self.timezone = timezone

    def _offline(self) -> bool:
        return self.network is not None and not self.network.is_online

    def _queued(self, queue_id: str, action: str, reservation_id: Optional[str]) -> MutationOutcome:
        self.logger.info("Queued %s for %s as %s", action, reservation_id or "new reservation", queue_id)
        return MutationOutcome(queued=True, queue_id=queue_id)

    async def create(self, data: Mapping[str, Any]) -> MutationOutcome:
        """Create a reservation, queueing it when the backend is unreachable."""
        t('reservations.services.reservation_service.ReservationService.create')
        if self._offline():
            return self._queued(self.queue.queue_create(data), "create", None)
        try:
            reservation = await self.state.create(data)
        except NetworkError as exc:
            self.logger.warning("Backend unreachable while creating reservation: %s", exc)
            return self._queued(self.queue.queue_create(data), "create", None)
        return MutationOutcome(reservation=reservation)

    async def update(self, reservation_id: str, patch: Mapping[str, Any]) -> MutationOutcome:
        t('reservations.services.reservation_service.ReservationService.update')
        if self._offline():
            return self._queued(self.queue.queue_update(reservation_id, patch), "update", reservation_id)
        try:
            reservation = await self.state.update(reservation_id, patch)
        except NetworkError as exc:
            self.logger.warning("Backend unreachable while updating %s: %s", reservation_id, exc)
            return self._queued(self.queue.queue_update(reservation_id, patch), "update", reservation_id)
        return MutationOutcome(reservation=reservation)

    async def move(
        self,
        reservation_id: str,
        resource_id: str,
        start: datetime,
        end: datetime,
    ) -> MutationOutcome:
        t('reservations.services.reservation_service.ReservationService.move')
        patch = {"resource_id": resource_id, "start": start, "end": end}
        if self._offline():
            return self._queued(self.queue.queue_update(reservation_id, patch), "move", reservation_id)
        try:
            reservation = await self.state.move(reservation_id, resource_id, start, end)
        except NetworkError as exc:
            self.logger.warning("Backend unreachable while moving %s: %s", reservation_id, exc)
            return self._queued(self.queue.queue_update(reservation_id, patch), "move", reservation_id)
        return MutationOutcome(reservation=reservation)

    async def delete(self, reservation_id: str) -> MutationOutcome:
        t('reservations.services.reservation_service.ReservationService.delete')
        if self._offline():
            return self._queued(self.queue.queue_delete(reservation_id), "delete", reservation_id)
        try:
            await self.state.delete(reservation_id)
        except NetworkError as exc:
            self.logger.warning("Backend unreachable while deleting %s: %s", reservation_id, exc)
            return self._queued(self.queue.queue_delete(reservation_id), "delete", reservation_id)
        return MutationOutcome()

    async def toggle_field(self, reservation_id: str, field: str) -> MutationOutcome:
        """Flip a payment flag through an update of the negated current value."""
        t('reservations.services.reservation_service.ReservationService.toggle_field')
        if field not in TOGGLE_FIELDS:
            raise ValidationError({"field": f"Field {field!r} cannot be toggled"})
        if self._offline():
            return self._queued(self.queue.queue_toggle_field(reservation_id, field), "toggle", reservation_id)

        current = self.state.get_by_id(reservation_id)
        if current is None:
            raise ReservationNotFoundError(reservation_id)
        try:
            reservation = await self.state.update(
                reservation_id,
                {field: not getattr(current, field)},
                validate_conflicts=False,
            )
        except NetworkError as exc:
            self.logger.warning("Backend unreachable while toggling %s on %s: %s", field, reservation_id, exc)
            return self._queued(self.queue.queue_toggle_field(reservation_id, field), "toggle", reservation_id)
        return MutationOutcome(reservation=reservation)

    def check_availability(self, data: Mapping[str, Any]) -> ConflictCheckResult:
        """Conflict check for a prospective reservation without mutating state."""
        t('reservations.services.reservation_service.ReservationService.check_availability')
        candidate = build_reservation(data)
        return check_conflicts(candidate, self.state.get_all(), self.state.conflict_options)

    def suggest_alternatives(self, data: Mapping[str, Any]) -> AlternativeSuggestions:
        t('reservations.services.reservation_service.ReservationService.suggest_alternatives')
        candidate = build_reservation(data)
        resources = self.registry.all() if self.registry is not None else []
        return suggest_alternatives(candidate, self.state.get_all(), resources)

    def validate_dates(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        options: Optional[DateValidationOptions] = None,
    ) -> DateValidationResult:
        t('reservations.services.reservation_service.ReservationService.validate_dates')
        if options is None and self.timezone:
            options = DateValidationOptions(timezone=self.timezone)
        return validate_dates(start, end, options)

    def get_queue_status(self) -> QueueStatus:
        t('reservations.services.reservation_service.ReservationService.get_queue_status')
        return self.queue.get_status()
