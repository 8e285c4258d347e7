"""Per-day availability classification for a single resource."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional

from tracking import t

from reservations.models import Reservation, ReservationStatus, ReservationType, as_day
from .intervals import DateLike, active_for_resource, iter_days


class AvailabilityStatus(Enum):
    AVAILABLE = "available"
    CONFIRMED = "confirmed"
    PENDING = "pending"
    BLOCKED = "blocked"
    MAINTENANCE = "maintenance"
    OWNER_USE = "owner_use"


_PENDING_STATUSES = (ReservationStatus.PENDING, ReservationStatus.DEPOSIT_PENDING)


@dataclass(frozen=True)
class AvailabilityResult:
    date: date
    resource_id: str
    status: AvailabilityStatus
    reservation: Optional[Reservation] = None
    is_transition_day: bool = False

    @property
    def is_available(self) -> bool:
        return self.status is AvailabilityStatus.AVAILABLE


def _status_for(reservation: Reservation) -> AvailabilityStatus:
    if reservation.type is ReservationType.BLOCKED:
        return AvailabilityStatus.BLOCKED
    if reservation.type is ReservationType.MAINTENANCE:
        return AvailabilityStatus.MAINTENANCE
    if reservation.type is ReservationType.OWNER_USE:
        return AvailabilityStatus.OWNER_USE
    if reservation.status is ReservationStatus.CONFIRMED:
        return AvailabilityStatus.CONFIRMED
    if reservation.status in _PENDING_STATUSES:
        return AvailabilityStatus.PENDING
    return AvailabilityStatus.AVAILABLE


def date_availability(
    day: DateLike,
    resource_id: str,
    reservations: Iterable[Reservation],
) -> AvailabilityResult:
    """Classify ``day`` for ``resource_id``.

    The first active reservation whose range contains the day decides the
    status; later matches are ignored.
    """
    t('reservations.availability.calendar.date_availability')
    target = as_day(day)

    for reservation in active_for_resource(reservations, resource_id):
        if reservation.start_date <= target <= reservation.end_date:
            return AvailabilityResult(
                date=target,
                resource_id=resource_id,
                status=_status_for(reservation),
                reservation=reservation,
                is_transition_day=target in (reservation.start_date, reservation.end_date),
            )

    return AvailabilityResult(
        date=target,
        resource_id=resource_id,
        status=AvailabilityStatus.AVAILABLE,
    )


def range_availability(
    start: DateLike,
    end: DateLike,
    resource_id: str,
    reservations: Iterable[Reservation],
) -> List[AvailabilityResult]:
    """One :class:`AvailabilityResult` per day in ``[start, end]``."""
    t('reservations.availability.calendar.range_availability')
    pool = list(reservations)
    return [date_availability(day, resource_id, pool) for day in iter_days(start, end)]
