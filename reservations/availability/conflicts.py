"""Conflict detection between a candidate reservation and existing ones."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from tracking import t

from reservations.models import Reservation, ReservationStatus, ReservationType
from .intervals import is_adjacent, overlap_days, overlaps


class ConflictType(Enum):
    BLOCKED_PERIOD = "blocked_period"
    MAINTENANCE = "maintenance"
    OWNER_USE = "owner_use"
    CONFIRMED_BOOKING = "confirmed_booking"
    PENDING_BOOKING = "pending_booking"


class ConflictSeverity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WarningType(Enum):
    BACK_TO_BACK = "back_to_back"
    SAME_DAY_TRANSITION = "same_day_transition"


@dataclass(frozen=True)
class Conflict:
    """Overlap between the candidate and one existing reservation."""

    type: ConflictType
    severity: ConflictSeverity
    overlap_days: int
    reservation: Reservation


@dataclass(frozen=True)
class ConflictWarning:
    """Non-blocking observation about a neighbouring reservation."""

    type: WarningType
    message: str
    reservation: Reservation


@dataclass(frozen=True)
class ConflictCheckOptions:
    exclude_same_day: bool = False
    include_blocked: bool = True


@dataclass(frozen=True)
class ConflictCheckResult:
    conflicts: List[Conflict] = field(default_factory=list)
    warnings: List[ConflictWarning] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def is_available(self) -> bool:
        return not self.conflicts


def conflict_type_for(reservation: Reservation) -> ConflictType:
    """Classify what kind of claim ``reservation`` represents."""
    if reservation.type is ReservationType.BLOCKED:
        return ConflictType.BLOCKED_PERIOD
    if reservation.type is ReservationType.MAINTENANCE:
        return ConflictType.MAINTENANCE
    if reservation.type is ReservationType.OWNER_USE:
        return ConflictType.OWNER_USE
    if reservation.status is ReservationStatus.CONFIRMED:
        return ConflictType.CONFIRMED_BOOKING
    return ConflictType.PENDING_BOOKING


def conflict_severity_for(reservation: Reservation) -> ConflictSeverity:
    if reservation.status is ReservationStatus.CONFIRMED:
        return ConflictSeverity.HIGH
    if reservation.type in (ReservationType.OWNER_USE, ReservationType.MAINTENANCE):
        return ConflictSeverity.HIGH
    if reservation.type is ReservationType.BLOCKED:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _is_boundary_overlap(candidate: Reservation, existing: Reservation) -> bool:
    """True when the only shared day is a checkout/checkin boundary."""
    if overlap_days(candidate.start, candidate.end, existing.start, existing.end) != 1:
        return False
    return (
        candidate.start_date == existing.end_date
        or candidate.end_date == existing.start_date
    )


def check_conflicts(
    candidate: Reservation,
    existing: Iterable[Reservation],
    options: Optional[ConflictCheckOptions] = None,
) -> ConflictCheckResult:
    """Compare ``candidate`` against every relevant reservation in ``existing``.

    Only active reservations on the candidate's resource are considered and
    the candidate's own id is skipped so updates can be checked in place.
    Overlaps become conflicts; adjacent ranges produce a back-to-back warning.
    With ``exclude_same_day`` a single shared checkout/checkin day is reported
    as a warning instead of a conflict.
    """
    t('reservations.availability.conflicts.check_conflicts')
    options = options or ConflictCheckOptions()

    conflicts: List[Conflict] = []
    warnings: List[ConflictWarning] = []

    for reservation in existing:
        if reservation.resource_id != candidate.resource_id:
            continue
        if reservation.id == candidate.id:
            continue
        if not reservation.is_active:
            continue
        if not options.include_blocked and reservation.type is ReservationType.BLOCKED:
            continue

        if overlaps(candidate.start, candidate.end, reservation.start, reservation.end):
            if options.exclude_same_day and _is_boundary_overlap(candidate, reservation):
                warnings.append(ConflictWarning(
                    type=WarningType.SAME_DAY_TRANSITION,
                    message="Same-day checkout/checkin detected",
                    reservation=reservation,
                ))
            else:
                conflicts.append(Conflict(
                    type=conflict_type_for(reservation),
                    severity=conflict_severity_for(reservation),
                    overlap_days=overlap_days(
                        candidate.start, candidate.end, reservation.start, reservation.end
                    ),
                    reservation=reservation,
                ))
        elif is_adjacent(candidate.start, candidate.end, reservation.start, reservation.end):
            warnings.append(ConflictWarning(
                type=WarningType.BACK_TO_BACK,
                message="Back-to-back booking detected - consider turnaround time",
                reservation=reservation,
            ))

    return ConflictCheckResult(conflicts=conflicts, warnings=warnings)
