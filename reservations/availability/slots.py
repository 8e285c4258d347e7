"""Greedy search for contiguous runs of available days."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional

from tracking import t

from infrastructure.constants import (
    DEFAULT_SLOT_HORIZON_DAYS,
    DEFAULT_SLOT_MAX_DAYS,
    DEFAULT_SLOT_MIN_DAYS,
)
from reservations.models import Reservation, as_day
from .calendar import date_availability
from .intervals import DateLike, active_for_resource, includes_weekend
from .intervals import today as current_day


@dataclass(frozen=True)
class SlotSearchOptions:
    min_days: int = DEFAULT_SLOT_MIN_DAYS
    max_days: int = DEFAULT_SLOT_MAX_DAYS
    start_from: Optional[DateLike] = None
    end_before: Optional[DateLike] = None
    exclude_weekends: bool = False


@dataclass(frozen=True)
class Slot:
    resource_id: str
    start_date: date
    end_date: date
    days: int
    includes_weekend: bool

    def trimmed(self, days: int) -> "Slot":
        """Return a slot of ``days`` days starting where this one starts."""
        end_date = self.start_date + timedelta(days=days - 1)
        return Slot(
            resource_id=self.resource_id,
            start_date=self.start_date,
            end_date=end_date,
            days=days,
            includes_weekend=includes_weekend(self.start_date, end_date),
        )


def find_available_slots(
    resource_id: str,
    reservations: Iterable[Reservation],
    options: Optional[SlotSearchOptions] = None,
    *,
    today: Optional[date] = None,
) -> List[Slot]:
    """Scan forward day by day and collect available runs.

    A run grows while the next day is available, lies within ``end_before``
    (inclusive) and the run is shorter than ``max_days``. Runs shorter than
    ``min_days`` are discarded and scanning resumes the day after each run.
    """
    t('reservations.availability.slots.find_available_slots')
    options = options or SlotSearchOptions()

    start_from = as_day(options.start_from) if options.start_from is not None else (today or current_day())
    end_before = (
        as_day(options.end_before)
        if options.end_before is not None
        else start_from + timedelta(days=DEFAULT_SLOT_HORIZON_DAYS)
    )
    max_days = max(1, options.max_days)
    pool = active_for_resource(reservations, resource_id)
    one_day = timedelta(days=1)

    slots: List[Slot] = []
    current = start_from
    while current <= end_before:
        if not date_availability(current, resource_id, pool).is_available:
            current += one_day
            continue

        slot_end = current
        days = 1
        while days < max_days and slot_end + one_day <= end_before:
            if not date_availability(slot_end + one_day, resource_id, pool).is_available:
                break
            slot_end += one_day
            days += 1

        if days >= options.min_days:
            slots.append(Slot(
                resource_id=resource_id,
                start_date=current,
                end_date=slot_end,
                days=days,
                includes_weekend=includes_weekend(current, slot_end),
            ))
        current = slot_end + one_day

    if options.exclude_weekends:
        return [slot for slot in slots if not slot.includes_weekend]
    return slots
