"""Day-granularity interval helpers shared by the availability engine."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Union

import pytz

from tracking import t

from infrastructure.constants import DEFAULT_TIMEZONE
from reservations.models import Reservation, as_day

DateLike = Union[date, datetime]


def today(timezone_str: str = DEFAULT_TIMEZONE) -> date:
    """Return the current calendar day in ``timezone_str``."""
    t('reservations.availability.intervals.today')
    return datetime.now(pytz.timezone(timezone_str)).date()


def overlaps(start_a: DateLike, end_a: DateLike, start_b: DateLike, end_b: DateLike) -> bool:
    """Return True when two ranges share at least one calendar day.

    Both ends are inclusive, so a range ending on the day another starts
    overlaps it.
    """
    t('reservations.availability.intervals.overlaps')
    return as_day(start_a) <= as_day(end_b) and as_day(start_b) <= as_day(end_a)


def overlap_days(start_a: DateLike, end_a: DateLike, start_b: DateLike, end_b: DateLike) -> int:
    """Inclusive number of days in the intersection, 0 when disjoint."""
    t('reservations.availability.intervals.overlap_days')
    first = max(as_day(start_a), as_day(start_b))
    last = min(as_day(end_a), as_day(end_b))
    if last < first:
        return 0
    return (last - first).days + 1


def is_adjacent(start_a: DateLike, end_a: DateLike, start_b: DateLike, end_b: DateLike) -> bool:
    """True when one range ends the day before the other starts."""
    one_day = timedelta(days=1)
    return (
        as_day(end_a) + one_day == as_day(start_b)
        or as_day(end_b) + one_day == as_day(start_a)
    )


def iter_days(start: DateLike, end: DateLike) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``."""
    current = as_day(start)
    last = as_day(end)
    while current <= last:
        yield current
        current += timedelta(days=1)


def includes_weekend(start: DateLike, end: DateLike) -> bool:
    """True when any day in ``[start, end]`` is a Saturday or Sunday."""
    t('reservations.availability.intervals.includes_weekend')
    return any(day.weekday() >= 5 for day in iter_days(start, end))


def day_count(start: DateLike, end: DateLike) -> int:
    return (as_day(end) - as_day(start)).days + 1


def active_for_resource(
    reservations: Iterable[Reservation],
    resource_id: str,
    *,
    exclude_id: Optional[str] = None,
) -> List[Reservation]:
    """Active reservations on ``resource_id``, in the order supplied."""
    return [
        reservation
        for reservation in reservations
        if reservation.resource_id == resource_id
        and reservation.is_active
        and (exclude_id is None or reservation.id != exclude_id)
    ]
