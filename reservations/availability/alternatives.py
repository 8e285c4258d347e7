"""Alternative dates, resources and nearby slots for a blocked request."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterable, List, Optional

from tracking import t

from infrastructure.constants import (
    ALTERNATIVE_LOOKAHEAD_DAYS,
    ALTERNATIVE_LOOKBEHIND_DAYS,
    ALTERNATIVE_EXTRA_DAYS,
    NEARBY_SLACK_DAYS,
    NEARBY_SLOT_LIMIT,
    NEARBY_WINDOW_DAYS,
    SUGGESTION_LIMIT,
)
from reservations.models import Reservation, ResourceSpec
from .conflicts import check_conflicts
from .resource_rules import is_suitable
from .slots import Slot, SlotSearchOptions, find_available_slots


@dataclass(frozen=True)
class AlternativeDate:
    slot: Slot
    days_difference: int

    @property
    def start_date(self) -> date:
        return self.slot.start_date

    @property
    def end_date(self) -> date:
        return self.slot.end_date


@dataclass(frozen=True)
class AlternativeResource:
    resource: ResourceSpec
    start_date: date
    end_date: date
    days: int


@dataclass(frozen=True)
class AlternativeSuggestions:
    alternative_dates: List[AlternativeDate] = field(default_factory=list)
    alternative_resources: List[AlternativeResource] = field(default_factory=list)
    nearby_slots: List[Slot] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.alternative_dates or self.alternative_resources or self.nearby_slots)


def _alternative_dates(requested: Reservation, pool: List[Reservation], limit: int) -> List[AlternativeDate]:
    days = requested.days
    slots = find_available_slots(
        requested.resource_id,
        pool,
        SlotSearchOptions(
            min_days=days,
            max_days=days + ALTERNATIVE_EXTRA_DAYS,
            start_from=requested.start_date - timedelta(days=ALTERNATIVE_LOOKBEHIND_DAYS),
            end_before=requested.end_date + timedelta(days=ALTERNATIVE_LOOKAHEAD_DAYS),
        ),
    )
    candidates = [
        AlternativeDate(
            slot=slot.trimmed(days),
            days_difference=abs((slot.start_date - requested.start_date).days),
        )
        for slot in slots
        if slot.days >= days
    ]
    candidates.sort(key=lambda item: item.days_difference)
    return candidates[:limit]


def _alternative_resources(
    requested: Reservation,
    pool: List[Reservation],
    resources: Iterable[ResourceSpec],
    guest_count: Optional[int],
    limit: int,
) -> List[AlternativeResource]:
    found: List[AlternativeResource] = []
    for resource in resources:
        if len(found) >= limit:
            break
        if resource.id == requested.resource_id:
            continue
        if not is_suitable(resource, requested.start, requested.end, guest_count):
            continue
        swapped = replace(requested, resource_id=resource.id)
        if check_conflicts(swapped, pool).is_available:
            found.append(AlternativeResource(
                resource=resource,
                start_date=requested.start_date,
                end_date=requested.end_date,
                days=requested.days,
            ))
    return found


def _nearby_slots(requested: Reservation, pool: List[Reservation]) -> List[Slot]:
    days = requested.days
    one_day = timedelta(days=1)
    window = timedelta(days=NEARBY_WINDOW_DAYS)

    def search(start_from: date, end_before: date) -> List[Slot]:
        return find_available_slots(
            requested.resource_id,
            pool,
            SlotSearchOptions(
                min_days=max(1, days - NEARBY_SLACK_DAYS),
                max_days=days + NEARBY_SLACK_DAYS,
                start_from=start_from,
                end_before=end_before,
            ),
        )

    before = search(requested.start_date - window, requested.start_date - one_day)
    after = search(requested.end_date + one_day, requested.end_date + window)
    merged = sorted(before + after, key=lambda slot: slot.start_date)
    return merged[:NEARBY_SLOT_LIMIT]


def suggest_alternatives(
    requested: Reservation,
    reservations: Iterable[Reservation],
    resources: Iterable[ResourceSpec],
    guest_count: Optional[int] = None,
    limit: int = SUGGESTION_LIMIT,
) -> AlternativeSuggestions:
    """Offer other dates, other resources and nearby windows for ``requested``.

    Alternative dates come from the same resource between two weeks before
    and a month after the request, ordered by distance from the requested
    start. Alternative resources are those with no conflict for the same
    dates, no maintenance window and enough room for ``guest_count``.
    """
    t('reservations.availability.alternatives.suggest_alternatives')
    limit = max(0, min(limit, SUGGESTION_LIMIT))
    pool = [reservation for reservation in reservations if reservation.id != requested.id]
    if guest_count is None:
        guest_count = requested.guest_count

    return AlternativeSuggestions(
        alternative_dates=_alternative_dates(requested, pool, limit),
        alternative_resources=_alternative_resources(requested, pool, resources, guest_count, limit),
        nearby_slots=_nearby_slots(requested, pool),
    )
