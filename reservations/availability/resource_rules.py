"""Resource-level booking rules: maintenance, capacity, duration and seasons."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tracking import t

from reservations.models import MaintenanceWindow, Reservation, ResourceSpec
from .intervals import DateLike, overlaps

STANDARD_SEASON = "standard"


@dataclass(frozen=True)
class SeasonalPricing:
    multiplier: float = 1.0
    season: str = STANDARD_SEASON
    is_peak: bool = False


@dataclass(frozen=True)
class ResourceRuleResult:
    errors: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def maintenance_conflicts(
    resource: ResourceSpec,
    start: DateLike,
    end: DateLike,
) -> List[MaintenanceWindow]:
    """Maintenance windows of ``resource`` that share a day with ``[start, end]``."""
    t('reservations.availability.resource_rules.maintenance_conflicts')
    return [
        window for window in resource.maintenance_windows
        if overlaps(start, end, window.start, window.end)
    ]


def seasonal_pricing(resource: ResourceSpec, start: DateLike, end: DateLike) -> SeasonalPricing:
    """Pick the highest multiplier among seasons overlapping the range."""
    t('reservations.availability.resource_rules.seasonal_pricing')
    best = SeasonalPricing()
    for rate in resource.seasonal_rates:
        if not overlaps(start, end, rate.start, rate.end):
            continue
        if rate.multiplier > best.multiplier:
            best = SeasonalPricing(multiplier=rate.multiplier, season=rate.name, is_peak=True)
    return best


def check_resource_rules(
    candidate: Reservation,
    resource: ResourceSpec,
    *,
    guest_count: Optional[int] = None,
) -> ResourceRuleResult:
    """Check ``candidate`` against the limits published for ``resource``."""
    t('reservations.availability.resource_rules.check_resource_rules')

    errors: Dict[str, str] = {}
    warnings: List[str] = []

    windows = maintenance_conflicts(resource, candidate.start, candidate.end)
    if windows:
        reasons = ", ".join(window.reason or "maintenance" for window in windows)
        errors["resource_id"] = f"{resource.name} is under maintenance during the selected dates ({reasons})"

    guests = guest_count if guest_count is not None else candidate.guest_count
    if guests is not None and guests > resource.max_guests:
        errors["guest_count"] = f"Guest count exceeds yacht capacity (max: {resource.max_guests})"

    if resource.min_booking_hours and candidate.start is not None and candidate.end is not None:
        duration_hours = (candidate.end - candidate.start).total_seconds() / 3600
        if duration_hours < resource.min_booking_hours:
            errors["end"] = (
                f"Minimum booking duration for {resource.name} is "
                f"{resource.min_booking_hours} hours"
            )

    pricing = seasonal_pricing(resource, candidate.start, candidate.end)
    if pricing.is_peak:
        warnings.append(
            f"Selected dates are during {pricing.season} season ({pricing.multiplier}x rate)"
        )

    return ResourceRuleResult(errors=errors, warnings=warnings)


def is_suitable(resource: ResourceSpec, start: DateLike, end: DateLike, guest_count: Optional[int] = None) -> bool:
    """True when the resource is free of maintenance and large enough."""
    if maintenance_conflicts(resource, start, end):
        return False
    return guest_count is None or guest_count <= resource.max_guests
