"""Read-only resource (yacht) reference data."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Tuple


@dataclass(frozen=True)
class MaintenanceWindow:
    """A resource-level unavailability period."""

    start: date
    end: date
    reason: str = ""


@dataclass(frozen=True)
class SeasonalRate:
    """A pricing season with its rate multiplier."""

    name: str
    start: date
    end: date
    multiplier: float = 1.0


@dataclass(frozen=True)
class ResourceSpec:
    """Specification of a bookable resource."""

    id: str
    name: str
    max_guests: int
    min_booking_hours: int = 0
    maintenance_windows: Tuple[MaintenanceWindow, ...] = field(default_factory=tuple)
    seasonal_rates: Tuple[SeasonalRate, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"
