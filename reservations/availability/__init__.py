"""Conflict detection and availability search for reservations."""

from .intervals import includes_weekend, iter_days, overlap_days, overlaps, today
from .conflicts import (
    Conflict,
    ConflictCheckOptions,
    ConflictCheckResult,
    ConflictSeverity,
    ConflictType,
    ConflictWarning,
    WarningType,
    check_conflicts,
)
from .calendar import AvailabilityResult, AvailabilityStatus, date_availability, range_availability
from .slots import Slot, SlotSearchOptions, find_available_slots
from .alternatives import (
    AlternativeDate,
    AlternativeResource,
    AlternativeSuggestions,
    suggest_alternatives,
)
from .date_validation import DateValidationOptions, DateValidationResult, validate_dates
from .resource_rules import (
    ResourceRuleResult,
    SeasonalPricing,
    check_resource_rules,
    maintenance_conflicts,
    seasonal_pricing,
)

__all__ = [
    "includes_weekend",
    "iter_days",
    "overlap_days",
    "overlaps",
    "today",
    "Conflict",
    "ConflictCheckOptions",
    "ConflictCheckResult",
    "ConflictSeverity",
    "ConflictType",
    "ConflictWarning",
    "WarningType",
    "check_conflicts",
    "AvailabilityResult",
    "AvailabilityStatus",
    "date_availability",
    "range_availability",
    "Slot",
    "SlotSearchOptions",
    "find_available_slots",
    "AlternativeDate",
    "AlternativeResource",
    "AlternativeSuggestions",
    "suggest_alternatives",
    "DateValidationOptions",
    "DateValidationResult",
    "validate_dates",
    "ResourceRuleResult",
    "SeasonalPricing",
    "check_resource_rules",
    "maintenance_conflicts",
    "seasonal_pricing",
]
