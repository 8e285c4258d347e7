"""Business-rule validation of a requested date range."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from tracking import t

from infrastructure.constants import (
    DEFAULT_MAX_ADVANCE_DAYS,
    DEFAULT_MAX_BOOKING_DAYS,
    DEFAULT_MIN_ADVANCE_DAYS,
    DEFAULT_MIN_BOOKING_DAYS,
    DEFAULT_TIMEZONE,
)
from reservations.models import as_day
from .intervals import DateLike, day_count, includes_weekend
from .intervals import today as current_day


@dataclass(frozen=True)
class DateValidationOptions:
    min_days: int = DEFAULT_MIN_BOOKING_DAYS
    max_days: int = DEFAULT_MAX_BOOKING_DAYS
    allow_past: bool = False
    min_advance_days: int = DEFAULT_MIN_ADVANCE_DAYS
    max_advance_days: int = DEFAULT_MAX_ADVANCE_DAYS
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True)
class DateValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    field_errors: Dict[str, str] = field(default_factory=dict)
    booking_days: int = 0
    days_in_advance: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_dates(
    start: Optional[DateLike],
    end: Optional[DateLike],
    options: Optional[DateValidationOptions] = None,
    today: Optional[date] = None,
) -> DateValidationResult:
    """Check ordering, past dates, duration and advance-booking limits.

    ``today`` defaults to the current day in ``options.timezone``. Problems
    are returned, never raised.
    """
    t('reservations.availability.date_validation.validate_dates')
    options = options or DateValidationOptions()

    if start is None or end is None:
        message = "Start and end dates are required"
        field_errors = {}
        if start is None:
            field_errors["start"] = message
        if end is None:
            field_errors["end"] = message
        return DateValidationResult(errors=[message], field_errors=field_errors)

    today = today or current_day(options.timezone)
    start_day = as_day(start)
    end_day = as_day(end)

    errors: List[str] = []
    warnings: List[str] = []
    field_errors: Dict[str, str] = {}

    def fail(field_name: str, message: str) -> None:
        errors.append(message)
        field_errors.setdefault(field_name, message)

    if start_day > end_day:
        fail("end", "End date must be after start date")

    if not options.allow_past and start_day < today:
        fail("start", "Cannot book dates in the past")

    booking_days = day_count(start_day, end_day)
    if booking_days < options.min_days:
        fail("end", f"Minimum booking duration is {options.min_days} days")
    if booking_days > options.max_days:
        fail("end", f"Maximum booking duration is {options.max_days} days")

    days_in_advance = (start_day - today).days
    past_allowed = options.allow_past and days_in_advance < 0
    if not past_allowed and days_in_advance < options.min_advance_days:
        fail("start", f"Bookings must be made at least {options.min_advance_days} days in advance")
    if days_in_advance > options.max_advance_days:
        fail("start", f"Cannot book more than {options.max_advance_days} days in advance")

    if booking_days == 1:
        warnings.append("Single-day booking - consider turnaround time")
    if start_day <= end_day and includes_weekend(start_day, end_day):
        warnings.append("Booking includes weekend days")

    return DateValidationResult(
        errors=errors,
        warnings=warnings,
        field_errors=field_errors,
        booking_days=booking_days,
        days_in_advance=days_in_advance,
    )
