"""Domain dataclasses for charter reservations."""

from __future__ import annotations
from tracking import t

import re
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from infrastructure.constants import CHANGE_HISTORY_LIMIT, DEFAULT_ACTOR

_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class ReservationStatus(Enum):
    """Lifecycle states of a reservation."""

    PENDING = "pending"
    DEPOSIT_PENDING = "deposit_pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    COMPLETED = "completed"


class ReservationType(Enum):
    """What the resource is being claimed for."""

    CHARTER = "charter"
    BLOCKED = "blocked"
    MAINTENANCE = "maintenance"
    OWNER_USE = "owner_use"


INACTIVE_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW})

# Fields a patch may change; identity and bookkeeping fields are excluded.
MUTABLE_FIELDS = frozenset({
    "resource_id",
    "customer_name",
    "customer_email",
    "start",
    "end",
    "status",
    "type",
    "guest_count",
    "notes",
    "deposit_paid",
    "final_payment_paid",
})

# Boolean fields a queued toggle operation may flip.
TOGGLE_FIELDS = frozenset({"deposit_paid", "final_payment_paid"})


@dataclass(frozen=True)
class ChangeHistoryEntry:
    """One entry of a reservation's append-only change log."""

    timestamp: datetime
    changes: Tuple[str, ...]
    actor: str = DEFAULT_ACTOR


@dataclass(frozen=True)
class Reservation:
    """A claim on one resource for a date-time interval."""

    id: str
    resource_id: str
    start: datetime
    end: datetime
    customer_name: str = ""
    customer_email: str = ""
    status: ReservationStatus = ReservationStatus.PENDING
    type: ReservationType = ReservationType.CHARTER
    guest_count: Optional[int] = None
    notes: str = ""
    deposit_paid: bool = False
    final_payment_paid: bool = False
    change_history: Tuple[ChangeHistoryEntry, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Cancelled and no-show reservations do not occupy the resource."""
        return self.status not in INACTIVE_STATUSES

    @property
    def start_date(self) -> date:
        return as_day(self.start)

    @property
    def end_date(self) -> date:
        return as_day(self.end)

    @property
    def days(self) -> int:
        """Inclusive number of calendar days the reservation spans."""
        return (self.end_date - self.start_date).days + 1

    def validate(self) -> Dict[str, str]:
        """Return a map of field name to error message; empty when valid."""
        t('reservations.models.reservation.Reservation.validate')
        errors: Dict[str, str] = {}

        if not str(self.resource_id or "").strip():
            errors["resource_id"] = "Resource selection is required"

        if self.start is None:
            errors["start"] = "Start date/time is required"
        if self.end is None:
            errors["end"] = "End date/time is required"
        if self.start is not None and self.end is not None:
            try:
                if not self.end > self.start:
                    errors["end"] = "End date must be after start date"
            except TypeError:
                errors["end"] = "Start and end must both be naive or both be timezone-aware"

        if self.customer_email and not _EMAIL_PATTERN.match(self.customer_email.strip()):
            errors["customer_email"] = "Invalid email format"

        if self.guest_count is not None and self.guest_count < 1:
            errors["guest_count"] = "At least one guest is required"

        return errors

    def apply_patch(
        self,
        patch: Mapping[str, Any],
        *,
        actor: str = DEFAULT_ACTOR,
        now: Optional[datetime] = None,
        history_limit: int = CHANGE_HISTORY_LIMIT,
    ) -> "Reservation":
        """Return a new snapshot with ``patch`` applied and one history entry appended.

        Unknown keys raise ``KeyError``. Keys whose value does not change are
        ignored; a patch that changes nothing returns ``self``.
        """
        t('reservations.models.reservation.Reservation.apply_patch')

        unknown = set(patch) - MUTABLE_FIELDS
        if unknown:
            raise KeyError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")

        coerced = coerce_fields(patch)
        changed = {
            key: value for key, value in coerced.items()
            if getattr(self, key) != value
        }
        if not changed:
            return self

        now = now or datetime.now()
        entry = ChangeHistoryEntry(
            timestamp=now,
            changes=tuple(sorted(changed)),
            actor=actor,
        )
        history = (self.change_history + (entry,))[-history_limit:]
        return replace(self, change_history=history, updated_at=now, **changed)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly dict, see :func:`reservations.models.payload.reservation_to_payload`."""
        from .payload import reservation_to_payload

        return reservation_to_payload(self)

    def field_values(self, names: Iterable[str] = MUTABLE_FIELDS) -> Dict[str, Any]:
        """Return the current values for ``names`` as a patch mapping."""
        return {name: getattr(self, name) for name in names}


def as_day(value: Any) -> date:
    """Normalize a ``date`` or ``datetime`` to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, received {type(value).__name__}")


def new_reservation_id() -> str:
    return uuid.uuid4().hex


def coerce_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce enum-valued fields supplied as plain strings."""
    t('reservations.models.reservation.coerce_fields')
    coerced = dict(data)
    if "status" in coerced and not isinstance(coerced["status"], ReservationStatus):
        coerced["status"] = ReservationStatus(coerced["status"])
    if "type" in coerced and not isinstance(coerced["type"], ReservationType):
        coerced["type"] = ReservationType(coerced["type"])
    return coerced


def build_reservation(
    data: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Reservation:
    """Create a :class:`Reservation` from caller-supplied data.

    A missing ``id`` is generated and ``created_at``/``updated_at`` default to
    ``now``. Unknown keys raise ``KeyError``.
    """
    t('reservations.models.reservation.build_reservation')

    known = {f.name for f in fields(Reservation)}
    unknown = set(data) - known
    if unknown:
        raise KeyError(f"Unknown reservation fields: {', '.join(sorted(unknown))}")

    now = now or datetime.now()
    payload = coerce_fields(data)
    payload.setdefault("id", None)
    if not payload["id"]:
        payload["id"] = new_reservation_id()
    payload.setdefault("start", None)
    payload.setdefault("end", None)
    payload.setdefault("resource_id", "")
    payload["change_history"] = tuple(payload.get("change_history") or ())
    payload["created_at"] = payload.get("created_at") or now
    payload["updated_at"] = payload.get("updated_at") or now
    return Reservation(**payload)
