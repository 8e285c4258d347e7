"""Serialization between domain dataclasses and JSON-friendly payloads."""

from __future__ import annotations
from tracking import t

from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from .reservation import (
    ChangeHistoryEntry,
    Reservation,
    ReservationStatus,
    ReservationType,
)
from .resource import MaintenanceWindow, ResourceSpec, SeasonalRate

REQUIRED_RESERVATION_FIELDS = {"id", "resource_id", "start", "end"}
REQUIRED_RESOURCE_FIELDS = {"id", "name", "max_guests"}


def _ensure_fields(payload: Mapping[str, Any], required: set, label: str) -> None:
    missing = sorted(key for key in required if payload.get(key) in (None, ""))
    if missing:
        raise ValueError(f"{label} missing required fields: {', '.join(missing)}")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Accept ``datetime`` objects or ISO-8601 strings."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    return datetime.fromisoformat(str(value))


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def encode_value(value: Any) -> Any:
    """Encode a single field value (as found in patches) for JSON storage."""
    if isinstance(value, (ReservationStatus, ReservationType)):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def encode_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(value) for key, value in patch.items()}


def decode_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Reverse :func:`encode_patch` for the fields that carry datetimes."""
    decoded = dict(patch)
    for key in ("start", "end", "created_at", "updated_at"):
        if key in decoded:
            decoded[key] = parse_datetime(decoded[key])
    return decoded


def reservation_to_payload(reservation: Reservation) -> Dict[str, Any]:
    """Serialize a :class:`Reservation` into a JSON-friendly dict."""
    t('reservations.models.payload.reservation_to_payload')

    return {
        "id": reservation.id,
        "resource_id": reservation.resource_id,
        "customer_name": reservation.customer_name,
        "customer_email": reservation.customer_email,
        "start": _isoformat(reservation.start),
        "end": _isoformat(reservation.end),
        "status": reservation.status.value,
        "type": reservation.type.value,
        "guest_count": reservation.guest_count,
        "notes": reservation.notes,
        "deposit_paid": reservation.deposit_paid,
        "final_payment_paid": reservation.final_payment_paid,
        "change_history": [
            {
                "timestamp": entry.timestamp.isoformat(),
                "changes": list(entry.changes),
                "actor": entry.actor,
            }
            for entry in reservation.change_history
        ],
        "created_at": _isoformat(reservation.created_at),
        "updated_at": _isoformat(reservation.updated_at),
    }


def reservation_from_payload(payload: Mapping[str, Any]) -> Reservation:
    """Convert a stored payload back into a :class:`Reservation`."""
    t('reservations.models.payload.reservation_from_payload')

    _ensure_fields(payload, REQUIRED_RESERVATION_FIELDS, "Reservation")

    history = tuple(
        ChangeHistoryEntry(
            timestamp=parse_datetime(entry["timestamp"]),
            changes=tuple(entry.get("changes") or ()),
            actor=entry.get("actor") or "system",
        )
        for entry in payload.get("change_history") or ()
    )

    guest_count = payload.get("guest_count")
    return Reservation(
        id=str(payload["id"]),
        resource_id=str(payload["resource_id"]),
        start=parse_datetime(payload["start"]),
        end=parse_datetime(payload["end"]),
        customer_name=payload.get("customer_name") or "",
        customer_email=payload.get("customer_email") or "",
        status=ReservationStatus(payload.get("status") or ReservationStatus.PENDING.value),
        type=ReservationType(payload.get("type") or ReservationType.CHARTER.value),
        guest_count=int(guest_count) if guest_count is not None else None,
        notes=payload.get("notes") or "",
        deposit_paid=bool(payload.get("deposit_paid")),
        final_payment_paid=bool(payload.get("final_payment_paid")),
        change_history=history,
        created_at=parse_datetime(payload.get("created_at")),
        updated_at=parse_datetime(payload.get("updated_at")),
    )


def resource_from_payload(payload: Mapping[str, Any]) -> ResourceSpec:
    """Build a :class:`ResourceSpec` from registry data."""
    t('reservations.models.payload.resource_from_payload')

    _ensure_fields(payload, REQUIRED_RESOURCE_FIELDS, "Resource")

    windows = tuple(
        MaintenanceWindow(
            start=parse_date(item["start"]),
            end=parse_date(item["end"]),
            reason=item.get("reason") or "",
        )
        for item in payload.get("maintenance_windows") or ()
    )

    raw_rates = payload.get("seasonal_rates") or ()
    if isinstance(raw_rates, Mapping):
        raw_rates = [{"name": name, **period} for name, period in raw_rates.items()]
    rates = tuple(
        SeasonalRate(
            name=item.get("name") or "season",
            start=parse_date(item["start"]),
            end=parse_date(item["end"]),
            multiplier=float(item.get("multiplier", 1.0)),
        )
        for item in raw_rates
    )

    return ResourceSpec(
        id=str(payload["id"]),
        name=str(payload["name"]),
        max_guests=int(payload["max_guests"]),
        min_booking_hours=int(payload.get("min_booking_hours") or 0),
        maintenance_windows=windows,
        seasonal_rates=rates,
    )
