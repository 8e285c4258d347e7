"""Domain model definitions for the reservation core."""

from .reservation import (
    ChangeHistoryEntry,
    INACTIVE_STATUSES,
    MUTABLE_FIELDS,
    Reservation,
    ReservationStatus,
    ReservationType,
    TOGGLE_FIELDS,
    as_day,
    build_reservation,
)
from .resource import MaintenanceWindow, ResourceSpec, SeasonalRate
from .payload import (
    decode_patch,
    encode_patch,
    reservation_from_payload,
    reservation_to_payload,
    resource_from_payload,
)

__all__ = [
    "ChangeHistoryEntry",
    "INACTIVE_STATUSES",
    "MUTABLE_FIELDS",
    "Reservation",
    "ReservationStatus",
    "ReservationType",
    "TOGGLE_FIELDS",
    "as_day",
    "build_reservation",
    "MaintenanceWindow",
    "ResourceSpec",
    "SeasonalRate",
    "decode_patch",
    "encode_patch",
    "reservation_from_payload",
    "reservation_to_payload",
    "resource_from_payload",
]
