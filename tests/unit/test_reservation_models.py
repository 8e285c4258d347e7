from datetime import datetime

import pytest

from reservations.models import (
    Reservation,
    ReservationStatus,
    ReservationType,
    build_reservation,
    reservation_from_payload,
)
from tests.helpers import FIXED_NOW


def base_reservation(**overrides) -> Reservation:
    data = {
        "id": "r1",
        "resource_id": "spectre",
        "start": datetime(2025, 6, 10, 9),
        "end": datetime(2025, 6, 15, 17),
        "customer_email": "guest@example.com",
    }
    data.update(overrides)
    return build_reservation(data, now=FIXED_NOW)


def test_build_reservation_generates_id_and_coerces_enums():
    reservation = build_reservation(
        {
            "resource_id": "spectre",
            "start": datetime(2025, 6, 10, 9),
            "end": datetime(2025, 6, 11, 17),
            "status": "deposit_pending",
            "type": "owner_use",
        },
        now=FIXED_NOW,
    )

    assert reservation.id
    assert reservation.status is ReservationStatus.DEPOSIT_PENDING
    assert reservation.type is ReservationType.OWNER_USE
    assert reservation.created_at == FIXED_NOW
    assert reservation.days == 2


def test_build_reservation_rejects_unknown_fields():
    with pytest.raises(KeyError):
        build_reservation({"yacht": "spectre"})


def test_validate_reports_field_errors():
    reservation = base_reservation(
        end=datetime(2025, 6, 9, 9),
        customer_email="not-an-email",
        resource_id="",
    )

    errors = reservation.validate()

    assert set(errors) == {"end", "customer_email", "resource_id"}


def test_apply_patch_appends_sorted_history_entry():
    reservation = base_reservation()
    later = datetime(2025, 6, 2, 12)

    patched = reservation.apply_patch({"status": "confirmed", "notes": "VIP"}, actor="ops", now=later)

    assert patched is not reservation
    assert patched.status is ReservationStatus.CONFIRMED
    assert patched.updated_at == later
    assert len(patched.change_history) == 1
    entry = patched.change_history[0]
    assert entry.changes == ("notes", "status")
    assert entry.actor == "ops"
    assert reservation.change_history == ()


def test_apply_patch_without_changes_returns_same_snapshot():
    reservation = base_reservation()

    assert reservation.apply_patch({"resource_id": "spectre"}) is reservation


def test_apply_patch_rejects_identity_fields():
    with pytest.raises(KeyError):
        base_reservation().apply_patch({"id": "other"})


def test_change_history_keeps_most_recent_entries():
    reservation = base_reservation()
    for index in range(55):
        reservation = reservation.apply_patch({"notes": f"note {index}"}, now=FIXED_NOW)

    assert len(reservation.change_history) == 50
    assert reservation.notes == "note 54"


def test_inactive_statuses():
    assert not base_reservation(status="cancelled").is_active
    assert not base_reservation(status="no_show").is_active
    assert base_reservation(status="completed").is_active


def test_payload_round_trip_preserves_snapshot():
    reservation = base_reservation(guest_count=6, deposit_paid=True).apply_patch(
        {"notes": "late arrival"}, now=FIXED_NOW
    )

    payload = reservation.to_payload()

    assert payload["status"] == "pending"
    assert payload["start"] == "2025-06-10T09:00:00"
    assert reservation_from_payload(payload) == reservation


def test_payload_requires_identity_and_dates():
    with pytest.raises(ValueError):
        reservation_from_payload({"id": "r1", "resource_id": "spectre"})
