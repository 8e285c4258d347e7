from datetime import date, timedelta

from reservations.availability import (
    AvailabilityStatus,
    SlotSearchOptions,
    date_availability,
    find_available_slots,
    range_availability,
)
from reservations.models import ReservationStatus, ReservationType
from tests.helpers import make_reservation


def june(day: int) -> date:
    return date(2025, 6, day)


def test_start_day_of_confirmed_booking_is_transition_day():
    booked = make_reservation("booked", june(10), june(15))

    result = date_availability(june(10), "spectre", [booked])

    assert result.status is AvailabilityStatus.CONFIRMED
    assert result.is_transition_day is True
    assert result.is_available is False
    assert result.reservation is booked


def test_middle_day_is_not_transition_and_free_day_is_available():
    booked = make_reservation("booked", june(10), june(15))

    middle = date_availability(june(12), "spectre", [booked])
    free = date_availability(june(16), "spectre", [booked])

    assert middle.is_transition_day is False
    assert free.status is AvailabilityStatus.AVAILABLE
    assert free.reservation is None


def test_status_priority_follows_reservation_type_then_status():
    cases = [
        (ReservationType.BLOCKED, ReservationStatus.CONFIRMED, AvailabilityStatus.BLOCKED),
        (ReservationType.MAINTENANCE, ReservationStatus.PENDING, AvailabilityStatus.MAINTENANCE),
        (ReservationType.OWNER_USE, ReservationStatus.PENDING, AvailabilityStatus.OWNER_USE),
        (ReservationType.CHARTER, ReservationStatus.DEPOSIT_PENDING, AvailabilityStatus.PENDING),
        (ReservationType.CHARTER, ReservationStatus.PENDING, AvailabilityStatus.PENDING),
    ]
    for type_, status, expected in cases:
        reservation = make_reservation("r", june(1), june(3), type=type_, status=status)
        assert date_availability(june(2), "spectre", [reservation]).status is expected


def test_cancelled_reservations_and_other_resources_do_not_occupy():
    reservations = [
        make_reservation("cancelled", june(1), june(5), status=ReservationStatus.CANCELLED),
        make_reservation("other", june(1), june(5), resource_id="zavaria"),
    ]

    assert date_availability(june(3), "spectre", reservations).is_available


def test_range_availability_returns_one_result_per_day():
    booked = make_reservation("booked", june(10), june(15))

    results = range_availability(june(8), june(17), "spectre", [booked])

    assert [r.date for r in results] == [june(d) for d in range(8, 18)]
    assert [r.is_available for r in results] == [True, True] + [False] * 6 + [True, True]


def test_slots_split_around_existing_booking_and_skip_weekends():
    booked = make_reservation("booked", june(10), june(15))
    options = SlotSearchOptions(start_from=june(1), end_before=june(20))

    slots = find_available_slots("spectre", [booked], options)

    assert [(s.start_date, s.end_date, s.days) for s in slots] == [
        (june(1), june(9), 9),
        (june(16), june(20), 5),
    ]
    # June 1, 2025 is a Sunday; June 16-20 is Monday to Friday.
    assert [s.includes_weekend for s in slots] == [True, False]

    weekdays_only = find_available_slots(
        "spectre",
        [booked],
        SlotSearchOptions(start_from=june(1), end_before=june(20), exclude_weekends=True),
    )
    assert [(s.start_date, s.end_date) for s in weekdays_only] == [(june(16), june(20))]


def test_slots_respect_max_and_min_days():
    booked = make_reservation("booked", june(10), june(15))

    capped = find_available_slots(
        "spectre",
        [booked],
        SlotSearchOptions(min_days=2, max_days=4, start_from=june(1), end_before=june(20)),
    )

    assert [(s.start_date, s.end_date) for s in capped] == [
        (june(1), june(4)),
        (june(5), june(8)),
        (june(16), june(19)),
    ]


def test_slots_never_contain_unavailable_days():
    reservations = [
        make_reservation("a", june(3), june(4)),
        make_reservation("b", june(9), june(9), status=ReservationStatus.PENDING),
        make_reservation("c", june(14), june(20), type=ReservationType.MAINTENANCE),
    ]

    slots = find_available_slots(
        "spectre",
        reservations,
        SlotSearchOptions(max_days=5, start_from=june(1), end_before=june(30)),
    )

    assert slots
    for slot in slots:
        day = slot.start_date
        while day <= slot.end_date:
            assert date_availability(day, "spectre", reservations).is_available
            day += timedelta(days=1)


def test_default_window_starts_today_and_spans_ninety_days():
    slots = find_available_slots("spectre", [], SlotSearchOptions(max_days=365), today=june(1))

    assert len(slots) == 1
    assert slots[0].start_date == june(1)
    assert slots[0].end_date == june(1) + timedelta(days=90)
