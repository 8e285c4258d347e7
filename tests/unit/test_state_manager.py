import asyncio
from datetime import date, datetime

import pytest

from reservations.errors import (
    ConflictError,
    MutationFailure,
    MutationValidationError,
    NetworkError,
    ReservationNotFoundError,
    ValidationError,
)
from reservations.models import ReservationStatus, ResourceSpec
from reservations.registry import ResourceRegistry
from reservations.state import (
    BatchOperation,
    MutationType,
    ReservationStateManager,
    StateEventKind,
)
from tests.helpers import FIXED_NOW, DummyLogger, EventRecorder, FakeMutationAPI, make_reservation


def june(day: int) -> date:
    return date(2025, 6, day)


def new_booking(**overrides):
    data = {
        "resource_id": "spectre",
        "customer_name": "Ada",
        "customer_email": "ada@example.com",
        "start": datetime(2025, 6, 20, 9),
        "end": datetime(2025, 6, 22, 17),
        "status": "pending",
    }
    data.update(overrides)
    return data


@pytest.fixture
def booked():
    return make_reservation("booked", june(10), june(15))


@pytest.fixture
def api(booked):
    return FakeMutationAPI([booked])


@pytest.fixture
def manager(api, booked):
    state = ReservationStateManager(api, clock=lambda: FIXED_NOW, logger=DummyLogger())
    state.set_all([booked])
    return state


@pytest.fixture
def events(manager):
    recorder = EventRecorder()
    manager.subscribe(recorder)
    return recorder


@pytest.mark.asyncio
async def test_create_commits_server_snapshot_and_records_history(manager, api, events):
    created = await manager.create(new_booking())

    assert manager.get_by_id(created.id) == created
    assert api.call_names() == ["create"]
    assert events.kinds() == ["optimistic_apply", "created"]
    assert events.events[0].operation_id == events.events[1].operation_id
    history = manager.get_operation_history()
    assert [entry.mutation for entry in history] == [MutationType.CREATE]
    assert manager.get_pending_operations() == []


@pytest.mark.asyncio
async def test_optimistic_snapshot_is_visible_while_backend_call_is_in_flight(manager, api):
    api.gate = asyncio.Event()

    task = asyncio.create_task(manager.create(new_booking(id="fresh")))
    await asyncio.sleep(0)

    assert manager.get_by_id("fresh") is not None
    assert len(manager.get_pending_operations()) == 1

    api.gate.set()
    await task
    assert manager.get_pending_operations() == []


@pytest.mark.asyncio
async def test_failed_update_restores_exact_snapshot(manager, api, events):
    before = manager.get_by_id("booked")
    error = NetworkError("backend unreachable")
    api.fail_next("update", error)

    with pytest.raises(NetworkError) as excinfo:
        await manager.update("booked", {"notes": "late checkout", "guest_count": 4})

    assert excinfo.value is error
    restored = manager.get_by_id("booked")
    assert restored is before
    assert len(restored.change_history) == len(before.change_history)
    assert events.kinds() == ["optimistic_apply", "optimistic_rollback"]
    assert events.events[1].restored is before
    assert events.events[1].error is error
    assert manager.get_operation_history() == []


@pytest.mark.asyncio
async def test_failed_create_removes_optimistic_reservation(manager, api):
    api.fail_next("create", MutationValidationError("rejected"))

    with pytest.raises(MutationValidationError):
        await manager.create(new_booking(id="doomed"))

    assert manager.get_by_id("doomed") is None
    assert manager.get_stats()["rolled_back"] == 1


@pytest.mark.asyncio
async def test_failed_delete_puts_reservation_back(manager, api, events):
    api.delete_result = False

    with pytest.raises(MutationFailure):
        await manager.delete("booked")

    assert manager.get_by_id("booked") is not None
    assert events.kinds() == ["optimistic_apply", "optimistic_rollback"]


@pytest.mark.asyncio
async def test_non_optimistic_mutation_emits_only_confirmation(manager, events):
    await manager.update("booked", {"notes": "quiet"}, optimistic=False)

    assert events.kinds() == ["updated"]


@pytest.mark.asyncio
async def test_conflicting_create_is_rejected_before_any_apply(manager, api, events):
    with pytest.raises(ConflictError) as excinfo:
        await manager.create(new_booking(start=datetime(2025, 6, 12, 9), end=datetime(2025, 6, 16, 17)))

    assert excinfo.value.conflicts[0].reservation.id == "booked"
    assert excinfo.value.conflicts[0].overlap_days == 4
    assert api.calls == []
    assert events.events == []


@pytest.mark.asyncio
async def test_conflict_checks_can_be_disabled(manager):
    created = await manager.create(
        new_booking(start=datetime(2025, 6, 12, 9), end=datetime(2025, 6, 16, 17)),
        validate_conflicts=False,
    )

    assert manager.get_by_id(created.id) is not None


@pytest.mark.asyncio
async def test_invalid_data_raises_validation_error(manager, api):
    with pytest.raises(ValidationError) as excinfo:
        await manager.create(new_booking(end=datetime(2025, 6, 19, 9), customer_email="nope"))

    assert set(excinfo.value.field_errors) == {"end", "customer_email"}
    assert api.calls == []


@pytest.mark.asyncio
async def test_registry_rules_are_enforced(api, booked):
    registry = ResourceRegistry([ResourceSpec(id="spectre", name="Spectre", max_guests=4)])
    manager = ReservationStateManager(api, registry=registry, clock=lambda: FIXED_NOW, logger=DummyLogger())

    with pytest.raises(ValidationError) as excinfo:
        await manager.create(new_booking(guest_count=9))
    assert "guest_count" in excinfo.value.field_errors

    with pytest.raises(ValidationError) as excinfo:
        await manager.create(new_booking(resource_id="ghost"))
    assert "resource_id" in excinfo.value.field_errors


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(manager):
    with pytest.raises(ReservationNotFoundError):
        await manager.update("missing", {"notes": "x"})
    with pytest.raises(LookupError):
        await manager.delete("missing")


@pytest.mark.asyncio
async def test_move_changes_resource_and_dates(manager, events):
    moved = await manager.move("booked", "alrisha", datetime(2025, 7, 1, 9), datetime(2025, 7, 3, 17))

    assert moved.resource_id == "alrisha"
    assert manager.get_for_resource("spectre") == []
    assert events.events[-1].kind is StateEventKind.UPDATED
    assert events.events[-1].mutation is MutationType.MOVE
    assert moved.change_history[-1].changes == ("end", "resource_id", "start")


@pytest.mark.asyncio
async def test_batch_is_sequential_and_best_effort(manager, api, events):
    api.fail_next("update", NetworkError("down"))

    results = await manager.batch_update([
        BatchOperation(MutationType.UPDATE, "booked", {"notes": "first"}),
        BatchOperation(MutationType.CREATE, data=new_booking(id="second")),
        BatchOperation(MutationType.DELETE, "missing"),
    ])

    assert [result.success for result in results] == [False, True, False]
    assert isinstance(results[0].error, NetworkError)
    assert isinstance(results[2].error, ReservationNotFoundError)
    assert manager.get_by_id("second") is not None
    assert events.events[-1].kind is StateEventKind.BATCH_COMPLETE
    assert len(events.events[-1].results) == 3


@pytest.mark.asyncio
async def test_undo_reverts_update_create_and_delete(manager, api, events):
    original = manager.get_by_id("booked")
    await manager.update("booked", {"status": "completed"})
    created = await manager.create(new_booking())
    await manager.delete("booked")

    assert await manager.undo_last_operation() is True
    assert manager.get_by_id("booked") is not None

    assert await manager.undo_last_operation() is True
    assert manager.get_by_id(created.id) is None

    assert await manager.undo_last_operation() is True
    assert manager.get_by_id("booked").status is original.status

    assert await manager.undo_last_operation() is False
    assert events.kinds().count("operation_undone") == 3
    assert manager.get_operation_history() == []


@pytest.mark.asyncio
async def test_failed_undo_keeps_history_entry(manager, api):
    await manager.update("booked", {"notes": "changed"})
    api.fail_next("update", NetworkError("down"))

    with pytest.raises(NetworkError):
        await manager.undo_last_operation()

    assert len(manager.get_operation_history()) == 1


@pytest.mark.asyncio
async def test_history_is_bounded(api):
    manager = ReservationStateManager(api, history_limit=3, clock=lambda: FIXED_NOW, logger=DummyLogger())
    for index in range(5):
        await manager.create(new_booking(id=f"r{index}", start=datetime(2025, 7, index + 1, 9), end=datetime(2025, 7, index + 1, 17)))

    history = manager.get_operation_history()
    assert [entry.reservation_id for entry in history] == ["r2", "r3", "r4"]


@pytest.mark.asyncio
async def test_subscriber_errors_are_logged_and_do_not_break_others(api, booked):
    logger = DummyLogger()
    manager = ReservationStateManager(api, clock=lambda: FIXED_NOW, logger=logger)
    recorder = EventRecorder()

    def broken(event):
        raise RuntimeError("listener exploded")

    manager.subscribe(broken)
    manager.subscribe(recorder)
    await manager.create(new_booking())

    assert recorder.kinds() == ["optimistic_apply", "created"]
    assert "error" in logger.levels()


def test_unsubscribe_stops_delivery(manager):
    recorder = EventRecorder()
    unsubscribe = manager.subscribe(recorder)
    unsubscribe()

    manager.clear()

    assert recorder.events == []


def test_set_all_clear_and_queries(manager, events, booked):
    other = make_reservation("other", june(20), june(22), resource_id="alrisha", status=ReservationStatus.PENDING)
    manager.set_all([booked, other])

    assert {r.id for r in manager.get_all()} == {"booked", "other"}
    assert [r.id for r in manager.get_in_range(june(14), june(21))] == ["booked", "other"]
    assert [r.id for r in manager.get_in_range(june(14), june(21), resource_id="alrisha")] == ["other"]
    assert manager.get_date_availability(june(10), "spectre").is_transition_day
    stats = manager.get_stats()
    assert stats["total"] == 2
    assert stats["by_status"] == {"confirmed": 1, "pending": 1}

    manager.clear()
    assert manager.get_all() == []
    assert events.kinds() == ["bulk_update", "cleared"]


@pytest.mark.asyncio
async def test_late_rollback_keeps_newer_confirmed_update(manager, api):
    before = manager.get_by_id("booked")
    api.fail_next("update", NetworkError("timeout"))
    first_reply = api.hold_next("update")

    first = asyncio.create_task(manager.update("booked", {"notes": "first"}))
    await asyncio.sleep(0)
    second = await manager.update("booked", {"customer_name": "Second"})

    visible = manager.get_by_id("booked")
    assert (visible.customer_name, visible.notes) == ("Second", "first")
    assert len(manager.get_pending_operations()) == 1

    first_reply.set()
    with pytest.raises(NetworkError):
        await first

    assert manager.get_by_id("booked") is second
    assert second.customer_name == "Second"
    assert second.notes == before.notes
    assert manager.get_pending_operations() == []


@pytest.mark.asyncio
async def test_failures_in_call_order_return_to_confirmed_snapshot(manager, api, events):
    before = manager.get_by_id("booked")
    api.fail_next("update", NetworkError("down"), times=2)
    first_reply = api.hold_next("update")
    second_reply = api.hold_next("update")

    first = asyncio.create_task(manager.update("booked", {"notes": "first"}))
    await asyncio.sleep(0)
    second = asyncio.create_task(manager.update("booked", {"customer_name": "Second"}))
    await asyncio.sleep(0)
    assert len(manager.get_pending_operations()) == 2

    first_reply.set()
    with pytest.raises(NetworkError):
        await first

    visible = manager.get_by_id("booked")
    assert (visible.customer_name, visible.notes) == ("Second", before.notes)
    assert len(manager.get_pending_operations()) == 1
    assert events.events[-1].restored is visible

    second_reply.set()
    with pytest.raises(NetworkError):
        await second

    assert manager.get_by_id("booked") is before
    assert manager.get_pending_operations() == []


@pytest.mark.asyncio
async def test_failures_in_reverse_order_return_to_confirmed_snapshot(manager, api):
    before = manager.get_by_id("booked")
    api.fail_next("update", NetworkError("down"), times=2)
    first_reply = api.hold_next("update")
    second_reply = api.hold_next("update")

    first = asyncio.create_task(manager.update("booked", {"notes": "first"}))
    await asyncio.sleep(0)
    second = asyncio.create_task(manager.update("booked", {"customer_name": "Second"}))
    await asyncio.sleep(0)

    second_reply.set()
    with pytest.raises(NetworkError):
        await second
    visible = manager.get_by_id("booked")
    assert (visible.customer_name, visible.notes) == (before.customer_name, "first")

    first_reply.set()
    with pytest.raises(NetworkError):
        await first
    assert manager.get_by_id("booked") is before


@pytest.mark.asyncio
async def test_stale_update_confirmation_does_not_undo_newer_delete(manager, api):
    update_reply = api.hold_next("update")

    pending_update = asyncio.create_task(manager.update("booked", {"notes": "first"}))
    await asyncio.sleep(0)
    await manager.delete("booked")
    assert manager.get_by_id("booked") is None

    update_reply.set()
    await pending_update

    assert manager.get_by_id("booked") is None
    assert manager.get_pending_operations() == []


@pytest.mark.asyncio
async def test_batch_delete_is_applied_pessimistically_when_asked(manager, api):
    api.gate = asyncio.Event()

    batch = asyncio.create_task(manager.batch_update(
        [BatchOperation(MutationType.DELETE, "booked")],
        optimistic=False,
    ))
    await asyncio.sleep(0)
    assert manager.get_by_id("booked") is not None

    api.gate.set()
    results = await batch

    assert [result.success for result in results] == [True]
    assert manager.get_by_id("booked") is None
    assert api.call_names() == ["delete"]
