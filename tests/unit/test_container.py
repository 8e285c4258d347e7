import json
from datetime import datetime

import pytest

from bootstrap import ReservationContainer
from infrastructure.settings import load_settings
from reservations.queue import MemoryStore
from tests.helpers import FakeMutationAPI


@pytest.fixture
def settings(tmp_path):
    resources = tmp_path / "resources.json"
    resources.write_text(json.dumps([
        {"id": "zavaria", "name": "Zavaria", "max_guests": 6, "min_booking_hours": 4},
    ]), encoding="utf-8")
    return load_settings({
        "DATA_DIRECTORY": str(tmp_path),
        "QUEUE_ITEM_DELAY_SECONDS": "0",
        "QUEUE_RETRY_DELAY_SECONDS": "0.001",
        "LOG_DIRECTORY": str(tmp_path / "logs"),
    })


def test_dependencies_are_built_once_and_shared(settings):
    container = ReservationContainer(settings, FakeMutationAPI())

    deps = container.build_dependencies()

    assert deps.state_manager is container.state_manager
    assert deps.reservation_service.queue is deps.offline_queue
    assert deps.offline_queue.network is deps.network
    assert deps.registry.get("zavaria").max_guests == 6
    assert set(deps.as_dict()) == {
        "settings",
        "network",
        "registry",
        "store",
        "state_manager",
        "offline_queue",
        "reservation_service",
    }


def test_overrides_replace_factories(settings):
    store = MemoryStore()
    container = ReservationContainer(settings, FakeMutationAPI(), overrides={"store": store})

    assert container.offline_queue.store is store


@pytest.mark.asyncio
async def test_start_resumes_queued_work_and_close_persists(settings):
    api = FakeMutationAPI()
    store = MemoryStore()

    first = ReservationContainer(settings, api, overrides={"store": store})
    first.network.set_online(False)
    first.offline_queue.queue_create({
        "id": "queued",
        "resource_id": "zavaria",
        "start": datetime(2025, 7, 1, 9),
        "end": datetime(2025, 7, 1, 17),
    })
    await first.start()
    await first.close()
    assert api.calls == []

    second = ReservationContainer(settings, api, overrides={"store": store})
    deps = await second.start()
    assert second.started
    await deps.offline_queue.wait_idle()

    assert api.call_names() == ["create"]
    assert deps.offline_queue.get_status().pending_count == 0
    await second.close()
    assert not second.started
