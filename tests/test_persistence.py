# SPDX-License-Identifier: MIT

import asyncio
import json

import pytest

from tabflip.container_registry import ContainerRegistry
from tabflip.error_handler import PersistenceError
from tabflip.persistence import (
    JsonFileSnapshotStore,
    MemorySnapshotStore,
    PersistedSnapshot,
    now_ms,
    snapshot_from_dict,
    snapshot_from_registry,
    snapshot_to_dict,
)

HOUR_MS = 3600 * 1000


@pytest.fixture
def registry():
    registry = ContainerRegistry()
    registry.register(1, True, [(10, False), (11, True)])
    registry.register(2, False, [(20, True)])
    return registry


def test_snapshot_wire_shape(registry):
    payload = snapshot_to_dict(snapshot_from_registry(registry))
    assert set(payload) == {"containers", "timestamp", "schemaVersion"}
    first = payload["containers"][0]
    assert first["containerId"] == 1
    assert first["movable"] is True
    assert [item["itemId"] for item in first["items"]] == [10, 11]
    assert payload["containers"][1]["movable"] is False


def test_snapshot_older_than_a_day_is_ignored(registry):
    store = MemorySnapshotStore()
    snapshot = snapshot_from_registry(registry)
    stale = PersistedSnapshot(snapshot.containers, timestamp=now_ms() - 25 * HOUR_MS)
    asyncio.run(store.save(stale))
    assert asyncio.run(store.load()) is None


def test_recent_snapshot_is_loaded(registry):
    store = MemorySnapshotStore()
    snapshot = snapshot_from_registry(registry)
    recent = PersistedSnapshot(snapshot.containers, timestamp=now_ms() - 23 * HOUR_MS)
    asyncio.run(store.save(recent))

    loaded = asyncio.run(store.load())
    assert loaded is not None
    assert [c.container_id for c in loaded.containers] == [1, 2]
    assert loaded.containers[0].item_ids() == [10, 11]


def test_duplicate_items_reject_the_whole_snapshot():
    payload = {
        "containers": [
            {"containerId": 1, "movable": True, "items": [{"itemId": 4, "order": 1}]},
            {"containerId": 2, "movable": True, "items": [{"itemId": 5, "order": 1}, {"itemId": 5, "order": 2}]},
        ],
        "timestamp": now_ms(),
        "schemaVersion": "3.0.3",
    }
    with pytest.raises(PersistenceError):
        snapshot_from_dict(payload)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"timestamp": 1},
        {"containers": [{"movable": True}]},
        {"containers": [{"containerId": "x", "items": []}]},
        {"containers": [{"containerId": 1, "items": [{"itemId": 1}]}]},
        {"containers": ["not-a-container"]},
    ],
)
def test_malformed_snapshot_is_rejected(payload):
    with pytest.raises(PersistenceError):
        snapshot_from_dict(payload)


def test_memory_store_clear(registry):
    store = MemorySnapshotStore()
    asyncio.run(store.save(snapshot_from_registry(registry)))
    asyncio.run(store.clear())
    assert store.payload is None
    assert asyncio.run(store.load()) is None


def test_json_file_store_roundtrip(tmp_path, registry):
    path = tmp_path / "state" / "tabflip_state.json"
    store = JsonFileSnapshotStore(path)

    asyncio.run(store.save(snapshot_from_registry(registry)))
    assert path.exists()
    assert not (tmp_path / "state" / "tabflip_state.json.tmp").exists()
    assert json.loads(path.read_text(encoding="utf-8"))["schemaVersion"] == "3.0.3"

    loaded = asyncio.run(store.load())
    assert [c.container_id for c in loaded.containers] == [1, 2]

    asyncio.run(store.clear())
    assert not path.exists()
    assert asyncio.run(store.load()) is None


def test_json_file_store_missing_file(tmp_path):
    store = JsonFileSnapshotStore(tmp_path / "absent.json")
    assert asyncio.run(store.load()) is None
    # Clearing a missing file is not an error
    asyncio.run(store.clear())


def test_json_file_store_corrupted_file_starts_fresh(tmp_path):
    path = tmp_path / "tabflip_state.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileSnapshotStore(path)
    assert asyncio.run(store.load()) is None


def test_json_file_store_write_failure_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileSnapshotStore(blocker / "tabflip_state.json")

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(snapshot_from_registry(ContainerRegistry())))


def test_json_file_store_undecodable_file_starts_fresh(tmp_path):
    path = tmp_path / "tabflip_state.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    store = JsonFileSnapshotStore(path)
    assert asyncio.run(store.load()) is None


def test_json_file_store_failed_write_removes_temp_file(tmp_path):
    # A directory in place of the state file makes the final rename fail
    path = tmp_path / "tabflip_state.json"
    path.mkdir()
    store = JsonFileSnapshotStore(path)

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(snapshot_from_registry(ContainerRegistry())))
    assert not (tmp_path / "tabflip_state.json.tmp").exists()
