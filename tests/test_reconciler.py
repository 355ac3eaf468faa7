# SPDX-License-Identifier: MIT

import asyncio

import pytest

from tabflip.container_registry import ContainerRegistry
from tabflip.error_handler import HostError
from tabflip.persistence import PersistedContainer, PersistedSnapshot, snapshot_from_registry, snapshot_to_dict
from tabflip.reconciler import ReconciliationEngine, snapshot_matches_host
from tabflip.recency_list import RecencyEntry

from tests.fakes import FailingHost, FakeHost


class ChangeCounter:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


def make_engine(host, registry=None, on_change=None):
    return ReconciliationEngine(
        registry or ContainerRegistry(),
        host,
        asyncio.Lock(),
        on_change=on_change,
        interval=0,
    )


def test_missing_and_orphaned_items_are_repaired():
    host = FakeHost()
    host.add_window(1, [2, 3], active=3)
    registry = ContainerRegistry()
    registry.register(1, True, [(1, False), (2, True)])

    engine = make_engine(host, registry)
    changes = asyncio.run(engine.reconcile())

    recency = registry.get(1).recency
    assert changes == 2
    assert set(recency.item_ids()) == {2, 3}
    assert recency.most_recent() == 3


def test_missing_inactive_item_is_least_recent():
    host = FakeHost()
    host.add_window(1, [1, 2, 9], active=2)
    registry = ContainerRegistry()
    registry.register(1, True, [(1, False), (2, True)])

    asyncio.run(make_engine(host, registry).reconcile())
    assert registry.get(1).recency.ranked() == [2, 1, 9]


def test_matched_items_keep_their_order():
    host = FakeHost()
    host.add_window(1, [1, 2, 3], active=3)
    registry = ContainerRegistry()
    registry.register(1, True, [(1, False), (2, False), (3, True)])
    registry.get(1).recency.touch(1)
    before = registry.get(1).recency.ranked()

    changes = asyncio.run(make_engine(host, registry).reconcile())
    assert changes == 0
    assert registry.get(1).recency.ranked() == before


def test_reconcile_twice_is_idempotent():
    host = FakeHost()
    host.add_window(1, [2, 3], active=3)
    host.add_window(4, [40], active=40)
    registry = ContainerRegistry()
    registry.register(1, True, [(1, False), (2, True)])
    registry.register(5, True, [(50, True)])
    counter = ChangeCounter()
    engine = make_engine(host, registry, on_change=counter)

    async def scenario():
        first = await engine.reconcile()
        snapshot = snapshot_to_dict(snapshot_from_registry(registry))
        second = await engine.reconcile()
        return first, second, snapshot, snapshot_to_dict(snapshot_from_registry(registry))

    first, second, snapshot_a, snapshot_b = asyncio.run(scenario())
    assert first > 0
    assert second == 0
    assert snapshot_a["containers"] == snapshot_b["containers"]
    assert counter.calls == 1
    assert engine.runs == 2


def test_new_and_vanished_windows():
    host = FakeHost()
    host.add_window(2, [20, 21], active=20)
    registry = ContainerRegistry()
    registry.register(1, True, [(10, True)])

    changes = asyncio.run(make_engine(host, registry).reconcile())
    assert changes == 2
    assert registry.container_ids() == [2]
    assert registry.get(2).recency.most_recent() == 20


def test_failed_query_changes_nothing():
    registry = ContainerRegistry()
    registry.register(1, True, [(10, True)])
    engine = make_engine(FailingHost(), registry)

    with pytest.raises(HostError):
        asyncio.run(engine.reconcile())
    assert registry.get(1).recency.item_ids() == [10]


def test_background_timer_runs_and_stops():
    host = FakeHost()
    host.add_window(1, [1], active=1)
    registry = ContainerRegistry()
    engine = ReconciliationEngine(registry, host, asyncio.Lock(), interval=0.01)

    async def scenario():
        engine.start()
        assert engine.running
        await asyncio.sleep(0.05)
        await engine.stop()
        return engine.running

    assert asyncio.run(scenario()) is False
    assert engine.runs >= 1
    assert 1 in registry


def test_zero_interval_disables_timer():
    engine = make_engine(FakeHost())

    async def scenario():
        engine.start()
        return engine.running

    assert asyncio.run(scenario()) is False


def snapshot_of(*containers):
    return PersistedSnapshot(
        containers=[
            PersistedContainer(cid, True, [RecencyEntry(item_id, 100 + i) for i, item_id in enumerate(items)])
            for cid, items in containers
        ],
        timestamp=0,
    )


def test_snapshot_matches_identical_host():
    host = FakeHost()
    host.add_window(1, [1, 2], active=2)
    windows = asyncio.run(host.query_containers())
    assert snapshot_matches_host(snapshot_of((1, [2, 1])), windows) is True


@pytest.mark.parametrize(
    "stored",
    [
        [(1, [1, 2]), (2, [3])],
        [(9, [1, 2])],
        [(1, [1])],
        [(1, [1, 3])],
    ],
)
def test_snapshot_mismatch_is_rejected(stored):
    host = FakeHost()
    host.add_window(1, [1, 2], active=2)
    windows = asyncio.run(host.query_containers())
    assert snapshot_matches_host(snapshot_of(*stored), windows) is False
