# SPDX-License-Identifier: MIT

import asyncio

import pytest

from tabflip.container_registry import ContainerRegistry
from tabflip.recency_list import RecencyEntry

from tests.fakes import FakeHost


@pytest.fixture
def registry():
    return ContainerRegistry()


def test_register_puts_active_item_most_recent(registry):
    container = registry.register(1, True, [(10, False), (11, True), (12, False)])
    assert container.recency.most_recent() == 11
    assert set(container.recency.item_ids()) == {10, 11, 12}


def test_register_keeps_host_order_for_inactive_items(registry):
    container = registry.register(1, True, [(10, False), (11, True), (12, False)])
    assert container.recency.item_ids() == [10, 12, 11]
    assert container.recency.ranked() == [11, 12, 10]


def test_register_replaces_existing_tracking(registry):
    registry.register(1, True, [(10, True)])
    registry.register(1, False, [(20, True)])
    assert len(registry) == 1
    container = registry.get(1)
    assert container.movable is False
    assert container.recency.item_ids() == [20]


def test_register_host_container_uses_window_type():
    host = FakeHost()
    host.add_window(3, [30, 31], active=30, window_type="popup")
    window = asyncio.run(host.query_container(3))

    registry = ContainerRegistry()
    container = registry.register_host_container(window)
    assert container.movable is False
    assert container.recency.most_recent() == 30


def test_find_item_scans_all_containers(registry):
    registry.register(1, True, [(10, True), (11, False)])
    registry.register(2, True, [(20, True), (21, False)])

    container, index = registry.find_item(21)
    assert container.container_id == 2
    assert container.recency.item_ids()[index] == 21
    assert registry.find_item(99) is None


def test_unregister(registry):
    registry.register(1, True, [(10, True)])
    assert registry.unregister(1) is True
    assert registry.unregister(1) is False
    assert registry.get(1) is None


def test_resolve_resyncs_missing_container(registry):
    host = FakeHost()
    host.add_window(7, [70, 71], active=70)

    container = asyncio.run(registry.resolve(7, host))
    assert container is not None
    assert registry.get(7) is container
    assert container.recency.most_recent() == 70


def test_resolve_returns_none_for_unknown_container(registry):
    host = FakeHost()
    assert asyncio.run(registry.resolve(7, host)) is None
    assert 7 not in registry


def test_restore_keeps_persisted_orders(registry):
    container = registry.restore(1, True, [RecencyEntry(10, 500), RecencyEntry(11, 100)])
    assert container.recency.ranked() == [10, 11]
    # New activity ranks above anything restored
    container.recency.touch(11)
    assert container.recency.most_recent() == 11


def test_stats_and_validate(registry):
    registry.register(1, True, [(10, True), (11, False)])
    registry.register(2, True, [(20, True)])
    assert registry.stats() == {"container_count": 2, "total_items": 3}
    assert registry.validate() is True


def test_validate_flags_invalid_entries(registry):
    registry.restore(1, True, [RecencyEntry(10, 0)])
    assert registry.validate() is False
