# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .host import HostContainer, HostInterface
from .recency_list import OrderClock, RecencyEntry, RecencyList, TAIL

lib_logger = logging.getLogger("tabflip")


@dataclass
class Container:
    """A tracked window: its recency list plus host metadata."""

    container_id: int
    movable: bool = True
    recency: RecencyList = field(default_factory=RecencyList)

    def to_dict(self) -> Dict:
        return {
            "containerId": self.container_id,
            "movable": self.movable,
            "items": self.recency.to_list(),
        }


class ContainerRegistry:
    """
    Owns every tracked container and its recency list.

    The registry itself is not locked; the tracker serializes all access
    behind its state lock.
    """

    def __init__(self, clock: Optional[OrderClock] = None) -> None:
        self._clock = clock or OrderClock()
        self._containers: Dict[int, Container] = {}

    def __len__(self) -> int:
        return len(self._containers)

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._containers

    @property
    def clock(self) -> OrderClock:
        return self._clock

    def containers(self) -> List[Container]:
        return list(self._containers.values())

    def container_ids(self) -> List[int]:
        return list(self._containers.keys())

    def register(
        self,
        container_id: int,
        movable: bool,
        initial_items: Iterable[Tuple[int, bool]] = (),
    ) -> Container:
        """
        Track a container, replacing any previous tracking for the same id.

        Non-active items are added first in host order and the active item
        last, so the selected tab starts out as the most recent.
        """
        recency = RecencyList(clock=self._clock)
        active_id: Optional[int] = None
        for item_id, is_active in initial_items:
            if item_id is None:
                continue
            if is_active:
                active_id = item_id
            else:
                recency.insert(item_id, TAIL)
        if active_id is not None:
            recency.insert(active_id, TAIL)

        container = Container(container_id=container_id, movable=movable, recency=recency)
        self._containers[container_id] = container
        lib_logger.debug(
            f"AddWindow: Window {container_id}, selected tab {active_id}, "
            f"tabs: {recency.item_ids()}"
        )
        return container

    def register_host_container(self, host_container: HostContainer) -> Container:
        return self.register(
            host_container.id,
            host_container.movable,
            [(item.id, item.active) for item in host_container.items],
        )

    def restore(self, container_id: int, movable: bool, entries: Iterable[RecencyEntry]) -> Container:
        """Track a container from persisted entries, keeping their orders."""
        container = Container(
            container_id=container_id,
            movable=movable,
            recency=RecencyList(clock=self._clock, entries=entries),
        )
        self._containers[container_id] = container
        return container

    def get(self, container_id: int) -> Optional[Container]:
        return self._containers.get(container_id)

    async def resolve(self, container_id: int, host: HostInterface) -> Optional[Container]:
        """
        Look up a container, resyncing it from the host on a miss.

        Returns None when the host does not know the container either; the
        caller should drop its event.
        """
        container = self._containers.get(container_id)
        if container is not None:
            return container

        lib_logger.debug(
            f"Window {container_id} not found in tracking - attempting to reinitialize"
        )
        host_container = await host.query_container(container_id)
        if host_container is None:
            return None
        return self.register_host_container(host_container)

    def unregister(self, container_id: int) -> bool:
        if self._containers.pop(container_id, None) is None:
            return False
        lib_logger.debug(f"RemoveWindow: Window {container_id} removed")
        return True

    def find_item(self, item_id: int) -> Optional[Tuple[Container, int]]:
        for container in self._containers.values():
            index = container.recency.index_of(item_id)
            if index != -1:
                return container, index
        return None

    def clear(self) -> None:
        self._containers.clear()

    def stats(self) -> Dict[str, int]:
        return {
            "container_count": len(self._containers),
            "total_items": sum(len(c.recency) for c in self._containers.values()),
        }

    def validate(self) -> bool:
        """Check that every list holds unique, well-formed entries."""
        for container in self._containers.values():
            item_ids = container.recency.item_ids()
            if len(set(item_ids)) != len(item_ids):
                lib_logger.warning(f"Duplicate tabs found in window {container.container_id}")
                return False
            for entry in container.recency:
                if entry.item_id is None or not entry.order:
                    lib_logger.warning(
                        f"Invalid MRU entry in window {container.container_id}: {entry.to_dict()}"
                    )
                    return False
        return True

    def to_list(self) -> List[Dict]:
        return [container.to_dict() for container in self._containers.values()]
