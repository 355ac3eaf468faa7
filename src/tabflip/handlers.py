# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/handlers.py
"""
Event handlers: one per host event kind.

Each handler runs with the tracker's state lock held, mutates the registry,
issues corrective actions through the retrier (never awaiting them) and
persists the registry when it changed something. Handlers return an
outcome string describing what they did.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from .container_registry import Container, ContainerRegistry
from .echo_suppressor import EchoSuppressor, SkipReason
from .error_handler import HostError, MalformedEventError, PersistenceError
from .events import (
    EVENT_TYPES,
    ContainerCreated,
    ContainerRemoved,
    FlipRequested,
    ItemActivated,
    ItemAttached,
    ItemCreated,
    ItemDetached,
    ItemRemoved,
    ItemReplaced,
    LifecycleSignal,
)
from .host import HostInterface
from .lifecycle import DormancyMonitor
from .persistence import SnapshotStore
from .reconciler import ReconciliationEngine
from .recency_list import HEAD, TAIL
from .retrier import CorrectiveActionRetrier
from .settings import SettingsManager

lib_logger = logging.getLogger("tabflip")

# Handler outcomes
APPLIED = "applied"
UNCHANGED = "unchanged"
ABSORBED = "absorbed"
CORRECTED = "corrected"
DROPPED = "dropped"


@dataclass
class TrackerContext:
    """The components one tracker instance is built from."""

    registry: ContainerRegistry
    suppressor: EchoSuppressor
    retrier: CorrectiveActionRetrier
    reconciler: ReconciliationEngine
    host: HostInterface
    settings: SettingsManager
    store: SnapshotStore
    monitor: DormancyMonitor
    persist: Callable[[], Awaitable[None]]


class EventHandlers:
    def __init__(self, ctx: TrackerContext):
        self._ctx = ctx
        self._dispatch: Dict[Type[Any], Callable[[Any], Awaitable[str]]] = {
            ContainerCreated: self.container_created,
            ContainerRemoved: self.container_removed,
            ItemCreated: self.item_created,
            ItemRemoved: self.item_removed,
            ItemActivated: self.item_activated,
            ItemAttached: self.item_attached,
            ItemDetached: self.item_detached,
            ItemReplaced: self.item_replaced,
            FlipRequested: self.flip_requested,
            LifecycleSignal: self.lifecycle,
        }
        missing = set(EVENT_TYPES) - set(self._dispatch)
        if missing:
            raise TypeError(f"No handler for event types: {sorted(t.__name__ for t in missing)}")

    async def dispatch(self, event: Any) -> str:
        handler = self._dispatch.get(type(event))
        if handler is None:
            raise MalformedEventError(f"Unsupported event type {type(event).__name__}")
        return await handler(event)

    # =========================================================================
    # SHARED STEPS
    # =========================================================================

    def _set_focus(
        self, item_id: int, reason: SkipReason, expected_item_id: Optional[int] = None
    ) -> None:
        """Issue a corrective activate, marking its activation event as an echo."""
        self._ctx.suppressor.set(reason, expected_item_id)
        self._ctx.retrier.activate(item_id)

    async def _repair(self, log_prefix: str) -> None:
        """Run one reconciliation pass for a handler that missed a reference."""
        try:
            await self._ctx.reconciler.reconcile_locked()
        except HostError as e:
            lib_logger.error(f"{log_prefix}Reconciliation failed: {e}")

    async def _resolve_container(self, container_id: int, log_prefix: str) -> Optional[Container]:
        """
        Find a tracked container, resyncing it from the host and then
        reconciling once on a miss. None means the event must be dropped.
        """
        registry = self._ctx.registry
        container = registry.get(container_id)
        if container is not None:
            return container

        lib_logger.debug(
            f"{log_prefix}Window {container_id} not found in tracking - triggering reconciliation"
        )
        try:
            container = await registry.resolve(container_id, self._ctx.host)
        except HostError as e:
            lib_logger.debug(f"{log_prefix}Window {container_id} resync failed: {e}")
            container = None
        if container is not None:
            # Resync registered a new window
            await self._ctx.persist()
        else:
            await self._repair(log_prefix)
            container = registry.get(container_id)

        if container is None:
            lib_logger.warning(
                f"{log_prefix}Window {container_id} still not found after reconciliation"
            )
        return container

    async def _relocate_to_far_right(self, item_id: int, container_id: int) -> None:
        host = self._ctx.host
        window = await host.query_container(container_id)
        if window is None:
            lib_logger.debug(f"NewTab: Window {container_id} no longer exists")
            return
        position = window.position_of(item_id)
        if position == -1:
            lib_logger.debug(f"NewTab: Tab {item_id} no longer exists")
            return
        if position == len(window.items) - 1:
            lib_logger.debug(f"NewTab: Tab {item_id} already at far right")
            return
        await host.move_item(item_id, -1)
        lib_logger.debug(f"NewTab: Tab {item_id} moved to far right (was at index {position})")

    # =========================================================================
    # WINDOW EVENTS
    # =========================================================================

    async def container_created(self, event: ContainerCreated) -> str:
        registry = self._ctx.registry
        if event.container_id in registry:
            lib_logger.debug(f"AddWindow: Window {event.container_id} already tracked")
            return UNCHANGED

        # The created window may not have its tabs yet; ask for the populated one
        window = await self._ctx.host.query_container(event.container_id)
        if window is None:
            lib_logger.warning(f"AddWindow: Window {event.container_id} not found on host")
            return DROPPED
        registry.register_host_container(window)
        await self._ctx.persist()
        return APPLIED

    async def container_removed(self, event: ContainerRemoved) -> str:
        if not self._ctx.registry.unregister(event.container_id):
            return UNCHANGED
        await self._ctx.persist()
        return APPLIED

    # =========================================================================
    # TAB EVENTS
    # =========================================================================

    async def item_created(self, event: ItemCreated) -> str:
        log_prefix = "NewTab: "
        container = await self._resolve_container(event.container_id, log_prefix)
        if container is None:
            return DROPPED

        settings = self._ctx.settings.snapshot()
        lib_logger.debug(
            f"{log_prefix}windowId {event.container_id}, id {event.item_id}, "
            f"reloc: {settings.relocate}, ntsel: {settings.new_item_select}"
        )

        if settings.relocate and container.movable:
            container_id = container.container_id
            self._ctx.retrier.submit(
                "move",
                event.item_id,
                lambda: self._relocate_to_far_right(event.item_id, container_id),
            )

        recency = container.recency
        existing = recency.index_of(event.item_id)
        if existing != -1:
            # Reconciliation got here first
            lib_logger.debug(f"{log_prefix}Tab already exists in MRU at index {existing}")
            return UNCHANGED

        if settings.new_item_select:
            self._set_focus(event.item_id, SkipReason.NEW_TAB)
            recency.insert(event.item_id, TAIL)
            lib_logger.debug(f"{log_prefix}[select new tab]")
        else:
            recency.insert(event.item_id, HEAD)
            lib_logger.debug(f"{log_prefix}[chrome standard - don't select]")

        await self._ctx.persist()
        return APPLIED

    async def item_removed(self, event: ItemRemoved) -> str:
        log_prefix = "CloseTab: "
        found = self._ctx.registry.find_item(event.item_id)
        if found is None:
            lib_logger.debug(f"{log_prefix}tabid {event.item_id} not found")
            return UNCHANGED

        container, _ = found
        recency = container.recency
        settings = self._ctx.settings.snapshot()
        lib_logger.debug(f"{log_prefix}tabid {event.item_id}, flip option: {settings.flip}")
        lib_logger.debug(f"{log_prefix}(before) {recency.ranked()}")

        # Pick the successor from the list as it was before the removal, so the
        # activation handler can tell our selection from the host's default one
        if settings.flip and len(recency) > 1 and not event.container_closing:
            next_item_id = recency.most_recent_excluding(event.item_id)
            if next_item_id is not None:
                lib_logger.debug(
                    f"{log_prefix}Tab flipping ON - will select most recent tab: {next_item_id}"
                )
                self._set_focus(next_item_id, SkipReason.CLOSE_TAB, expected_item_id=next_item_id)
        else:
            lib_logger.debug(
                f"{log_prefix}Tab flipping OFF or no tabs remaining - letting the host handle selection"
            )

        recency.remove(event.item_id)
        lib_logger.debug(f"{log_prefix}(after) {recency.ranked()}")
        await self._ctx.persist()
        return APPLIED

    async def item_activated(self, event: ItemActivated) -> str:
        log_prefix = "Shuffle: "
        skip = self._ctx.suppressor.consume()
        if skip is not None:
            lib_logger.debug(f"{log_prefix}skip => {skip.reason.value}")
            if skip.reason == SkipReason.CLOSE_TAB and skip.expected_item_id is not None:
                if skip.expected_item_id != event.item_id:
                    lib_logger.debug(
                        f"{log_prefix}Unexpected tab {event.item_id} activated, "
                        f"expected {skip.expected_item_id} - correcting"
                    )
                    self._set_focus(skip.expected_item_id, SkipReason.CLOSE_TAB_CORRECTION)
                    return CORRECTED
                lib_logger.debug(
                    f"{log_prefix}Expected tab {skip.expected_item_id} activated after close - allowing"
                )
            else:
                return ABSORBED

        container = await self._resolve_container(event.container_id, log_prefix)
        if container is None:
            return DROPPED

        if event.item_id not in container.recency:
            lib_logger.debug(
                f"{log_prefix}tabId {event.item_id} not found in MRU - triggering reconciliation"
            )
            await self._repair(log_prefix)
            # The reconciliation may have replaced the container
            container = self._ctx.registry.get(event.container_id)
            if container is None or event.item_id not in container.recency:
                lib_logger.warning(
                    f"{log_prefix}tabId {event.item_id} still not found after reconciliation"
                )
                return DROPPED

        recency = container.recency
        if recency.most_recent() == event.item_id:
            lib_logger.debug(f"{log_prefix}tabId {event.item_id} already most recent")
            return UNCHANGED

        lib_logger.debug(f"{log_prefix}(before) {recency.ranked()}")
        recency.touch(event.item_id)
        lib_logger.debug(f"{log_prefix}(after) {recency.ranked()}")
        await self._ctx.persist()
        return APPLIED

    async def item_replaced(self, event: ItemReplaced) -> str:
        found = self._ctx.registry.find_item(event.removed_item_id)
        if found is None:
            lib_logger.debug(f"TabReplaced: tab {event.removed_item_id} not tracked")
            return UNCHANGED

        container, _ = found
        container.recency.replace(event.removed_item_id, event.added_item_id)
        lib_logger.debug(f"TabReplaced: {event.removed_item_id} -> {event.added_item_id}")
        await self._ctx.persist()
        return APPLIED

    async def item_attached(self, event: ItemAttached) -> str:
        log_prefix = "TabAttached: "
        container = await self._resolve_container(event.new_container_id, log_prefix)
        if container is None:
            return DROPPED

        container.recency.insert(event.item_id, TAIL)
        # The host activates an attached tab on its own
        self._ctx.suppressor.set(SkipReason.ATTACH)
        lib_logger.debug(f"{log_prefix}{event.item_id} to window {event.new_container_id}")
        await self._ctx.persist()
        return APPLIED

    async def item_detached(self, event: ItemDetached) -> str:
        log_prefix = "TabDetached: "
        container = self._ctx.registry.get(event.old_container_id)
        if container is None:
            lib_logger.debug(f"{log_prefix}Window {event.old_container_id} not tracked")
            return UNCHANGED

        recency = container.recency
        recency.remove(event.item_id)
        if len(recency) > 0:
            last_item_id = recency.most_recent()
            lib_logger.debug(
                f"{log_prefix}{event.item_id} from window {event.old_container_id}, "
                f"last tab: {last_item_id}"
            )
            if last_item_id is not None:
                self._set_focus(last_item_id, SkipReason.DETACH)

        await self._ctx.persist()
        return APPLIED

    # =========================================================================
    # USER AND LIFECYCLE TRIGGERS
    # =========================================================================

    async def flip_requested(self, event: FlipRequested) -> str:
        log_prefix = "TabFlip: "
        settings = self._ctx.settings.snapshot()
        if not settings.flip:
            lib_logger.debug(f"{log_prefix}Tab flipping is off")
            return UNCHANGED

        container = await self._resolve_container(event.container_id, log_prefix)
        if container is None:
            return DROPPED

        recency = container.recency
        if len(recency) < 2:
            lib_logger.debug(f"{log_prefix}Not enough tabs in window {event.container_id}")
            return UNCHANGED

        previous_item_id = recency.second_most_recent()
        if previous_item_id is None:
            return UNCHANGED
        recency.touch(previous_item_id)
        self._set_focus(previous_item_id, SkipReason.TAB_FLIP)
        lib_logger.debug(f"{log_prefix}Switched to previous tab {previous_item_id}")
        await self._ctx.persist()
        return APPLIED

    async def lifecycle(self, event: LifecycleSignal) -> str:
        monitor = self._ctx.monitor
        if event.phase == "suspend":
            monitor.suspend()
            return APPLIED

        if event.phase == "installed":
            lib_logger.debug(f"Extension {event.reason}")
            if event.reason == "install":
                # Fresh install: nothing stored belongs to this profile
                try:
                    await self._ctx.store.clear()
                except PersistenceError as e:
                    lib_logger.error(f"Failed to clear tracking state on install: {e}")
        else:
            lib_logger.debug(f"Lifecycle: {event.phase}")

        monitor.reactivate()
        return APPLIED
