# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/reconciler.py

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional

from .config import DEFAULT_RECONCILE_INTERVAL
from .container_registry import ContainerRegistry
from .host import HostContainer, HostInterface
from .persistence import PersistedSnapshot
from .recency_list import HEAD, TAIL

lib_logger = logging.getLogger("tabflip")


def snapshot_matches_host(snapshot: PersistedSnapshot, windows: List[HostContainer]) -> bool:
    """
    Check that a restored snapshot describes exactly the live host state:
    same windows, and the same tab set in every window.
    """
    if len(windows) != len(snapshot.containers):
        lib_logger.debug("Window count mismatch, rebuilding state")
        return False

    by_id = {window.id: window for window in windows}
    for stored in snapshot.containers:
        window = by_id.get(stored.container_id)
        if window is None:
            lib_logger.debug(f"Window {stored.container_id} no longer exists")
            return False
        current_ids = sorted(window.item_ids())
        tracked_ids = sorted(stored.item_ids())
        if len(current_ids) != len(tracked_ids):
            lib_logger.debug(f"Tab count mismatch for window {stored.container_id}")
            return False
        if current_ids != tracked_ids:
            lib_logger.debug(f"Tab set mismatch for window {stored.container_id}")
            return False
    return True


class ReconciliationEngine:
    """
    Resynchronizes the registry with a fresh host query.

    Only set differences are repaired: windows and tabs the host has but the
    registry lacks are added, ones the registry has but the host lacks are
    dropped. Tabs present on both sides keep their recency order.

    A background task repeats the pass every `interval` seconds. All
    mutations happen under the tracker's state lock.
    """

    def __init__(
        self,
        registry: ContainerRegistry,
        host: HostInterface,
        lock: asyncio.Lock,
        on_change: Optional[Callable[[], Awaitable[None]]] = None,
        interval: Optional[float] = None,
    ):
        self._registry = registry
        self._host = host
        self._lock = lock
        self._on_change = on_change
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        if interval is None:
            interval_str = os.getenv("TABFLIP_RECONCILE_INTERVAL", str(DEFAULT_RECONCILE_INTERVAL))
            try:
                interval = float(interval_str)
            except ValueError:
                lib_logger.warning(
                    f"Invalid TABFLIP_RECONCILE_INTERVAL '{interval_str}'. "
                    f"Falling back to {DEFAULT_RECONCILE_INTERVAL}s."
                )
                interval = DEFAULT_RECONCILE_INTERVAL
        self._interval = interval

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def reconcile(self) -> int:
        """Run one pass, taking the state lock. Returns the number of changes."""
        async with self._lock:
            return await self.reconcile_locked()

    async def reconcile_locked(self) -> int:
        """
        Run one pass. The caller must hold the state lock.

        Raises HostError if the host query fails; nothing is changed then.
        """
        lib_logger.debug("Starting MRU reconciliation with browser state...")
        windows = await self._host.query_containers()
        self.runs += 1
        changes = 0

        for window in windows:
            container = self._registry.get(window.id)
            if container is None:
                lib_logger.debug(f"Creating new tracker for window {window.id} during reconciliation")
                self._registry.register_host_container(window)
                changes += 1
                continue

            recency = container.recency
            host_ids = window.item_ids()
            tracked_ids = recency.item_ids()

            missing = [item for item in window.items if item.id not in tracked_ids]
            if missing:
                lib_logger.debug(
                    f"Found {len(missing)} missing tabs in window {window.id}: "
                    f"{[item.id for item in missing]}"
                )
            for item in missing:
                # Active tab is most recent; others were never seen arriving
                recency.insert(item.id, TAIL if item.active else HEAD)
                changes += 1

            orphaned = [item_id for item_id in tracked_ids if item_id not in host_ids]
            if orphaned:
                lib_logger.debug(
                    f"Found {len(orphaned)} orphaned tabs in window {window.id}: {orphaned}"
                )
            for item_id in orphaned:
                if recency.remove(item_id):
                    changes += 1

        live_ids = {window.id for window in windows}
        for container_id in self._registry.container_ids():
            if container_id not in live_ids:
                self._registry.unregister(container_id)
                changes += 1

        if changes > 0:
            lib_logger.info(f"Reconciliation completed with {changes} changes")
            if self._on_change is not None:
                await self._on_change()
        else:
            lib_logger.debug("Reconciliation completed - no changes needed")
        return changes

    # =========================================================================
    # BACKGROUND TIMER
    # =========================================================================

    def start(self) -> None:
        """Starts the periodic reconciliation task."""
        if self._task is None and self._interval > 0:
            self._task = asyncio.create_task(self._run())
            lib_logger.info(
                f"Background reconciliation started. Interval: {self._interval} seconds."
            )

    async def stop(self) -> None:
        """Stops the periodic reconciliation task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            lib_logger.info("Background reconciliation stopped.")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.reconcile()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                lib_logger.error(f"Periodic reconciliation failed: {e}")
