# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .container_registry import ContainerRegistry
from .echo_suppressor import EchoSuppressor
from .error_handler import HostError, MissingReferenceError, PersistenceError
from .events import FlipRequested, parse_event
from .handlers import DROPPED, EventHandlers, TrackerContext
from .host import HostInterface
from .lifecycle import DormancyMonitor
from .persistence import (
    MemorySnapshotStore,
    PersistedSnapshot,
    SnapshotStore,
    snapshot_from_registry,
)
from .reconciler import ReconciliationEngine, snapshot_matches_host
from .retrier import CorrectiveActionRetrier
from .settings import SettingsManager

lib_logger = logging.getLogger("tabflip")
lib_logger.propagate = False
if not lib_logger.handlers:
    lib_logger.addHandler(logging.NullHandler())

ERROR = "error"


@dataclass
class HandleResult:
    """What happened to one delivered event."""

    kind: str
    outcome: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome not in (DROPPED, ERROR)


class RecencyTracker:
    """
    Keeps per-window MRU tab order in sync with the host.

    One instance bundles the registry, echo suppressor, corrective-action
    retrier, reconciliation engine and dormancy monitor. Every event handler
    and every reconciliation pass runs under a single asyncio lock, so the
    registry has exactly one writer at a time; corrective actions and the
    background timer run concurrently with event handling.

    Usage:
        tracker = RecencyTracker(host, store=JsonFileSnapshotStore(path))
        await tracker.initialize()
        await tracker.handle_event({"kind": "item-activated", "containerId": 1, "itemId": 7})
        ...
        await tracker.shutdown()
    """

    def __init__(
        self,
        host: HostInterface,
        store: Optional[SnapshotStore] = None,
        settings: Optional[SettingsManager] = None,
        reconcile_interval: Optional[float] = None,
        dormancy_threshold_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.host = host
        self.store = store or MemorySnapshotStore()
        self.settings = settings or SettingsManager()
        self.registry = ContainerRegistry()
        self.suppressor = EchoSuppressor()

        retrier_kwargs: Dict[str, Any] = {}
        if max_retries is not None:
            retrier_kwargs["max_retries"] = max_retries
        if retry_delay is not None:
            retrier_kwargs["retry_delay"] = retry_delay
        self.retrier = CorrectiveActionRetrier(host, **retrier_kwargs)

        self._state_lock = asyncio.Lock()
        self.reconciler = ReconciliationEngine(
            self.registry,
            host,
            self._state_lock,
            on_change=self._persist,
            interval=reconcile_interval,
        )
        self.monitor = DormancyMonitor(self.reconcile, threshold_ms=dormancy_threshold_ms)
        self.handlers = EventHandlers(
            TrackerContext(
                registry=self.registry,
                suppressor=self.suppressor,
                retrier=self.retrier,
                reconciler=self.reconciler,
                host=host,
                settings=self.settings,
                store=self.store,
                monitor=self.monitor,
                persist=self._persist,
            )
        )
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # STARTUP / SHUTDOWN
    # =========================================================================

    async def initialize(self, start_background: bool = True) -> None:
        """
        Build the initial tracking state.

        A persisted snapshot is used only if it matches the live host exactly;
        otherwise the state is built fresh from the host. Raises HostError if
        the host cannot be queried at all.
        """
        if self._initialized:
            lib_logger.warning("Tracker already initialized")
            return

        lib_logger.debug("Initializing window tracking...")
        restored = await self._restore_snapshot()

        async with self._state_lock:
            windows = await self.host.query_containers()
            self.registry.clear()
            if restored is not None and snapshot_matches_host(restored, windows):
                lib_logger.debug("Successfully restored tracking state from storage")
                for stored in restored.containers:
                    self.registry.restore(stored.container_id, stored.movable, stored.items)
            else:
                lib_logger.debug("Building fresh tracking state from current browser state")
                for window in windows:
                    self.registry.register_host_container(window)
            await self._persist()

        self.retrier.resume()
        self.monitor.start()
        if start_background:
            self.reconciler.start()
        self._initialized = True
        lib_logger.info(f"Window tracking initialized: {len(self.registry)} windows")

    async def _restore_snapshot(self) -> Optional[PersistedSnapshot]:
        try:
            return await self.store.load()
        except PersistenceError as e:
            lib_logger.error(f"Failed to restore tracking state: {e}")
            return None
        except Exception as e:
            lib_logger.error(f"Unexpected error restoring tracking state: {e}", exc_info=True)
            return None

    async def shutdown(self, clear_state: bool = True) -> None:
        """
        Stop timers and pending actions, then forget all tracking state.

        With clear_state=False the persisted snapshot is kept for the next start.
        """
        lib_logger.info("Shutting down tab tracker...")
        await self.reconciler.stop()
        await self.monitor.stop()
        await self.retrier.stop()
        async with self._state_lock:
            self.registry.clear()
            self.suppressor.clear()
        if clear_state:
            try:
                await self.store.clear()
            except PersistenceError as e:
                lib_logger.error(f"Failed to clear tracking state: {e}")
        self._initialized = False
        lib_logger.info("Tab tracker shutdown complete")

    # =========================================================================
    # EVENT ENTRY POINTS
    # =========================================================================

    async def handle_event(self, event: Any) -> HandleResult:
        """
        Decode and handle one host event.

        Never raises for event-level failures: errors are logged and reported
        in the returned result so the next event is still processed.
        """
        try:
            typed = parse_event(event)
        except MissingReferenceError as e:
            lib_logger.warning(f"Dropping malformed event: {e}")
            return HandleResult(kind="unknown", outcome=DROPPED, error=str(e))

        try:
            async with self._state_lock:
                outcome = await self.handlers.dispatch(typed)
        except MissingReferenceError as e:
            lib_logger.warning(f"Dropping {typed.kind} event: {e}")
            return HandleResult(kind=typed.kind, outcome=DROPPED, error=str(e))
        except HostError as e:
            lib_logger.error(f"Host call failed while handling {typed.kind}: {e}")
            return HandleResult(kind=typed.kind, outcome=ERROR, error=str(e))
        except Exception as e:
            lib_logger.error(f"Unexpected error while handling {typed.kind}: {e}", exc_info=True)
            return HandleResult(kind=typed.kind, outcome=ERROR, error=str(e))
        return HandleResult(kind=typed.kind, outcome=outcome)

    async def flip(self, container_id: int) -> HandleResult:
        """Switch the window to its previously used tab."""
        return await self.handle_event(FlipRequested(container_id=container_id))

    async def reconcile(self) -> int:
        """Run one reconciliation pass now. Returns the number of changes."""
        return await self.reconciler.reconcile()

    async def drain(self) -> None:
        """Wait until every in-flight corrective action has finished."""
        await self.retrier.drain()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _persist(self) -> None:
        """Save the registry. Failures are logged; memory stays authoritative."""
        try:
            await self.store.save(snapshot_from_registry(self.registry))
        except PersistenceError as e:
            lib_logger.error(f"Error saving tracking state: {e}")

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def validate_tracking(self) -> bool:
        return self.registry.validate()

    def ranked_items(self, container_id: int) -> Optional[list]:
        container = self.registry.get(container_id)
        if container is None:
            return None
        return container.recency.ranked()

    def status(self) -> Dict[str, Any]:
        pending = self.suppressor.peek()
        return {
            "initialized": self._initialized,
            "active": self.monitor.active,
            "tracking": self.registry.stats(),
            "settings": self.settings.snapshot().to_dict(),
            "pending_skip": pending.to_dict() if pending else None,
            "pending_actions": self.retrier.pending_count,
            "reconcile_runs": self.reconciler.runs,
        }
