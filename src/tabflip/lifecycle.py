# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/lifecycle.py

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import DEFAULT_DORMANCY_THRESHOLD_MS, REACTIVATION_RECONCILE_DELAY

lib_logger = logging.getLogger("tabflip")


class DormancyMonitor:
    """
    Detects that the tracker's process was dormant and asks for a repair.

    The host reports lifecycle callbacks (startup, suspend, suspend canceled,
    install/update). Every callback other than suspend counts as a
    reactivation; if more than `threshold_ms` passed since the previous
    activation, a reconciliation is scheduled after a short delay so pending
    host operations can settle first.
    """

    def __init__(
        self,
        on_dormancy: Callable[[], Awaitable[Any]],
        threshold_ms: Optional[int] = None,
        delay: float = REACTIVATION_RECONCILE_DELAY,
        clock: Callable[[], float] = time.time,
    ):
        self._on_dormancy = on_dormancy
        self._delay = delay
        self._clock = clock
        self._active = False
        self._last_activation_ms = 0
        self._pending: Optional[asyncio.Task] = None
        if threshold_ms is None:
            raw = os.getenv("TABFLIP_DORMANCY_THRESHOLD_MS", str(DEFAULT_DORMANCY_THRESHOLD_MS))
            try:
                threshold_ms = int(raw)
            except ValueError:
                lib_logger.warning(
                    f"Invalid TABFLIP_DORMANCY_THRESHOLD_MS '{raw}'. "
                    f"Falling back to {DEFAULT_DORMANCY_THRESHOLD_MS}ms."
                )
                threshold_ms = DEFAULT_DORMANCY_THRESHOLD_MS
        self.threshold_ms = threshold_ms

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        self._active = True
        self._last_activation_ms = self._now_ms()

    def suspend(self) -> None:
        lib_logger.debug("Service worker suspending - persisting state")
        self._active = False

    def reactivate(self) -> bool:
        """
        Record a reactivation. Returns True if a reconciliation was scheduled.
        """
        now = self._now_ms()
        elapsed = now - self._last_activation_ms
        self._active = True
        self._last_activation_ms = now

        if elapsed <= self.threshold_ms:
            return False

        lib_logger.debug(
            f"Service worker reactivated after {elapsed}ms - triggering reconciliation"
        )
        if self._pending is not None and not self._pending.done():
            return True
        self._pending = asyncio.create_task(self._delayed_reconcile())
        return True

    async def _delayed_reconcile(self) -> None:
        await asyncio.sleep(self._delay)
        try:
            await self._on_dormancy()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            lib_logger.error(f"Error during reconciliation after reactivation: {e}")

    async def wait_pending(self) -> None:
        if self._pending is not None:
            await asyncio.gather(self._pending, return_exceptions=True)

    async def stop(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
        self._active = False

    def status(self) -> Dict[str, Any]:
        return {
            "active": self._active,
            "timestamp": self._now_ms(),
            "last_activation": self._last_activation_ms,
        }
