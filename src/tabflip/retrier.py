# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/retrier.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set

from .config import CORRECTIVE_MAX_RETRIES, CORRECTIVE_RETRY_DELAY
from .error_handler import ClassifiedError, classify_host_error
from .host import HostInterface

lib_logger = logging.getLogger("tabflip")


@dataclass
class ActionOutcome:
    """Terminal result of one corrective action."""

    action: str
    item_id: int
    success: bool
    attempts: int
    error: Optional[ClassifiedError] = None


class CorrectiveActionRetrier:
    """
    Runs host-mutating calls with bounded retry on the transient busy class.

    A busy failure is retried up to `max_retries` times with a fixed delay;
    any other failure ends the action immediately. Actions are submitted as
    background tasks and report through the returned task, so a handler never
    waits on the host while holding the tracker's state lock.
    """

    def __init__(
        self,
        host: HostInterface,
        max_retries: int = CORRECTIVE_MAX_RETRIES,
        retry_delay: float = CORRECTIVE_RETRY_DELAY,
    ):
        self._host = host
        self.max_retries = max(0, int(max_retries))
        self.retry_delay = max(0.0, float(retry_delay))
        self._tasks: Set[asyncio.Task] = set()
        self._stopped = False

    async def run(
        self, action: str, item_id: int, call: Callable[[], Awaitable[Any]]
    ) -> ActionOutcome:
        attempts = 0
        while True:
            attempts += 1
            try:
                await call()
            except Exception as e:
                classified = classify_host_error(e)
                retries_used = attempts - 1
                if (
                    classified.retryable
                    and retries_used < self.max_retries
                    and not self._stopped
                ):
                    lib_logger.debug(
                        f"Tab {action} failed (user dragging), retrying in "
                        f"{int(self.retry_delay * 1000)}ms "
                        f"(attempt {retries_used + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(self.retry_delay)
                    continue

                if classified.retryable:
                    lib_logger.warning(
                        f"Tab {action} abandoned after {retries_used} retries - "
                        f"user still dragging tab {item_id}"
                    )
                else:
                    lib_logger.error(f"Tab {action} failed for tab {item_id}: {classified}")
                return ActionOutcome(action, item_id, False, attempts, classified)

            lib_logger.debug(f"Tab {item_id} {action} succeeded after {attempts} attempt(s)")
            return ActionOutcome(action, item_id, True, attempts)

    def submit(
        self, action: str, item_id: int, call: Callable[[], Awaitable[Any]]
    ) -> "asyncio.Task[ActionOutcome]":
        task = asyncio.create_task(self.run(action, item_id, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def activate(self, item_id: int) -> "asyncio.Task[ActionOutcome]":
        return self.submit("activate", item_id, lambda: self._host.activate_item(item_id))

    def move(self, item_id: int, index: int = -1) -> "asyncio.Task[ActionOutcome]":
        return self.submit("move", item_id, lambda: self._host.move_item(item_id, index))

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight action, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def resume(self) -> None:
        """Accept retries again after a stop."""
        self._stopped = False

    async def stop(self) -> None:
        """Stop retrying and cancel in-flight actions."""
        self._stopped = True
        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
