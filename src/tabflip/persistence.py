# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/persistence.py
"""
Durable image of the container registry.

Wire shape:
    {
        "containers": [
            {"containerId": 1, "movable": true,
             "items": [{"itemId": 10, "order": 1712000000000}, ...]},
            ...
        ],
        "timestamp": 1712000000000,   # milliseconds since the epoch
        "schemaVersion": "3.0.3"
    }

Snapshots older than SNAPSHOT_MAX_AGE_SECONDS and snapshots with duplicate
item ids inside a container are rejected on load.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles

from .config import SNAPSHOT_MAX_AGE_SECONDS, SNAPSHOT_SCHEMA_VERSION
from .container_registry import ContainerRegistry
from .error_handler import PersistenceError
from .recency_list import RecencyEntry

lib_logger = logging.getLogger("tabflip")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PersistedContainer:
    container_id: int
    movable: bool
    items: List[RecencyEntry] = field(default_factory=list)

    def item_ids(self) -> List[int]:
        return [entry.item_id for entry in self.items]


@dataclass
class PersistedSnapshot:
    containers: List[PersistedContainer]
    timestamp: int
    schema_version: str = SNAPSHOT_SCHEMA_VERSION

    def age_seconds(self, now: Optional[int] = None) -> float:
        return ((now if now is not None else now_ms()) - self.timestamp) / 1000.0


def snapshot_from_registry(registry: ContainerRegistry) -> PersistedSnapshot:
    containers = [
        PersistedContainer(
            container_id=container.container_id,
            movable=container.movable,
            items=[RecencyEntry(entry.item_id, entry.order) for entry in container.recency],
        )
        for container in registry.containers()
    ]
    return PersistedSnapshot(containers=containers, timestamp=now_ms())


def snapshot_to_dict(snapshot: PersistedSnapshot) -> Dict[str, Any]:
    return {
        "containers": [
            {
                "containerId": container.container_id,
                "movable": container.movable,
                "items": [entry.to_dict() for entry in container.items],
            }
            for container in snapshot.containers
        ],
        "timestamp": snapshot.timestamp,
        "schemaVersion": snapshot.schema_version,
    }


def snapshot_from_dict(data: Any) -> PersistedSnapshot:
    """
    Decode a stored snapshot.

    Raises PersistenceError when the shape is wrong or a container lists the
    same item twice.
    """
    if not isinstance(data, dict) or not isinstance(data.get("containers"), list):
        raise PersistenceError("Snapshot has no container list")

    containers: List[PersistedContainer] = []
    try:
        for raw in data["containers"]:
            container_id = int(raw["containerId"])
            items = [
                RecencyEntry(int(item["itemId"]), int(item["order"]))
                for item in raw.get("items", [])
            ]
            item_ids = [entry.item_id for entry in items]
            if len(set(item_ids)) != len(item_ids):
                raise PersistenceError(f"Duplicate tabs in stored window {container_id}")
            containers.append(
                PersistedContainer(
                    container_id=container_id,
                    movable=bool(raw.get("movable", True)),
                    items=items,
                )
            )
        timestamp = int(data.get("timestamp") or 0)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise PersistenceError(f"Malformed snapshot: {e}") from e

    return PersistedSnapshot(
        containers=containers,
        timestamp=timestamp,
        schema_version=str(data.get("schemaVersion", "")),
    )


class SnapshotStore(ABC):
    """
    Load/save of the registry snapshot.

    Subclasses provide raw storage; this class owns the codec and the
    staleness rule.
    """

    def __init__(self, max_age_seconds: int = SNAPSHOT_MAX_AGE_SECONDS):
        self.max_age_seconds = max_age_seconds

    @abstractmethod
    async def _read(self) -> Optional[Dict[str, Any]]:
        """Return the stored payload or None when nothing is stored."""

    @abstractmethod
    async def _write(self, payload: Optional[Dict[str, Any]]) -> None:
        """Store a payload; None clears the stored state."""

    async def load(self, now: Optional[int] = None) -> Optional[PersistedSnapshot]:
        raw = await self._read()
        if raw is None:
            lib_logger.debug("No valid tracking state found in storage")
            return None

        snapshot = snapshot_from_dict(raw)
        age = snapshot.age_seconds(now)
        if age > self.max_age_seconds:
            lib_logger.debug("Tracking state too old, ignoring")
            return None

        lib_logger.debug(
            f"Loaded tracking state: {len(snapshot.containers)} windows, age: {round(age)}s"
        )
        return snapshot

    async def save(self, snapshot: PersistedSnapshot) -> None:
        await self._write(snapshot_to_dict(snapshot))
        lib_logger.debug(f"Tracking state saved: {len(snapshot.containers)} windows")

    async def clear(self) -> None:
        await self._write(None)
        lib_logger.debug("Tracking state cleared")


class MemorySnapshotStore(SnapshotStore):
    """Keeps the payload in process memory."""

    def __init__(self, max_age_seconds: int = SNAPSHOT_MAX_AGE_SECONDS):
        super().__init__(max_age_seconds)
        self.payload: Optional[Dict[str, Any]] = None
        self.save_count = 0

    async def _read(self) -> Optional[Dict[str, Any]]:
        if self.payload is None:
            return None
        return json.loads(json.dumps(self.payload))

    async def _write(self, payload: Optional[Dict[str, Any]]) -> None:
        self.payload = json.loads(json.dumps(payload)) if payload is not None else None
        self.save_count += 1


class JsonFileSnapshotStore(SnapshotStore):
    """Stores the payload as a JSON file, written atomically."""

    def __init__(
        self,
        file_path: Union[str, Path],
        max_age_seconds: int = SNAPSHOT_MAX_AGE_SECONDS,
    ):
        super().__init__(max_age_seconds)
        self.file_path = str(file_path)

    async def _read(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.file_path):
            return None
        try:
            async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            # File deleted between exists check and open
            return None
        except UnicodeDecodeError as e:
            lib_logger.warning(f"Corrupted state file {self.file_path}: {e}. Starting fresh.")
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot read state file {self.file_path}: {e}") from e

        if not content.strip():
            return None
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            lib_logger.warning(f"Corrupted state file {self.file_path}: {e}. Starting fresh.")
            return None
        return payload if isinstance(payload, dict) else None

    async def _write(self, payload: Optional[Dict[str, Any]]) -> None:
        if payload is None:
            try:
                os.remove(self.file_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise PersistenceError(f"Cannot clear state file {self.file_path}: {e}") from e
            return

        tmp_path = f"{self.file_path}.tmp"
        try:
            parent = os.path.dirname(self.file_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(payload, indent=2))
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            try:
                os.remove(tmp_path)
            except OSError:
                # Temp file was never created
                pass
            raise PersistenceError(f"Cannot write state file {self.file_path}: {e}") from e
