# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .tracker import HandleResult, RecencyTracker
from .host import HostContainer, HostInterface, HostItem
from .persistence import JsonFileSnapshotStore, MemorySnapshotStore, SnapshotStore
from .settings import SettingsManager, TrackerSettings

__all__ = [
    "RecencyTracker",
    "HandleResult",
    "HostInterface",
    "HostContainer",
    "HostItem",
    "SnapshotStore",
    "JsonFileSnapshotStore",
    "MemorySnapshotStore",
    "SettingsManager",
    "TrackerSettings",
]
