# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SkipReason(str, Enum):
    """Why the next activation event is expected to be our own echo."""

    NEW_TAB = "new-tab"
    ATTACH = "attach"
    DETACH = "detach"
    TAB_FLIP = "tab-flip"
    CLOSE_TAB = "close-tab"
    CLOSE_TAB_CORRECTION = "close-tab-correction"


@dataclass(frozen=True)
class SkipInfo:
    reason: SkipReason
    expected_item_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "expected_item_id": self.expected_item_id}


class EchoSuppressor:
    """
    Holds at most one pending SkipInfo.

    `set` always overwrites: a newer corrective action supersedes an older
    pending one. Only the activation handler calls `consume`.
    """

    def __init__(self) -> None:
        self._pending: Optional[SkipInfo] = None

    def set(self, reason: SkipReason, expected_item_id: Optional[int] = None) -> SkipInfo:
        self._pending = SkipInfo(reason, expected_item_id)
        return self._pending

    def consume(self) -> Optional[SkipInfo]:
        info, self._pending = self._pending, None
        return info

    def peek(self) -> Optional[SkipInfo]:
        return self._pending

    def clear(self) -> None:
        self._pending = None

    @property
    def pending(self) -> bool:
        return self._pending is not None
