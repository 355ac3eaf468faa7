# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

HEAD = "head"
TAIL = "tail"


class OrderClock:
    """
    Millisecond timestamp source for recency orders.

    Successive calls never return the same value twice, so two touches inside
    the same millisecond still rank in the order they happened.
    """

    def __init__(self) -> None:
        self._last = 0

    def now(self) -> int:
        current = int(time.time() * 1000)
        if current <= self._last:
            current = self._last + 1
        self._last = current
        return current

    def observe(self, order: int) -> None:
        """Make sure future orders rank above an order restored from disk."""
        if order > self._last:
            self._last = order


@dataclass
class RecencyEntry:
    item_id: int
    order: int

    def to_dict(self) -> dict:
        return {"itemId": self.item_id, "order": self.order}


class RecencyList:
    """
    Recency list for the items of one container.

    Physical position only reflects insertion; the recency rank is always
    derived from `order`. Head insertions sit at the front and take an order
    below every existing entry, so they rank least recent.
    """

    def __init__(
        self,
        clock: Optional[OrderClock] = None,
        entries: Optional[Iterable[RecencyEntry]] = None,
    ) -> None:
        self._clock = clock or OrderClock()
        self._entries: List[RecencyEntry] = []
        for entry in entries or ():
            if self.index_of(entry.item_id) == -1:
                self._entries.append(RecencyEntry(entry.item_id, entry.order))
                self._clock.observe(entry.order)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RecencyEntry]:
        return iter(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return self.index_of(item_id) != -1

    def index_of(self, item_id: object) -> int:
        for index, entry in enumerate(self._entries):
            if entry.item_id == item_id:
                return index
        return -1

    def item_ids(self) -> List[int]:
        """Item ids in physical order."""
        return [entry.item_id for entry in self._entries]

    def ranked(self) -> List[int]:
        """Item ids from most recent to least recent."""
        ordered = sorted(self._entries, key=lambda entry: entry.order, reverse=True)
        return [entry.item_id for entry in ordered]

    def insert(self, item_id: int, position: str = TAIL) -> bool:
        if self.index_of(item_id) != -1:
            return False

        if position == HEAD:
            if self._entries:
                order = min(entry.order for entry in self._entries) - 1
            else:
                order = self._clock.now()
            self._entries.insert(0, RecencyEntry(item_id, order))
        else:
            self._entries.append(RecencyEntry(item_id, self._clock.now()))
        return True

    def remove(self, item_id: int) -> bool:
        index = self.index_of(item_id)
        if index == -1:
            return False
        del self._entries[index]
        return True

    def touch(self, item_id: int) -> bool:
        index = self.index_of(item_id)
        if index == -1:
            return False
        self._entries[index].order = self._clock.now()
        return True

    def replace(self, old_id: int, new_id: int) -> bool:
        """Rewrite an entry's id in place, keeping its order."""
        index = self.index_of(old_id)
        if index == -1:
            return False
        if old_id != new_id and self.index_of(new_id) != -1:
            # new id already tracked; drop the stale entry to keep ids unique
            del self._entries[index]
            return True
        self._entries[index].item_id = new_id
        return True

    def most_recent(self) -> Optional[int]:
        if not self._entries:
            return None
        return max(self._entries, key=lambda entry: entry.order).item_id

    def most_recent_excluding(self, item_id: int) -> Optional[int]:
        for candidate in self.ranked():
            if candidate != item_id:
                return candidate
        return None

    def second_most_recent(self) -> Optional[int]:
        ranked = self.ranked()
        if len(ranked) < 2:
            return None
        return ranked[1]

    def to_list(self) -> List[dict]:
        return [entry.to_dict() for entry in self._entries]

    def __repr__(self) -> str:
        return f"RecencyList({self.item_ids()})"
