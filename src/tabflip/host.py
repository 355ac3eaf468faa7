# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# HOST STATE MODELS
# =============================================================================


class HostItem(BaseModel):
    """A tab as reported by the host."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    active: bool = False
    index: Optional[int] = None
    container_id: Optional[int] = Field(default=None, alias="windowId")


class HostContainer(BaseModel):
    """A window as reported by the host, populated with its tabs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    type: str = "normal"
    items: List[HostItem] = Field(default_factory=list, alias="tabs")

    @property
    def movable(self) -> bool:
        # Only normal windows accept tab relocation
        return self.type == "normal"

    @property
    def active_item_id(self) -> Optional[int]:
        for item in self.items:
            if item.active:
                return item.id
        return None

    def item_ids(self) -> List[int]:
        return [item.id for item in self.items]

    def position_of(self, item_id: int) -> int:
        for position, item in enumerate(self.items):
            if item.id == item_id:
                return position
        return -1


# =============================================================================
# HOST INTERFACE
# =============================================================================


class HostInterface(ABC):
    """
    The tracker's view of the host environment.

    Queries return the host's current truth; mutations are corrective
    actions. Mutations raise HostBusyError for the transient busy condition
    and HostError for anything else.
    """

    @abstractmethod
    async def query_containers(self) -> List[HostContainer]:
        """Return every container with its items and active flags."""

    @abstractmethod
    async def query_container(self, container_id: int) -> Optional[HostContainer]:
        """Return one populated container, or None if it no longer exists."""

    @abstractmethod
    async def move_item(self, item_id: int, index: int) -> None:
        """Move an item to a position inside its container; -1 is the far end."""

    @abstractmethod
    async def activate_item(self, item_id: int) -> None:
        """Make an item the selected item of its container."""

    async def close(self) -> None:
        """Release any resources held by the host connection."""
        return None
