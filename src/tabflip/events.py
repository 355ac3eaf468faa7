# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Pydantic models for host events.

Every event the host can deliver is one model carrying a literal `kind`
tag. Raw payloads are decoded once, at the boundary, with `parse_event`;
everything past that point works on typed events only. Field names accept
both snake_case and the host's camelCase.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .error_handler import MalformedEventError


class _EventModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# --- Window events ---
class ContainerCreated(_EventModel):
    kind: Literal["container-created"] = "container-created"
    container_id: int


class ContainerRemoved(_EventModel):
    kind: Literal["container-removed"] = "container-removed"
    container_id: int


# --- Tab events ---
class ItemCreated(_EventModel):
    kind: Literal["item-created"] = "item-created"
    container_id: int
    item_id: int
    active: bool = False
    index: Optional[int] = None


class ItemRemoved(_EventModel):
    kind: Literal["item-removed"] = "item-removed"
    item_id: int
    container_id: Optional[int] = None
    container_closing: bool = False


class ItemActivated(_EventModel):
    kind: Literal["item-activated"] = "item-activated"
    container_id: int
    item_id: int


class ItemAttached(_EventModel):
    kind: Literal["item-attached"] = "item-attached"
    item_id: int
    new_container_id: int
    new_position: Optional[int] = None


class ItemDetached(_EventModel):
    kind: Literal["item-detached"] = "item-detached"
    item_id: int
    old_container_id: int
    old_position: Optional[int] = None


class ItemReplaced(_EventModel):
    kind: Literal["item-replaced"] = "item-replaced"
    added_item_id: int
    removed_item_id: int


# --- User and lifecycle triggers ---
class FlipRequested(_EventModel):
    """Icon click or keyboard shortcut asking to flip to the previous tab."""

    kind: Literal["flip-requested"] = "flip-requested"
    container_id: int


class LifecycleSignal(_EventModel):
    """Process lifecycle callback from the host runtime."""

    kind: Literal["lifecycle"] = "lifecycle"
    phase: Literal["startup", "suspend", "suspend-canceled", "installed"]
    reason: Optional[str] = None


HostEvent = Annotated[
    Union[
        ContainerCreated,
        ContainerRemoved,
        ItemCreated,
        ItemRemoved,
        ItemActivated,
        ItemAttached,
        ItemDetached,
        ItemReplaced,
        FlipRequested,
        LifecycleSignal,
    ],
    Field(discriminator="kind"),
]

EVENT_TYPES = (
    ContainerCreated,
    ContainerRemoved,
    ItemCreated,
    ItemRemoved,
    ItemActivated,
    ItemAttached,
    ItemDetached,
    ItemReplaced,
    FlipRequested,
    LifecycleSignal,
)

_event_adapter: TypeAdapter = TypeAdapter(HostEvent)


def parse_event(payload: Any) -> HostEvent:
    """
    Decode a raw payload into a typed event.

    Raises MalformedEventError if the payload has an unknown kind or fails
    validation.
    """
    if isinstance(payload, EVENT_TYPES):
        return payload
    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        raise MalformedEventError(f"Malformed host event: {e.error_count()} error(s): {e}") from e
