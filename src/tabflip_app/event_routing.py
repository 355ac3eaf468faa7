# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from tabflip.error_handler import MalformedEventError

# Raw host callbacks arrive as {"event": "<namespace>.<listener>", "args": [...]},
# with the arguments in the order the host passes them to its listener.


def _arg(args: List[Any], position: int) -> Any:
    if position >= len(args):
        raise MalformedEventError(f"Missing callback argument {position}")
    return args[position]


def _mapping_arg(args: List[Any], position: int) -> Mapping[str, Any]:
    value = _arg(args, position)
    if not isinstance(value, Mapping):
        raise MalformedEventError(f"Callback argument {position} is not an object")
    return value


def _window_created(args: List[Any]) -> Dict[str, Any]:
    window = _mapping_arg(args, 0)
    return {"kind": "container-created", "containerId": window.get("id")}


def _window_removed(args: List[Any]) -> Dict[str, Any]:
    return {"kind": "container-removed", "containerId": _arg(args, 0)}


def _tab_created(args: List[Any]) -> Dict[str, Any]:
    tab = _mapping_arg(args, 0)
    return {
        "kind": "item-created",
        "containerId": tab.get("windowId"),
        "itemId": tab.get("id"),
        "active": bool(tab.get("active", False)),
        "index": tab.get("index"),
    }


def _tab_removed(args: List[Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"kind": "item-removed", "itemId": _arg(args, 0)}
    if len(args) > 1 and isinstance(args[1], Mapping):
        payload["containerId"] = args[1].get("windowId")
        payload["containerClosing"] = bool(args[1].get("isWindowClosing", False))
    return payload


def _tab_activated(args: List[Any]) -> Dict[str, Any]:
    info = _mapping_arg(args, 0)
    return {
        "kind": "item-activated",
        "containerId": info.get("windowId"),
        "itemId": info.get("tabId"),
    }


def _tab_attached(args: List[Any]) -> Dict[str, Any]:
    info = _mapping_arg(args, 1)
    return {
        "kind": "item-attached",
        "itemId": _arg(args, 0),
        "newContainerId": info.get("newWindowId"),
        "newPosition": info.get("newPosition"),
    }


def _tab_detached(args: List[Any]) -> Dict[str, Any]:
    info = _mapping_arg(args, 1)
    return {
        "kind": "item-detached",
        "itemId": _arg(args, 0),
        "oldContainerId": info.get("oldWindowId"),
        "oldPosition": info.get("oldPosition"),
    }


def _tab_replaced(args: List[Any]) -> Dict[str, Any]:
    return {
        "kind": "item-replaced",
        "addedItemId": _arg(args, 0),
        "removedItemId": _arg(args, 1),
    }


def _action_clicked(args: List[Any]) -> Dict[str, Any]:
    tab = _mapping_arg(args, 0)
    return {"kind": "flip-requested", "containerId": tab.get("windowId")}


def _command(args: List[Any]) -> Dict[str, Any]:
    # commands.onCommand passes (command, tab)
    return _action_clicked(args[1:])


def _lifecycle(phase: str) -> Callable[[List[Any]], Dict[str, Any]]:
    def build(args: List[Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": "lifecycle", "phase": phase}
        if phase == "installed" and args and isinstance(args[0], Mapping):
            payload["reason"] = args[0].get("reason")
        return payload

    return build


CALLBACK_TRANSLATORS: Dict[str, Callable[[List[Any]], Dict[str, Any]]] = {
    "windows.onCreated": _window_created,
    "windows.onRemoved": _window_removed,
    "tabs.onCreated": _tab_created,
    "tabs.onRemoved": _tab_removed,
    "tabs.onActivated": _tab_activated,
    "tabs.onAttached": _tab_attached,
    "tabs.onDetached": _tab_detached,
    "tabs.onReplaced": _tab_replaced,
    "action.onClicked": _action_clicked,
    "commands.onCommand": _command,
    "runtime.onStartup": _lifecycle("startup"),
    "runtime.onSuspend": _lifecycle("suspend"),
    "runtime.onSuspendCanceled": _lifecycle("suspend-canceled"),
    "runtime.onInstalled": _lifecycle("installed"),
}


def normalize_event_payload(payload: Any) -> Dict[str, Any]:
    """
    Turn a request body into an event payload for `parse_event`.

    Accepts either an already-tagged event ({"kind": ...}) or a raw host
    callback envelope ({"event": "tabs.onActivated", "args": [...]}).
    """
    if not isinstance(payload, Mapping):
        raise MalformedEventError("Event payload must be an object")

    if "kind" in payload:
        return dict(payload)

    name = payload.get("event")
    if not isinstance(name, str):
        raise MalformedEventError("Event payload has neither 'kind' nor 'event'")

    translator = CALLBACK_TRANSLATORS.get(name)
    if translator is None:
        raise MalformedEventError(f"Unsupported host callback '{name}'")

    args = payload.get("args") or []
    if not isinstance(args, list):
        args = [args]
    return translator(args)


def extract_setting_update(payload: Any) -> Optional[Tuple[str, str, Any]]:
    """
    Read a settingUpdate message: {"type": "settingUpdate", "data": {...}}.

    Returns (source, option, value), or None if the payload is not one.
    """
    if not isinstance(payload, Mapping) or payload.get("type") != "settingUpdate":
        return None
    data = payload.get("data")
    if not isinstance(data, Mapping) or "option" not in data:
        return None
    source = str(data.get("source") or "unknown")
    return source, str(data["option"]), data.get("value")


def extract_container_id(payload: Any) -> Optional[int]:
    """Find the window id in a flip request body (bare id or a tab object)."""
    if not isinstance(payload, Mapping):
        return None
    for key in ("container_id", "containerId", "windowId"):
        value = payload.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None
