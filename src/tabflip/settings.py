# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

lib_logger = logging.getLogger("tabflip")

SETTING_ENV_VARS = {
    "flip": "TABFLIP_FLIP",
    "new_item_select": "TABFLIP_NEW_ITEM_SELECT",
    "relocate": "TABFLIP_RELOCATE",
    "log": "TABFLIP_LOG",
}

# Option names as sent by the options page
SETTING_ALIASES = {
    "flip": "flip",
    "ntsel": "new_item_select",
    "newItemSelect": "new_item_select",
    "new_item_select": "new_item_select",
    "reloc": "relocate",
    "relocate": "relocate",
    "log": "log",
}


@dataclass(frozen=True)
class TrackerSettings:
    """
    Read-only view of the user preferences at one instant.

    flip: select the last-used tab on close and enable the flip trigger.
    new_item_select: select newly created tabs.
    relocate: move newly created tabs to the far right.
    log: emit debug logging.
    """

    flip: bool = True
    new_item_select: bool = False
    relocate: bool = True
    log: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class SettingsManager:
    """
    Holds the current preferences and hands out snapshots.

    Handlers call `snapshot()` on every invocation; nothing caches a snapshot
    beyond the event it was taken for.
    """

    def __init__(
        self,
        initial: Optional[TrackerSettings] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self._settings = initial or self._from_env(env if env is not None else os.environ)
        self._apply_log_level(self._settings.log)

    @staticmethod
    def _from_env(env: Mapping[str, str]) -> TrackerSettings:
        defaults = TrackerSettings()
        values: Dict[str, bool] = {}
        for field_name, var in SETTING_ENV_VARS.items():
            raw = env.get(var)
            values[field_name] = (
                getattr(defaults, field_name) if raw is None else _coerce_bool(raw)
            )
        return TrackerSettings(**values)

    @staticmethod
    def _apply_log_level(enabled: bool) -> None:
        lib_logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def snapshot(self) -> TrackerSettings:
        return self._settings

    def update_setting(self, option: str, value: Any, source: str = "unknown") -> TrackerSettings:
        """
        Apply one setting change message.

        Raises KeyError for an unknown option.
        """
        field_name = SETTING_ALIASES.get(option)
        if field_name is None:
            lib_logger.warning(f"Unknown setting: {option}")
            raise KeyError(option)

        original = getattr(self._settings, field_name)
        new_value = _coerce_bool(value)
        self._settings = replace(self._settings, **{field_name: new_value})
        if field_name == "log":
            self._apply_log_level(new_value)

        lib_logger.debug(f"{source}: {field_name} => was {original}, now {new_value}")
        return self._settings

    def toggle_logging(self) -> TrackerSettings:
        return self.update_setting("log", not self._settings.log, "toggle")
