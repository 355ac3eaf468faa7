# SPDX-License-Identifier: MIT

import logging

import pytest

from tabflip.settings import SettingsManager, TrackerSettings


def test_defaults():
    settings = SettingsManager(env={}).snapshot()
    assert settings == TrackerSettings(flip=True, new_item_select=False, relocate=True, log=False)


def test_seeded_from_environment():
    manager = SettingsManager(env={"TABFLIP_FLIP": "false", "TABFLIP_NEW_ITEM_SELECT": "1"})
    settings = manager.snapshot()
    assert settings.flip is False
    assert settings.new_item_select is True
    assert settings.relocate is True


def test_update_accepts_options_page_names():
    manager = SettingsManager(env={})
    manager.update_setting("ntsel", True, "options")
    manager.update_setting("reloc", "false", "options")
    settings = manager.snapshot()
    assert settings.new_item_select is True
    assert settings.relocate is False


def test_snapshots_are_not_mutated_by_updates():
    manager = SettingsManager(env={})
    before = manager.snapshot()
    manager.update_setting("flip", False)
    assert before.flip is True
    assert manager.snapshot().flip is False


def test_unknown_option_is_rejected():
    manager = SettingsManager(env={})
    with pytest.raises(KeyError):
        manager.update_setting("darkMode", True)


def test_log_setting_switches_library_debug_output():
    manager = SettingsManager(env={})
    logger = logging.getLogger("tabflip")
    assert logger.level == logging.INFO

    manager.update_setting("log", True)
    assert logger.level == logging.DEBUG

    manager.toggle_logging()
    assert logger.level == logging.INFO
    assert manager.snapshot().log is False
