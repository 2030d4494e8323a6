import json

import pytest

from kumbhaka.adapters.settings_adapters.json_settings_store import InMemorySettingsStore, JsonSettingsStore
from kumbhaka.core.settings import (
    KEY_GOAL_HIGHLIGHT_COLOR,
    KEY_GOAL_SECONDS,
    KEY_SETTINGS_VERSION,
    KEY_START_MODE,
    KEY_TIME_DISPLAY_STYLE,
    SETTINGS_SCHEMA_VERSION,
    GoalHighlightColor,
    SettingsProvider,
    SettingsSnapshot,
    StartMode,
    TimeDisplayStyle,
    decode_enum,
)


def test_defaults_for_empty_store(settings):
    snap = settings.snapshot()
    assert snap.start_mode == StartMode.AUTO
    assert snap.display_style == TimeDisplayStyle.MINUTE_SECOND
    assert snap.goal_seconds == 0.0
    assert snap.goal_color == GoalHighlightColor.RED
    assert snap.auto_goal_enabled is False
    assert not snap.goal_enabled


def test_unknown_raw_values_fall_back_to_defaults():
    snap = SettingsSnapshot.from_raw({
        KEY_START_MODE: "sometimes",
        KEY_TIME_DISPLAY_STYLE: 42,
        KEY_GOAL_SECONDS: "abc",
        KEY_GOAL_HIGHLIGHT_COLOR: "green",
    })
    assert snap == SettingsSnapshot()


def test_negative_goal_is_disabled():
    assert SettingsSnapshot.from_raw({KEY_GOAL_SECONDS: -5}).goal_seconds == 0.0


def test_decode_enum_accepts_members_and_raw_strings():
    assert decode_enum(StartMode, "manual", StartMode.AUTO) == StartMode.MANUAL
    assert decode_enum(StartMode, StartMode.MANUAL, StartMode.AUTO) == StartMode.MANUAL
    assert decode_enum(StartMode, None, StartMode.AUTO) == StartMode.AUTO


def test_provider_writes_raw_strings(settings_store, settings):
    snap = settings.update(
        start_mode=StartMode.MANUAL,
        display_style=TimeDisplayStyle.DECIMAL_SECOND,
        goal_seconds=30,
        goal_color=GoalHighlightColor.BLUE,
    )
    assert settings_store.get(KEY_START_MODE) == "manual"
    assert settings_store.get(KEY_TIME_DISPLAY_STYLE) == "decimalSecond"
    assert settings_store.get(KEY_GOAL_SECONDS) == 30.0
    assert snap.goal_color == GoalHighlightColor.BLUE
    assert snap.goal_enabled


def test_provider_rejects_negative_goal(settings):
    with pytest.raises(ValueError):
        settings.update(goal_seconds=-1)


def test_provider_stamps_schema_version():
    store = InMemorySettingsStore()
    SettingsProvider(store)
    assert store.get(KEY_SETTINGS_VERSION) == SETTINGS_SCHEMA_VERSION


def test_corrupt_version_is_rewritten():
    store = InMemorySettingsStore({KEY_SETTINGS_VERSION: "v?"})
    SettingsProvider(store)
    assert store.get(KEY_SETTINGS_VERSION) == SETTINGS_SCHEMA_VERSION


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "config" / "settings.json"
    provider = SettingsProvider(JsonSettingsStore(str(path)))
    provider.update(start_mode=StartMode.MANUAL, goal_seconds=12.5)

    reloaded = SettingsProvider(JsonSettingsStore(str(path))).snapshot()
    assert reloaded.start_mode == StartMode.MANUAL
    assert reloaded.goal_seconds == 12.5
    assert json.loads(path.read_text(encoding="utf-8"))[KEY_START_MODE] == "manual"


def test_json_store_survives_corrupt_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonSettingsStore(str(path))
    assert store.as_dict() == {}
    assert SettingsProvider(store).snapshot() == SettingsSnapshot()
