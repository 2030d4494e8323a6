from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from kumbhaka.ports.settings_port import SettingsPort
from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)

SETTINGS_SCHEMA_VERSION = 1

# --- Stored keys ---
KEY_SETTINGS_VERSION = "settingsVersion"
KEY_START_MODE = "rechakaStartMode"
KEY_TIME_DISPLAY_STYLE = "timeDisplayStyle"
KEY_GOAL_SECONDS = "goalSeconds"
KEY_GOAL_HIGHLIGHT_COLOR = "goalHighlightColor"
KEY_AUTO_GOAL_ENABLED = "autoGoalEnabled"

E = TypeVar("E", bound=Enum)


def decode_enum(enum_cls: Type[E], raw: Any, default: E) -> E:
    """Decode a stored raw string into ``enum_cls``; unknown or corrupt values give ``default``."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        if raw is not None:
            logger.warning(f"Unknown {enum_cls.__name__} value {raw!r}, using {default.value!r}.")
        return default


class StartMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"

    @property
    def label(self) -> str:
        return {StartMode.AUTO: "自動", StartMode.MANUAL: "手動"}[self]


class TimeDisplayStyle(str, Enum):
    MINUTE_SECOND = "minuteSecond"
    DECIMAL_SECOND = "decimalSecond"

    @property
    def label(self) -> str:
        return {
            TimeDisplayStyle.MINUTE_SECOND: "何分何秒",
            TimeDisplayStyle.DECIMAL_SECOND: "秒（小数1位）",
        }[self]


class GoalHighlightColor(str, Enum):
    RED = "red"
    ORANGE = "orange"
    BLUE = "blue"
    PURPLE = "purple"
    BLACK = "black"

    @property
    def label(self) -> str:
        return {
            GoalHighlightColor.RED: "赤",
            GoalHighlightColor.ORANGE: "オレンジ",
            GoalHighlightColor.BLUE: "青",
            GoalHighlightColor.PURPLE: "紫",
            GoalHighlightColor.BLACK: "黒",
        }[self]


def decode_goal_seconds(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if value != value or value < 0:  # NaN or negative
        return 0.0
    return value


def decode_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.lower() in ("1", "true", "yes", "on")
    return bool(raw)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Decoded user settings, read once per decision or render."""
    start_mode: StartMode = StartMode.AUTO
    display_style: TimeDisplayStyle = TimeDisplayStyle.MINUTE_SECOND
    goal_seconds: float = 0.0
    goal_color: GoalHighlightColor = GoalHighlightColor.RED
    auto_goal_enabled: bool = False

    @property
    def goal_enabled(self) -> bool:
        return self.goal_seconds > 0 or self.auto_goal_enabled

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "SettingsSnapshot":
        return cls(
            start_mode=decode_enum(StartMode, data.get(KEY_START_MODE), StartMode.AUTO),
            display_style=decode_enum(
                TimeDisplayStyle, data.get(KEY_TIME_DISPLAY_STYLE), TimeDisplayStyle.MINUTE_SECOND
            ),
            goal_seconds=decode_goal_seconds(data.get(KEY_GOAL_SECONDS, 0.0)),
            goal_color=decode_enum(
                GoalHighlightColor, data.get(KEY_GOAL_HIGHLIGHT_COLOR), GoalHighlightColor.RED
            ),
            auto_goal_enabled=decode_bool(data.get(KEY_AUTO_GOAL_ENABLED, False)),
        )

    def to_raw(self) -> Dict[str, Any]:
        return {
            KEY_SETTINGS_VERSION: SETTINGS_SCHEMA_VERSION,
            KEY_START_MODE: self.start_mode.value,
            KEY_TIME_DISPLAY_STYLE: self.display_style.value,
            KEY_GOAL_SECONDS: self.goal_seconds,
            KEY_GOAL_HIGHLIGHT_COLOR: self.goal_color.value,
            KEY_AUTO_GOAL_ENABLED: self.auto_goal_enabled,
        }

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


class SettingsProvider:
    """
    Typed access to the settings key-value store.

    Components hold the provider, never a snapshot, and call ``snapshot()``
    whenever they need the current values.
    """

    def __init__(self, store: SettingsPort):
        self.store = store
        self._migrate()

    def _migrate(self):
        version = self.store.get(KEY_SETTINGS_VERSION)
        if version is None:
            self.store.set(KEY_SETTINGS_VERSION, SETTINGS_SCHEMA_VERSION)
            return
        try:
            version = int(version)
        except (TypeError, ValueError):
            logger.warning(f"Corrupt settings version {version!r}, rewriting as v{SETTINGS_SCHEMA_VERSION}.")
            self.store.set(KEY_SETTINGS_VERSION, SETTINGS_SCHEMA_VERSION)
            return
        if version > SETTINGS_SCHEMA_VERSION:
            logger.warning(
                f"Settings written by schema v{version}, reading as v{SETTINGS_SCHEMA_VERSION} with defaults."
            )

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot.from_raw(self.store.as_dict())

    def update(
        self,
        start_mode: Optional[StartMode] = None,
        display_style: Optional[TimeDisplayStyle] = None,
        goal_seconds: Optional[float] = None,
        goal_color: Optional[GoalHighlightColor] = None,
        auto_goal_enabled: Optional[bool] = None,
    ) -> SettingsSnapshot:
        """Write the given fields back as raw values and return the new snapshot."""
        if start_mode is not None:
            self.store.set(KEY_START_MODE, StartMode(start_mode).value)
        if display_style is not None:
            self.store.set(KEY_TIME_DISPLAY_STYLE, TimeDisplayStyle(display_style).value)
        if goal_seconds is not None:
            if goal_seconds < 0:
                raise ValueError("Goal seconds cannot be negative.")
            self.store.set(KEY_GOAL_SECONDS, float(goal_seconds))
        if goal_color is not None:
            self.store.set(KEY_GOAL_HIGHLIGHT_COLOR, GoalHighlightColor(goal_color).value)
        if auto_goal_enabled is not None:
            self.store.set(KEY_AUTO_GOAL_ENABLED, bool(auto_goal_enabled))
        snapshot = self.snapshot()
        logger.info(f"Settings updated: {snapshot.as_dict()}")
        return snapshot
