import json
from pathlib import Path
from typing import Any, Dict

from kumbhaka.ports.settings_port import SettingsPort
from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


class JsonSettingsStore(SettingsPort):
    """
    Simple JSON-based settings store.

    Every ``set`` writes the whole file back. A missing or unreadable file
    starts empty so the decoders fall back to their defaults.
    """

    def __init__(self, filename: str = "config/user_settings.json"):
        self.file = Path(filename)
        self.data: Dict[str, Any] = {}
        self._load()

    # ------------------------------------------------------------------
    # Core file ops
    # ------------------------------------------------------------------

    def _load(self):
        if not self.file.exists():
            logger.warning(f"[SETTINGS] file not found, will create {self.file}")
            self.data = {}
            return
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[SETTINGS] load failed: {e}")
            self.data = {}
            return
        if not isinstance(loaded, dict):
            logger.error(f"[SETTINGS] expected an object in {self.file}, ignoring contents")
            loaded = {}
        self.data = loaded

    def save(self):
        try:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"[SETTINGS] save failed: {e}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if self.data.get(key) == value and key in self.data:
            logger.debug(f"[SETTINGS] skipping {key}, value unchanged")
            return
        self.data[key] = value
        self.save()

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.data)


class InMemorySettingsStore(SettingsPort):
    def __init__(self, initial: Dict[str, Any] | None = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.data)
