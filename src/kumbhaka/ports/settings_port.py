from abc import ABC, abstractmethod
from typing import Any, Dict


class SettingsPort(ABC):
    """Key-value store holding raw user settings (strings, numbers, booleans)."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a raw value under ``key`` and persist it."""
        pass

    @abstractmethod
    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of every stored key."""
        pass
