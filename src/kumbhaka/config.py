import math
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Tuple

import dotenv

from kumbhaka.core.phase_machine import DEFAULT_ANNOUNCE_INTERVAL, DEFAULT_PHASE_NAMES
from kumbhaka.core.readiness_gate import (
    DEFAULT_HANG_THRESHOLD,
    DEFAULT_REQUIRED_STABLE_DURATION,
    DEFAULT_TICK_INTERVAL,
)
from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)

ENV_PREFIX = "KUMBHAKA_"


def _positive(value: float) -> bool:
    return value > 0


def _non_negative(value: float) -> bool:
    return value >= 0


def _tcp_port(value: float) -> bool:
    return value.is_integer() and 1 <= value <= 65535


def _env_float(env: Mapping[str, str], key: str, default: float,
               valid: Callable[[float], bool] = _non_negative) -> float:
    """Read a numeric setting; anything unparsable, non-finite or rejected by ``valid`` falls back to ``default``."""
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value) or not valid(value):
        logger.warning(f"Ignoring {ENV_PREFIX + key}={raw!r}, using {default}.")
        return default
    return value


@dataclass
class AppConfig:
    db_path: str = "data/kumbhaka.db"
    settings_path: str = "config/user_settings.json"
    phase_names: Tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_PHASE_NAMES))
    tick_interval: float = DEFAULT_TICK_INTERVAL
    hang_threshold: float = DEFAULT_HANG_THRESHOLD
    required_stable_duration: float = DEFAULT_REQUIRED_STABLE_DURATION
    announce_interval: int = DEFAULT_ANNOUNCE_INTERVAL
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, load_dotenv: bool = True) -> "AppConfig":
        """Build the config from ``KUMBHAKA_*`` variables, reading ``.env`` first unless told not to."""
        if env is None:
            if load_dotenv:
                dotenv.load_dotenv()
            env = os.environ
        defaults = cls()

        names = env.get(ENV_PREFIX + "PHASE_NAMES")
        phase_names = defaults.phase_names
        if names:
            parsed = tuple(n.strip() for n in names.split(",") if n.strip())
            if len(parsed) >= 2:
                phase_names = parsed
            else:
                logger.warning(f"{ENV_PREFIX}PHASE_NAMES needs at least two names, got {names!r}.")

        return cls(
            db_path=env.get(ENV_PREFIX + "DB_PATH", defaults.db_path),
            settings_path=env.get(ENV_PREFIX + "SETTINGS_PATH", defaults.settings_path),
            phase_names=phase_names,
            tick_interval=_env_float(env, "TICK_INTERVAL", defaults.tick_interval, _positive),
            hang_threshold=_env_float(env, "HANG_THRESHOLD", defaults.hang_threshold),
            required_stable_duration=_env_float(env, "REQUIRED_STABLE", defaults.required_stable_duration),
            announce_interval=int(_env_float(env, "ANNOUNCE_INTERVAL", defaults.announce_interval, lambda v: v >= 1)),
            host=env.get(ENV_PREFIX + "HOST", defaults.host),
            port=int(_env_float(env, "PORT", defaults.port, _tcp_port)),
        )
