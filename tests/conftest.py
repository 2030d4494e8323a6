import os
import tempfile
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("KUMBHAKA_LOG_DIR", os.path.join(tempfile.gettempdir(), "kumbhaka-test-logs"))

from kumbhaka.adapters.memory_adapters.in_memory_record_store import InMemoryRecordStore  # noqa: E402
from kumbhaka.adapters.settings_adapters.json_settings_store import InMemorySettingsStore  # noqa: E402
from kumbhaka.core.phase_machine import PhaseMachine  # noqa: E402
from kumbhaka.core.readiness_gate import ReadinessGate  # noqa: E402
from kumbhaka.core.settings import SettingsProvider  # noqa: E402
from kumbhaka.utils import Clock  # noqa: E402


class FakeClock(Clock):
    """Manually advanced clock; monotonic seconds and wall time move together."""

    def __init__(self, t: float = 0.0, wall_origin: datetime = datetime(2025, 1, 31, 7, 0, 0)):
        self.t = t
        self.wall_origin = wall_origin

    def monotonic(self) -> float:
        return self.t

    def wall(self) -> datetime:
        return self.wall_origin + timedelta(seconds=self.t)

    def set(self, t: float):
        self.t = t

    def advance(self, seconds: float):
        self.t += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def settings(settings_store):
    return SettingsProvider(settings_store)


@pytest.fixture
def ready_gate(clock):
    gate = ReadinessGate(required_stable_duration=0.0, clock=clock)
    gate.observe(clock.monotonic())
    assert gate.ready
    return gate


@pytest.fixture
def machine(store, settings, ready_gate, clock):
    return PhaseMachine(store=store, settings=settings, gate=ready_gate, clock=clock)
