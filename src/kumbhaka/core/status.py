from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class PhaseKind(Enum):
    IDLE = "idle"
    RUNNING = "running"
    WAITING = "waiting"  # manual start mode only: previous phase stopped, next not started


@dataclass(frozen=True)
class PhaseState:
    kind: PhaseKind
    index: int = 0  # zero-based phase index; meaningless for IDLE

    @property
    def number(self) -> int:
        return self.index + 1

    @property
    def name(self) -> str:
        if self.kind == PhaseKind.RUNNING:
            return f"Phase{self.number}Running"
        if self.kind == PhaseKind.WAITING:
            return f"WaitingForPhase{self.number}Start"
        return "Idle"

    @property
    def accepts_start(self) -> bool:
        return self.kind in (PhaseKind.IDLE, PhaseKind.WAITING)

    def is_running(self, index: int) -> bool:
        return self.kind == PhaseKind.RUNNING and self.index == index


IDLE = PhaseState(PhaseKind.IDLE)


def running(index: int) -> PhaseState:
    return PhaseState(PhaseKind.RUNNING, index)


def waiting(index: int) -> PhaseState:
    return PhaseState(PhaseKind.WAITING, index)


@dataclass(frozen=True)
class ButtonEnablement:
    start: bool
    stops: Tuple[bool, ...]

    def stop(self, phase_number: int) -> bool:
        return self.stops[phase_number - 1]

    def as_dict(self) -> dict:
        data = {"start": self.start}
        for number, enabled in enumerate(self.stops, start=1):
            data[f"phase{number}_stop"] = enabled
        return data


def button_enablement(ready: bool, state: PhaseState, phase_count: int) -> ButtonEnablement:
    """Start is live when idle or waiting; each stop only while its own phase runs."""
    return ButtonEnablement(
        start=ready and state.accepts_start,
        stops=tuple(ready and state.is_running(i) for i in range(phase_count)),
    )
