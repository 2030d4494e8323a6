from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from kumbhaka.utils import custom_exception as ce


@dataclass
class SessionRecord:
    """
    Outcome of one breathing session.

    ``durations[i]`` holds the seconds measured for phase ``i + 1``
    (``record1_seconds``, ``record2_seconds`` ...). Durations are filled in
    phase order, each exactly once, and ``ended_at`` is set together with
    the last one.
    """
    started_at: datetime
    durations: List[Optional[float]] = field(default_factory=lambda: [None, None])
    ended_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def begin(cls, started_at: datetime, phase_count: int = 2) -> "SessionRecord":
        if phase_count < 2:
            raise ValueError("A session needs at least two phases.")
        return cls(started_at=started_at, durations=[None] * phase_count)

    @property
    def phase_count(self) -> int:
        return len(self.durations)

    def duration(self, phase_number: int) -> Optional[float]:
        """Seconds for 1-based ``phase_number``, None when unset or out of range."""
        if 1 <= phase_number <= len(self.durations):
            return self.durations[phase_number - 1]
        return None

    @property
    def record1_seconds(self) -> Optional[float]:
        return self.duration(1)

    @property
    def record2_seconds(self) -> Optional[float]:
        return self.duration(2)

    @property
    def record3_seconds(self) -> Optional[float]:
        return self.duration(3)

    @property
    def is_complete(self) -> bool:
        return self.ended_at is not None

    def record_duration(self, phase_number: int, seconds: float) -> None:
        index = phase_number - 1
        if not 0 <= index < len(self.durations):
            raise ce.InvalidRecordError(f"Phase {phase_number} is outside this {self.phase_count}-phase session.")
        if self.ended_at is not None:
            raise ce.InvalidRecordError("Session already ended.")
        if self.durations[index] is not None:
            raise ce.InvalidRecordError(f"Phase {phase_number} already recorded.")
        if index > 0 and self.durations[index - 1] is None:
            raise ce.InvalidRecordError(f"Phase {phase_number} recorded before phase {phase_number - 1}.")
        self.durations[index] = seconds

    def finish(self, ended_at: datetime) -> None:
        if self.ended_at is not None:
            raise ce.InvalidRecordError("Session already ended.")
        if any(d is None for d in self.durations):
            raise ce.InvalidRecordError("Cannot end a session with unrecorded phases.")
        self.ended_at = ended_at

    def validate(self) -> None:
        """Raise InvalidRecordError unless the phase ordering rules hold."""
        seen_gap = False
        for number, seconds in enumerate(self.durations, start=1):
            if seconds is None:
                seen_gap = True
            elif seen_gap:
                raise ce.InvalidRecordError(f"Phase {number} is set while an earlier phase is not.")
        last_set = self.durations[-1] is not None
        if last_set != (self.ended_at is not None):
            raise ce.InvalidRecordError("ended_at must be set exactly when the last phase is recorded.")
