from typing import Any, Dict, List, Optional, Sequence

from kumbhaka.core import status
from kumbhaka.core.readiness_gate import ReadinessGate
from kumbhaka.core.session_record import SessionRecord
from kumbhaka.core.settings import SettingsProvider, SettingsSnapshot, StartMode
from kumbhaka.core.status import ButtonEnablement, PhaseKind, PhaseState, button_enablement
from kumbhaka.ports.record_store_port import RecordStorePort
from kumbhaka.utils import Clock, Event
from kumbhaka.utils import custom_exception as ce
from kumbhaka.utils.logging_handler import setup_logger
from kumbhaka.utils.time_conversions import format_decimal_seconds, format_seconds, truncate_one_decimal

logger = setup_logger(__name__)

DEFAULT_PHASE_NAMES = ("レーチャカ", "プーラカ")
DEFAULT_ANNOUNCE_INTERVAL = 10


class PhaseMachine:
    """
    Tracks one breathing session across its phases.

    Start begins phase 1. Stopping phase ``i`` records its duration and, in
    auto start mode, begins phase ``i + 1`` at the same instant; in manual
    mode the machine waits for Start. Stopping the last phase saves the
    session and returns to idle, keeping the measured durations for display
    and sharing.

    Every transition needs the readiness gate to be ready and the machine to
    be in the matching phase; otherwise it is declined without side effects
    and returns False.
    """

    def __init__(
        self,
        store: RecordStorePort,
        settings: SettingsProvider,
        gate: Optional[ReadinessGate] = None,
        clock: Optional[Clock] = None,
        phase_names: Sequence[str] = DEFAULT_PHASE_NAMES,
        announce_interval: int = DEFAULT_ANNOUNCE_INTERVAL,
    ):
        if len(phase_names) < 2:
            raise ValueError("A session needs at least two phases.")
        self.store = store
        self.settings = settings
        self.gate = gate
        self.clock = clock or (gate.clock if gate is not None else Clock())
        self.phase_names = tuple(phase_names)
        self.announce_interval = announce_interval

        self._state: PhaseState = status.IDLE
        self._boundaries: List[Optional[float]] = [None] * self.phase_count
        self._record: Optional[SessionRecord] = None
        self._last_durations: List[Optional[float]] = [None] * self.phase_count
        self._last_completed: Optional[SessionRecord] = None
        self._last_announced_bucket: Optional[int] = None

        self.on_phase_change = Event()
        self.on_session_saved = Event()
        self.on_announce = Event()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase_count(self) -> int:
        return len(self.phase_names)

    @property
    def state(self) -> PhaseState:
        return self._state

    @property
    def ready(self) -> bool:
        # without a gate the host has vouched for its own timer
        return self.gate.ready if self.gate is not None else True

    @property
    def started_at(self):
        """Wall-clock start of the current (or last completed) session."""
        if self._record is not None:
            return self._record.started_at
        if self._last_completed is not None:
            return self._last_completed.started_at
        return None

    @property
    def last_durations(self) -> List[Optional[float]]:
        return list(self._last_durations)

    @property
    def last_phase1_duration(self) -> Optional[float]:
        return self._last_durations[0]

    @property
    def last_phase2_duration(self) -> Optional[float]:
        return self._last_durations[1]

    @property
    def last_completed(self) -> Optional[SessionRecord]:
        return self._last_completed

    @property
    def can_share(self) -> bool:
        return self._last_completed is not None and self._last_completed.is_complete

    def boundary(self, phase_number: int) -> Optional[float]:
        """Monotonic instant at which ``phase_number`` began, if it has."""
        return self._boundaries[phase_number - 1]

    def enablement(self) -> ButtonEnablement:
        return button_enablement(self.ready, self._state, self.phase_count)

    def _now(self) -> float:
        return self.clock.monotonic()

    def _set_state(self, new_state: PhaseState):
        previous, self._state = self._state, new_state
        self._last_announced_bucket = None
        logger.info(f"Phase {previous.name} -> {new_state.name}")
        self.on_phase_change.emit(previous=previous.name, current=new_state.name)

    def _decline(self, action: str) -> bool:
        if not self.ready:
            logger.warning(f"{action} ignored: timer not ready yet.")
        else:
            logger.warning(f"{action} ignored in phase {self._state.name}.")
        return False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def tap_start(self) -> bool:
        """Start a new session from idle, or begin the awaited phase in manual mode."""
        if not self.ready or not self._state.accepts_start:
            return self._decline("Start")

        t = self._now()
        if self._state.kind == PhaseKind.IDLE:
            self._boundaries = [None] * self.phase_count
            self._boundaries[0] = t
            self._last_durations = [None] * self.phase_count
            self._last_completed = None
            self._record = SessionRecord.begin(self.clock.wall(), self.phase_count)
            logger.info(f"Session started at {self._record.started_at:%Y-%m-%d %H:%M:%S}.")
            self._set_state(status.running(0))
        else:
            index = self._state.index
            if self._record is None:
                return self._decline("Start")
            self._boundaries[index] = t
            self._set_state(status.running(index))
        return True

    def tap_stop(self, phase_number: int) -> bool:
        """Stop ``phase_number`` (1-based) and record its duration."""
        index = phase_number - 1
        action = f"Phase{phase_number}Stop"
        if not self.ready or not self._state.is_running(index):
            return self._decline(action)
        boundary = self._boundaries[index]
        if boundary is None or self._record is None:
            return self._decline(action)

        t = self._now()
        seconds = t - boundary
        self._last_durations[index] = seconds
        self._record.record_duration(phase_number, seconds)
        logger.info(f"{self.phase_names[index]} recorded: {seconds:.3f}s")

        if index == self.phase_count - 1:
            self._finish_session()
            return True

        mode = self.settings.snapshot().start_mode
        if mode == StartMode.AUTO:
            self._boundaries[index + 1] = t
            self._set_state(status.running(index + 1))
        else:
            self._boundaries[index + 1] = None
            self._set_state(status.waiting(index + 1))
        return True

    def _finish_session(self):
        record = self._record
        record.finish(self.clock.wall())
        try:
            self.store.insert(record)
            logger.info(f"Session {record.id} saved.")
            self.on_session_saved.emit(record=record)
        except (ce.RecordStoreError, ce.InvalidRecordError):
            logger.exception("Failed to save session; keeping it for display only.")

        self._last_completed = record
        self._record = None
        self._boundaries = [None] * self.phase_count
        self._set_state(status.IDLE)

    # ------------------------------------------------------------------
    # Readout
    # ------------------------------------------------------------------

    def raw_elapsed(self, now: Optional[float] = None) -> float:
        """Untruncated seconds into the running phase; 0.0 when idle or waiting."""
        if self._state.kind != PhaseKind.RUNNING:
            return 0.0
        boundary = self._boundaries[self._state.index]
        if boundary is None:
            return 0.0
        now = self._now() if now is None else now
        return max(0.0, now - boundary)

    def elapsed(self, now: Optional[float] = None) -> float:
        """Elapsed seconds truncated to one decimal (12.37 -> 12.3)."""
        return truncate_one_decimal(self.raw_elapsed(now))

    def elapsed_text(self, now: Optional[float] = None) -> str:
        if not self.ready:
            return format_decimal_seconds(0.0)
        return format_decimal_seconds(self.raw_elapsed(now))

    def on_clock_tick(self, now: float, **kwargs):
        """Listener for ReadinessGate.on_tick; fires the periodic announcement."""
        self.check_announcement(now)

    def check_announcement(self, now: float) -> bool:
        """Announce once each time the running phase crosses a multiple of ``announce_interval`` seconds."""
        if self._state.kind != PhaseKind.RUNNING or self.announce_interval <= 0:
            return False
        bucket = int(self.raw_elapsed(now) // self.announce_interval)
        if bucket < 1:
            return False
        if self._last_announced_bucket is not None and bucket <= self._last_announced_bucket:
            return False
        self._last_announced_bucket = bucket
        seconds = bucket * self.announce_interval
        self.on_announce.emit(
            phase=self._state.number,
            phase_name=self.phase_names[self._state.index],
            seconds=seconds,
            text=f"{seconds}秒",
        )
        return True

    def button_titles(self, snapshot: Optional[SettingsSnapshot] = None) -> Dict[str, str]:
        snapshot = snapshot or self.settings.snapshot()
        titles = {}
        if snapshot.start_mode == StartMode.MANUAL:
            if self._state.kind == PhaseKind.IDLE:
                titles["start"] = f"{self.phase_names[0]}スタート"
            elif self._state.kind == PhaseKind.WAITING:
                titles["start"] = f"{self.phase_names[self._state.index]}スタート"
            else:
                titles["start"] = "スタート"
            for number, name in enumerate(self.phase_names, start=1):
                titles[f"phase{number}_stop"] = f"{name}ストップ"
        else:
            titles["start"] = "スタート"
            for number, name in enumerate(self.phase_names, start=1):
                titles[f"phase{number}_stop"] = name
        return titles

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Everything a view needs for one render, computed from a single ``now``."""
        settings = self.settings.snapshot()
        now = self._now() if now is None else now
        return {
            "ready": self.ready,
            "phase": self._state.name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "elapsed": self.elapsed(now) if self.ready else 0.0,
            "elapsed_text": self.elapsed_text(now),
            "buttons": self.enablement().as_dict(),
            "titles": self.button_titles(settings),
            "phase_names": list(self.phase_names),
            "last_durations": self.last_durations,
            "last_durations_text": [format_seconds(d, settings.display_style) for d in self._last_durations],
            "can_share": self.can_share,
        }
