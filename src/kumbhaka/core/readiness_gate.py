import asyncio
from typing import Optional

from kumbhaka.utils import Clock, Event
from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)

DEFAULT_TICK_INTERVAL = 0.1
DEFAULT_HANG_THRESHOLD = 0.25
DEFAULT_REQUIRED_STABLE_DURATION = 2.0


class ReadinessGate:
    """
    Holds phase input back until the host's tick delivery has settled.

    A background loop samples the clock every ``tick_interval``. Any gap
    larger than ``hang_threshold`` restarts the stability count; once ticks
    stay regular for ``required_stable_duration`` the gate reports ready and
    stays ready for the rest of its life. Every sample is also published as
    the shared "now" through ``on_tick``.
    """

    def __init__(
        self,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        hang_threshold: float = DEFAULT_HANG_THRESHOLD,
        required_stable_duration: float = DEFAULT_REQUIRED_STABLE_DURATION,
        clock: Optional[Clock] = None,
    ):
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self.tick_interval = tick_interval
        self.hang_threshold = hang_threshold
        self.required_stable_duration = required_stable_duration
        self.clock = clock or Clock()

        self._ready = False
        self._last_sample: Optional[float] = None
        self._stable_since: Optional[float] = None
        self._now: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

        self.on_tick = Event()
        self.on_ready = Event()

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def now(self) -> float:
        """Latest sampled time, or a fresh clock reading before the first tick."""
        if self._now is None:
            return self.clock.monotonic()
        return self._now

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def observe(self, t: float) -> bool:
        """
        Feed one tick sample taken at ``t`` and return the ready flag.

        This is one iteration of the loop without the sleep.
        """
        dt = 0.0 if self._last_sample is None else t - self._last_sample
        self._last_sample = t
        self._now = t

        if not self._ready:
            if dt > self.hang_threshold:
                if self._stable_since is not None:
                    logger.debug(f"Tick hiccup of {dt:.3f}s, restarting stability count.")
                self._stable_since = None
            else:
                if self._stable_since is None:
                    self._stable_since = t
                if t - self._stable_since >= self.required_stable_duration:
                    self._ready = True
                    logger.info(f"Timer stable for {self.required_stable_duration}s, input enabled.")
                    self.on_ready.emit(now=t)

        self.on_tick.emit(now=t, ready=self._ready)
        return self._ready

    async def run_loop(self):
        """Sample forever until cancelled."""
        self._last_sample = self.clock.monotonic()
        try:
            while True:
                self.observe(self.clock.monotonic())
                await asyncio.sleep(self.tick_interval)
        except asyncio.CancelledError:
            logger.debug("Readiness loop cancelled.")
            raise

    def start(self) -> asyncio.Task:
        """Schedule ``run_loop`` on the running event loop."""
        if self.is_running:
            logger.warning("Readiness loop is already running.")
            return self._task
        self._task = asyncio.create_task(self.run_loop(), name="readiness_gate")
        logger.info("Readiness loop started.")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Readiness loop stopped.")
