from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from kumbhaka.core.session_record import SessionRecord
from kumbhaka.core.settings import GoalHighlightColor, SettingsSnapshot
from kumbhaka.ports.record_store_port import RecordStorePort
from kumbhaka.utils import Clock
from kumbhaka.utils import custom_exception as ce
from kumbhaka.utils.logging_handler import setup_logger


@dataclass
class DayGroup:
    day: date
    sessions: List[SessionRecord]


@dataclass
class DaySummary:
    day: date
    count: int
    best: List[Optional[float]] = field(default_factory=list)
    average: List[Optional[float]] = field(default_factory=list)
    latest: Optional[SessionRecord] = None

    def as_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "count": self.count,
            "best": self.best,
            "average": self.average,
            "latest_id": self.latest.id if self.latest else None,
        }


def day_bounds(day: date):
    """[start, end) datetimes of a local calendar day."""
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def group_by_day(sessions: Iterable[SessionRecord]) -> List[DayGroup]:
    """Days newest first; sessions newest first within each day."""
    days: Dict[date, List[SessionRecord]] = {}
    for record in sessions:
        days.setdefault(record.started_at.date(), []).append(record)
    return [
        DayGroup(day=day, sessions=sorted(days[day], key=lambda r: r.started_at, reverse=True))
        for day in sorted(days, reverse=True)
    ]


def summarize_day(day: date, sessions: List[SessionRecord], phase_count: int = 2) -> DaySummary:
    best, average = [], []
    for number in range(1, phase_count + 1):
        values = [r.duration(number) for r in sessions if r.duration(number) is not None]
        best.append(max(values) if values else None)
        average.append(sum(values) / len(values) if values else None)
    latest = max(sessions, key=lambda r: r.started_at) if sessions else None
    return DaySummary(day=day, count=len(sessions), best=best, average=average, latest=latest)


def color_for_goal(seconds: Optional[float], goal_seconds: float, goal_color: GoalHighlightColor) -> GoalHighlightColor:
    """Highlight color once ``seconds`` reaches a positive goal; black otherwise."""
    if goal_seconds <= 0 or seconds is None:
        return GoalHighlightColor.BLACK
    return goal_color if seconds >= goal_seconds else GoalHighlightColor.BLACK


class HistoryService:
    def __init__(self, store: RecordStorePort, clock: Optional[Clock] = None, phase_count: int = 2):
        """
        Read side over the record store: today's list, day groups, daily
        aggregates and goal lookup. Read failures degrade to empty results.
        """
        self.store = store
        self.clock = clock or Clock()
        self.phase_count = phase_count
        self.logger = setup_logger(__name__)

    def today_sessions(self, now: Optional[datetime] = None) -> List[SessionRecord]:
        now = now or self.clock.wall()
        start, end = day_bounds(now.date())
        try:
            return self.store.fetch_range(start, end)
        except ce.RecordStoreError as e:
            self.logger.exception(f"Could not fetch today's sessions: {e}")
            return []

    def all_sessions(self) -> List[SessionRecord]:
        try:
            return self.store.fetch_all()
        except ce.RecordStoreError as e:
            self.logger.exception(f"Could not fetch sessions: {e}")
            return []

    def sessions_on(self, day: date) -> List[SessionRecord]:
        start, end = day_bounds(day)
        try:
            return self.store.fetch_range(start, end)
        except ce.RecordStoreError as e:
            self.logger.exception(f"Could not fetch sessions for {day}: {e}")
            return []

    def grouped_by_day(self) -> List[DayGroup]:
        return group_by_day(self.all_sessions())

    def delete_session(self, record_id: int) -> None:
        self.store.delete(record_id)
        self.logger.info(f"Session {record_id} deleted from history.")

    def auto_goal(self, phase_number: int, today: Optional[date] = None) -> float:
        """Best duration of ``phase_number`` recorded before ``today``; 0.0 when none."""
        today = today or self.clock.wall().date()
        values = [
            r.duration(phase_number)
            for r in self.all_sessions()
            if r.started_at.date() < today and r.duration(phase_number) is not None
        ]
        return max(values) if values else 0.0

    def goal_for(self, phase_number: int, settings: SettingsSnapshot, today: Optional[date] = None) -> float:
        if settings.auto_goal_enabled:
            return self.auto_goal(phase_number, today)
        return settings.goal_seconds

    def goals(self, settings: SettingsSnapshot, today: Optional[date] = None) -> List[float]:
        if not settings.goal_enabled:
            return [0.0] * self.phase_count
        return [self.goal_for(number, settings, today) for number in range(1, self.phase_count + 1)]

    def highlight(self, record: SessionRecord, settings: SettingsSnapshot,
                  goals: Optional[List[float]] = None) -> List[GoalHighlightColor]:
        """Per-phase display color for one history row."""
        goals = goals if goals is not None else self.goals(settings)
        return [
            color_for_goal(
                record.duration(number),
                goals[number - 1] if number <= len(goals) else 0.0,
                settings.goal_color,
            )
            for number in range(1, record.phase_count + 1)
        ]


class CollapsedDays:
    """
    Fold state of the history list.

    Every day is folded on first sync; days that appear later are folded
    when first seen, while days the user opened stay open.
    """

    def __init__(self):
        self.collapsed: Set[date] = set()
        self._known: Set[date] = set()

    def sync(self, days: Iterable[date]) -> None:
        days = set(days)
        new_days = days - self._known
        self.collapsed |= new_days
        self._known |= new_days

    def toggle(self, day: date) -> bool:
        """Flip ``day`` and return whether it is now collapsed."""
        self._known.add(day)
        if day in self.collapsed:
            self.collapsed.discard(day)
            return False
        self.collapsed.add(day)
        return True

    def is_collapsed(self, day: date) -> bool:
        return day in self.collapsed
