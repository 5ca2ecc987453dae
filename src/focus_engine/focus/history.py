"""Completed-session log and aggregate statistics."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from focus_engine.models import Session, SessionType

if TYPE_CHECKING:
    from focus_engine.storage.memory import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "focus-engine-session-history"


@dataclass(frozen=True)
class TimerStats:
    """Aggregate counters derived from the full session history."""

    total_sessions: int = 0
    completed_sessions: int = 0
    total_work_time: int = 0  # seconds
    total_break_time: int = 0  # seconds
    streak_count: int = 0
    todays_sessions: int = 0
    week_sessions: int = 0
    month_sessions: int = 0

    @property
    def completion_rate(self) -> float:
        """Completed sessions as a percentage of all recorded sessions."""
        if self.total_sessions == 0:
            return 0.0
        return self.completed_sessions / self.total_sessions * 100

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def calculate_streak(sessions: list[Session], today: date) -> int:
    """Consecutive days, ending today, with at least one completed WORK session."""
    work_days = {
        s.start_time.date()
        for s in sessions
        if s.completed and s.session_type == SessionType.WORK
    }

    streak = 0
    day = today
    while day in work_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def calculate_stats(sessions: list[Session], today: date | None = None) -> TimerStats:
    """Recompute every counter from scratch in one pass over ``sessions``."""
    today = today or date.today()
    this_week = week_start(today)

    completed = [s for s in sessions if s.completed]

    total_work = 0
    total_break = 0
    todays = 0
    week = 0
    month = 0
    for session in completed:
        if session.session_type.is_break:
            total_break += session.planned_duration
        else:
            total_work += session.planned_duration

        day = session.start_time.date()
        if day == today:
            todays += 1
        if this_week <= day <= today:
            week += 1
        if (day.year, day.month) == (today.year, today.month):
            month += 1

    return TimerStats(
        total_sessions=len(sessions),
        completed_sessions=len(completed),
        total_work_time=total_work,
        total_break_time=total_break,
        streak_count=calculate_streak(completed, today),
        todays_sessions=todays,
        week_sessions=week,
        month_sessions=month,
    )


class SessionHistory:
    """Append-only, ordered log of finished sessions.

    Every mutation recomputes ``stats`` from the whole list rather than
    nudging counters incrementally.
    """

    def __init__(self, store: KeyValueStore | None = None, key: str = HISTORY_KEY):
        self._store = store
        self._key = key
        self._sessions: list[Session] = []
        self._stats = TimerStats()

    @property
    def sessions(self) -> list[Session]:
        """Copies of recorded sessions, oldest first."""
        return [s.copy() for s in self._sessions]

    @property
    def stats(self) -> TimerStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._sessions)

    def append(self, session: Session, today: date | None = None) -> TimerStats:
        """Record a finished session and recompute the aggregates."""
        if session.end_time is None:
            raise ValueError("Only finished sessions can be recorded")

        self._sessions.append(session.copy())
        return self.recalculate(today)

    def delete(self, session_id: str, today: date | None = None) -> bool:
        """Remove a session by id; returns whether one was removed."""
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if s.id != session_id]
        self.recalculate(today)
        return len(self._sessions) != before

    def clear(self) -> None:
        self._sessions = []
        self._stats = TimerStats()

    def recalculate(self, today: date | None = None) -> TimerStats:
        self._stats = calculate_stats(self._sessions, today)
        return self._stats

    def recent(self, limit: int = 10) -> list[Session]:
        """Most recent sessions first."""
        return [s.copy() for s in reversed(self._sessions[-limit:])] if limit > 0 else []

    def average_work_session_minutes(self) -> float:
        work = [
            s for s in self._sessions
            if s.completed and s.session_type == SessionType.WORK
        ]
        if not work:
            return 0.0
        return sum(s.planned_duration for s in work) / len(work) / 60

    async def load(self, today: date | None = None) -> None:
        """Replace the in-memory log with the stored one."""
        if self._store is None:
            return

        try:
            raw = await self._store.get(self._key)
        except Exception as e:
            logger.error(f"Failed to read session history: {e}")
            return

        if not raw:
            return

        try:
            self._sessions = [Session.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Stored session history is unreadable, starting empty: {e}")
            self._sessions = []

        self.recalculate(today)
        logger.info(f"Loaded {len(self._sessions)} sessions from history")

    async def save(self) -> bool:
        """Persist the log; failures are logged, not raised."""
        if self._store is None:
            return False

        try:
            payload = json.dumps([s.to_dict() for s in self._sessions])
            await self._store.set(self._key, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to save session history: {e}")
            return False

