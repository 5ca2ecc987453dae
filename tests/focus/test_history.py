"""Tests for session history and statistics."""

from datetime import date, datetime, timedelta

import pytest

from focus_engine.focus.history import (
    HISTORY_KEY,
    SessionHistory,
    calculate_stats,
    calculate_streak,
    week_start,
)
from focus_engine.models import Session, SessionEndReason, SessionType, UsageRecord
from tests.helpers import BrokenStore

TODAY = date(2024, 1, 17)  # Wednesday


def finished(day, session_type=SessionType.WORK, completed=True, minutes=25, hour=9):
    start = datetime(day.year, day.month, day.day, hour, 0)
    return Session(
        session_type=session_type,
        planned_duration=minutes * 60,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        completed=completed,
        end_reason=SessionEndReason.COMPLETED if completed else SessionEndReason.STOPPED,
    )


def test_week_starts_on_sunday():
    assert week_start(date(2024, 1, 17)) == date(2024, 1, 14)
    assert week_start(date(2024, 1, 14)) == date(2024, 1, 14)
    assert week_start(date(2024, 1, 13)) == date(2024, 1, 7)


def test_streak_counts_back_from_today():
    sessions = [
        finished(TODAY),
        finished(TODAY - timedelta(days=1)),
        finished(TODAY - timedelta(days=2)),
        finished(TODAY - timedelta(days=4)),
    ]
    assert calculate_streak(sessions, TODAY) == 3


def test_streak_ignores_breaks_and_incomplete_work():
    sessions = [
        finished(TODAY, session_type=SessionType.SHORT_BREAK),
        finished(TODAY, completed=False),
        finished(TODAY - timedelta(days=1)),
    ]
    assert calculate_streak(sessions, TODAY) == 0


def test_stats_totals_and_windows():
    sessions = [
        finished(TODAY),
        finished(TODAY, session_type=SessionType.SHORT_BREAK, minutes=5, hour=10),
        finished(TODAY, completed=False, hour=11),
        finished(date(2024, 1, 14)),  # Sunday, same week
        finished(date(2024, 1, 13)),  # Saturday, previous week
        finished(date(2023, 12, 31), session_type=SessionType.LONG_BREAK, minutes=15),
    ]

    stats = calculate_stats(sessions, TODAY)

    assert stats.total_sessions == 6
    assert stats.completed_sessions == 5
    assert stats.total_work_time == 3 * 25 * 60
    assert stats.total_break_time == (5 + 15) * 60
    assert stats.todays_sessions == 2
    assert stats.week_sessions == 3
    assert stats.month_sessions == 4
    assert stats.streak_count == 1
    assert stats.completion_rate == pytest.approx(5 / 6 * 100)


def test_empty_history_stats():
    stats = calculate_stats([], TODAY)
    assert stats.total_sessions == 0
    assert stats.completion_rate == 0.0


def test_append_recomputes_from_full_list():
    history = SessionHistory()

    history.append(finished(TODAY - timedelta(days=1)), today=TODAY)
    assert history.stats.streak_count == 0

    stats = history.append(finished(TODAY), today=TODAY)
    assert stats.streak_count == 2
    assert stats.completed_sessions == 2
    assert history.stats == stats


def test_append_rejects_open_session():
    history = SessionHistory()
    open_session = Session(SessionType.WORK, 1500, datetime(2024, 1, 17, 9, 0))

    with pytest.raises(ValueError):
        history.append(open_session)


def test_appended_sessions_are_isolated_from_caller():
    history = SessionHistory()
    session = finished(TODAY)
    session.application_usage = [UsageRecord("com.microsoft.VSCode", "Code", 60)]

    history.append(session, today=TODAY)
    session.application_usage[0].time_spent_seconds = 0
    history.sessions[0].application_usage[0].time_spent_seconds = 5

    assert history.sessions[0].application_usage[0].time_spent_seconds == 60


def test_delete_and_clear():
    history = SessionHistory()
    first = finished(TODAY)
    history.append(first, today=TODAY)
    history.append(finished(TODAY, hour=10), today=TODAY)

    assert history.delete(first.id, today=TODAY) is True
    assert history.delete("missing", today=TODAY) is False
    assert history.stats.total_sessions == 1

    history.clear()
    assert len(history) == 0
    assert history.stats.total_sessions == 0


def test_recent_and_average():
    history = SessionHistory()
    history.append(finished(TODAY, minutes=20, hour=8), today=TODAY)
    history.append(finished(TODAY, minutes=30, hour=9), today=TODAY)
    history.append(finished(TODAY, session_type=SessionType.SHORT_BREAK, minutes=5, hour=10), today=TODAY)

    recent = history.recent(2)
    assert [s.start_time.hour for s in recent] == [10, 9]
    assert history.recent(0) == []
    assert history.average_work_session_minutes() == 25.0


@pytest.mark.asyncio
async def test_save_and_load_through_store(store):
    history = SessionHistory(store)
    session = finished(TODAY)
    session.application_usage = [UsageRecord("com.microsoft.VSCode", "Code", 1500)]
    history.append(session, today=TODAY)

    assert await history.save() is True

    reloaded = SessionHistory(store)
    await reloaded.load(today=TODAY)

    [loaded] = reloaded.sessions
    assert loaded.id == session.id
    assert loaded.application_usage[0].time_spent_seconds == 1500
    assert reloaded.stats == history.stats


@pytest.mark.asyncio
async def test_unreadable_history_starts_empty(store):
    await store.set(HISTORY_KEY, "[{\"id\": 1}]")

    history = SessionHistory(store)
    await history.load(today=TODAY)

    assert len(history) == 0


@pytest.mark.asyncio
async def test_save_failure_is_reported_not_raised():
    history = SessionHistory(BrokenStore())
    history.append(finished(TODAY), today=TODAY)

    assert await history.save() is False
    await history.load(today=TODAY)
    assert len(history) == 1


def test_break_types():
    assert SessionType.SHORT_BREAK.is_break
    assert SessionType.LONG_BREAK.is_break
    assert not SessionType.WORK.is_break
