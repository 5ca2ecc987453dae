"""Tests for engine wiring and lifecycle."""

import asyncio
from datetime import timedelta

import pytest

from focus_engine.core.engine import FocusEngine
from focus_engine.models import SessionEndReason, SessionType, TaskMeta
from focus_engine.trackers.app_monitor import ScriptedProbe
from focus_engine.trackers.usage_tracker import TRACKING_STATE_KEY, PersistedTrackerSnapshot
from tests.helpers import VSCODE, RecordingNotifier


@pytest.fixture
def short_config(make_config):
    return make_config(
        timer={"work_minutes": 1, "short_break_minutes": 1},
        tracking={"interval_seconds": 5},
    )


@pytest.mark.asyncio
async def test_run_single_round(short_config, clock, store):
    notifier = RecordingNotifier()
    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock, notifier)
    await engine.start()

    task = asyncio.create_task(engine.run_focus_period(1, TaskMeta(name="Write report")))
    await clock.settle()
    await clock.advance(60)
    finished = await task

    [session] = finished
    assert session.completed
    assert session.task.name == "Write report"
    assert session.application_usage[0].time_spent_seconds == 60
    assert notifier.events[-1] == ("completed", SessionType.WORK)
    assert engine.history.stats.completed_sessions == 1

    await engine.stop()
    assert not engine.is_running


@pytest.mark.asyncio
async def test_run_focus_period_chains_breaks(short_config, clock, store):
    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock)
    await engine.start()

    task = asyncio.create_task(engine.run_focus_period(2))
    await clock.settle()
    await clock.advance(180)
    finished = await task

    assert [s.session_type for s in finished] == [
        SessionType.WORK,
        SessionType.SHORT_BREAK,
        SessionType.WORK,
    ]
    assert finished[1].task is None
    assert engine.timer.focus_period_complete

    await engine.stop()


@pytest.mark.asyncio
async def test_end_session_stops_focus_period(short_config, clock, store):
    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock)
    await engine.start()

    task = asyncio.create_task(engine.run_focus_period(4))
    await clock.settle()
    await clock.advance(10)
    stopped = await engine.end_session()
    finished = await task

    assert stopped.end_reason == SessionEndReason.STOPPED
    assert [s.id for s in finished] == [stopped.id]

    await engine.stop()


@pytest.mark.asyncio
async def test_start_restores_interrupted_tracking(short_config, clock, store):
    started = clock.now() - timedelta(minutes=10)
    snapshot = PersistedTrackerSnapshot(
        is_tracking=True,
        session_start_timestamp=int(started.timestamp()),
        last_sample_timestamp=int(started.timestamp()),
        interval_seconds=5,
    )
    await store.set(TRACKING_STATE_KEY, snapshot.model_dump_json())

    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock)
    await engine.start()

    assert engine.tracker.is_tracking
    assert engine.get_health()["tracker"]["is_sampling"]

    await engine.stop()
    assert TRACKING_STATE_KEY in store


@pytest.mark.asyncio
async def test_database_backed_engine(short_config, clock):
    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), clock=clock)
    await engine.start()

    assert engine.db is not None
    assert (short_config.data_dir / "engine.pid").exists()
    assert engine.get_health()["store"] == "sqlite"
    assert engine.get_health()["store_integrity"] is True

    await engine.timer.start(SessionType.SHORT_BREAK)
    await engine.end_session()
    await engine.stop()

    assert not (short_config.data_dir / "engine.pid").exists()

    reopened = FocusEngine(short_config, ScriptedProbe([VSCODE]), clock=clock)
    await reopened.start()
    assert len(reopened.history) == 1
    await reopened.stop()


@pytest.mark.asyncio
async def test_run_requires_started_engine(short_config, clock, store):
    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock)

    with pytest.raises(RuntimeError):
        await engine.run_focus_period(1)


@pytest.mark.asyncio
async def test_break_after_restart_ends_restored_tracking(short_config, clock, store):
    started = clock.now() - timedelta(minutes=10)
    snapshot = PersistedTrackerSnapshot(
        is_tracking=True,
        session_start_timestamp=int(started.timestamp()),
        last_sample_timestamp=int(started.timestamp()),
        interval_seconds=5,
    )
    await store.set(TRACKING_STATE_KEY, snapshot.model_dump_json())

    engine = FocusEngine(short_config, ScriptedProbe([VSCODE]), store, clock)
    await engine.start()
    await engine.timer.start(SessionType.SHORT_BREAK)
    await clock.advance(30)

    assert not engine.get_health()["tracker"]["is_tracking"]
    assert TRACKING_STATE_KEY not in store

    await engine.end_session()
    await engine.stop()
