"""Tests for the command line interface."""

import asyncio
from datetime import datetime, timedelta

import pytest
from typer.testing import CliRunner

from focus_engine.cli import main
from focus_engine.focus.history import SessionHistory
from focus_engine.models import Session, SessionEndReason, SessionType, TaskMeta
from focus_engine.storage.database import Database

runner = CliRunner()


@pytest.fixture
def config(make_config, monkeypatch):
    config = make_config(timer={"work_minutes": 50})
    monkeypatch.setattr(main, "get_config", lambda: config)
    return config


def _record_session(config):
    async def write():
        db = Database(config.db_path)
        await db.connect()
        try:
            history = SessionHistory(db)
            start = datetime.now() - timedelta(minutes=30)
            history.append(Session(
                session_type=SessionType.WORK,
                planned_duration=1500,
                start_time=start,
                end_time=start + timedelta(minutes=25),
                completed=True,
                end_reason=SessionEndReason.COMPLETED,
                task=TaskMeta(name="Write report"),
            ))
            await history.save()
        finally:
            await db.close()

    asyncio.run(write())


def test_version():
    result = runner.invoke(main.app, ["version"])
    assert result.exit_code == 0
    assert "Focus Engine v" in result.stdout


def test_config_shows_effective_values(config):
    result = runner.invoke(main.app, ["config"])
    assert result.exit_code == 0
    assert "50 min" in result.stdout


def test_history_empty(config):
    result = runner.invoke(main.app, ["history"])
    assert result.exit_code == 0
    assert "No sessions recorded yet" in result.stdout


def test_history_and_stats_list_recorded_sessions(config):
    _record_session(config)

    history = runner.invoke(main.app, ["history", "--limit", "5"])
    assert history.exit_code == 0
    assert "Write report" in history.stdout

    stats = runner.invoke(main.app, ["stats"])
    assert stats.exit_code == 0
    assert "Completed" in stats.stdout
    assert "25m" in stats.stdout
