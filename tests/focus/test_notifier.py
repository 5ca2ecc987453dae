"""Tests for session notifications."""

import asyncio
from datetime import datetime

import pytest

from focus_engine.focus import notifier
from focus_engine.focus.notifier import LoggingNotifier, MacNotifier, default_notifier
from focus_engine.models import Session, SessionType, TaskMeta


class FakeProcess:
    def __init__(self, returncode=0, stderr=b""):
        self.returncode = returncode
        self._stderr = stderr

    async def communicate(self):
        return None, self._stderr

    def kill(self):
        pass


class RecordedCalls(list):
    pass


@pytest.fixture
def calls(monkeypatch):
    recorded = RecordedCalls()

    def install(process):
        async def fake_exec(*args, **kwargs):
            recorded.append(args)
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    recorded.install = install
    return recorded


def work_session(task=None):
    return Session(
        session_type=SessionType.WORK,
        planned_duration=1500,
        start_time=datetime(2024, 1, 15, 9, 0),
        task=task,
    )


@pytest.mark.asyncio
async def test_mac_notifier_runs_osascript(calls):
    calls.install(FakeProcess())

    await MacNotifier().session_started(work_session(TaskMeta(name='Draft "intro"')))

    [(program, flag, script)] = calls
    assert (program, flag) == ("osascript", "-e")
    assert script.startswith('display notification "Draft \\"intro\\": 25m')
    assert script.endswith('with title "Focus time started"')


@pytest.mark.asyncio
async def test_mac_notifier_raises_on_failure(calls):
    calls.install(FakeProcess(returncode=1, stderr=b"not allowed\n"))

    with pytest.raises(RuntimeError, match="not allowed"):
        await MacNotifier().session_completed(work_session())


def test_escape_quotes_and_backslashes():
    assert notifier._escape('a "b" \\c') == 'a \\"b\\" \\\\c'


def test_default_notifier_follows_platform(monkeypatch):
    monkeypatch.setattr(notifier.sys, "platform", "darwin")
    assert isinstance(default_notifier(), MacNotifier)

    monkeypatch.setattr(notifier.sys, "platform", "linux")
    assert isinstance(default_notifier(), LoggingNotifier)
