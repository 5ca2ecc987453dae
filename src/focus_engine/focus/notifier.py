"""Outbound session notifications."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Protocol

from focus_engine.analytics.usage import format_duration
from focus_engine.models import Session, SessionType

logger = logging.getLogger(__name__)

TITLES = {
    SessionType.WORK: "Focus time",
    SessionType.SHORT_BREAK: "Short break",
    SessionType.LONG_BREAK: "Long break",
}


class Notifier(Protocol):
    """Fire-and-forget receiver of session events."""

    async def session_started(self, session: Session) -> None: ...

    async def session_completed(self, session: Session) -> None: ...


def start_message(session: Session) -> tuple[str, str]:
    title = f"{TITLES[session.session_type]} started"
    body = f"{format_duration(session.planned_duration)} on the clock"
    if session.task and session.task.name:
        body = f"{session.task.name}: {body}"
    return title, body


def complete_message(session: Session) -> tuple[str, str]:
    title = f"{TITLES[session.session_type]} complete"
    if session.session_type == SessionType.WORK:
        body = "Great work! Time for a break."
    else:
        body = "Break's over. Ready to focus?"
    return title, body


class LoggingNotifier:
    """Writes session events to the log."""

    async def session_started(self, session: Session) -> None:
        title, body = start_message(session)
        logger.info(f"{title}: {body}")

    async def session_completed(self, session: Session) -> None:
        title, body = complete_message(session)
        logger.info(f"{title}: {body}")


class MacNotifier:
    """Posts macOS user notifications through ``osascript``."""

    def __init__(self, timeout: float = 2.0):
        self._timeout = timeout

    async def session_started(self, session: Session) -> None:
        await self._display(*start_message(session))

    async def session_completed(self, session: Session) -> None:
        await self._display(*complete_message(session))

    async def _display(self, title: str, body: str) -> None:
        script = f'display notification "{_escape(body)}" with title "{_escape(title)}"'
        process = await asyncio.create_subprocess_exec(
            "osascript", "-e", script,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            raise
        if process.returncode != 0:
            raise RuntimeError(f"osascript failed: {stderr.decode().strip()}")


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def default_notifier() -> Notifier:
    """Native notifications on macOS, log lines everywhere else."""
    if sys.platform == "darwin":
        return MacNotifier()
    return LoggingNotifier()
