"""Engine wiring the timer, tracker, history and store together."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from datetime import datetime

from focus_engine.core.clock import Clock, SystemClock
from focus_engine.core.config import Config, get_config
from focus_engine.focus.history import SessionHistory
from focus_engine.focus.notifier import Notifier, default_notifier
from focus_engine.focus.pomodoro import PomodoroTimer
from focus_engine.models import Session, SessionType, TaskMeta
from focus_engine.storage.database import Database
from focus_engine.storage.memory import KeyValueStore
from focus_engine.trackers.app_monitor import AppKitProbe, ForegroundProbe
from focus_engine.trackers.usage_tracker import ApplicationUsageTracker

logger = logging.getLogger(__name__)


class FocusEngine:
    """Owns the lifecycle of every engine component.

    On start the store is opened, an interrupted tracking run is restored and
    the session history is loaded. On stop scheduled work is cancelled and the
    tracker snapshot is left in place, so a restarted process resumes tracking.
    """

    def __init__(
        self,
        config: Config | None = None,
        probe: ForegroundProbe | None = None,
        store: KeyValueStore | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        handle_signals: bool = False,
    ):
        self.config = config or get_config()
        self._probe = probe
        self._store = store
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._handle_signals = handle_signals

        self._running = False
        self._startup_time: datetime | None = None
        self._store_integrity: bool | None = None

        # Initialized in start()
        self.db: Database | None = None
        self.tracker: ApplicationUsageTracker | None = None
        self.history: SessionHistory | None = None
        self.timer: PomodoroTimer | None = None

        self._session_ended = asyncio.Event()

        self._pid_file = self.config.data_dir / "engine.pid"

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def uptime_seconds(self) -> float:
        if self._startup_time is None:
            return 0.0
        return (self._clock.now() - self._startup_time).total_seconds()

    async def start(self) -> None:
        """Open storage and build the timer; no-op if already running."""
        if self._running:
            logger.warning("Engine already running")
            return

        logger.info("Starting focus engine...")

        try:
            if self._store is None:
                self.config.ensure_directories()
                self._write_pid_file()
                self.db = Database(self.config.db_path)
                await self.db.connect()
                self._store = self.db
                self._store_integrity = await self.db.check_integrity()
                if not self._store_integrity:
                    logger.warning("Database failed its integrity check; stored history may be incomplete")

            tracking = self.config.tracking
            self.tracker = await ApplicationUsageTracker.restore(
                self._probe or AppKitProbe(),
                self._store,
                self._clock,
                max_error_count=tracking.max_error_count,
                error_reset_seconds=tracking.error_reset_seconds,
                max_resume_seconds=tracking.max_resume_seconds,
            )

            self.history = SessionHistory(self._store)
            await self.history.load(today=self._clock.now().date())

            self.timer = PomodoroTimer(
                self.config,
                tracker=self.tracker,
                history=self.history,
                clock=self._clock,
                notifier=self._notifier or default_notifier(),
            )
            self.timer.on_session_end = self._on_session_end

            self._running = True
            self._startup_time = self._clock.now()

            if self._handle_signals:
                self._setup_signal_handlers()

            logger.info("Focus engine started")

        except Exception as e:
            logger.error(f"Failed to start engine: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Cancel scheduled work and close storage."""
        if not self._running and self.db is None:
            return

        logger.info("Stopping focus engine...")

        self._running = False
        self._session_ended.set()

        if self.timer:
            await self.timer.shutdown()

        if self.db:
            await self.db.close()
            self.db = None
            self._store = None
            self._remove_pid_file()

        logger.info("Focus engine stopped")

    async def run_focus_period(
        self,
        rounds: int = 1,
        task: TaskMeta | None = None,
        first: SessionType = SessionType.WORK,
    ) -> list[Session]:
        """Run sessions back to back until ``rounds`` work sessions complete.

        Stops early when a session ends without completing or the engine is
        stopped. Returns the finished sessions in order.
        """
        if not self._running or self.timer is None:
            raise RuntimeError("Engine is not running")

        self.timer.start_focus_period(rounds)
        finished: list[Session] = []
        session_type = first

        while self._running:
            self._session_ended.clear()
            await self.timer.start(
                session_type, task if session_type == SessionType.WORK else None
            )
            await self._session_ended.wait()

            last = self.timer.last_finished_session
            if last is None or not self._running:
                break
            finished.append(last)
            if not last.completed:
                break
            if session_type == SessionType.WORK and self.timer.focus_period_complete:
                break
            session_type = self.timer.get_next_session_type()

        return finished

    async def end_session(self) -> Session | None:
        """Stop the active session, if any, recording it as stopped."""
        if self.timer is None:
            return None
        return await self.timer.stop()

    def get_health(self) -> dict:
        """Status of each component."""
        health: dict = {
            "status": "running" if self._running else "stopped",
            "uptime_seconds": self.uptime_seconds,
            "pid": os.getpid(),
            "store": "sqlite" if self.db else "memory",
            "store_integrity": self._store_integrity,
        }

        if self.timer:
            health["timer"] = self.timer.get_summary()

        if self.tracker:
            tracker_health = self.tracker.health()
            health["tracker"] = {
                "is_tracking": self.tracker.is_tracking,
                "is_sampling": self.tracker.is_sampling,
                "healthy": tracker_health.is_healthy,
                "error_count": tracker_health.error_count,
                "last_error": tracker_health.last_error,
            }

        return health

    async def _on_session_end(self, session: Session) -> None:
        self._session_ended.set()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, ending session...")
        asyncio.create_task(self._end_and_stop())

    async def _end_and_stop(self) -> None:
        await self.end_session()
        await self.stop()

    def _write_pid_file(self) -> None:
        self._pid_file.parent.mkdir(parents=True, exist_ok=True)
        self._pid_file.write_text(str(os.getpid()))
        logger.debug(f"PID file written: {self._pid_file}")

    def _remove_pid_file(self) -> None:
        if self._pid_file.exists():
            self._pid_file.unlink()
            logger.debug("PID file removed")

    @classmethod
    def get_engine_pid(cls, config: Config | None = None) -> int | None:
        """PID of a running engine process, from its PID file."""
        config = config or get_config()
        pid_file = config.data_dir / "engine.pid"

        if not pid_file.exists():
            return None

        try:
            pid = int(pid_file.read_text().strip())
            os.kill(pid, 0)
            return pid
        except (ValueError, OSError):
            pid_file.unlink(missing_ok=True)
            return None
