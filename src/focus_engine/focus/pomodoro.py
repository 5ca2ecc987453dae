"""Pomodoro session timer state machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable

from focus_engine.core.clock import Clock, SystemClock
from focus_engine.core.config import Config, get_config
from focus_engine.core.errors import NoActiveSessionError, SessionAlreadyActiveError
from focus_engine.focus.history import SessionHistory
from focus_engine.focus.notifier import Notifier
from focus_engine.models import (
    DurationAdjustment,
    Session,
    SessionEndReason,
    SessionType,
    TaskMeta,
    UsageRecord,
    merge_usage,
)
from focus_engine.trackers.usage_tracker import ApplicationUsageTracker

logger = logging.getLogger(__name__)

AUTO_START_DELAY_SECONDS = 2

DurationAdvisor = Callable[[SessionType, int], "int | None"]


class TimerPhase(Enum):
    """Lifecycle phase of the timer."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class TimerRuntimeState:
    """Current state of the timer."""
    phase: TimerPhase = TimerPhase.IDLE
    current_session: Session | None = None
    time_remaining_seconds: int = 0
    round_index: int = 0
    target_rounds: int = 1

    @property
    def time_remaining_display(self) -> str:
        """Format time remaining as MM:SS."""
        minutes, seconds = divmod(self.time_remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def progress_percent(self) -> float:
        """Progress through the current session (0-100)."""
        if self.current_session is None or self.current_session.planned_duration <= 0:
            return 0.0
        total = self.current_session.planned_duration
        elapsed = total - self.time_remaining_seconds
        return min(100.0, max(0.0, (elapsed / total) * 100))


class PomodoroTimer:
    """Owns the single active session and its transitions.

    States: IDLE -> RUNNING <-> PAUSED, RUNNING -> COMPLETED -> IDLE, and
    RUNNING/PAUSED -> IDLE on stop or skip. Application tracking runs in
    lock-step with WORK sessions: it is active exactly while a WORK session
    is RUNNING.

    Usage:
        timer = PomodoroTimer(config, tracker=tracker, history=history)
        timer.on_tick = lambda state: print(state.time_remaining_display)

        await timer.start(SessionType.WORK, TaskMeta(name="Write report"))
        await timer.pause()
        await timer.resume()
        await timer.skip()
    """

    def __init__(
        self,
        config: Config | None = None,
        tracker: ApplicationUsageTracker | None = None,
        history: SessionHistory | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        duration_advisor: DurationAdvisor | None = None,
        drive_ticks: bool = True,
    ):
        self.config = config or get_config()
        self._tracker = tracker
        self._history = history if history is not None else SessionHistory()
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._duration_advisor = duration_advisor
        self._drive_ticks = drive_ticks

        self._state = TimerRuntimeState()
        self._last_completed_type: SessionType | None = None
        self._last_finished: Session | None = None
        # Set while _finish is closing the current session
        self._finishing = False

        self._tick_task: asyncio.Task | None = None
        self._auto_start_task: asyncio.Task | None = None
        self._notify_tasks: set[asyncio.Task] = set()

        # Callbacks
        self.on_tick: Callable[[TimerRuntimeState], None] | None = None
        self.on_session_end: Callable[[Session], Awaitable[None] | None] | None = None

    @property
    def state(self) -> TimerRuntimeState:
        """Get current timer state (read-only copy)."""
        return replace(
            self._state,
            current_session=self._state.current_session.copy()
            if self._state.current_session
            else None,
        )

    @property
    def phase(self) -> TimerPhase:
        return self._state.phase

    @property
    def history(self) -> SessionHistory:
        return self._history

    @property
    def last_finished_session(self) -> Session | None:
        return self._last_finished.copy() if self._last_finished else None

    @property
    def focus_period_complete(self) -> bool:
        """Whether the target number of rounds has been reached."""
        return self._state.round_index >= self._state.target_rounds

    @property
    def has_active_session(self) -> bool:
        """A session is running or paused and is not already being closed."""
        return (
            self._state.phase in (TimerPhase.RUNNING, TimerPhase.PAUSED)
            and not self._finishing
        )

    @property
    def tracking_enabled(self) -> bool:
        return self._tracker is not None and self.config.tracking.enabled

    # Commands

    async def start(
        self,
        session_type: SessionType = SessionType.WORK,
        task: TaskMeta | None = None,
        planned_duration: int | None = None,
    ) -> Session:
        """Start a new session.

        Raises:
            SessionAlreadyActiveError: a session is running or paused.
        """
        if self._state.phase != TimerPhase.IDLE:
            raise SessionAlreadyActiveError(
                f"Cannot start {session_type.value}: a session is already {self._state.phase.value}"
            )

        self._cancel_auto_start()

        duration, adjustment = self._planned_duration(session_type, planned_duration)
        session = Session(
            session_type=session_type,
            planned_duration=duration,
            start_time=self._clock.now(),
            task=task,
            adaptive_adjustment=adjustment,
        )

        self._state.current_session = session
        self._state.phase = TimerPhase.RUNNING
        self._state.time_remaining_seconds = duration

        logger.info(f"Session started: {session_type.value} ({duration}s)")

        if session_type == SessionType.WORK:
            await self._start_tracking()
        else:
            await self._stop_orphaned_tracking()

        self._arm_ticker()
        self._notify("session_started", session)
        return session.copy()

    async def pause(self) -> None:
        """Pause the running session.

        Raises:
            NoActiveSessionError: nothing is running.
        """
        if self._state.phase != TimerPhase.RUNNING or self._finishing:
            raise NoActiveSessionError("Cannot pause: no running session")

        self._state.phase = TimerPhase.PAUSED
        await self._cancel_ticker()

        session = self._state.current_session
        if session is not None and session.session_type == SessionType.WORK:
            usage = await self._stop_tracking()
            if usage is not None:
                session.application_usage = merge_usage(session.application_usage, usage)

        logger.info(f"Session paused with {self._state.time_remaining_seconds}s remaining")

    async def resume(self) -> None:
        """Resume a paused session.

        Raises:
            NoActiveSessionError: nothing is paused.
        """
        if self._state.phase != TimerPhase.PAUSED or self._finishing:
            raise NoActiveSessionError("Cannot resume: no paused session")

        self._state.phase = TimerPhase.RUNNING

        session = self._state.current_session
        if session is not None and session.session_type == SessionType.WORK:
            await self._start_tracking()

        self._arm_ticker()
        logger.info("Session resumed")

    async def tick(self) -> None:
        """Consume exactly one second of the running session."""
        if self._state.phase != TimerPhase.RUNNING or self._finishing:
            return

        self._state.time_remaining_seconds = max(0, self._state.time_remaining_seconds - 1)

        if self.on_tick:
            try:
                self.on_tick(self.state)
            except Exception as e:
                logger.error(f"Error in on_tick callback: {e}")

        if self._state.time_remaining_seconds == 0:
            await self.complete()

    async def complete(self) -> Session:
        """Close the running session as completed.

        Raises:
            NoActiveSessionError: nothing is running.
        """
        if self._state.phase != TimerPhase.RUNNING or self._finishing:
            raise NoActiveSessionError("Cannot complete: no running session")
        return await self._finish(SessionEndReason.COMPLETED)

    async def stop(self) -> Session | None:
        """End the active session without completing it.

        Returns the recorded session, or None if nothing was active or the
        session is already being closed.
        """
        self._cancel_auto_start()
        if not self.has_active_session:
            logger.debug("Stop requested with no active session")
            return None
        return await self._finish(SessionEndReason.STOPPED)

    async def skip(self) -> Session | None:
        """Like ``stop()`` but recorded as skipped."""
        self._cancel_auto_start()
        if not self.has_active_session:
            logger.debug("Skip requested with no active session")
            return None
        return await self._finish(SessionEndReason.SKIPPED)

    def get_next_session_type(self) -> SessionType:
        """Decide what follows the last completed session."""
        if self._last_completed_type != SessionType.WORK:
            return SessionType.WORK

        interval = self.config.timer.long_break_interval
        if self._state.round_index > 0 and self._state.round_index % interval == 0:
            return SessionType.LONG_BREAK
        return SessionType.SHORT_BREAK

    def start_focus_period(self, target_rounds: int) -> None:
        """Begin counting rounds toward a new target."""
        if target_rounds < 1:
            raise ValueError("target_rounds must be at least 1")
        self._state.round_index = 0
        self._state.target_rounds = target_rounds
        self._last_completed_type = None
        logger.info(f"Focus period started: {target_rounds} rounds")

    def reset_focus_period(self) -> None:
        self._state.round_index = 0
        self._state.target_rounds = 1
        self._last_completed_type = None

    async def shutdown(self) -> None:
        """Cancel all scheduled work without recording anything.

        The tracker keeps its persisted snapshot so a restarted process can
        resume the run.
        """
        self._cancel_auto_start()
        await self._cancel_ticker()
        if self._tracker is not None:
            await self._tracker.shutdown()
        for task in list(self._notify_tasks):
            task.cancel()
        logger.info("Timer shut down")

    def get_summary(self) -> dict:
        """Get a summary of the timer state."""
        session = self._state.current_session
        stats = self._history.stats
        return {
            "phase": self._state.phase.value,
            "session_type": session.session_type.value if session else None,
            "time_remaining": self._state.time_remaining_display,
            "round": self._state.round_index,
            "target_rounds": self._state.target_rounds,
            "next_session_type": self.get_next_session_type().value,
            "completed_sessions": stats.completed_sessions,
            "total_work_minutes": round(stats.total_work_time / 60, 1),
            "streak_days": stats.streak_count,
            "session_started_at": session.start_time.isoformat() if session else None,
        }

    # Internals

    def _planned_duration(
        self, session_type: SessionType, override: int | None
    ) -> tuple[int, DurationAdjustment | None]:
        default = self.config.timer.duration_seconds(session_type)

        adjusted: int | None = None
        reason = ""
        if override is not None:
            adjusted, reason = override, "explicit override"
        elif session_type in self.config.timer.adaptive_overrides:
            adjusted, reason = self.config.timer.adaptive_overrides[session_type], "configured override"
        elif self._duration_advisor is not None:
            try:
                adjusted, reason = self._duration_advisor(session_type, default), "adaptive advisor"
            except Exception as e:
                logger.error(f"Duration advisor failed, using default: {e}")

        if adjusted is None or adjusted == default:
            return default, None

        adjusted = max(1, int(adjusted))
        return adjusted, DurationAdjustment(default, adjusted, reason)

    async def _finish(self, reason: SessionEndReason) -> Session:
        session = self._state.current_session
        if session is None or self._finishing:
            raise NoActiveSessionError(f"Cannot {reason.value} session: no active session")

        self._finishing = True
        try:
            if reason == SessionEndReason.COMPLETED:
                self._state.phase = TimerPhase.COMPLETED
            await self._cancel_ticker()

            if session.session_type == SessionType.WORK:
                usage = await self._stop_tracking()
                if usage is not None:
                    session.application_usage = merge_usage(session.application_usage, usage)
            else:
                await self._stop_orphaned_tracking()

            session.end_time = self._clock.now()
            session.completed = reason == SessionEndReason.COMPLETED
            session.end_reason = reason

            recorded = session.actual_duration_seconds >= self.config.history.min_session_seconds
            if recorded:
                self._history.append(session, today=session.end_time.date())
                await self._history.save()
            else:
                logger.info(
                    f"Session lasted {session.actual_duration_seconds}s, below the "
                    f"{self.config.history.min_session_seconds}s minimum; not recorded"
                )

            if session.completed and recorded:
                self._last_completed_type = session.session_type
                if session.session_type == SessionType.WORK:
                    self._state.round_index += 1

            self._state.current_session = None
            self._state.time_remaining_seconds = 0
            self._state.phase = TimerPhase.IDLE
            self._last_finished = session
        finally:
            self._finishing = False

        logger.info(f"Session {reason.value}: {session.session_type.value}")

        if session.completed:
            self._notify("session_completed", session)

        if self.on_session_end:
            try:
                result = self.on_session_end(session.copy())
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in on_session_end callback: {e}")

        if session.completed and recorded:
            self._maybe_auto_start()

        return session.copy()

    def _maybe_auto_start(self) -> None:
        next_type = self.get_next_session_type()
        if next_type.is_break:
            should_auto_start = self.config.timer.auto_start_breaks
        else:
            should_auto_start = self.config.timer.auto_start_work
        if not should_auto_start:
            return

        logger.info(f"Auto-starting {next_type.value} in {AUTO_START_DELAY_SECONDS}s")
        self._auto_start_task = asyncio.create_task(self._auto_start(next_type))

    async def _auto_start(self, session_type: SessionType) -> None:
        await self._clock.sleep(AUTO_START_DELAY_SECONDS)
        self._auto_start_task = None
        try:
            await self.start(session_type)
        except SessionAlreadyActiveError:
            logger.info(f"Skipped auto-start of {session_type.value}: a session is already active")

    def _cancel_auto_start(self) -> None:
        task = self._auto_start_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        self._auto_start_task = None

    async def _start_tracking(self) -> None:
        if not self.tracking_enabled:
            return
        await self._tracker.start(self.config.tracking.interval_seconds)

    async def _stop_tracking(self) -> list[UsageRecord] | None:
        if not self.tracking_enabled:
            return None
        return await self._tracker.stop()

    async def _stop_orphaned_tracking(self) -> None:
        """End a tracking run no WORK session owns, e.g. one restored at startup."""
        if self._tracker is None or not self._tracker.is_tracking:
            return
        usage = await self._tracker.stop()
        logger.info(f"Stopped tracking run with no work session ({len(usage)} apps discarded)")

    def _arm_ticker(self) -> None:
        if not self._drive_ticks:
            return
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def _cancel_ticker(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _tick_loop(self) -> None:
        """One tick per second while this loop is the armed one."""
        me = asyncio.current_task()
        try:
            while self._tick_task is me and self._state.phase == TimerPhase.RUNNING:
                await self._clock.sleep(1)
                if self._tick_task is not me or self._state.phase != TimerPhase.RUNNING:
                    break
                await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in timer tick loop: {e}")

    def _notify(self, event: str, session: Session) -> None:
        if self._notifier is None or not self.config.timer.enable_notifications:
            return
        task = asyncio.create_task(self._deliver(event, session.copy()))
        self._notify_tasks.add(task)
        task.add_done_callback(self._notify_tasks.discard)

    async def _deliver(self, event: str, session: Session) -> None:
        try:
            await getattr(self._notifier, event)(session)
        except Exception as e:
            logger.warning(f"Notification {event} failed: {e}")
