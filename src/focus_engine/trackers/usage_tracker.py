"""Per-session application usage tracking with restart recovery."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from focus_engine.analytics import usage as analytics
from focus_engine.core.clock import Clock, SystemClock
from focus_engine.models import UsageRecord
from focus_engine.trackers.app_monitor import AppInfo

if TYPE_CHECKING:
    from focus_engine.storage.memory import KeyValueStore
    from focus_engine.trackers.app_monitor import ForegroundProbe

logger = logging.getLogger(__name__)

TRACKING_STATE_KEY = "focus-engine-tracking-state"
MAX_ERROR_COUNT = 10
ERROR_RESET_SECONDS = 60
MAX_RESUME_SECONDS = 2 * 60 * 60
DEFAULT_INTERVAL = 5


class PersistedTrackerSnapshot(BaseModel):
    """Minimal durable record that a tracking run is in progress.

    Timestamps are integer epoch seconds.
    """

    is_tracking: bool
    session_start_timestamp: int = Field(gt=0)
    last_sample_timestamp: int = Field(ge=0)
    interval_seconds: int = Field(gt=0)

    model_config = ConfigDict(extra="ignore", strict=True)


@dataclass
class TrackerRuntimeState:
    """Mutable state owned by the tracker."""

    is_tracking: bool = False
    applications: dict[str, UsageRecord] = field(default_factory=dict)
    current_app: AppInfo | None = None
    last_sample_timestamp: datetime | None = None
    total_tracked_seconds: int = 0
    error_count: int = 0
    last_error: str | None = None
    session_start_timestamp: datetime | None = None


class ApplicationUsageTracker:
    """Samples the foreground application and accumulates time per app.

    Sampling is a cooperative loop: the next sample is armed only after the
    current one (probe call included) has resolved, so samples never overlap.
    Elapsed time is always credited to the app that was current *before* the
    new observation.

    After ``max_error_count`` consecutive probe failures the loop stops
    re-arming while ``is_tracking`` stays true. A one-shot timer later clears
    the error counter but does not restart sampling; only a new ``start()``
    does.

    Usage:
        tracker = await ApplicationUsageTracker.restore(probe, store)
        await tracker.start(interval_seconds=5)
        ...
        usage = await tracker.stop()
    """

    def __init__(
        self,
        probe: ForegroundProbe,
        store: KeyValueStore | None = None,
        clock: Clock | None = None,
        max_error_count: int = MAX_ERROR_COUNT,
        error_reset_seconds: float = ERROR_RESET_SECONDS,
        max_resume_seconds: float = MAX_RESUME_SECONDS,
        state_key: str = TRACKING_STATE_KEY,
    ):
        self._probe = probe
        self._store = store
        self._clock = clock or SystemClock()
        self._max_error_count = max_error_count
        self._error_reset_seconds = error_reset_seconds
        self._max_resume_seconds = max_resume_seconds
        self._state_key = state_key

        self._state = TrackerRuntimeState()
        self._interval_seconds: int = DEFAULT_INTERVAL
        self._sample_task: asyncio.Task | None = None
        self._error_reset_task: asyncio.Task | None = None

    @classmethod
    async def restore(
        cls,
        probe: ForegroundProbe,
        store: KeyValueStore | None = None,
        clock: Clock | None = None,
        **kwargs,
    ) -> ApplicationUsageTracker:
        """Build a tracker, resuming a run interrupted by a restart.

        A snapshot younger than the resume window resumes periodic sampling
        with an empty usage map; per-app time from before the restart is not
        recoverable. Stale or malformed snapshots are discarded.
        """
        tracker = cls(probe, store, clock, **kwargs)
        snapshot = await tracker._load_snapshot()

        if snapshot is None:
            return tracker

        age = tracker._clock.now().timestamp() - snapshot.session_start_timestamp
        if not snapshot.is_tracking or age > tracker._max_resume_seconds or age < 0:
            logger.info(f"Stored tracking run not resumable (age {age:.0f}s), discarding")
            await tracker._clear_snapshot()
            return tracker

        tracker._resume_from(snapshot)
        logger.info(
            f"Resumed tracking run started {age:.0f}s ago "
            f"(every {snapshot.interval_seconds}s)"
        )
        return tracker

    # Commands

    async def start(self, interval_seconds: int = DEFAULT_INTERVAL) -> None:
        """Begin a tracking run; no-op if one is active."""
        if self._state.is_tracking:
            logger.debug("Tracker already running")
            return

        now = self._clock.now()
        self._interval_seconds = interval_seconds
        self._state = TrackerRuntimeState(
            is_tracking=True,
            last_sample_timestamp=now,
            session_start_timestamp=now,
        )

        await self._save_snapshot()
        await self.sample()

        if self._state.is_tracking and self._state.error_count < self._max_error_count:
            self._arm_sampling()

        logger.info(f"Application tracking started (every {interval_seconds}s)")

    async def stop(self) -> list[UsageRecord]:
        """End the run and return usage sorted by time spent (descending).

        Idempotent: returns an empty list when not tracking.
        """
        if not self._state.is_tracking:
            return []

        await self._cancel_tasks()

        # Flush time for the app in front since the last sample; if the probe
        # fails the tail still goes to the last known app
        await self.sample()
        self._credit_current(self._clock.now())

        self._state.is_tracking = False
        await self._cancel_tasks()
        await self._clear_snapshot()

        usage = self._usage()
        logger.info(
            f"Application tracking stopped: {len(usage)} apps, "
            f"{self._state.total_tracked_seconds}s tracked"
        )
        return usage

    async def sample(self) -> None:
        """Query the probe once and update usage."""
        try:
            app = await self._probe.get_foreground_app()
        except Exception as e:
            self._handle_error(e)
            return

        now = self._clock.now()
        if self._state.current_app is not None:
            self._credit_current(now)

        self._state.current_app = app
        self._state.last_sample_timestamp = now

        record = self._state.applications.get(app.app_id)
        if record is None:
            self._state.applications[app.app_id] = UsageRecord(
                app_id=app.app_id,
                display_name=app.app_name,
                first_seen=now,
                last_seen=now,
            )
            logger.debug(f"Tracking new app: {app.app_name} ({app.app_id})")
        else:
            record.last_seen = now

        if self._state.error_count > 0:
            logger.debug("Resetting error count after successful sample")
        self._state.error_count = 0
        self._state.last_error = None

    # Read accessors

    @property
    def is_tracking(self) -> bool:
        return self._state.is_tracking

    @property
    def is_sampling(self) -> bool:
        """Whether the periodic sample loop is armed."""
        return self._sample_task is not None and not self._sample_task.done()

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def error_count(self) -> int:
        return self._state.error_count

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    def current_usage(self) -> list[UsageRecord]:
        """Usage so far, including the unflushed time of the current app."""
        if not self._state.is_tracking:
            return []
        self._credit_current(self._clock.now())
        return self._usage()

    def snapshot(self) -> analytics.TrackerSnapshot:
        """Immutable copy of the tracker state for analytics."""
        now = self._clock.now()
        if self._state.is_tracking:
            self._credit_current(now)
        return analytics.TrackerSnapshot(
            taken_at=now,
            is_tracking=self._state.is_tracking,
            applications=tuple(replace(r) for r in self._state.applications.values()),
            current_app_id=self._state.current_app.app_id if self._state.current_app else None,
            session_start=self._state.session_start_timestamp,
            total_tracked_seconds=self._state.total_tracked_seconds,
            error_count=self._state.error_count,
            last_error=self._state.last_error,
        )

    def stats(self) -> analytics.TrackingStatistics:
        return analytics.statistics(self.snapshot())

    def health(self) -> analytics.TrackingHealth:
        return analytics.tracking_health(
            self.snapshot(), self._interval_seconds, self._max_error_count
        )

    def insights(self) -> analytics.ProductivityInsights:
        return analytics.productivity_insights(self.snapshot())

    async def shutdown(self) -> None:
        """Cancel scheduled work without ending the run.

        The persisted snapshot is left in place so a later ``restore()`` can
        pick the run up again.
        """
        await self._cancel_tasks()

    # Internals

    def _usage(self) -> list[UsageRecord]:
        return sorted(
            (replace(r) for r in self._state.applications.values()),
            key=lambda r: r.time_spent_seconds,
            reverse=True,
        )

    def _credit_current(self, now: datetime) -> None:
        """Add whole elapsed seconds since the last sample to the current app."""
        current = self._state.current_app
        last = self._state.last_sample_timestamp
        if current is None or last is None:
            return

        elapsed = int((now - last).total_seconds())
        if elapsed <= 0:
            return

        record = self._state.applications.get(current.app_id)
        if record is None:
            record = UsageRecord(current.app_id, current.app_name, first_seen=last)
            self._state.applications[current.app_id] = record

        record.time_spent_seconds += elapsed
        record.last_seen = now
        self._state.total_tracked_seconds += elapsed
        self._state.last_sample_timestamp = now

    def _handle_error(self, error: Exception) -> None:
        self._state.error_count += 1
        self._state.last_error = str(error) or type(error).__name__
        logger.warning(
            f"Foreground probe failed ({self._state.error_count}/{self._max_error_count}): "
            f"{self._state.last_error}"
        )

        if self._state.error_count >= self._max_error_count:
            logger.warning("Too many probe failures, suspending sampling")
            self._schedule_error_reset()

    def _schedule_error_reset(self) -> None:
        if self._error_reset_task is not None and not self._error_reset_task.done():
            return
        self._error_reset_task = asyncio.create_task(self._error_reset())

    async def _error_reset(self) -> None:
        await self._clock.sleep(self._error_reset_seconds)
        if self._state.error_count >= self._max_error_count:
            logger.info("Clearing probe error count after timeout")
            self._state.error_count = 0
            self._state.last_error = None

    def _arm_sampling(self) -> None:
        if self.is_sampling:
            return
        self._sample_task = asyncio.create_task(self._sample_loop())

    async def _sample_loop(self) -> None:
        """Sample every interval until stopped or suspended by errors."""
        while self._state.is_tracking:
            await self._clock.sleep(self._interval_seconds)
            if not self._state.is_tracking:
                break

            await self.sample()

            if self._state.error_count >= self._max_error_count:
                break

    async def _cancel_tasks(self) -> None:
        for task in (self._sample_task, self._error_reset_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._sample_task = None
        self._error_reset_task = None

    def _resume_from(self, snapshot: PersistedTrackerSnapshot) -> None:
        self._interval_seconds = snapshot.interval_seconds
        last_sample = (
            datetime.fromtimestamp(snapshot.last_sample_timestamp)
            if snapshot.last_sample_timestamp
            else self._clock.now()
        )
        self._state = TrackerRuntimeState(
            is_tracking=True,
            last_sample_timestamp=last_sample,
            session_start_timestamp=datetime.fromtimestamp(snapshot.session_start_timestamp),
        )
        self._arm_sampling()

    # Persistence

    def _current_snapshot(self) -> PersistedTrackerSnapshot:
        start = self._state.session_start_timestamp or self._clock.now()
        last = self._state.last_sample_timestamp or start
        return PersistedTrackerSnapshot(
            is_tracking=self._state.is_tracking,
            session_start_timestamp=int(start.timestamp()),
            last_sample_timestamp=int(last.timestamp()),
            interval_seconds=self._interval_seconds,
        )

    async def _save_snapshot(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.set(self._state_key, self._current_snapshot().model_dump_json())
        except Exception as e:
            logger.error(f"Failed to persist tracking state: {e}")

    async def _clear_snapshot(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.delete(self._state_key)
        except Exception as e:
            logger.error(f"Failed to clear tracking state: {e}")

    async def _load_snapshot(self) -> PersistedTrackerSnapshot | None:
        if self._store is None:
            return None
        try:
            raw = await self._store.get(self._state_key)
        except Exception as e:
            logger.error(f"Failed to read tracking state: {e}")
            return None

        if not raw:
            return None

        try:
            return PersistedTrackerSnapshot.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Invalid stored tracking state, clearing: {e}")
            await self._clear_snapshot()
            return None
