"""Foreground application tracking components."""

from focus_engine.trackers.app_monitor import AppInfo, AppKitProbe, ForegroundProbe, ScriptedProbe
from focus_engine.trackers.usage_tracker import (
    ApplicationUsageTracker,
    PersistedTrackerSnapshot,
    TrackerRuntimeState,
)

__all__ = [
    "AppInfo",
    "AppKitProbe",
    "ForegroundProbe",
    "ScriptedProbe",
    "ApplicationUsageTracker",
    "PersistedTrackerSnapshot",
    "TrackerRuntimeState",
]
