"""Pomodoro timer, session history and notifications."""

from focus_engine.focus.history import SessionHistory, TimerStats, calculate_stats
from focus_engine.focus.notifier import LoggingNotifier, MacNotifier, Notifier, default_notifier
from focus_engine.focus.pomodoro import PomodoroTimer, TimerPhase, TimerRuntimeState

__all__ = [
    "SessionHistory",
    "TimerStats",
    "calculate_stats",
    "LoggingNotifier",
    "MacNotifier",
    "Notifier",
    "default_notifier",
    "PomodoroTimer",
    "TimerPhase",
    "TimerRuntimeState",
]
