"""Exception types raised by the focus engine."""

from __future__ import annotations


class FocusEngineError(Exception):
    """Base class for all focus engine errors."""


class TimerValidationError(FocusEngineError):
    """A timer command was issued in a phase that does not allow it.

    These are reported to the caller immediately and never retried.
    """

    code = "TIMER_VALIDATION"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class SessionAlreadyActiveError(TimerValidationError):
    """A session is already running or paused."""

    code = "SESSION_ALREADY_ACTIVE"


class NoActiveSessionError(TimerValidationError):
    """The command needs a running (or paused) session and there is none."""

    code = "NO_ACTIVE_SESSION"


class ProbeError(FocusEngineError):
    """The foreground-app probe could not report the focused application."""
