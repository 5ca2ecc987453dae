"""Core engine components."""

from focus_engine.core.clock import Clock, ManualClock, SystemClock
from focus_engine.core.config import Config, get_config
from focus_engine.core.errors import (
    FocusEngineError,
    NoActiveSessionError,
    ProbeError,
    SessionAlreadyActiveError,
    TimerValidationError,
)

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "Config",
    "get_config",
    "FocusEngineError",
    "NoActiveSessionError",
    "ProbeError",
    "SessionAlreadyActiveError",
    "TimerValidationError",
]
