"""Focus Engine - Pomodoro session timer with foreground application tracking."""

__version__ = "0.1.0"
