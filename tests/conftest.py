"""Shared fixtures for the focus engine test suite."""

from datetime import datetime

import pytest

from focus_engine.core.clock import ManualClock
from focus_engine.core.config import Config, HistoryConfig, TimerConfig, TrackingConfig
from focus_engine.storage.memory import MemoryStore


@pytest.fixture
def clock():
    """Virtual clock starting Monday 2024-01-15 09:00."""
    return ManualClock(datetime(2024, 1, 15, 9, 0, 0))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_config(tmp_path):
    """Build a Config rooted in a temporary directory."""

    def _make(timer=None, tracking=None, history=None):
        return Config(
            data_dir=tmp_path / "data",
            log_dir=tmp_path / "logs",
            config_dir=tmp_path / "config",
            timer=TimerConfig(**(timer or {})),
            tracking=TrackingConfig(**(tracking or {})),
            history=HistoryConfig(**(history or {})),
        )

    return _make
