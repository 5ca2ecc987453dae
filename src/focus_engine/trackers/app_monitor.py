"""Foreground application probes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, Union

from focus_engine.core.errors import ProbeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppInfo:
    """The application currently holding input focus."""

    bundle_id: str | None
    app_name: str

    @property
    def app_id(self) -> str:
        """Stable identifier: bundle id when known, otherwise the name."""
        return self.bundle_id or self.app_name


class ForegroundProbe(Protocol):
    """Reports the focused application; may raise on transient failure."""

    async def get_foreground_app(self) -> AppInfo: ...


class AppKitProbe:
    """macOS probe using NSWorkspace's frontmost application.

    The PyObjC call is blocking, so it runs in a worker thread.
    """

    def _read_frontmost(self) -> AppInfo:
        try:
            from AppKit import NSWorkspace
        except ImportError as e:
            raise ProbeError(f"AppKit unavailable: {e}") from e

        workspace = NSWorkspace.sharedWorkspace()
        active = workspace.frontmostApplication()

        if active is None:
            raise ProbeError("No frontmost application")

        return AppInfo(
            bundle_id=active.bundleIdentifier() or None,
            app_name=active.localizedName() or "Unknown Application",
        )

    async def get_foreground_app(self) -> AppInfo:
        return await asyncio.to_thread(self._read_frontmost)


ScriptStep = Union[AppInfo, Exception]


class ScriptedProbe:
    """Probe that replays a fixed sequence of observations.

    Each call consumes one step; an exception step is raised instead of
    returned. Once the script runs out the last step repeats.

    Usage:
        code = AppInfo("com.microsoft.VSCode", "Code")
        probe = ScriptedProbe([code, code, ProbeError("busy"), code])
    """

    def __init__(self, steps: Iterable[ScriptStep]):
        self._steps: list[ScriptStep] = list(steps)
        if not self._steps:
            raise ValueError("ScriptedProbe needs at least one step")
        self._position = 0
        self.calls = 0

    def extend(self, steps: Iterable[ScriptStep]) -> None:
        """Append more steps; the next call returns the first new one if exhausted."""
        self._position = min(self._position, len(self._steps))
        self._steps.extend(steps)

    async def get_foreground_app(self) -> AppInfo:
        self.calls += 1
        step = self._steps[min(self._position, len(self._steps) - 1)]
        self._position += 1
        if isinstance(step, Exception):
            raise step
        return step
