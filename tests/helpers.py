"""Applications and probes reused across tests."""

import asyncio

from focus_engine.storage.memory import MemoryStore
from focus_engine.trackers.app_monitor import AppInfo

VSCODE = AppInfo("com.microsoft.VSCode", "Code")
SLACK = AppInfo("com.tinyspeck.slackmacgap", "Slack")
YOUTUBE = AppInfo("com.youtube.youtube", "YouTube")
FINDER = AppInfo("com.apple.finder", "Finder")


class RecordingNotifier:
    """Collects notification events in order."""

    def __init__(self):
        self.events = []

    async def session_started(self, session):
        self.events.append(("started", session.session_type))

    async def session_completed(self, session):
        self.events.append(("completed", session.session_type))


class BrokenNotifier:
    async def session_started(self, session):
        raise RuntimeError("notification center unavailable")

    async def session_completed(self, session):
        raise RuntimeError("notification center unavailable")


class BrokenStore:
    """Key-value store whose every call fails."""

    async def get(self, key):
        raise OSError("disk unavailable")

    async def set(self, key, value):
        raise OSError("disk unavailable")

    async def delete(self, key):
        raise OSError("disk unavailable")


class GatedStore(MemoryStore):
    """Memory store whose writes wait until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def set(self, key, value):
        await self.gate.wait()
        await super().set(key, value)
