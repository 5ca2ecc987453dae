"""Key-value store contract and an in-process implementation."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Durable async keyed storage, treated as opaque by the engine."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dictionary-backed store for tests and for running without a database.

    Nothing survives the process; handing the same instance to a new tracker
    simulates a restart.
    """

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
