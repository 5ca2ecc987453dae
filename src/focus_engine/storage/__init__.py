"""Storage layer for durable engine state."""

from focus_engine.storage.database import Database
from focus_engine.storage.memory import KeyValueStore, MemoryStore

__all__ = ["Database", "KeyValueStore", "MemoryStore"]
