"""Session records shared by the timer, the tracker and the history."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class SessionType(str, Enum):
    """Kind of timed session."""

    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self != SessionType.WORK


class SessionEndReason(str, Enum):
    """How a session left the running/paused phases."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    SKIPPED = "skipped"


@dataclass
class UsageRecord:
    """Accumulated foreground time for one application."""

    app_id: str
    display_name: str
    time_spent_seconds: int = 0
    first_seen: datetime | None = None
    last_seen: datetime | None = None

    def merged_with(self, other: UsageRecord) -> UsageRecord:
        """Combine two records for the same app: times add, seen-range widens."""
        firsts = [t for t in (self.first_seen, other.first_seen) if t is not None]
        lasts = [t for t in (self.last_seen, other.last_seen) if t is not None]
        return UsageRecord(
            app_id=self.app_id,
            display_name=other.display_name or self.display_name,
            time_spent_seconds=self.time_spent_seconds + other.time_spent_seconds,
            first_seen=min(firsts) if firsts else None,
            last_seen=max(lasts) if lasts else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "app_id": self.app_id,
            "display_name": self.display_name,
            "time_spent_seconds": self.time_spent_seconds,
            "first_seen": self.first_seen.isoformat() if self.first_seen else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageRecord:
        return cls(
            app_id=data["app_id"],
            display_name=data.get("display_name") or data["app_id"],
            time_spent_seconds=int(data.get("time_spent_seconds", 0)),
            first_seen=datetime.fromisoformat(data["first_seen"]) if data.get("first_seen") else None,
            last_seen=datetime.fromisoformat(data["last_seen"]) if data.get("last_seen") else None,
        )


def merge_usage(*usage_lists: list[UsageRecord] | None) -> list[UsageRecord]:
    """Merge usage lists by app id, sorted by time spent (descending)."""
    merged: dict[str, UsageRecord] = {}
    for usage in usage_lists:
        for record in usage or []:
            existing = merged.get(record.app_id)
            merged[record.app_id] = existing.merged_with(record) if existing else replace(record)
    return sorted(merged.values(), key=lambda r: r.time_spent_seconds, reverse=True)


@dataclass(frozen=True)
class TaskMeta:
    """What the user said they were working on."""

    name: str | None = None
    project: str | None = None
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "project": self.project, "tags": list(self.tags)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskMeta:
        return cls(
            name=data.get("name"),
            project=data.get("project"),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class DurationAdjustment:
    """Record of a planned duration replaced by an override."""

    original_seconds: int
    adjusted_seconds: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_seconds": self.original_seconds,
            "adjusted_seconds": self.adjusted_seconds,
            "reason": self.reason,
        }


@dataclass
class Session:
    """A single WORK or break session.

    Mutated only by the timer while active; the history keeps its own copies.
    """

    session_type: SessionType
    planned_duration: int
    start_time: datetime
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    end_time: datetime | None = None
    completed: bool = False
    end_reason: SessionEndReason | None = None
    task: TaskMeta | None = None
    application_usage: list[UsageRecord] | None = None
    adaptive_adjustment: DurationAdjustment | None = None

    @property
    def actual_duration_seconds(self) -> int:
        """Wall-clock seconds between start and end (0 while open)."""
        if self.end_time is None:
            return 0
        return max(0, int((self.end_time - self.start_time).total_seconds()))

    def copy(self) -> Session:
        return replace(
            self,
            application_usage=[replace(r) for r in self.application_usage]
            if self.application_usage is not None
            else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary for storage."""
        return {
            "id": self.id,
            "type": self.session_type.value,
            "planned_duration": self.planned_duration,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "completed": self.completed,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "task": self.task.to_dict() if self.task else None,
            "application_usage": [r.to_dict() for r in self.application_usage]
            if self.application_usage is not None
            else None,
            "adaptive_adjustment": self.adaptive_adjustment.to_dict()
            if self.adaptive_adjustment
            else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create from a stored dictionary."""
        usage = data.get("application_usage")
        adjustment = data.get("adaptive_adjustment")
        return cls(
            id=data["id"],
            session_type=SessionType(data["type"]),
            planned_duration=int(data["planned_duration"]),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]) if data.get("end_time") else None,
            completed=bool(data.get("completed", False)),
            end_reason=SessionEndReason(data["end_reason"]) if data.get("end_reason") else None,
            task=TaskMeta.from_dict(data["task"]) if data.get("task") else None,
            application_usage=[UsageRecord.from_dict(r) for r in usage] if usage is not None else None,
            adaptive_adjustment=DurationAdjustment(**adjustment) if adjustment else None,
        )
