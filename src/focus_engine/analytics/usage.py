"""Statistics and productivity insights over application usage snapshots.

Every function here is pure: it reads a ``TrackerSnapshot`` (which carries the
moment it was taken) and never consults the clock, so the same snapshot always
produces the same result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from focus_engine.models import UsageRecord

logger = logging.getLogger(__name__)


class AppCategory(str, Enum):
    """Static productivity classification of an application."""

    PRODUCTIVE = "productive"
    COMMUNICATION = "communication"
    DISTRACTION = "distraction"
    BROWSERS = "browsers"


APP_CATEGORIES: dict[AppCategory, frozenset[str]] = {
    AppCategory.PRODUCTIVE: frozenset({
        # Development
        "com.microsoft.VSCode",
        "com.jetbrains.intellij",
        "com.jetbrains.pycharm",
        "com.apple.dt.Xcode",
        "com.sublimetext.4",
        "com.sublimetext.3",
        "com.github.atom",
        "dev.zed.Zed",
        "com.todesktop.230313mzl4w4u92",  # Cursor
        "com.googlecode.iterm2",
        "com.apple.Terminal",
        # Office and design
        "com.microsoft.Word",
        "com.microsoft.Excel",
        "com.microsoft.PowerPoint",
        "com.apple.iWork.Pages",
        "com.adobe.Photoshop",
        "com.figma.Desktop",
    }),
    AppCategory.COMMUNICATION: frozenset({
        "com.microsoft.teams",
        "com.slack.desktop",
        "com.tinyspeck.slackmacgap",
        "us.zoom.xos",
        "com.skype.skype",
        "com.discord.discord",
        "com.hnc.Discord",
        "com.apple.mail",
        "com.microsoft.Outlook",
    }),
    AppCategory.DISTRACTION: frozenset({
        "com.facebook.Facebook",
        "com.twitter.twitter-mac",
        "com.instagram.instagram",
        "com.reddit.reddit",
        "com.youtube.youtube",
        "com.netflix.Netflix",
        "com.spotify.client",
        "com.apple.TV",
        "com.apple.Music",
    }),
    AppCategory.BROWSERS: frozenset({
        "com.google.Chrome",
        "com.apple.Safari",
        "org.mozilla.firefox",
        "com.microsoft.edgemac",
        "com.operasoftware.Opera",
        "company.thebrowser.Browser",
    }),
}

# Recommendation thresholds
LOW_FOCUS_SCORE = 30
MODERATE_FOCUS_SCORE = 60
HIGH_FOCUS_SCORE = 80
MANY_APPS = 8
SHORT_AVERAGE_SECONDS = 60
MAX_RECOMMENDATIONS = 3
TOP_APPS = 3


def get_application_category(app_id: str) -> AppCategory | None:
    """Look up the static category of an application id."""
    for category, app_ids in APP_CATEGORIES.items():
        if app_id in app_ids:
            return category
    return None


def is_productive_application(app_id: str) -> bool:
    return get_application_category(app_id) in (AppCategory.PRODUCTIVE, AppCategory.COMMUNICATION)


def is_distraction_application(app_id: str) -> bool:
    return get_application_category(app_id) == AppCategory.DISTRACTION


@dataclass(frozen=True)
class TrackerSnapshot:
    """Immutable view of the tracker's state at ``taken_at``."""

    taken_at: datetime
    is_tracking: bool
    applications: tuple[UsageRecord, ...] = ()
    current_app_id: str | None = None
    session_start: datetime | None = None
    total_tracked_seconds: int = 0
    error_count: int = 0
    last_error: str | None = None

    @property
    def session_duration_seconds(self) -> int:
        if self.session_start is None:
            return 0
        return max(0, int((self.taken_at - self.session_start).total_seconds()))

    def usage(self) -> list[UsageRecord]:
        """Records sorted by time spent, most used first."""
        return sorted(self.applications, key=lambda r: r.time_spent_seconds, reverse=True)


@dataclass(frozen=True)
class TrackingStatistics:
    """Summary statistics for one tracking run."""

    total_applications: int
    most_used_application: UsageRecord | None
    least_used_application: UsageRecord | None
    average_time_per_app: float
    session_duration: int
    tracking_accuracy: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_applications": self.total_applications,
            "most_used_application": self.most_used_application.to_dict()
            if self.most_used_application
            else None,
            "least_used_application": self.least_used_application.to_dict()
            if self.least_used_application
            else None,
            "average_time_per_app": self.average_time_per_app,
            "session_duration": self.session_duration,
            "tracking_accuracy": self.tracking_accuracy,
        }


@dataclass(frozen=True)
class ProductivityInsights:
    """Focus score, notable apps and recommendations."""

    focus_score: int
    productive_apps: tuple[UsageRecord, ...] = ()
    distraction_apps: tuple[UsageRecord, ...] = ()
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "focus_score": self.focus_score,
            "productive_apps": [r.to_dict() for r in self.productive_apps],
            "distraction_apps": [r.to_dict() for r in self.distraction_apps],
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class TrackingHealth:
    """How reliably the probe has been answering."""

    is_healthy: bool
    error_count: int
    last_error: str | None
    success_rate: int
    uptime_seconds: int


@dataclass(frozen=True)
class UsageSummary:
    """Top apps plus time per category."""

    total_apps: int
    total_time: int
    top_apps: tuple[UsageRecord, ...]
    category_breakdown: dict[str, int] = field(default_factory=dict)


def statistics(snapshot: TrackerSnapshot) -> TrackingStatistics:
    """App count, most/least used app, average time and tracking accuracy."""
    usage = snapshot.usage()
    session_duration = snapshot.session_duration_seconds

    total_applications = len(usage)
    total_usage_time = sum(r.time_spent_seconds for r in usage)
    average_time = total_usage_time / total_applications if total_applications else 0.0

    accuracy = 0.0
    if session_duration > 0:
        accuracy = min(100.0, snapshot.total_tracked_seconds / session_duration * 100)

    return TrackingStatistics(
        total_applications=total_applications,
        most_used_application=usage[0] if usage else None,
        least_used_application=usage[-1] if usage else None,
        average_time_per_app=average_time,
        session_duration=session_duration,
        tracking_accuracy=accuracy,
    )


def productivity_insights(snapshot: TrackerSnapshot) -> ProductivityInsights:
    """Classify apps and derive a 0-100 focus score.

    ``focus_score = clamp(0, 100, (productive_ratio - 0.5 * distraction_ratio) * 100)``
    """
    usage = snapshot.usage()

    productive = [r for r in usage if is_productive_application(r.app_id)]
    distraction = [r for r in usage if is_distraction_application(r.app_id)]

    total_time = sum(r.time_spent_seconds for r in usage)
    productive_time = sum(r.time_spent_seconds for r in productive)
    distraction_time = sum(r.time_spent_seconds for r in distraction)

    focus_score = 0.0
    if total_time > 0:
        productive_ratio = productive_time / total_time
        distraction_penalty = (distraction_time / total_time) * 0.5
        focus_score = max(0.0, min(100.0, (productive_ratio - distraction_penalty) * 100))

    return ProductivityInsights(
        focus_score=round(focus_score),
        productive_apps=tuple(productive[:TOP_APPS]),
        distraction_apps=tuple(distraction[:TOP_APPS]),
        recommendations=tuple(_recommendations(usage, productive, distraction, focus_score)),
    )


def _recommendations(
    usage: list[UsageRecord],
    productive: list[UsageRecord],
    distraction: list[UsageRecord],
    focus_score: float,
) -> list[str]:
    recommendations: list[str] = []

    if focus_score < LOW_FOCUS_SCORE:
        recommendations.append("Consider using website blockers during work sessions")
        recommendations.append("Try the Pomodoro technique with shorter, more focused intervals")
    elif focus_score < MODERATE_FOCUS_SCORE:
        recommendations.append("Good focus! Try to minimize time in distracting applications")
    elif focus_score >= HIGH_FOCUS_SCORE:
        recommendations.append("Excellent focus! You're maintaining great productivity habits")

    if len(usage) > MANY_APPS:
        recommendations.append("Try to reduce app switching for better focus")
        recommendations.append("Consider batching similar tasks to minimize context switching")

    if distraction:
        recommendations.append(f"Minimize time in {distraction[0].display_name} during work sessions")

    if not productive and usage:
        recommendations.append("Consider using more productivity-focused applications")

    total_time = sum(r.time_spent_seconds for r in usage)
    if total_time > 0 and total_time / len(usage) < SHORT_AVERAGE_SECONDS:
        recommendations.append("Try to spend more focused time in each application")

    return recommendations[:MAX_RECOMMENDATIONS]


def tracking_health(
    snapshot: TrackerSnapshot,
    interval_seconds: int = 5,
    max_error_count: int = 10,
) -> TrackingHealth:
    """Estimate probe success rate from the run length and error count."""
    session_duration = snapshot.session_duration_seconds
    total_attempts = max(1, session_duration // max(1, interval_seconds))
    successful = max(0, total_attempts - snapshot.error_count)
    success_rate = successful / total_attempts * 100

    return TrackingHealth(
        is_healthy=success_rate > 90 and snapshot.error_count < max_error_count,
        error_count=snapshot.error_count,
        last_error=snapshot.last_error,
        success_rate=round(success_rate),
        uptime_seconds=session_duration,
    )


def usage_summary(snapshot: TrackerSnapshot, top: int = 5) -> UsageSummary:
    """Time per category and the most used apps."""
    usage = snapshot.usage()
    breakdown = {category.value: 0 for category in AppCategory}
    breakdown["other"] = 0

    for record in usage:
        category = get_application_category(record.app_id)
        key = category.value if category else "other"
        breakdown[key] += record.time_spent_seconds

    return UsageSummary(
        total_apps=len(usage),
        total_time=sum(r.time_spent_seconds for r in usage),
        top_apps=tuple(usage[:top]),
        category_breakdown=breakdown,
    )


def productivity_score(records: list[UsageRecord]) -> tuple[int, dict[str, int]]:
    """Weighted score: productive time 100, neutral 50, distraction -30.

    Returns the score and the percentage breakdown per class.
    """
    total_time = sum(r.time_spent_seconds for r in records)
    if total_time == 0:
        return 0, {"productive": 0, "neutral": 0, "distraction": 0}

    productive_time = 0
    distraction_time = 0
    for record in records:
        if is_productive_application(record.app_id):
            productive_time += record.time_spent_seconds
        elif is_distraction_application(record.app_id):
            distraction_time += record.time_spent_seconds
    neutral_time = total_time - productive_time - distraction_time

    productive_ratio = productive_time / total_time
    distraction_ratio = distraction_time / total_time
    neutral_ratio = neutral_time / total_time

    score = max(0.0, min(100.0, productive_ratio * 100 + neutral_ratio * 50 - distraction_ratio * 30))
    return round(score), {
        "productive": round(productive_ratio * 100),
        "neutral": round(neutral_ratio * 100),
        "distraction": round(distraction_ratio * 100),
    }


def format_duration(seconds: int) -> str:
    """Format seconds as e.g. ``45s``, ``12m 5s`` or ``1h 30m``."""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes, rest = divmod(seconds, 60)
        return f"{minutes}m {rest}s" if rest else f"{minutes}m"
    else:
        hours, rest = divmod(seconds, 3600)
        minutes = rest // 60
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
