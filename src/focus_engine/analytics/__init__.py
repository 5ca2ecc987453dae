"""Pure analytics over application usage snapshots."""

from focus_engine.analytics.usage import (
    AppCategory,
    ProductivityInsights,
    TrackerSnapshot,
    TrackingHealth,
    TrackingStatistics,
    UsageSummary,
    format_duration,
    get_application_category,
    productivity_insights,
    productivity_score,
    statistics,
    tracking_health,
    usage_summary,
)

__all__ = [
    "AppCategory",
    "ProductivityInsights",
    "TrackerSnapshot",
    "TrackingHealth",
    "TrackingStatistics",
    "UsageSummary",
    "format_duration",
    "get_application_category",
    "productivity_insights",
    "productivity_score",
    "statistics",
    "tracking_health",
    "usage_summary",
]
