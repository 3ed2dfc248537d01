"""
Check-in System

Daily condition scores with team statistics, streaks and chart series.
"""

from morningcheck.services.checkin.stats_calculator import (
    calculate_project_stats,
    participation_rate,
    format_avg_condition,
    condition_distribution,
    team_trend,
    overall_participation_rate,
)
from morningcheck.services.checkin.streak_calculator import (
    calculate_streak,
    personal_summary,
    daily_condition_series,
)
from morningcheck.services.checkin.checkin_lifecycle import (
    record_check_in,
    ensure_cancellable,
)

__all__ = [
    "calculate_project_stats",
    "participation_rate",
    "format_avg_condition",
    "condition_distribution",
    "team_trend",
    "overall_participation_rate",
    "calculate_streak",
    "personal_summary",
    "daily_condition_series",
    "record_check_in",
    "ensure_cancellable",
]
