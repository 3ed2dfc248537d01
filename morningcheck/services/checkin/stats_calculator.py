"""
Team statistics for a project.

Derives per-day metrics from the daily snapshots materialized by the
persistence service, falling back to live check-in rows field by field.
All functions are pure and synchronous.
"""

import math
from typing import Dict, Iterable, List, Optional, Sequence

from common.utils.dates import local_date_string, parse_date, shift_date
from morningcheck.schemas.project import (
    CheckIn,
    DailyStatsSnapshot,
    Project,
    ProjectStats,
    User,
)

LOW_CONDITION_MAX = 3
HIGH_CONDITION_MIN = 8


def round_half_up(value: float) -> int:
    """Round a non-negative number to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


def find_snapshot(
    snapshots: Iterable[DailyStatsSnapshot],
    stats_date: str
) -> Optional[DailyStatsSnapshot]:
    """Get the snapshot for a day, if the service materialized one."""
    return next((s for s in snapshots if s.statsDate == stats_date), None)


def check_ins_on(check_ins: Iterable[CheckIn], day: str) -> List[CheckIn]:
    """Check-ins recorded for one calendar day."""
    return [c for c in check_ins if c.date == day]


def average_condition(check_ins: Sequence[CheckIn]) -> float:
    """Mean condition, 0 for an empty set."""
    if not check_ins:
        return 0.0
    return sum(c.condition for c in check_ins) / len(check_ins)


def participation_rate(check_in_count: int, member_count: int) -> int:
    """
    Share of members who checked in, as a whole percentage.

    Args:
        check_in_count: Check-ins on the day
        member_count: Current member count

    Returns:
        0-100, and 0 when there are no members
    """
    if member_count <= 0:
        return 0
    rate = round_half_up(check_in_count / member_count * 100)
    return max(0, min(100, rate))


def calculate_project_stats(
    members: Sequence[User],
    check_ins: Sequence[CheckIn],
    snapshots: Sequence[DailyStatsSnapshot],
    reference_date: str
) -> ProjectStats:
    """
    Calculate team metrics for a reference day.

    Args:
        members: Current members
        check_ins: All check-ins of the project
        snapshots: Daily snapshots materialized by the service
        reference_date: "Today" as YYYY-MM-DD

    Returns:
        ProjectStats for the day

    Algorithm:
        1. Each field present in today's snapshot is used as is
        2. Missing fields are computed live from members and check-ins
        3. memberCountChange needs yesterday's snapshot, else it is 0
    """
    today_snapshot = find_snapshot(snapshots, reference_date)
    yesterday_snapshot = find_snapshot(snapshots, shift_date(reference_date, -1))

    today_check_ins = check_ins_on(check_ins, reference_date)

    def pick(field: str, live_value):
        if today_snapshot is not None:
            value = getattr(today_snapshot, field)
            if value is not None:
                return value
        return live_value

    member_count = pick("memberCount", len(members))
    check_in_count = pick("checkInCount", len(today_check_ins))
    avg = pick("avgCondition", average_condition(today_check_ins))
    rate = pick("participationRate", participation_rate(len(today_check_ins), len(members)))

    member_count_change = 0
    if yesterday_snapshot is not None and yesterday_snapshot.memberCount is not None:
        member_count_change = member_count - yesterday_snapshot.memberCount

    return ProjectStats(
        memberCount=member_count,
        checkInCount=check_in_count,
        avgCondition=float(avg),
        participationRate=max(0, min(100, rate)),
        memberCountChange=member_count_change,
    )


def format_avg_condition(value: float) -> str:
    """One-decimal display form of an average condition."""
    return f"{value:.1f}"


def condition_distribution(check_ins: Sequence[CheckIn]) -> Dict[str, int]:
    """
    Bucket check-ins by condition.

    Returns:
        dict with low (0-3), medium (4-7), high (8-10) and total counts
    """
    low = sum(1 for c in check_ins if c.condition <= LOW_CONDITION_MAX)
    high = sum(1 for c in check_ins if c.condition >= HIGH_CONDITION_MIN)
    return {
        "low": low,
        "medium": len(check_ins) - low - high,
        "high": high,
        "total": len(check_ins),
    }


def latest_per_user_and_day(check_ins: Iterable[CheckIn]) -> List[CheckIn]:
    """Keep one check-in per (user, day): the one created last."""
    latest: Dict[tuple, CheckIn] = {}
    for check_in in check_ins:
        key = (check_in.userId, check_in.date)
        current = latest.get(key)
        if current is None or check_in.createdAt > current.createdAt:
            latest[key] = check_in
    return list(latest.values())


def team_trend(
    check_ins: Sequence[CheckIn],
    end_date: str,
    days: int = 7
) -> List[Dict[str, Optional[float]]]:
    """
    Daily team average condition for the last N days.

    Args:
        check_ins: All check-ins of the project
        end_date: Last day of the window (YYYY-MM-DD)
        days: Window length

    Returns:
        List of {date, avg} oldest first; avg is None on days without check-ins
    """
    unique = latest_per_user_and_day(check_ins)
    trend = []
    for offset in range(days - 1, -1, -1):
        day = shift_date(end_date, -offset)
        day_check_ins = check_ins_on(unique, day)
        avg = round(average_condition(day_check_ins), 1) if day_check_ins else None
        trend.append({"date": day, "avg": avg})
    return trend


def overall_participation_rate(
    project: Project,
    reference_date: str,
    tz_name: str = "UTC"
) -> int:
    """
    Participation since the project was created.

    Counts every check-in against one possible check-in per member per day
    from the creation day through the reference day.
    """
    created_day = local_date_string(project.createdAt, tz_name) or reference_date
    duration = (parse_date(reference_date) - parse_date(created_day)).days + 1
    total_possible = max(duration, 1) * len(project.members)
    return participation_rate(len(project.checkIns), total_possible)
