"""
Personal check-in analytics.

Handles streak calculation, the personal summary and the per-day
condition series used for 7/14/30-day charts.
"""

from typing import Iterable, List, Sequence

from common.utils.dates import shift_date
from common.utils.exceptions import ValidationException
from morningcheck.schemas.project import CheckIn, ConditionPoint, PersonalSummary
from morningcheck.services.checkin.stats_calculator import average_condition

CHART_PERIODS = (7, 14, 30)


def user_check_ins(check_ins: Iterable[CheckIn], user_id: str) -> List[CheckIn]:
    """One user's check-ins sorted ascending by date."""
    return sorted((c for c in check_ins if c.userId == user_id), key=lambda c: c.date)


def calculate_streak(check_ins: Iterable[CheckIn], today: str) -> int:
    """
    Count consecutive check-in days ending today or yesterday.

    Args:
        check_ins: One user's check-ins (any order)
        today: Reference day as YYYY-MM-DD

    Returns:
        Streak length, 0 when there are no check-ins

    Algorithm:
        1. Start at today; if today has no check-in yet, start at yesterday
        2. Count days backward while each day has a check-in
    """
    days = {c.date for c in check_ins}
    if not days:
        return 0

    cursor = today
    if cursor not in days:
        cursor = shift_date(cursor, -1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor = shift_date(cursor, -1)

    return streak


def personal_summary(
    check_ins: Iterable[CheckIn],
    user_id: str,
    today: str
) -> PersonalSummary:
    """
    Aggregate one user's check-ins in a project.

    Returns:
        PersonalSummary with full-precision average, streak and total count
    """
    mine = user_check_ins(check_ins, user_id)
    return PersonalSummary(
        avgCondition=average_condition(mine),
        streak=calculate_streak(mine, today),
        total=len(mine),
    )


def daily_condition_series(
    check_ins: Sequence[CheckIn],
    user_id: str,
    end_date: str,
    days: int = 14
) -> List[ConditionPoint]:
    """
    Per-day condition for a user over the last N days, oldest first.

    Days without a check-in report condition 0.
    """
    if days not in CHART_PERIODS:
        raise ValidationException(
            message=f"Period must be one of {CHART_PERIODS} days",
            code="INVALID_PERIOD"
        )

    by_date = {c.date: c.condition for c in user_check_ins(check_ins, user_id)}
    return [
        ConditionPoint(date=day, condition=by_date.get(day, 0))
        for day in (shift_date(end_date, -offset) for offset in range(days - 1, -1, -1))
    ]
