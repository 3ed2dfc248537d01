"""
Check-in pipeline functions.

Stateless orchestration for recording and cancelling check-ins, plus the
read-side selectors that derive statistics from the cached project.
"""

import logging
from typing import Dict, List, Optional

from common.utils.dates import utc_now_iso
from morningcheck.schemas.project import CheckIn, ConditionPoint, PersonalSummary, ProjectStats
from morningcheck.services.checkin.checkin_lifecycle import (
    ensure_cancellable,
    find_check_in,
    record_check_in,
)
from morningcheck.services.checkin.stats_calculator import calculate_project_stats, team_trend
from morningcheck.services.checkin.streak_calculator import daily_condition_series, personal_summary
from morningcheck.services.membership.lifecycle import ensure_active
from morningcheck.services.persistence.base import PersistenceService
from morningcheck.store.actions import AddCheckIn, RemoveCheckIn
from morningcheck.store.store import Store
from morningcheck.pipelines.project import require_project, require_user, resync_project

logger = logging.getLogger(__name__)


async def check_in_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    condition: int,
    note: Optional[str] = None
) -> CheckIn:
    """
    Orchestrates today's check-in.

    Args:
        persistence: Remote persistence service
        store: Client state store
        project_id: Project to check in to
        condition: Score 0-10
        note: Optional note (max 500 chars)

    Returns:
        The recorded check-in (the remote copy when available)

    Raises:
        ValidationException: Condition or note invalid
        ForbiddenException: Caller is not a member
        ConflictException: ALREADY_CHECKED_IN for today
    """
    user = require_user(store)
    project = require_project(store, project_id)
    day = store.today()

    check_in = record_check_in(project, user.id, condition, note, day, utc_now_iso())

    await store.optimistic(
        AddCheckIn(project_id=project_id, check_in=check_in),
        lambda: persistence.check_in(project_id, user.id, check_in.condition, check_in.note),
    )
    logger.info(f"Check-in recorded for user {user.id} in project {project_id} on {day}")

    fresh = await resync_project(persistence, store, project_id)
    if fresh is not None:
        return find_check_in(fresh, user.id, day) or check_in
    return check_in


async def cancel_check_in_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    check_in_id: str
) -> None:
    """
    Cancel one of the caller's check-ins.

    Raises:
        NotFoundException: Unknown check-in
        ForbiddenException: Check-in belongs to someone else
    """
    user = require_user(store)
    project = require_project(store, project_id)
    ensure_active(project)
    ensure_cancellable(project, check_in_id, user.id)

    await store.optimistic(
        RemoveCheckIn(project_id=project_id, check_in_id=check_in_id),
        lambda: persistence.cancel_check_in(check_in_id),
    )
    logger.info(f"Check-in {check_in_id} cancelled by {user.id}")

    await resync_project(persistence, store, project_id)


# ─────────────────────────────────────────────────────────────────
# Selectors
# ─────────────────────────────────────────────────────────────────


def get_project_stats(store: Store, project_id: str) -> ProjectStats:
    """Team stats for today from the cached project."""
    project = require_project(store, project_id)
    return calculate_project_stats(
        project.members, project.checkIns, project.dailyStats, store.today()
    )


def get_personal_summary(
    store: Store,
    project_id: str,
    user_id: Optional[str] = None
) -> PersonalSummary:
    """Average condition, streak and total for a user (default: signed-in user)."""
    project = require_project(store, project_id)
    user_id = user_id or require_user(store).id
    return personal_summary(project.checkIns, user_id, store.today())


def get_condition_series(
    store: Store,
    project_id: str,
    days: int = 14,
    user_id: Optional[str] = None
) -> List[ConditionPoint]:
    """Per-day condition for the last 7, 14 or 30 days."""
    project = require_project(store, project_id)
    user_id = user_id or require_user(store).id
    return daily_condition_series(project.checkIns, user_id, store.today(), days)


def get_team_trend(
    store: Store,
    project_id: str,
    days: int = 7
) -> List[Dict[str, Optional[float]]]:
    """Daily team average for the last N days."""
    project = require_project(store, project_id)
    return team_trend(project.checkIns, store.today(), days)
