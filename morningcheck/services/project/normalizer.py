"""
Project normalizer.

Converts raw persistence rows (project + nested members, check-ins,
invitations, join requests, history and daily snapshots) into the
canonical Project aggregate, and serializes a Project back to row shape.

Normalization is total: missing or malformed collections degrade to
empty and malformed elements are skipped, never raised.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from common.utils.dates import parse_timestamp
from morningcheck.schemas.project import (
    ANONYMOUS_NAME,
    ICON_TYPES,
    VISIBILITY_TYPES,
    CheckIn,
    DailyStatsSnapshot,
    LastCheckIn,
    Project,
    ProjectInvitation,
    ProjectInvitationHistory,
    ProjectJoinRequest,
    User,
)
from morningcheck.schemas.rows import (
    CheckInRow,
    HistoryRow,
    InvitationRow,
    JoinRequestRow,
    MemberRow,
    ProjectRow,
    StatsRow,
    coerce_rows,
)
from morningcheck.services.checkin.stats_calculator import calculate_project_stats

logger = logging.getLogger(__name__)

DEFAULT_VISIBILITY = "invite"

RowT = TypeVar("RowT")
EntityT = TypeVar("EntityT")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _map_rows(
    rows: Sequence[RowT],
    mapper: Callable[[RowT], EntityT],
    kind: str
) -> List[EntityT]:
    """Map rows to entities, skipping the ones the domain model rejects."""
    entities = []
    for row in rows:
        try:
            entities.append(mapper(row))
        except ValidationError as e:
            logger.debug(f"Skipping invalid {kind}: {e.error_count()} errors")
    return entities


# ─────────────────────────────────────────────────────────────────
# Row -> entity mappers
# ─────────────────────────────────────────────────────────────────


def map_member(row: MemberRow) -> User:
    profile = row.user
    return User(
        id=row.user_id,
        name=(profile.display_name if profile else None) or ANONYMOUS_NAME,
        email=profile.email if profile else None,
        profileImageUrl=profile.avatar_url if profile else None,
        bio=profile.bio if profile else None,
    )


def map_check_in(row: CheckInRow) -> CheckIn:
    return CheckIn(
        id=row.id,
        userId=row.user_id,
        date=row.check_in_date,
        condition=row.condition,
        note=row.note or "",
        createdAt=row.created_at,
    )


def map_invitation(row: InvitationRow, project_id: str) -> ProjectInvitation:
    return ProjectInvitation(
        id=row.id,
        projectId=row.project_id or project_id,
        inviterId=row.inviter_id or "",
        email=row.invitee_email,
        status=row.status,
        invitedAt=row.invited_at or "",
        respondedAt=row.responded_at,
    )


def map_join_request(row: JoinRequestRow, project_id: str) -> ProjectJoinRequest:
    return ProjectJoinRequest(
        id=row.id,
        projectId=row.project_id or project_id,
        userId=row.user_id,
        status=row.status,
        requestedAt=row.requested_at or "",
        processedAt=row.processed_at,
        processedBy=row.processed_by,
        rejectionReason=row.rejection_reason,
    )


def map_history(row: HistoryRow, project_id: str) -> ProjectInvitationHistory:
    return ProjectInvitationHistory(
        id=row.id,
        projectId=row.project_id or project_id,
        invitationId=row.invitation_id,
        actorId=row.actor_id or "",
        actorName=row.actor_name or ANONYMOUS_NAME,
        inviteeEmail=row.invitee_email or "",
        action=row.action,
        metadata=row.metadata,
        createdAt=row.created_at or "",
    )


def map_snapshot(row: StatsRow) -> DailyStatsSnapshot:
    return DailyStatsSnapshot(
        statsDate=row.stats_date,
        memberCount=row.member_count,
        checkInCount=row.check_in_count,
        avgCondition=row.avg_condition,
        participationRate=row.participation_rate,
    )


def _unique_members(members: List[User]) -> List[User]:
    seen = set()
    unique = []
    for member in members:
        if member.id in seen:
            continue
        seen.add(member.id)
        unique.append(member)
    return unique


# ─────────────────────────────────────────────────────────────────
# Derived fields
# ─────────────────────────────────────────────────────────────────


def resolve_last_check_in(
    check_ins: Sequence[CheckIn],
    members: Sequence[User]
) -> Optional[LastCheckIn]:
    """
    Find the most recent check-in and its author.

    Authors who are no longer members show as "anonymous".
    """
    if not check_ins:
        return None

    latest = max(check_ins, key=lambda c: parse_timestamp(c.createdAt) or _EPOCH)
    author = next((m for m in members if m.id == latest.userId), None)

    return LastCheckIn(
        userDisplayName=author.name if author else ANONYMOUS_NAME,
        userAvatarUrl=author.profileImageUrl if author else None,
        checkInTime=latest.createdAt,
    )


def refresh_derived(project: Project, reference_date: str) -> Project:
    """Recompute stats and lastCheckIn after members or check-ins changed."""
    return project.model_copy(update={
        "stats": calculate_project_stats(
            project.members, project.checkIns, project.dailyStats, reference_date
        ),
        "lastCheckIn": resolve_last_check_in(project.checkIns, project.members),
    })


# ─────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────


def normalize_project(raw: Any, reference_date: str) -> Project:
    """
    Convert a raw project row into a Project.

    Args:
        raw: Project row (dict or ProjectRow) with nested collections
        reference_date: "Today" (YYYY-MM-DD) for the derived stats

    Returns:
        Canonical Project; never raises for a syntactically valid payload
    """
    row = ProjectRow.parse(raw)
    project_id = row.id or ""

    members = _unique_members(_map_rows(row.members, map_member, "member"))
    check_ins = _map_rows(row.check_ins, map_check_in, "check-in")
    invitations = _map_rows(
        row.invitations, lambda r: map_invitation(r, project_id), "invitation"
    )
    join_requests = _map_rows(
        row.join_requests, lambda r: map_join_request(r, project_id), "join request"
    )
    history = _map_rows(row.history, lambda r: map_history(r, project_id), "history")
    snapshots = _map_rows(row.stats, map_snapshot, "stats snapshot")

    visibility = row.visibility_type if row.visibility_type in VISIBILITY_TYPES else DEFAULT_VISIBILITY
    icon_type = row.icon_type if row.icon_type in ICON_TYPES else None

    project = Project(
        id=project_id,
        name=row.name or "",
        description=row.description,
        icon=row.icon,
        iconType=icon_type,
        inviteCode=row.invite_code or "",
        visibilityType=visibility,
        members=members,
        checkIns=check_ins,
        invitations=invitations,
        joinRequests=join_requests,
        history=history,
        dailyStats=snapshots,
        createdBy=row.created_by or "",
        createdAt=row.created_at or "",
        updatedAt=row.updated_at,
        deletedAt=row.deleted_at,
        archivedAt=row.archived_at,
    )
    return refresh_derived(project, reference_date)


def normalize_projects(raws: Any, reference_date: str) -> List[Project]:
    """Normalize a list payload; anything that is not a list gives []."""
    if not isinstance(raws, list):
        return []
    return [normalize_project(raw, reference_date) for raw in raws if isinstance(raw, dict)]


def normalize_invitations(raws: Any, project_id: str = "") -> List[ProjectInvitation]:
    """Normalize a standalone invitation list (pending invitations lookup)."""
    rows = coerce_rows(raws, InvitationRow)
    return _map_rows(rows, lambda r: map_invitation(r, project_id), "invitation")


def normalize_history(raws: Any, project_id: str) -> List[ProjectInvitationHistory]:
    """Normalize a standalone history list, oldest first."""
    rows = coerce_rows(raws, HistoryRow)
    history = _map_rows(rows, lambda r: map_history(r, project_id), "history")
    return sorted(history, key=lambda h: parse_timestamp(h.createdAt) or _EPOCH)


def normalize_join_request(raw: Any, project_id: str) -> Optional[ProjectJoinRequest]:
    """Normalize a single join request row; None when absent or malformed."""
    rows = _map_rows(
        coerce_rows([raw], JoinRequestRow),
        lambda r: map_join_request(r, project_id),
        "join request",
    )
    return rows[0] if rows else None


def project_to_row(project: Project) -> Dict[str, Any]:
    """
    Serialize a Project back to the persistence row shape.

    Derived stats and lastCheckIn are not part of the row.
    """
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "icon": project.icon,
        "icon_type": project.iconType,
        "invite_code": project.inviteCode,
        "visibility_type": project.visibilityType,
        "created_by": project.createdBy,
        "created_at": project.createdAt,
        "updated_at": project.updatedAt,
        "deleted_at": project.deletedAt,
        "archived_at": project.archivedAt,
        "members": [
            {
                "user_id": m.id,
                "user": {
                    "display_name": m.name,
                    "avatar_url": m.profileImageUrl,
                    "email": m.email,
                    "bio": m.bio,
                },
            }
            for m in project.members
        ],
        "check_ins": [
            {
                "id": c.id,
                "user_id": c.userId,
                "check_in_date": c.date,
                "condition": c.condition,
                "note": c.note,
                "created_at": c.createdAt,
            }
            for c in project.checkIns
        ],
        "invitations": [
            {
                "id": i.id,
                "project_id": i.projectId,
                "inviter_id": i.inviterId,
                "invitee_email": i.email,
                "status": i.status,
                "invited_at": i.invitedAt,
                "responded_at": i.respondedAt,
            }
            for i in project.invitations
        ],
        "join_requests": [
            {
                "id": r.id,
                "project_id": r.projectId,
                "user_id": r.userId,
                "status": r.status,
                "requested_at": r.requestedAt,
                "processed_at": r.processedAt,
                "processed_by": r.processedBy,
                "rejection_reason": r.rejectionReason,
            }
            for r in project.joinRequests
        ],
        "history": [
            {
                "id": h.id,
                "project_id": h.projectId,
                "invitation_id": h.invitationId,
                "actor_id": h.actorId,
                "actor_name": h.actorName,
                "invitee_email": h.inviteeEmail,
                "action": h.action,
                "metadata": h.metadata,
                "created_at": h.createdAt,
            }
            for h in project.history
        ],
        "stats": [
            {
                "stats_date": s.statsDate,
                "member_count": s.memberCount,
                "check_in_count": s.checkInCount,
                "avg_condition": s.avgCondition,
                "participation_rate": s.participationRate,
            }
            for s in project.dailyStats
        ],
    }
