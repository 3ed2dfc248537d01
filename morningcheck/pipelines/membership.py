"""
Membership pipeline functions.

Stateless orchestration for joining, join requests and invitations.
Every transition is validated locally by the lifecycle first, so failures
that need no remote round trip are reported before any write. The remote
answer is authoritative: after each write the project is re-fetched.
"""

import logging
from typing import Awaitable, List, Optional

from pydantic import ValidationError

from common.utils.dates import utc_now_iso
from common.utils.exceptions import ConflictException, ForbiddenException, ValidationException
from morningcheck.schemas.project import (
    Project,
    ProjectInvitation,
    ProjectInvitationHistory,
    ProjectJoinRequest,
)
from morningcheck.schemas.requests import RejectJoinRequest
from morningcheck.services.membership import lifecycle
from morningcheck.services.persistence.base import PersistenceService
from morningcheck.services.project.normalizer import (
    normalize_history,
    normalize_invitations,
    normalize_join_request,
)
from morningcheck.store.actions import (
    AcceptInvitation,
    InviteMember,
    RemoveMember,
    SetCurrentProjectId,
    UpdateProject,
)
from morningcheck.store.store import Store
from morningcheck.pipelines.project import (
    load_projects_pipeline,
    require_project,
    require_user,
    resync_project,
)

logger = logging.getLogger(__name__)


async def _tolerate_already_member(call: Awaitable) -> None:
    """Await a remote join; "already a member" counts as success."""
    try:
        await call
    except ConflictException as e:
        if e.code != "ALREADY_MEMBER":
            raise
        logger.warning(f"Remote reported ALREADY_MEMBER, treating as joined: {e.message}")


# ─────────────────────────────────────────────────────────────────
# Joining
# ─────────────────────────────────────────────────────────────────


async def join_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Project:
    """
    Join a public project and make it current.

    Joining again as a member changes nothing.

    Raises:
        ForbiddenException: Project is not public
    """
    user = require_user(store)
    project = require_project(store, project_id)
    result = lifecycle.join_public(project, user)

    if result.changed:
        await _tolerate_already_member(persistence.join_project(project_id, user.id))
        project = await resync_project(persistence, store, project_id) or result.project

    await store.dispatch(SetCurrentProjectId(project_id=project_id))
    return project


async def join_by_code_pipeline(
    persistence: PersistenceService,
    store: Store,
    invite_code: str
) -> Project:
    """
    Join whatever project the invite code points to.

    Public projects are joined directly. Request-based projects get a join
    request. Invite-only projects need a pending invitation for the user's
    email, which is accepted.

    Raises:
        ConflictException: INVALID_INVITE_CODE when no live project matches
        ForbiddenException: Invite-only project without an invitation
    """
    user = require_user(store)

    try:
        project = lifecycle.find_by_invite_code(store.state.projects, invite_code)
    except ConflictException:
        await load_projects_pipeline(persistence, store)
        project = lifecycle.find_by_invite_code(store.state.projects, invite_code)

    if project.has_member(user.id):
        await store.dispatch(SetCurrentProjectId(project_id=project.id))
        return project

    if project.visibilityType == "public":
        return await join_project_pipeline(persistence, store, project.id)

    if project.visibilityType == "request":
        await request_to_join_pipeline(persistence, store, project.id)
        return store.state.find_project(project.id) or project

    invitation = lifecycle.find_pending_invitation(project, user.email or "")
    if invitation is None:
        raise ForbiddenException(
            message="This project is invite-only",
            code="JOIN_NOT_ALLOWED"
        )
    return await accept_invitation_pipeline(persistence, store, project.id, invitation.id)


async def leave_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> None:
    """
    Leave a project. The owner cannot leave.

    The member disappears locally right away and comes back if the remote
    call fails.
    """
    user = require_user(store)
    project = require_project(store, project_id)
    result = lifecycle.leave_project(project, user.id)
    if not result.changed:
        return

    await store.optimistic(
        RemoveMember(project_id=project_id, user_id=user.id),
        lambda: persistence.leave_project(project_id, user.id),
    )

    if store.state.currentProjectId == project_id:
        await store.dispatch(SetCurrentProjectId(project_id=None))
    await resync_project(persistence, store, project_id)


# ─────────────────────────────────────────────────────────────────
# Join requests
# ─────────────────────────────────────────────────────────────────


async def request_to_join_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Optional[ProjectJoinRequest]:
    """
    Ask to join a request-based project.

    Returns:
        The pending request (an existing one when already pending), or
        None when the user is already a member
    """
    user = require_user(store)
    project = require_project(store, project_id)
    result = lifecycle.request_to_join(project, user, utc_now_iso())

    if not result.changed:
        return result.entity if isinstance(result.entity, ProjectJoinRequest) else None

    await persistence.request_to_join(project_id, user.id)
    logger.info(f"Join request sent by {user.id} for project {project_id}")

    await resync_project(persistence, store, project_id)
    return await get_join_request_pipeline(persistence, store, project_id)


async def get_join_request_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Optional[ProjectJoinRequest]:
    """Get the signed-in user's latest join request for a project."""
    user = require_user(store)
    row = await persistence.get_join_request(project_id, user.id)
    if row is None:
        return None
    return normalize_join_request(row, project_id)


async def approve_join_request_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    request_id: str
) -> Project:
    """
    Approve a pending join request as the project owner.

    Raises:
        ForbiddenException: Caller is not the owner, or is the requester
        ConflictException: Request already processed
    """
    user = require_user(store)
    project = require_project(store, project_id)
    lifecycle.approve_join_request(project, request_id, user, utc_now_iso())

    await _tolerate_already_member(
        persistence.process_join_request(request_id, user.id, approve=True)
    )
    logger.info(f"Join request {request_id} approved by {user.id}")

    return await resync_project(persistence, store, project_id) or project


async def reject_join_request_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    request_id: str,
    reason: Optional[str] = None
) -> Project:
    """Reject a pending join request as the project owner."""
    user = require_user(store)
    project = require_project(store, project_id)

    try:
        reason = RejectJoinRequest(reason=reason).reason
    except ValidationError:
        raise ValidationException(message="Rejection reason is too long", code="VALIDATION_ERROR")

    lifecycle.reject_join_request(project, request_id, user, utc_now_iso(), reason=reason)

    await persistence.process_join_request(request_id, user.id, approve=False, reason=reason)
    logger.info(f"Join request {request_id} rejected by {user.id}")

    return await resync_project(persistence, store, project_id) or project


# ─────────────────────────────────────────────────────────────────
# Invitations
# ─────────────────────────────────────────────────────────────────


async def invite_member_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    email: str
) -> ProjectInvitation:
    """
    Invite someone by email.

    Self-invites, malformed emails, duplicates and existing members are
    rejected before any write.

    Returns:
        The pending invitation (the remote copy when available)
    """
    user = require_user(store)
    project = require_project(store, project_id)
    result = lifecycle.invite_member(project, user, email, utc_now_iso())
    invitation = result.entity

    await store.optimistic(
        InviteMember(project_id=project_id, invitation=invitation),
        lambda: persistence.invite_member(project_id, user.id, invitation.email),
    )
    logger.info(f"Invitation sent to {invitation.email} for project {project_id}")

    fresh = await resync_project(persistence, store, project_id)
    if fresh is not None:
        remote = lifecycle.find_pending_invitation(fresh, invitation.email)
        if remote is not None:
            return remote
    return invitation


async def cancel_invitation_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    invitation_id: str
) -> ProjectInvitation:
    """Cancel a pending invitation as its inviter or the project owner."""
    user = require_user(store)
    project = require_project(store, project_id)
    result = lifecycle.cancel_invitation(project, invitation_id, user, utc_now_iso())

    await store.optimistic(
        UpdateProject(
            project_id=project_id,
            changes={"invitations": result.project.invitations},
        ),
        lambda: persistence.cancel_invitation(invitation_id, user.id),
    )
    logger.info(f"Invitation {invitation_id} cancelled by {user.id}")

    await resync_project(persistence, store, project_id)
    return result.entity


async def accept_invitation_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    invitation_id: str
) -> Project:
    """
    Accept an invitation and make the project current.

    When the project is cached the transition is validated and applied
    optimistically; otherwise the remote decides and the project is loaded.

    Raises:
        NotFoundException: Project not found after accepting
    """
    user = require_user(store)
    project = store.state.find_project(project_id)

    async def remote_call() -> None:
        await _tolerate_already_member(
            persistence.accept_invitation(project_id, user.id, invitation_id)
        )

    if project is not None:
        now = utc_now_iso()
        lifecycle.accept_invitation(project, invitation_id, user, now)
        await store.optimistic(
            AcceptInvitation(
                project_id=project_id,
                invitation_id=invitation_id,
                user=user,
                responded_at=now,
            ),
            remote_call,
        )
    else:
        await remote_call()

    logger.info(f"Invitation {invitation_id} accepted by {user.id}")

    fresh = await resync_project(persistence, store, project_id)
    await store.dispatch(SetCurrentProjectId(project_id=project_id))
    return fresh or require_project(store, project_id)


async def decline_invitation_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    invitation_id: str
) -> None:
    """Decline an invitation. Membership is unchanged."""
    user = require_user(store)
    project = store.state.find_project(project_id)
    if project is not None:
        lifecycle.decline_invitation(project, invitation_id, user, utc_now_iso())

    await persistence.decline_invitation(invitation_id, user.id)
    logger.info(f"Invitation {invitation_id} declined by {user.id}")

    if project is not None:
        await resync_project(persistence, store, project_id)


async def get_pending_invitations_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: Optional[str] = None
) -> List[ProjectInvitation]:
    """
    Get invitations waiting for the signed-in user's email.

    Args:
        project_id: Restrict to one project
    """
    user = require_user(store)
    if not user.email:
        return []

    rows = await persistence.get_pending_invitations(user.email.lower(), project_id)
    invitations = normalize_invitations(rows, project_id or "")
    return [i for i in invitations if i.status == lifecycle.PENDING]


async def get_invitation_history_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> List[ProjectInvitationHistory]:
    """
    Load the audit history of a project into the store.

    Returns:
        History records, oldest first
    """
    require_user(store)
    rows = await persistence.get_invitation_history(project_id)
    history = normalize_history(rows, project_id)

    if store.state.find_project(project_id) is not None:
        await store.dispatch(UpdateProject(project_id=project_id, changes={"history": history}))
    return history
