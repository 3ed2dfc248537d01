"""
Membership and invitation lifecycle.

State machine for how a user becomes a member of a project: public join,
request-to-join with approval, or email invitation. Every function is pure:
it validates the transition against the current Project, and returns a new
Project with copies of the touched collections plus the audit record that
belongs to the transition. Nothing is written here; pipelines send the
same transition to the persistence service and re-sync afterwards.

States:
    pending -> accepted | approved    (membership granted)
    pending -> rejected | cancelled   (no membership change)
Terminal states never transition again.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Any, Dict

from pydantic import BaseModel, ValidationError

from common.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from morningcheck.schemas.project import (
    ANONYMOUS_NAME,
    Project,
    ProjectInvitation,
    ProjectInvitationHistory,
    ProjectJoinRequest,
    User,
)
from morningcheck.schemas.requests import InviteMemberRequest

logger = logging.getLogger(__name__)

PENDING = "pending"

IdFactory = Callable[[], str]


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class LifecycleResult:
    """Outcome of one transition."""

    project: Project
    entity: Optional[BaseModel] = None
    history: Optional[ProjectInvitationHistory] = None
    changed: bool = True


# ─────────────────────────────────────────────────────────────────
# Guards
# ─────────────────────────────────────────────────────────────────


def ensure_active(project: Project) -> None:
    """Reject transitions on deleted or archived projects."""
    if project.is_deleted:
        raise NotFoundException(message="Project not found", code="PROJECT_NOT_FOUND")
    if project.is_archived:
        raise ConflictException(message="Project is archived", code="PROJECT_ARCHIVED")


def ensure_member(project: Project, user_id: str) -> User:
    member = project.find_member(user_id)
    if member is None:
        raise ForbiddenException(
            message="Only project members can do this",
            code="NOT_PROJECT_MEMBER"
        )
    return member


def ensure_owner(project: Project, user_id: str) -> None:
    if project.createdBy != user_id:
        raise ForbiddenException(
            message="Only the project owner can do this",
            code="NOT_PROJECT_OWNER"
        )


def validate_invite_email(email: Any) -> str:
    """
    Check email syntax and normalize it.

    Returns:
        Trimmed, lower-cased email

    Raises:
        ValidationException: If the email is malformed
    """
    try:
        return str(InviteMemberRequest(email=email).email)
    except ValidationError:
        raise ValidationException(message="Invalid email address", code="INVALID_EMAIL")


def find_by_invite_code(projects: Iterable[Project], invite_code: str) -> Project:
    """
    Find a live project by its invite code, ignoring case.

    Raises:
        ConflictException: If no live project uses the code
    """
    code = (invite_code or "").strip().upper()
    project = next(
        (p for p in projects if code and p.inviteCode.upper() == code and not p.is_deleted),
        None
    )
    if project is None:
        raise ConflictException(message="Invalid invite code", code="INVALID_INVITE_CODE")
    return project


def find_invitation(project: Project, invitation_id: str) -> ProjectInvitation:
    invitation = next((i for i in project.invitations if i.id == invitation_id), None)
    if invitation is None:
        raise NotFoundException(message="Invitation not found", code="INVITATION_NOT_FOUND")
    return invitation


def find_join_request(project: Project, request_id: str) -> ProjectJoinRequest:
    request = next((r for r in project.joinRequests if r.id == request_id), None)
    if request is None:
        raise NotFoundException(message="Join request not found", code="JOIN_REQUEST_NOT_FOUND")
    return request


def find_pending_invitation(project: Project, email: str) -> Optional[ProjectInvitation]:
    email = email.lower()
    return next(
        (i for i in project.invitations if i.status == PENDING and i.email.lower() == email),
        None
    )


def find_pending_request(project: Project, user_id: str) -> Optional[ProjectJoinRequest]:
    return next(
        (r for r in project.joinRequests if r.status == PENDING and r.userId == user_id),
        None
    )


def _ensure_pending_invitation(invitation: ProjectInvitation) -> None:
    if invitation.status != PENDING:
        raise ConflictException(
            message=f"Invitation already {invitation.status}",
            code="INVITATION_ALREADY_PROCESSED"
        )


def _ensure_invitee(invitation: ProjectInvitation, user: User) -> None:
    email = (user.email or "").strip().lower()
    if not email or email != invitation.email.lower():
        raise ForbiddenException(
            message="This invitation was sent to a different email",
            code="INVITATION_EMAIL_MISMATCH"
        )


def _ensure_pending_request(request: ProjectJoinRequest) -> None:
    if request.status != PENDING:
        raise ConflictException(
            message=f"Join request already {request.status}",
            code="JOIN_REQUEST_ALREADY_PROCESSED"
        )


# ─────────────────────────────────────────────────────────────────
# Copy-on-write helpers
# ─────────────────────────────────────────────────────────────────


def _history(
    project: Project,
    action: str,
    actor: User,
    invitee_email: str,
    now: str,
    id_factory: IdFactory,
    invitation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ProjectInvitationHistory:
    return ProjectInvitationHistory(
        id=id_factory(),
        projectId=project.id,
        invitationId=invitation_id,
        actorId=actor.id,
        actorName=actor.name or ANONYMOUS_NAME,
        inviteeEmail=invitee_email,
        action=action,
        metadata=metadata,
        createdAt=now,
    )


def _with_member(project: Project, user: User) -> list:
    if project.has_member(user.id):
        return project.members
    return [*project.members, user]


def _replace(items: list, updated: BaseModel) -> list:
    return [updated if item.id == updated.id else item for item in items]


# ─────────────────────────────────────────────────────────────────
# Public join
# ─────────────────────────────────────────────────────────────────


def join_public(project: Project, user: User) -> LifecycleResult:
    """
    Join a public project immediately.

    Idempotent: joining as an existing member changes nothing.

    Raises:
        ForbiddenException: If the project is not public
    """
    ensure_active(project)

    if project.has_member(user.id):
        return LifecycleResult(project=project, entity=project.find_member(user.id), changed=False)

    if project.visibilityType != "public":
        raise ForbiddenException(
            message="This project does not allow direct joining",
            code="JOIN_NOT_ALLOWED"
        )

    logger.info(f"User {user.id} joined public project {project.id}")
    return LifecycleResult(
        project=project.model_copy(update={"members": [*project.members, user]}),
        entity=user,
    )


# ─────────────────────────────────────────────────────────────────
# Request-to-join
# ─────────────────────────────────────────────────────────────────


def request_to_join(
    project: Project,
    user: User,
    now: str,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """
    Ask to join a request-based project.

    A pending request for the same user is returned unchanged instead of
    creating a second one.

    Raises:
        ForbiddenException: If the project does not take join requests
    """
    ensure_active(project)

    if project.has_member(user.id):
        return LifecycleResult(project=project, entity=project.find_member(user.id), changed=False)

    if project.visibilityType != "request":
        raise ForbiddenException(
            message="This project does not accept join requests",
            code="JOIN_REQUEST_NOT_ALLOWED"
        )

    existing = find_pending_request(project, user.id)
    if existing is not None:
        return LifecycleResult(project=project, entity=existing, changed=False)

    request = ProjectJoinRequest(
        id=id_factory(),
        projectId=project.id,
        userId=user.id,
        status=PENDING,
        requestedAt=now,
    )
    record = _history(project, "requested", user, user.email or "", now, id_factory)

    logger.info(f"User {user.id} requested to join project {project.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "joinRequests": [*project.joinRequests, request],
            "history": [*project.history, record],
        }),
        entity=request,
        history=record,
    )


def _process_join_request(
    project: Project,
    request_id: str,
    approver: User,
) -> ProjectJoinRequest:
    ensure_active(project)
    request = find_join_request(project, request_id)
    ensure_owner(project, approver.id)
    if request.userId == approver.id:
        raise ForbiddenException(
            message="You cannot process your own join request",
            code="SELF_APPROVAL_NOT_ALLOWED"
        )
    _ensure_pending_request(request)
    return request


def approve_join_request(
    project: Project,
    request_id: str,
    approver: User,
    now: str,
    requester: Optional[User] = None,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """
    Approve a pending join request and add the requester to members.

    Args:
        project: Current project
        request_id: Request to approve
        approver: Project owner processing the request
        now: Transition timestamp (ISO 8601)
        requester: Requester profile, when known
        id_factory: Generator for the history record id

    Raises:
        NotFoundException: Unknown request
        ForbiddenException: Approver is not the owner, or is the requester
        ConflictException: Request is no longer pending
    """
    request = _process_join_request(project, request_id, approver)

    member = requester or User(id=request.userId, name=ANONYMOUS_NAME)
    approved = request.model_copy(update={
        "status": "approved",
        "processedAt": now,
        "processedBy": approver.id,
    })
    record = _history(project, "approved", approver, member.email or "", now, id_factory)

    logger.info(f"Join request {request_id} approved by {approver.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "members": _with_member(project, member),
            "joinRequests": _replace(project.joinRequests, approved),
            "history": [*project.history, record],
        }),
        entity=approved,
        history=record,
    )


def reject_join_request(
    project: Project,
    request_id: str,
    approver: User,
    now: str,
    reason: Optional[str] = None,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """Reject a pending join request. Members are unchanged."""
    request = _process_join_request(project, request_id, approver)

    rejected = request.model_copy(update={
        "status": "rejected",
        "processedAt": now,
        "processedBy": approver.id,
        "rejectionReason": reason,
    })
    record = _history(
        project, "rejected", approver, "", now, id_factory,
        metadata={"joinRequestId": request_id, "reason": reason},
    )

    logger.info(f"Join request {request_id} rejected by {approver.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "joinRequests": _replace(project.joinRequests, rejected),
            "history": [*project.history, record],
        }),
        entity=rejected,
        history=record,
    )


# ─────────────────────────────────────────────────────────────────
# Invitations
# ─────────────────────────────────────────────────────────────────


def validate_invitation(project: Project, inviter: User, email: Any) -> str:
    """
    Run every invitation precondition without building anything.

    Returns:
        Normalized invitee email

    Raises:
        ForbiddenException: Inviter is not a member
        ValidationException: Malformed email or self-invitation
        ConflictException: Pending invitation exists or invitee is a member
    """
    ensure_active(project)
    ensure_member(project, inviter.id)

    normalized = validate_invite_email(email)

    if inviter.email and normalized == inviter.email.strip().lower():
        raise ValidationException(message="You cannot invite yourself", code="SELF_INVITATION")

    if find_pending_invitation(project, normalized) is not None:
        raise ConflictException(
            message="An invitation is already pending for this email",
            code="DUPLICATE_INVITATION"
        )

    if any(m.email and m.email.lower() == normalized for m in project.members):
        raise ConflictException(message="Already a member", code="ALREADY_MEMBER")

    return normalized


def invite_member(
    project: Project,
    inviter: User,
    email: Any,
    now: str,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """Create a pending invitation and its "invited" history record."""
    normalized = validate_invitation(project, inviter, email)

    invitation = ProjectInvitation(
        id=id_factory(),
        projectId=project.id,
        inviterId=inviter.id,
        email=normalized,
        status=PENDING,
        invitedAt=now,
    )
    record = _history(
        project, "invited", inviter, normalized, now, id_factory,
        invitation_id=invitation.id,
    )

    logger.info(f"User {inviter.id} invited {normalized} to project {project.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "invitations": [*project.invitations, invitation],
            "history": [*project.history, record],
        }),
        entity=invitation,
        history=record,
    )


def accept_invitation(
    project: Project,
    invitation_id: str,
    user: User,
    now: str,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """
    Accept a pending invitation and add the user to members.

    Raises:
        NotFoundException: Unknown invitation
        ConflictException: Invitation is no longer pending
        ForbiddenException: Invitation was addressed to another email
    """
    ensure_active(project)
    invitation = find_invitation(project, invitation_id)
    _ensure_pending_invitation(invitation)

    _ensure_invitee(invitation, user)

    accepted = invitation.model_copy(update={"status": "accepted", "respondedAt": now})
    record = _history(
        project, "accepted", user, invitation.email, now, id_factory,
        invitation_id=invitation.id,
    )

    logger.info(f"Invitation {invitation_id} accepted by {user.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "members": _with_member(project, user),
            "invitations": _replace(project.invitations, accepted),
            "history": [*project.history, record],
        }),
        entity=accepted,
        history=record,
    )


def decline_invitation(
    project: Project,
    invitation_id: str,
    user: User,
    now: str,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """Decline a pending invitation. Members are unchanged."""
    ensure_active(project)
    invitation = find_invitation(project, invitation_id)
    _ensure_pending_invitation(invitation)
    _ensure_invitee(invitation, user)

    declined = invitation.model_copy(update={"status": "rejected", "respondedAt": now})
    record = _history(
        project, "rejected", user, invitation.email, now, id_factory,
        invitation_id=invitation.id,
    )

    logger.info(f"Invitation {invitation_id} declined by {user.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "invitations": _replace(project.invitations, declined),
            "history": [*project.history, record],
        }),
        entity=declined,
        history=record,
    )


def cancel_invitation(
    project: Project,
    invitation_id: str,
    actor: User,
    now: str,
    id_factory: IdFactory = new_id,
) -> LifecycleResult:
    """
    Cancel a pending invitation.

    Only the inviter or the project owner may cancel.
    """
    ensure_active(project)
    invitation = find_invitation(project, invitation_id)
    if actor.id not in (invitation.inviterId, project.createdBy):
        raise ForbiddenException(
            message="Only the inviter or the project owner can cancel an invitation",
            code="NOT_INVITER"
        )
    _ensure_pending_invitation(invitation)

    cancelled = invitation.model_copy(update={"status": "cancelled"})
    record = _history(
        project, "cancelled", actor, invitation.email, now, id_factory,
        invitation_id=invitation.id,
    )

    logger.info(f"Invitation {invitation_id} cancelled by {actor.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "invitations": _replace(project.invitations, cancelled),
            "history": [*project.history, record],
        }),
        entity=cancelled,
        history=record,
    )


# ─────────────────────────────────────────────────────────────────
# Leaving
# ─────────────────────────────────────────────────────────────────


def leave_project(project: Project, user_id: str) -> LifecycleResult:
    """
    Remove a member. Leaving a project you are not in changes nothing.

    Raises:
        ForbiddenException: The owner cannot leave their own project
        ConflictException: Project is archived
    """
    ensure_active(project)
    if not project.has_member(user_id):
        return LifecycleResult(project=project, changed=False)

    if project.createdBy == user_id:
        raise ForbiddenException(
            message="The project owner cannot leave the project",
            code="OWNER_CANNOT_LEAVE"
        )

    logger.info(f"User {user_id} left project {project.id}")
    return LifecycleResult(
        project=project.model_copy(update={
            "members": [m for m in project.members if m.id != user_id],
        }),
    )
