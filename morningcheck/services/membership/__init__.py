"""
Membership System

Public join, request-to-join with approval, and email invitations.
"""

from morningcheck.services.membership.lifecycle import (
    LifecycleResult,
    join_public,
    request_to_join,
    approve_join_request,
    reject_join_request,
    invite_member,
    accept_invitation,
    decline_invitation,
    cancel_invitation,
    leave_project,
    find_by_invite_code,
)

__all__ = [
    "LifecycleResult",
    "join_public",
    "request_to_join",
    "approve_join_request",
    "reject_join_request",
    "invite_member",
    "accept_invitation",
    "decline_invitation",
    "cancel_invitation",
    "leave_project",
    "find_by_invite_code",
]
