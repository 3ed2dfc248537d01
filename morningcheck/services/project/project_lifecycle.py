"""
Project lifecycle rules.

Creation, profile updates, archive/restore and soft delete. Visibility is
fixed at creation; soft delete is a one-way tombstone.
"""

import logging
import secrets
import string
from typing import Any, Dict

from pydantic import ValidationError

from common.utils.exceptions import ConflictException, ValidationException
from morningcheck.schemas.project import Project, User
from morningcheck.schemas.requests import CreateProjectRequest, UpdateProjectRequest
from morningcheck.services.membership.lifecycle import ensure_owner

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Random upper-case alphanumeric join code."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def _validation_errors(e: ValidationError) -> list:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors()
    ]


def validate_create(data: Dict[str, Any]) -> CreateProjectRequest:
    """
    Validate project creation input, generating an invite code if missing.

    Raises:
        ValidationException: Blank name, bad invite code or icon type
    """
    payload = dict(data)
    if not payload.get("inviteCode"):
        payload["inviteCode"] = generate_invite_code()
    try:
        return CreateProjectRequest(**payload)
    except ValidationError as e:
        raise ValidationException(
            message="Invalid project", code="VALIDATION_ERROR", errors=_validation_errors(e)
        )


def validate_update(project: Project, actor: User, data: Dict[str, Any]) -> UpdateProjectRequest:
    """
    Validate a project update by its owner.

    Raises:
        ForbiddenException: Actor is not the owner
        ValidationException: Invalid fields, or an attempt to change visibility
    """
    ensure_owner(project, actor.id)

    if "visibilityType" in data and data["visibilityType"] != project.visibilityType:
        raise ValidationException(
            message="Visibility cannot be changed after creation",
            code="VISIBILITY_IMMUTABLE"
        )

    fields = {k: v for k, v in data.items() if k != "visibilityType"}
    try:
        return UpdateProjectRequest(**fields)
    except ValidationError as e:
        raise ValidationException(
            message="Invalid project", code="VALIDATION_ERROR", errors=_validation_errors(e)
        )


def ensure_can_archive(project: Project, actor: User) -> None:
    ensure_owner(project, actor.id)
    if project.is_archived:
        raise ConflictException(message="Project is already archived", code="PROJECT_ARCHIVED")


def ensure_can_restore(project: Project, actor: User) -> None:
    ensure_owner(project, actor.id)
    if project.is_deleted:
        raise ConflictException(
            message="Deleted projects cannot be restored",
            code="PROJECT_DELETED"
        )
    if not project.is_archived:
        raise ConflictException(message="Project is not archived", code="PROJECT_NOT_ARCHIVED")


def ensure_can_delete(project: Project, actor: User) -> None:
    ensure_owner(project, actor.id)
    if project.is_deleted:
        raise ConflictException(message="Project is already deleted", code="PROJECT_DELETED")
