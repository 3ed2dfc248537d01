"""
Check-in recording rules.

One check-in per user per day. Submitting again for a day that already
has a check-in is rejected; the user cancels the existing one first.
"""

import logging
import uuid
from typing import Callable

from pydantic import ValidationError

from common.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from morningcheck.schemas.project import CheckIn, Project
from morningcheck.schemas.requests import CheckInRequest
from morningcheck.services.membership.lifecycle import ensure_active, ensure_member

logger = logging.getLogger(__name__)


def validate_check_in(condition, note) -> CheckInRequest:
    """
    Validate a check-in input.

    Raises:
        ValidationException: Condition outside 0-10 or note too long
    """
    try:
        return CheckInRequest(condition=condition, note=note or "")
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationException(message="Invalid check-in", code="VALIDATION_ERROR", errors=errors)


def find_check_in(project: Project, user_id: str, day: str):
    """Get a user's check-in for a day, if any."""
    return next((c for c in project.checkIns if c.userId == user_id and c.date == day), None)


def record_check_in(
    project: Project,
    user_id: str,
    condition,
    note,
    day: str,
    now: str,
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> CheckIn:
    """
    Build today's check-in for a member after checking every rule.

    Args:
        project: Current project
        user_id: Member checking in
        condition: Score 0-10
        note: Free text, may be empty
        day: Calendar day of the check-in (YYYY-MM-DD)
        now: Creation timestamp (ISO 8601)
        id_factory: Generator for the check-in id

    Returns:
        The new CheckIn (not yet part of the project)

    Raises:
        ValidationException: Invalid condition or note
        ForbiddenException: User is not a member
        ConflictException: User already checked in that day
    """
    ensure_active(project)
    ensure_member(project, user_id)
    request = validate_check_in(condition, note)

    if find_check_in(project, user_id, day) is not None:
        raise ConflictException(
            message="Already checked in today",
            code="ALREADY_CHECKED_IN"
        )

    return CheckIn(
        id=id_factory(),
        userId=user_id,
        date=day,
        condition=request.condition,
        note=request.note,
        createdAt=now,
    )


def ensure_cancellable(project: Project, check_in_id: str, user_id: str) -> CheckIn:
    """
    Check that a check-in exists and belongs to the user cancelling it.

    Raises:
        NotFoundException: Unknown check-in
        ForbiddenException: Check-in belongs to someone else
    """
    check_in = next((c for c in project.checkIns if c.id == check_in_id), None)
    if check_in is None:
        raise NotFoundException(message="Check-in not found", code="CHECKIN_NOT_FOUND")
    if check_in.userId != user_id:
        raise ForbiddenException(
            message="You can only cancel your own check-in",
            code="NOT_CHECKIN_OWNER"
        )
    return check_in
