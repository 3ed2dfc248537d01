"""
Raw row shapes returned by the persistence service.

Every field that the service may omit is declared Optional. Nested
collections accept anything: a missing or non-list value becomes an empty
list, and elements that do not validate are dropped one by one, so a
syntactically valid payload always produces a ProjectRow.
"""

import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound="RowModel")


class RowModel(BaseModel):
    """Base for raw rows: ignores unknown columns, stringifies timestamps."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def stringify_timestamps(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: value.isoformat() if isinstance(value, (datetime, date)) else value
                for key, value in data.items()
            }
        return data


def coerce_rows(value: Any, row_cls: Type[RowT]) -> List[RowT]:
    """
    Validate a nested collection element by element.

    Args:
        value: Whatever the service sent for the collection
        row_cls: Row model for each element

    Returns:
        The elements that validated; malformed ones are skipped
    """
    if not isinstance(value, list):
        return []

    rows = []
    for item in value:
        if isinstance(item, row_cls):
            rows.append(item)
            continue
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object {row_cls.__name__} element: {item!r}")
            continue
        try:
            rows.append(row_cls.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Skipping malformed {row_cls.__name__}: {e.error_count()} errors")
    return rows


class UserRow(RowModel):
    """Profile columns nested under a membership row."""
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None


class MemberRow(RowModel):
    """Membership row with its optional nested profile."""
    user_id: str
    user: Optional[UserRow] = None

    @field_validator("user", mode="before")
    @classmethod
    def drop_malformed_user(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, UserRow)) else None


class CheckInRow(RowModel):
    id: str
    user_id: str
    check_in_date: str
    condition: int
    note: Optional[str] = None
    created_at: str


class InvitationRow(RowModel):
    id: str
    project_id: Optional[str] = None
    inviter_id: Optional[str] = None
    invitee_email: str
    status: str
    invited_at: Optional[str] = None
    responded_at: Optional[str] = None


class JoinRequestRow(RowModel):
    id: str
    project_id: Optional[str] = None
    user_id: str
    status: str
    requested_at: Optional[str] = None
    processed_at: Optional[str] = None
    processed_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class HistoryRow(RowModel):
    id: str
    project_id: Optional[str] = None
    invitation_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    invitee_email: Optional[str] = None
    action: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def drop_malformed_metadata(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None


class StatsRow(RowModel):
    """Daily snapshot materialized by the service."""
    stats_date: str
    member_count: Optional[int] = None
    check_in_count: Optional[int] = None
    avg_condition: Optional[float] = None
    participation_rate: Optional[int] = None


class ProjectRow(RowModel):
    """Project row with nested collections."""
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    icon_type: Optional[str] = None
    invite_code: Optional[str] = None
    visibility_type: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None
    archived_at: Optional[str] = None
    members: List[MemberRow] = []
    check_ins: List[CheckInRow] = []
    invitations: List[InvitationRow] = []
    join_requests: List[JoinRequestRow] = []
    history: List[HistoryRow] = []
    stats: List[StatsRow] = []

    @field_validator("members", mode="before")
    @classmethod
    def coerce_members(cls, v: Any) -> List[MemberRow]:
        return coerce_rows(v, MemberRow)

    @field_validator("check_ins", mode="before")
    @classmethod
    def coerce_check_ins(cls, v: Any) -> List[CheckInRow]:
        return coerce_rows(v, CheckInRow)

    @field_validator("invitations", mode="before")
    @classmethod
    def coerce_invitations(cls, v: Any) -> List[InvitationRow]:
        return coerce_rows(v, InvitationRow)

    @field_validator("join_requests", mode="before")
    @classmethod
    def coerce_join_requests(cls, v: Any) -> List[JoinRequestRow]:
        return coerce_rows(v, JoinRequestRow)

    @field_validator("history", mode="before")
    @classmethod
    def coerce_history(cls, v: Any) -> List[HistoryRow]:
        return coerce_rows(v, HistoryRow)

    @field_validator("stats", mode="before")
    @classmethod
    def coerce_stats(cls, v: Any) -> List[StatsRow]:
        return coerce_rows(v, StatsRow)

    @field_validator(
        "id", "name", "description", "icon", "icon_type", "invite_code",
        "visibility_type", "created_by", "created_at", "updated_at",
        "deleted_at", "archived_at",
        mode="before",
    )
    @classmethod
    def drop_non_scalar(cls, v: Any) -> Any:
        return v if isinstance(v, (str, int, float)) and not isinstance(v, bool) else None

    @classmethod
    def parse(cls, data: Any) -> "ProjectRow":
        """Build a ProjectRow from any payload; non-objects give an empty row."""
        if isinstance(data, ProjectRow):
            return data
        if not isinstance(data, dict):
            return cls()
        return cls.model_validate(data)
