"""
Pydantic models for validating lifecycle inputs.

Every input is checked against these models before any remote write.
"""

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, field_validator

from morningcheck.schemas.project import IconType, VisibilityType


class CreateProjectRequest(BaseModel):
    """Input for creating a project."""
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    icon: Optional[str] = None
    iconType: Optional[IconType] = None
    inviteCode: str = Field(..., pattern=r"^[A-Za-z0-9]{4,12}$")
    visibilityType: VisibilityType = "invite"

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be blank")
        return stripped

    @field_validator("inviteCode")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()


class UpdateProjectRequest(BaseModel):
    """Input for updating a project. Visibility cannot change after creation."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    icon: Optional[str] = None
    iconType: Optional[IconType] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be blank")
        return stripped


class CheckInRequest(BaseModel):
    """Input for a daily check-in."""
    condition: int = Field(..., ge=0, le=10)
    note: str = Field("", max_length=500)

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: str) -> str:
        return v.strip()


class InviteMemberRequest(BaseModel):
    """Input for inviting someone by email."""
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class RejectJoinRequest(BaseModel):
    """Input for rejecting a join request."""
    reason: Optional[str] = Field(None, max_length=200)
