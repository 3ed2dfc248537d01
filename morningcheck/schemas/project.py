"""
Pydantic models for the project aggregate.

Canonical in-memory entities produced by the normalizer and held by the
store. All models are frozen: changes go through model_copy(update=...)
so readers never see a half-applied mutation.
"""

from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field


VisibilityType = Literal["public", "request", "invite"]
IconType = Literal["emoji", "image"]
JoinRequestStatus = Literal["pending", "approved", "rejected"]
InvitationStatus = Literal["pending", "accepted", "rejected", "cancelled"]
HistoryAction = Literal["invited", "cancelled", "accepted", "rejected", "requested", "approved"]

VISIBILITY_TYPES = ("public", "request", "invite")
ICON_TYPES = ("emoji", "image")

ANONYMOUS_NAME = "anonymous"


class User(BaseModel):
    """Group member or signed-in user."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: Optional[str] = None
    profileImageUrl: Optional[str] = None
    bio: Optional[str] = None


class CheckIn(BaseModel):
    """One user's condition score and note for one day."""
    model_config = ConfigDict(frozen=True)

    id: str
    userId: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    condition: int = Field(..., ge=0, le=10)
    note: str = ""
    createdAt: str


class ProjectJoinRequest(BaseModel):
    """Request to join a project that requires approval."""
    model_config = ConfigDict(frozen=True)

    id: str
    projectId: str
    userId: str
    status: JoinRequestStatus
    requestedAt: str
    processedAt: Optional[str] = None
    processedBy: Optional[str] = None
    rejectionReason: Optional[str] = None


class ProjectInvitation(BaseModel):
    """Invitation addressed to an email."""
    model_config = ConfigDict(frozen=True)

    id: str
    projectId: str
    inviterId: str
    email: str
    status: InvitationStatus
    invitedAt: str
    respondedAt: Optional[str] = None


class ProjectInvitationHistory(BaseModel):
    """Append-only audit record for one lifecycle transition."""
    model_config = ConfigDict(frozen=True)

    id: str
    projectId: str
    invitationId: Optional[str] = None
    actorId: str
    actorName: str
    inviteeEmail: str
    action: HistoryAction
    metadata: Optional[Dict[str, Any]] = None
    createdAt: str


class DailyStatsSnapshot(BaseModel):
    """Precomputed daily aggregate. Absent fields fall back to live values."""
    model_config = ConfigDict(frozen=True)

    statsDate: str
    memberCount: Optional[int] = None
    checkInCount: Optional[int] = None
    avgCondition: Optional[float] = None
    participationRate: Optional[int] = None


class ProjectStats(BaseModel):
    """Team metrics for one reference day."""
    model_config = ConfigDict(frozen=True)

    memberCount: int = 0
    checkInCount: int = 0
    avgCondition: float = 0.0
    participationRate: int = 0
    memberCountChange: int = 0


class LastCheckIn(BaseModel):
    """Who checked in most recently."""
    model_config = ConfigDict(frozen=True)

    userDisplayName: str
    userAvatarUrl: Optional[str] = None
    checkInTime: str


class Project(BaseModel):
    """Project aggregate: members, check-ins and onboarding state."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    iconType: Optional[IconType] = None
    inviteCode: str = ""
    visibilityType: VisibilityType = "invite"
    members: List[User] = Field(default_factory=list)
    checkIns: List[CheckIn] = Field(default_factory=list)
    invitations: List[ProjectInvitation] = Field(default_factory=list)
    joinRequests: List[ProjectJoinRequest] = Field(default_factory=list)
    history: List[ProjectInvitationHistory] = Field(default_factory=list)
    dailyStats: List[DailyStatsSnapshot] = Field(default_factory=list)
    createdBy: str = ""
    createdAt: str = ""
    updatedAt: Optional[str] = None
    deletedAt: Optional[str] = None
    archivedAt: Optional[str] = None
    stats: ProjectStats = Field(default_factory=ProjectStats)
    lastCheckIn: Optional[LastCheckIn] = None

    def has_member(self, user_id: str) -> bool:
        """Check whether a user id is in members."""
        return any(m.id == user_id for m in self.members)

    def find_member(self, user_id: str) -> Optional[User]:
        """Get a member by id."""
        return next((m for m in self.members if m.id == user_id), None)

    @property
    def is_deleted(self) -> bool:
        return self.deletedAt is not None

    @property
    def is_archived(self) -> bool:
        return self.archivedAt is not None


class PersonalSummary(BaseModel):
    """One user's aggregates inside a project."""
    model_config = ConfigDict(frozen=True)

    avgCondition: float
    streak: int
    total: int


class ConditionPoint(BaseModel):
    """One day on a condition chart; 0 when the user did not check in."""
    model_config = ConfigDict(frozen=True)

    date: str
    condition: int
