"""
Store actions.

Plain immutable records describing one state change each. The reducer
interprets them; nothing here has behavior.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from morningcheck.schemas.project import CheckIn, Project, ProjectInvitation, User


# ─────────────────────────────────────────────────────────────────
# Session
# ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Login:
    user: User


@dataclass(frozen=True)
class Logout:
    pass


@dataclass(frozen=True)
class UpdateProfile:
    """Merge profile fields into the current user."""
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SetCurrentUser:
    user: Optional[User]


# ─────────────────────────────────────────────────────────────────
# Projects
# ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AddProject:
    """Append a project and make it current."""
    project: Project


@dataclass(frozen=True)
class SetCurrentProjectId:
    project_id: Optional[str]


@dataclass(frozen=True)
class UpdateProject:
    """Merge fields into a project. id and visibilityType are ignored."""
    project_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReplaceProject:
    """Swap in a re-fetched project, or append it if unknown."""
    project: Project


@dataclass(frozen=True)
class RemoveProject:
    project_id: str


@dataclass(frozen=True)
class SetProjects:
    projects: List[Project] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────
# Check-ins
# ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AddCheckIn:
    project_id: str
    check_in: CheckIn


@dataclass(frozen=True)
class RemoveCheckIn:
    project_id: str
    check_in_id: str


# ─────────────────────────────────────────────────────────────────
# Membership
# ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InviteMember:
    project_id: str
    invitation: ProjectInvitation


@dataclass(frozen=True)
class AcceptInvitation:
    project_id: str
    invitation_id: str
    user: User
    responded_at: str


@dataclass(frozen=True)
class RemoveMember:
    project_id: str
    user_id: str


@dataclass(frozen=True)
class RevertProject:
    """
    Undo one optimistic change to a project.

    before and applied are the project just before and just after the
    change. Only what the change touched is undone, and only where nothing
    else has changed it since.
    """
    before: Project
    applied: Project


Action = Union[
    Login,
    Logout,
    UpdateProfile,
    SetCurrentUser,
    AddProject,
    SetCurrentProjectId,
    UpdateProject,
    ReplaceProject,
    RemoveProject,
    SetProjects,
    AddCheckIn,
    RemoveCheckIn,
    InviteMember,
    AcceptInvitation,
    RemoveMember,
    RevertProject,
]
