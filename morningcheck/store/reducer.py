"""
Pure state reducer.

reduce(state, action, today) -> new state. No I/O, no clock: "today" is
passed in so derived stats can be recomputed when members or check-ins
change. An action that changes nothing returns the same state object.
"""

import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from common.utils.exceptions import ValidationException
from morningcheck.schemas.project import Project, User
from morningcheck.services.project.normalizer import refresh_derived
from morningcheck.store.actions import (
    AcceptInvitation,
    Action,
    AddCheckIn,
    AddProject,
    InviteMember,
    Login,
    Logout,
    RemoveCheckIn,
    RemoveMember,
    RemoveProject,
    ReplaceProject,
    RevertProject,
    SetCurrentProjectId,
    SetCurrentUser,
    SetProjects,
    UpdateProfile,
    UpdateProject,
)
from morningcheck.store.state import AppState

logger = logging.getLogger(__name__)

IMMUTABLE_PROJECT_FIELDS = ("id", "visibilityType", "stats", "lastCheckIn")
ID_LIST_FIELDS = ("members", "checkIns", "invitations", "joinRequests", "history")
DERIVED_SOURCE_FIELDS = ("members", "checkIns", "dailyStats")


def _map_project(
    state: AppState,
    project_id: str,
    change: Callable[[Project], Project]
) -> AppState:
    """Apply change to one project; unknown ids leave the state as is."""
    if state.find_project(project_id) is None:
        return state
    return state.model_copy(update={
        "projects": [change(p) if p.id == project_id else p for p in state.projects]
    })


def _merge(model_cls, current, changes: Dict[str, Any], label: str):
    try:
        return model_cls.model_validate({**current.model_dump(), **changes})
    except ValidationError as e:
        raise ValidationException(
            message=f"Invalid {label} update",
            code="VALIDATION_ERROR",
            errors=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ],
        )


# ─────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────


def _login(state: AppState, action: Login, today: str) -> AppState:
    return state.model_copy(update={"currentUser": action.user, "isAuthenticated": True})


def _logout(state: AppState, action: Logout, today: str) -> AppState:
    return state.model_copy(update={
        "currentUser": None,
        "isAuthenticated": False,
        "currentProjectId": None,
    })


def _update_profile(state: AppState, action: UpdateProfile, today: str) -> AppState:
    if state.currentUser is None:
        return state
    changes = {k: v for k, v in action.changes.items() if k != "id"}
    return state.model_copy(update={
        "currentUser": _merge(User, state.currentUser, changes, "profile")
    })


def _set_current_user(state: AppState, action: SetCurrentUser, today: str) -> AppState:
    return state.model_copy(update={"currentUser": action.user})


def _add_project(state: AppState, action: AddProject, today: str) -> AppState:
    projects = [p for p in state.projects if p.id != action.project.id]
    return state.model_copy(update={
        "projects": [*projects, action.project],
        "currentProjectId": action.project.id,
    })


def _set_current_project_id(state: AppState, action: SetCurrentProjectId, today: str) -> AppState:
    return state.model_copy(update={"currentProjectId": action.project_id})


def _update_project(state: AppState, action: UpdateProject, today: str) -> AppState:
    changes = {
        k: v for k, v in action.changes.items()
        if k not in IMMUTABLE_PROJECT_FIELDS
    }
    if not changes:
        return state

    def change(project: Project) -> Project:
        updated = _merge(Project, project, changes, "project")
        if "members" in changes or "checkIns" in changes:
            updated = refresh_derived(updated, today)
        return updated

    return _map_project(state, action.project_id, change)


def _replace_project(state: AppState, action: ReplaceProject, today: str) -> AppState:
    if state.find_project(action.project.id) is None:
        return state.model_copy(update={"projects": [*state.projects, action.project]})
    return _map_project(state, action.project.id, lambda _: action.project)


def _remove_project(state: AppState, action: RemoveProject, today: str) -> AppState:
    if state.find_project(action.project_id) is None:
        return state
    current = None if state.currentProjectId == action.project_id else state.currentProjectId
    return state.model_copy(update={
        "projects": [p for p in state.projects if p.id != action.project_id],
        "currentProjectId": current,
    })


def _set_projects(state: AppState, action: SetProjects, today: str) -> AppState:
    return state.model_copy(update={"projects": list(action.projects)})


def _add_check_in(state: AppState, action: AddCheckIn, today: str) -> AppState:
    return _map_project(
        state,
        action.project_id,
        lambda p: refresh_derived(
            p.model_copy(update={"checkIns": [*p.checkIns, action.check_in]}), today
        ),
    )


def _remove_check_in(state: AppState, action: RemoveCheckIn, today: str) -> AppState:
    project = state.find_project(action.project_id)
    if project is None or not any(c.id == action.check_in_id for c in project.checkIns):
        return state
    return _map_project(
        state,
        action.project_id,
        lambda p: refresh_derived(
            p.model_copy(update={
                "checkIns": [c for c in p.checkIns if c.id != action.check_in_id]
            }),
            today,
        ),
    )


def _invite_member(state: AppState, action: InviteMember, today: str) -> AppState:
    return _map_project(
        state,
        action.project_id,
        lambda p: p.model_copy(update={"invitations": [*p.invitations, action.invitation]}),
    )


def _accept_invitation(state: AppState, action: AcceptInvitation, today: str) -> AppState:
    def change(project: Project) -> Project:
        invitations = [
            i.model_copy(update={"status": "accepted", "respondedAt": action.responded_at})
            if i.id == action.invitation_id else i
            for i in project.invitations
        ]
        members = project.members
        if not project.has_member(action.user.id):
            members = [*members, action.user]
        return refresh_derived(
            project.model_copy(update={"members": members, "invitations": invitations}),
            today,
        )

    return _map_project(state, action.project_id, change)


def _remove_member(state: AppState, action: RemoveMember, today: str) -> AppState:
    project = state.find_project(action.project_id)
    if project is None or not project.has_member(action.user_id):
        return state
    return _map_project(
        state,
        action.project_id,
        lambda p: refresh_derived(
            p.model_copy(update={"members": [m for m in p.members if m.id != action.user_id]}),
            today,
        ),
    )


def _revert_items(current: list, before: list, applied: list) -> list:
    """Three-way undo over an id-keyed list."""
    before_by_id = {item.id: item for item in before}
    applied_by_id = {item.id: item for item in applied}

    items = []
    for item in current:
        original = before_by_id.get(item.id)
        if original is None:
            # Added by the change being undone
            if item.id not in applied_by_id:
                items.append(item)
            continue
        changed = applied_by_id.get(item.id)
        if changed is not None and changed != original and item == changed:
            items.append(original)
        else:
            items.append(item)

    # Put back what the change removed, at its old position
    present = {item.id for item in items}
    for index, item in enumerate(before):
        if item.id not in applied_by_id and item.id not in present:
            items.insert(min(index, len(items)), item)
    return items


def _revert_project(state: AppState, action: RevertProject, today: str) -> AppState:
    before, applied = action.before, action.applied
    current = state.find_project(before.id)
    if current is None:
        return state

    updates: Dict[str, Any] = {}
    for name in Project.model_fields:
        old, new, now = getattr(before, name), getattr(applied, name), getattr(current, name)
        if name in ID_LIST_FIELDS:
            reverted = _revert_items(now, old, new)
            if reverted != now:
                updates[name] = reverted
        elif new != old and now == new:
            updates[name] = old

    if not updates:
        return state

    reverted = current.model_copy(update=updates)
    if any(getattr(reverted, f) != getattr(before, f) for f in DERIVED_SOURCE_FIELDS):
        reverted = refresh_derived(reverted, today)
    return _map_project(state, before.id, lambda _: reverted)


_HANDLERS: Dict[type, Callable[[AppState, Any, str], AppState]] = {
    Login: _login,
    Logout: _logout,
    UpdateProfile: _update_profile,
    SetCurrentUser: _set_current_user,
    AddProject: _add_project,
    SetCurrentProjectId: _set_current_project_id,
    UpdateProject: _update_project,
    ReplaceProject: _replace_project,
    RemoveProject: _remove_project,
    SetProjects: _set_projects,
    AddCheckIn: _add_check_in,
    RemoveCheckIn: _remove_check_in,
    InviteMember: _invite_member,
    AcceptInvitation: _accept_invitation,
    RemoveMember: _remove_member,
    RevertProject: _revert_project,
}


def reduce(state: AppState, action: Action, today: str) -> AppState:
    """
    Compute the next state.

    Args:
        state: Current state (never mutated)
        action: One of the store actions
        today: Reference day (YYYY-MM-DD) for derived stats

    Returns:
        New state, or the same object when nothing changed

    Raises:
        TypeError: Unknown action type
        ValidationException: UpdateProject/UpdateProfile with invalid values
    """
    handler: Optional[Callable] = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown store action: {type(action).__name__}")
    return handler(state, action, today)
