"""
Project pipeline functions.

Stateless orchestration for project loading and the project lifecycle:
validate locally, call the persistence service, re-fetch, re-normalize and
dispatch the result to the store.
"""

import logging
from typing import Any, Dict, List, Optional

from common.utils.dates import parse_timestamp
from common.utils.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from morningcheck.schemas.project import Project, User
from morningcheck.services.persistence.base import PersistenceService
from morningcheck.services.project.normalizer import normalize_project, normalize_projects
from morningcheck.services.project.project_lifecycle import (
    ensure_can_archive,
    ensure_can_delete,
    ensure_can_restore,
    validate_create,
    validate_update,
)
from morningcheck.store.actions import (
    AddProject,
    RemoveProject,
    ReplaceProject,
    SetProjects,
    UpdateProject,
)
from morningcheck.store.store import Store

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────


def require_user(store: Store) -> User:
    """
    Get the signed-in user.

    Raises:
        UnauthorizedException: Nobody is signed in
    """
    user = store.state.currentUser
    if user is None or not store.state.isAuthenticated:
        raise UnauthorizedException(message="Sign in required", code="NOT_AUTHENTICATED")
    return user


def require_project(store: Store, project_id: str) -> Project:
    """
    Get a cached project.

    Raises:
        NotFoundException: Project is not in the store
    """
    project = store.state.find_project(project_id)
    if project is None:
        raise NotFoundException(message="Project not found", code="PROJECT_NOT_FOUND")
    return project


def _created_key(project: Project) -> float:
    created = parse_timestamp(project.createdAt)
    return created.timestamp() if created else float("-inf")


def _extract_id(result: Any) -> Optional[str]:
    if isinstance(result, list):
        result = result[0] if result else None
    if isinstance(result, dict):
        result = result.get("id")
    return str(result) if result else None


async def resync_project(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Optional[Project]:
    """
    Re-fetch one project and replace the cached copy.

    The remote copy wins. Deleted or missing projects are removed from the
    store. History loaded separately is kept when the row carries none.

    Returns:
        The fresh project, or None if it no longer exists
    """
    user = store.state.currentUser
    row = await persistence.get_project_by_id(project_id, auth_id=user.id if user else None)

    if row is None:
        logger.info(f"Project {project_id} no longer available, removing from store")
        await store.dispatch(RemoveProject(project_id=project_id))
        return None

    project = normalize_project(row, store.today())
    if project.is_deleted:
        await store.dispatch(RemoveProject(project_id=project_id))
        return None

    cached = store.state.find_project(project_id)
    if cached is not None and "history" not in row:
        project = project.model_copy(update={"history": cached.history})

    await store.dispatch(ReplaceProject(project=project))
    return project


# ─────────────────────────────────────────────────────────────────
# Loading
# ─────────────────────────────────────────────────────────────────


async def load_projects_pipeline(
    persistence: PersistenceService,
    store: Store
) -> List[Project]:
    """
    Load every listable project into the store, newest first.

    Returns:
        Projects now held by the store
    """
    user = store.state.currentUser
    rows = await persistence.get_public_projects(auth_id=user.id if user else None)

    projects = [p for p in normalize_projects(rows, store.today()) if not p.is_deleted]
    projects.sort(key=_created_key, reverse=True)

    await store.dispatch(SetProjects(projects=projects))
    logger.info(f"Loaded {len(projects)} projects")
    return projects


async def load_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Project:
    """
    Load one project by id.

    Raises:
        NotFoundException: Project does not exist or was deleted
    """
    project = await resync_project(persistence, store, project_id)
    if project is None:
        raise NotFoundException(message="Project not found", code="PROJECT_NOT_FOUND")
    return project


# ─────────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────────


async def create_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    data: Dict[str, Any]
) -> Project:
    """
    Create a project owned by the signed-in user.

    Args:
        persistence: Remote persistence service
        store: Client state store
        data: name, description, icon, iconType, inviteCode, visibilityType

    Returns:
        The created project, now current in the store

    Raises:
        UnauthorizedException: Nobody is signed in
        ValidationException: Invalid input
        ConflictException: Invite code already used by a cached project
    """
    user = require_user(store)
    request = validate_create(data)

    if any(p.inviteCode.upper() == request.inviteCode for p in store.state.projects):
        raise ConflictException(
            message="Invite code is already in use",
            code="DUPLICATE_INVITE_CODE"
        )

    result = await persistence.create_project(
        name=request.name,
        created_by=user.id,
        invite_code=request.inviteCode,
        visibility_type=request.visibilityType,
        description=request.description,
        icon=request.icon,
        icon_type=request.iconType,
    )

    project_id = _extract_id(result)
    row = await persistence.get_project_by_id(project_id, auth_id=user.id) if project_id else None
    if row is None:
        raise NotFoundException(message="Created project could not be loaded", code="PROJECT_NOT_FOUND")

    project = normalize_project(row, store.today())
    await store.dispatch(AddProject(project=project))

    logger.info(f"Project {project.id} created by {user.id}")
    return project


async def update_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str,
    changes: Dict[str, Any]
) -> Project:
    """
    Update a project's profile fields with an optimistic local change.

    Raises:
        ForbiddenException: Caller is not the owner
        ValidationException: Invalid fields or a visibility change
    """
    user = require_user(store)
    project = require_project(store, project_id)
    request = validate_update(project, user, changes)
    fields = request.model_dump(exclude_unset=True)

    await store.optimistic(
        UpdateProject(project_id=project_id, changes=fields),
        lambda: persistence.update_project(project_id, fields),
    )

    return await resync_project(persistence, store, project_id) or store.state.find_project(project_id)


async def delete_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> None:
    """Soft-delete a project. Irreversible; the project leaves the store."""
    user = require_user(store)
    project = require_project(store, project_id)
    ensure_can_delete(project, user)

    await persistence.soft_delete_project(project_id)
    await store.dispatch(RemoveProject(project_id=project_id))
    logger.info(f"Project {project_id} deleted by {user.id}")


async def archive_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Optional[Project]:
    """Archive a project. Archived projects are read-only until restored."""
    user = require_user(store)
    ensure_can_archive(require_project(store, project_id), user)

    await persistence.archive_project(project_id)
    logger.info(f"Project {project_id} archived by {user.id}")
    return await resync_project(persistence, store, project_id)


async def restore_project_pipeline(
    persistence: PersistenceService,
    store: Store,
    project_id: str
) -> Optional[Project]:
    """Restore an archived project."""
    user = require_user(store)
    ensure_can_restore(require_project(store, project_id), user)

    await persistence.restore_project(project_id)
    logger.info(f"Project {project_id} restored by {user.id}")
    return await resync_project(persistence, store, project_id)


async def upload_icon_pipeline(
    persistence: PersistenceService,
    store: Store,
    content: bytes,
    filename: str,
    content_type: Optional[str] = None
) -> str:
    """
    Upload a project icon image for the signed-in user.

    Returns:
        Public URL to use as the project icon with iconType "image"
    """
    user = require_user(store)
    return await persistence.upload_project_icon(
        content=content,
        filename=filename,
        user_id=user.id,
        content_type=content_type,
    )
