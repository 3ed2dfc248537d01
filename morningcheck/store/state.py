"""
Client state held by the store.

One immutable AppState; every mutation produces a new instance.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from morningcheck.schemas.project import Project, User

logger = logging.getLogger(__name__)


class AppState(BaseModel):
    """Signed-in user, their projects and the selected project."""
    model_config = ConfigDict(frozen=True)

    currentUser: Optional[User] = None
    isAuthenticated: bool = False
    projects: List[Project] = Field(default_factory=list)
    currentProjectId: Optional[str] = None

    def find_project(self, project_id: Optional[str]) -> Optional[Project]:
        if project_id is None:
            return None
        return next((p for p in self.projects if p.id == project_id), None)

    @property
    def current_project(self) -> Optional[Project]:
        return self.find_project(self.currentProjectId)

    def to_snapshot(self) -> dict:
        """Serialize to a JSON-compatible dict for the persisted cache."""
        return self.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, data: Any) -> "AppState":
        """
        Restore from a persisted snapshot.

        An unreadable snapshot yields the initial state instead of failing
        startup.
        """
        if not isinstance(data, dict):
            return cls()
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable store snapshot: {e.error_count()} errors")
            return cls()
