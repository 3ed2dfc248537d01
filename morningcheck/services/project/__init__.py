"""
Project System

Row normalization and project lifecycle rules.
"""

from morningcheck.services.project.normalizer import (
    normalize_project,
    normalize_projects,
    project_to_row,
    refresh_derived,
)
from morningcheck.services.project.project_lifecycle import (
    generate_invite_code,
    validate_create,
    validate_update,
)

__all__ = [
    "normalize_project",
    "normalize_projects",
    "project_to_row",
    "refresh_derived",
    "generate_invite_code",
    "validate_create",
    "validate_update",
]
