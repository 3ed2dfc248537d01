"""
MorningCheck Schemas.

Pydantic models for the project aggregate, raw rows and inputs.
"""

from morningcheck.schemas.project import *
from morningcheck.schemas.requests import *
from morningcheck.schemas.rows import *
