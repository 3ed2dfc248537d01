"""
Common library for reusable infrastructure components.

- database: Async MongoDB connection through Motor
- auth: Pluggable identity providers (JWT)
- utils: Typed exceptions and calendar day helpers
- config: Base settings class
"""

from common.database import MongoDB
from common.auth import Identity, IdentityProvider, JWTIdentityProvider
from common.utils import (
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ValidationException,
    RemoteCallException,
    ServiceUnavailableException,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Auth
    "Identity",
    "IdentityProvider",
    "JWTIdentityProvider",
    # Utils
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "RemoteCallException",
    "ServiceUnavailableException",
    # Config
    "BaseAppSettings",
]
