"""
Authentication module - Pluggable identity providers.
"""

from common.auth.base import Identity, IdentityProvider
from common.auth.jwt_auth import JWTIdentityProvider

__all__ = ["Identity", "IdentityProvider", "JWTIdentityProvider"]
