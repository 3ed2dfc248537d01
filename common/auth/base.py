"""
Abstract identity provider interface.

Defines the contract for turning a sign-in token into a trusted identity.
The engine never inspects the token itself; it only consumes the
resulting user id, email and display name.

Example:
    from common.auth import IdentityProvider, JWTIdentityProvider

    def get_identity_provider(settings) -> IdentityProvider:
        return JWTIdentityProvider(secret=settings.JWT_SECRET)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Identity:
    """Authenticated user as reported by the identity provider."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class IdentityProvider(ABC):
    """
    Abstract identity provider.

    Implement this interface for different sign-in backends.
    """

    @abstractmethod
    async def verify_token(self, token: str) -> Identity:
        """
        Verify a sign-in token.

        Args:
            token: Access token handed over by the sign-in flow

        Returns:
            The authenticated identity

        Raises:
            UnauthorizedException: If the token is invalid or expired
        """
        pass
