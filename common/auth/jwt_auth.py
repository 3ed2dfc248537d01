"""
JWT identity provider.

Verifies the access token issued by the hosted auth service on sign-in.
The token carries the user id in "sub", the email in "email" and profile
fields in "user_metadata".

Example:
    provider = JWTIdentityProvider(secret="your-jwt-secret")
    identity = await provider.verify_token(token)
    print(identity.user_id)
"""

import logging
from typing import Any, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError

from common.auth.base import Identity, IdentityProvider
from common.utils.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


class JWTIdentityProvider(IdentityProvider):
    """
    Identity provider backed by signed JWT access tokens.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = "authenticated",
    ):
        """
        Initialize JWT identity provider.

        Args:
            secret: Secret key used to sign access tokens
            algorithm: JWT algorithm (default: HS256)
            audience: Expected "aud" claim, None to skip the check
        """
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def decode(self, token: str) -> Dict[str, Any]:
        """Decode and verify a token, returning its claims."""
        options = {} if self.audience else {"verify_aud": False}
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except ExpiredSignatureError:
            raise UnauthorizedException(message="Token has expired", code="TOKEN_EXPIRED")
        except JWTError as e:
            logger.warning(f"Rejected sign-in token: {e}")
            raise UnauthorizedException(message="Invalid token", code="INVALID_TOKEN")

    async def verify_token(self, token: str) -> Identity:
        """Verify a token and build the identity from its claims."""
        claims = self.decode(token)

        user_id = claims.get("sub")
        if not user_id:
            raise UnauthorizedException(message="Token has no subject", code="INVALID_TOKEN")

        metadata = claims.get("user_metadata") or {}
        email = claims.get("email") or None

        name = (
            metadata.get("display_name")
            or metadata.get("full_name")
            or metadata.get("name")
        )
        if not name and email:
            name = email.split("@")[0]

        return Identity(
            user_id=str(user_id),
            email=email.lower() if email else None,
            name=name,
            avatar_url=metadata.get("avatar_url"),
        )
