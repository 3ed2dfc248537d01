"""
Auth pipeline functions.

Stateless orchestration for signing in and out of the client store.
"""

import logging

from common.auth.base import IdentityProvider
from morningcheck.schemas.project import ANONYMOUS_NAME, User
from morningcheck.services.persistence.base import PersistenceService
from morningcheck.store.actions import Login, Logout, SetProjects
from morningcheck.store.store import Store

logger = logging.getLogger(__name__)


async def sign_in_pipeline(
    identity_provider: IdentityProvider,
    persistence: PersistenceService,
    store: Store,
    token: str
) -> User:
    """
    Orchestrates sign-in.

    Args:
        identity_provider: Verifies the access token
        persistence: Remote persistence service; acts as the user afterwards
        store: Client state store
        token: Access token from the hosted auth service

    Returns:
        The signed-in user

    Raises:
        UnauthorizedException: Token invalid or expired
    """
    identity = await identity_provider.verify_token(token)

    user = User(
        id=identity.user_id,
        name=identity.name or ANONYMOUS_NAME,
        email=identity.email,
        profileImageUrl=identity.avatar_url,
    )

    persistence.set_access_token(token)
    await store.dispatch(Login(user=user))

    logger.info(f"User {user.id} signed in")
    return user


async def sign_out_pipeline(
    persistence: PersistenceService,
    store: Store
) -> None:
    """Clear the session and the cached projects."""
    user = store.state.currentUser

    persistence.set_access_token(None)
    await store.dispatch(Logout())
    await store.dispatch(SetProjects(projects=[]))

    if user:
        logger.info(f"User {user.id} signed out")
