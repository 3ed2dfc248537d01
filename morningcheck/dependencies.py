"""
Service wiring for MorningCheck.

Provides dependency injection for the store, the persistence client and
the identity provider. Call init_services() once at startup.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import IdentityProvider, JWTIdentityProvider
from common.database import MongoDB, set_main_database
from morningcheck.config import Settings, settings as default_settings
from morningcheck.services.persistence import PersistenceService, RpcPersistenceClient
from morningcheck.store import SnapshotRepository, Store

logger = logging.getLogger(__name__)


_store: Optional[Store] = None
_persistence: Optional[PersistenceService] = None
_identity_provider: Optional[IdentityProvider] = None
_database: Optional[MongoDB] = None


async def connect_cache_database(settings: Optional[Settings] = None) -> AsyncIOMotorDatabase:
    """
    Connect to the MongoDB database holding the store snapshot.

    Returns:
        Motor database to pass to init_services()
    """
    global _database

    settings = settings or default_settings

    _database = MongoDB()
    await _database.connect(uri=settings.MONGODB_URI, database_name=settings.MONGODB_DATABASE)
    set_main_database(_database)
    return _database.db


async def init_services(
    db: Optional[AsyncIOMotorDatabase] = None,
    settings: Optional[Settings] = None,
    persistence: Optional[PersistenceService] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> Store:
    """
    Initialize services and restore the persisted store snapshot.

    Called once at application startup.

    Args:
        db: MongoDB database for the snapshot cache; None keeps the store in memory
        settings: Settings to use (default: environment settings)
        persistence: Prebuilt persistence service (default: RPC client)
        identity_provider: Prebuilt identity provider (default: JWT)

    Returns:
        The hydrated store
    """
    global _store, _persistence, _identity_provider

    settings = settings or default_settings

    repository = None
    if db is not None:
        repository = SnapshotRepository(
            db=db,
            collection_name=settings.SNAPSHOT_COLLECTION,
            key=settings.STORE_SNAPSHOT_KEY,
        )

    _persistence = persistence or RpcPersistenceClient(
        base_url=settings.PERSISTENCE_URL,
        api_key=settings.PERSISTENCE_API_KEY,
        timeout=settings.RPC_TIMEOUT_SECONDS,
        icon_bucket=settings.ICON_BUCKET,
    )

    if identity_provider is not None:
        _identity_provider = identity_provider
    elif settings.JWT_SECRET:
        _identity_provider = JWTIdentityProvider(
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            audience=settings.JWT_AUDIENCE,
        )
    else:
        logger.warning("JWT_SECRET not set, sign-in is unavailable")
        _identity_provider = None

    _store = Store(repository=repository, tz_name=settings.APP_TIMEZONE)
    await _store.hydrate()

    logger.info("MorningCheck services initialized")
    return _store


async def shutdown_services() -> None:
    """Close network clients and forget the singletons."""
    global _store, _persistence, _identity_provider, _database

    if _persistence is not None:
        await _persistence.close()

    if _database is not None:
        await _database.disconnect()

    _store = None
    _database = None
    _persistence = None
    _identity_provider = None


def get_store() -> Store:
    """Get store instance."""
    if _store is None:
        raise RuntimeError("MorningCheck services not initialized. Call init_services first.")
    return _store


def get_persistence() -> PersistenceService:
    """Get persistence service instance."""
    if _persistence is None:
        raise RuntimeError("MorningCheck services not initialized. Call init_services first.")
    return _persistence


def get_identity_provider() -> IdentityProvider:
    """Get identity provider instance."""
    if _identity_provider is None:
        raise RuntimeError("Identity provider not configured. Set JWT_SECRET and call init_services.")
    return _identity_provider
