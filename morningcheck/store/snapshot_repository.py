"""
Persisted store snapshot.

Key-value cache of the store state in a MongoDB collection: one document
per key, overwritten on every save (last write wins).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """
    Loads and saves the serialized store state.
    Pure storage - the store decides what goes in the snapshot.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str = "storesnapshots",
        key: str = "morningcheck-storage"
    ):
        """
        Initialize SnapshotRepository.

        Args:
            db: MongoDB database connection
            collection_name: Collection holding snapshots
            key: Snapshot key (one document per key)
        """
        self._db = db
        self._collection = db[collection_name]
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def load(self) -> Optional[Dict[str, Any]]:
        """
        Get the saved snapshot.

        Returns:
            Snapshot dict, or None if nothing was saved yet
        """
        doc = await self._collection.find_one({"key": self._key})
        if doc is None:
            return None
        state = doc.get("state")
        return state if isinstance(state, dict) else None

    async def save(self, snapshot: Dict[str, Any]) -> None:
        """Overwrite the snapshot for this key."""
        now = datetime.now(timezone.utc)
        await self._collection.update_one(
            {"key": self._key},
            {
                "$set": {"state": snapshot, "updatedAt": now},
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True
        )
        logger.debug(f"Saved store snapshot {self._key}")

    async def clear(self) -> None:
        """Delete the snapshot for this key."""
        await self._collection.delete_one({"key": self._key})
        logger.info(f"Cleared store snapshot {self._key}")
