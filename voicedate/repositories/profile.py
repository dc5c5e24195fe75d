"""Repository helpers for profile persistence."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from ..db.collections import PROFILES_COLLECTION
from ..models.profile import Profile
from .exceptions import NotFoundRepositoryError, store_errors

LOGGER = logging.getLogger("uvicorn.error")


class ProfileRepository:
    """MongoDB access layer for profile documents, keyed by ``userId``."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[PROFILES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def get_by_user_id(self, user_id: str) -> Optional[Profile]:
        with store_errors("profile lookup"):
            doc = await self._collection.find_one({"userId": user_id})
        return Profile(**doc) if doc else None

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        out: Dict[str, Profile] = {}
        with store_errors("profile batch lookup"):
            async for doc in self._collection.find({"userId": {"$in": ids}}):
                profile = Profile(**doc)
                out[profile.user_id] = profile
        return out

    async def list_agent_ready(
        self,
        *,
        exclude_user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Profile]:
        """Return agent-ready profiles, newest first, optionally leaving one user out.

        Without ``limit`` every agent-ready profile is returned.
        """

        query: Dict[str, Any] = {"agentReady": True}
        if exclude_user_id:
            query["userId"] = {"$ne": exclude_user_id}
        profiles: List[Profile] = []
        with store_errors("feed query"):
            cursor = self._collection.find(query).sort("createdAt", DESCENDING)
            if limit:
                cursor = cursor.limit(int(limit))
            async for doc in cursor:
                profiles.append(Profile(**doc))
        return profiles

    async def upsert_profile(
        self,
        *,
        user_id: str,
        updates: Dict[str, Any],
        updated_at: int,
        created_at: int,
    ) -> Profile:
        """Create or partially update the profile owned by ``user_id``."""

        with store_errors("profile upsert"):
            doc = await self._collection.find_one_and_update(
                {"userId": user_id},
                {
                    "$set": {**updates, "updatedAt": updated_at},
                    "$setOnInsert": {"createdAt": created_at},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        if not doc:  # pragma: no cover - Motor returns the document on upsert
            raise NotFoundRepositoryError("profile upsert failed")
        LOGGER.debug("Profile upserted user=%s fields=%s", user_id, sorted(updates))
        return Profile(**doc)


__all__ = ["ProfileRepository"]
