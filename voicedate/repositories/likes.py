"""Repository helpers for directed likes."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..db.collections import LIKES_COLLECTION
from ..models.likes import LikeDocument
from .exceptions import TransientStoreError, store_errors

LOGGER = logging.getLogger("uvicorn.error")


class LikeRepository:
    """Thin abstraction over the likes collection.

    The collection carries a unique index on ``(fromUserId, toUserId)`` so each
    ordered pair has at most one row; repeated likes only accumulate duration.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[LIKES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def get(self, from_user_id: str, to_user_id: str) -> Optional[LikeDocument]:
        with store_errors("like lookup"):
            doc = await self._collection.find_one(
                {"fromUserId": from_user_id, "toUserId": to_user_id}
            )
        return LikeDocument(**doc) if doc else None

    async def accumulate(
        self,
        *,
        from_user_id: str,
        to_user_id: str,
        call_duration_seconds: int,
        now_ms: int,
    ) -> LikeDocument:
        """Insert the like or add ``call_duration_seconds`` to the existing row."""

        selector = {"fromUserId": from_user_id, "toUserId": to_user_id}
        increment = {
            "$inc": {"callDurationSeconds": int(call_duration_seconds)},
            "$set": {"updatedAt": now_ms},
        }
        with store_errors("like write"):
            try:
                doc = await self._collection.find_one_and_update(
                    selector,
                    {**increment, "$setOnInsert": {"createdAt": now_ms}},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # Lost an insert race for the same pair; the row exists now
                LOGGER.debug("Like upsert race from=%s to=%s, retrying as update", from_user_id, to_user_id)
                doc = await self._collection.find_one_and_update(
                    selector,
                    increment,
                    return_document=ReturnDocument.AFTER,
                )
        if not doc:
            raise TransientStoreError("like write did not return a document")
        return LikeDocument(**doc)

    async def list_from(self, user_id: str) -> List[LikeDocument]:
        likes: List[LikeDocument] = []
        with store_errors("outgoing likes query"):
            async for doc in self._collection.find({"fromUserId": user_id}):
                likes.append(LikeDocument(**doc))
        return likes

    async def list_to(
        self,
        user_id: str,
        *,
        from_user_ids: Optional[Iterable[str]] = None,
    ) -> List[LikeDocument]:
        query: dict[str, object] = {"toUserId": user_id}
        if from_user_ids is not None:
            ids = sorted(set(from_user_ids))
            if not ids:
                return []
            query["fromUserId"] = {"$in": ids}
        likes: List[LikeDocument] = []
        with store_errors("incoming likes query"):
            async for doc in self._collection.find(query):
                likes.append(LikeDocument(**doc))
        return likes


__all__ = ["LikeRepository"]
