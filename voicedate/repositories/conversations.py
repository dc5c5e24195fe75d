"""Repository helpers for conversations and their messages."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..db.collections import CONVERSATIONS_COLLECTION, MESSAGES_COLLECTION
from ..models.message import ConversationDocument, Message
from .exceptions import TransientStoreError, store_errors

LOGGER = logging.getLogger("uvicorn.error")


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for the conversation between two users."""

    first, second = sorted((user_a, user_b))
    return f"{first}|{second}"


class ConversationRepository:
    """One conversation per unordered pair, enforced by a unique ``pairKey`` index."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[CONVERSATIONS_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def get(self, conversation_id: str) -> Optional[ConversationDocument]:
        with store_errors("conversation lookup"):
            doc = await self._collection.find_one({"conversationId": conversation_id})
        return ConversationDocument(**doc) if doc else None

    async def find_by_pair(self, user_a: str, user_b: str) -> Optional[ConversationDocument]:
        with store_errors("conversation lookup"):
            doc = await self._collection.find_one({"pairKey": pair_key(user_a, user_b)})
        return ConversationDocument(**doc) if doc else None

    async def get_or_create(self, user_a: str, user_b: str, *, now_ms: int) -> ConversationDocument:
        key = pair_key(user_a, user_b)
        with store_errors("conversation create"):
            try:
                doc = await self._collection.find_one_and_update(
                    {"pairKey": key},
                    {
                        "$setOnInsert": {
                            "conversationId": str(uuid.uuid4()),
                            "participants": sorted((user_a, user_b)),
                            "createdAt": now_ms,
                        }
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # The other participant created it first; read the winner back
                LOGGER.debug("Conversation create race for pair=%s", key)
                doc = await self._collection.find_one({"pairKey": key})
        if not doc:
            raise TransientStoreError("conversation create did not return a document")
        return ConversationDocument(**doc)

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        conversations: List[ConversationDocument] = []
        with store_errors("conversation list"):
            async for doc in self._collection.find({"participants": user_id}):
                conversations.append(ConversationDocument(**doc))
        return conversations


class MessageRepository:
    """Append-only message storage; only ``readAt`` is ever updated."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[MESSAGES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def insert(
        self,
        *,
        conversation_id: str,
        sender_id: str,
        content: str,
        created_at: int,
    ) -> Message:
        doc = {
            "messageId": str(uuid.uuid4()),
            "conversationId": conversation_id,
            "senderId": sender_id,
            "content": content,
            "createdAt": created_at,
            "readAt": None,
        }
        with store_errors("message insert"):
            await self._collection.insert_one(doc)
        return Message(**doc)

    async def list_page(
        self,
        conversation_id: str,
        *,
        before: Optional[int] = None,
        limit: int = 50,
    ) -> List[Message]:
        """Return up to ``limit`` messages older than ``before``, oldest first."""

        query: Dict[str, object] = {"conversationId": conversation_id}
        if before is not None:
            query["createdAt"] = {"$lt": int(before)}
        rows: List[Message] = []
        with store_errors("message list"):
            cursor = (
                self._collection.find(query)
                .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
                .limit(int(limit))
            )
            async for doc in cursor:
                rows.append(Message(**doc))
        rows.reverse()
        return rows

    async def mark_read(self, conversation_id: str, viewer_id: str, *, read_at: int) -> int:
        with store_errors("mark read"):
            result = await self._collection.update_many(
                {
                    "conversationId": conversation_id,
                    "senderId": {"$ne": viewer_id},
                    "readAt": None,
                },
                {"$set": {"readAt": read_at}},
            )
        return int(result.modified_count)

    async def unread_counts(
        self,
        conversation_ids: Iterable[str],
        viewer_id: str,
    ) -> Dict[str, int]:
        """Unread messages addressed to ``viewer_id``, per conversation."""

        ids = sorted(set(conversation_ids))
        if not ids:
            return {}
        pipeline = [
            {
                "$match": {
                    "conversationId": {"$in": ids},
                    "senderId": {"$ne": viewer_id},
                    "readAt": None,
                }
            },
            {"$group": {"_id": "$conversationId", "count": {"$sum": 1}}},
        ]
        with store_errors("unread count"):
            rows = await self._collection.aggregate(pipeline).to_list(length=None)
        return {str(row["_id"]): int(row.get("count") or 0) for row in rows}


__all__ = ["ConversationRepository", "MessageRepository", "pair_key"]
