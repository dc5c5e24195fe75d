from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .collections import (
    CONVERSATIONS_COLLECTION,
    LIKES_COLLECTION,
    MESSAGES_COLLECTION,
    PROFILES_COLLECTION,
)


async def ensure_profile_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[PROFILES_COLLECTION]
    await collection.create_index("userId", name="profiles_user_id_unique", unique=True)
    await collection.create_index(
        [("agentReady", ASCENDING), ("createdAt", DESCENDING)],
        name="profiles_feed_idx",
    )


async def ensure_likes_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[LIKES_COLLECTION]
    await collection.create_index(
        [("fromUserId", ASCENDING), ("toUserId", ASCENDING)],
        name="likes_from_to_unique",
        unique=True,
    )
    await collection.create_index(
        [("toUserId", ASCENDING), ("createdAt", DESCENDING)],
        name="likes_to_user_idx",
    )


async def ensure_conversation_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[CONVERSATIONS_COLLECTION]
    await collection.create_index("pairKey", name="conversations_pair_unique", unique=True)
    await collection.create_index("conversationId", name="conversations_id_unique", unique=True)
    await collection.create_index("participants", name="conversations_participants_idx")


async def ensure_message_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[MESSAGES_COLLECTION]
    await collection.create_index(
        [("conversationId", ASCENDING), ("createdAt", ASCENDING)],
        name="messages_conversation_idx",
    )
    await collection.create_index(
        [("conversationId", ASCENDING), ("readAt", ASCENDING), ("senderId", ASCENDING)],
        name="messages_unread_idx",
    )


__all__ = [
    "ensure_profile_indexes",
    "ensure_likes_indexes",
    "ensure_conversation_indexes",
    "ensure_message_indexes",
]
