"""MongoDB collection names used by the matching service."""

from __future__ import annotations

PROFILES_COLLECTION = "profiles"
LIKES_COLLECTION = "likes"
CONVERSATIONS_COLLECTION = "conversations"
MESSAGES_COLLECTION = "messages"

__all__ = [
    "PROFILES_COLLECTION",
    "LIKES_COLLECTION",
    "CONVERSATIONS_COLLECTION",
    "MESSAGES_COLLECTION",
]
