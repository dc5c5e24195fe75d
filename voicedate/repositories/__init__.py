"""Repository layer to abstract MongoDB access patterns."""

from .conversations import ConversationRepository, MessageRepository
from .likes import LikeRepository
from .profile import ProfileRepository

__all__ = [
    "ConversationRepository",
    "LikeRepository",
    "MessageRepository",
    "ProfileRepository",
]
