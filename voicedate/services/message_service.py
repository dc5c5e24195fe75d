from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from ..db import get_db
from ..events import MESSAGES_TOPIC, UNREAD_TOPIC, EventHub, get_event_hub
from ..models.likes import Match
from ..models.message import ConversationDocument, Message, UnreadSummary
from ..repositories.conversations import ConversationRepository, MessageRepository
from ..repositories.exceptions import NotFoundRepositoryError
from ..repositories.likes import LikeRepository
from ..repositories.profile import ProfileRepository
from .exceptions import DomainValidationError, NotMatchedError

LOGGER = logging.getLogger("uvicorn.error")

MAX_PAGE = 200


def format_match_time(matched_at_ms: int, now_ms: Optional[int] = None) -> str:
    """Relative label for when a match happened: "Just now", "5m ago", "Yesterday"..."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    diff_ms = max(0, now_ms - matched_at_ms)
    minutes = diff_ms // 60_000
    hours = diff_ms // 3_600_000
    days = diff_ms // 86_400_000
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "Yesterday"
    return f"{days}d ago"


class MessagingService:
    """Matches, conversations and messages for a viewer."""

    def __init__(
        self,
        profile_repo: ProfileRepository,
        like_repo: LikeRepository,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        hub: Optional[EventHub] = None,
    ) -> None:
        self._profile_repo = profile_repo
        self._like_repo = like_repo
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._hub = hub

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def list_matches(self, user_id: str) -> List[Match]:
        mine = await self._like_repo.list_from(user_id)
        if not mine:
            return []
        theirs = {
            like.from_user_id: like
            for like in await self._like_repo.list_to(
                user_id, from_user_ids=[like.to_user_id for like in mine]
            )
        }
        mutual = [(like, theirs[like.to_user_id]) for like in mine if like.to_user_id in theirs]
        if not mutual:
            return []

        profiles = await self._profile_repo.get_many(other.from_user_id for _, other in mutual)
        conversations = await self._conversations_by_partner(user_id)
        unread = await self._message_repo.unread_counts(
            (conv.conversation_id for conv in conversations.values()), user_id
        )

        matches: List[Match] = []
        for my_like, their_like in mutual:
            partner_id = my_like.to_user_id
            profile = profiles.get(partner_id)
            if profile is None:
                LOGGER.warning("Skipping match with missing profile user=%s partner=%s", user_id, partner_id)
                continue
            conversation = conversations.get(partner_id)
            conversation_id = conversation.conversation_id if conversation else None
            mine_s = my_like.call_duration_seconds
            theirs_s = their_like.call_duration_seconds
            matches.append(
                Match(
                    matchedUser=profile,
                    matchedAt=max(my_like.created_at, their_like.created_at),
                    myCallDuration=mine_s,
                    theirCallDuration=theirs_s,
                    totalCallDuration=mine_s + theirs_s,
                    conversationId=conversation_id,
                    unreadCount=unread.get(conversation_id, 0) if conversation_id else 0,
                )
            )
        matches.sort(key=lambda m: m.matched_at, reverse=True)
        return matches

    async def unread_count(self, user_id: str) -> UnreadSummary:
        conversations = await self._conversations_by_partner(user_id)
        per_conversation = await self._message_repo.unread_counts(
            (conv.conversation_id for conv in conversations.values()), user_id
        )
        per_match: Dict[str, int] = {}
        for partner_id, conv in conversations.items():
            count = per_conversation.get(conv.conversation_id, 0)
            if count:
                per_match[partner_id] = count
        return UnreadSummary(
            total=sum(per_conversation.values()),
            perConversation=per_conversation,
            perMatch=per_match,
        )

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> str:
        if not user_a or not user_b or user_a == user_b:
            raise DomainValidationError("a conversation needs two distinct users")
        existing = await self._conversation_repo.find_by_pair(user_a, user_b)
        if existing is not None:
            return existing.conversation_id
        if not await self._is_match(user_a, user_b):
            raise NotMatchedError("users are not matched")
        conversation = await self._conversation_repo.get_or_create(user_a, user_b, now_ms=self._now_ms())
        LOGGER.info("Conversation ready id=%s pair=%s", conversation.conversation_id, conversation.pair_key)
        return conversation.conversation_id

    async def get_conversation(self, conversation_id: str, viewer_id: str) -> ConversationDocument:
        conversation = await self._conversation_repo.get(conversation_id)
        if conversation is None:
            raise NotFoundRepositoryError("conversation not found")
        if viewer_id not in conversation.participants:
            raise DomainValidationError("not a participant of this conversation")
        return conversation

    async def list_messages(
        self,
        conversation_id: str,
        viewer_id: str,
        *,
        before: Optional[int] = None,
        limit: int = 50,
    ) -> List[Message]:
        await self.get_conversation(conversation_id, viewer_id)
        limit = max(1, min(int(limit or 50), MAX_PAGE))
        return await self._message_repo.list_page(conversation_id, before=before, limit=limit)

    async def send_message(self, conversation_id: str, sender_id: str, content: str) -> Message:
        text = content.strip() if isinstance(content, str) else ""
        if not text:
            raise DomainValidationError("message content required")
        conversation = await self.get_conversation(conversation_id, sender_id)

        message = await self._message_repo.insert(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=text,
            created_at=self._now_ms(),
        )
        if self._hub is not None:
            await self._hub.publish(
                MESSAGES_TOPIC,
                {"type": "message_created", "message": message.model_dump(by_alias=True)},
                keys=(conversation_id, *conversation.participants),
            )
        return message

    async def mark_read(self, conversation_id: str, viewer_id: str) -> int:
        await self.get_conversation(conversation_id, viewer_id)
        updated = await self._message_repo.mark_read(conversation_id, viewer_id, read_at=self._now_ms())
        if updated and self._hub is not None:
            await self._hub.publish(
                UNREAD_TOPIC,
                {
                    "type": "messages_read",
                    "conversationId": conversation_id,
                    "userId": viewer_id,
                    "count": updated,
                },
                keys=(viewer_id,),
            )
        return updated

    async def _is_match(self, user_a: str, user_b: str) -> bool:
        forward = await self._like_repo.get(user_a, user_b)
        if forward is None:
            return False
        return await self._like_repo.get(user_b, user_a) is not None

    async def _conversations_by_partner(self, user_id: str) -> Dict[str, ConversationDocument]:
        out: Dict[str, ConversationDocument] = {}
        for conv in await self._conversation_repo.list_for_user(user_id):
            partner = conv.other_participant(user_id)
            if partner:
                out[partner] = conv
        return out


def get_messaging_service() -> MessagingService:
    db = get_db()
    return MessagingService(
        profile_repo=ProfileRepository(db),
        like_repo=LikeRepository(db),
        conversation_repo=ConversationRepository(db),
        message_repo=MessageRepository(db),
        hub=get_event_hub(),
    )


__all__ = ["MessagingService", "format_match_time", "get_messaging_service"]
