"""Per-viewer session state: feed cursor, decisions, matches and live updates.

One ``ViewerSession`` belongs to one signed-in client. Nothing here is global;
the session is built with the services it talks to and is driven either by
direct calls or by events delivered through the hub it subscribes to.
"""

from __future__ import annotations

import inspect
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Set

from ..events import LIKES_TOPIC, MATCHES_TOPIC, MESSAGES_TOPIC, Event, EventHub, Subscription
from ..models.likes import DecisionResult, Match
from ..models.message import Message, OutgoingMessage
from ..models.profile import Profile
from ..repositories.exceptions import NotFoundRepositoryError, TransientStoreError
from .exceptions import DomainValidationError, MatchCheckError
from .feed import FeedSelector
from .likes_service import MatchEngine
from .message_service import MessagingService

LOGGER = logging.getLogger("uvicorn.error")

Callback = Callable[[Any], Any]


async def _invoke(callback: Optional[Callback], value: Any) -> None:
    if callback is None:
        return
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class ViewerSession:
    def __init__(
        self,
        me: Profile,
        *,
        feed: FeedSelector,
        engine: MatchEngine,
        messaging: MessagingService,
        hub: EventHub,
        on_new_match: Optional[Callback] = None,
        on_new_message: Optional[Callback] = None,
        on_unread_count_changed: Optional[Callback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.me = me
        self.feed = feed
        self._engine = engine
        self._messaging = messaging
        self._hub = hub
        self.on_new_match = on_new_match
        self.on_new_message = on_new_message
        self.on_unread_count_changed = on_unread_count_changed
        self._clock = clock

        self.decisions: Dict[str, str] = {}
        self.matches: List[Match] = []
        self.unread_total = 0
        self.outgoing: Dict[str, List[OutgoingMessage]] = {}
        self.conversation_messages: Dict[str, List[Message]] = {}

        self._call_started_at: Optional[float] = None
        # Duration measured for a decision that has not been stored yet
        self._pending_call_seconds: Optional[int] = None
        self._notified_matches: Set[str] = set()
        self._subscriptions: List[Subscription] = []
        self._open_conversations: Dict[str, Subscription] = {}
        self._conversation_generation: Dict[str, int] = {}

    @property
    def user_id(self) -> str:
        return self.me.user_id

    @property
    def liked_count(self) -> int:
        return sum(1 for decision in self.decisions.values() if decision == "yes")

    # Feed

    async def load_feed(self) -> List[Profile]:
        return await self.feed.load_feed(self.me)

    def start_call(self, now: Optional[float] = None) -> None:
        self._call_started_at = self._clock() if now is None else now
        self._pending_call_seconds = None

    def end_call(self, now: Optional[float] = None) -> int:
        """Whole seconds since ``start_call``; 0 when no call was started."""
        if self._call_started_at is None:
            return 0
        ended = self._clock() if now is None else now
        seconds = max(0, int(ended - self._call_started_at))
        self._clear_call()
        return seconds

    def _measure_call(self) -> int:
        """Talk time for the pending decision; kept until the decision is stored."""
        if self._pending_call_seconds is None and self._call_started_at is not None:
            self._pending_call_seconds = max(0, int(self._clock() - self._call_started_at))
        return self._pending_call_seconds or 0

    def _clear_call(self) -> None:
        self._call_started_at = None
        self._pending_call_seconds = None

    async def decide(self, decision: str, call_duration_seconds: Optional[int] = None) -> DecisionResult:
        """Record a decision on the current profile.

        The cursor only moves once the like is stored. If the write fails the
        result says so and the same profile stays current, so the caller can
        retry ``decide`` or move on with ``skip``.
        """

        target = self.feed.current()
        if target is None:
            raise DomainValidationError("no profile to decide on")
        if call_duration_seconds is None:
            call_duration_seconds = self._measure_call()

        try:
            result = await self._engine.record_decision(
                self.user_id, target.user_id, decision, call_duration_seconds
            )
        except MatchCheckError as exc:
            self._settle(target.user_id, decision)
            return DecisionResult(success=True, saved=True, matched=None, like=exc.like, error=str(exc))
        except (TransientStoreError, NotFoundRepositoryError) as exc:
            LOGGER.warning("Decision not saved user=%s target=%s: %s", self.user_id, target.user_id, exc)
            return DecisionResult(success=False, saved=False, matched=False, error=str(exc))

        self._settle(target.user_id, decision)
        if result.matched and result.matched_profile is not None:
            await self._announce_match(result.matched_profile)
        return result

    def skip(self) -> None:
        self._clear_call()
        self.feed.advance()

    def start_over(self) -> None:
        self.feed.reset()

    def _settle(self, target_id: str, decision: str) -> None:
        self.decisions[target_id] = decision
        self._clear_call()
        self.feed.advance()

    async def _announce_match(self, profile: Profile) -> None:
        if profile.user_id in self._notified_matches:
            return
        self._notified_matches.add(profile.user_id)
        await _invoke(self.on_new_match, profile)
        await self.refresh_matches()

    # Matches and unread state

    async def refresh_matches(self) -> List[Match]:
        self.matches = await self._messaging.list_matches(self.user_id)
        for match in self.matches:
            self._notified_matches.add(match.matched_user.user_id)
        return self.matches

    async def refresh_unread(self) -> int:
        summary = await self._messaging.unread_count(self.user_id)
        if summary.total != self.unread_total:
            self.unread_total = summary.total
            await _invoke(self.on_unread_count_changed, summary.total)
        return self.unread_total

    # Messaging

    async def send(self, conversation_id: str, content: str) -> OutgoingMessage:
        """Show the message right away, then confirm or flag it as failed."""

        text = content.strip() if isinstance(content, str) else ""
        if not text:
            raise DomainValidationError("message content required")
        pending = OutgoingMessage(
            messageId=f"local-{uuid.uuid4()}",
            conversationId=conversation_id,
            senderId=self.user_id,
            content=text,
            createdAt=int(self._clock() * 1000),
        )
        self.outgoing.setdefault(conversation_id, []).append(pending)
        try:
            stored = await self._messaging.send_message(conversation_id, self.user_id, text)
        except (TransientStoreError, NotFoundRepositoryError, DomainValidationError) as exc:
            LOGGER.warning("Message send failed conversation=%s: %s", conversation_id, exc)
            pending.status = "failed"
            pending.error = str(exc)
            return pending
        pending.message_id = stored.message_id
        pending.created_at = stored.created_at
        pending.status = "sent"
        return pending

    async def open_conversation(self, conversation_id: str) -> List[Message]:
        """Load a conversation, mark it read and follow it live.

        A load overtaken by a newer ``open_conversation`` for the same id is
        discarded.
        """

        generation = self._conversation_generation.get(conversation_id, 0) + 1
        self._conversation_generation[conversation_id] = generation

        messages = await self._messaging.list_messages(conversation_id, self.user_id)
        if self._conversation_generation.get(conversation_id) != generation:
            return list(self.conversation_messages.get(conversation_id, []))
        self.conversation_messages[conversation_id] = messages
        await self._messaging.mark_read(conversation_id, self.user_id)

        if conversation_id not in self._open_conversations:
            self._open_conversations[conversation_id] = self._hub.subscribe(
                MESSAGES_TOPIC,
                self._conversation_handler(conversation_id),
                key=conversation_id,
            )
        await self.refresh_unread()
        return list(messages)

    def close_conversation(self, conversation_id: str) -> None:
        subscription = self._open_conversations.pop(conversation_id, None)
        if subscription is not None:
            subscription.cancel()
        self._conversation_generation.pop(conversation_id, None)

    def _conversation_handler(self, conversation_id: str) -> Callable[[Event], Any]:
        async def _handle(event: Event) -> None:
            message = self._message_from_event(event)
            if message is None or message.conversation_id != conversation_id:
                return
            # Own messages are already on screen from the optimistic send
            if message.sender_id == self.user_id:
                return
            bucket = self.conversation_messages.setdefault(conversation_id, [])
            if any(existing.message_id == message.message_id for existing in bucket):
                return
            bucket.append(message)
            await self._messaging.mark_read(conversation_id, self.user_id)
            await _invoke(self.on_new_message, message)
            await self.refresh_unread()

        return _handle

    # Live subscriptions

    def subscribe(self) -> List[Subscription]:
        if self._subscriptions:
            return list(self._subscriptions)
        self._subscriptions = [
            self._hub.subscribe(LIKES_TOPIC, self._handle_like, key=self.user_id),
            self._hub.subscribe(MATCHES_TOPIC, self._handle_match, key=self.user_id),
            self._hub.subscribe(MESSAGES_TOPIC, self._handle_inbox_message, key=self.user_id),
        ]
        return list(self._subscriptions)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        for conversation_id in list(self._open_conversations):
            self.close_conversation(conversation_id)

    async def _handle_like(self, event: Event) -> None:
        if event.get("toUserId") != self.user_id:
            return
        liker = event.get("fromUserId")
        if not isinstance(liker, str) or not liker or liker in self._notified_matches:
            return
        if not await self._engine.check_match(self.user_id, liker):
            return
        profile = await self._engine.get_profile(liker)
        if profile is not None:
            await self._announce_match(profile)

    async def _handle_match(self, event: Event) -> None:
        user_ids = event.get("userIds")
        if event.get("type") != "match" or not isinstance(user_ids, list) or self.user_id not in user_ids:
            return
        for other in user_ids:
            if not isinstance(other, str) or not other or other == self.user_id:
                continue
            if other in self._notified_matches:
                continue
            profile = await self._engine.get_profile(other)
            if profile is not None:
                await self._announce_match(profile)

    async def _handle_inbox_message(self, event: Event) -> None:
        message = self._message_from_event(event)
        if message is None or message.sender_id == self.user_id:
            return
        # Open conversations are handled (and marked read) by their own handler
        if message.conversation_id in self._open_conversations:
            return
        await _invoke(self.on_new_message, message)
        await self.refresh_unread()
        await self.refresh_matches()

    @staticmethod
    def _message_from_event(event: Event) -> Optional[Message]:
        if event.get("type") != "message_created" or not isinstance(event.get("message"), dict):
            return None
        try:
            return Message(**event["message"])
        except ValueError:
            LOGGER.warning("Ignoring malformed message event")
            return None


__all__ = ["ViewerSession"]
