"""In-process publish/subscribe hub for live updates.

Topics used by the service:

- ``likes``: a like row was written; keyed by the liked user's id.
- ``matches``: a mutual like was detected; keyed by both users' ids.
- ``messages``: a message was inserted; keyed by the conversation id and by
  every participant's id.
- ``unread``: a viewer's read state changed; keyed by the viewer's id.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union

LOGGER = logging.getLogger("uvicorn.error")

Event = Dict[str, Any]
Handler = Callable[[Event], Union[None, Awaitable[None]]]
Bridge = Callable[[str, Event, tuple], Awaitable[None]]

LIKES_TOPIC = "likes"
MATCHES_TOPIC = "matches"
MESSAGES_TOPIC = "messages"
UNREAD_TOPIC = "unread"
TOPICS = (LIKES_TOPIC, MATCHES_TOPIC, MESSAGES_TOPIC, UNREAD_TOPIC)


class Subscription:
    """Cancellation handle returned by :meth:`EventHub.subscribe`."""

    def __init__(self, hub: "EventHub", token: int, topic: str, key: Optional[str]) -> None:
        self._hub = hub
        self._token = token
        self.topic = topic
        self.key = key

    @property
    def active(self) -> bool:
        return self._token in self._hub._subscribers

    def cancel(self) -> None:
        self._hub._subscribers.pop(self._token, None)


class EventHub:
    def __init__(self) -> None:
        self._subscribers: Dict[int, tuple[str, Optional[str], Handler]] = {}
        self._tokens = itertools.count(1)
        self._bridge: Optional[Bridge] = None

    def set_bridge(self, bridge: Optional[Bridge]) -> None:
        """Forward every locally published event through ``bridge`` (e.g. Redis)."""
        self._bridge = bridge

    def subscribe(self, topic: str, handler: Handler, *, key: Optional[str] = None) -> Subscription:
        if topic not in TOPICS:
            raise ValueError(f"unknown topic {topic!r}")
        token = next(self._tokens)
        self._subscribers[token] = (topic, key, handler)
        return Subscription(self, token, topic, key)

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        return sum(1 for sub_topic, _, _ in self._subscribers.values() if topic in (None, sub_topic))

    async def publish(
        self,
        topic: str,
        event: Event,
        *,
        keys: Iterable[str] = (),
        local_only: bool = False,
    ) -> int:
        """Deliver ``event`` to matching subscribers; returns how many handlers ran.

        A subscriber without a key receives every event on its topic. Handler
        failures are logged and do not stop delivery to the others.
        """

        key_set = tuple(k for k in keys if k)
        delivered = 0
        # Snapshot: handlers may subscribe or cancel while we iterate
        for token, (sub_topic, sub_key, handler) in list(self._subscribers.items()):
            if sub_topic != topic or token not in self._subscribers:
                continue
            if sub_key is not None and sub_key not in key_set:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                LOGGER.exception("Live update handler failed topic=%s type=%s", topic, event.get("type"))
        if self._bridge is not None and not local_only:
            try:
                await self._bridge(topic, event, key_set)
            except Exception as exc:
                LOGGER.warning("Live update bridge failed topic=%s: %s", topic, exc)
        return delivered


_hub: Optional[EventHub] = None


def get_event_hub() -> EventHub:
    global _hub
    if _hub is None:
        _hub = EventHub()
    return _hub


__all__ = [
    "Event",
    "EventHub",
    "Handler",
    "LIKES_TOPIC",
    "MATCHES_TOPIC",
    "MESSAGES_TOPIC",
    "Subscription",
    "TOPICS",
    "UNREAD_TOPIC",
    "get_event_hub",
]
