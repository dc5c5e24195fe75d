"""Bridges the in-process event hub across service instances through Redis."""

import uuid
from typing import Any, Dict

from . import redis_bus
from .events import TOPICS, EventHub, get_event_hub

INSTANCE_ID = uuid.uuid4().hex


async def _forward_to_redis(topic: str, event: Dict[str, Any], keys: tuple) -> None:
    await redis_bus.publish(topic, {"origin": INSTANCE_ID, "keys": list(keys), "event": event})


def attach_redis_bridge(hub: EventHub) -> None:
    hub.set_bridge(_forward_to_redis)


async def event_stream_handler(channel: str, envelope: Dict[str, Any]) -> None:
    """Replay events published by other instances onto the local hub."""
    if envelope.get("origin") == INSTANCE_ID:
        return
    topic = redis_bus.topic_from_channel(channel)
    event = envelope.get("event")
    if topic not in TOPICS or not isinstance(event, dict):
        return
    keys = [str(k) for k in envelope.get("keys") or [] if k]
    await get_event_hub().publish(topic, event, keys=keys, local_only=True)


__all__ = ["INSTANCE_ID", "attach_redis_bridge", "event_stream_handler"]
