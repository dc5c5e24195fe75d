import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from .config import get_settings
from .events import TOPICS

LOGGER = logging.getLogger("uvicorn.error")

_client: Optional[Redis] = None
_listener_task: Optional[asyncio.Task] = None
_pubsub: Optional[PubSub] = None


def _channel(topic: str) -> str:
    prefix = (get_settings().redis_pubsub_prefix or "").strip()
    return f"{prefix}.{topic}" if prefix else topic


def topic_from_channel(channel: str) -> str:
    prefix = (get_settings().redis_pubsub_prefix or "").strip()
    if prefix and channel.startswith(prefix + "."):
        return channel[len(prefix) + 1 :]
    return channel


async def _ensure_client() -> Optional[Redis]:
    global _client
    if _client is not None:
        return _client
    settings = get_settings()
    if not settings.redis_url:
        return None
    try:
        client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
        await client.ping()
        _client = client
    except Exception as exc:
        LOGGER.warning("Redis unavailable: %s", exc)
        _client = None
    return _client


async def publish(topic: str, event: Dict[str, Any]) -> None:
    if not get_settings().redis_pubsub_enabled:
        return
    client = await _ensure_client()
    if not client:
        return
    try:
        payload = json.dumps(event, separators=(",", ":")).encode("utf-8")
        await client.publish(_channel(topic), payload)
    except Exception as exc:
        LOGGER.warning("Redis publish failed topic=%s: %s", topic, exc)


async def start_consumer(handler: Callable[[str, Dict[str, Any]], Awaitable[None]]) -> None:
    global _listener_task
    if _listener_task is not None:
        return
    if not get_settings().redis_pubsub_enabled:
        return
    client = await _ensure_client()
    if not client:
        return

    async def _run() -> None:
        global _pubsub
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(*[_channel(name) for name in TOPICS])
            _pubsub = pubsub
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                raw_channel = message.get("channel")
                raw_data = message.get("data")
                try:
                    channel = raw_channel.decode("utf-8") if isinstance(raw_channel, (bytes, bytearray)) else str(raw_channel)
                    if isinstance(raw_data, (bytes, bytearray)):
                        payload = json.loads(raw_data.decode("utf-8"))
                    else:
                        payload = json.loads(raw_data)
                except (UnicodeDecodeError, ValueError):
                    LOGGER.debug("Dropping undecodable Redis message on %s", raw_channel)
                    continue
                try:
                    await handler(channel, payload)
                except Exception:
                    LOGGER.exception("Redis event handler failed channel=%s", channel)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Redis listener stopped: %s", exc)
        finally:
            try:
                await pubsub.close()
            except Exception:
                pass
            _pubsub = None

    _listener_task = asyncio.create_task(_run())


async def stop() -> None:
    global _listener_task, _pubsub, _client
    if _listener_task is not None:
        _listener_task.cancel()
        try:
            await _listener_task
        except asyncio.CancelledError:
            pass
        _listener_task = None
    if _pubsub is not None:
        try:
            await _pubsub.close()
        except Exception:
            pass
        _pubsub = None
    if _client is not None:
        try:
            await _client.close()
        except Exception:
            pass
        _client = None
