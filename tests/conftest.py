from __future__ import annotations

import itertools
from collections.abc import AsyncIterator
from typing import Any, Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from voicedate import events
from voicedate.config import get_settings
from voicedate.db import close_mongo_connection, connect_to_mongo
from voicedate.db.collections import PROFILES_COLLECTION
from voicedate.db.mongo import (
    ensure_conversation_indexes,
    ensure_likes_indexes,
    ensure_message_indexes,
    ensure_profile_indexes,
)
from voicedate.events import EventHub
from voicedate.main import app
from voicedate.repositories.conversations import ConversationRepository, MessageRepository
from voicedate.repositories.likes import LikeRepository
from voicedate.repositories.profile import ProfileRepository
from voicedate.services.likes_service import MatchEngine
from voicedate.services.message_service import MessagingService


@pytest.fixture(autouse=True)
def _env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017/test")
    monkeypatch.setenv("MONGO_DB_NAME", "voicedate-test")
    monkeypatch.setenv("REDIS_PUBSUB_ENABLED", "false")
    monkeypatch.delenv("REDIS_URL", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    monkeypatch.setattr(events, "_hub", None)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Callable[[], int]:
    """Strictly increasing millisecond clock for every service timestamp."""

    ticks = itertools.count(1_700_000_000_000, 1000)

    def _now() -> int:
        return next(ticks)

    monkeypatch.setattr(MatchEngine, "_now_ms", staticmethod(_now))
    monkeypatch.setattr(MessagingService, "_now_ms", staticmethod(_now))
    return _now


@pytest_asyncio.fixture
async def database() -> AsyncIterator[Any]:
    client = AsyncMongoMockClient()
    db = client["voicedate-test"]
    for ensure in (
        ensure_profile_indexes,
        ensure_likes_indexes,
        ensure_conversation_indexes,
        ensure_message_indexes,
    ):
        await ensure(db)
    yield db
    client.close()


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


@pytest.fixture
def profile_repo(database) -> ProfileRepository:
    return ProfileRepository(database)


@pytest.fixture
def like_repo(database) -> LikeRepository:
    return LikeRepository(database)


@pytest.fixture
def engine(profile_repo, like_repo, hub, clock) -> MatchEngine:
    return MatchEngine(profile_repo=profile_repo, like_repo=like_repo, hub=hub)


@pytest.fixture
def messaging(database, profile_repo, like_repo, hub, clock) -> MessagingService:
    return MessagingService(
        profile_repo=profile_repo,
        like_repo=like_repo,
        conversation_repo=ConversationRepository(database),
        message_repo=MessageRepository(database),
        hub=hub,
    )


@pytest.fixture
def make_profile(database) -> Callable[..., Any]:
    created = itertools.count(1)

    async def _make(user_id: str, **fields: Any) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "userId": user_id,
            "displayName": user_id.title(),
            "age": 30,
            "gender": "female",
            "agentReady": True,
            "onboardingCompleted": True,
            "onboardingTags": [],
            "onboardingPreferences": {},
            "createdAt": next(created),
        }
        doc.update(fields)
        await database[PROFILES_COLLECTION].insert_one(doc)
        return doc

    return _make


@pytest_asyncio.fixture
async def mongo_client(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncMongoMockClient]:
    client = AsyncMongoMockClient()

    def _client_factory(*_args, **_kwargs) -> AsyncMongoMockClient:
        return client

    monkeypatch.setattr("voicedate.db.AsyncIOMotorClient", _client_factory)
    yield client
    client.close()


@pytest_asyncio.fixture
async def api_client(mongo_client: AsyncMongoMockClient, clock) -> AsyncIterator[AsyncClient]:
    await connect_to_mongo()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    await close_mongo_connection()
