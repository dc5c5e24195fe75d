from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from voicedate.models.profile import Profile
from voicedate.repositories.exceptions import TransientStoreError
from voicedate.services.feed import (
    DEFAULT_EXCERPT,
    DEFAULT_TAG,
    STOCK_PHOTOS,
    FeedSelector,
    FeedState,
    bio_excerpt,
    build_card,
    profile_tag,
    stable_hash,
    stock_photo_for,
)


def test_stable_hash_matches_rolling_31_hash() -> None:
    assert stable_hash("abc") == 96354
    assert stable_hash("") == 0


def test_stock_photo_is_deterministic_per_user() -> None:
    first = stock_photo_for("user-123", "Woman")
    assert first == stock_photo_for("user-123", "female")
    assert first in STOCK_PHOTOS["female"]


def test_stock_photo_buckets() -> None:
    assert stock_photo_for("anyone", "enby") == STOCK_PHOTOS["non-binary"][0]
    assert stock_photo_for("abc", "female") == STOCK_PHOTOS["female"][96354 % 3]
    # Unrecognized and missing genders use the male pictures
    assert stock_photo_for("u-9", "martian") in STOCK_PHOTOS["male"]
    assert stock_photo_for("u-9", None) == stock_photo_for("u-9", "martian")


def test_card_text_helpers() -> None:
    tagged = Profile(userId="a", onboardingTags=["  ", "Hiker", "Cook"], bio="x" * 120)
    assert profile_tag(tagged) == "Hiker"
    assert bio_excerpt(tagged) == "x" * 100 + "..."

    summary_only = Profile(userId="b", onboardingSummary="Loves jazz")
    assert profile_tag(summary_only) == DEFAULT_TAG
    assert bio_excerpt(summary_only) == "Loves jazz"
    assert bio_excerpt(Profile(userId="c")) == DEFAULT_EXCERPT


def test_build_card_keeps_real_photo() -> None:
    card = build_card(Profile(userId="a", gender="male", profilePhotoUrl="https://cdn.test/a.jpg"))
    assert card.photo_url == "https://cdn.test/a.jpg"
    fallback = build_card(Profile(userId="b", gender="male"))
    assert fallback.photo_url in STOCK_PHOTOS["male"]


@pytest.mark.asyncio
async def test_load_feed_filters_and_orders_newest_first(make_profile, profile_repo) -> None:
    await make_profile("me", gender="male", onboardingPreferences={"lookingFor": "women"}, createdAt=1)
    await make_profile("old", gender="female", createdAt=10)
    await make_profile("new", gender="woman", createdAt=30)
    await make_profile("not-ready", gender="female", agentReady=False, createdAt=40)
    await make_profile("wrong-gender", gender="male", createdAt=20)
    await make_profile("picky", gender="female", onboardingPreferences={"lookingFor": "women"}, createdAt=25)

    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)
    assert selector.state is FeedState.LOADING
    assert selector.current() is None

    profiles = await selector.load_feed(me)

    assert [p.user_id for p in profiles] == ["new", "old"]
    assert selector.state is FeedState.BROWSING
    assert selector.current().user_id == "new"


@pytest.mark.asyncio
async def test_cursor_advances_to_exhausted_and_resets(make_profile, profile_repo) -> None:
    await make_profile("me", gender="male", createdAt=1)
    await make_profile("a", createdAt=3)
    await make_profile("b", createdAt=2)
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)
    await selector.load_feed(me)

    selector.advance()
    assert selector.current().user_id == "b"
    selector.advance()
    assert selector.current() is None
    assert selector.is_exhausted and not selector.is_empty

    selector.advance()
    assert selector.cursor == 2
    assert selector.state is FeedState.EXHAUSTED

    selector.reset()
    assert selector.state is FeedState.BROWSING
    assert selector.current().user_id == "a"
    assert selector.remaining == 2


@pytest.mark.asyncio
async def test_empty_feed_is_distinguishable(make_profile, profile_repo) -> None:
    await make_profile("me")
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)

    assert await selector.load_feed(me) == []
    assert selector.current() is None
    assert selector.is_empty
    assert selector.state is FeedState.EXHAUSTED


@pytest.mark.asyncio
async def test_reset_does_not_refetch(make_profile, profile_repo) -> None:
    await make_profile("me", createdAt=1)
    await make_profile("a", createdAt=2)
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)
    await selector.load_feed(me)

    await make_profile("late", createdAt=3)
    selector.advance()
    selector.reset()

    assert [p.user_id for p in selector.profiles] == ["a"]


class _SlowRepo:
    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    async def list_agent_ready(self, *, exclude_user_id: Optional[str] = None, limit: Optional[int] = None) -> List[Profile]:
        self.calls += 1
        if self.calls == 1:
            await self.gate.wait()
            return [Profile(userId="stale", agentReady=True)]
        return [Profile(userId="fresh", agentReady=True)]


@pytest.mark.asyncio
async def test_superseded_load_is_discarded() -> None:
    repo = _SlowRepo()
    selector = FeedSelector(repo, max_profiles=10)  # type: ignore[arg-type]
    me = Profile(userId="me")

    first = asyncio.create_task(selector.load_feed(me))
    await asyncio.sleep(0)
    fresh = await selector.load_feed(me)
    repo.gate.set()
    stale = await first

    assert [p.user_id for p in fresh] == ["fresh"]
    assert [p.user_id for p in stale] == ["fresh"]
    assert selector.current().user_id == "fresh"


@pytest.mark.asyncio
async def test_cap_applies_to_compatible_profiles(make_profile, profile_repo) -> None:
    await make_profile("me", gender="male", onboardingPreferences={"lookingFor": "women"}, createdAt=1)
    for i in range(3):
        await make_profile(f"man-{i}", gender="male", createdAt=100 + i)
    await make_profile("w-old", gender="female", createdAt=10)
    await make_profile("w-mid", gender="female", createdAt=20)
    await make_profile("w-new", gender="female", createdAt=30)
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo, max_profiles=2)

    profiles = await selector.load_feed(me)

    assert [p.user_id for p in profiles] == ["w-new", "w-mid"]


@pytest.mark.asyncio
async def test_failed_reload_keeps_the_previous_snapshot(make_profile, profile_repo, monkeypatch) -> None:
    await make_profile("me", gender="male", createdAt=1)
    await make_profile("a", createdAt=3)
    await make_profile("b", createdAt=2)
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)
    await selector.load_feed(me)

    async def _boom(**_kwargs):
        raise TransientStoreError("feed query failed: timeout")

    monkeypatch.setattr(profile_repo, "list_agent_ready", _boom)
    with pytest.raises(TransientStoreError):
        await selector.load_feed(me)

    assert selector.state is FeedState.BROWSING
    assert selector.current().user_id == "a"
    selector.advance()
    assert selector.current().user_id == "b"


@pytest.mark.asyncio
async def test_failed_first_load_can_be_retried(make_profile, profile_repo, monkeypatch) -> None:
    await make_profile("me", gender="male", createdAt=1)
    await make_profile("a", createdAt=2)
    me = await profile_repo.get_by_user_id("me")
    selector = FeedSelector(profile_repo)
    list_agent_ready = profile_repo.list_agent_ready

    async def _boom(**_kwargs):
        raise TransientStoreError("feed query failed: timeout")

    monkeypatch.setattr(profile_repo, "list_agent_ready", _boom)
    with pytest.raises(TransientStoreError):
        await selector.load_feed(me)
    assert selector.state is FeedState.LOADING

    monkeypatch.setattr(profile_repo, "list_agent_ready", list_agent_ready)
    assert [p.user_id for p in await selector.load_feed(me)] == ["a"]
