from __future__ import annotations

import asyncio

import pytest

from voicedate.db.collections import CONVERSATIONS_COLLECTION
from voicedate.events import MESSAGES_TOPIC, UNREAD_TOPIC
from voicedate.repositories.exceptions import NotFoundRepositoryError
from voicedate.services.exceptions import DomainValidationError, NotMatchedError
from voicedate.services.message_service import format_match_time


async def _match(engine, a: str, b: str, a_seconds: int = 0, b_seconds: int = 0) -> None:
    await engine.record_decision(a, b, "yes", a_seconds)
    await engine.record_decision(b, a, "yes", b_seconds)


@pytest.mark.asyncio
async def test_mutual_match_flow_reports_both_durations(engine, messaging, make_profile) -> None:
    await make_profile("a")
    await make_profile("b")

    first = await engine.record_decision("a", "b", "yes", 120)
    assert first.matched is False
    second = await engine.record_decision("b", "a", "yes", 90)
    assert second.matched is True
    assert second.matched_profile.user_id == "a"

    matches = await messaging.list_matches("a")
    assert len(matches) == 1
    match = matches[0]
    assert match.matched_user.user_id == "b"
    assert match.my_call_duration == 120
    assert match.their_call_duration == 90
    assert match.total_call_duration == 210
    assert match.matched_at == second.like.created_at
    assert match.conversation_id is None


@pytest.mark.asyncio
async def test_matches_sorted_most_recent_first(engine, messaging, make_profile) -> None:
    for uid in ("me", "x", "y", "z"):
        await make_profile(uid)
    await _match(engine, "me", "x")
    await engine.record_decision("me", "y", "yes")
    await _match(engine, "me", "z")
    await engine.record_decision("y", "me", "yes")

    matches = await messaging.list_matches("me")

    assert [m.matched_user.user_id for m in matches] == ["y", "z", "x"]


@pytest.mark.asyncio
async def test_one_sided_like_is_not_a_match(engine, messaging, make_profile) -> None:
    await make_profile("a")
    await make_profile("b")
    await engine.record_decision("a", "b", "yes")

    assert await messaging.list_matches("a") == []
    assert await messaging.list_matches("b") == []
    with pytest.raises(NotMatchedError):
        await messaging.get_or_create_conversation("a", "b")


@pytest.mark.asyncio
async def test_concurrent_conversation_creation_yields_one_row(engine, messaging, database, make_profile) -> None:
    await make_profile("a")
    await make_profile("b")
    await _match(engine, "a", "b")

    from_a, from_b = await asyncio.gather(
        messaging.get_or_create_conversation("a", "b"),
        messaging.get_or_create_conversation("b", "a"),
    )

    assert from_a == from_b
    assert await database[CONVERSATIONS_COLLECTION].count_documents({}) == 1
    assert await messaging.get_or_create_conversation("a", "b") == from_a


@pytest.mark.asyncio
async def test_send_rejects_blank_and_foreign_senders(engine, messaging, make_profile) -> None:
    for uid in ("a", "b", "c"):
        await make_profile(uid)
    await _match(engine, "a", "b")
    conversation_id = await messaging.get_or_create_conversation("a", "b")

    with pytest.raises(DomainValidationError):
        await messaging.send_message(conversation_id, "a", "   ")
    with pytest.raises(DomainValidationError):
        await messaging.send_message(conversation_id, "c", "hi")
    with pytest.raises(NotFoundRepositoryError):
        await messaging.send_message("missing", "a", "hi")
    assert await messaging.list_messages(conversation_id, "a") == []


@pytest.mark.asyncio
async def test_send_trims_and_publishes(engine, messaging, hub, make_profile) -> None:
    await make_profile("a")
    await make_profile("b")
    await _match(engine, "a", "b")
    conversation_id = await messaging.get_or_create_conversation("a", "b")
    for_conversation, for_b = [], []
    hub.subscribe(MESSAGES_TOPIC, for_conversation.append, key=conversation_id)
    hub.subscribe(MESSAGES_TOPIC, for_b.append, key="b")

    message = await messaging.send_message(conversation_id, "a", "  hello  ")

    assert message.content == "hello"
    assert message.read_at is None
    assert for_conversation[0]["message"]["messageId"] == message.message_id
    assert for_b[0]["message"]["senderId"] == "a"


@pytest.mark.asyncio
async def test_unread_aggregation_and_monotonic_read(engine, messaging, hub, make_profile) -> None:
    for uid in ("me", "x", "y"):
        await make_profile(uid)
    await _match(engine, "me", "x")
    await _match(engine, "me", "y")
    with_x = await messaging.get_or_create_conversation("me", "x")
    with_y = await messaging.get_or_create_conversation("y", "me")

    await messaging.send_message(with_x, "x", "one")
    await messaging.send_message(with_x, "x", "two")
    await messaging.send_message(with_y, "y", "three")
    await messaging.send_message(with_y, "me", "mine")

    summary = await messaging.unread_count("me")
    assert summary.total == 3
    assert summary.per_match == {"x": 2, "y": 1}
    assert sum(summary.per_match.values()) == summary.total
    matches = {m.matched_user.user_id: m for m in await messaging.list_matches("me")}
    assert matches["x"].unread_count == 2
    assert matches["x"].conversation_id == with_x

    read_events = []
    hub.subscribe(UNREAD_TOPIC, read_events.append, key="me")
    assert await messaging.mark_read(with_x, "me") == 2
    first_read = {m.message_id: m.read_at for m in await messaging.list_messages(with_x, "me")}
    assert all(first_read.values())
    assert read_events[0]["count"] == 2

    assert await messaging.mark_read(with_x, "me") == 0
    again = {m.message_id: m.read_at for m in await messaging.list_messages(with_x, "me")}
    assert again == first_read

    assert (await messaging.unread_count("me")).total == 1
    # The other side's own message stays unread for them only
    assert (await messaging.unread_count("y")).total == 1


@pytest.mark.asyncio
async def test_list_messages_pages_backwards(engine, messaging, make_profile) -> None:
    await make_profile("a")
    await make_profile("b")
    await _match(engine, "a", "b")
    conversation_id = await messaging.get_or_create_conversation("a", "b")
    for n in range(5):
        await messaging.send_message(conversation_id, "a", f"m{n}")

    latest = await messaging.list_messages(conversation_id, "b", limit=2)
    assert [m.content for m in latest] == ["m3", "m4"]
    older = await messaging.list_messages(conversation_id, "b", before=latest[0].created_at, limit=2)
    assert [m.content for m in older] == ["m1", "m2"]


def test_format_match_time() -> None:
    now = 10 * 86_400_000
    assert format_match_time(now - 30_000, now) == "Just now"
    assert format_match_time(now - 5 * 60_000, now) == "5m ago"
    assert format_match_time(now - 3 * 3_600_000, now) == "3h ago"
    assert format_match_time(now - 30 * 3_600_000, now) == "Yesterday"
    assert format_match_time(now - 4 * 86_400_000, now) == "4d ago"
