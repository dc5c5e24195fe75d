from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

from ..db import get_db
from ..events import LIKES_TOPIC, MATCHES_TOPIC, EventHub, get_event_hub
from ..models.likes import DecisionResult, LikeDocument
from ..models.profile import Profile
from ..repositories.exceptions import NotFoundRepositoryError, TransientStoreError
from ..repositories.likes import LikeRepository
from ..repositories.profile import ProfileRepository
from .exceptions import DomainValidationError, MatchCheckError

LOGGER = logging.getLogger("uvicorn.error")

DECISIONS = ("yes", "no")


def _clean_id(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


class MatchEngine:
    """Records like decisions and detects mutual likes.

    A "yes" writes (or accumulates onto) the single Like row for the ordered
    pair, then looks for the reverse row. Whichever side writes second sees
    the match; both sides may see it when the writes race, which is fine.
    """

    def __init__(
        self,
        profile_repo: ProfileRepository,
        like_repo: LikeRepository,
        hub: Optional[EventHub] = None,
    ) -> None:
        self._profile_repo = profile_repo
        self._like_repo = like_repo
        self._hub = hub

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return await self._profile_repo.get_by_user_id(user_id)

    async def record_decision(
        self,
        from_user_id: str,
        to_user_id: str,
        decision: str,
        call_duration_seconds: int = 0,
    ) -> DecisionResult:
        from_user_id = _clean_id(from_user_id)
        to_user_id = _clean_id(to_user_id)
        if not from_user_id or not to_user_id:
            raise DomainValidationError("both user ids are required")
        if from_user_id == to_user_id:
            raise DomainValidationError("users cannot like themselves")
        if decision not in DECISIONS:
            raise DomainValidationError(f"decision must be one of {DECISIONS}")
        if isinstance(call_duration_seconds, bool) or not isinstance(call_duration_seconds, int):
            raise DomainValidationError("callDurationSeconds must be an integer")
        if call_duration_seconds < 0:
            raise DomainValidationError("callDurationSeconds must be non-negative")

        if decision == "no":
            # Passes only matter to the viewer's own feed bookkeeping
            return DecisionResult(success=True, saved=False, matched=False)

        target = await self._profile_repo.get_by_user_id(to_user_id)
        if target is None:
            raise NotFoundRepositoryError("profile not found")

        try:
            like = await self._like_repo.accumulate(
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                call_duration_seconds=call_duration_seconds,
                now_ms=self._now_ms(),
            )
        except TransientStoreError as exc:
            LOGGER.warning("Like save failed from=%s to=%s: %s", from_user_id, to_user_id, exc)
            raise

        await self._publish(
            LIKES_TOPIC,
            {
                "type": "like_saved",
                "fromUserId": from_user_id,
                "toUserId": to_user_id,
                "callDurationSeconds": like.call_duration_seconds,
                "createdAt": like.created_at,
            },
            keys=(to_user_id,),
        )

        try:
            reverse = await self._like_repo.get(to_user_id, from_user_id)
        except TransientStoreError as exc:
            LOGGER.warning("Reverse like check failed from=%s to=%s: %s", from_user_id, to_user_id, exc)
            raise MatchCheckError(f"match check failed: {exc}", like=like) from exc

        if reverse is None:
            return DecisionResult(success=True, saved=True, matched=False, like=like)

        matched_at = max(like.created_at, reverse.created_at)
        LOGGER.info("Match detected between %s and %s", from_user_id, to_user_id)
        await self._publish(
            MATCHES_TOPIC,
            {
                "type": "match",
                "userIds": sorted((from_user_id, to_user_id)),
                "triggeredBy": from_user_id,
                "matchedAt": matched_at,
            },
            keys=(from_user_id, to_user_id),
        )
        return DecisionResult(
            success=True,
            saved=True,
            matched=True,
            matchedProfile=target,
            like=like,
        )

    async def check_match(self, user_a: str, user_b: str) -> bool:
        """Both directed likes exist. Store failures propagate, never ``False``."""
        if not user_a or not user_b or user_a == user_b:
            return False
        forward = await self._like_repo.get(user_a, user_b)
        if forward is None:
            return False
        reverse = await self._like_repo.get(user_b, user_a)
        return reverse is not None

    async def mutual_likes(self, user_id: str) -> List[Tuple[LikeDocument, LikeDocument]]:
        """Pairs of (my like, their like) for every mutual like of ``user_id``."""
        mine = await self._like_repo.list_from(user_id)
        if not mine:
            return []
        theirs = await self._like_repo.list_to(user_id, from_user_ids=[like.to_user_id for like in mine])
        by_sender = {like.from_user_id: like for like in theirs}
        return [(like, by_sender[like.to_user_id]) for like in mine if like.to_user_id in by_sender]

    async def _publish(self, topic: str, event: dict, *, keys: Tuple[str, ...]) -> None:
        if self._hub is None:
            return
        await self._hub.publish(topic, event, keys=keys)


def get_match_engine() -> MatchEngine:
    db = get_db()
    return MatchEngine(
        profile_repo=ProfileRepository(db),
        like_repo=LikeRepository(db),
        hub=get_event_hub(),
    )


__all__ = ["DECISIONS", "MatchEngine", "get_match_engine"]
