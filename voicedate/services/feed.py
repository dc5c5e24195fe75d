"""Feed selection: which agent-ready profiles a user browses, and in what order."""

from __future__ import annotations

import enum
import logging
from typing import Dict, List, Optional, Tuple

from ..config import get_settings
from ..db import get_db
from ..models.profile import FeedCard, Profile
from ..repositories.profile import ProfileRepository
from .compatibility import filter_compatible
from .preferences import FEMALE, MALE, NON_BINARY, normalize_gender

LOGGER = logging.getLogger("uvicorn.error")

STOCK_PHOTOS: Dict[str, Tuple[str, ...]] = {
    FEMALE: (
        "/images/stock/female-1.jpg",
        "/images/stock/female-2.jpg",
        "/images/stock/female-3.jpg",
    ),
    MALE: (
        "/images/stock/male-1.jpg",
        "/images/stock/male-2.jpg",
        "/images/stock/male-3.jpg",
    ),
    NON_BINARY: ("/images/stock/non-binary-1.jpg",),
}

DEFAULT_TAG = "New here"
DEFAULT_EXCERPT = "Looking forward to connecting..."
EXCERPT_LIMIT = 100


def stable_hash(value: str) -> int:
    """31-multiplier rolling hash over code points, kept in 32 bits."""
    h = 0
    for ch in value or "":
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h


def stock_photo_for(user_id: str, gender: Optional[str]) -> str:
    """Stock picture for a profile without a photo; same id, same picture."""
    bucket = STOCK_PHOTOS.get(normalize_gender(gender), STOCK_PHOTOS[MALE])
    return bucket[stable_hash(user_id) % len(bucket)]


def profile_tag(profile: Profile) -> str:
    for tag in profile.onboarding_tags:
        if isinstance(tag, str) and tag.strip():
            return tag.strip()
    return DEFAULT_TAG


def bio_excerpt(profile: Profile, limit: int = EXCERPT_LIMIT) -> str:
    for text in (profile.bio, profile.onboarding_summary):
        if text and text.strip():
            text = text.strip()
            return f"{text[:limit]}..." if len(text) > limit else text
    return DEFAULT_EXCERPT


def build_card(profile: Profile) -> FeedCard:
    photo = profile.profile_photo_url or stock_photo_for(profile.user_id, profile.gender)
    return FeedCard(
        **profile.model_dump(by_alias=True),
        photoUrl=photo,
        tag=profile_tag(profile),
        excerpt=bio_excerpt(profile),
    )


class FeedState(str, enum.Enum):
    LOADING = "loading"
    BROWSING = "browsing"
    EXHAUSTED = "exhausted"


class FeedSelector:
    """Restartable cursor over one snapshot of a user's compatible candidates.

    ``current()`` returns ``None`` both for an empty feed and once the cursor
    has moved past the last profile; ``is_empty`` / ``is_exhausted`` tell them
    apart.
    """

    def __init__(self, profile_repo: ProfileRepository, *, max_profiles: Optional[int] = None) -> None:
        self._profile_repo = profile_repo
        self._max_profiles = max_profiles or get_settings().feed_max_profiles
        self._profiles: List[Profile] = []
        self._cursor = 0
        self._state = FeedState.LOADING
        self._generation = 0

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def profiles(self) -> List[Profile]:
        return list(self._profiles)

    @property
    def is_empty(self) -> bool:
        return self._state is not FeedState.LOADING and not self._profiles

    @property
    def is_exhausted(self) -> bool:
        return self._state is FeedState.EXHAUSTED

    @property
    def remaining(self) -> int:
        return max(0, len(self._profiles) - self._cursor)

    async def load_feed(self, me: Profile) -> List[Profile]:
        """Fetch a fresh snapshot for ``me`` and start browsing it from the top.

        If a newer load starts while this one is awaiting the store, this
        result is dropped and the newer snapshot is kept. A failed load leaves
        the previous snapshot and cursor in place. At most ``max_profiles``
        compatible profiles are kept.
        """

        self._generation += 1
        generation = self._generation
        previous_state = self._state
        self._state = FeedState.LOADING

        try:
            candidates = await self._profile_repo.list_agent_ready(exclude_user_id=me.user_id)
        except Exception:
            # Keep browsing the previous snapshot
            if generation == self._generation:
                self._state = previous_state
            raise
        if generation != self._generation:
            LOGGER.debug("Discarding superseded feed load for user=%s", me.user_id)
            return list(self._profiles)

        # The store filter already excludes self; guard against id aliases anyway
        candidates = [c for c in candidates if c.user_id != me.user_id and c.agent_ready]
        self._profiles = filter_compatible(me, candidates)[: self._max_profiles]
        LOGGER.info(
            "Feed loaded user=%s candidates=%d compatible=%d",
            me.user_id,
            len(candidates),
            len(self._profiles),
        )
        self._cursor = 0
        self._sync_state()
        return list(self._profiles)

    def current(self) -> Optional[Profile]:
        if self._state is FeedState.LOADING or self._cursor >= len(self._profiles):
            return None
        return self._profiles[self._cursor]

    def advance(self) -> None:
        if self._state is FeedState.LOADING:
            return
        if self._cursor < len(self._profiles):
            self._cursor += 1
        self._sync_state()

    def reset(self) -> None:
        """Start over on the same snapshot; does not re-fetch."""
        if self._state is FeedState.LOADING:
            return
        self._cursor = 0
        self._sync_state()

    def _sync_state(self) -> None:
        self._state = FeedState.BROWSING if self._cursor < len(self._profiles) else FeedState.EXHAUSTED


def get_feed_selector() -> FeedSelector:
    return FeedSelector(ProfileRepository(get_db()))


__all__ = [
    "DEFAULT_EXCERPT",
    "DEFAULT_TAG",
    "FeedSelector",
    "FeedState",
    "STOCK_PHOTOS",
    "bio_excerpt",
    "build_card",
    "get_feed_selector",
    "profile_tag",
    "stable_hash",
    "stock_photo_for",
]
