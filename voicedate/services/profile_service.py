from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from ..db import get_db
from ..models.profile import Profile, ProfileUpsert
from ..repositories.profile import ProfileRepository
from .exceptions import DomainValidationError

MAX_TAGS = 12


def _clean_str(value: Any, max_len: Optional[int] = None) -> Optional[str]:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if max_len is not None and len(text) > max_len:
            text = text[:max_len]
        return text
    return None


def _normalize_tags(raw: Any, limit: int = MAX_TAGS) -> List[str]:
    tags: List[str] = []
    if isinstance(raw, (list, tuple)):
        for entry in raw:
            cleaned = _clean_str(entry, max_len=40)
            if not cleaned or cleaned in tags:
                continue
            tags.append(cleaned)
            if len(tags) >= limit:
                break
    return tags


class ProfileService:
    """Partial profile writes coming from the onboarding and agent-creation flows."""

    def __init__(self, profile_repo: ProfileRepository) -> None:
        self._profile_repo = profile_repo

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        if not user_id:
            return None
        return await self._profile_repo.get_by_user_id(user_id)

    async def upsert_profile(self, user_id: str, payload: ProfileUpsert) -> Profile:
        user_id = (user_id or "").strip()
        if not user_id:
            raise DomainValidationError("userId required")
        updates = self._build_updates(payload)
        now_ms = self._now_ms()
        return await self._profile_repo.upsert_profile(
            user_id=user_id,
            updates=updates,
            updated_at=now_ms,
            created_at=now_ms,
        )

    def _build_updates(self, payload: ProfileUpsert) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}

        for attr, key, max_len in (
            ("display_name", "displayName", 80),
            ("gender", "gender", 40),
            ("location_city", "locationCity", 80),
            ("location_region", "locationRegion", 80),
            ("bio", "bio", 600),
            ("onboarding_summary", "onboardingSummary", 2000),
            ("profile_photo_url", "profilePhotoUrl", 512),
            ("cloned_agent_id", "clonedAgentId", 128),
        ):
            if attr in payload.model_fields_set:
                updates[key] = _clean_str(getattr(payload, attr), max_len=max_len)

        if payload.age is not None:
            updates["age"] = payload.age
        if payload.onboarding_tags is not None:
            updates["onboardingTags"] = _normalize_tags(payload.onboarding_tags)
        if payload.agent_ready is not None:
            updates["agentReady"] = bool(payload.agent_ready)
        if payload.onboarding_completed is not None:
            updates["onboardingCompleted"] = bool(payload.onboarding_completed)
        if payload.onboarding_preferences is not None:
            updates["onboardingPreferences"] = payload.onboarding_preferences.model_dump(
                by_alias=True, exclude_none=True
            )

        return updates


def get_profile_service() -> ProfileService:
    return ProfileService(ProfileRepository(get_db()))


__all__ = ["ProfileService", "get_profile_service"]
