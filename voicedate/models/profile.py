from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_bound(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PartnerAgeRange(BaseModel):
    """Inclusive age bounds a user accepts in a partner; either bound may be missing."""

    model_config = ConfigDict(extra="ignore")

    min: Optional[int] = None
    max: Optional[int] = None

    @field_validator("min", "max", mode="before")
    @classmethod
    def _lenient_bound(cls, value: Any) -> Optional[int]:
        return _coerce_bound(value)


class OnboardingPreferences(BaseModel):
    """What a user is looking for, as captured during the onboarding interview."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    looking_for: Optional[Union[str, List[str]]] = Field(default=None, alias="lookingFor")
    # Older onboarding flows wrote the same answer under this name
    partner_gender: Optional[Union[str, List[str]]] = Field(default=None, alias="partnerGender")
    partner_age_range: Optional[PartnerAgeRange] = Field(default=None, alias="partnerAgeRange")

    @field_validator("looking_for", "partner_gender", mode="before")
    @classmethod
    def _lenient_token(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set)):
            return [entry for entry in value if isinstance(entry, str)]
        if isinstance(value, str):
            return value
        return None

    @field_validator("partner_age_range", mode="before")
    @classmethod
    def _lenient_range(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, PartnerAgeRange)) else None


class Profile(BaseModel):
    """Profile document stored in MongoDB, one per user."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    age: Optional[int] = None
    gender: Optional[str] = None
    location_city: Optional[str] = Field(default=None, alias="locationCity")
    location_region: Optional[str] = Field(default=None, alias="locationRegion")
    bio: Optional[str] = None
    onboarding_summary: Optional[str] = Field(default=None, alias="onboardingSummary")
    onboarding_tags: List[str] = Field(default_factory=list, alias="onboardingTags")
    profile_photo_url: Optional[str] = Field(default=None, alias="profilePhotoUrl")
    cloned_agent_id: Optional[str] = Field(default=None, alias="clonedAgentId")
    agent_ready: bool = Field(default=False, alias="agentReady")
    onboarding_completed: bool = Field(default=False, alias="onboardingCompleted")
    onboarding_preferences: OnboardingPreferences = Field(
        default_factory=OnboardingPreferences, alias="onboardingPreferences"
    )
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")

    @field_validator("age", mode="before")
    @classmethod
    def _lenient_age(cls, value: Any) -> Optional[int]:
        return _coerce_bound(value)

    @field_validator("onboarding_preferences", mode="before")
    @classmethod
    def _default_preferences(cls, value: Any) -> Any:
        return value if value is not None else {}


class ProfileUpsert(BaseModel):
    """Partial profile fields accepted by the profile store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=80)
    age: Optional[int] = Field(default=None, ge=18, le=120)
    gender: Optional[str] = Field(default=None, max_length=40)
    location_city: Optional[str] = Field(default=None, alias="locationCity")
    location_region: Optional[str] = Field(default=None, alias="locationRegion")
    bio: Optional[str] = Field(default=None, max_length=600)
    onboarding_summary: Optional[str] = Field(default=None, alias="onboardingSummary")
    onboarding_tags: Optional[List[str]] = Field(default=None, alias="onboardingTags")
    profile_photo_url: Optional[str] = Field(default=None, alias="profilePhotoUrl")
    cloned_agent_id: Optional[str] = Field(default=None, alias="clonedAgentId")
    agent_ready: Optional[bool] = Field(default=None, alias="agentReady")
    onboarding_completed: Optional[bool] = Field(default=None, alias="onboardingCompleted")
    onboarding_preferences: Optional[OnboardingPreferences] = Field(
        default=None, alias="onboardingPreferences"
    )


class FeedCard(Profile):
    """Profile as shown in the feed, with the picture and card text resolved."""

    photo_url: str = Field(alias="photoUrl")
    tag: str
    excerpt: str


class FeedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profiles: List[FeedCard] = Field(default_factory=list)
    total: int = 0


__all__ = [
    "PartnerAgeRange",
    "OnboardingPreferences",
    "Profile",
    "ProfileUpsert",
    "FeedCard",
    "FeedResponse",
]
