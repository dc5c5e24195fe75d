from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .profile import Profile

Decision = Literal["yes", "no"]


class DecisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: str = Field(alias="targetUserId", min_length=1)
    decision: Decision
    call_duration_seconds: int = Field(default=0, alias="callDurationSeconds", ge=0)


class LikeDocument(BaseModel):
    """One directed like; at most one per (from, to) pair."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_user_id: str = Field(alias="fromUserId")
    to_user_id: str = Field(alias="toUserId")
    call_duration_seconds: int = Field(default=0, alias="callDurationSeconds")
    created_at: int = Field(alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")


class DecisionResult(BaseModel):
    """Outcome of recording a decision.

    ``matched`` is ``None`` when the like was saved but the reverse lookup
    failed, so a match could neither be confirmed nor ruled out.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    saved: bool = False
    matched: Optional[bool] = False
    matched_profile: Optional[Profile] = Field(default=None, alias="matchedProfile")
    like: Optional[LikeDocument] = None
    error: Optional[str] = None


class Match(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    matched_user: Profile = Field(alias="matchedUser")
    matched_at: int = Field(alias="matchedAt")
    my_call_duration: int = Field(default=0, alias="myCallDuration")
    their_call_duration: int = Field(default=0, alias="theirCallDuration")
    total_call_duration: int = Field(default=0, alias="totalCallDuration")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    unread_count: int = Field(default=0, alias="unreadCount")


class MatchesResponse(BaseModel):
    matches: List[Match] = Field(default_factory=list)


__all__ = [
    "Decision",
    "DecisionRequest",
    "LikeDocument",
    "DecisionResult",
    "Match",
    "MatchesResponse",
]
