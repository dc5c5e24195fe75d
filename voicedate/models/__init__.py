from .likes import DecisionResult, LikeDocument, Match
from .message import ConversationDocument, Message, OutgoingMessage, UnreadSummary
from .profile import FeedCard, OnboardingPreferences, PartnerAgeRange, Profile, ProfileUpsert

__all__ = [
    "ConversationDocument",
    "DecisionResult",
    "FeedCard",
    "LikeDocument",
    "Match",
    "Message",
    "OnboardingPreferences",
    "OutgoingMessage",
    "PartnerAgeRange",
    "Profile",
    "ProfileUpsert",
    "UnreadSummary",
]
