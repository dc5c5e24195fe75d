from .compatibility import is_compatible
from .feed import FeedSelector, FeedState, stock_photo_for
from .likes_service import MatchEngine
from .message_service import MessagingService, format_match_time
from .preferences import gender_matches_preference, normalize_gender, resolve_looking_for
from .profile_service import ProfileService
from .session import ViewerSession

__all__ = [
    "FeedSelector",
    "FeedState",
    "MatchEngine",
    "MessagingService",
    "ProfileService",
    "ViewerSession",
    "format_match_time",
    "gender_matches_preference",
    "is_compatible",
    "normalize_gender",
    "resolve_looking_for",
    "stock_photo_for",
]
