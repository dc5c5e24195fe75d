from . import conversations, feed, likes, profiles

__all__ = ["conversations", "feed", "likes", "profiles"]
