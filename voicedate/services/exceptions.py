"""Exceptions raised by the matching and messaging services."""

from __future__ import annotations

from typing import Optional

from ..models.likes import LikeDocument
from ..repositories.exceptions import NotFoundRepositoryError, TransientStoreError


class DomainValidationError(ValueError):
    """Input rejected before any write took place."""


class NotMatchedError(NotFoundRepositoryError):
    """The two users have not liked each other, so there is no match to act on."""


class MatchCheckError(TransientStoreError):
    """The like was saved but the reverse-like lookup failed.

    The match state is unknown; callers must not read this as "no match".
    """

    def __init__(self, message: str, *, like: Optional[LikeDocument] = None) -> None:
        super().__init__(message)
        self.like = like
        self.like_saved = like is not None


__all__ = ["DomainValidationError", "MatchCheckError", "NotMatchedError"]
