"""Mutual-visibility test between two profiles."""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..models.profile import PartnerAgeRange, Profile
from .preferences import gender_matches_preference, resolve_looking_for


def age_in_range(age: Optional[int], age_range: Optional[PartnerAgeRange]) -> bool:
    """Inclusive bounds; a missing range, bound or age never excludes."""
    if age_range is None or age is None:
        return True
    if age_range.min is not None and age < age_range.min:
        return False
    if age_range.max is not None and age > age_range.max:
        return False
    return True


def is_compatible(me: Profile, other: Profile) -> bool:
    """True when each side fits the other's stated gender and age preferences.

    Not symmetric in general: each direction is judged from that profile's own
    preferences, and a missing gender only fails the direction that needs it.
    """

    my_prefs = me.onboarding_preferences
    their_prefs = other.onboarding_preferences

    i_want_them = gender_matches_preference(other.gender, resolve_looking_for(my_prefs))
    they_want_me = gender_matches_preference(me.gender, resolve_looking_for(their_prefs))

    age_ok = age_in_range(other.age, my_prefs.partner_age_range) and age_in_range(
        me.age, their_prefs.partner_age_range
    )
    return i_want_them and they_want_me and age_ok


def filter_compatible(me: Profile, candidates: Iterable[Profile]) -> List[Profile]:
    return [candidate for candidate in candidates if is_compatible(me, candidate)]


__all__ = ["age_in_range", "filter_compatible", "is_compatible"]
