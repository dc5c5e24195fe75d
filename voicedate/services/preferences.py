"""Canonicalisation of free-text gender and partner-preference tokens."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Union

from ..models.profile import OnboardingPreferences

LOGGER = logging.getLogger("uvicorn.error")

FEMALE = "female"
MALE = "male"
NON_BINARY = "non-binary"
ANY = "any"

_SYNONYMS = {
    FEMALE: ("woman", "women", "female", "f", "girl", "girls", "lady", "ladies"),
    MALE: ("man", "men", "male", "m", "boy", "guy", "guys", "gentleman", "gentlemen"),
    NON_BINARY: ("non-binary", "nonbinary", "nb", "enby", "non binary", "other"),
    ANY: ("any", "everyone", "all", "both", "anyone", "everybody", "open", "no preference"),
}

_LOOKUP = {alias: token for token, aliases in _SYNONYMS.items() for alias in aliases}

KNOWN_TOKENS = frozenset(_SYNONYMS)
KNOWN_ALIASES = frozenset(_LOOKUP)

Preference = Union[str, List[str]]


def normalize_gender(raw: Optional[str]) -> str:
    """Map ``raw`` onto female/male/non-binary/any.

    Unrecognised values come back lower-cased and trimmed; they match nothing
    except ``any``.
    """

    value = (raw or "").strip().lower()
    token = _LOOKUP.get(value)
    if token is not None:
        return token
    if value:
        LOGGER.warning("Unrecognized gender/preference token %r passed through", value)
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not any(isinstance(v, str) and v.strip() for v in value)
    return True


def resolve_looking_for(preferences: Optional[OnboardingPreferences]) -> Optional[Preference]:
    """Return the stated partner preference.

    ``lookingFor`` wins over the legacy ``partnerGender`` field; blank strings
    and empty lists count as not set.
    """

    if preferences is None:
        return None
    for candidate in (preferences.looking_for, preferences.partner_gender):
        if not _is_blank(candidate):
            return candidate
    return None


def gender_matches_preference(gender: Optional[str], preference: Optional[Preference]) -> bool:
    if _is_blank(preference):
        return True
    if not gender or not gender.strip():
        return False
    target = normalize_gender(gender)
    entries = preference if isinstance(preference, (list, tuple)) else [preference]
    for entry in entries:
        if not isinstance(entry, str) or not entry.strip():
            continue
        wanted = normalize_gender(entry)
        if wanted == ANY or wanted == target:
            return True
    return False


__all__ = [
    "ANY",
    "FEMALE",
    "KNOWN_ALIASES",
    "KNOWN_TOKENS",
    "MALE",
    "NON_BINARY",
    "gender_matches_preference",
    "normalize_gender",
    "resolve_looking_for",
]
