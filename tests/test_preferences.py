from __future__ import annotations

import logging

import pytest

from voicedate.models.profile import OnboardingPreferences
from voicedate.services.preferences import (
    ANY,
    FEMALE,
    KNOWN_ALIASES,
    MALE,
    NON_BINARY,
    gender_matches_preference,
    normalize_gender,
    resolve_looking_for,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Woman", FEMALE),
        ("  LADIES ", FEMALE),
        ("f", FEMALE),
        ("Men", MALE),
        ("gentleman", MALE),
        ("guys", MALE),
        ("Non Binary", NON_BINARY),
        ("enby", NON_BINARY),
        ("other", NON_BINARY),
        ("No Preference", ANY),
        ("Everyone", ANY),
        ("both", ANY),
    ],
)
def test_normalize_maps_synonyms(raw: str, expected: str) -> None:
    assert normalize_gender(raw) == expected


def test_normalize_passes_unknown_tokens_through(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="uvicorn.error"):
        assert normalize_gender("  Genderfluid ") == "genderfluid"
    assert "genderfluid" in caplog.text


def test_normalize_handles_missing_values() -> None:
    assert normalize_gender(None) == ""
    assert normalize_gender("   ") == ""


def test_normalize_is_idempotent_over_vocabulary() -> None:
    for alias in KNOWN_ALIASES:
        once = normalize_gender(alias)
        assert normalize_gender(once) == once


def test_resolve_prefers_looking_for_over_legacy_field() -> None:
    prefs = OnboardingPreferences(lookingFor="women", partnerGender="men")
    assert resolve_looking_for(prefs) == "women"


def test_resolve_falls_back_to_partner_gender_when_blank() -> None:
    assert resolve_looking_for(OnboardingPreferences(lookingFor="  ", partnerGender="men")) == "men"
    assert resolve_looking_for(OnboardingPreferences(lookingFor=[], partnerGender=["men"])) == ["men"]
    assert resolve_looking_for(OnboardingPreferences()) is None
    assert resolve_looking_for(None) is None


def test_gender_matches_without_preference_is_open() -> None:
    assert gender_matches_preference("male", None) is True
    assert gender_matches_preference(None, "") is True


def test_gender_missing_fails_a_stated_preference() -> None:
    assert gender_matches_preference(None, "women") is False
    assert gender_matches_preference("  ", ["women"]) is False


def test_gender_matches_scalar_and_list_preferences() -> None:
    assert gender_matches_preference("Woman", "ladies") is True
    assert gender_matches_preference("man", "women") is False
    assert gender_matches_preference("nb", ["men", "enby"]) is True
    assert gender_matches_preference("male", ["women", "anyone"]) is True


def test_unrecognized_gender_only_matches_any() -> None:
    assert gender_matches_preference("agender", "women") is False
    assert gender_matches_preference("agender", "everybody") is True
    assert gender_matches_preference("agender", "agender") is True
