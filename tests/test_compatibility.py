from __future__ import annotations

from typing import Any

from voicedate.models.profile import PartnerAgeRange, Profile
from voicedate.services.compatibility import age_in_range, filter_compatible, is_compatible


def _profile(user_id: str, **fields: Any) -> Profile:
    return Profile(userId=user_id, **fields)


def test_woman_seeking_men_and_man_seeking_women_are_compatible() -> None:
    me = _profile("me", gender="Woman", onboardingPreferences={"lookingFor": "Men"})
    other = _profile("them", gender="man", onboardingPreferences={"lookingFor": "women"})
    assert is_compatible(me, other) is True


def test_absent_preference_on_one_side_is_compatible() -> None:
    me = _profile("me", gender="male", onboardingPreferences={"lookingFor": None})
    other = _profile("them", gender="female", onboardingPreferences={"lookingFor": "men"})
    assert is_compatible(me, other) is True


def test_either_direction_failing_hides_the_profile() -> None:
    me = _profile("me", gender="female", onboardingPreferences={"lookingFor": "men"})
    wants_men = _profile("them", gender="male", onboardingPreferences={"lookingFor": "men"})
    assert is_compatible(me, wants_men) is False


def test_missing_gender_on_other_side_fails_my_stated_preference() -> None:
    me = _profile("me", gender="female", onboardingPreferences={"lookingFor": "men"})
    other = _profile("them", gender=None)
    assert is_compatible(me, other) is False


def test_missing_gender_passes_when_nobody_states_a_preference() -> None:
    assert is_compatible(_profile("me"), _profile("them")) is True


def test_legacy_partner_gender_is_used() -> None:
    me = _profile("me", gender="male", onboardingPreferences={"partnerGender": "women"})
    assert is_compatible(me, _profile("a", gender="female")) is True
    assert is_compatible(me, _profile("b", gender="male")) is False


def test_age_range_bounds_are_inclusive() -> None:
    me = _profile("me", age=30, onboardingPreferences={"partnerAgeRange": {"min": 25, "max": 35}})
    for age, expected in ((25, True), (35, True), (24, False), (36, False)):
        assert is_compatible(me, _profile(f"c{age}", age=age)) is expected


def test_age_range_checked_from_their_side_too() -> None:
    me = _profile("me", age=40)
    other = _profile("them", age=30, onboardingPreferences={"partnerAgeRange": {"max": 35}})
    assert is_compatible(me, other) is False


def test_open_ended_and_missing_ages_do_not_exclude() -> None:
    assert age_in_range(None, PartnerAgeRange(min=25, max=35)) is True
    assert age_in_range(60, PartnerAgeRange(min=25)) is True
    assert age_in_range(20, None) is True


def test_malformed_preferences_degrade_to_compatible() -> None:
    me = _profile(
        "me",
        gender="female",
        onboardingPreferences={"lookingFor": 42, "partnerAgeRange": "twenties"},
    )
    other = _profile("them", gender="male", age="not-a-number")
    assert is_compatible(me, other) is True


def test_compatibility_is_stable_across_reevaluation() -> None:
    me = _profile("me", gender="female", onboardingPreferences={"lookingFor": "men"})
    other = _profile("them", gender="male", onboardingPreferences={"lookingFor": "women"})
    results = {is_compatible(me, other) for _ in range(5)}
    assert results == {True}
    assert me.gender == "female"
    assert other.onboarding_preferences.looking_for == "women"


def test_filter_compatible_keeps_order() -> None:
    me = _profile("me", gender="male", onboardingPreferences={"lookingFor": "women"})
    candidates = [
        _profile("a", gender="female"),
        _profile("b", gender="male"),
        _profile("c", gender="woman"),
    ]
    assert [p.user_id for p in filter_compatible(me, candidates)] == ["a", "c"]
