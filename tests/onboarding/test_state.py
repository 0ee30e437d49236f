"""
Tests for the onboarding state model: step ordering, parsing and Profile snapshots.
"""

import dataclasses

import pytest

from onboarding.state import (
    AccountRole,
    OnboardingStep,
    Profile,
    ProfileLoaded,
    ProfileLoading,
    ProfileUnavailable,
    Session,
    compare_steps,
    get_next_step,
    get_previous_step,
    last_known_profile,
    later_step,
    loaded_profile,
    parse_role,
    parse_step,
    route_for_step,
    step_for_route,
    steps_from,
)


class TestStepOrdering:
    def test_next_step_walks_the_flow(self):
        assert get_next_step(OnboardingStep.INTERESTS) == OnboardingStep.SUBCATEGORIES
        assert get_next_step(OnboardingStep.SUBCATEGORIES) == OnboardingStep.DEAL_BREAKERS
        assert get_next_step(OnboardingStep.DEAL_BREAKERS) == OnboardingStep.COMPLETE
        assert get_next_step(OnboardingStep.COMPLETE) == OnboardingStep.COMPLETE

    def test_previous_step_stops_at_interests(self):
        assert get_previous_step(OnboardingStep.DEAL_BREAKERS) == OnboardingStep.SUBCATEGORIES
        assert get_previous_step(OnboardingStep.INTERESTS) == OnboardingStep.INTERESTS

    def test_compare_and_later_step(self):
        assert compare_steps(OnboardingStep.INTERESTS, OnboardingStep.COMPLETE) < 0
        assert compare_steps(OnboardingStep.COMPLETE, OnboardingStep.COMPLETE) == 0
        assert later_step(OnboardingStep.DEAL_BREAKERS, OnboardingStep.SUBCATEGORIES) == OnboardingStep.DEAL_BREAKERS

    def test_steps_from(self):
        assert steps_from(OnboardingStep.DEAL_BREAKERS) == {OnboardingStep.DEAL_BREAKERS, OnboardingStep.COMPLETE}
        assert steps_from(OnboardingStep.COMPLETE) == {OnboardingStep.COMPLETE}

    def test_routes_round_trip(self):
        for step in OnboardingStep:
            assert step_for_route(route_for_step(step)) == step
        assert route_for_step(OnboardingStep.DEAL_BREAKERS) == "/deal-breakers"
        assert step_for_route("/home") is None


class TestParsing:
    @pytest.mark.parametrize("value", [None, "", "start", "bogus"])
    def test_unknown_steps_start_at_interests(self, value):
        assert parse_step(value) == OnboardingStep.INTERESTS

    def test_known_step(self):
        assert parse_step("deal-breakers") == OnboardingStep.DEAL_BREAKERS

    @pytest.mark.parametrize("value", [None, "user", "owner"])
    def test_unknown_roles_are_personal(self, value):
        assert parse_role(value) == AccountRole.PERSONAL

    def test_business_owner_role(self):
        assert parse_role("business_owner") == AccountRole.BUSINESS_OWNER


class TestSession:
    def test_states(self):
        assert Session.loading().is_loading
        anon = Session.anonymous()
        assert not anon.is_loading and not anon.is_authenticated and anon.user_id is None
        user = Session.authenticated("u1")
        assert user.is_authenticated and user.user_id == "u1"


class TestProfile:
    def test_frozen(self):
        profile = Profile(user_id="u1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            profile.onboarding_step = OnboardingStep.COMPLETE

    def test_complete_profile_sits_on_terminal_step(self):
        profile = Profile(user_id="u1", onboarding_complete=True, onboarding_step=OnboardingStep.INTERESTS)
        assert profile.onboarding_step == OnboardingStep.COMPLETE
        assert profile.is_fully_complete

    def test_with_updates_returns_new_snapshot(self):
        profile = Profile(user_id="u1")
        updated = profile.with_updates(interests_count=4)
        assert updated.interests_count == 4
        assert profile.interests_count == 0

    def test_from_row_treats_nulls_as_zero(self):
        profile = Profile.from_row(
            {
                "onboarding_step": None,
                "onboarding_complete": None,
                "interests_count": None,
                "role": "admin",
            },
            user_id="u1",
        )
        assert profile.user_id == "u1"
        assert profile.onboarding_step == OnboardingStep.INTERESTS
        assert profile.interests_count == 0
        assert profile.account_role == AccountRole.ADMIN

    def test_to_dict_matches_read_shape(self):
        row = Profile(user_id="u1", interests_count=3).to_dict()
        assert row["onboarding_step"] == "interests"
        assert row["account_role"] == "personal"
        assert Profile.from_row(row) == Profile(user_id="u1", interests_count=3)

    def test_count_for(self):
        profile = Profile(user_id="u1", interests_count=3, subcategories_count=2, dealbreakers_count=1)
        assert profile.count_for(OnboardingStep.SUBCATEGORIES) == 2
        assert profile.count_for(OnboardingStep.COMPLETE) == 0


class TestProfileState:
    def test_loaded_profile_only_from_loaded(self):
        profile = Profile(user_id="u1")
        assert loaded_profile(ProfileLoaded(profile)) is profile
        assert loaded_profile(ProfileLoading(previous=profile)) is None
        assert loaded_profile(ProfileUnavailable(RuntimeError("x"), previous=profile)) is None

    def test_last_known_profile_includes_previous(self):
        profile = Profile(user_id="u1")
        assert last_known_profile(ProfileLoading(previous=profile)) is profile
        assert last_known_profile(ProfileUnavailable(RuntimeError("x"), previous=profile)) is profile
        assert last_known_profile(ProfileLoading()) is None
