"""
Pytest configuration and fixtures for sayso tests.
"""

import asyncio
import os
from unittest.mock import MagicMock

import pytest

# Set test environment before importing sayso modules
os.environ["SAYSO_ENV"] = "development"
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")

from onboarding.backend import OnboardingBackend
from onboarding.payload import SavedSelections, SaveRequest
from onboarding.state import (
    AccountRole,
    OnboardingStep,
    Profile,
    get_next_step,
    later_step,
)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class FakeBackend(OnboardingBackend):
    """
    In-memory stand-in for the onboarding endpoints.

    Applies the same progression rules as the save endpoint: selections
    replace the stored ones, the step never moves backwards, completion
    sets the terminal step.
    """

    def __init__(self, profile: Profile):
        self.profile = profile
        self.saved: dict[OnboardingStep, list[str]] = {}
        self.save_calls: list[SaveRequest] = []
        self.fetch_calls = 0
        self.selection_fetches = 0

        # Failure injection
        self.fail_saves = 0
        self.save_error: Exception | None = None
        self.fail_fetch: Exception | None = None
        self.save_gate: asyncio.Event | None = None

    async def fetch_profile(self) -> Profile:
        self.fetch_calls += 1
        await asyncio.sleep(0)
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return self.profile

    async def save_step(self, request: SaveRequest) -> Profile:
        self.save_calls.append(request)
        if self.save_gate is not None:
            await self.save_gate.wait()
        else:
            await asyncio.sleep(0)

        if self.fail_saves:
            self.fail_saves -= 1
            raise self.save_error

        if request.step == OnboardingStep.COMPLETE or request.mark_complete:
            self.profile = self.profile.with_updates(
                onboarding_step=OnboardingStep.COMPLETE,
                onboarding_complete=True,
            )
            return self.profile

        self.saved[request.step] = list(request.selections)
        counts = {
            OnboardingStep.INTERESTS: "interests_count",
            OnboardingStep.SUBCATEGORIES: "subcategories_count",
            OnboardingStep.DEAL_BREAKERS: "dealbreakers_count",
        }
        self.profile = self.profile.with_updates(
            onboarding_step=later_step(self.profile.onboarding_step, get_next_step(request.step)),
            **{counts[request.step]: len(request.selections)},
        )
        return self.profile

    async def fetch_selections(self) -> SavedSelections:
        self.selection_fetches += 1
        await asyncio.sleep(0)
        return SavedSelections(
            interests=tuple(self.saved.get(OnboardingStep.INTERESTS, ())),
            subcategories=tuple(self.saved.get(OnboardingStep.SUBCATEGORIES, ())),
            dealbreakers=tuple(self.saved.get(OnboardingStep.DEAL_BREAKERS, ())),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_profile(**overrides) -> Profile:
    """Verified personal user at the start of onboarding, unless overridden."""
    fields = {
        "user_id": "user-1",
        "email_verified": True,
        "account_role": AccountRole.PERSONAL,
        "onboarding_step": OnboardingStep.INTERESTS,
        "onboarding_complete": False,
    }
    fields.update(overrides)
    return Profile(**fields)


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def fake_backend():
    return FakeBackend(make_profile())


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.delete.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table
    mock_client.rpc.return_value.execute.return_value = MagicMock(data=None)

    return mock_client
