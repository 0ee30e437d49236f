"""
sayso Onboarding & Access Control.

Decides which page a visitor may see and moves personal users through
onboarding in order. Server-confirmed Profile state is the only input the
route guard trusts.

Steps:
1. Interests      - pick 3-6 interests
2. Subcategories  - narrow them down (1-10)
3. Deal-breakers  - pick 1-3 deal-breakers
4. Complete       - celebration page, then /home

The API router (onboarding.api) is imported separately by the web app.
"""

from .client import OnboardingClient
from .guard import GuardInputs, RouteGuard, evaluate
from .navigation import InMemoryRouter, NavigationExecutor, RouteDecision, Router
from .persistence import CompletionState, PersistenceCoordinator
from .pipeline import StepPipelineController
from .selection import SelectionStore
from .state import AccountRole, OnboardingStep, Profile, ProfileState, Session
from .store import ProfileStore

__all__ = [
    "AccountRole",
    "CompletionState",
    "GuardInputs",
    "InMemoryRouter",
    "NavigationExecutor",
    "OnboardingClient",
    "OnboardingStep",
    "PersistenceCoordinator",
    "Profile",
    "ProfileState",
    "ProfileStore",
    "RouteDecision",
    "RouteGuard",
    "Router",
    "SelectionStore",
    "Session",
    "StepPipelineController",
    "evaluate",
]
