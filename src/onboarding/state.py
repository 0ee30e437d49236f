"""
Onboarding State Model.

Steps, account roles, the visitor Session and the server-confirmed Profile.

Profile is the single shared value read by the route guard. Instances are
frozen: writers build a new snapshot instead of mutating, so a reader never
sees a half-updated profile.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class OnboardingStep(Enum):
    """Onboarding flow steps, in order."""
    INTERESTS = "interests"              # Step 1: Pick 3-6 interests
    SUBCATEGORIES = "subcategories"      # Step 2: Narrow interests down
    DEAL_BREAKERS = "deal-breakers"      # Step 3: Pick 1-3 deal-breakers
    COMPLETE = "complete"                # Done (celebration page)


class AccountRole(Enum):
    """Account classification. Determines reachable route sets."""
    PERSONAL = "personal"
    BUSINESS_OWNER = "business_owner"
    ADMIN = "admin"


STEP_ORDER: list[OnboardingStep] = list(OnboardingStep)

STEP_ROUTES: dict[OnboardingStep, str] = {
    OnboardingStep.INTERESTS: "/interests",
    OnboardingStep.SUBCATEGORIES: "/subcategories",
    OnboardingStep.DEAL_BREAKERS: "/deal-breakers",
    OnboardingStep.COMPLETE: "/complete",
}

ROUTE_STEPS: dict[str, OnboardingStep] = {route: step for step, route in STEP_ROUTES.items()}


def parse_step(value: Any) -> OnboardingStep:
    """
    Parse a stored step value.

    Null, unknown and the legacy "start" value all map to INTERESTS.
    """
    if isinstance(value, OnboardingStep):
        return value
    try:
        return OnboardingStep(value)
    except ValueError:
        return OnboardingStep.INTERESTS


def parse_role(value: Any) -> AccountRole:
    """Parse a stored role value. Legacy "user" and unknown values are personal."""
    if isinstance(value, AccountRole):
        return value
    try:
        return AccountRole(value)
    except ValueError:
        return AccountRole.PERSONAL


def step_index(step: OnboardingStep) -> int:
    return STEP_ORDER.index(step)


def compare_steps(first: OnboardingStep, second: OnboardingStep) -> int:
    """Negative if first is earlier, 0 if equal, positive if later."""
    return step_index(first) - step_index(second)


def later_step(first: OnboardingStep, second: OnboardingStep) -> OnboardingStep:
    """Return whichever step is further along."""
    return first if compare_steps(first, second) >= 0 else second


def get_next_step(step: OnboardingStep) -> OnboardingStep:
    """Step that follows `step`. COMPLETE is terminal."""
    idx = step_index(step)
    if idx + 1 < len(STEP_ORDER):
        return STEP_ORDER[idx + 1]
    return OnboardingStep.COMPLETE


def get_previous_step(step: OnboardingStep) -> OnboardingStep:
    """Step before `step`. INTERESTS has no predecessor and maps to itself."""
    idx = step_index(step)
    return STEP_ORDER[idx - 1] if idx > 0 else OnboardingStep.INTERESTS


def steps_from(step: OnboardingStep) -> frozenset[OnboardingStep]:
    """`step` and every later step."""
    return frozenset(STEP_ORDER[step_index(step):])


def route_for_step(step: OnboardingStep) -> str:
    return STEP_ROUTES[step]


def step_for_route(path: str) -> OnboardingStep | None:
    """Step owning `path` (exact or nested route), or None."""
    for route, step in ROUTE_STEPS.items():
        if path == route or path.startswith(route + "/"):
            return step
    return None


# =============================================================================
# Session & Profile
# =============================================================================


@dataclass(frozen=True)
class Session:
    """
    Visitor session.

    Created at app load (loading), resolved once auth answers,
    destroyed at sign-out.
    """
    user_id: str | None = None
    is_authenticated: bool = False
    is_loading: bool = True

    @classmethod
    def loading(cls) -> "Session":
        return cls()

    @classmethod
    def anonymous(cls) -> "Session":
        return cls(user_id=None, is_authenticated=False, is_loading=False)

    @classmethod
    def authenticated(cls, user_id: str) -> "Session":
        return cls(user_id=user_id, is_authenticated=True, is_loading=False)


@dataclass(frozen=True)
class Profile:
    """
    Server-confirmed onboarding profile.

    Ground truth for the route guard. Never built from optimistic local state.
    """
    user_id: str
    email_verified: bool = False
    account_role: AccountRole = AccountRole.PERSONAL
    onboarding_step: OnboardingStep = OnboardingStep.INTERESTS
    onboarding_complete: bool = False
    interests_count: int = 0
    subcategories_count: int = 0
    dealbreakers_count: int = 0

    def __post_init__(self):
        # A completed profile always sits on the terminal step
        if self.onboarding_complete and self.onboarding_step != OnboardingStep.COMPLETE:
            object.__setattr__(self, "onboarding_step", OnboardingStep.COMPLETE)

    @property
    def is_fully_complete(self) -> bool:
        return self.onboarding_complete and self.onboarding_step == OnboardingStep.COMPLETE

    def count_for(self, step: OnboardingStep) -> int:
        """Server count of saved selections for a selection step."""
        return {
            OnboardingStep.INTERESTS: self.interests_count,
            OnboardingStep.SUBCATEGORIES: self.subcategories_count,
            OnboardingStep.DEAL_BREAKERS: self.dealbreakers_count,
        }.get(step, 0)

    def with_updates(self, **changes) -> "Profile":
        """Return a new snapshot with `changes` applied."""
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: dict, user_id: str | None = None) -> "Profile":
        """
        Build a Profile from a profile read response or a `profiles` row.

        Null counts and flags are treated as zero/false.
        """
        return cls(
            user_id=str(row.get("user_id") or user_id or ""),
            email_verified=bool(row.get("email_verified")),
            account_role=parse_role(row.get("account_role") or row.get("role")),
            onboarding_step=parse_step(row.get("onboarding_step")),
            onboarding_complete=bool(row.get("onboarding_complete")),
            interests_count=int(row.get("interests_count") or 0),
            subcategories_count=int(row.get("subcategories_count") or 0),
            dealbreakers_count=int(row.get("dealbreakers_count") or 0),
        )

    def to_dict(self) -> dict:
        """Serialize in the profile read endpoint's shape."""
        return {
            "user_id": self.user_id,
            "email_verified": self.email_verified,
            "account_role": self.account_role.value,
            "onboarding_step": self.onboarding_step.value,
            "onboarding_complete": self.onboarding_complete,
            "interests_count": self.interests_count,
            "subcategories_count": self.subcategories_count,
            "dealbreakers_count": self.dealbreakers_count,
        }


# =============================================================================
# Profile snapshot states (tagged)
# =============================================================================


@dataclass(frozen=True)
class ProfileLoading:
    """No profile yet, or a refresh is in flight."""
    previous: Profile | None = None


@dataclass(frozen=True)
class ProfileUnavailable:
    """Last fetch failed. Transient: the guard suspends, never redirects."""
    error: Exception
    previous: Profile | None = None


@dataclass(frozen=True)
class ProfileLoaded:
    """Fresh, server-confirmed profile."""
    profile: Profile


ProfileState = ProfileLoading | ProfileUnavailable | ProfileLoaded


def loaded_profile(state: ProfileState) -> Profile | None:
    """Profile from a loaded state, None otherwise."""
    match state:
        case ProfileLoaded(profile=profile):
            return profile
        case ProfileLoading() | ProfileUnavailable():
            return None


def last_known_profile(state: ProfileState) -> Profile | None:
    """Best known profile, including the one a refresh is replacing. Display only."""
    match state:
        case ProfileLoaded(profile=profile):
            return profile
        case ProfileLoading(previous=previous) | ProfileUnavailable(previous=previous):
            return previous
