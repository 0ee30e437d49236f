"""
Route Table.

Which pages need a session, which belong to onboarding, and which onboarding
steps each onboarding page accepts.
"""

from dataclasses import dataclass, field

from .state import STEP_ROUTES, OnboardingStep, steps_from

HOME_ROUTE = "/home"
LOGIN_ROUTE = "/login"
VERIFY_EMAIL_ROUTE = "/verify-email"
ADMIN_ROUTE = "/admin"
MY_BUSINESSES_ROUTE = "/my-businesses"
COMPLETE_ROUTE = STEP_ROUTES[OnboardingStep.COMPLETE]

# Personal onboarding step pages
ONBOARDING_ROUTES = tuple(STEP_ROUTES.values())

BUSINESS_ROUTES = ("/my-businesses", "/add-business", "/claim-business", "/settings")

PUBLIC_ONLY_ROUTES = ("/", "/onboarding", "/login", "/register", "/verify-email")

PRIVATE_ROUTES = ("/home", "/profile", "/saved", "/reviews", "/write-review", "/leaderboard")

# Reachable regardless of auth state
PASSWORD_RESET_ROUTES = ("/forgot-password", "/reset-password")


@dataclass(frozen=True)
class RouteRequirements:
    """What a page demands before it may render."""
    requires_auth: bool = True
    requires_onboarding: bool = False
    allowed_onboarding_steps: frozenset[OnboardingStep] = field(default_factory=frozenset)
    redirect_to: str | None = None  # login target override
    unguarded: bool = False         # password reset pages

    @classmethod
    def public(cls) -> "RouteRequirements":
        return cls(requires_auth=False)

    @classmethod
    def private(cls, redirect_to: str | None = None) -> "RouteRequirements":
        return cls(requires_auth=True, redirect_to=redirect_to)

    @classmethod
    def onboarding(cls, step: OnboardingStep) -> "RouteRequirements":
        """
        Requirements of an onboarding step page.

        The page accepts a server step equal to or later than its own
        (back-navigation), never an earlier one (skipping ahead). The
        celebration page only accepts COMPLETE.
        """
        return cls(
            requires_auth=True,
            requires_onboarding=True,
            allowed_onboarding_steps=steps_from(step),
        )


def _matches(path: str, route: str) -> bool:
    if route == "/":
        return path == "/"
    return path == route or path.startswith(route + "/")


def _matches_any(path: str, routes: tuple[str, ...]) -> bool:
    return any(_matches(path, r) for r in routes)


def is_admin_route(path: str) -> bool:
    return _matches(path, ADMIN_ROUTE)


def is_business_route(path: str) -> bool:
    return _matches_any(path, BUSINESS_ROUTES)


def is_onboarding_route(path: str) -> bool:
    return _matches_any(path, ONBOARDING_ROUTES)


def is_public_only_route(path: str) -> bool:
    return _matches_any(path, PUBLIC_ONLY_ROUTES)


def is_password_reset_route(path: str) -> bool:
    return _matches_any(path, PASSWORD_RESET_ROUTES)


def requirements_for(path: str) -> RouteRequirements:
    """
    Requirements registered for `path`.

    Unknown pages default to private: better to ask for a login than to
    render a page to the wrong visitor.
    """
    if is_password_reset_route(path):
        return RouteRequirements(requires_auth=False, unguarded=True)

    for step, route in STEP_ROUTES.items():
        if _matches(path, route):
            return RouteRequirements.onboarding(step)

    if is_public_only_route(path):
        return RouteRequirements.public()

    return RouteRequirements.private()


def route_table() -> list[tuple[str, RouteRequirements]]:
    """Every registered route with its requirements, for display."""
    paths = (
        list(PUBLIC_ONLY_ROUTES)
        + list(PASSWORD_RESET_ROUTES)
        + list(PRIVATE_ROUTES)
        + list(ONBOARDING_ROUTES)
        + list(BUSINESS_ROUTES)
        + [ADMIN_ROUTE]
    )
    return [(p, requirements_for(p)) for p in paths]
