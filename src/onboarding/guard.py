"""
Route Guard.

Decides whether the page at a path may render, must redirect, or must wait.

`evaluate` is a pure function of GuardInputs. RouteGuard is the stateful
shell around it: it holds the session, the current path and a ProfileStore
subscription, re-evaluates on discrete events, and hands every decision to
the NavigationExecutor.

Rules, first match wins:
    1. Session still resolving                        -> Suspend
    2. Signed in, profile not loaded                  -> Suspend
       (password reset pages render from here on)
    3. Admin outside /admin                           -> /admin
    4. Business owner on a personal onboarding page   -> /my-businesses
    5. Auth required, signed out                      -> login
    6. /home while unverified or not onboarded        -> /verify-email, /my-businesses or /interests
    7. Signed in on a public-only page                -> role/step landing page
    8. Onboarding page that doesn't accept the step   -> route of the server step
    9. Onboarded user on an onboarding page           -> /home (/complete stays for personal users)
A redirect to the current path is reported as Allow.
"""

import asyncio
import logging
from dataclasses import dataclass

from .navigation import NavigationExecutor, RouteDecision
from .routes import (
    ADMIN_ROUTE,
    COMPLETE_ROUTE,
    HOME_ROUTE,
    LOGIN_ROUTE,
    MY_BUSINESSES_ROUTE,
    VERIFY_EMAIL_ROUTE,
    RouteRequirements,
    is_admin_route,
    is_business_route,
    is_onboarding_route,
    requirements_for,
)
from .state import (
    AccountRole,
    OnboardingStep,
    Profile,
    ProfileState,
    Session,
    loaded_profile,
    route_for_step,
)
from .store import ProfileStore

logger = logging.getLogger(__name__)

# Redirect chains longer than this are cut off and logged
MAX_REDIRECT_HOPS = 8


@dataclass(frozen=True)
class GuardInputs:
    """Everything a route decision depends on."""
    session: Session
    profile_state: ProfileState
    path: str
    requirements: RouteRequirements | None = None  # looked up from path when omitted
    login_route: str = LOGIN_ROUTE

    @property
    def route_requirements(self) -> RouteRequirements:
        return self.requirements or requirements_for(self.path)

    @property
    def profile(self) -> Profile | None:
        return loaded_profile(self.profile_state)


def evaluate(inputs: GuardInputs) -> RouteDecision:
    """Decide for `inputs`. Pure: same inputs, same decision."""
    decision = _decide(inputs)
    if decision.is_redirect and decision.target == inputs.path:
        return RouteDecision.allow()
    return decision


def _decide(inputs: GuardInputs) -> RouteDecision:
    session = inputs.session
    path = inputs.path
    req = inputs.route_requirements
    user_id = session.user_id if session.is_authenticated else None

    # 1-2. Never decide on unresolved data
    if session.is_loading:
        return RouteDecision.suspend()

    # A signed-out visitor has no profile, whatever the store still holds.
    # Another user's profile counts as not loaded.
    profile = inputs.profile if user_id else None
    if profile is not None and profile.user_id != user_id:
        profile = None
    if user_id and profile is None:
        return RouteDecision.suspend()

    if req.unguarded:
        return RouteDecision.allow()

    role = profile.account_role if profile else None

    # 3-4. Role confinement
    if role == AccountRole.ADMIN and not is_admin_route(path):
        return RouteDecision.redirect(ADMIN_ROUTE)

    if role == AccountRole.BUSINESS_OWNER and is_onboarding_route(path):
        return RouteDecision.redirect(MY_BUSINESSES_ROUTE)

    # 5. Signed-out visitor on a private page
    if req.requires_auth and not user_id:
        return RouteDecision.redirect(req.redirect_to or inputs.login_route)

    if profile is None:
        return RouteDecision.allow()

    # 6. Home requires a verified, onboarded account
    if req.requires_auth and path == HOME_ROUTE:
        if not profile.email_verified:
            return RouteDecision.redirect(VERIFY_EMAIL_ROUTE)
        if not profile.onboarding_complete:
            if role == AccountRole.BUSINESS_OWNER:
                return RouteDecision.redirect(MY_BUSINESSES_ROUTE)
            return RouteDecision.redirect(route_for_step(OnboardingStep.INTERESTS))

    # 7. Signed-in visitor on a public-only page
    if not req.requires_auth:
        return _landing_decision(profile, path)

    # 8. Onboarding page must accept the server step
    if req.requires_onboarding and profile.onboarding_step not in req.allowed_onboarding_steps:
        return RouteDecision.redirect(route_for_step(profile.onboarding_step))

    # 9. Onboarding is over
    if profile.onboarding_complete and is_onboarding_route(path):
        if not (role == AccountRole.PERSONAL and path == COMPLETE_ROUTE):
            return RouteDecision.redirect(HOME_ROUTE)

    return RouteDecision.allow()


def _landing_decision(profile: Profile, path: str) -> RouteDecision:
    """Where a signed-in visitor on a public-only page belongs."""
    if path == COMPLETE_ROUTE:
        return RouteDecision.allow()

    match profile.account_role:
        case AccountRole.ADMIN:
            return RouteDecision.redirect(ADMIN_ROUTE)
        case AccountRole.BUSINESS_OWNER:
            if is_business_route(path):
                return RouteDecision.allow()
            return RouteDecision.redirect(MY_BUSINESSES_ROUTE)
        case _:
            if profile.onboarding_complete:
                return RouteDecision.redirect(HOME_ROUTE)
            if not profile.email_verified:
                return RouteDecision.redirect(VERIFY_EMAIL_ROUTE)
            return RouteDecision.redirect(route_for_step(profile.onboarding_step))


# =============================================================================
# Stateful shell
# =============================================================================


class RouteGuard:
    """
    Event-driven guard for one app instance.

    Subscribes to the ProfileStore on construction; call `detach()` when
    the host goes away.
    """

    def __init__(
        self,
        store: ProfileStore,
        executor: NavigationExecutor,
        session: Session | None = None,
        path: str | None = None,
        login_route: str = LOGIN_ROUTE,
    ):
        self.store = store
        self.executor = executor
        self.session = session or Session.loading()
        self.path = path or executor.router.current_path
        self.login_route = login_route
        self.decision: RouteDecision = RouteDecision.suspend()
        self._refreshes: set[asyncio.Task] = set()
        self._unsubscribe = store.subscribe(self.on_profile_changed)

    def detach(self) -> None:
        self._unsubscribe()

    def inputs(self) -> GuardInputs:
        return GuardInputs(
            session=self.session,
            profile_state=self.store.snapshot,
            path=self.path,
            login_route=self.login_route,
        )

    def evaluate(self) -> RouteDecision:
        """
        Decide for the current inputs and act on the result.

        A redirect moves the guard to the target page, which is then
        evaluated in turn.
        """
        for _ in range(MAX_REDIRECT_HOPS):
            decision = evaluate(self.inputs())
            self.decision = decision
            if not self.executor.execute(self.path, decision):
                return decision
            self.path = decision.target
        logger.error(f"Redirect chain exceeded {MAX_REDIRECT_HOPS} hops, stopping at {self.path}")
        return self.decision

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on_profile_changed(self, state: ProfileState | None = None) -> RouteDecision:
        return self.evaluate()

    def on_session_changed(self, session: Session) -> RouteDecision:
        """
        Adopt a new session.

        Signing out or switching user drops the profile and starts a new
        store epoch, so nothing the previous user saved can land afterwards.
        A session that resolves to a signed-in user without their profile
        schedules a fetch when an event loop is running; `session_changed()`
        does the same and waits for it.
        """
        previous = self.session
        self.session = session
        if previous.user_id is not None and previous.user_id != session.user_id:
            # Fires on_profile_changed, which evaluates
            self.store.clear()
        else:
            self.evaluate()
        if self._needs_profile():
            self._schedule_refresh()
        return self.decision

    async def session_changed(self, session: Session) -> RouteDecision:
        """Adopt a new session and wait for its profile to load."""
        self.on_session_changed(session)
        await self.wait_for_profile()
        return self.decision

    async def wait_for_profile(self) -> None:
        """Wait for profile fetches started by session changes."""
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes), return_exceptions=True)

    def _needs_profile(self) -> bool:
        if not self.session.is_authenticated or self.session.is_loading:
            return False
        profile = loaded_profile(self.store.snapshot)
        return profile is None or profile.user_id != self.session.user_id

    def _schedule_refresh(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No event loop, profile loads on the next mount()")
            return
        task = loop.create_task(self.store.refresh())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    def on_navigation_requested(self, path: str) -> RouteDecision:
        """User or app navigated to `path` (link, back button, pipeline)."""
        self.path = path
        self.executor.reset()
        return self.evaluate()

    def navigate(self, path: str) -> RouteDecision:
        """Replace the current page with `path`, then guard it."""
        self.executor.router.replace(path)
        return self.on_navigation_requested(path)

    async def mount(self, path: str | None = None) -> RouteDecision:
        """
        Page load.

        Always re-fetches the profile for a signed-in session: a cached
        snapshot may predate a save that finished after the last page went away.
        """
        if path is not None:
            self.path = path
        self.executor.reset()

        if self.session.is_authenticated and not self.session.is_loading:
            await self.store.refresh()
        return self.evaluate()
