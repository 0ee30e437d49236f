"""
Step Pipeline Controller.

Drives one onboarding page: hydrates its selection, validates on advance,
persists through the PersistenceCoordinator and navigates.

Flow:
    interests --(optimistic)--> subcategories --(optimistic)--> deal-breakers
        --(safe: save first)--> complete (marked complete there) --(finish)--> /home

Optimistic steps navigate first and save in the background. If that save
fails for good, the server step stays behind and the guard on the next page
load redirects back to it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from .errors import FailureKind, OnboardingError, user_friendly_message
from .guard import RouteGuard
from .navigation import Router
from .payload import SaveResult
from .persistence import PersistenceCoordinator
from .routes import HOME_ROUTE
from .selection import SelectionStore
from .state import (
    OnboardingStep,
    Profile,
    get_next_step,
    get_previous_step,
    route_for_step,
)
from .store import ProfileStore

logger = logging.getLogger(__name__)


class NavigationStrategy(Enum):
    OPTIMISTIC = "optimistic"  # navigate now, save in background
    SAFE = "safe"              # save, then navigate


STEP_STRATEGIES: dict[OnboardingStep, NavigationStrategy] = {
    OnboardingStep.INTERESTS: NavigationStrategy.OPTIMISTIC,
    OnboardingStep.SUBCATEGORIES: NavigationStrategy.OPTIMISTIC,
    OnboardingStep.DEAL_BREAKERS: NavigationStrategy.SAFE,
}

ADVANCE_NOTICES: dict[OnboardingStep, str] = {
    OnboardingStep.INTERESTS: "Great! {count} interests selected. Let's explore sub-categories!",
    OnboardingStep.SUBCATEGORIES: "Nice! {count} sub-categories selected. Now pick your deal-breakers.",
    OnboardingStep.DEAL_BREAKERS: "All set! Your preferences are saved.",
}


def can_enter(step: OnboardingStep, profile: Profile) -> bool:
    """True when the server has the selections `step` builds on."""
    match step:
        case OnboardingStep.INTERESTS:
            return True
        case OnboardingStep.SUBCATEGORIES:
            return profile.interests_count > 0
        case OnboardingStep.DEAL_BREAKERS:
            return profile.subcategories_count > 0
        case OnboardingStep.COMPLETE:
            return profile.dealbreakers_count > 0


@dataclass
class AdvanceResult:
    """What happened when the user pressed continue."""
    ok: bool
    step: OnboardingStep
    target: str | None = None
    notice: str | None = None
    failure: FailureKind | None = None
    errors: list[str] = field(default_factory=list)
    save: SaveResult | None = None
    task: asyncio.Task | None = None  # background save, optimistic steps only

    @property
    def blocking(self) -> bool:
        return self.failure is not None and self.failure.blocking


class StepPipelineController:
    """
    Controller for the onboarding page currently on screen.

    `mount(step)` on page load, `unmount()` when the page goes away. Work
    that finishes after unmount never touches the page's selection or notices.
    """

    def __init__(
        self,
        store: ProfileStore,
        coordinator: PersistenceCoordinator,
        router: Router,
        guard: RouteGuard | None = None,
    ):
        self.store = store
        self.coordinator = coordinator
        self.router = router
        self.guard = guard

        self.step: OnboardingStep | None = None
        self.selection: SelectionStore | None = None
        self.notices: list[str] = []
        self.alive = False
        self._advancing = False
        self._mount_id = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def mount(self, step: OnboardingStep) -> SelectionStore | None:
        """
        Open the page for `step`.

        The selection starts empty and is pre-filled from the server only
        when the profile reports saved selections for this step.
        """
        self._mount_id += 1
        mount_id = self._mount_id
        self.alive = True
        self.step = step
        self.notices = []
        self._advancing = False

        if step == OnboardingStep.COMPLETE:
            self.selection = None
            return None

        self.selection = SelectionStore(step)
        self.router.prefetch(route_for_step(get_next_step(step)))

        profile = self.store.profile
        if profile is None or profile.count_for(step) == 0:
            return self.selection

        try:
            saved = await self.coordinator.backend.fetch_selections()
        except OnboardingError as e:
            logger.warning(f"Could not load saved {step.value}: {e!r}")
            return self.selection

        if self._is_current(mount_id):
            self.selection.hydrate(saved.for_step(step))
            logger.debug(f"Hydrated {step.value} with {self.selection.count} saved selections")
        return self.selection

    def unmount(self) -> None:
        self.alive = False

    def _is_current(self, mount_id: int) -> bool:
        return self.alive and mount_id == self._mount_id

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def can_enter(self, step: OnboardingStep, profile: Profile | None = None) -> bool:
        profile = profile or self.store.profile
        return profile is not None and can_enter(step, profile)

    async def advance(self) -> AdvanceResult:
        """
        Validate the current selection, persist it and move to the next step.

        Never raises for invalid input or failed saves; the result says what
        went wrong and whether the page should show a blocking banner.
        """
        step = self.step
        if step is None or step == OnboardingStep.COMPLETE or self.selection is None:
            raise RuntimeError("advance() needs a mounted selection step")

        if self._advancing:
            return AdvanceResult(
                ok=False,
                step=step,
                failure=FailureKind.INVALID_SELECTION,
                errors=["A save is already in progress"],
            )

        validation = self.selection.validate()
        if not validation.valid:
            return AdvanceResult(
                ok=False,
                step=step,
                failure=FailureKind.INVALID_SELECTION,
                errors=validation.errors,
            )

        if STEP_STRATEGIES[step] == NavigationStrategy.OPTIMISTIC:
            # This page is done; the next mount clears the flag
            self._advancing = True
            return self._advance_optimistic(step)

        self._advancing = True
        try:
            return await self._advance_safe(step)
        finally:
            self._advancing = False

    def _advance_optimistic(self, step: OnboardingStep) -> AdvanceResult:
        mount_id = self._mount_id
        ids = self.selection.ids
        target = route_for_step(get_next_step(step))

        def on_failure(result: SaveResult) -> None:
            # The next page's guard self-corrects; only surface a notice here
            if self._is_current(mount_id) and result.error is not None:
                self.notices.append(user_friendly_message(result.error))

        task = self.coordinator.save_in_background(step, ids, on_failure=on_failure)
        notice = ADVANCE_NOTICES[step].format(count=len(ids))
        self.notices.append(notice)
        self._navigate(target)
        return AdvanceResult(ok=True, step=step, target=target, notice=notice, task=task)

    async def _advance_safe(self, step: OnboardingStep) -> AdvanceResult:
        mount_id = self._mount_id
        ids = self.selection.ids

        saved = await self.coordinator.save(step, ids)
        if not saved.ok:
            return self._failed(step, saved)

        # The server step is now COMPLETE. Move to /complete before marking,
        # since a completed profile on any other onboarding page goes to /home.
        target = route_for_step(OnboardingStep.COMPLETE)
        if self._is_current(mount_id):
            self._navigate(target)

        completed = await self.coordinator.mark_complete()
        if not completed.ok:
            return self._failed(step, completed)

        notice = ADVANCE_NOTICES[step].format(count=len(ids))
        if self._is_current(mount_id):
            self.notices.append(notice)
        return AdvanceResult(ok=True, step=step, target=target, notice=notice, save=completed)

    def _failed(self, step: OnboardingStep, result: SaveResult) -> AdvanceResult:
        message = user_friendly_message(result.error) if result.error else "Save failed"
        return AdvanceResult(
            ok=False,
            step=step,
            failure=result.failure,
            errors=[message],
            save=result,
        )

    def regress(self) -> str | None:
        """
        Go back one step. Never writes to the server.

        Returns the route navigated to, or None on the first step.
        """
        if self.step in (None, OnboardingStep.INTERESTS):
            return None
        target = route_for_step(get_previous_step(self.step))
        self._navigate(target)
        return target

    async def finish(self) -> SaveResult:
        """
        Leave the celebration page for /home.

        Completion is confirmed first (a no-op once done); on failure the
        user stays put and can retry.
        """
        mount_id = self._mount_id
        result = await self.coordinator.mark_complete()
        if result.ok and self._is_current(mount_id):
            self._navigate(HOME_ROUTE)
        elif not result.ok:
            logger.warning(f"Completion not confirmed, staying on page: {result.error!r}")
        return result

    def _navigate(self, target: str) -> None:
        if self.guard is not None:
            self.guard.navigate(target)
        else:
            self.router.replace(target)
