"""
Persistence Coordinator.

The only component that talks to the save endpoint. Transport failures stop
here: every operation returns a SaveResult, so nothing thrown by the network
crosses a navigation boundary.

After every save the ProfileStore is reconciled with the server, either
from the save response (a post-write read of the stored profile) or, when
the save failed, by re-fetching the profile. Saves that settle after the
session ended are not reconciled into the new one.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from .backend import OnboardingBackend
from .errors import FailureKind, error_from_exception, retry_with_backoff
from .payload import SaveRequest, SaveResult
from .state import OnboardingStep, ProfileState
from .store import ProfileStore

if TYPE_CHECKING:
    from sayso.observability.session_logger import SessionLogger

logger = logging.getLogger(__name__)

FailureCallback = Callable[[SaveResult], None]


class CompletionState(Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    DONE = "done"


class PersistenceCoordinator:
    def __init__(
        self,
        backend: OnboardingBackend,
        store: ProfileStore,
        background_max_retries: int | None = None,
        completion_max_retries: int | None = None,
        base_delay: float | None = None,
        session_logger: SessionLogger | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        from sayso.config import core_settings

        self.backend = backend
        self.store = store
        self.background_max_retries = (
            core_settings.background_save_max_retries if background_max_retries is None else background_max_retries
        )
        self.completion_max_retries = (
            core_settings.completion_max_retries if completion_max_retries is None else completion_max_retries
        )
        self.base_delay = core_settings.save_retry_base_delay if base_delay is None else base_delay
        self._session_logger = session_logger
        self._sleep = sleep

        self.completion_state = CompletionState.NOT_STARTED
        self._completion_task: asyncio.Task | None = None
        self._completion_result: SaveResult | None = None
        self._completion_epoch = store.epoch
        self._tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Saves
    # -------------------------------------------------------------------------

    async def save(self, step: OnboardingStep, selections: Iterable[str] = ()) -> SaveResult:
        """Save one step now, without retries. Returns a typed result."""
        return await self._perform(SaveRequest(step, list(selections)), max_retries=0)

    def save_in_background(
        self,
        step: OnboardingStep,
        selections: Iterable[str] = (),
        on_failure: FailureCallback | None = None,
    ) -> asyncio.Task:
        """
        Schedule a save that retries with backoff.

        The store is flagged as refreshing before this returns, so the guard
        suspends on the next page until the save settles. `on_failure` is
        called once retries run out.
        """
        request = SaveRequest(step, list(selections))
        epoch = self.store.begin_save()
        task = asyncio.get_running_loop().create_task(
            self._perform(request, self.background_max_retries, epoch=epoch, on_failure=on_failure)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background save."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    async def mark_complete(self) -> SaveResult:
        """
        Mark onboarding complete. Takes effect at most once per session.

        - Done (or the profile already reports completion): no request.
        - In flight: joins the running attempt.
        - Failed: state returns to NOT_STARTED so the caller can retry.

        The attempt is shared, so a cancelled caller does not cancel it; its
        outcome is recorded when the attempt itself finishes.
        """
        request = SaveRequest(OnboardingStep.COMPLETE, mark_complete=True)

        if self._completion_epoch != self.store.epoch:
            self._reset_completion()

        if self.completion_state == CompletionState.DONE and self._completion_result is not None:
            return self._completion_result

        profile = self.store.profile
        if profile is not None and profile.is_fully_complete:
            self.completion_state = CompletionState.DONE
            self._completion_result = SaveResult.success(request, profile, skipped=True)
            return self._completion_result

        if self.completion_state == CompletionState.IN_FLIGHT and self._completion_task is not None:
            return await asyncio.shield(self._completion_task)

        self.completion_state = CompletionState.IN_FLIGHT
        task = asyncio.ensure_future(self._perform(request, self.completion_max_retries))
        task.add_done_callback(self._settle_completion)
        self._completion_task = task
        return await asyncio.shield(task)

    def _settle_completion(self, task: asyncio.Future) -> None:
        # A reset (new session) orphans the old attempt
        if task is not self._completion_task:
            return
        self._completion_task = None
        if task.cancelled() or task.exception() is not None:
            self.completion_state = CompletionState.NOT_STARTED
            return
        result = task.result()
        if result.ok:
            self.completion_state = CompletionState.DONE
            self._completion_result = result
        else:
            self.completion_state = CompletionState.NOT_STARTED

    def _reset_completion(self) -> None:
        self.completion_state = CompletionState.NOT_STARTED
        self._completion_task = None
        self._completion_result = None
        self._completion_epoch = self.store.epoch

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reconcile(self) -> ProfileState:
        """Re-fetch the profile so the guard sees ground truth."""
        return await self.store.refresh()

    async def _perform(
        self,
        request: SaveRequest,
        max_retries: int,
        epoch: int | None = None,
        on_failure: FailureCallback | None = None,
    ) -> SaveResult:
        if epoch is None:
            epoch = self.store.begin_save()

        failure = FailureKind.COMPLETION_MARK_FAILED if request.mark_complete else FailureKind.SAVE_FAILED
        try:
            profile = await retry_with_backoff(
                lambda: self.backend.save_step(request),
                max_retries=max_retries,
                base_delay=self.base_delay,
                sleep=self._sleep,
            )
        except Exception as e:
            error = error_from_exception(e)
            logger.warning(f"Save of {request.step.value} failed: {error!r}")
            result = SaveResult.failed(request, failure, error)
        else:
            logger.info(f"Saved {request.step.value} -> server step {profile.onboarding_step.value}")
            result = SaveResult.success(request, profile)
        finally:
            self.store.end_save(epoch)

        # save_step answers with a fresh read of the stored profile, which
        # stands in for the re-fetch. A session that ended meanwhile gets neither.
        if epoch != self.store.epoch:
            logger.info(f"Save of {request.step.value} settled after the session changed, not published")
        elif result.ok and result.profile is not None:
            self.store.publish(result.profile, epoch=epoch)
        else:
            await self.reconcile()

        if self._session_logger is not None:
            self._session_logger.save_result(
                request.step.value,
                result.request.status.value,
                failure=result.failure.value if result.failure else None,
                error=result.error.message if result.error else None,
            )

        if not result.ok and on_failure is not None:
            on_failure(result)
        return result
