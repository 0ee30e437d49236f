"""
Tests for PersistenceCoordinator: typed save results, idempotent completion,
background retries and reconciliation.
"""

import asyncio

from onboarding.errors import ErrorCode, FailureKind, OnboardingError, error_from_status
from onboarding.payload import SaveStatus
from onboarding.persistence import CompletionState, PersistenceCoordinator
from onboarding.state import OnboardingStep, ProfileLoaded, ProfileLoading
from onboarding.store import ProfileStore


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


def _coordinator(backend, initial=None, retries=2):
    delays = []

    async def sleep(delay):
        delays.append(delay)

    store = ProfileStore(backend, initial=initial)
    coordinator = PersistenceCoordinator(
        backend,
        store,
        background_max_retries=retries,
        completion_max_retries=0,
        base_delay=0.25,
        sleep=sleep,
    )
    return coordinator, store, delays


INTERESTS = ["food-drink", "arts-culture", "family-pets"]


class TestSave:
    def test_success_publishes_server_profile(self, fake_backend):
        coordinator, store, _ = _coordinator(fake_backend)

        result = _run(coordinator.save(OnboardingStep.INTERESTS, INTERESTS))

        assert result.ok
        assert result.request.status == SaveStatus.SUCCESS
        assert result.profile.onboarding_step == OnboardingStep.SUBCATEGORIES
        assert store.snapshot == ProfileLoaded(fake_backend.profile)
        assert fake_backend.save_calls[0].to_body() == {"step": "interests", "interests": INTERESTS}

    def test_success_response_stands_in_for_refetch(self, fake_backend):
        """save_step answers with the stored profile, so no second read is made."""
        coordinator, store, _ = _coordinator(fake_backend)

        _run(coordinator.save(OnboardingStep.INTERESTS, INTERESTS))

        assert fake_backend.fetch_calls == 0
        assert store.profile == fake_backend.profile
        assert store.profile.interests_count == 3

    def test_failure_is_a_value_and_reconciles(self, fake_backend):
        coordinator, store, _ = _coordinator(fake_backend)
        fake_backend.fail_saves = 1
        fake_backend.save_error = error_from_status(500)

        result = _run(coordinator.save(OnboardingStep.INTERESTS, INTERESTS))

        assert not result.ok
        assert result.failure == FailureKind.SAVE_FAILED
        assert result.error.code == ErrorCode.API_ERROR
        assert fake_backend.fetch_calls == 1
        assert store.snapshot == ProfileLoaded(fake_backend.profile)
        assert store.profile.onboarding_step == OnboardingStep.INTERESTS

    def test_unexpected_exception_is_contained(self, fake_backend):
        coordinator, _, _ = _coordinator(fake_backend)
        fake_backend.fail_saves = 1
        fake_backend.save_error = KeyError("boom")

        result = _run(coordinator.save(OnboardingStep.INTERESTS, INTERESTS))

        assert result.failure == FailureKind.SAVE_FAILED
        assert result.error.code == ErrorCode.UNKNOWN_ERROR


class TestMarkComplete:
    def test_concurrent_calls_make_one_request(self, fake_backend):
        coordinator, _, _ = _coordinator(fake_backend)

        async def scenario():
            return await asyncio.gather(coordinator.mark_complete(), coordinator.mark_complete())

        first, second = _run(scenario())

        assert first.ok and second.ok
        assert len(fake_backend.save_calls) == 1
        assert coordinator.completion_state == CompletionState.DONE

    def test_second_call_after_done_is_free(self, fake_backend):
        coordinator, _, _ = _coordinator(fake_backend)

        async def scenario():
            await coordinator.mark_complete()
            return await coordinator.mark_complete()

        result = _run(scenario())
        assert result.ok
        assert len(fake_backend.save_calls) == 1

    def test_already_complete_profile_short_circuits(self, fake_backend, profile_factory):
        done = profile_factory(onboarding_complete=True)
        coordinator, _, _ = _coordinator(fake_backend, initial=ProfileLoaded(done))

        result = _run(coordinator.mark_complete())

        assert result.ok and result.skipped
        assert fake_backend.save_calls == []
        assert coordinator.completion_state == CompletionState.DONE

    def test_failure_allows_retry(self, fake_backend):
        coordinator, store, _ = _coordinator(fake_backend)
        fake_backend.fail_saves = 1
        fake_backend.save_error = error_from_status(0)

        failed = _run(coordinator.mark_complete())
        assert failed.failure == FailureKind.COMPLETION_MARK_FAILED
        assert failed.failure.blocking
        assert coordinator.completion_state == CompletionState.NOT_STARTED

        retried = _run(coordinator.mark_complete())
        assert retried.ok
        assert store.profile.is_fully_complete
        assert len(fake_backend.save_calls) == 2

    def test_cancelled_caller_does_not_strand_completion(self, fake_backend):
        coordinator, _, _ = _coordinator(fake_backend)
        fake_backend.save_gate = asyncio.Event()

        async def scenario():
            first = asyncio.ensure_future(coordinator.mark_complete())
            await asyncio.sleep(0)
            first.cancel()
            fake_backend.save_gate.set()
            second = await coordinator.mark_complete()
            try:
                await first
            except asyncio.CancelledError:
                pass
            return first, second

        first, second = _run(scenario())

        assert first.cancelled()
        assert second.ok
        assert coordinator.completion_state == CompletionState.DONE
        assert len(fake_backend.save_calls) == 1
        assert _run(coordinator.mark_complete()) is second

    def test_new_session_resets_completion(self, fake_backend):
        coordinator, store, _ = _coordinator(fake_backend)
        _run(coordinator.mark_complete())
        assert coordinator.completion_state == CompletionState.DONE

        store.clear()
        fake_backend.profile = fake_backend.profile.with_updates(user_id="user-2", onboarding_complete=False)

        assert _run(coordinator.mark_complete()).ok
        assert len(fake_backend.save_calls) == 2

    def test_request_body(self, fake_backend):
        coordinator, _, _ = _coordinator(fake_backend)
        _run(coordinator.mark_complete())
        assert fake_backend.save_calls[0].to_body() == {"step": "complete", "mark_complete": True}


class TestBackgroundSave:
    def test_store_suspends_until_save_settles(self, fake_backend, profile_factory):
        coordinator, store, _ = _coordinator(fake_backend, initial=ProfileLoaded(profile_factory()))
        fake_backend.save_gate = asyncio.Event()
        snapshots = []

        async def scenario():
            coordinator.save_in_background(OnboardingStep.INTERESTS, INTERESTS)
            snapshots.append(store.snapshot)
            # A refresh while the save is pending must not expose the old step
            await store.refresh()
            snapshots.append(store.snapshot)
            fake_backend.save_gate.set()
            await coordinator.drain()
            snapshots.append(store.snapshot)

        _run(scenario())

        assert isinstance(snapshots[0], ProfileLoading)
        assert isinstance(snapshots[1], ProfileLoading)
        assert snapshots[2] == ProfileLoaded(fake_backend.profile)
        assert store.profile.onboarding_step == OnboardingStep.SUBCATEGORIES

    def test_retries_with_backoff(self, fake_backend):
        coordinator, _, delays = _coordinator(fake_backend, retries=2)
        fake_backend.fail_saves = 2
        fake_backend.save_error = error_from_status(503)

        async def scenario():
            return await coordinator.save_in_background(OnboardingStep.INTERESTS, INTERESTS)

        result = _run(scenario())

        assert result.ok
        assert len(fake_backend.save_calls) == 3
        assert delays == [0.25, 0.5]

    def test_exhausted_retries_report_failure(self, fake_backend):
        coordinator, store, _ = _coordinator(fake_backend, retries=1)
        fake_backend.fail_saves = 5
        fake_backend.save_error = error_from_status(503)
        failures = []

        async def scenario():
            coordinator.save_in_background(OnboardingStep.INTERESTS, INTERESTS, on_failure=failures.append)
            await coordinator.drain()

        _run(scenario())

        assert len(failures) == 1
        assert failures[0].failure == FailureKind.SAVE_FAILED
        assert isinstance(failures[0].error, OnboardingError)
        # Reconciled with the unchanged server profile
        assert store.snapshot == ProfileLoaded(fake_backend.profile)
        assert coordinator.pending == 0

    def test_save_settling_after_sign_out_is_dropped(self, fake_backend, profile_factory):
        coordinator, store, _ = _coordinator(fake_backend, initial=ProfileLoaded(profile_factory()))
        fake_backend.save_gate = asyncio.Event()
        failures = []

        async def scenario():
            coordinator.save_in_background(OnboardingStep.INTERESTS, INTERESTS, on_failure=failures.append)
            store.clear()
            fake_backend.save_gate.set()
            await coordinator.drain()

        _run(scenario())

        assert store.snapshot == ProfileLoading()
        assert not store.has_pending_saves
        assert fake_backend.fetch_calls == 0
        assert failures == []
