"""
Profile Store.

Scoped owner of the shared ProfileState. Writers replace the snapshot with a
new immutable value; subscribers are told after every replacement.

Refreshes are numbered. A response from an older refresh never overwrites
the result of a newer one. Sessions are numbered too: `clear()` starts a new
epoch, and saves started in an earlier epoch can neither publish nor count
as pending in the new one. While a save is pending, any profile that lands
is held as ProfileLoading(previous=...) so the guard keeps suspending until
the save settles.
"""

import logging
from typing import Callable

from .backend import OnboardingBackend
from .errors import error_from_exception
from .state import (
    Profile,
    ProfileLoaded,
    ProfileLoading,
    ProfileState,
    ProfileUnavailable,
    last_known_profile,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[ProfileState], None]


class ProfileStore:
    def __init__(self, backend: OnboardingBackend, initial: ProfileState | None = None):
        self.backend = backend
        self._state: ProfileState = initial or ProfileLoading()
        self._subscribers: list[Subscriber] = []
        self._generation = 0
        self._epoch = 0
        self._pending_saves = 0

    @property
    def snapshot(self) -> ProfileState:
        return self._state

    @property
    def profile(self) -> Profile | None:
        """Best known profile, for display. The guard reads `snapshot`."""
        return last_known_profile(self._state)

    @property
    def epoch(self) -> int:
        """Session number, bumped by `clear()`."""
        return self._epoch

    @property
    def has_pending_saves(self) -> bool:
        return self._pending_saves > 0

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register `subscriber`. Returns an unsubscribe function."""
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def replace(self, state: ProfileState) -> None:
        self._state = state
        for subscriber in list(self._subscribers):
            subscriber(state)

    def publish(self, profile: Profile, epoch: int | None = None) -> bool:
        """
        Publish a server-confirmed profile (e.g. a save response).

        Supersedes any refresh still in flight. A profile fetched under an
        earlier `epoch` is dropped. Returns whether it was published.
        """
        if epoch is not None and epoch != self._epoch:
            logger.debug(f"Dropping profile from session epoch {epoch} (now {self._epoch})")
            return False
        self._generation += 1
        self.replace(self._settled(profile))
        return True

    def mark_refreshing(self) -> None:
        """Flag the snapshot as stale until the next profile lands."""
        if not isinstance(self._state, ProfileLoading):
            self.replace(ProfileLoading(previous=self.profile))

    def begin_save(self) -> int:
        """Count a save as pending. Returns the epoch to hand back to `end_save`."""
        self._pending_saves += 1
        self.mark_refreshing()
        return self._epoch

    def end_save(self, epoch: int | None = None) -> None:
        if epoch is not None and epoch != self._epoch:
            return
        self._pending_saves = max(0, self._pending_saves - 1)

    def clear(self) -> None:
        """Drop everything (sign-out or user switch) and start a new epoch."""
        self._epoch += 1
        self._generation += 1
        self._pending_saves = 0
        self.replace(ProfileLoading())

    async def refresh(self) -> ProfileState:
        """
        Fetch the profile and publish the result.

        Failures become ProfileUnavailable, never an exception. Returns the
        state this refresh produced, or the current one if it was superseded
        by a newer refresh, a publish or `clear()`.
        """
        self._generation += 1
        generation = self._generation
        self.mark_refreshing()

        try:
            profile = await self.backend.fetch_profile()
            state: ProfileState = self._settled(profile)
        except Exception as e:
            error = error_from_exception(e)
            logger.warning(f"Profile fetch failed: {error!r}")
            state = ProfileUnavailable(error, previous=self.profile)

        if generation != self._generation:
            logger.debug(f"Discarding stale profile refresh #{generation}")
            return self._state

        self.replace(state)
        return state

    def _settled(self, profile: Profile) -> ProfileState:
        if self._pending_saves:
            return ProfileLoading(previous=profile)
        return ProfileLoaded(profile)
