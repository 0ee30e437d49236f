"""
Onboarding Client.

Wires the client-side state machine for one signed-in app instance:
backend, ProfileStore, RouteGuard, PersistenceCoordinator and the page
controller, all sharing one store.
"""

import logging

from sayso.config import core_settings
from sayso.observability.session_logger import SessionLogger, close_session_logger, get_session_logger

from .backend import HttpOnboardingBackend, OnboardingBackend
from .guard import RouteGuard
from .navigation import NavigationExecutor, RouteDecision, Router
from .persistence import PersistenceCoordinator
from .pipeline import StepPipelineController
from .state import Session
from .store import ProfileStore

logger = logging.getLogger(__name__)


class OnboardingClient:
    """
    One app instance's access control and onboarding pipeline.

    Usage:
        client = OnboardingClient.connect(token, router, Session.authenticated(user_id))
        await client.start()
        await client.on_session_changed(session)   # auth state changes
        ...
        await client.close()
    """

    def __init__(
        self,
        backend: OnboardingBackend,
        router: Router,
        session: Session | None = None,
        session_logger: SessionLogger | None = None,
    ):
        self.backend = backend
        self.router = router
        self._owns_logger = session_logger is None
        self.session_logger = session_logger or get_session_logger()

        self.store = ProfileStore(backend)
        self.guard = RouteGuard(
            self.store,
            NavigationExecutor(router, session_logger=self.session_logger),
            session=session,
            login_route=core_settings.login_redirect,
        )
        self.coordinator = PersistenceCoordinator(backend, self.store, session_logger=self.session_logger)
        self.pipeline = StepPipelineController(self.store, self.coordinator, router, guard=self.guard)

    @classmethod
    def connect(
        cls,
        access_token: str,
        router: Router,
        session: Session | None = None,
        base_url: str | None = None,
    ) -> "OnboardingClient":
        """Client over the onboarding HTTP API at `base_url` (default from config)."""
        backend = HttpOnboardingBackend(base_url or core_settings.api_base_url, access_token)
        return cls(backend, router, session=session)

    async def start(self) -> RouteDecision:
        """Load the profile and guard the page the router is on."""
        return await self.guard.mount(self.router.current_path)

    async def on_session_changed(self, session: Session) -> RouteDecision:
        """Sign-in, sign-out or user switch. Returns once the new profile is loaded."""
        return await self.guard.session_changed(session)

    async def close(self) -> None:
        """Wait for background saves, then release the transport and the session log."""
        await self.coordinator.drain()
        await self.guard.wait_for_profile()
        self.guard.detach()
        if isinstance(self.backend, HttpOnboardingBackend):
            await self.backend.aclose()
        if self._owns_logger:
            close_session_logger()
        else:
            self.session_logger.close()
        logger.debug("Onboarding client closed")
