"""
Navigation.

Router abstraction plus the single executor allowed to act on route
decisions. The executor deduplicates: an identical redirect for the same
page runs once, however many times the guard re-evaluates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sayso.observability.session_logger import SessionLogger

logger = logging.getLogger(__name__)


class RouteAction(Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    SUSPEND = "suspend"  # render loading only, decide later


@dataclass(frozen=True)
class RouteDecision:
    action: RouteAction
    target: str | None = None

    @classmethod
    def allow(cls) -> "RouteDecision":
        return cls(RouteAction.ALLOW)

    @classmethod
    def suspend(cls) -> "RouteDecision":
        return cls(RouteAction.SUSPEND)

    @classmethod
    def redirect(cls, target: str) -> "RouteDecision":
        return cls(RouteAction.REDIRECT, target)

    @property
    def is_redirect(self) -> bool:
        return self.action == RouteAction.REDIRECT

    def __str__(self) -> str:
        if self.is_redirect:
            return f"Redirect({self.target})"
        return self.action.value.capitalize()


class Router(ABC):
    """Host router. `replace` must not add a history entry."""

    @property
    @abstractmethod
    def current_path(self) -> str:
        ...

    @abstractmethod
    def replace(self, path: str) -> None:
        ...

    def prefetch(self, path: str) -> None:
        """Optional warm-up of a likely next page."""
        return None


class InMemoryRouter(Router):
    """
    Router that only records navigation.

    Used by the CLI and tests, and by headless hosts that read
    `current_path` after each decision.
    """

    def __init__(self, path: str = "/"):
        self._path = path
        self.history: list[str] = [path]
        self.replaced: list[str] = []
        self.prefetched: list[str] = []

    @property
    def current_path(self) -> str:
        return self._path

    def replace(self, path: str) -> None:
        self._path = path
        self.history[-1] = path
        self.replaced.append(path)

    def push(self, path: str) -> None:
        """User-initiated navigation (link click, back button)."""
        self._path = path
        self.history.append(path)

    def prefetch(self, path: str) -> None:
        self.prefetched.append(path)


class NavigationExecutor:
    """Executes route decisions at most once per (page, target)."""

    def __init__(self, router: Router, session_logger: SessionLogger | None = None):
        self.router = router
        self._session_logger = session_logger
        self._last: tuple[str, RouteDecision] | None = None
        self.executed: list[RouteDecision] = []

    def execute(self, path: str, decision: RouteDecision) -> bool:
        """
        Act on `decision`, taken for the page at `path`.

        Returns True if the router was asked to navigate. Allow and Suspend
        never navigate. A redirect is skipped when it targets the page itself,
        or when the same redirect was already issued from the same page.
        """
        if self._session_logger is not None:
            self._session_logger.guard_decision(path, decision.action.value, decision.target)

        if not decision.is_redirect:
            self._last = (path, decision)
            return False

        if decision.target == path:
            return False

        if self._last == (path, decision):
            logger.debug(f"Skipping repeated redirect {path} -> {decision.target}")
            return False

        self._last = (path, decision)
        logger.info(f"Redirect {path} -> {decision.target}")
        self.router.replace(decision.target)
        self.executed.append(decision)

        if self._session_logger is not None:
            self._session_logger.navigation(path, decision.target)
        return True

    def reset(self) -> None:
        """Forget the last decision (e.g. on remount)."""
        self._last = None
