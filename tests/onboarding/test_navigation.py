"""
Tests for the navigation executor and route table.
"""

import json
from pathlib import Path

from onboarding.navigation import InMemoryRouter, NavigationExecutor, RouteDecision
from onboarding.routes import requirements_for, route_table
from onboarding.state import OnboardingStep
from sayso.observability.session_logger import SessionLogger, close_session_logger, get_session_logger


class TestNavigationExecutor:
    def test_allow_and_suspend_never_navigate(self):
        router = InMemoryRouter("/home")
        executor = NavigationExecutor(router)
        assert not executor.execute("/home", RouteDecision.allow())
        assert not executor.execute("/home", RouteDecision.suspend())
        assert router.replaced == []

    def test_redirect_uses_replace(self):
        router = InMemoryRouter("/home")
        executor = NavigationExecutor(router)
        assert executor.execute("/home", RouteDecision.redirect("/login"))
        assert router.current_path == "/login"
        assert router.history == ["/login"]

    def test_identical_redirect_runs_once(self):
        router = InMemoryRouter("/home")
        executor = NavigationExecutor(router)
        for _ in range(3):
            executor.execute("/home", RouteDecision.redirect("/login"))
        assert router.replaced == ["/login"]
        assert executor.executed == [RouteDecision.redirect("/login")]

    def test_self_redirect_ignored(self):
        router = InMemoryRouter("/login")
        executor = NavigationExecutor(router)
        assert not executor.execute("/login", RouteDecision.redirect("/login"))

    def test_reset_allows_repeat(self):
        router = InMemoryRouter("/home")
        executor = NavigationExecutor(router)
        executor.execute("/home", RouteDecision.redirect("/login"))
        executor.reset()
        executor.execute("/home", RouteDecision.redirect("/login"))
        assert router.replaced == ["/login", "/login"]

    def test_decisions_logged(self, tmp_path):
        session_logger = SessionLogger(session_id="nav", log_dir=tmp_path)
        executor = NavigationExecutor(InMemoryRouter("/home"), session_logger=session_logger)
        executor.execute("/home", RouteDecision.redirect("/login"))
        path = session_logger.close()

        events = [json.loads(line) for line in Path(path).read_text(encoding="utf-8").splitlines()]
        kinds = [e["event"] for e in events]
        assert kinds == ["session_start", "guard_decision", "navigation", "session_end"]
        assert events[1]["target"] == "/login"

    def test_disabled_logger_writes_nothing(self, tmp_path):
        session_logger = SessionLogger(enabled=False, log_dir=tmp_path)
        NavigationExecutor(InMemoryRouter("/home"), session_logger=session_logger).execute(
            "/home", RouteDecision.redirect("/login")
        )
        assert session_logger.close() is None
        assert list(tmp_path.iterdir()) == []

    def test_process_logger_off_by_default(self):
        assert not get_session_logger().enabled
        assert close_session_logger() is None

    def test_decision_str(self):
        assert str(RouteDecision.redirect("/home")) == "Redirect(/home)"
        assert str(RouteDecision.allow()) == "Allow"
        assert str(RouteDecision.suspend()) == "Suspend"


class TestRouteTable:
    def test_onboarding_pages(self):
        req = requirements_for("/subcategories")
        assert req.requires_auth and req.requires_onboarding
        assert OnboardingStep.INTERESTS not in req.allowed_onboarding_steps
        assert requirements_for("/complete").allowed_onboarding_steps == {OnboardingStep.COMPLETE}

    def test_public_only_pages(self):
        for path in ["/", "/login", "/register", "/onboarding", "/verify-email"]:
            assert not requirements_for(path).requires_auth

    def test_unknown_pages_are_private(self):
        assert requirements_for("/something/new").requires_auth

    def test_password_reset_unguarded(self):
        assert requirements_for("/forgot-password").unguarded

    def test_nested_paths(self):
        assert requirements_for("/interests/extra").requires_onboarding
        assert not requirements_for("/login/sso").requires_auth

    def test_table_lists_every_group(self):
        paths = [p for p, _ in route_table()]
        assert "/admin" in paths and "/my-businesses" in paths and "/reset-password" in paths
