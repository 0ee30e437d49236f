"""Basic health check tests."""

from fastapi.testclient import TestClient


def test_import_sayso():
    """Test that sayso package can be imported."""
    import sayso
    assert sayso.__version__ == "1.0.0"


def test_import_onboarding():
    """Test that the state machine can be imported."""
    from onboarding import OnboardingStep, RouteGuard, StepPipelineController

    assert OnboardingStep.DEAL_BREAKERS.value == "deal-breakers"
    assert RouteGuard and StepPipelineController


def test_config_loads():
    """Core settings load without Supabase credentials."""
    from sayso.config import get_core_settings

    settings = get_core_settings()
    assert settings.login_redirect == "/login"
    assert settings.background_save_max_retries >= 0


def test_health_endpoint():
    from sayso.web.app import app

    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "sayso-onboarding"
