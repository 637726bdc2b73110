"""
CallWarden - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import os
import sys
from typing import Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient

# Ensure backend package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from callwarden.config import Settings
from callwarden.core.enforcer import CallLimitEnforcer, create_enforcer
from callwarden.core.exceptions import CallControlError
from callwarden.core.registry import ActiveCallRegistry, MemberRegistry
from callwarden.core.timers import CallTimerManager
from callwarden.telephony.call_control import CallController, DummyCallController
from callwarden.telephony.terminator import CallTerminator


CALLER = "+15551230000"
OTHER_CALLER = "+15559876543"


# =============================================================================
# Test Doubles
# =============================================================================

class FailingCallController(CallController):
    """Controller whose provider always rejects the hang-up."""

    def __init__(self) -> None:
        self.requests: List[Tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "failing"

    async def end_call(self, provider_call_id: str, message: str) -> None:
        self.requests.append((provider_call_id, message))
        raise CallControlError("Twilio rejected call update: Call is not in-progress",
                               details={"status": 400, "twilio_code": 21220})


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with the log-only call controller."""
    return Settings(
        app_env="testing",
        app_debug=True,
        app_log_level="WARNING",  # Reduce noise in tests
        call_control_backend="dummy",
        twilio_account_sid="",
        twilio_auth_token="",
    )


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def controller() -> DummyCallController:
    return DummyCallController()


@pytest.fixture
def failing_controller() -> FailingCallController:
    return FailingCallController()


@pytest.fixture
def members() -> MemberRegistry:
    return MemberRegistry()


@pytest.fixture
def calls() -> ActiveCallRegistry:
    return ActiveCallRegistry()


@pytest.fixture
def timers() -> CallTimerManager:
    return CallTimerManager()


@pytest.fixture
def terminator(
    members: MemberRegistry,
    calls: ActiveCallRegistry,
    timers: CallTimerManager,
    controller: DummyCallController,
) -> CallTerminator:
    return CallTerminator(members, calls, timers, controller)


@pytest.fixture
def enforcer(test_settings: Settings, controller: DummyCallController) -> CallLimitEnforcer:
    """Fresh enforcer with empty registries per test."""
    return create_enforcer(test_settings, controller=controller)


# =============================================================================
# FastAPI App Fixture
# =============================================================================

@pytest.fixture
def app(test_settings: Settings, controller: DummyCallController):
    """Create a FastAPI app instance wired to the dummy controller."""
    # Import here so the module-level app is only built when needed
    from main import create_app

    return create_app(test_settings, controller=controller)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app (runs the lifespan)."""
    with TestClient(app) as c:
        yield c
