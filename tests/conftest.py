"""Pytest configuration and shared fixtures for incident coordinator tests."""

import pytest
from datetime import datetime, timedelta, timezone

from incident_coordinator.config import EscalationConfig
from incident_coordinator.core.incident_repository import IncidentRepository
from incident_coordinator.core.incident_service import IncidentService
from incident_coordinator.core.retry_utils import RetryConfig
from incident_coordinator.core.state_machine import IncidentStateMachine
from incident_coordinator.models.incidents import NewIncidentRequest, Severity

# Import fixtures from fixture modules to make them available
pytest_plugins = [
    "tests.fixtures.incident_fixtures",
]


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def start_time() -> datetime:
    """A fixed reference instant all deterministic tests start from."""
    return datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time) -> FakeClock:
    return FakeClock(start_time)


@pytest.fixture
def repository() -> IncidentRepository:
    """
    Provides an empty in-memory repository per test.

    Returns:
        IncidentRepository: Fresh store, isolated from the module singleton
    """
    return IncidentRepository()


@pytest.fixture
def machine() -> IncidentStateMachine:
    return IncidentStateMachine()


@pytest.fixture
def fast_retry_config() -> RetryConfig:
    """Retry configuration without meaningful backoff delays."""
    return RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def service(repository, clock, fast_retry_config) -> IncidentService:
    return IncidentService(
        store=repository, retry_config=fast_retry_config, clock=clock
    )


@pytest.fixture
def escalation_config() -> EscalationConfig:
    return EscalationConfig(tick_seconds=60, threshold_seconds=300)


@pytest.fixture
def high_severity_request() -> NewIncidentRequest:
    """
    Provides the request used by the end-to-end lifecycle scenario.

    Returns:
        NewIncidentRequest: HIGH severity, three affected systems
    """
    return NewIncidentRequest(
        title="Production database connection timeout",
        description="Primary cluster not responding to queries",
        severity=Severity.HIGH,
        reported_by="monitoring-system",
        affected_systems_count=3,
    )


@pytest.fixture
def low_severity_request() -> NewIncidentRequest:
    return NewIncidentRequest(
        title="Stale cache entries on status page",
        severity=Severity.LOW,
        reported_by="jane.doe",
        affected_systems_count=1,
    )


@pytest.fixture
def sample_incident_dict() -> dict:
    """
    Provides incident creation data as a dictionary for API tests.

    Returns:
        dict: Payload suitable for JSON serialization
    """
    return {
        "title": "Payment gateway returning 502",
        "description": "Checkout failing for all card payments",
        "severity": "HIGH",
        "reported_by": "monitoring-system",
        "affected_systems_count": 3,
    }
