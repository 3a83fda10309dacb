"""Unit tests for incidents API endpoints."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

from incident_coordinator.core.errors import (
    InvalidTransition,
    OperationResult,
    PersistenceFailure,
)
from incident_coordinator.core.incident_repository import IncidentRepository
from incident_coordinator.core.incident_service import (
    IncidentService,
    get_incident_service,
)
from incident_coordinator.main import app
from incident_coordinator.models.incidents import IncidentState


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def test_service(fast_retry_config) -> IncidentService:
    """
    Provides an incident service backed by an isolated repository.

    Returns:
        IncidentService: Service wired into the app via dependency override
    """
    return IncidentService(store=IncidentRepository(), retry_config=fast_retry_config)


@pytest.fixture
def test_client(test_service):
    """
    Provides a FastAPI TestClient for API testing.

    Returns:
        TestClient: Configured test client for the FastAPI app
    """
    app.dependency_overrides[get_incident_service] = lambda: test_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def created_incident(test_client, sample_incident_dict) -> dict:
    response = test_client.post("/api/v1/incidents", json=sample_incident_dict)
    assert response.status_code == 201
    return response.json()


# ============================================================================
# POST /incidents Tests
# ============================================================================


def test_create_incident_success(test_client, sample_incident_dict):
    """
    Test POST /incidents creates an incident.

    Verifies:
    - Returns 201 Created status code
    - Incident starts in REPORTED state
    - Priority is derived from severity and affected systems
    """
    # Act
    response = test_client.post("/api/v1/incidents", json=sample_incident_dict)

    # Assert
    assert response.status_code == 201
    data = response.json()
    assert data["state"] == "REPORTED"
    assert data["priority"] == "HIGH"
    assert data["severity"] == "HIGH"
    assert data["assigned_to"] is None
    assert data["audit_entry_count"] == 0


def test_create_incident_many_systems_is_critical(test_client, sample_incident_dict):
    sample_incident_dict.update(severity="LOW", affected_systems_count=11)

    response = test_client.post("/api/v1/incidents", json=sample_incident_dict)

    assert response.json()["priority"] == "CRITICAL"


def test_create_incident_validation_errors(test_client):
    """
    Test POST /incidents with malformed input.

    Verifies:
    - Returns 400 instead of 422
    - Each offending field is reported by name
    """
    # Act
    response = test_client.post(
        "/api/v1/incidents",
        json={"title": "  ", "severity": "SEVERE", "reported_by": "noc"},
    )

    # Assert
    assert response.status_code == 400
    errors = response.json()
    assert "title" in errors
    assert "severity" in errors


def test_create_incident_missing_fields(test_client):
    response = test_client.post("/api/v1/incidents", json={})

    assert response.status_code == 400
    assert {"title", "severity", "reported_by"} <= set(response.json())


def test_create_incident_store_unavailable(sample_incident_dict):
    service = Mock()
    service.create_incident = AsyncMock(
        return_value=OperationResult.failed(PersistenceFailure(None, "connection refused"))
    )
    app.dependency_overrides[get_incident_service] = lambda: service

    response = TestClient(app).post("/api/v1/incidents", json=sample_incident_dict)

    assert response.status_code == 503
    assert "connection refused" in response.json()["detail"]

    # Cleanup
    app.dependency_overrides.clear()


# ============================================================================
# GET /incidents/{id} Tests
# ============================================================================


def test_get_incident_success(test_client, created_incident):
    response = test_client.get(f"/api/v1/incidents/{created_incident['id']}")

    assert response.status_code == 200
    assert response.json() == created_incident


def test_get_incident_not_found(test_client):
    missing = uuid4()

    response = test_client.get(f"/api/v1/incidents/{missing}")

    assert response.status_code == 404
    assert str(missing) in response.json()["detail"]


def test_get_incident_invalid_uuid(test_client):
    response = test_client.get("/api/v1/incidents/not-a-uuid")

    assert response.status_code == 400
    assert "path.incident_id" in response.json()


# ============================================================================
# Lifecycle Tests
# ============================================================================


def test_acknowledge_incident(test_client, created_incident):
    response = test_client.put(
        f"/api/v1/incidents/{created_incident['id']}/acknowledge",
        json={"responder": "sarah"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "ACKNOWLEDGED"
    assert data["assigned_to"] == "sarah"
    assert data["acknowledged_at"] is not None
    assert data["audit_entry_count"] == 1


def test_invalid_transition_returns_current_state(test_client, created_incident):
    """
    Test resolving a REPORTED incident.

    Verifies:
    - Returns 400 Bad Request
    - Detail names the current state and the rejected operation
    """
    # Act
    response = test_client.put(
        f"/api/v1/incidents/{created_incident['id']}/resolve",
        json={"responder": "sarah"},
    )

    # Assert
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["current_state"] == "REPORTED"
    assert detail["operation"] == "resolve"
    assert "REPORTED" in detail["message"]


def test_transition_requires_responder(test_client, created_incident):
    response = test_client.put(
        f"/api/v1/incidents/{created_incident['id']}/acknowledge",
        json={"responder": ""},
    )

    assert response.status_code == 400
    assert "responder" in response.json()


@pytest.mark.parametrize(
    "action, method",
    [
        ("acknowledge", "acknowledge"),
        ("investigate", "start_investigation"),
        ("mitigate", "start_mitigation"),
        ("resolve", "resolve"),
        ("close", "close"),
    ],
)
def test_transition_routes_call_service(action, method, reported_incident):
    # Arrange
    incident_id = uuid4()
    reported_incident.id = incident_id
    service = Mock()
    setattr(
        service,
        method,
        AsyncMock(return_value=OperationResult.success(reported_incident)),
    )
    app.dependency_overrides[get_incident_service] = lambda: service

    # Act
    response = TestClient(app).put(
        f"/api/v1/incidents/{incident_id}/{action}", json={"responder": "sarah"}
    )

    # Assert
    assert response.status_code == 200
    getattr(service, method).assert_awaited_once_with(incident_id, "sarah")

    # Cleanup
    app.dependency_overrides.clear()


def test_transition_conflict_is_reported_as_bad_request():
    incident_id = uuid4()
    service = Mock()
    service.acknowledge = AsyncMock(
        return_value=OperationResult.failed(
            InvalidTransition(incident_id, IncidentState.ACKNOWLEDGED, "acknowledge")
        )
    )
    app.dependency_overrides[get_incident_service] = lambda: service

    response = TestClient(app).put(
        f"/api/v1/incidents/{incident_id}/acknowledge", json={"responder": "bob"}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["current_state"] == "ACKNOWLEDGED"

    app.dependency_overrides.clear()


# ============================================================================
# Comments and Audit Tests
# ============================================================================


def test_add_comment(test_client, created_incident):
    response = test_client.post(
        f"/api/v1/incidents/{created_incident['id']}/comments",
        json={"author": "john", "content": "Connection pool exhausted"},
    )

    assert response.status_code == 200
    assert response.json()["comment_count"] == 1
    assert response.json()["state"] == "REPORTED"


def test_add_comment_rejects_blank_content(test_client, created_incident):
    response = test_client.post(
        f"/api/v1/incidents/{created_incident['id']}/comments",
        json={"author": "john", "content": "   "},
    )

    assert response.status_code == 400
    assert "content" in response.json()


def test_audit_history_newest_first(test_client, created_incident):
    incident_id = created_incident["id"]
    test_client.put(
        f"/api/v1/incidents/{incident_id}/acknowledge", json={"responder": "sarah"}
    )
    test_client.put(
        f"/api/v1/incidents/{incident_id}/investigate", json={"responder": "sarah"}
    )

    response = test_client.get(f"/api/v1/incidents/{incident_id}/audit")

    assert response.status_code == 200
    data = response.json()
    assert data["incident_id"] == incident_id
    assert [e["action"] for e in data["entries"]] == [
        "INVESTIGATION_STARTED",
        "ACKNOWLEDGED",
    ]


def test_audit_history_not_found(test_client):
    response = test_client.get(f"/api/v1/incidents/{uuid4()}/audit")

    assert response.status_code == 404
