"""
Unit tests for data models.

Tests cover:
- Enum values and parsing
- Request validation and blank-field rejection
- Immutability of comments and audit entries
- The API response view of an incident
"""

import pytest
from datetime import timedelta
from pydantic import ValidationError
from uuid import uuid4

from incident_coordinator.models.incidents import (
    AddCommentRequest,
    AuditAction,
    AuditEntry,
    Comment,
    Incident,
    IncidentResponse,
    IncidentState,
    NewIncidentRequest,
    Priority,
    ResponderRequest,
    Severity,
)


class TestEnums:
    """Tests for the string enums"""

    def test_incident_state_values(self):
        assert [s.value for s in IncidentState] == [
            "REPORTED",
            "ACKNOWLEDGED",
            "INVESTIGATING",
            "MITIGATING",
            "RESOLVED",
            "CLOSED",
        ]

    def test_severity_from_string(self):
        assert Severity("HIGH") == Severity.HIGH

    def test_invalid_severity(self):
        with pytest.raises(ValueError):
            Severity("urgent")

    def test_priority_rank_is_ordered(self):
        assert Priority.LOW.rank < Priority.MEDIUM.rank < Priority.HIGH.rank
        assert Priority.HIGH.rank < Priority.CRITICAL.rank


class TestNewIncidentRequest:
    """Tests for NewIncidentRequest model"""

    def test_valid_request_defaults(self):
        request = NewIncidentRequest(
            title="API latency spike", severity="MEDIUM", reported_by="jane"
        )

        assert request.severity == Severity.MEDIUM
        assert request.affected_systems_count == 1
        assert request.description is None

    def test_title_is_trimmed(self):
        request = NewIncidentRequest(
            title="  API latency spike  ", severity="LOW", reported_by="jane"
        )
        assert request.title == "API latency spike"

    @pytest.mark.parametrize("field", ["title", "reported_by"])
    def test_blank_required_fields_rejected(self, field):
        data = {"title": "Outage", "severity": "LOW", "reported_by": "jane"}
        data[field] = "   "

        with pytest.raises(ValidationError) as exc_info:
            NewIncidentRequest(**data)

        assert exc_info.value.errors()[0]["loc"] == (field,)

    def test_affected_systems_must_be_positive(self):
        with pytest.raises(ValidationError):
            NewIncidentRequest(
                title="Outage", severity="LOW", reported_by="jane", affected_systems_count=0
            )

    def test_description_length_limit(self):
        with pytest.raises(ValidationError):
            NewIncidentRequest(
                title="Outage",
                severity="LOW",
                reported_by="jane",
                description="x" * 2001,
            )

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValidationError):
            NewIncidentRequest(title="Outage", severity="SEVERE", reported_by="jane")


class TestActorRequests:
    def test_responder_required(self):
        with pytest.raises(ValidationError):
            ResponderRequest(responder=" ")

    def test_responder_trimmed(self):
        assert ResponderRequest(responder=" sarah ").responder == "sarah"

    def test_comment_content_required(self):
        with pytest.raises(ValidationError):
            AddCommentRequest(author="john", content="  ")

    def test_comment_content_length_limit(self):
        with pytest.raises(ValidationError):
            AddCommentRequest(author="john", content="x" * 2001)


class TestImmutableRecords:
    def test_comment_is_frozen(self):
        comment = Comment(author="john", content="Looking into it")

        with pytest.raises(ValidationError):
            comment.content = "edited"

    def test_audit_entry_is_frozen(self):
        entry = AuditEntry(action=AuditAction.ACKNOWLEDGED, performed_by="sarah")

        with pytest.raises(ValidationError):
            entry.performed_by = "mallory"


class TestIncident:
    """Tests for the Incident aggregate"""

    def test_defaults(self):
        incident = Incident(title="Outage", severity="HIGH", reported_by="noc")

        assert incident.id is None
        assert incident.state == IncidentState.REPORTED
        assert incident.version == 0
        assert incident.comments == []
        assert incident.audit_entries == []

    def test_latest_timestamp_includes_audit_entries(self, reported_incident, start_time):
        later = start_time + timedelta(minutes=30)
        reported_incident.audit_entries.append(
            AuditEntry(
                action=AuditAction.COMMENT_ADDED, performed_by="john", timestamp=later
            )
        )

        assert reported_incident.latest_timestamp() == later

    def test_response_view_counts_children(self, reported_incident):
        reported_incident.id = uuid4()
        reported_incident.comments.append(Comment(author="john", content="On it"))

        response = IncidentResponse.from_incident(reported_incident)

        assert response.id == reported_incident.id
        assert response.comment_count == 1
        assert response.audit_entry_count == 0
        assert "comments" not in response.model_dump()

    def test_serialization_round_trip(self, acknowledged_incident):
        data = acknowledged_incident.model_dump(mode="json")

        restored = Incident.model_validate(data)

        assert restored == acknowledged_incident
        assert data["state"] == "ACKNOWLEDGED"
