from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import UUID, uuid4
from datetime import datetime, timezone
from typing import List, Optional
from enum import Enum


SYSTEM_ACTOR = "SYSTEM"

MAX_TEXT_LENGTH = 2000
MAX_AUDIT_DETAILS_LENGTH = 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    """Initial impact classification, fixed at creation"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Priority(str, Enum):
    """Urgency signal, only ever raised by escalation"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class IncidentState(str, Enum):
    """Enumeration of incident lifecycle states"""
    REPORTED = "REPORTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    INVESTIGATING = "INVESTIGATING"
    MITIGATING = "MITIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class AuditAction(str, Enum):
    ACKNOWLEDGED = "ACKNOWLEDGED"
    INVESTIGATION_STARTED = "INVESTIGATION_STARTED"
    MITIGATION_STARTED = "MITIGATION_STARTED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    ESCALATED = "ESCALATED"
    COMMENT_ADDED = "COMMENT_ADDED"


class Comment(BaseModel):
    """A note left on an incident. Never edited once written."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    author: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    timestamp: datetime = Field(default_factory=utc_now)
    system_generated: bool = False


class AuditEntry(BaseModel):
    """Record of one action taken on an incident. Never edited once written."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    action: AuditAction
    performed_by: str = Field(min_length=1)
    details: str = Field(default="", max_length=MAX_AUDIT_DETAILS_LENGTH)
    timestamp: datetime = Field(default_factory=utc_now)


class Incident(BaseModel):
    id: Optional[UUID] = None
    title: str = Field(min_length=1)
    description: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)
    severity: Severity
    state: IncidentState = IncidentState.REPORTED
    priority: Priority = Priority.MEDIUM
    reported_at: datetime = Field(default_factory=utc_now)
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    reported_by: str = Field(min_length=1)
    assigned_to: Optional[str] = None
    affected_systems_count: int = Field(default=1, ge=1)
    comments: List[Comment] = Field(default_factory=list)
    audit_entries: List[AuditEntry] = Field(default_factory=list)
    version: int = 0

    def latest_timestamp(self) -> datetime:
        """Most recent lifecycle or audit timestamp recorded on the incident."""
        stamps = [self.reported_at]
        stamps.extend(
            ts
            for ts in (self.acknowledged_at, self.resolved_at, self.closed_at)
            if ts is not None
        )
        stamps.extend(entry.timestamp for entry in self.audit_entries)
        return max(stamps)


class NewIncidentRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)
    severity: Severity
    reported_by: str = Field(min_length=1)
    affected_systems_count: int = Field(default=1, ge=1)

    @field_validator("title", "reported_by")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class ResponderRequest(BaseModel):
    responder: str = Field(min_length=1)

    @field_validator("responder")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Responder name is required")
        return value.strip()


class AddCommentRequest(BaseModel):
    author: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)

    @field_validator("author", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class IncidentResponse(BaseModel):
    """API view of an incident, without its child collections"""
    id: UUID
    title: str
    description: Optional[str] = None
    severity: Severity
    state: IncidentState
    priority: Priority
    reported_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    reported_by: str
    assigned_to: Optional[str] = None
    affected_systems_count: int
    comment_count: int
    audit_entry_count: int

    @classmethod
    def from_incident(cls, incident: Incident) -> "IncidentResponse":
        return cls(
            id=incident.id,
            title=incident.title,
            description=incident.description,
            severity=incident.severity,
            state=incident.state,
            priority=incident.priority,
            reported_at=incident.reported_at,
            acknowledged_at=incident.acknowledged_at,
            resolved_at=incident.resolved_at,
            closed_at=incident.closed_at,
            reported_by=incident.reported_by,
            assigned_to=incident.assigned_to,
            affected_systems_count=incident.affected_systems_count,
            comment_count=len(incident.comments),
            audit_entry_count=len(incident.audit_entries),
        )


class AuditHistoryResponse(BaseModel):
    incident_id: UUID
    entries: List[AuditEntry]
