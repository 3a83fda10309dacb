"""
Incident state machine.

STATE MACHINE:

    REPORTED -> ACKNOWLEDGED -> INVESTIGATING -> MITIGATING -> RESOLVED -> CLOSED
                                      |                           ^
                                      +---------------------------+

INVARIANTS:
- Guards are checked against the incident's current state before anything
  is touched; a rejected operation leaves the incident unchanged.
- Every accepted operation that changes state or priority, or adds a
  comment, appends exactly one audit entry.
- Priority only moves up the escalation ladder.
- Transition timestamps never precede the latest timestamp already on the
  incident.
"""

from datetime import datetime
from typing import Dict, Optional, Set
import logging

from incident_coordinator.core.audit_trail import AuditTrailRecorder, audit_trail
from incident_coordinator.core.errors import InvalidTransition, OperationResult
from incident_coordinator.core.priority_policy import next_priority
from incident_coordinator.models.incidents import (
    AuditAction,
    Comment,
    Incident,
    IncidentState,
    SYSTEM_ACTOR,
    utc_now,
)

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[IncidentState, Set[IncidentState]] = {
    IncidentState.REPORTED: {IncidentState.ACKNOWLEDGED},
    IncidentState.ACKNOWLEDGED: {IncidentState.INVESTIGATING},
    IncidentState.INVESTIGATING: {IncidentState.MITIGATING, IncidentState.RESOLVED},
    IncidentState.MITIGATING: {IncidentState.RESOLVED},
    IncidentState.RESOLVED: {IncidentState.CLOSED},
    # Terminal
    IncidentState.CLOSED: set(),
}


def can_transition(from_state: IncidentState, to_state: IncidentState) -> bool:
    return to_state in VALID_TRANSITIONS.get(from_state, set())


class IncidentStateMachine:
    """Applies lifecycle operations to an in-memory incident."""

    def __init__(self, recorder: Optional[AuditTrailRecorder] = None):
        self._audit = recorder or audit_trail

    def _stamp(self, incident: Incident, now: Optional[datetime]) -> datetime:
        return max(now or utc_now(), incident.latest_timestamp())

    def _transition(
        self,
        incident: Incident,
        operation: str,
        to_state: IncidentState,
    ) -> Optional[InvalidTransition]:
        if not can_transition(incident.state, to_state):
            logger.info(
                f"Rejected {operation} on incident {incident.id} "
                f"in state {incident.state.value}"
            )
            return InvalidTransition(
                incident_id=incident.id,
                current_state=incident.state,
                operation=operation,
            )
        return None

    def acknowledge(
        self, incident: Incident, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """
        Take ownership of a freshly reported incident.

        Transitions: REPORTED -> ACKNOWLEDGED. Assigns the incident to the
        responder and stamps acknowledged_at.
        """
        failure = self._transition(incident, "acknowledge", IncidentState.ACKNOWLEDGED)
        if failure:
            return OperationResult.failed(failure)

        timestamp = self._stamp(incident, now)
        incident.state = IncidentState.ACKNOWLEDGED
        incident.acknowledged_at = timestamp
        incident.assigned_to = responder_id
        self._audit.record(
            incident,
            AuditAction.ACKNOWLEDGED,
            responder_id,
            "Incident acknowledged and assigned",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def start_investigation(
        self, incident: Incident, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """Transitions: ACKNOWLEDGED -> INVESTIGATING."""
        failure = self._transition(
            incident, "start_investigation", IncidentState.INVESTIGATING
        )
        if failure:
            return OperationResult.failed(failure)

        timestamp = self._stamp(incident, now)
        incident.state = IncidentState.INVESTIGATING
        self._audit.record(
            incident,
            AuditAction.INVESTIGATION_STARTED,
            responder_id,
            "Investigation started",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def start_mitigation(
        self, incident: Incident, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """Transitions: INVESTIGATING -> MITIGATING."""
        failure = self._transition(
            incident, "start_mitigation", IncidentState.MITIGATING
        )
        if failure:
            return OperationResult.failed(failure)

        timestamp = self._stamp(incident, now)
        incident.state = IncidentState.MITIGATING
        self._audit.record(
            incident,
            AuditAction.MITIGATION_STARTED,
            responder_id,
            "Mitigation started",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def resolve(
        self, incident: Incident, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """Transitions: INVESTIGATING/MITIGATING -> RESOLVED. Stamps resolved_at."""
        failure = self._transition(incident, "resolve", IncidentState.RESOLVED)
        if failure:
            return OperationResult.failed(failure)

        timestamp = self._stamp(incident, now)
        incident.state = IncidentState.RESOLVED
        incident.resolved_at = timestamp
        self._audit.record(
            incident,
            AuditAction.RESOLVED,
            responder_id,
            "Incident resolved",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def close(
        self, incident: Incident, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """Transitions: RESOLVED -> CLOSED. Stamps closed_at."""
        failure = self._transition(incident, "close", IncidentState.CLOSED)
        if failure:
            return OperationResult.failed(failure)

        timestamp = self._stamp(incident, now)
        incident.state = IncidentState.CLOSED
        incident.closed_at = timestamp
        self._audit.record(
            incident,
            AuditAction.CLOSED,
            responder_id,
            "Incident closed",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def add_comment(
        self,
        incident: Incident,
        author: str,
        content: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Attach a human comment. Allowed in every state."""
        timestamp = self._stamp(incident, now)
        incident.comments.append(
            Comment(
                author=author,
                content=content,
                timestamp=timestamp,
                system_generated=False,
            )
        )
        self._audit.record(
            incident,
            AuditAction.COMMENT_ADDED,
            author,
            "Added comment",
            now=timestamp,
        )
        return OperationResult.success(incident)

    def escalate(self, incident: Incident, now: Optional[datetime] = None) -> OperationResult:
        """
        Raise priority one rung: LOW -> MEDIUM -> HIGH -> CRITICAL.

        Allowed in every state. At CRITICAL this is a no-op and no audit
        entry is written; the result then reports changed=False.
        """
        old_priority = incident.priority
        new_priority = next_priority(old_priority)
        if new_priority == old_priority:
            return OperationResult.success(incident, changed=False)

        timestamp = self._stamp(incident, now)
        incident.priority = new_priority
        self._audit.record(
            incident,
            AuditAction.ESCALATED,
            SYSTEM_ACTOR,
            f"Priority escalated from {old_priority.value} to {new_priority.value}",
            now=timestamp,
        )
        return OperationResult.success(incident)


state_machine = IncidentStateMachine()
