from datetime import datetime
from typing import List, Optional
import logging

from incident_coordinator.models.incidents import (
    AuditAction,
    AuditEntry,
    Incident,
    MAX_AUDIT_DETAILS_LENGTH,
    utc_now,
)

logger = logging.getLogger(__name__)


class AuditTrailRecorder:
    """
    Appends audit entries to an incident's trail.

    The trail lives on the incident itself and is written together with it,
    so an entry is persisted in the same unit of work as the mutation it
    documents. Entries are immutable and are never removed.
    """

    def record(
        self,
        incident: Incident,
        action: AuditAction,
        performed_by: str,
        details: str = "",
        now: Optional[datetime] = None,
    ) -> AuditEntry:
        """
        Append one entry to the incident's audit trail.

        Args:
            incident: The incident being mutated
            action: What happened
            performed_by: Responder identifier or "SYSTEM"
            details: Free-text description
            now: Timestamp for the entry (defaults to the current UTC time)

        Returns:
            The appended AuditEntry
        """
        entry = AuditEntry(
            action=action,
            performed_by=performed_by,
            details=details[:MAX_AUDIT_DETAILS_LENGTH],
            timestamp=now or utc_now(),
        )
        incident.audit_entries.append(entry)

        logger.debug(
            f"Recorded {action.value} by {performed_by} on incident {incident.id}"
        )
        return entry

    def history(self, incident: Incident, newest_first: bool = True) -> List[AuditEntry]:
        """
        Replay an incident's audit trail in timestamp order.

        Entries sharing a timestamp keep their append order (reversed when
        newest_first is set).
        """
        ordered = sorted(
            enumerate(incident.audit_entries),
            key=lambda pair: (pair[1].timestamp, pair[0]),
            reverse=newest_first,
        )
        return [entry for _, entry in ordered]


audit_trail = AuditTrailRecorder()
