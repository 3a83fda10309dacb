from uuid import UUID, uuid4
from typing import Dict, List, Optional, Protocol
from datetime import datetime
import logging
import threading

from incident_coordinator.core.errors import ConcurrencyConflict
from incident_coordinator.models.incidents import Incident, IncidentState

logger = logging.getLogger(__name__)


class IncidentStore(Protocol):
    """Storage collaborator consumed by the incident service and scheduler."""

    def find_by_id(self, incident_id: UUID) -> Optional[Incident]: ...

    def save(self, incident: Incident) -> Incident: ...

    def find_eligible_for_escalation(
        self, state: IncidentState, reported_before: datetime
    ) -> List[Incident]: ...


class IncidentRepository:
    """
    In-memory incident store with optimistic concurrency control.

    The repository only ever hands out and keeps deep copies, so an incident
    and its comments and audit entries are written together as one aggregate
    and no caller shares a live object with another. Every successful save
    bumps the incident's version; saving a copy whose version no longer
    matches the stored one raises ConcurrencyConflict.
    """

    def __init__(self):
        self._incidents: Dict[UUID, Incident] = {}
        self._lock = threading.Lock()

    def find_by_id(self, incident_id: UUID) -> Optional[Incident]:
        """
        Retrieve an incident by its ID.

        Args:
            incident_id: The incident UUID

        Returns:
            A private copy of the incident if found, None otherwise
        """
        with self._lock:
            stored = self._incidents.get(incident_id)
            return stored.model_copy(deep=True) if stored else None

    def save(self, incident: Incident) -> Incident:
        """
        Insert or update an incident.

        An incident without an id is assigned one on first save.

        Args:
            incident: The incident to write, carrying the version it was read at

        Returns:
            A copy of the stored incident with its new version

        Raises:
            ConcurrencyConflict: If the incident changed since it was read
        """
        with self._lock:
            if incident.id is None:
                incident.id = uuid4()

            existing = self._incidents.get(incident.id)
            if existing is not None and existing.version != incident.version:
                raise ConcurrencyConflict(
                    incident.id, incident.version, existing.version
                )

            stored = incident.model_copy(deep=True)
            stored.version = incident.version + 1
            self._incidents[stored.id] = stored

            logger.debug(f"Saved incident {stored.id} at version {stored.version}")
            return stored.model_copy(deep=True)

    def find_eligible_for_escalation(
        self, state: IncidentState, reported_before: datetime
    ) -> List[Incident]:
        """
        Find unacknowledged incidents in the given state reported before a cutoff.

        Args:
            state: Required current state (REPORTED for the escalation sweep)
            reported_before: Exclusive upper bound on reported_at

        Returns:
            Copies of the matching incidents, oldest first
        """
        with self._lock:
            matches = [
                incident.model_copy(deep=True)
                for incident in self._incidents.values()
                if incident.state == state
                and incident.acknowledged_at is None
                and incident.reported_at < reported_before
            ]
        return sorted(matches, key=lambda incident: incident.reported_at)

    def count(self) -> int:
        with self._lock:
            return len(self._incidents)


# A single instance to act as our in-memory database
incident_repository = IncidentRepository()


def get_incident_repository() -> IncidentRepository:
    return incident_repository
