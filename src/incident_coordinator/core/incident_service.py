from uuid import UUID
from typing import Callable, List, Optional, Tuple
from datetime import datetime
import logging

from incident_coordinator.core.audit_trail import audit_trail
from incident_coordinator.core.errors import (
    NotFound,
    OperationResult,
    PersistenceError,
    PersistenceFailure,
)
from incident_coordinator.core.incident_repository import (
    IncidentStore,
    get_incident_repository,
)
from incident_coordinator.core.priority_policy import calculate_initial_priority
from incident_coordinator.core.retry_utils import RetryConfig, retry_async
from incident_coordinator.core.state_machine import IncidentStateMachine, state_machine
from incident_coordinator.models.incidents import (
    AuditEntry,
    Incident,
    IncidentState,
    NewIncidentRequest,
    utc_now,
)

logger = logging.getLogger(__name__)

Apply = Callable[[Incident, datetime], OperationResult]


class IncidentService:
    """
    Runs incident operations as units of work against the store.

    Each operation loads the incident, applies one state machine operation
    and saves the result. A save that loses a race against another writer is
    retried from a fresh read, so the guard is always evaluated against the
    latest stored state and at most one of two competing transitions wins.
    """

    def __init__(
        self,
        store: IncidentStore,
        machine: Optional[IncidentStateMachine] = None,
        retry_config: Optional[RetryConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._machine = machine or state_machine
        self._retry_config = retry_config or RetryConfig(max_attempts=5)
        self._clock = clock

    async def create_incident(self, request: NewIncidentRequest) -> OperationResult:
        """
        Create a new incident in REPORTED state.

        The starting priority is derived from severity and the number of
        affected systems.
        """
        priority = calculate_initial_priority(
            request.severity, request.affected_systems_count
        )
        incident = Incident(
            title=request.title,
            description=request.description,
            severity=request.severity,
            priority=priority,
            reported_by=request.reported_by,
            affected_systems_count=request.affected_systems_count,
            reported_at=self._clock(),
        )

        try:
            saved = self._store.save(incident)
        except PersistenceError as e:
            logger.error(f"Failed to create incident '{request.title}': {e}")
            return OperationResult.failed(PersistenceFailure(None, str(e)))

        logger.info(
            f"Created incident {saved.id} with severity {saved.severity.value} "
            f"and priority {saved.priority.value}"
        )
        return OperationResult.success(saved)

    async def get_incident(self, incident_id: UUID) -> OperationResult:
        try:
            incident = self._store.find_by_id(incident_id)
        except PersistenceError as e:
            logger.error(f"Failed to load incident {incident_id}: {e}")
            return OperationResult.failed(PersistenceFailure(incident_id, str(e)))

        if incident is None:
            return OperationResult.failed(NotFound(incident_id))
        return OperationResult.success(incident, changed=False)

    async def get_audit_history(
        self, incident_id: UUID, newest_first: bool = True
    ) -> Tuple[OperationResult, List[AuditEntry]]:
        """
        Load an incident's audit trail.

        Returns:
            The lookup result and the entries in timestamp order; the entry
            list is empty when the lookup failed
        """
        result = await self.get_incident(incident_id)
        if not result.ok:
            return result, []
        return result, audit_trail.history(result.incident, newest_first=newest_first)

    async def acknowledge(
        self, incident_id: UUID, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        logger.info(f"Acknowledging incident {incident_id} by {responder_id}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.acknowledge(incident, responder_id, ts),
            now,
        )

    async def start_investigation(
        self, incident_id: UUID, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        logger.info(f"Starting investigation on incident {incident_id} by {responder_id}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.start_investigation(
                incident, responder_id, ts
            ),
            now,
        )

    async def start_mitigation(
        self, incident_id: UUID, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        logger.info(f"Starting mitigation on incident {incident_id} by {responder_id}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.start_mitigation(
                incident, responder_id, ts
            ),
            now,
        )

    async def resolve(
        self, incident_id: UUID, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        logger.info(f"Resolving incident {incident_id} by {responder_id}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.resolve(incident, responder_id, ts),
            now,
        )

    async def close(
        self, incident_id: UUID, responder_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        logger.info(f"Closing incident {incident_id} by {responder_id}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.close(incident, responder_id, ts),
            now,
        )

    async def add_comment(
        self,
        incident_id: UUID,
        author: str,
        content: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        logger.info(f"Adding comment to incident {incident_id} by {author}")
        return await self._apply(
            incident_id,
            lambda incident, ts: self._machine.add_comment(incident, author, content, ts),
            now,
        )

    async def escalate(
        self,
        incident_id: UUID,
        now: Optional[datetime] = None,
        reported_before: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Raise an incident's priority one rung.

        Args:
            incident_id: The incident UUID
            now: Timestamp for the audit entry
            reported_before: When set, the incident is only escalated if it is
                still REPORTED, unacknowledged and reported before this cutoff
                at the time of the write. Used by the escalation sweep so a
                responder acknowledging mid-sweep wins.
        """

        def apply(incident: Incident, ts: datetime) -> OperationResult:
            if reported_before is not None and not _still_eligible(
                incident, reported_before
            ):
                return OperationResult.success(incident, changed=False)
            return self._machine.escalate(incident, ts)

        return await self._apply(incident_id, apply, now)

    async def _apply(
        self, incident_id: UUID, apply: Apply, now: Optional[datetime]
    ) -> OperationResult:
        async def unit_of_work() -> OperationResult:
            incident = self._store.find_by_id(incident_id)
            if incident is None:
                return OperationResult.failed(NotFound(incident_id))

            result = apply(incident, now or self._clock())
            if not result.ok or not result.changed:
                return result

            return OperationResult.success(self._store.save(result.incident))

        try:
            return await retry_async(unit_of_work, self._retry_config, str(incident_id))
        except PersistenceError as e:
            logger.error(f"Failed to persist incident {incident_id}: {e}")
            return OperationResult.failed(PersistenceFailure(incident_id, str(e)))


def _still_eligible(incident: Incident, reported_before: datetime) -> bool:
    return (
        incident.state == IncidentState.REPORTED
        and incident.acknowledged_at is None
        and incident.reported_at < reported_before
    )


incident_service = IncidentService(store=get_incident_repository())


def get_incident_service() -> IncidentService:
    return incident_service
