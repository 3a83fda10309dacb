"""
Failure taxonomy for incident operations.

Guard violations and missing incidents are returned to the caller as typed
failure values inside an ``OperationResult``; the request boundary decides how
to present them. Storage problems are raised as ``PersistenceError`` by the
store and turned into a ``PersistenceFailure`` by the service once retries
are exhausted.
"""

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from incident_coordinator.models.incidents import Incident, IncidentState


class PersistenceError(Exception):
    """Raised when the incident store cannot complete a read or write."""

    pass


class ConcurrencyConflict(PersistenceError):
    """Raised when a save is based on a stale version of the incident."""

    def __init__(self, incident_id: UUID, expected_version: int, actual_version: int):
        self.incident_id = incident_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Incident {incident_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


@dataclass(frozen=True)
class NotFound:
    incident_id: UUID

    @property
    def message(self) -> str:
        return f"Incident not found with ID: {self.incident_id}"


@dataclass(frozen=True)
class InvalidTransition:
    incident_id: Optional[UUID]
    current_state: IncidentState
    operation: str

    @property
    def message(self) -> str:
        return (
            f"Cannot {self.operation.replace('_', ' ')} incident "
            f"in {self.current_state.value} state"
        )


@dataclass(frozen=True)
class PersistenceFailure:
    incident_id: Optional[UUID]
    reason: str

    @property
    def message(self) -> str:
        return f"Failed to persist incident {self.incident_id}: {self.reason}"


Failure = Union[NotFound, InvalidTransition, PersistenceFailure]


@dataclass
class OperationResult:
    """Outcome of an incident operation: the updated incident or a failure."""

    incident: Optional[Incident] = None
    failure: Optional[Failure] = None
    changed: bool = True

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, incident: Incident, changed: bool = True) -> "OperationResult":
        return cls(incident=incident, changed=changed)

    @classmethod
    def failed(cls, failure: Failure) -> "OperationResult":
        return cls(failure=failure, changed=False)
