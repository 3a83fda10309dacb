from fastapi import APIRouter, Depends, status, HTTPException
from incident_coordinator.core.errors import (
    InvalidTransition,
    NotFound,
    OperationResult,
    PersistenceFailure,
)
from incident_coordinator.core.incident_service import (
    IncidentService,
    get_incident_service,
)
from incident_coordinator.models.incidents import (
    AddCommentRequest,
    AuditHistoryResponse,
    IncidentResponse,
    NewIncidentRequest,
    ResponderRequest,
)
from uuid import UUID
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


def _unwrap(result: OperationResult) -> IncidentResponse:
    """Translate an operation result into a response or an HTTP error."""
    failure = result.failure
    if failure is None:
        return IncidentResponse.from_incident(result.incident)

    if isinstance(failure, NotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=failure.message)
    if isinstance(failure, InvalidTransition):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": failure.message,
                "current_state": failure.current_state.value,
                "operation": failure.operation,
            },
        )
    if isinstance(failure, PersistenceFailure):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=failure.message
        )

    logger.error(f"Unhandled failure type: {failure!r}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred",
    )


@router.post(
    "/incidents",
    status_code=status.HTTP_201_CREATED,
    response_model=IncidentResponse,
)
async def create_incident(
    request: NewIncidentRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """
    Report a new incident.

    The incident starts in REPORTED state with a priority derived from its
    severity and the number of affected systems.
    """
    logger.info(f"Received request to create incident: {request.title}")
    return _unwrap(await service.create_incident(request))


@router.get("/incidents/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: UUID,
    service: IncidentService = Depends(get_incident_service),
):
    return _unwrap(await service.get_incident(incident_id))


@router.get("/incidents/{incident_id}/audit", response_model=AuditHistoryResponse)
async def get_audit_history(
    incident_id: UUID,
    service: IncidentService = Depends(get_incident_service),
):
    """Return the incident's audit trail, newest entry first."""
    result, entries = await service.get_audit_history(incident_id, newest_first=True)
    _unwrap(result)
    return AuditHistoryResponse(incident_id=incident_id, entries=entries)


@router.put("/incidents/{incident_id}/acknowledge", response_model=IncidentResponse)
async def acknowledge_incident(
    incident_id: UUID,
    request: ResponderRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """Transitions: REPORTED -> ACKNOWLEDGED, assigning the responder."""
    return _unwrap(await service.acknowledge(incident_id, request.responder))


@router.put("/incidents/{incident_id}/investigate", response_model=IncidentResponse)
async def start_investigation(
    incident_id: UUID,
    request: ResponderRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """Transitions: ACKNOWLEDGED -> INVESTIGATING."""
    return _unwrap(await service.start_investigation(incident_id, request.responder))


@router.put("/incidents/{incident_id}/mitigate", response_model=IncidentResponse)
async def start_mitigation(
    incident_id: UUID,
    request: ResponderRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """Transitions: INVESTIGATING -> MITIGATING."""
    return _unwrap(await service.start_mitigation(incident_id, request.responder))


@router.put("/incidents/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(
    incident_id: UUID,
    request: ResponderRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """Transitions: INVESTIGATING/MITIGATING -> RESOLVED."""
    return _unwrap(await service.resolve(incident_id, request.responder))


@router.put("/incidents/{incident_id}/close", response_model=IncidentResponse)
async def close_incident(
    incident_id: UUID,
    request: ResponderRequest,
    service: IncidentService = Depends(get_incident_service),
):
    """Transitions: RESOLVED -> CLOSED."""
    return _unwrap(await service.close(incident_id, request.responder))


@router.post("/incidents/{incident_id}/comments", response_model=IncidentResponse)
async def add_comment(
    incident_id: UUID,
    request: AddCommentRequest,
    service: IncidentService = Depends(get_incident_service),
):
    return _unwrap(
        await service.add_comment(incident_id, request.author, request.content)
    )
