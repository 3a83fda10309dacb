import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from incident_coordinator.api.v1 import incidents
from incident_coordinator.config import get_escalation_config, get_log_level
from incident_coordinator.core.escalation_scheduler import EscalationScheduler
from incident_coordinator.core.incident_repository import get_incident_repository
from incident_coordinator.core.incident_service import get_incident_service

load_dotenv()
app = FastAPI(title="Incident Coordinator")


# Define a filter to exclude /health endpoint from logs
class HealthCheckFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return "GET /health" not in record.getMessage()


# Configure logging
logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Add the filter to the uvicorn access logger
logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

app.include_router(incidents.router, prefix="/api/v1")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 with one message per offending field."""
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        errors[field or "body"] = error["msg"]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=errors)


@app.on_event("startup")
async def startup_event():
    escalation_config = get_escalation_config()
    logger.info(f"Using escalation configuration: {escalation_config}")

    app.state.escalation_scheduler = EscalationScheduler(
        store=get_incident_repository(),
        service=get_incident_service(),
        config=escalation_config,
    )
    app.state.escalation_scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "escalation_scheduler", None)
    if scheduler:
        await scheduler.stop()


@app.get("/health")
async def read_health():
    """
    Checks the health of the application.

    Reports the incident store and the escalation scheduler, including the
    outcome of its most recent sweep.
    """
    health_status = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "incident_store": {
                "status": "healthy",
                "incident_count": get_incident_repository().count(),
            },
        },
    }

    scheduler = getattr(app.state, "escalation_scheduler", None)
    if scheduler and scheduler.is_running:
        summary = scheduler.last_summary
        health_status["components"]["escalation_scheduler"] = {
            "status": "running",
            "last_tick": scheduler.last_tick.isoformat() if scheduler.last_tick else None,
            "last_summary": vars(summary) if summary else None,
        }
    else:
        health_status["components"]["escalation_scheduler"] = {
            "status": "not_running",
            "message": "Escalation scheduler not started or disabled",
        }
        health_status["status"] = "degraded"

    return health_status


def serve():
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "incident_coordinator.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
