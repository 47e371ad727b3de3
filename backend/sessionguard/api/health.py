"""Health check endpoint with database connectivity check.

Accessible without authentication so container orchestration can probe it.
"""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from sessionguard.core import check_db_connection, settings
from sessionguard.services.reaper import RevocationReaper

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    reaper: str = "stopped"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Returns the service health status including database connectivity and
    whether the revocation reaper is running. Returns 503 if the database
    is unavailable.
    """
    db_healthy = await check_db_connection()

    # Set appropriate status code for container orchestration
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        reaper="running" if RevocationReaper.get_instance().running else "stopped",
    )
