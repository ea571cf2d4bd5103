"""Health endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from credential_service.api.dependencies import get_container
from credential_service.container import Container
from credential_service.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check(container: Container = Depends(get_container)) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format and database health
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if container.pool is None:
        health_status["database"] = "unavailable"
    else:
        db_healthy = await db_health_check(container.pool)
        health_status["database"] = "healthy" if db_healthy else "unhealthy"

    return health_status
