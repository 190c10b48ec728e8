"""
Health, readiness and metrics routes.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import Response

from queuectl import __version__
from queuectl.api.deps import DatabaseDep, QueueDep
from queuectl.errors import StoreUnavailable
from queuectl.types.api import HealthResponse
from queuectl.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Store connectivity and the number of pending jobs.",
)
async def health_check(queue: QueueDep, database: DatabaseDep) -> HealthResponse:
    """
    Report service health.

    The service is degraded, not down, when the store cannot be reached:
    dispatchers keep polling and recover on their own once it returns.
    """
    db_status = "unknown"
    if database is not None:
        db_status = "healthy" if await database.ping() else "unhealthy"

    pending = None
    if db_status != "unhealthy":
        try:
            pending = (await queue.status_summary())["pending"]
        except StoreUnavailable:
            db_status = "unhealthy"

    return HealthResponse(
        status="degraded" if db_status == "unhealthy" else "healthy",
        version=__version__,
        database=db_status,
        pending_jobs=pending,
        timestamp=utcnow(),
    )


@router.get("/ready", summary="Readiness check")
async def readiness_check(database: DatabaseDep) -> dict:
    if database is None:
        return {"ready": True}
    return {"ready": await database.ping()}


@router.get("/live", summary="Liveness check")
async def liveness_check() -> dict:
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Prometheus exposition, with the queue depth gauge refreshed per scrape.",
)
async def metrics(queue: QueueDep) -> Response:
    try:
        await queue.status_summary()
    except StoreUnavailable as e:
        # Serve the last known depth rather than failing the scrape
        logger.warning("Could not refresh queue depth", extra={"error": str(e)})

    collector = queue.metrics
    return Response(content=collector.get_metrics(), media_type=collector.get_content_type())
