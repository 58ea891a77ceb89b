"""
Health check endpoints

- GET /api/v1/health - Basic health check
- GET /api/v1/health/queues - Job counts per queue and status
"""
import time
from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from campusdesk import __version__
from campusdesk.container import Container, get_container
from campusdesk.models.schemas import utcnow
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()


class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=utcnow, description="Check timestamp")
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


class QueueHealth(BaseModel):
    """Queue depth per status, plus whether the queue's workers are running"""
    status: str
    queues: Dict[str, Dict[str, int]]
    workers_running: Dict[str, bool]
    checked_at: datetime = Field(default_factory=utcnow)


@router.get(
    "/",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check"
)
async def basic_health_check() -> HealthResponse:
    """Always 200; does not touch storage or the AI service"""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=round(time.time() - APP_START_TIME, 2)
    )


@router.get(
    "/queues",
    response_model=QueueHealth,
    status_code=status.HTTP_200_OK,
    summary="Queue depth"
)
async def queue_health_check(container: Container = Depends(get_container)) -> QueueHealth:
    """
    Job counts per queue. The status is "degraded" when any queue holds
    failed (dead) jobs or its workers are not running.
    """
    try:
        stats = await container.queue_stats()
    except Exception as e:
        logger.error(f"Queue health check failed: {e}")
        return QueueHealth(status="unhealthy", queues={}, workers_running={})

    workers_running = {name: pool.running for name, pool in container.pools.items()}
    degraded = any(counts.get("failed", 0) for counts in stats.values()) or not all(workers_running.values())

    if degraded:
        logger.warning(f"Queues degraded: {stats}, workers={workers_running}")

    return QueueHealth(
        status="degraded" if degraded else "healthy",
        queues=stats,
        workers_running=workers_running,
    )
