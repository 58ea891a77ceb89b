"""
Admin API Routes

Operational endpoints: manual SLA sweep, reassignment, queue inspection
and dead-job requeue. Requires the admin API key.
"""
from typing import Dict

from fastapi import APIRouter, Depends, Header, HTTPException, status

from campusdesk.container import Container, get_container
from campusdesk.middleware.admin_auth import verify_admin_key
from campusdesk.models.schemas import Job, ReassignRequest
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_key)]  # Apply to all routes
)


@router.post("/sla/sweep")
async def run_sla_sweep(container: Container = Depends(get_container)) -> Dict[str, int]:
    """Run one SLA sweep now instead of waiting for the interval"""
    escalated = await container.sweeper.sweep()
    return {"escalated": escalated}


@router.post("/tickets/{ticket_id}/reassign")
async def reassign_ticket(
    ticket_id: str,
    data: ReassignRequest,
    user_id: str = Header("admin", alias="X-User-Id"),
    container: Container = Depends(get_container)
):
    ticket = await container.ticket_service.reassign(
        ticket_id, data.assignee_user_id, user_id, reason=data.reason
    )
    return ticket.model_dump(mode="json")


@router.get("/queues")
async def queue_stats(container: Container = Depends(get_container)) -> Dict[str, Dict[str, int]]:
    return await container.queue_stats()


@router.post("/queues/{queue_name}/jobs/{job_id}/requeue", response_model=Job)
async def requeue_job(
    queue_name: str,
    job_id: str,
    container: Container = Depends(get_container)
) -> Job:
    """Give a failed job a fresh retry budget"""
    queue = container.queues.get(queue_name)
    if queue is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown queue {queue_name}")

    job = await queue.requeue_failed(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No failed job {job_id} on queue {queue_name}"
        )

    logger.info(f"Admin requeued job {job_id} on {queue_name}")
    return job
