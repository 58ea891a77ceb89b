"""
Job Queue - durable named queue over the `jobs` table

Producers enqueue and return as soon as the row is written; workers claim
one job at a time with a compare-and-set on (status, version), so a job is
active in exactly one worker. Failed attempts go back to `waiting` with an
exponential backoff delay until the retry budget is spent, after which the
job stays in `failed` for inspection and manual requeue.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from campusdesk.config import Settings, get_settings
from campusdesk.models.schemas import Job, JobStatus, JobType, utcnow
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

QUEUE_AI = "ai"
QUEUE_OCR = "ocr"
QUEUE_NOTIFICATION = "notification"

# How many waiting rows a worker looks at per claim attempt
CLAIM_BATCH_SIZE = 10


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff"""
    max_attempts: int = 3
    backoff_base_seconds: float = 5.0
    backoff_max_seconds: float = 300.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the `attempt`-th failure (1-based)"""
        return min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** max(0, attempt - 1)))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.job_max_attempts,
            backoff_base_seconds=settings.job_backoff_base_seconds,
            backoff_max_seconds=settings.job_backoff_max_seconds,
        )


class JobQueue:
    """A single named queue."""

    def __init__(
        self,
        name: str,
        store: Store,
        retry_policy: Optional[RetryPolicy] = None,
        remove_on_complete: Optional[bool] = None
    ):
        settings = get_settings()
        self.name = name
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.remove_on_complete = (
            settings.remove_completed_jobs if remove_on_complete is None else remove_on_complete
        )
        self._wakeup = asyncio.Event()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    async def enqueue(
        self,
        job_type: JobType,
        payload: Dict[str, Any],
        delay_seconds: float = 0.0
    ) -> Job:
        """
        Durably record a job. Never waits on the job's execution.

        Args:
            job_type: Handler selector
            payload: JSON-serializable job input
            delay_seconds: Earliest start, relative to now

        Returns:
            The stored job
        """
        now = utcnow()
        job = Job(
            queue=self.name,
            job_type=JobType(job_type),
            payload=payload,
            max_attempts=self.retry_policy.max_attempts,
            available_at=now + timedelta(seconds=delay_seconds),
            created_at=now,
        )
        row = await self.store.create(Tables.JOBS, job.model_dump())
        self._wakeup.set()

        job = Job.model_validate(row)
        logger.debug(f"Enqueued {job.job_type.value} job {job.id} on {self.name}")
        return job

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    async def claim(self, worker_id: str) -> Optional[Job]:
        """
        Claim the oldest available job, or None if there is nothing to do.

        Losing a claim race to another worker just moves on to the next
        candidate.
        """
        now = utcnow()
        rows = await self.store.find_many(
            Tables.JOBS,
            {"queue": self.name, "status": JobStatus.WAITING, "available_at__lte": now},
            order_by="available_at",
            limit=CLAIM_BATCH_SIZE
        )

        for row in rows:
            candidate = Job.model_validate(row)
            claimed = await self.store.update(
                Tables.JOBS,
                candidate.id,
                {
                    "status": JobStatus.ACTIVE,
                    "attempts": candidate.attempts + 1,
                    "claimed_by": worker_id,
                    "claimed_at": now,
                    "version": candidate.version + 1,
                },
                expected={"status": JobStatus.WAITING, "version": candidate.version}
            )
            if claimed:
                return Job.model_validate(claimed)

        return None

    async def complete(self, job: Job) -> None:
        """Acknowledge a successful job"""
        if self.remove_on_complete:
            await self.store.delete(Tables.JOBS, job.id)
        else:
            await self.store.update(
                Tables.JOBS,
                job.id,
                {"status": JobStatus.COMPLETED, "finished_at": utcnow(), "version": job.version + 1}
            )

    async def fail(self, job: Job, error: BaseException) -> Job:
        """
        Record a failed attempt.

        Returns:
            The job as stored: waiting again with a backoff delay, or failed
            once max_attempts is reached
        """
        now = utcnow()
        message = f"{type(error).__name__}: {error}"

        if job.attempts >= job.max_attempts:
            patch = {
                "status": JobStatus.FAILED,
                "last_error": message,
                "finished_at": now,
                "version": job.version + 1,
            }
            logger.error(
                f"{self.name} job {job.id} ({job.job_type.value}) moved to failed after "
                f"{job.attempts} attempt(s): {message}"
            )
        else:
            delay = self.retry_policy.delay_for(job.attempts)
            patch = {
                "status": JobStatus.WAITING,
                "last_error": message,
                "available_at": now + timedelta(seconds=delay),
                "claimed_by": None,
                "version": job.version + 1,
            }
            logger.warning(
                f"{self.name} job {job.id} ({job.job_type.value}) attempt "
                f"{job.attempts}/{job.max_attempts} failed, retrying in {delay:.0f}s: {message}"
            )

        row = await self.store.update(Tables.JOBS, job.id, patch)
        return Job.model_validate(row) if row else job.model_copy(update=patch)

    async def wait_for_job(self, timeout: float) -> None:
        """Block until something is enqueued locally or `timeout` elapses"""
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wakeup.clear()

    def notify_waiters(self) -> None:
        self._wakeup.set()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    async def recover_stalled(self, claimed_before: datetime) -> int:
        """Return jobs left active by a crashed worker to the waiting state"""
        rows = await self.store.find_many(
            Tables.JOBS,
            {"queue": self.name, "status": JobStatus.ACTIVE, "claimed_at__lt": claimed_before}
        )
        recovered = 0
        for row in rows:
            job = Job.model_validate(row)
            updated = await self.store.update(
                Tables.JOBS,
                job.id,
                {"status": JobStatus.WAITING, "claimed_by": None, "version": job.version + 1},
                expected={"status": JobStatus.ACTIVE, "version": job.version}
            )
            if updated:
                recovered += 1

        if recovered:
            logger.warning(f"Recovered {recovered} stalled job(s) on {self.name}")
        return recovered

    async def requeue_failed(self, job_id: str) -> Optional[Job]:
        """Give a dead job a fresh retry budget"""
        row = await self.store.update(
            Tables.JOBS,
            job_id,
            {
                "status": JobStatus.WAITING,
                "attempts": 0,
                "available_at": utcnow(),
                "claimed_by": None,
            },
            expected={"status": JobStatus.FAILED, "queue": self.name}
        )
        if row is None:
            return None

        self._wakeup.set()
        logger.info(f"Requeued failed job {job_id} on {self.name}")
        return Job.model_validate(row)

    async def stats(self) -> Dict[str, int]:
        """Job counts per status"""
        counts = {}
        for status in JobStatus:
            counts[status.value] = await self.store.count(
                Tables.JOBS, {"queue": self.name, "status": status}
            )
        return counts
