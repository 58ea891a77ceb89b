"""
Worker Pool - bounded concurrent consumers of one JobQueue

Each worker claims a single job, runs the handler registered for its type
under a timeout, then acknowledges or records the failure. A handler
exception is confined to its job; the worker keeps consuming.
"""
import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, List, Mapping, Optional

from campusdesk.config import get_settings
from campusdesk.jobs.job_queue import JobQueue
from campusdesk.models.schemas import Job, JobType, utcnow
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

JobHandler = Callable[[Job], Awaitable[None]]


class UnknownJobTypeError(Exception):
    """No handler is registered for the job's type"""


class WorkerPool:
    """
    Fixed-size pool of asyncio workers for a queue.

    Lifecycle is owned by the caller: start() spawns the workers, drain()
    lets in-flight jobs finish and stops claiming, stop() drains with a
    deadline and cancels whatever is still running.
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: Mapping[JobType, JobHandler],
        concurrency: int,
        poll_interval: Optional[float] = None,
        job_timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.queue = queue
        self.handlers = dict(handlers)
        self.concurrency = max(1, concurrency)
        self.poll_interval = poll_interval or settings.queue_poll_interval_seconds
        self.job_timeout = job_timeout or settings.job_timeout_seconds
        self._tasks: List[asyncio.Task] = []
        self._stopping = False

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            return

        self._stopping = False
        await self.queue.recover_stalled(utcnow() - timedelta(seconds=self.job_timeout * 2))

        self._tasks = [
            asyncio.create_task(self._worker_loop(f"{self.queue.name}-worker-{i}"))
            for i in range(self.concurrency)
        ]
        logger.info(f"Started {self.concurrency} worker(s) on queue {self.queue.name}")

    async def drain(self) -> None:
        """Stop claiming new jobs and wait for in-flight ones"""
        self._stopping = True
        self.queue.notify_waiters()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info(f"Drained queue {self.queue.name} workers")

    async def stop(self, timeout: float = 30.0) -> None:
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Workers on {self.queue.name} did not drain in {timeout}s, cancelling")
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _worker_loop(self, worker_id: str) -> None:
        while not self._stopping:
            try:
                job = await self.queue.claim(worker_id)
            except Exception as e:
                logger.error(f"{worker_id} failed to claim from {self.queue.name}: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval)
                continue

            if job is None:
                await self.queue.wait_for_job(self.poll_interval)
                continue

            try:
                await self.process(job)
            except Exception as e:
                # Acknowledgement itself failed; the job will be recovered as stalled
                logger.error(f"{worker_id} could not record outcome of job {job.id}: {e}", exc_info=True)

    async def process(self, job: Job) -> bool:
        """
        Run one claimed job to completion or failure

        Returns:
            True if the handler succeeded
        """
        handler = self.handlers.get(job.job_type)

        try:
            if handler is None:
                raise UnknownJobTypeError(f"No handler for {job.job_type.value} on queue {self.queue.name}")
            await asyncio.wait_for(handler(job), timeout=self.job_timeout)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                e = TimeoutError(f"Job exceeded {self.job_timeout}s")
            logger.error(f"{self.queue.name} job {job.id} ({job.job_type.value}) failed: {e}")
            await self.queue.fail(job, e)
            return False

        await self.queue.complete(job)
        logger.info(f"{self.queue.name} job {job.id} ({job.job_type.value}) completed")
        return True

    async def run_until_empty(self, worker_id: str = "inline") -> int:
        """
        Process available jobs sequentially in the caller's task.

        Returns:
            Number of jobs processed (successful or not)
        """
        processed = 0
        while True:
            job = await self.queue.claim(worker_id)
            if job is None:
                return processed
            await self.process(job)
            processed += 1
