"""
Background job processing

- JobQueue: durable named queues (ai, ocr, notification)
- WorkerPool: bounded asyncio consumers per queue
- EnrichmentHandlers (campusdesk.jobs.handlers): AI / OCR job handlers
"""
from campusdesk.jobs.job_queue import (
    JobQueue,
    RetryPolicy,
    QUEUE_AI,
    QUEUE_OCR,
    QUEUE_NOTIFICATION,
)
from campusdesk.jobs.worker_pool import WorkerPool, JobHandler, UnknownJobTypeError

__all__ = [
    "JobQueue",
    "RetryPolicy",
    "QUEUE_AI",
    "QUEUE_OCR",
    "QUEUE_NOTIFICATION",
    "WorkerPool",
    "JobHandler",
    "UnknownJobTypeError",
]
