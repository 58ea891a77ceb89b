"""
Notification Service

Producers call enqueue_notification() and return as soon as the job is
recorded on the `notification` queue. The notify handler then either writes
an in-app notification row or hands the message to a transport for
email / SMS / push.
"""
from typing import Any, Dict, Mapping, Optional, Protocol

from campusdesk.jobs.job_queue import JobQueue
from campusdesk.jobs.worker_pool import JobHandler
from campusdesk.models.schemas import Job, JobType, Notification, NotificationChannel
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationTransport(Protocol):
    """Delivery for out-of-app channels"""

    async def send(self, channel: NotificationChannel, payload: Dict[str, Any]) -> None:
        ...


class LoggingTransport:
    """Writes outgoing messages to the log instead of a provider"""

    async def send(self, channel: NotificationChannel, payload: Dict[str, Any]) -> None:
        if channel == NotificationChannel.EMAIL:
            logger.info(
                f"[EMAIL] To: {payload.get('email')}, Subject: {payload.get('subject')}, "
                f"Message: {payload.get('message')}"
            )
        elif channel == NotificationChannel.SMS:
            logger.info(f"[SMS] To: {payload.get('phone')}, Message: {payload.get('message')}")
        elif channel == NotificationChannel.PUSH:
            logger.info(
                f"[PUSH] To: {payload.get('user_id')}, Title: {payload.get('subject')}, "
                f"Message: {payload.get('message')}"
            )


class NotificationService:
    """Fire-and-forget notifications over the notification queue."""

    def __init__(
        self,
        queue: JobQueue,
        store: Store,
        transport: Optional[NotificationTransport] = None
    ):
        self.queue = queue
        self.store = store
        self.transport = transport or LoggingTransport()

    async def enqueue_notification(
        self,
        channel: NotificationChannel,
        message: str,
        subject: Optional[str] = None,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None
    ) -> Job:
        payload = {
            "type": NotificationChannel(channel).value,
            "user_id": user_id,
            "email": email,
            "phone": phone,
            "subject": subject,
            "message": message,
            "entity_type": entity_type,
            "entity_id": entity_id,
        }
        return await self.queue.enqueue(JobType.NOTIFY, payload)

    def handlers(self) -> Mapping[JobType, JobHandler]:
        return {JobType.NOTIFY: self.deliver}

    async def deliver(self, job: Job) -> None:
        payload = job.payload
        channel = NotificationChannel(payload["type"])

        if channel == NotificationChannel.IN_APP:
            await self._create_in_app(payload)
        else:
            await self.transport.send(channel, payload)

        logger.info(f"{channel.value} notification sent to {payload.get('user_id') or payload.get('email')}")

    async def _create_in_app(self, payload: Dict[str, Any]) -> None:
        if not payload.get("user_id"):
            logger.warning("in_app notification without user_id dropped")
            return

        notification = Notification(
            user_id=payload["user_id"],
            title=payload.get("subject") or "Notification",
            message=payload["message"],
            type=payload.get("entity_type") or "general",
            entity_type=payload.get("entity_type"),
            entity_id=payload.get("entity_id"),
        )
        await self.store.create(Tables.NOTIFICATIONS, notification.model_dump())
