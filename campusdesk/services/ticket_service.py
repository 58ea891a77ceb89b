"""
Ticket Service - lifecycle of a ticket

Creation, updates, messages, manual escalation, rating, reassignment,
attachments and the read views (timeline, public tracking). All writes to a
ticket's routing fields go through this service or the escalation engine.

Ordering on create: the ticket row is persisted first; enrichment jobs,
the assignee notification and the audit record follow only once that
write has succeeded.
"""
import hashlib
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from campusdesk.config import get_settings
from campusdesk.exceptions import (
    AlreadyRatedError,
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from campusdesk.jobs.job_queue import JobQueue
from campusdesk.models.hierarchy import compute_sla_due_at
from campusdesk.models.schemas import (
    RATEABLE_STATUSES,
    Attachment,
    AttachmentCreate,
    EscalationResult,
    Job,
    JobType,
    MessageCreate,
    NotificationChannel,
    RateRequest,
    Ticket,
    TicketCreate,
    TicketMessage,
    TicketStatus,
    TicketUpdate,
    TimelineEvent,
    UserStatus,
    utcnow,
)
from campusdesk.repositories.directory_repository import DirectoryRepository
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.audit import AuditLogger
from campusdesk.services.escalation import EscalationEngine
from campusdesk.services.notifications import NotificationService
from campusdesk.services.routing import RoutingResolver
from campusdesk.utils.logger import get_logger
from campusdesk.utils.validators import ALLOWED_MIME_TYPES, is_ocr_eligible, sanitize_input

logger = get_logger(__name__)

ENTITY_TICKET = "Ticket"

# A guarded ticket write is attempted at most this many times
MAX_WRITE_ATTEMPTS = 2


def generate_ticket_number(prefix: str, now: Optional[datetime] = None) -> str:
    """PREFIX-YYYYMMDD-NNNNN with a random 5 digit suffix"""
    now = now or utcnow()
    return f"{prefix}-{now:%Y%m%d}-{random.randint(10000, 99999)}"


def anonymous_identifier(user_id: str) -> str:
    """Stable pseudonym shown instead of an anonymous creator's name"""
    digest = int(hashlib.sha256(user_id.encode("utf-8")).hexdigest(), 16)
    alphabet = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    chars = []
    for _ in range(6):
        digest, index = divmod(digest, 36)
        chars.append(alphabet[index])
    return f"Anonymous-{''.join(chars)}"


class TicketService:
    """Composition point of routing, escalation, queues and audit."""

    def __init__(
        self,
        tickets: TicketRepository,
        directory: DirectoryRepository,
        routing: RoutingResolver,
        escalation: EscalationEngine,
        ai_queue: JobQueue,
        ocr_queue: JobQueue,
        notifications: NotificationService,
        audit: AuditLogger
    ):
        settings = get_settings()
        self.tickets = tickets
        self.directory = directory
        self.routing = routing
        self.escalation = escalation
        self.ai_queue = ai_queue
        self.ocr_queue = ocr_queue
        self.notifications = notifications
        self.audit = audit
        self.ticket_number_prefix = settings.ticket_number_prefix
        self.ticket_number_max_attempts = settings.ticket_number_max_attempts

    # ========================================================================
    # Create
    # ========================================================================

    async def create(self, data: TicketCreate, user_id: str) -> Ticket:
        """
        Route, persist and enqueue enrichment for a new ticket

        Args:
            data: Validated ticket input
            user_id: Creator

        Returns:
            The persisted ticket

        Raises:
            StorageError: Persistence failed (nothing was enqueued)
        """
        routing = await self.routing.resolve_initial_routing(
            data.category, data.college_id, data.department_id
        )

        created_at = utcnow()
        title = sanitize_input(data.title, 200)
        description = sanitize_input(data.description)

        ticket = None
        for attempt in range(self.ticket_number_max_attempts):
            candidate = Ticket(
                ticket_number=generate_ticket_number(self.ticket_number_prefix, created_at),
                title=title,
                description=description,
                created_by_user_id=user_id,
                is_anonymous=data.is_anonymous,
                anonymous_identifier=anonymous_identifier(user_id) if data.is_anonymous else None,
                category=data.category,
                type=data.type,
                priority=data.priority,
                status=TicketStatus.OPEN,
                college_id=data.college_id,
                department_id=data.department_id,
                assigned_to_user_id=routing.assigned_user_id,
                current_level=routing.level,
                sla_due_at=compute_sla_due_at(created_at, data.priority),
                tags=data.tags,
                created_at=created_at,
                updated_at=created_at,
            )
            try:
                ticket = await self.tickets.create(candidate)
                break
            except DuplicateKeyError:
                logger.warning(
                    f"Ticket number {candidate.ticket_number} already taken "
                    f"(attempt {attempt + 1}/{self.ticket_number_max_attempts})"
                )

        if ticket is None:
            raise StorageError("Could not allocate a unique ticket number")

        combined_text = f"{ticket.title}\n\n{ticket.description}"
        await self._enqueue(self.ai_queue, JobType.SUMMARIZE, {
            "ticket_id": ticket.id,
            "text": ticket.description,
            "title": ticket.title,
        })
        await self._enqueue(self.ai_queue, JobType.MODERATE, {"ticket_id": ticket.id, "text": combined_text})
        await self._enqueue(self.ai_queue, JobType.EMBED, {"ticket_id": ticket.id, "text": combined_text})

        if ticket.assigned_to_user_id:
            await self._notify(
                ticket.assigned_to_user_id,
                "New ticket assigned",
                f"A new {ticket.category.value.lower()} ticket has been assigned to you: {ticket.title}",
                ticket.id,
            )

        await self.audit.log(
            "CREATE", ENTITY_TICKET, ticket.id, user_id,
            {"ticketNumber": ticket.ticket_number, "category": ticket.category.value}
        )

        logger.info(f"Ticket {ticket.ticket_number} created and routed to {ticket.current_level.value}")
        return ticket

    # ========================================================================
    # Read
    # ========================================================================

    async def get(self, ticket_id: str) -> Ticket:
        return await self.tickets.get_or_raise(ticket_id)

    async def get_messages(self, ticket_id: str, include_internal: bool = True) -> List[TicketMessage]:
        await self.tickets.get_or_raise(ticket_id)
        messages = await self.tickets.list_messages(ticket_id)
        if include_internal:
            return messages
        return [m for m in messages if not m.is_internal]

    async def track_by_number(self, ticket_number: str) -> Dict[str, Any]:
        """Public, limited view of a ticket"""
        ticket = await self.tickets.get_by_number(ticket_number)
        if ticket is None:
            raise NotFoundError("Ticket not found")

        return {
            "ticket_number": ticket.ticket_number,
            "title": ticket.title,
            "category": ticket.category,
            "type": ticket.type,
            "priority": ticket.priority,
            "status": ticket.status,
            "current_level": ticket.current_level,
            "sla_due_at": ticket.sla_due_at,
            "created_at": ticket.created_at,
            "resolved_at": ticket.resolved_at,
            "college_id": ticket.college_id,
            "department_id": ticket.department_id,
            "escalation_count": await self.tickets.count_escalations(ticket.id),
        }

    async def get_timeline(self, ticket_id: str) -> List[TimelineEvent]:
        ticket = await self.tickets.get_or_raise(ticket_id)

        events = [TimelineEvent(
            type="created",
            timestamp=ticket.created_at,
            data={
                "status": TicketStatus.OPEN.value,
                "category": ticket.category.value,
                "priority": ticket.priority.value,
            },
        )]

        for escalation in await self.tickets.list_escalations(ticket_id):
            events.append(TimelineEvent(
                type="escalation",
                timestamp=escalation.created_at,
                data={
                    "from_level": escalation.from_level.value,
                    "to_level": escalation.to_level.value,
                    "reason": escalation.reason,
                    "auto_escalated": escalation.auto_escalated,
                    "from_user_id": escalation.from_user_id,
                    "to_user_id": escalation.to_user_id,
                },
            ))

        for message in await self.tickets.list_messages(ticket_id, system_only=True):
            events.append(TimelineEvent(
                type="system_message",
                timestamp=message.created_at,
                data={"message": message.message},
            ))

        if ticket.resolved_at:
            events.append(TimelineEvent(
                type="resolved",
                timestamp=ticket.resolved_at,
                data={"status": TicketStatus.RESOLVED.value},
            ))

        if ticket.rated_at:
            events.append(TimelineEvent(
                type="rated",
                timestamp=ticket.rated_at,
                data={"rating": ticket.rating, "comment": ticket.rating_comment},
            ))

        events.sort(key=lambda event: event.timestamp)
        return events

    # ========================================================================
    # Mutations
    # ========================================================================

    async def update(self, ticket_id: str, data: TicketUpdate, user_id: str) -> Ticket:
        """
        Apply an administrative edit

        A priority change recomputes sla_due_at from the ticket's creation
        time, never from the time of the edit.
        """
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return await self.tickets.get_or_raise(ticket_id)

        def build_patch(ticket: Ticket) -> Dict[str, Any]:
            if ticket.is_terminal:
                raise ValidationError("Cannot update a closed ticket")

            patch: Dict[str, Any] = {}
            if data.title:
                patch["title"] = sanitize_input(data.title, 200)
            if data.description:
                patch["description"] = sanitize_input(data.description)
            if data.priority:
                patch["priority"] = data.priority
                patch["sla_due_at"] = compute_sla_due_at(ticket.created_at, data.priority)
            if data.status:
                patch["status"] = data.status
                if data.status == TicketStatus.RESOLVED:
                    patch["resolved_at"] = utcnow()
                if data.status == TicketStatus.CLOSED:
                    patch["closed_at"] = utcnow()
            if data.assigned_to_user_id:
                patch["assigned_to_user_id"] = data.assigned_to_user_id
            if data.tags is not None:
                patch["tags"] = data.tags
            return patch

        updated = await self._guarded_update(ticket_id, build_patch)

        await self.audit.log(
            "UPDATE", ENTITY_TICKET, ticket_id, user_id,
            {"changes": data.model_dump(exclude_unset=True, mode="json")}
        )
        return updated

    async def add_message(self, ticket_id: str, data: MessageCreate, user_id: str) -> TicketMessage:
        ticket = await self.tickets.get_or_raise(ticket_id)
        if ticket.is_terminal:
            raise ValidationError("Cannot add message to a closed ticket")

        message = await self.tickets.add_message(TicketMessage(
            ticket_id=ticket_id,
            sender_user_id=user_id,
            message=sanitize_input(data.message, 5000),
            is_internal=data.is_internal,
        ))

        # First reply from staff moves the ticket into progress
        if ticket.status == TicketStatus.OPEN and user_id != ticket.created_by_user_id:
            def build_patch(current: Ticket) -> Optional[Dict[str, Any]]:
                if current.status != TicketStatus.OPEN:
                    return None
                return {
                    "status": TicketStatus.IN_PROGRESS,
                    "first_response_at": current.first_response_at or message.created_at,
                }

            ticket = await self._guarded_update(ticket_id, build_patch)

        recipient = (
            ticket.assigned_to_user_id if user_id == ticket.created_by_user_id
            else ticket.created_by_user_id
        )
        if recipient and not data.is_internal:
            await self._notify(
                recipient,
                "New message on your ticket",
                f"New message on ticket {ticket.ticket_number}",
                ticket_id,
            )

        return message

    async def escalate(self, ticket_id: str, reason: str, user_id: str) -> EscalationResult:
        """Manual escalation by a user; same path as SLA auto-escalation"""
        ticket = await self.tickets.get_or_raise(ticket_id)

        if ticket.is_terminal:
            raise ValidationError("Cannot escalate a closed ticket")
        if ticket.current_level is None:
            raise ValidationError("Ticket has no current routing level")

        result = await self.escalation.escalate(
            ticket_id,
            ticket.current_level,
            sanitize_input(reason, 1000),
            from_user_id=user_id,
        )

        await self.audit.log(
            "ESCALATE", ENTITY_TICKET, ticket_id, user_id,
            {"fromLevel": ticket.current_level.value, "toLevel": result.level.value}
        )
        return result

    async def rate(self, ticket_id: str, data: RateRequest, user_id: str) -> Ticket:
        ticket = await self.tickets.get_or_raise(ticket_id)

        if ticket.created_by_user_id != user_id:
            raise ForbiddenError("Only the ticket creator can rate")
        if ticket.status not in RATEABLE_STATUSES:
            raise ValidationError("Can only rate resolved or closed tickets")
        if ticket.rating is not None:
            raise AlreadyRatedError("Ticket has already been rated")

        updated = await self.tickets.update(
            ticket,
            {
                "rating": data.rating,
                "rating_comment": sanitize_input(data.comment, 1000) if data.comment else None,
                "rated_at": utcnow(),
            },
            expected={"rating": None}
        )
        if updated is None:
            current = await self.tickets.get_or_raise(ticket_id)
            if current.rating is not None:
                raise AlreadyRatedError("Ticket has already been rated")
            raise ConflictError("Ticket was modified concurrently, please retry")

        await self.audit.log("RATE", ENTITY_TICKET, ticket_id, user_id, {"rating": data.rating})
        return updated

    async def reassign(
        self,
        ticket_id: str,
        assignee_user_id: str,
        user_id: str,
        reason: Optional[str] = None
    ) -> Ticket:
        """Hand the ticket to another user at the same level"""
        assignee = await self.directory.get_user(assignee_user_id)
        if assignee is None or assignee.status != UserStatus.ACTIVE:
            raise NotFoundError("Assignee not found or inactive")

        previous: Dict[str, Optional[str]] = {}

        def build_patch(ticket: Ticket) -> Dict[str, Any]:
            if ticket.is_terminal:
                raise ValidationError("Cannot reassign a closed ticket")
            previous["assignee"] = ticket.assigned_to_user_id
            return {"assigned_to_user_id": assignee_user_id}

        updated = await self._guarded_update(ticket_id, build_patch)

        level = updated.current_level.value if updated.current_level else "unrouted"
        text = f"Ticket reassigned to {assignee_user_id} at {level}"
        if reason:
            text += f". Reason: {sanitize_input(reason, 1000)}"
        await self.tickets.add_system_message(ticket_id, text)

        await self._notify(
            assignee_user_id,
            "Ticket assigned",
            f"Ticket {updated.ticket_number} has been assigned to you: {updated.title}",
            ticket_id,
        )
        await self.audit.log(
            "REASSIGN", ENTITY_TICKET, ticket_id, user_id,
            {"from": previous.get("assignee"), "to": assignee_user_id, "reason": reason}
        )
        logger.info(f"Ticket {ticket_id} reassigned from {previous.get('assignee')} to {assignee_user_id}")
        return updated

    # ========================================================================
    # Attachments and enrichment
    # ========================================================================

    async def add_attachment(self, ticket_id: str, data: AttachmentCreate, user_id: str) -> Attachment:
        """Register an uploaded file; images and PDFs are queued for OCR"""
        await self.tickets.get_or_raise(ticket_id)

        if data.mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"File type {data.mime_type} is not allowed")

        attachment = await self.tickets.add_attachment(Attachment(
            ticket_id=ticket_id,
            message_id=data.message_id,
            file_name=data.file_name,
            file_url=data.file_url,
            storage_key=data.storage_key,
            mime_type=data.mime_type,
            size_bytes=data.size_bytes,
        ))

        if is_ocr_eligible(attachment.mime_type):
            await self._enqueue(self.ocr_queue, JobType.OCR, {
                "attachment_id": attachment.id,
                "storage_key": attachment.storage_key,
                "file_url": attachment.file_url,
                "mime_type": attachment.mime_type,
            })

        await self.audit.log(
            "UPLOAD", "Attachment", attachment.id, user_id,
            {"ticketId": ticket_id, "mimeType": attachment.mime_type}
        )
        return attachment

    async def reanalyze(self, ticket_id: str, user_id: Optional[str] = None) -> List[Job]:
        """Queue classification, priority and summary again for a ticket"""
        ticket = await self.tickets.get_or_raise(ticket_id)

        payload = {"ticket_id": ticket.id, "text": ticket.description, "title": ticket.title}
        jobs = []
        for job_type in (JobType.CLASSIFY, JobType.PRIORITY, JobType.SUMMARIZE):
            jobs.append(await self.ai_queue.enqueue(job_type, dict(payload)))

        logger.info(f"Queued re-analysis of ticket {ticket_id} ({len(jobs)} jobs)")
        return jobs

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _guarded_update(
        self,
        ticket_id: str,
        build_patch: Callable[[Ticket], Optional[Dict[str, Any]]]
    ) -> Ticket:
        """
        Read-modify-write of a ticket under its version.

        `build_patch` sees the freshly read ticket and may raise to reject
        the change or return None when there is nothing left to do.
        """
        for attempt in range(MAX_WRITE_ATTEMPTS):
            ticket = await self.tickets.get_or_raise(ticket_id)
            patch = build_patch(ticket)
            if not patch:
                return ticket

            updated = await self.tickets.update(ticket, patch)
            if updated is not None:
                return updated

            logger.warning(f"Concurrent update on ticket {ticket_id} (attempt {attempt + 1}/{MAX_WRITE_ATTEMPTS})")

        raise ConflictError("Ticket was modified concurrently, please retry")

    async def _enqueue(self, queue: JobQueue, job_type: JobType, payload: Dict[str, Any]) -> Optional[Job]:
        # The ticket is already committed; a lost job must not fail the request
        try:
            return await queue.enqueue(job_type, payload)
        except Exception as e:
            logger.error(f"Failed to enqueue {job_type.value} job on {queue.name}: {e}")
            return None

    async def _notify(self, user_id: str, subject: str, message: str, ticket_id: str) -> None:
        try:
            await self.notifications.enqueue_notification(
                NotificationChannel.IN_APP,
                message,
                subject=subject,
                user_id=user_id,
                entity_type="ticket",
                entity_id=ticket_id,
            )
        except Exception as e:
            logger.error(f"Failed to enqueue notification for {user_id} on ticket {ticket_id}: {e}")
