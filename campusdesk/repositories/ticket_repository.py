"""
Ticket Repository

Owns reads and versioned writes of the `tickets` table and the append-only
child tables (escalations, messages). Every ticket write bumps `version`
and is a compare-and-set against the version it was read at.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from campusdesk.exceptions import NotFoundError
from campusdesk.models.schemas import (
    ACTIVE_STATUSES,
    Attachment,
    Escalation,
    HierarchyLevel,
    Ticket,
    TicketMessage,
    utcnow,
)
from campusdesk.models.hierarchy import SWEEP_EXCLUDED_LEVELS
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class TicketRepository:
    """Repository for tickets and their history."""

    def __init__(self, store: Store):
        self.store = store

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    async def get(self, ticket_id: str) -> Optional[Ticket]:
        row = await self.store.find(Tables.TICKETS, ticket_id)
        return Ticket.model_validate(row) if row else None

    async def get_or_raise(self, ticket_id: str) -> Ticket:
        ticket = await self.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        row = await self.store.find_one(Tables.TICKETS, {"ticket_number": ticket_number})
        return Ticket.model_validate(row) if row else None

    async def find_breached(self, now: datetime) -> List[Ticket]:
        """Active tickets past their SLA deadline, outside the excluded levels"""
        filters: Dict[str, Any] = {
            "status__in": list(ACTIVE_STATUSES),
            "sla_due_at__lt": now,
            "current_level__in": [level for level in HierarchyLevel if level not in SWEEP_EXCLUDED_LEVELS],
        }
        rows = await self.store.find_many(Tables.TICKETS, filters, order_by="sla_due_at")
        return [Ticket.model_validate(row) for row in rows]

    async def list_escalations(self, ticket_id: str) -> List[Escalation]:
        rows = await self.store.find_many(
            Tables.ESCALATIONS, {"ticket_id": ticket_id}, order_by="created_at"
        )
        return [Escalation.model_validate(row) for row in rows]

    async def list_messages(self, ticket_id: str, system_only: bool = False) -> List[TicketMessage]:
        filters: Dict[str, Any] = {"ticket_id": ticket_id}
        if system_only:
            filters["is_system"] = True
        rows = await self.store.find_many(Tables.MESSAGES, filters, order_by="created_at")
        return [TicketMessage.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    async def create(self, ticket: Ticket) -> Ticket:
        row = await self.store.create(Tables.TICKETS, ticket.model_dump())
        return Ticket.model_validate(row)

    async def update(
        self,
        ticket: Ticket,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[Ticket]:
        """
        Versioned update of a ticket previously read as `ticket`.

        Returns:
            The updated ticket, or None if the row changed since it was read
        """
        guarded = {"version": ticket.version}
        if expected:
            guarded.update(expected)

        row = await self.store.update(
            Tables.TICKETS,
            ticket.id,
            {**patch, "version": ticket.version + 1, "updated_at": utcnow()},
            expected=guarded
        )
        return Ticket.model_validate(row) if row else None

    async def add_escalation(self, escalation: Escalation) -> Escalation:
        row = await self.store.create(Tables.ESCALATIONS, escalation.model_dump())
        return Escalation.model_validate(row)

    async def add_message(self, message: TicketMessage) -> TicketMessage:
        row = await self.store.create(Tables.MESSAGES, message.model_dump())
        return TicketMessage.model_validate(row)

    async def add_system_message(self, ticket_id: str, text: str) -> TicketMessage:
        return await self.add_message(TicketMessage(
            ticket_id=ticket_id,
            message=text,
            is_system=True,
            is_internal=True,
        ))

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------
    async def add_attachment(self, attachment: Attachment) -> Attachment:
        row = await self.store.create(Tables.ATTACHMENTS, attachment.model_dump())
        return Attachment.model_validate(row)

    async def list_attachments(self, ticket_id: str) -> List[Attachment]:
        rows = await self.store.find_many(
            Tables.ATTACHMENTS, {"ticket_id": ticket_id}, order_by="created_at"
        )
        return [Attachment.model_validate(row) for row in rows]

    async def count_escalations(self, ticket_id: str) -> int:
        return await self.store.count(Tables.ESCALATIONS, {"ticket_id": ticket_id})
