"""
Escalation Engine

Moves a ticket one rung up the hierarchy. Manual escalations and SLA
auto-escalations share this path.

Write order:
1. ticket row: compare-and-set on (version, current_level)
2. escalation record (on failure the ticket write is reverted)
3. system message
4. notification to the new assignee
"""
from typing import Optional

from campusdesk.exceptions import EscalationConflictError, ValidationError
from campusdesk.models.hierarchy import next_level
from campusdesk.models.schemas import (
    Escalation,
    EscalationResult,
    HierarchyLevel,
    NotificationChannel,
    Ticket,
    TicketStatus,
)
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.routing import RoutingResolver
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

AUTO_ESCALATION_REASON = "Auto-escalated due to SLA breach"

# One initial attempt plus one retry after losing a race
MAX_ESCALATION_ATTEMPTS = 2


class EscalationEngine:
    """Serialized, single-step escalation of tickets."""

    def __init__(
        self,
        tickets: TicketRepository,
        routing: RoutingResolver,
        notifications=None
    ):
        self.tickets = tickets
        self.routing = routing
        self.notifications = notifications

    async def escalate(
        self,
        ticket_id: str,
        current_level: HierarchyLevel,
        reason: str,
        from_user_id: Optional[str] = None,
        auto_escalated: bool = False
    ) -> EscalationResult:
        """
        Escalate a ticket from `current_level` to its successor

        Args:
            ticket_id: Ticket to escalate
            current_level: Level the caller observed the ticket at
            reason: Free text recorded on the escalation and system message
            from_user_id: Escalating user (None for the SLA sweeper)
            auto_escalated: True when triggered by an SLA breach

        Returns:
            EscalationResult; escalation_created is False when another
            escalation already moved the ticket past `current_level`

        Raises:
            TerminalLevelError: current_level has no successor
            ValidationError: Ticket is closed or rejected
            NotFoundError: Ticket does not exist
            EscalationConflictError: Still contended after one retry
        """
        current_level = HierarchyLevel(current_level)
        target_level = next_level(current_level)

        ticket = None
        updated = None
        for attempt in range(MAX_ESCALATION_ATTEMPTS):
            ticket = await self.tickets.get_or_raise(ticket_id)

            if ticket.is_terminal:
                raise ValidationError("Cannot escalate a closed ticket")
            if ticket.current_level is None:
                raise ValidationError("Ticket has no current routing level")

            if ticket.current_level != current_level:
                logger.info(
                    f"Ticket {ticket_id} already moved from {current_level.value} "
                    f"to {ticket.current_level.value}, skipping escalation"
                )
                return EscalationResult(
                    assigned_user_id=ticket.assigned_to_user_id,
                    level=ticket.current_level,
                    escalation_created=False,
                )

            assignee = await self.routing.resolve_assignee(
                target_level, ticket.college_id, ticket.department_id
            )
            updated = await self.tickets.update(
                ticket,
                {
                    "status": TicketStatus.ESCALATED,
                    "current_level": target_level,
                    "assigned_to_user_id": assignee,
                },
                expected={"current_level": current_level}
            )
            if updated is not None:
                break

            logger.warning(
                f"Escalation of ticket {ticket_id} lost a concurrent update "
                f"(attempt {attempt + 1}/{MAX_ESCALATION_ATTEMPTS})"
            )
        else:
            raise EscalationConflictError(
                f"Ticket {ticket_id} is being modified concurrently, escalation not applied"
            )

        escalation = await self._record_escalation(
            ticket, updated, current_level, target_level, reason, from_user_id, auto_escalated
        )

        await self.tickets.add_system_message(
            ticket_id,
            f"Ticket escalated from {current_level.value} to {target_level.value}. Reason: {reason}"
        )

        logger.info(
            f"Ticket {ticket_id} escalated from {current_level.value} to {target_level.value}"
            f"{' (auto)' if auto_escalated else ''}, assignee={updated.assigned_to_user_id}"
        )

        await self._notify_assignee(updated)

        return EscalationResult(
            assigned_user_id=updated.assigned_to_user_id,
            level=target_level,
            escalation_created=True,
            escalation_id=escalation.id,
        )

    async def _record_escalation(
        self,
        before: Ticket,
        after: Ticket,
        from_level: HierarchyLevel,
        to_level: HierarchyLevel,
        reason: str,
        from_user_id: Optional[str],
        auto_escalated: bool
    ) -> Escalation:
        try:
            return await self.tickets.add_escalation(Escalation(
                ticket_id=before.id,
                from_level=from_level,
                to_level=to_level,
                from_user_id=from_user_id,
                to_user_id=after.assigned_to_user_id,
                reason=reason,
                auto_escalated=auto_escalated,
            ))
        except Exception:
            reverted = await self.tickets.update(
                after,
                {
                    "status": before.status,
                    "current_level": before.current_level,
                    "assigned_to_user_id": before.assigned_to_user_id,
                }
            )
            if reverted is None:
                logger.error(f"Could not revert ticket {before.id} after failed escalation insert")
            raise

    async def _notify_assignee(self, ticket: Ticket) -> None:
        if self.notifications is None or not ticket.assigned_to_user_id:
            return

        try:
            await self.notifications.enqueue_notification(
                NotificationChannel.IN_APP,
                f"Ticket {ticket.ticket_number} has been escalated to you: {ticket.title}",
                subject="Ticket escalated",
                user_id=ticket.assigned_to_user_id,
                entity_type="ticket",
                entity_id=ticket.id,
            )
        except Exception as e:
            logger.error(f"Failed to enqueue escalation notification for ticket {ticket.id}: {e}")
