"""
SLA Sweeper

Periodically escalates active tickets whose SLA deadline has passed.
Campus-admin tickets are left for a human. A failure on one ticket is
logged and the sweep moves on.
"""
import asyncio
from datetime import datetime
from typing import Optional

from campusdesk.config import get_settings
from campusdesk.models.schemas import utcnow
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.escalation import AUTO_ESCALATION_REASON, EscalationEngine
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class SLASweeper:
    """Breach scan plus an optional background loop."""

    def __init__(
        self,
        tickets: TicketRepository,
        escalation: EscalationEngine,
        interval_seconds: Optional[float] = None
    ):
        self.tickets = tickets
        self.escalation = escalation
        self.interval_seconds = interval_seconds or get_settings().sla_sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Escalate every breached ticket once

        Returns:
            Number of tickets escalated
        """
        breached = await self.tickets.find_breached(now or utcnow())
        if not breached:
            logger.debug("SLA sweep: no breached tickets")
            return 0

        escalated = 0
        for ticket in breached:
            try:
                result = await self.escalation.escalate(
                    ticket.id,
                    ticket.current_level,
                    AUTO_ESCALATION_REASON,
                    auto_escalated=True,
                )
            except Exception as e:
                logger.error(f"Failed to auto-escalate ticket {ticket.id}: {e}")
                continue

            if result.escalation_created:
                escalated += 1

        logger.info(f"SLA sweep escalated {escalated}/{len(breached)} breached ticket(s)")
        return escalated

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"SLA sweeper started (every {self.interval_seconds:.0f}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            self._task.cancel()
        self._task = None
        logger.info("SLA sweeper stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.sweep()
            except Exception as e:
                # Breach query failed; try again next interval
                logger.error(f"SLA sweep failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
