"""
Service container

Builds the store, repositories, queues, worker pools and services once and
owns their lifecycle: start() launches the worker pools and the SLA
sweeper, stop() drains the pools and stops the sweeper.
"""
from typing import Dict, Optional

from campusdesk.config import Settings, get_settings
from campusdesk.jobs.handlers import EnrichmentHandlers
from campusdesk.jobs.job_queue import QUEUE_AI, QUEUE_NOTIFICATION, QUEUE_OCR, JobQueue, RetryPolicy
from campusdesk.jobs.worker_pool import WorkerPool
from campusdesk.repositories.base_repository import Store
from campusdesk.repositories.directory_repository import DirectoryRepository
from campusdesk.repositories.enrichment_repository import EnrichmentRepository
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.ai_assist import AIAssistService
from campusdesk.services.ai_gateway import AIGatewayClient
from campusdesk.services.audit import AuditLogger
from campusdesk.services.escalation import EscalationEngine
from campusdesk.services.notifications import NotificationService, NotificationTransport
from campusdesk.services.routing import RoutingResolver
from campusdesk.services.sla_sweeper import SLASweeper
from campusdesk.services.ticket_service import TicketService
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class Container:
    """Explicitly wired application graph."""

    def __init__(
        self,
        store: Optional[Store] = None,
        gateway: Optional[AIGatewayClient] = None,
        transport: Optional[NotificationTransport] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()

        if store is None:
            from campusdesk.repositories.supabase_store import SupabaseStore
            store = SupabaseStore()
        self.store = store
        self.gateway = gateway or AIGatewayClient()

        # Repositories
        self.tickets = TicketRepository(self.store)
        self.directory = DirectoryRepository(self.store)
        self.enrichment = EnrichmentRepository(self.store)

        # Queues
        retry_policy = RetryPolicy.from_settings(self.settings)
        self.queues: Dict[str, JobQueue] = {
            name: JobQueue(name, self.store, retry_policy=retry_policy)
            for name in (QUEUE_AI, QUEUE_OCR, QUEUE_NOTIFICATION)
        }

        # Services
        self.notifications = NotificationService(self.queues[QUEUE_NOTIFICATION], self.store, transport)
        self.audit = AuditLogger(self.store)
        self.routing = RoutingResolver(self.directory)
        self.escalation = EscalationEngine(self.tickets, self.routing, self.notifications)
        self.sweeper = SLASweeper(self.tickets, self.escalation, self.settings.sla_sweep_interval_seconds)
        self.ai_assist = AIAssistService(self.gateway, self.tickets, self.enrichment)
        self.ticket_service = TicketService(
            tickets=self.tickets,
            directory=self.directory,
            routing=self.routing,
            escalation=self.escalation,
            ai_queue=self.queues[QUEUE_AI],
            ocr_queue=self.queues[QUEUE_OCR],
            notifications=self.notifications,
            audit=self.audit,
        )

        # Workers
        enrichment_handlers = EnrichmentHandlers(self.enrichment, self.gateway, self.settings.ai_model_name)
        concurrency = self.settings.queue_concurrency()
        self.pools: Dict[str, WorkerPool] = {
            QUEUE_AI: WorkerPool(
                self.queues[QUEUE_AI], enrichment_handlers.ai_handlers(), concurrency[QUEUE_AI]
            ),
            QUEUE_OCR: WorkerPool(
                self.queues[QUEUE_OCR], enrichment_handlers.ocr_handlers(), concurrency[QUEUE_OCR]
            ),
            QUEUE_NOTIFICATION: WorkerPool(
                self.queues[QUEUE_NOTIFICATION], self.notifications.handlers(), concurrency[QUEUE_NOTIFICATION]
            ),
        }

    async def start(self, workers: bool = True, sweeper: Optional[bool] = None) -> None:
        if workers:
            for pool in self.pools.values():
                await pool.start()

        if self.settings.sla_sweep_enabled if sweeper is None else sweeper:
            self.sweeper.start()

        logger.info("CampusDesk services started")

    async def stop(self) -> None:
        await self.sweeper.stop()
        for pool in self.pools.values():
            await pool.stop()
        logger.info("CampusDesk services stopped")

    async def queue_stats(self) -> Dict[str, Dict[str, int]]:
        return {name: await queue.stats() for name, queue in self.queues.items()}


_container: Optional[Container] = None


def get_container() -> Container:
    """FastAPI dependency returning the process container"""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Optional[Container]) -> None:
    global _container
    _container = container
