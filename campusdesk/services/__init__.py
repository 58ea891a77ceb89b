"""
Business Logic Services
"""
from .ai_gateway import AIGatewayClient
from .ai_assist import AIAssistService
from .audit import AuditLogger
from .escalation import EscalationEngine
from .notifications import NotificationService, LoggingTransport
from .routing import RoutingResolver
from .sla_sweeper import SLASweeper
from .ticket_service import TicketService

__all__ = [
    "AIGatewayClient",
    "AIAssistService",
    "AuditLogger",
    "EscalationEngine",
    "NotificationService",
    "LoggingTransport",
    "RoutingResolver",
    "SLASweeper",
    "TicketService",
]
