"""
Pydantic models for CampusDesk
"""

from campusdesk.models.schemas import (
    # Enums
    TicketCategory,
    TicketType,
    TicketPriority,
    TicketStatus,
    HierarchyLevel,
    UserStatus,
    PredictionType,
    ToxicitySeverity,
    ToxicityAction,
    NotificationChannel,
    JobType,
    JobStatus,

    # Database Models
    User,
    Department,
    College,
    Ticket,
    Escalation,
    TicketMessage,
    AIPrediction,
    Embedding,
    Attachment,
    Notification,
    Job,

    # Requests
    TicketCreate,
    TicketUpdate,
    MessageCreate,
    EscalateRequest,
    RateRequest,
    ReassignRequest,
    AttachmentCreate,

    # Results
    RoutingResult,
    EscalationResult,
    TimelineEvent,
)
from campusdesk.models.hierarchy import (
    CATEGORY_ROUTING,
    ROUTING_HIERARCHY,
    SLA_HOURS,
    next_level,
    compute_sla_due_at,
)

__all__ = [
    "TicketCategory",
    "TicketType",
    "TicketPriority",
    "TicketStatus",
    "HierarchyLevel",
    "UserStatus",
    "PredictionType",
    "ToxicitySeverity",
    "ToxicityAction",
    "NotificationChannel",
    "JobType",
    "JobStatus",

    "User",
    "Department",
    "College",
    "Ticket",
    "Escalation",
    "TicketMessage",
    "AIPrediction",
    "Embedding",
    "Attachment",
    "Notification",
    "Job",

    "TicketCreate",
    "TicketUpdate",
    "MessageCreate",
    "EscalateRequest",
    "RateRequest",
    "ReassignRequest",
    "AttachmentCreate",

    "RoutingResult",
    "EscalationResult",
    "TimelineEvent",

    "CATEGORY_ROUTING",
    "ROUTING_HIERARCHY",
    "SLA_HOURS",
    "next_level",
    "compute_sla_due_at",
]
