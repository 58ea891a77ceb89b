"""
Pydantic models for CampusDesk

This module contains the schemas matching the Supabase tables used by the
routing, escalation and enrichment pipeline, plus the request models the
ticket service accepts.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, ConfigDict


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# ============================================================================
# Enums
# ============================================================================

class TicketCategory(str, Enum):
    TRANSPORT = "TRANSPORT"
    HOSTEL = "HOSTEL"
    ACADEMIC = "ACADEMIC"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    OTHER = "OTHER"


class TicketType(str, Enum):
    COMPLAINT = "COMPLAINT"
    SUGGESTION = "SUGGESTION"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_INFO = "PENDING_INFO"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES = frozenset({TicketStatus.CLOSED, TicketStatus.REJECTED})
ACTIVE_STATUSES = frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_INFO})
RATEABLE_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


class HierarchyLevel(str, Enum):
    """Rungs of the escalation chain"""
    CLASS_COORDINATOR = "CLASS_COORDINATOR"
    HOD = "HOD"
    DEAN = "DEAN"
    DIRECTOR = "DIRECTOR"
    DIRECTOR_FINANCE = "DIRECTOR_FINANCE"
    TRANSPORT_INCHARGE = "TRANSPORT_INCHARGE"
    HOSTEL_WARDEN = "HOSTEL_WARDEN"
    CAMPUS_ADMIN = "CAMPUS_ADMIN"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class PredictionType(str, Enum):
    CATEGORIZATION = "CATEGORIZATION"
    PRIORITY = "PRIORITY"
    TOXICITY = "TOXICITY"
    SUMMARY = "SUMMARY"


class ToxicitySeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ToxicityAction(str, Enum):
    ALLOW = "ALLOW"
    FLAG = "FLAG"
    BLOCK = "BLOCK"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class JobType(str, Enum):
    CLASSIFY = "classify"
    PRIORITY = "priority"
    MODERATE = "moderate"
    SUMMARIZE = "summarize"
    EMBED = "embed"
    OCR = "ocr"
    NOTIFY = "notify"


class JobStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


# ============================================================================
# Database Models (matching Supabase tables)
# ============================================================================

class User(BaseModel):
    """Row of the `users` table, with role names flattened"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE
    roles: List[str] = Field(default_factory=list)
    college_id: Optional[str] = None
    department_id: Optional[str] = None


class Department(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    college_id: Optional[str] = None
    hod_user_id: Optional[str] = None


class College(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    director_user_id: Optional[str] = None


class Ticket(BaseModel):
    """
    Ticket model, the unit of work.

    This model matches the `tickets` table in Supabase.

    Attributes:
        ticket_number: Human-readable, unique tracking number
        current_level: Hierarchy level currently owning the ticket
        assigned_to_user_id: Concrete owner at that level (None if nobody eligible)
        sla_due_at: created_at + SLA hours of the priority
        version: Bumped on every routing write; used for compare-and-set
        summary, is_toxic, toxicity_*, ai_*_confidence: Latest AI enrichment
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    ticket_number: str
    title: str
    description: str
    created_by_user_id: str
    is_anonymous: bool = False
    anonymous_identifier: Optional[str] = None
    category: TicketCategory
    type: TicketType = TicketType.COMPLAINT
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    college_id: Optional[str] = None
    department_id: Optional[str] = None
    assigned_to_user_id: Optional[str] = None
    current_level: Optional[HierarchyLevel] = None
    sla_due_at: datetime
    tags: List[str] = Field(default_factory=list)

    summary: Optional[str] = None
    is_toxic: bool = False
    toxicity_severity: Optional[ToxicitySeverity] = None
    toxicity_action: Optional[ToxicityAction] = None
    ai_category_confidence: Optional[float] = None
    ai_priority_confidence: Optional[float] = None

    rating: Optional[int] = None
    rating_comment: Optional[str] = None
    rated_at: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Escalation(BaseModel):
    """Immutable record of one hierarchy transition"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=new_id)
    ticket_id: str
    from_level: HierarchyLevel
    to_level: HierarchyLevel
    from_user_id: Optional[str] = None
    to_user_id: Optional[str] = None
    reason: str
    auto_escalated: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class TicketMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    ticket_id: str
    sender_user_id: Optional[str] = None
    message: str
    is_internal: bool = False
    is_system: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class AIPrediction(BaseModel):
    """Append-only history of enrichment outputs"""
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: str = Field(default_factory=new_id)
    ticket_id: str
    type: PredictionType
    parsed_json: Dict[str, Any]
    confidence: Optional[float] = None
    model_name: str
    created_at: datetime = Field(default_factory=utcnow)


class Embedding(BaseModel):
    """One vector per ticket, latest wins"""
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: str = Field(default_factory=new_id)
    ticket_id: str
    vector_json: List[float]
    model_name: str
    updated_at: datetime = Field(default_factory=utcnow)


class Attachment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    ticket_id: Optional[str] = None
    message_id: Optional[str] = None
    file_name: str
    file_url: str
    storage_key: Optional[str] = None
    mime_type: str
    size_bytes: int = 0
    ocr_text: Optional[str] = None
    ocr_processed: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    """In-app notification row"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    message: str
    type: str = "general"
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Job(BaseModel):
    """
    Queued enrichment / notification work.

    Lifecycle: waiting -> active (claimed by one worker) -> completed or,
    after a handler error, back to waiting with a backoff delay until
    max_attempts is exhausted, then failed.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    queue: str
    job_type: JobType
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.WAITING
    attempts: int = 0
    max_attempts: int = 3
    available_at: datetime = Field(default_factory=utcnow)
    last_error: Optional[str] = None
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0


# ============================================================================
# Service Request Models
# ============================================================================

class TicketCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=10000)
    category: TicketCategory
    type: TicketType = TicketType.COMPLAINT
    priority: TicketPriority = TicketPriority.MEDIUM
    college_id: Optional[str] = None
    department_id: Optional[str] = None
    is_anonymous: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        """Validate tags is a list of non-empty strings"""
        if not all(isinstance(tag, str) and len(tag) > 0 for tag in v):
            raise ValueError("All tags must be non-empty strings")
        return v


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=10000)
    priority: Optional[TicketPriority] = None
    status: Optional[TicketStatus] = None
    assigned_to_user_id: Optional[str] = None
    tags: Optional[List[str]] = None


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


class EscalateRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReassignRequest(BaseModel):
    assignee_user_id: str
    reason: Optional[str] = None


class AttachmentCreate(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str
    mime_type: str
    storage_key: Optional[str] = None
    size_bytes: int = Field(0, ge=0)
    message_id: Optional[str] = None


# ============================================================================
# Results
# ============================================================================

class RoutingResult(BaseModel):
    assigned_user_id: Optional[str] = None
    level: HierarchyLevel


class EscalationResult(BaseModel):
    assigned_user_id: Optional[str] = None
    level: HierarchyLevel
    escalation_created: bool = True
    escalation_id: Optional[str] = None


class TimelineEvent(BaseModel):
    type: str
    timestamp: datetime
    data: Dict[str, Any] = Field(default_factory=dict)
