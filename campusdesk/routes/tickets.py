"""
Ticket API routes

Caller identity comes from the X-User-Id header; authentication happens
upstream.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, status
from pydantic import BaseModel

from campusdesk.container import Container, get_container
from campusdesk.models.schemas import (
    Attachment,
    AttachmentCreate,
    EscalateRequest,
    EscalationResult,
    Job,
    MessageCreate,
    RateRequest,
    Ticket,
    TicketCreate,
    TicketMessage,
    TicketUpdate,
    TimelineEvent,
)
from campusdesk.services.ai_gateway import ReplyDraftResponse, SimilarTicket

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


class TicketDetail(BaseModel):
    ticket: Dict[str, Any]
    messages: List[TicketMessage]


class ReplyDraftRequest(BaseModel):
    tone: str = "formal"
    responder_role: str = "staff"


def present_ticket(ticket: Ticket, viewer_id: str) -> Dict[str, Any]:
    """Hide the creator of an anonymous ticket from everyone but themselves"""
    data = ticket.model_dump(mode="json")
    if ticket.is_anonymous and ticket.created_by_user_id != viewer_id:
        data["created_by_user_id"] = ticket.anonymous_identifier or "Anonymous"
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    data: TicketCreate,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    ticket = await container.ticket_service.create(data, user_id)
    return present_ticket(ticket, user_id)


@router.get("/track/{ticket_number}")
async def track_ticket(
    ticket_number: str,
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Public tracking view; no identity required"""
    return await container.ticket_service.track_by_number(ticket_number)


@router.get("/{ticket_id}", response_model=TicketDetail)
async def get_ticket(
    ticket_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> TicketDetail:
    ticket = await container.ticket_service.get(ticket_id)
    include_internal = user_id != ticket.created_by_user_id
    messages = await container.ticket_service.get_messages(ticket_id, include_internal=include_internal)
    return TicketDetail(ticket=present_ticket(ticket, user_id), messages=messages)


@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    data: TicketUpdate,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    ticket = await container.ticket_service.update(ticket_id, data, user_id)
    return present_ticket(ticket, user_id)


@router.post("/{ticket_id}/messages", response_model=TicketMessage, status_code=status.HTTP_201_CREATED)
async def add_message(
    ticket_id: str,
    data: MessageCreate,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> TicketMessage:
    return await container.ticket_service.add_message(ticket_id, data, user_id)


@router.post("/{ticket_id}/escalate", response_model=EscalationResult)
async def escalate_ticket(
    ticket_id: str,
    data: EscalateRequest,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> EscalationResult:
    return await container.ticket_service.escalate(ticket_id, data.reason, user_id)


@router.post("/{ticket_id}/rate")
async def rate_ticket(
    ticket_id: str,
    data: RateRequest,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    ticket = await container.ticket_service.rate(ticket_id, data, user_id)
    return present_ticket(ticket, user_id)


@router.get("/{ticket_id}/timeline", response_model=List[TimelineEvent])
async def get_timeline(
    ticket_id: str,
    container: Container = Depends(get_container)
) -> List[TimelineEvent]:
    return await container.ticket_service.get_timeline(ticket_id)


@router.post("/{ticket_id}/attachments", response_model=Attachment, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    ticket_id: str,
    data: AttachmentCreate,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> Attachment:
    return await container.ticket_service.add_attachment(ticket_id, data, user_id)


@router.post("/{ticket_id}/reanalyze", response_model=List[Job], status_code=status.HTTP_202_ACCEPTED)
async def reanalyze_ticket(
    ticket_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
    container: Container = Depends(get_container)
) -> List[Job]:
    return await container.ticket_service.reanalyze(ticket_id, user_id)


@router.get("/{ticket_id}/similar", response_model=List[SimilarTicket])
async def similar_tickets(
    ticket_id: str,
    limit: int = 5,
    threshold: float = 0.7,
    container: Container = Depends(get_container)
) -> List[SimilarTicket]:
    return await container.ai_assist.find_similar_tickets(ticket_id, limit=limit, threshold=threshold)


@router.post("/{ticket_id}/reply-draft", response_model=ReplyDraftResponse)
async def reply_draft(
    ticket_id: str,
    data: Optional[ReplyDraftRequest] = None,
    container: Container = Depends(get_container)
) -> ReplyDraftResponse:
    """Draft a staff reply from the ticket and its last ten public messages"""
    data = data or ReplyDraftRequest()
    ticket = await container.ticket_service.get(ticket_id)
    messages = await container.ticket_service.get_messages(ticket_id, include_internal=False)

    history = [
        {
            "role": "user" if m.sender_user_id == ticket.created_by_user_id else "staff",
            "message": m.message,
            "timestamp": m.created_at.isoformat(),
        }
        for m in messages[-10:]
    ]
    return await container.ai_assist.draft_reply(
        ticket.title,
        ticket.description,
        conversation_history=history,
        ticket_category=ticket.category.value,
        responder_role=data.responder_role,
        tone=data.tone,
    )
