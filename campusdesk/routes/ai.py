"""
Live AI assist routes

Synchronous helpers used while a user fills in a form. They never fail on
AI service errors; the documented default is returned instead.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from campusdesk.container import Container, get_container
from campusdesk.services.ai_gateway import (
    ClassifyResponse,
    ModerationResponse,
    PriorityResponse,
    ReplyDraftResponse,
)

router = APIRouter(prefix="/api/v1/ai", tags=["ai"])


class ClassifyRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10000)
    title: Optional[str] = None
    college: Optional[str] = None
    department: Optional[str] = None


class PriorityRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10000)
    title: Optional[str] = None
    category: Optional[str] = None


class ModerateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10000)


class ReplyRequest(BaseModel):
    ticket_title: str
    ticket_description: str
    conversation_history: List[Dict[str, Any]] = Field(default_factory=list)
    ticket_category: Optional[str] = None
    responder_role: str = "staff"
    tone: str = "formal"


@router.post("/classify", response_model=ClassifyResponse)
async def classify(data: ClassifyRequest, container: Container = Depends(get_container)):
    return await container.ai_assist.classify(data.text, data.title, data.college, data.department)


@router.post("/priority", response_model=PriorityResponse)
async def predict_priority(data: PriorityRequest, container: Container = Depends(get_container)):
    return await container.ai_assist.predict_priority(data.text, data.title, data.category)


@router.post("/moderate", response_model=ModerationResponse)
async def moderate(data: ModerateRequest, container: Container = Depends(get_container)):
    return await container.ai_assist.moderate(data.text)


@router.post("/reply-draft", response_model=ReplyDraftResponse)
async def reply_draft(data: ReplyRequest, container: Container = Depends(get_container)):
    return await container.ai_assist.draft_reply(
        data.ticket_title,
        data.ticket_description,
        conversation_history=data.conversation_history,
        ticket_category=data.ticket_category,
        responder_role=data.responder_role,
        tone=data.tone,
    )
