"""
AI Assist - synchronous AI calls made on behalf of a user request

Unlike queued enrichment, these answer within the request. When the AI
service fails the caller gets a documented default instead of an error so
forms stay usable.
"""
from typing import Any, Dict, List, Optional

from campusdesk.exceptions import AIGatewayError
from campusdesk.models.schemas import HierarchyLevel, TicketCategory, TicketPriority
from campusdesk.models.hierarchy import SLA_HOURS
from campusdesk.repositories.enrichment_repository import EnrichmentRepository
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.ai_gateway import (
    AIGatewayClient,
    ClassifyResponse,
    ModerationResponse,
    PriorityResponse,
    ReplyDraftResponse,
    SimilarTicket,
)
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_REPLY_BODY = (
    "Thank you for bringing this to our attention. "
    "We are looking into this matter and will get back to you shortly."
)


def default_classification() -> ClassifyResponse:
    return ClassifyResponse(
        category=TicketCategory.OTHER.value,
        confidence=0.5,
        suggested_department=None,
        suggested_routing_level=HierarchyLevel.HOD.value,
        reasoning="Default classification due to processing error",
    )


def default_priority() -> PriorityResponse:
    return PriorityResponse(
        priority=TicketPriority.MEDIUM.value,
        confidence=0.5,
        sla_hours=SLA_HOURS[TicketPriority.MEDIUM],
        reasoning="Default priority due to processing error",
    )


def default_moderation() -> ModerationResponse:
    return ModerationResponse(
        is_toxic=False,
        severity="LOW",
        recommended_action="ALLOW",
        categories={
            "harassment": False,
            "hate": False,
            "spam": False,
            "profanity": False,
            "threat": False,
        },
        confidence=0.5,
    )


def default_reply(title: str) -> ReplyDraftResponse:
    return ReplyDraftResponse(
        subject=f"Re: {title}",
        body=DEFAULT_REPLY_BODY,
        suggested_actions=["Review the issue", "Respond with resolution"],
    )


class AIAssistService:
    """Degrade-to-default wrappers over the AI gateway."""

    def __init__(
        self,
        gateway: AIGatewayClient,
        tickets: Optional[TicketRepository] = None,
        enrichment: Optional[EnrichmentRepository] = None
    ):
        self.gateway = gateway
        self.tickets = tickets
        self.enrichment = enrichment

    async def classify(
        self,
        text: str,
        title: Optional[str] = None,
        college: Optional[str] = None,
        department: Optional[str] = None
    ) -> ClassifyResponse:
        try:
            return await self.gateway.classify_ticket(text, title, college, department)
        except AIGatewayError as e:
            logger.warning(f"Live classification unavailable, using default: {e}")
            return default_classification()

    async def predict_priority(
        self,
        text: str,
        title: Optional[str] = None,
        category: Optional[str] = None
    ) -> PriorityResponse:
        try:
            return await self.gateway.predict_priority(text, title, category)
        except AIGatewayError as e:
            logger.warning(f"Live priority prediction unavailable, using default: {e}")
            return default_priority()

    async def moderate(self, text: str) -> ModerationResponse:
        try:
            return await self.gateway.moderate(text)
        except AIGatewayError as e:
            logger.warning(f"Live moderation unavailable, allowing: {e}")
            return default_moderation()

    async def draft_reply(
        self,
        ticket_title: str,
        ticket_description: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        ticket_category: Optional[str] = None,
        responder_role: str = "staff",
        tone: str = "formal"
    ) -> ReplyDraftResponse:
        params: Dict[str, Any] = {
            "ticketTitle": ticket_title,
            "ticketDescription": ticket_description,
            "conversationHistory": conversation_history or [],
            "ticketCategory": ticket_category,
            "responderRole": responder_role,
            "tone": tone,
        }
        try:
            return await self.gateway.generate_reply(params)
        except AIGatewayError as e:
            logger.warning(f"Reply draft unavailable, using default: {e}")
            return default_reply(ticket_title)

    async def find_similar_tickets(
        self,
        ticket_id: str,
        limit: int = 5,
        threshold: float = 0.7
    ) -> List[SimilarTicket]:
        """
        Tickets semantically close to `ticket_id`.

        Makes sure the ticket has an embedding first, generating and storing
        one if the embed job has not run yet. Any AI failure yields [].
        """
        ticket = await self.tickets.get_or_raise(ticket_id)

        try:
            if await self.enrichment.get_embedding(ticket_id) is None:
                result = await self.gateway.generate_embedding(f"{ticket.title}\n\n{ticket.description}")
                await self.enrichment.upsert_embedding(ticket_id, result.embedding, result.model)

            return await self.gateway.find_similar_tickets(ticket_id, limit=limit, threshold=threshold)
        except AIGatewayError as e:
            logger.warning(f"Similar tickets unavailable for {ticket_id}: {e}")
            return []
