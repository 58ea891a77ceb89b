"""
Enrichment Repository

Writes produced by the AI pipeline:
- ai_predictions (append-only history)
- embeddings (one row per ticket, latest wins)
- enrichment columns on tickets and attachments

None of these writes touch a ticket's routing fields, so they do not bump
the ticket version and never conflict with an escalation.
"""
from typing import Any, Dict, List, Optional

from campusdesk.exceptions import DuplicateKeyError
from campusdesk.models.schemas import (
    AIPrediction,
    Attachment,
    Embedding,
    PredictionType,
    utcnow,
)
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class EnrichmentRepository:
    """Repository for AI enrichment results."""

    def __init__(self, store: Store):
        self.store = store

    async def record_prediction(
        self,
        ticket_id: str,
        prediction_type: PredictionType,
        parsed: Dict[str, Any],
        model_name: str,
        confidence: Optional[float] = None
    ) -> AIPrediction:
        prediction = AIPrediction(
            ticket_id=ticket_id,
            type=prediction_type,
            parsed_json=parsed,
            confidence=confidence,
            model_name=model_name,
        )
        row = await self.store.create(Tables.AI_PREDICTIONS, prediction.model_dump())
        return AIPrediction.model_validate(row)

    async def list_predictions(
        self,
        ticket_id: str,
        prediction_type: Optional[PredictionType] = None
    ) -> List[AIPrediction]:
        filters: Dict[str, Any] = {"ticket_id": ticket_id}
        if prediction_type:
            filters["type"] = prediction_type
        rows = await self.store.find_many(Tables.AI_PREDICTIONS, filters, order_by="created_at")
        return [AIPrediction.model_validate(row) for row in rows]

    async def update_ticket_enrichment(self, ticket_id: str, patch: Dict[str, Any]) -> bool:
        """
        Overwrite enrichment columns of a ticket

        Returns:
            False if the ticket no longer exists
        """
        row = await self.store.update(Tables.TICKETS, ticket_id, {**patch, "updated_at": utcnow()})
        if row is None:
            logger.warning(f"Ticket {ticket_id} not found, enrichment {sorted(patch)} discarded")
            return False
        return True

    async def get_embedding(self, ticket_id: str) -> Optional[Embedding]:
        row = await self.store.find_one(Tables.EMBEDDINGS, {"ticket_id": ticket_id})
        return Embedding.model_validate(row) if row else None

    async def upsert_embedding(self, ticket_id: str, vector: List[float], model_name: str) -> Embedding:
        """Keep exactly one embedding per ticket, overwriting any previous vector"""
        patch = {"vector_json": list(vector), "model_name": model_name, "updated_at": utcnow()}

        existing = await self.store.find_one(Tables.EMBEDDINGS, {"ticket_id": ticket_id})
        if existing is None:
            try:
                row = await self.store.create(
                    Tables.EMBEDDINGS,
                    Embedding(ticket_id=ticket_id, vector_json=list(vector), model_name=model_name).model_dump()
                )
                return Embedding.model_validate(row)
            except DuplicateKeyError:
                # Another delivery of the same job won the insert
                existing = await self.store.find_one(Tables.EMBEDDINGS, {"ticket_id": ticket_id})

        row = await self.store.update(Tables.EMBEDDINGS, existing["id"], patch)
        return Embedding.model_validate(row or {**existing, **patch})

    async def record_ocr_text(self, attachment_id: str, text: str) -> Optional[Attachment]:
        row = await self.store.update(
            Tables.ATTACHMENTS,
            attachment_id,
            {"ocr_text": text, "ocr_processed": True}
        )
        if row is None:
            logger.warning(f"Attachment {attachment_id} not found, OCR text discarded")
            return None
        return Attachment.model_validate(row)
