"""
Enrichment job handlers

One coroutine per job type on the `ai` and `ocr` queues. Handlers call the
AI gateway and persist the result; gateway errors propagate so the queue's
retry policy applies. Every write tolerates redelivery: predictions are
history, embeddings are upserted per ticket and ticket columns are plain
overwrites.
"""
from typing import Mapping, Optional

from campusdesk.config import get_settings
from campusdesk.jobs.worker_pool import JobHandler
from campusdesk.models.schemas import Job, JobType, PredictionType
from campusdesk.repositories.enrichment_repository import EnrichmentRepository
from campusdesk.services.ai_gateway import AIGatewayClient
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class EnrichmentHandlers:
    """
    Job payloads:
        classify / priority / summarize: ticket_id, text, title
        moderate / embed: ticket_id, text
        ocr: attachment_id, storage_key, file_url, mime_type
    """

    def __init__(
        self,
        enrichment: EnrichmentRepository,
        gateway: AIGatewayClient,
        model_name: Optional[str] = None
    ):
        self.enrichment = enrichment
        self.gateway = gateway
        self.model_name = model_name or get_settings().ai_model_name

    def ai_handlers(self) -> Mapping[JobType, JobHandler]:
        return {
            JobType.CLASSIFY: self.classify,
            JobType.PRIORITY: self.predict_priority,
            JobType.MODERATE: self.moderate,
            JobType.SUMMARIZE: self.summarize,
            JobType.EMBED: self.embed,
        }

    def ocr_handlers(self) -> Mapping[JobType, JobHandler]:
        return {JobType.OCR: self.ocr}

    async def classify(self, job: Job) -> None:
        payload = job.payload
        result = await self.gateway.classify_ticket(payload["text"], payload.get("title"))

        await self.enrichment.record_prediction(
            payload["ticket_id"], PredictionType.CATEGORIZATION,
            result.model_dump(by_alias=True), self.model_name, result.confidence
        )
        await self.enrichment.update_ticket_enrichment(
            payload["ticket_id"], {"ai_category_confidence": result.confidence}
        )

    async def predict_priority(self, job: Job) -> None:
        """Advisory: the ticket's own priority is left untouched"""
        payload = job.payload
        result = await self.gateway.predict_priority(payload["text"], payload.get("title"))

        await self.enrichment.record_prediction(
            payload["ticket_id"], PredictionType.PRIORITY,
            result.model_dump(by_alias=True), self.model_name, result.confidence
        )
        await self.enrichment.update_ticket_enrichment(
            payload["ticket_id"], {"ai_priority_confidence": result.confidence}
        )

    async def moderate(self, job: Job) -> None:
        payload = job.payload
        result = await self.gateway.moderate(payload["text"])

        await self.enrichment.record_prediction(
            payload["ticket_id"], PredictionType.TOXICITY,
            result.model_dump(by_alias=True), self.model_name, result.confidence
        )
        if result.is_toxic:
            logger.info(
                f"Ticket {payload['ticket_id']} flagged toxic "
                f"(severity={result.severity}, action={result.recommended_action})"
            )
            await self.enrichment.update_ticket_enrichment(payload["ticket_id"], {
                "is_toxic": True,
                "toxicity_severity": result.severity,
                "toxicity_action": result.recommended_action,
            })

    async def summarize(self, job: Job) -> None:
        payload = job.payload
        result = await self.gateway.summarize_ticket(payload.get("title"), payload["text"])

        await self.enrichment.record_prediction(
            payload["ticket_id"], PredictionType.SUMMARY,
            result.model_dump(by_alias=True), self.model_name
        )
        await self.enrichment.update_ticket_enrichment(payload["ticket_id"], {"summary": result.short_summary})

    async def embed(self, job: Job) -> None:
        payload = job.payload
        result = await self.gateway.generate_embedding(payload["text"])
        await self.enrichment.upsert_embedding(payload["ticket_id"], result.embedding, result.model)

    async def ocr(self, job: Job) -> None:
        payload = job.payload
        result = await self.gateway.perform_ocr(payload["file_url"], payload["mime_type"])

        attachment = await self.enrichment.record_ocr_text(payload["attachment_id"], result.text)
        if attachment:
            logger.info(f"OCR completed for attachment {attachment.id} ({len(result.text)} chars)")
