"""
AI Gateway Client

Thin client over the AI service's HTTP surface:
- classify-ticket, predict-priority, moderate, summarize-ticket
- embeddings, ocr
- generate-reply, similar-tickets

Every endpoint answers `{"success": bool, "data": ...}`. Timeouts, transport
failures, non-2xx responses and malformed envelopes are normalized to
AIGatewayError subclasses so callers can treat them as retryable.
"""
import asyncio
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from campusdesk.config import get_settings
from campusdesk.exceptions import (
    AIGatewayError,
    AIGatewayHTTPError,
    AIGatewayResponseError,
    AIGatewayTimeoutError,
)
from campusdesk.models.schemas import ToxicityAction, ToxicitySeverity
from campusdesk.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


# ============================================================================
# Response models
# ============================================================================

class _GatewayModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())


class ClassifyResponse(_GatewayModel):
    category: str
    confidence: float
    suggested_department: Optional[str] = Field(None, alias="suggestedDepartment")
    suggested_routing_level: Optional[str] = Field(None, alias="suggestedRoutingLevel")
    reasoning: Optional[str] = None


class PriorityResponse(_GatewayModel):
    priority: str
    confidence: float
    sla_hours: Optional[int] = Field(None, alias="slaHours")
    reasoning: Optional[str] = None


class ModerationResponse(_GatewayModel):
    is_toxic: bool = Field(..., alias="isToxic")
    severity: Optional[ToxicitySeverity] = None
    recommended_action: Optional[ToxicityAction] = Field(None, alias="recommendedAction")
    categories: Dict[str, bool] = Field(default_factory=dict)
    confidence: Optional[float] = None


class SummaryResponse(_GatewayModel):
    short_summary: str = Field(..., alias="shortSummary")
    detailed_summary: Optional[str] = Field(None, alias="detailedSummary")
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    sentiment: Optional[str] = None


class EmbeddingResponse(_GatewayModel):
    embedding: List[float]
    model: str
    dimensions: Optional[int] = None


class OCRResponse(_GatewayModel):
    text: str
    confidence: Optional[float] = None


class ReplyDraftResponse(_GatewayModel):
    subject: str
    body: str
    suggested_actions: List[str] = Field(default_factory=list, alias="suggestedActions")


class SimilarTicket(_GatewayModel):
    ticket_id: str = Field(..., alias="ticketId")
    ticket_number: Optional[str] = Field(None, alias="ticketNumber")
    title: Optional[str] = None
    similarity: float
    status: Optional[str] = None
    category: Optional[str] = None


# ============================================================================
# Client
# ============================================================================

class AIGatewayClient:
    """
    AI service integration with bounded timeouts and typed errors
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.ai_service_url).rstrip("/")
        api_key = settings.ai_service_api_key if api_key is None else api_key
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["X-API-Key"] = api_key
        self.timeout = timeout or settings.ai_service_timeout
        self.max_retries = max(1, max_retries or settings.ai_service_max_retries)
        self.transport = transport

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        """
        POST to an AI endpoint and unwrap the response envelope

        Args:
            endpoint: Endpoint name under /ai/
            body: JSON body

        Returns:
            The envelope's `data` member

        Raises:
            AIGatewayTimeoutError: The call exceeded the timeout
            AIGatewayHTTPError: Non-2xx response
            AIGatewayResponseError: Malformed JSON or success=false
            AIGatewayError: Transport failure
        """
        url = f"{self.base_url}/ai/{endpoint}"
        error: Optional[AIGatewayError] = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.post(url, json=body, headers=self.headers)
                    response.raise_for_status()
                    envelope = response.json()

            except httpx.TimeoutException as e:
                error = AIGatewayTimeoutError(f"AI {endpoint} timed out after {self.timeout}s", endpoint)
                logger.warning(f"AI {endpoint} timeout (attempt {attempt + 1}/{self.max_retries}): {e}")

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                error = AIGatewayHTTPError(f"AI {endpoint} returned HTTP {status}", endpoint, status)
                logger.warning(f"AI {endpoint} HTTP {status} (attempt {attempt + 1}/{self.max_retries})")
                if status not in RETRYABLE_STATUS_CODES:
                    raise error from e

            except httpx.HTTPError as e:
                error = AIGatewayError(f"AI {endpoint} unreachable: {e}", endpoint)
                logger.warning(f"AI {endpoint} transport error (attempt {attempt + 1}/{self.max_retries}): {e}")

            except ValueError as e:
                raise AIGatewayResponseError(f"AI {endpoint} returned malformed JSON", endpoint) from e

            else:
                return self._unwrap(endpoint, envelope)

            if attempt < self.max_retries - 1:
                wait_time = 2 ** attempt  # Exponential backoff
                await asyncio.sleep(wait_time)

        logger.error(f"AI {endpoint} failed after {self.max_retries} attempt(s): {error}")
        raise error

    @staticmethod
    def _unwrap(endpoint: str, envelope: Any) -> Any:
        if not isinstance(envelope, dict) or "data" not in envelope:
            raise AIGatewayResponseError(f"AI {endpoint} returned an unexpected envelope", endpoint)
        if not envelope.get("success", False):
            raise AIGatewayResponseError(f"AI {endpoint} reported failure", endpoint)
        return envelope["data"]

    @staticmethod
    def _parse(endpoint: str, model, data: Any):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise AIGatewayResponseError(f"AI {endpoint} returned an invalid payload: {e}", endpoint) from e

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    async def classify_ticket(
        self,
        text: str,
        title: Optional[str] = None,
        college: Optional[str] = None,
        department: Optional[str] = None
    ) -> ClassifyResponse:
        data = await self._post("classify-ticket", {
            "text": text,
            "title": title,
            "college": college,
            "department": department,
        })
        return self._parse("classify-ticket", ClassifyResponse, data)

    async def predict_priority(
        self,
        text: str,
        title: Optional[str] = None,
        category: Optional[str] = None
    ) -> PriorityResponse:
        data = await self._post("predict-priority", {"text": text, "title": title, "category": category})
        return self._parse("predict-priority", PriorityResponse, data)

    async def moderate(self, text: str) -> ModerationResponse:
        data = await self._post("moderate", {
            "text": text,
            "checkSpam": True,
            "checkProfanity": True,
            "checkHarassment": True,
        })
        return self._parse("moderate", ModerationResponse, data)

    async def summarize_ticket(
        self,
        title: Optional[str],
        description: str,
        messages: Optional[List[Dict[str, str]]] = None
    ) -> SummaryResponse:
        data = await self._post("summarize-ticket", {
            "ticketTitle": title,
            "ticketDescription": description,
            "messages": messages,
        })
        return self._parse("summarize-ticket", SummaryResponse, data)

    async def generate_embedding(self, text: str) -> EmbeddingResponse:
        data = await self._post("embeddings", {"text": text})
        return self._parse("embeddings", EmbeddingResponse, data)

    async def perform_ocr(self, file_url: str, mime_type: str) -> OCRResponse:
        data = await self._post("ocr", {"fileUrl": file_url, "mimeType": mime_type})
        return self._parse("ocr", OCRResponse, data)

    async def generate_reply(self, params: Dict[str, Any]) -> ReplyDraftResponse:
        data = await self._post("generate-reply", params)
        return self._parse("generate-reply", ReplyDraftResponse, data)

    async def find_similar_tickets(
        self,
        ticket_id: str,
        limit: int = 5,
        threshold: float = 0.7
    ) -> List[SimilarTicket]:
        data = await self._post("similar-tickets", {
            "ticketId": ticket_id,
            "limit": limit,
            "threshold": threshold,
        })
        tickets = data.get("tickets", []) if isinstance(data, dict) else data
        if not isinstance(tickets, list):
            raise AIGatewayResponseError("AI similar-tickets returned an invalid payload", "similar-tickets")
        return [self._parse("similar-tickets", SimilarTicket, item) for item in tickets]
