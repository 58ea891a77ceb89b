"""
Unit tests for AIGatewayClient

Uses httpx.MockTransport so the real request/response path runs without a
network.
"""
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from campusdesk.exceptions import (
    AIGatewayError,
    AIGatewayHTTPError,
    AIGatewayResponseError,
    AIGatewayTimeoutError,
)
from campusdesk.services.ai_gateway import AIGatewayClient


def make_client(handler, max_retries=3):
    return AIGatewayClient(
        base_url="http://ai.test/",
        api_key="secret",
        timeout=1.0,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def envelope(data, success=True):
    return httpx.Response(200, json={"success": success, "data": data})


@pytest.fixture
def no_backoff():
    with patch("campusdesk.services.ai_gateway.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestSuccess:
    @pytest.mark.asyncio
    async def test_classify_unwraps_envelope(self):
        requests = []

        def handler(request):
            requests.append(request)
            return envelope({
                "category": "ACADEMIC",
                "confidence": 0.82,
                "suggestedDepartment": "Computer Science",
                "suggestedRoutingLevel": "HOD",
            })

        result = await make_client(handler).classify_ticket("Lab PCs are down", title="Lab issue")

        assert result.category == "ACADEMIC"
        assert result.confidence == 0.82
        assert result.suggested_department == "Computer Science"

        request = requests[0]
        assert request.url.path == "/ai/classify-ticket"
        assert request.headers["X-API-Key"] == "secret"
        assert json.loads(request.content)["title"] == "Lab issue"

    @pytest.mark.asyncio
    async def test_summary_request_uses_camel_case(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return envelope({"shortSummary": "Bus late", "keyPoints": ["route 7"]})

        result = await make_client(handler).summarize_ticket("Bus", "Bus 7 is late every day")

        assert result.short_summary == "Bus late"
        assert result.key_points == ["route 7"]
        assert bodies[0]["ticketTitle"] == "Bus"
        assert bodies[0]["ticketDescription"] == "Bus 7 is late every day"

    @pytest.mark.asyncio
    async def test_similar_tickets(self):
        def handler(request):
            return envelope({"tickets": [
                {"ticketId": "t-2", "ticketNumber": "BBD-20240101-22222", "similarity": 0.91},
            ]})

        result = await make_client(handler).find_similar_tickets("t-1", limit=3)

        assert [t.ticket_id for t in result] == ["t-2"]
        assert result[0].similarity == 0.91


class TestFailures:
    @pytest.mark.asyncio
    async def test_success_false_is_an_error(self):
        client = make_client(lambda request: envelope(None, success=False))

        with pytest.raises(AIGatewayResponseError):
            await client.moderate("text")

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(AIGatewayResponseError):
            await client.moderate("text")

    @pytest.mark.asyncio
    async def test_invalid_payload(self):
        client = make_client(lambda request: envelope({"confidence": 0.4}))

        with pytest.raises(AIGatewayResponseError):
            await client.classify_ticket("text")

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, no_backoff):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(422, json={"detail": "bad input"})

        with pytest.raises(AIGatewayHTTPError) as exc_info:
            await make_client(handler).moderate("text")

        assert exc_info.value.status == 422
        assert exc_info.value.endpoint == "moderate"
        assert len(calls) == 1
        no_backoff.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, no_backoff):
        responses = [httpx.Response(503), envelope({"text": "Receipt #42"})]

        result = await make_client(lambda request: responses.pop(0)).perform_ocr(
            "https://files.example.edu/r.png", "image/png"
        )

        assert result.text == "Receipt #42"
        assert no_backoff.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_after_all_attempts(self, no_backoff):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(AIGatewayTimeoutError):
            await make_client(handler).generate_embedding("text")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_connection_error(self, no_backoff):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AIGatewayError):
            await make_client(handler, max_retries=1).generate_embedding("text")

    @pytest.mark.asyncio
    async def test_unknown_moderation_severity(self):
        client = make_client(lambda request: envelope({
            "isToxic": True, "severity": "low", "recommendedAction": "FLAG"
        }))

        with pytest.raises(AIGatewayResponseError):
            await client.moderate("text")
