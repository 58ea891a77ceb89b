"""
Tests for the HTTP API

The container is swapped for one built on the in-memory store; lifespan
is not run, so no workers or sweeper are started.
"""
import hmac
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from campusdesk.config import Settings
from campusdesk.container import Container, get_container
from campusdesk.exceptions import AIGatewayTimeoutError
from campusdesk.main import app
from campusdesk.models.schemas import HierarchyLevel, JobType
from campusdesk.repositories.base_repository import Tables
from campusdesk.services.ai_gateway import ReplyDraftResponse

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def container(campus, mock_gateway):
    return Container(store=campus, gateway=mock_gateway, settings=Settings(admin_api_key=ADMIN_KEY))


@pytest.fixture
def client(container, monkeypatch):
    monkeypatch.setattr(
        "campusdesk.middleware.admin_auth.get_settings", lambda: Settings(admin_api_key=ADMIN_KEY)
    )
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_user(user_id):
    return {"X-User-Id": user_id}


NEW_TICKET = {
    "title": "Projector broken",
    "description": "The projector in room 101 has been broken for a week",
    "category": "ACADEMIC",
    "college_id": "college-1",
    "department_id": "dept-1",
}


class TestHealth:
    def test_basic_health(self, client):
        response = client.get("/api/v1/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["uptime_seconds"] >= 0

    def test_queue_health_without_workers_is_degraded(self, client):
        response = client.get("/api/v1/health/queues")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert set(data["queues"]) == {"ai", "ocr", "notification"}
        assert data["workers_running"] == {"ai": False, "ocr": False, "notification": False}

    def test_root(self, client):
        assert client.get("/").json()["message"] == "CampusDesk API"


class TestTickets:
    def test_create_routes_ticket(self, client, campus):
        response = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1"))

        assert response.status_code == 201
        data = response.json()
        assert data["current_level"] == "HOD"
        assert data["assigned_to_user_id"] == "hod-1"
        assert data["status"] == "OPEN"
        assert data["ticket_number"].startswith("BBD-")

        job_types = {row["job_type"] for row in campus.rows(Tables.JOBS)}
        assert {JobType.SUMMARIZE, JobType.MODERATE, JobType.EMBED, JobType.NOTIFY} <= job_types

    def test_create_requires_identity(self, client):
        response = client.post("/api/v1/tickets", json=NEW_TICKET)

        assert response.status_code == 422

    def test_create_validates_body(self, client):
        response = client.post(
            "/api/v1/tickets", json={**NEW_TICKET, "title": "x"}, headers=as_user("student-1")
        )

        assert response.status_code == 422

    def test_anonymous_creator_is_hidden_from_staff(self, client):
        created = client.post(
            "/api/v1/tickets", json={**NEW_TICKET, "is_anonymous": True}, headers=as_user("student-1")
        ).json()

        as_staff = client.get(f"/api/v1/tickets/{created['id']}", headers=as_user("hod-1")).json()
        as_creator = client.get(f"/api/v1/tickets/{created['id']}", headers=as_user("student-1")).json()

        assert as_staff["ticket"]["created_by_user_id"].startswith("Anonymous-")
        assert as_creator["ticket"]["created_by_user_id"] == "student-1"

    def test_internal_messages_hidden_from_creator(self, client):
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()
        client.post(
            f"/api/v1/tickets/{created['id']}/messages",
            json={"message": "Check with facilities", "is_internal": True},
            headers=as_user("hod-1"),
        )

        as_creator = client.get(f"/api/v1/tickets/{created['id']}", headers=as_user("student-1")).json()
        as_staff = client.get(f"/api/v1/tickets/{created['id']}", headers=as_user("hod-1")).json()

        assert as_creator["messages"] == []
        assert len(as_staff["messages"]) == 1

    def test_missing_ticket_maps_to_404(self, client):
        response = client.get("/api/v1/tickets/missing", headers=as_user("student-1"))

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "detail": "Ticket not found"}

    def test_escalate(self, client):
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()

        response = client.post(
            f"/api/v1/tickets/{created['id']}/escalate",
            json={"reason": "No response for a week"},
            headers=as_user("student-1"),
        )

        assert response.status_code == 200
        assert response.json()["level"] == "DIRECTOR"
        assert response.json()["escalation_created"] is True

        tracked = client.get(f"/api/v1/tickets/track/{created['ticket_number']}").json()
        assert tracked["escalation_count"] == 1
        assert tracked["status"] == "ESCALATED"

    def test_escalate_past_top_is_a_conflict(self, client, campus):
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()
        campus.tables[Tables.TICKETS][created["id"]]["current_level"] = HierarchyLevel.SYSTEM_ADMIN

        response = client.post(
            f"/api/v1/tickets/{created['id']}/escalate", json={"reason": "Higher please"}, headers=as_user("student-1")
        )

        assert response.status_code == 409
        assert response.json()["error"] == "terminal_level"

    def test_rating_open_ticket_is_rejected(self, client):
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()

        response = client.post(
            f"/api/v1/tickets/{created['id']}/rate", json={"rating": 5}, headers=as_user("student-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_reply_draft(self, client, mock_gateway):
        mock_gateway.generate_reply.return_value = ReplyDraftResponse(
            subject="Re: Projector broken", body="We have logged a repair.", suggested_actions=["Call AV team"]
        )
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()

        response = client.post(f"/api/v1/tickets/{created['id']}/reply-draft", json={"tone": "friendly"})

        assert response.status_code == 200
        assert response.json()["body"] == "We have logged a repair."
        params = mock_gateway.generate_reply.await_args.args[0]
        assert params["tone"] == "friendly"
        assert params["ticketCategory"] == "ACADEMIC"


class TestAdmin:
    def test_missing_key(self, client):
        assert client.post("/api/v1/admin/sla/sweep").status_code == 401

    def test_wrong_key(self, client):
        response = client.post("/api/v1/admin/sla/sweep", headers={"X-Admin-API-Key": "nope"})

        assert response.status_code == 401

    def test_key_is_compared_in_constant_time(self, client):
        near_miss = ADMIN_KEY[:-1] + "x"

        with patch(
            "campusdesk.middleware.admin_auth.hmac.compare_digest", wraps=hmac.compare_digest
        ) as compare:
            response = client.post("/api/v1/admin/sla/sweep", headers={"X-Admin-API-Key": near_miss})

        assert response.status_code == 401
        compare.assert_called_once_with(near_miss, ADMIN_KEY)

    def test_manual_sweep(self, client):
        response = client.post("/api/v1/admin/sla/sweep", headers={"X-Admin-API-Key": ADMIN_KEY})

        assert response.status_code == 200
        assert response.json() == {"escalated": 0}

    def test_reassign(self, client):
        created = client.post("/api/v1/tickets", json=NEW_TICKET, headers=as_user("student-1")).json()

        response = client.post(
            f"/api/v1/admin/tickets/{created['id']}/reassign",
            json={"assignee_user_id": "director-1", "reason": "HOD on leave"},
            headers={"X-Admin-API-Key": ADMIN_KEY, **as_user("admin-1")},
        )

        assert response.status_code == 200
        assert response.json()["assigned_to_user_id"] == "director-1"

    def test_requeue_unknown_queue(self, client):
        response = client.post(
            "/api/v1/admin/queues/video/jobs/j-1/requeue", headers={"X-Admin-API-Key": ADMIN_KEY}
        )

        assert response.status_code == 404

    def test_requeue_job_that_is_not_failed(self, client):
        response = client.post(
            "/api/v1/admin/queues/ai/jobs/missing/requeue", headers={"X-Admin-API-Key": ADMIN_KEY}
        )

        assert response.status_code == 404


class TestLiveAssist:
    def test_classify_falls_back_to_default(self, client, mock_gateway):
        mock_gateway.classify_ticket.side_effect = AIGatewayTimeoutError("timed out", "classify-ticket")

        response = client.post("/api/v1/ai/classify", json={"text": "Wifi is down in block C"})

        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "OTHER"
        assert data["confidence"] == 0.5
        assert data["suggestedRoutingLevel"] == "HOD"

    def test_moderate_falls_back_to_allow(self, client, mock_gateway):
        mock_gateway.moderate.side_effect = AIGatewayTimeoutError("timed out", "moderate")

        response = client.post("/api/v1/ai/moderate", json={"text": "some text"})

        assert response.status_code == 200
        assert response.json()["isToxic"] is False
        assert response.json()["recommendedAction"] == "ALLOW"
