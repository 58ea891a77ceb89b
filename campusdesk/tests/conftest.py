"""
pytest configuration and shared fixtures

Provides an in-memory Store with the same filter, ordering and
compare-and-set semantics as the Supabase store, plus a fully wired set of
repositories and services on top of it.
"""
import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from campusdesk.exceptions import DuplicateKeyError
from campusdesk.jobs.job_queue import QUEUE_AI, QUEUE_NOTIFICATION, QUEUE_OCR, JobQueue, RetryPolicy
from campusdesk.models.schemas import Ticket, TicketCategory, UserStatus, new_id, utcnow
from campusdesk.repositories.base_repository import Store, Tables, split_filter_key
from campusdesk.repositories.directory_repository import DirectoryRepository
from campusdesk.repositories.enrichment_repository import EnrichmentRepository
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.services.audit import AuditLogger
from campusdesk.services.escalation import EscalationEngine
from campusdesk.services.notifications import NotificationService
from campusdesk.services.routing import RoutingResolver
from campusdesk.services.ticket_service import TicketService


UNIQUE_COLUMNS = {
    Tables.TICKETS: ("ticket_number",),
    Tables.EMBEDDINGS: ("ticket_id",),
}


def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (filters or {}).items():
        column, op = split_filter_key(key)
        value = row.get(column)

        if op == "eq":
            ok = value == expected
        elif op == "ne":
            ok = value is not None and value != expected
        elif op == "in":
            ok = value in list(expected)
        elif op == "contains":
            items = expected if isinstance(expected, list) else [expected]
            ok = value is not None and all(item in value for item in items)
        elif value is None:
            ok = False
        elif op == "lt":
            ok = value < expected
        elif op == "lte":
            ok = value <= expected
        elif op == "gt":
            ok = value > expected
        else:
            ok = value >= expected

        if not ok:
            return False
    return True


class InMemoryStore(Store):
    """
    Dict-backed Store.

    Every operation yields to the event loop once so concurrent callers
    interleave the way they would against a real database.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._failures: Dict[Tuple[str, str], List[Exception]] = {}

    def fail_next(self, operation: str, table: str, error: Exception) -> None:
        """Make the next `operation` on `table` raise `error`"""
        self._failures.setdefault((operation, table), []).append(error)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(row) for row in self.tables.get(table, {}).values()]

    async def _enter(self, operation: str, table: str) -> None:
        await asyncio.sleep(0)
        pending = self._failures.get((operation, table))
        if pending:
            raise pending.pop(0)

    async def find(self, table, record_id):
        await self._enter("find", table)
        row = self.tables.get(table, {}).get(record_id)
        return copy.deepcopy(row) if row else None

    async def create(self, table, data):
        await self._enter("create", table)
        rows = self.tables.setdefault(table, {})
        row = copy.deepcopy(data)
        row.setdefault("id", new_id())

        if row["id"] in rows:
            raise DuplicateKeyError(f"duplicate id on {table}")
        for column in UNIQUE_COLUMNS.get(table, ()):
            if any(existing.get(column) == row.get(column) for existing in rows.values()):
                raise DuplicateKeyError(f"duplicate {column} on {table}")

        rows[row["id"]] = row
        return copy.deepcopy(row)

    async def update(self, table, record_id, patch, expected=None):
        await self._enter("update", table)
        row = self.tables.get(table, {}).get(record_id)
        if row is None:
            return None
        if expected and not _matches(row, expected):
            return None
        row.update(copy.deepcopy(patch))
        return copy.deepcopy(row)

    async def find_many(self, table, filters=None, order_by=None, desc=False, limit=None, offset=0):
        await self._enter("find_many", table)
        rows = [row for row in self.tables.get(table, {}).values() if _matches(row, filters)]
        if order_by:
            # NULLs last, like Postgres ascending order
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or 0), reverse=desc)
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [copy.deepcopy(row) for row in rows]

    async def count(self, table, filters=None):
        await self._enter("count", table)
        return sum(1 for row in self.tables.get(table, {}).values() if _matches(row, filters))

    async def delete(self, table, record_id):
        await self._enter("delete", table)
        return self.tables.get(table, {}).pop(record_id, None) is not None


# ============================================================================
# Seed helpers
# ============================================================================

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def seed_user(
    store: InMemoryStore,
    user_id: str,
    roles: List[str],
    college_id: Optional[str] = None,
    department_id: Optional[str] = None,
    status: UserStatus = UserStatus.ACTIVE
) -> Dict[str, Any]:
    rows = store.tables.setdefault(Tables.USERS, {})
    row = {
        "id": user_id,
        "email": f"{user_id}@campus.edu",
        "first_name": user_id,
        "status": status,
        "roles": list(roles),
        "college_id": college_id,
        "department_id": department_id,
        "created_at": BASE_TIME + timedelta(seconds=len(rows)),
    }
    rows[user_id] = row
    return row


def seed_department(store, department_id, college_id=None, hod_user_id=None):
    store.tables.setdefault(Tables.DEPARTMENTS, {})[department_id] = {
        "id": department_id,
        "name": f"Department {department_id}",
        "college_id": college_id,
        "hod_user_id": hod_user_id,
    }


def seed_college(store, college_id, director_user_id=None):
    store.tables.setdefault(Tables.COLLEGES, {})[college_id] = {
        "id": college_id,
        "name": f"College {college_id}",
        "director_user_id": director_user_id,
    }


async def make_ticket(tickets, level, assignee=None, category=TicketCategory.ACADEMIC, **overrides) -> Ticket:
    """Persist a routed ticket directly, bypassing the service"""
    now = utcnow()
    data = dict(
        ticket_number=f"BBD-20240101-{uuid4().hex[:5]}",
        title="Projector broken",
        description="The projector in room 101 has been broken for a week",
        created_by_user_id="student-1",
        category=category,
        college_id="college-1",
        department_id="dept-1",
        current_level=level,
        assigned_to_user_id=assignee,
        sla_due_at=now + timedelta(hours=48),
        created_at=now,
    )
    data.update(overrides)
    return await tickets.create(Ticket(**data))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def campus(store):
    """
    A college with one department and a full chain of role holders:
    hod-1 (designated HOD), director-1 (designated director), admin-1,
    sysadmin-1, transport-1, warden-1.
    """
    seed_user(store, "student-1", ["STUDENT"], college_id="college-1", department_id="dept-1")
    seed_user(store, "hod-1", ["HOD"], college_id="college-1", department_id="dept-1")
    seed_user(store, "director-1", ["DIRECTOR"], college_id="college-1")
    seed_user(store, "admin-1", ["CAMPUS_ADMIN"])
    seed_user(store, "sysadmin-1", ["SYSTEM_ADMIN"])
    seed_user(store, "transport-1", ["TRANSPORT_INCHARGE"])
    seed_user(store, "warden-1", ["HOSTEL_WARDEN"])
    seed_college(store, "college-1", director_user_id="director-1")
    seed_department(store, "dept-1", college_id="college-1", hod_user_id="hod-1")
    return store


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, backoff_base_seconds=5.0, backoff_max_seconds=300.0)


@pytest.fixture
def queues(store, retry_policy):
    return {
        name: JobQueue(name, store, retry_policy=retry_policy, remove_on_complete=True)
        for name in (QUEUE_AI, QUEUE_OCR, QUEUE_NOTIFICATION)
    }


@pytest.fixture
def tickets(store):
    return TicketRepository(store)


@pytest.fixture
def directory(store):
    return DirectoryRepository(store)


@pytest.fixture
def enrichment(store):
    return EnrichmentRepository(store)


@pytest.fixture
def routing(directory):
    return RoutingResolver(directory)


@pytest.fixture
def notifications(queues, store):
    return NotificationService(queues[QUEUE_NOTIFICATION], store)


@pytest.fixture
def escalation_engine(tickets, routing, notifications):
    return EscalationEngine(tickets, routing, notifications)


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def ticket_service(tickets, directory, routing, escalation_engine, queues, notifications, audit):
    return TicketService(
        tickets=tickets,
        directory=directory,
        routing=routing,
        escalation=escalation_engine,
        ai_queue=queues[QUEUE_AI],
        ocr_queue=queues[QUEUE_OCR],
        notifications=notifications,
        audit=audit,
    )


@pytest.fixture
def mock_gateway():
    """AIGatewayClient stand-in with every endpoint as an AsyncMock"""
    gateway = AsyncMock()
    return gateway
