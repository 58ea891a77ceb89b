"""
Base Repository - generic storage collaborator

Every service talks to persistence through this interface. Filters are
dicts keyed by column name; a `__<op>` suffix selects the comparison:

    {"status__in": [...], "sla_due_at__lt": now, "current_level__ne": "HOD"}

Supported operators: eq (default), ne, in, lt, lte, gt, gte, contains.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

FILTER_OPERATORS = frozenset({"eq", "ne", "in", "lt", "lte", "gt", "gte", "contains"})


class Tables:
    """Table names"""
    TICKETS = "tickets"
    ESCALATIONS = "escalations"
    MESSAGES = "ticket_messages"
    AI_PREDICTIONS = "ai_predictions"
    EMBEDDINGS = "embeddings"
    ATTACHMENTS = "attachments"
    NOTIFICATIONS = "notifications"
    AUDIT_LOGS = "audit_logs"
    JOBS = "jobs"
    USERS = "users"
    DEPARTMENTS = "departments"
    COLLEGES = "colleges"


def split_filter_key(key: str) -> Tuple[str, str]:
    """Split "column__op" into (column, op)"""
    column, sep, op = key.rpartition("__")
    if sep and op in FILTER_OPERATORS:
        return column, op
    return key, "eq"


class Store(ABC):
    """
    Async storage interface.

    Implementations must enforce uniqueness of `tickets.ticket_number`
    (raising DuplicateKeyError) and make `update(..., expected=...)` a
    single compare-and-set: the patch applies only if every column in
    `expected` still holds the given value.
    """

    @abstractmethod
    async def find(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update(
        self,
        table: str,
        record_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Update a row and return it.

        Returns:
            The updated row, or None if the row is missing or `expected`
            no longer matches.
        """

    @abstractmethod
    async def find_many(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        ...

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> bool:
        ...

    async def find_one(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str] = None,
        desc: bool = False
    ) -> Optional[Dict[str, Any]]:
        rows = await self.find_many(table, filters, order_by=order_by, desc=desc, limit=1)
        return rows[0] if rows else None
