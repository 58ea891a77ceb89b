"""
Supabase Store

Store implementation over the Supabase (PostgREST) client. The client is
synchronous, so every call runs in a worker thread via asyncio.to_thread.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from campusdesk.config import get_settings
from campusdesk.exceptions import DuplicateKeyError, StorageError
from campusdesk.repositories.base_repository import Store, split_filter_key
from campusdesk.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

UNIQUE_VIOLATION = "23505"


class SupabaseStore(Store):
    """Store backed by Supabase tables."""

    def __init__(self, supabase_client=None) -> None:
        if supabase_client is None:
            from supabase import create_client  # Lazy import for tests

            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key or settings.supabase_key
            )
        else:
            self.client = supabase_client

        logger.info("SupabaseStore initialized")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @classmethod
    def _serialize_value(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, (list, tuple, set, frozenset)):
            return [cls._serialize_value(v) for v in value]
        if isinstance(value, dict):
            return {k: cls._serialize_value(v) for k, v in value.items()}
        return value

    @classmethod
    def _serialize_payload(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Prepare payload for Supabase (convert enums and datetimes)."""
        return {key: cls._serialize_value(value) for key, value in data.items()}

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        for key, value in (filters or {}).items():
            column, op = split_filter_key(key)
            value = self._serialize_value(value)

            if op == "eq":
                query = query.is_(column, "null") if value is None else query.eq(column, value)
            elif op == "ne":
                query = query.neq(column, value)
            elif op == "in":
                query = query.in_(column, list(value))
            elif op == "lt":
                query = query.lt(column, value)
            elif op == "lte":
                query = query.lte(column, value)
            elif op == "gt":
                query = query.gt(column, value)
            elif op == "gte":
                query = query.gte(column, value)
            elif op == "contains":
                query = query.contains(column, value if isinstance(value, list) else [value])
        return query

    @staticmethod
    def _raise_storage_error(operation: str, table: str, exc: Exception):
        if getattr(exc, "code", None) == UNIQUE_VIOLATION:
            raise DuplicateKeyError(f"Unique constraint violated on {table}: {exc}") from exc
        logger.error("Storage error during %s on %s: %s", operation, table, exc)
        raise StorageError(f"{operation} on {table} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Synchronous primitives
    # ------------------------------------------------------------------
    def _find(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.table(table) \
                .select("*") \
                .eq("id", record_id) \
                .execute()
        except Exception as exc:
            self._raise_storage_error("find", table, exc)
        return response.data[0] if response.data else None

    def _create(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.client.table(table) \
                .insert(self._serialize_payload(data)) \
                .execute()
        except Exception as exc:
            self._raise_storage_error("create", table, exc)

        if not response.data:
            raise StorageError(f"Supabase insert into {table} returned no data")
        return response.data[0]

    def _update(
        self,
        table: str,
        record_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        try:
            query = self.client.table(table) \
                .update(self._serialize_payload(patch)) \
                .eq("id", record_id)
            query = self._apply_filters(query, expected)
            response = query.execute()
        except Exception as exc:
            self._raise_storage_error("update", table, exc)
        return response.data[0] if response.data else None

    def _find_many(
        self,
        table: str,
        filters: Optional[Dict[str, Any]],
        order_by: Optional[str],
        desc: bool,
        limit: Optional[int],
        offset: int
    ) -> List[Dict[str, Any]]:
        try:
            query = self._apply_filters(self.client.table(table).select("*"), filters)
            if order_by:
                query = query.order(order_by, desc=desc)
            if limit is not None:
                query = query.range(offset, offset + limit - 1)
            response = query.execute()
        except Exception as exc:
            self._raise_storage_error("find_many", table, exc)
        return response.data or []

    def _count(self, table: str, filters: Optional[Dict[str, Any]]) -> int:
        try:
            query = self._apply_filters(
                self.client.table(table).select("id", count="exact"),
                filters
            )
            response = query.execute()
        except Exception as exc:
            self._raise_storage_error("count", table, exc)
        return response.count or 0

    def _delete(self, table: str, record_id: str) -> bool:
        try:
            response = self.client.table(table) \
                .delete() \
                .eq("id", record_id) \
                .execute()
        except Exception as exc:
            self._raise_storage_error("delete", table, exc)
        return bool(response.data)

    # ------------------------------------------------------------------
    # Async interface
    # ------------------------------------------------------------------
    async def find(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._find, table, record_id)

    async def create(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._create, table, data)

    async def update(
        self,
        table: str,
        record_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._update, table, record_id, patch, expected)

    async def find_many(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._find_many, table, filters, order_by, desc, limit, offset)

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return await asyncio.to_thread(self._count, table, filters)

    async def delete(self, table: str, record_id: str) -> bool:
        return await asyncio.to_thread(self._delete, table, record_id)
