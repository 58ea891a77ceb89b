"""Unit tests for SupabaseStore"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from campusdesk.exceptions import DuplicateKeyError, StorageError
from campusdesk.models.schemas import TicketStatus
from campusdesk.repositories.supabase_store import SupabaseStore


class PostgrestError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


@pytest.fixture
def mock_supabase():
    """Mocked Supabase client"""
    client = MagicMock()

    # Table chainable methods
    client.table.return_value = client
    for method in ("insert", "update", "delete", "select", "eq", "neq", "in_", "is_",
                   "lt", "lte", "gt", "gte", "contains", "order", "range"):
        getattr(client, method).return_value = client

    # Default execute response
    client.execute.return_value = MagicMock(data=[], count=0)

    return client


@pytest.fixture
def supabase_store(mock_supabase):
    return SupabaseStore(supabase_client=mock_supabase)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_serializes_enums_and_datetimes(self, supabase_store, mock_supabase):
        due = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        mock_supabase.execute.return_value = MagicMock(data=[{"id": "t-1", "status": "OPEN"}], count=None)

        row = await supabase_store.create("tickets", {"id": "t-1", "status": TicketStatus.OPEN, "sla_due_at": due})

        assert row == {"id": "t-1", "status": "OPEN"}
        mock_supabase.table.assert_called_with("tickets")
        args, _ = mock_supabase.insert.call_args
        assert args[0]["status"] == "OPEN"
        assert args[0]["sla_due_at"] == "2024-03-01T09:00:00+00:00"

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_duplicate_key(self, supabase_store, mock_supabase):
        mock_supabase.execute.side_effect = PostgrestError("duplicate key value", "23505")

        with pytest.raises(DuplicateKeyError):
            await supabase_store.create("tickets", {"ticket_number": "BBD-20240101-11111"})

    @pytest.mark.asyncio
    async def test_other_errors_map_to_storage_error(self, supabase_store, mock_supabase):
        mock_supabase.execute.side_effect = PostgrestError("connection reset", "08006")

        with pytest.raises(StorageError) as exc_info:
            await supabase_store.create("tickets", {"id": "t-1"})
        assert not isinstance(exc_info.value, DuplicateKeyError)

    @pytest.mark.asyncio
    async def test_empty_insert_response(self, supabase_store):
        with pytest.raises(StorageError):
            await supabase_store.create("tickets", {"id": "t-1"})


class TestUpdate:
    @pytest.mark.asyncio
    async def test_expected_columns_become_filters(self, supabase_store, mock_supabase):
        mock_supabase.execute.return_value = MagicMock(data=[{"id": "t-1", "version": 4}], count=None)

        row = await supabase_store.update(
            "tickets", "t-1", {"version": 4}, expected={"version": 3, "current_level": "HOD"}
        )

        assert row["version"] == 4
        eq_calls = [call.args for call in mock_supabase.eq.call_args_list]
        assert ("id", "t-1") in eq_calls
        assert ("version", 3) in eq_calls
        assert ("current_level", "HOD") in eq_calls

    @pytest.mark.asyncio
    async def test_lost_compare_and_set_returns_none(self, supabase_store):
        assert await supabase_store.update("tickets", "t-1", {"version": 4}, expected={"version": 3}) is None

    @pytest.mark.asyncio
    async def test_null_expectation_uses_is_null(self, supabase_store, mock_supabase):
        await supabase_store.update("tickets", "t-1", {"rating": 5}, expected={"rating": None})

        mock_supabase.is_.assert_called_once_with("rating", "null")


class TestQueries:
    @pytest.mark.asyncio
    async def test_find_many_translates_operators(self, supabase_store, mock_supabase):
        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        mock_supabase.execute.return_value = MagicMock(data=[{"id": "t-1"}], count=None)

        rows = await supabase_store.find_many(
            "tickets",
            {"status__in": [TicketStatus.OPEN], "sla_due_at__lt": now, "assigned_to_user_id__ne": "u-1"},
            order_by="sla_due_at",
            limit=10,
            offset=20
        )

        assert rows == [{"id": "t-1"}]
        mock_supabase.in_.assert_called_once_with("status", ["OPEN"])
        mock_supabase.lt.assert_called_once_with("sla_due_at", now.isoformat())
        mock_supabase.neq.assert_called_once_with("assigned_to_user_id", "u-1")
        mock_supabase.order.assert_called_once_with("sla_due_at", desc=False)
        mock_supabase.range.assert_called_once_with(20, 29)

    @pytest.mark.asyncio
    async def test_find_returns_none_when_missing(self, supabase_store):
        assert await supabase_store.find("tickets", "missing") is None

    @pytest.mark.asyncio
    async def test_count(self, supabase_store, mock_supabase):
        mock_supabase.execute.return_value = MagicMock(data=[], count=7)

        assert await supabase_store.count("jobs", {"queue": "ai", "status": "failed"}) == 7
        mock_supabase.select.assert_called_with("id", count="exact")

    @pytest.mark.asyncio
    async def test_delete(self, supabase_store, mock_supabase):
        mock_supabase.execute.return_value = MagicMock(data=[{"id": "j-1"}], count=None)

        assert await supabase_store.delete("jobs", "j-1") is True
