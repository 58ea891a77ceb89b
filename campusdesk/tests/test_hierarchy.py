"""Unit tests for the hierarchy and SLA tables"""
from datetime import datetime, timedelta, timezone

import pytest

from campusdesk.exceptions import TerminalLevelError, TerminalStateError
from campusdesk.models.hierarchy import (
    CATEGORY_ROUTING,
    ROUTING_HIERARCHY,
    SLA_HOURS,
    compute_sla_due_at,
    is_terminal_level,
    next_level,
)
from campusdesk.models.schemas import HierarchyLevel, TicketCategory, TicketPriority


class TestCategoryRouting:
    def test_transport_and_hostel_skip_hod(self):
        assert CATEGORY_ROUTING[TicketCategory.TRANSPORT] == HierarchyLevel.TRANSPORT_INCHARGE
        assert CATEGORY_ROUTING[TicketCategory.HOSTEL] == HierarchyLevel.HOSTEL_WARDEN

    @pytest.mark.parametrize("category", [
        TicketCategory.ACADEMIC, TicketCategory.ADMINISTRATIVE, TicketCategory.OTHER
    ])
    def test_other_categories_enter_at_hod(self, category):
        assert CATEGORY_ROUTING[category] == HierarchyLevel.HOD

    def test_every_category_is_routed(self):
        assert set(CATEGORY_ROUTING) == set(TicketCategory)

    def test_tables_are_immutable(self):
        with pytest.raises(TypeError):
            CATEGORY_ROUTING[TicketCategory.OTHER] = HierarchyLevel.DEAN


class TestNextLevel:
    @pytest.mark.parametrize("level,expected", [
        (HierarchyLevel.HOD, HierarchyLevel.DIRECTOR),
        (HierarchyLevel.DIRECTOR, HierarchyLevel.CAMPUS_ADMIN),
        (HierarchyLevel.CAMPUS_ADMIN, HierarchyLevel.SYSTEM_ADMIN),
        (HierarchyLevel.TRANSPORT_INCHARGE, HierarchyLevel.SYSTEM_ADMIN),
        (HierarchyLevel.HOSTEL_WARDEN, HierarchyLevel.SYSTEM_ADMIN),
        (HierarchyLevel.CLASS_COORDINATOR, HierarchyLevel.HOD),
        (HierarchyLevel.DEAN, HierarchyLevel.CAMPUS_ADMIN),
    ])
    def test_successor(self, level, expected):
        assert next_level(level) == expected

    def test_accepts_raw_value(self):
        assert next_level("HOD") == HierarchyLevel.DIRECTOR

    def test_system_admin_is_terminal(self):
        with pytest.raises(TerminalLevelError):
            next_level(HierarchyLevel.SYSTEM_ADMIN)
        assert is_terminal_level(HierarchyLevel.SYSTEM_ADMIN)

    def test_terminal_level_error_is_a_terminal_state_error(self):
        assert issubclass(TerminalLevelError, TerminalStateError)

    def test_every_level_has_an_entry(self):
        assert set(ROUTING_HIERARCHY) == set(HierarchyLevel)

    def test_chain_always_reaches_system_admin(self):
        for level in HierarchyLevel:
            seen = set()
            while not is_terminal_level(level):
                assert level not in seen
                seen.add(level)
                level = next_level(level)
            assert level == HierarchyLevel.SYSTEM_ADMIN


class TestSla:
    def test_hours(self):
        assert SLA_HOURS[TicketPriority.LOW] == 72
        assert SLA_HOURS[TicketPriority.MEDIUM] == 48
        assert SLA_HOURS[TicketPriority.HIGH] == 24
        assert SLA_HOURS[TicketPriority.CRITICAL] == 6

    def test_due_at_is_anchored_to_creation(self):
        created = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert compute_sla_due_at(created, TicketPriority.CRITICAL) == created + timedelta(hours=6)
        assert compute_sla_due_at(created, "LOW") == created + timedelta(hours=72)
