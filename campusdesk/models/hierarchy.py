"""
Organisational hierarchy and SLA tables

The routing chain is data: category -> entry level, level -> successor and
priority -> SLA hours are immutable mappings consumed by the routing
resolver, the escalation engine and the ticket service.
"""
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping, Optional

from campusdesk.exceptions import TerminalLevelError
from campusdesk.models.schemas import HierarchyLevel, TicketCategory, TicketPriority


# Transport and hostel complaints skip the department chain entirely
CATEGORY_ROUTING: Mapping[TicketCategory, HierarchyLevel] = MappingProxyType({
    TicketCategory.TRANSPORT: HierarchyLevel.TRANSPORT_INCHARGE,
    TicketCategory.HOSTEL: HierarchyLevel.HOSTEL_WARDEN,
    TicketCategory.ACADEMIC: HierarchyLevel.HOD,
    TicketCategory.ADMINISTRATIVE: HierarchyLevel.HOD,
    TicketCategory.OTHER: HierarchyLevel.HOD,
})

ROUTING_HIERARCHY: Mapping[HierarchyLevel, Optional[HierarchyLevel]] = MappingProxyType({
    HierarchyLevel.CLASS_COORDINATOR: HierarchyLevel.HOD,
    HierarchyLevel.HOD: HierarchyLevel.DIRECTOR,
    HierarchyLevel.DEAN: HierarchyLevel.CAMPUS_ADMIN,
    HierarchyLevel.DIRECTOR: HierarchyLevel.CAMPUS_ADMIN,
    HierarchyLevel.DIRECTOR_FINANCE: HierarchyLevel.SYSTEM_ADMIN,
    HierarchyLevel.TRANSPORT_INCHARGE: HierarchyLevel.SYSTEM_ADMIN,
    HierarchyLevel.HOSTEL_WARDEN: HierarchyLevel.SYSTEM_ADMIN,
    HierarchyLevel.CAMPUS_ADMIN: HierarchyLevel.SYSTEM_ADMIN,
    HierarchyLevel.SYSTEM_ADMIN: None,
})

SLA_HOURS: Mapping[TicketPriority, int] = MappingProxyType({
    TicketPriority.LOW: 72,
    TicketPriority.MEDIUM: 48,
    TicketPriority.HIGH: 24,
    TicketPriority.CRITICAL: 6,
})

# Levels the SLA sweeper never bumps automatically
SWEEP_EXCLUDED_LEVELS = frozenset({HierarchyLevel.CAMPUS_ADMIN})


def next_level(level: HierarchyLevel) -> HierarchyLevel:
    """
    Successor of a hierarchy level

    Raises:
        TerminalLevelError: If the level has no successor
    """
    successor = ROUTING_HIERARCHY.get(HierarchyLevel(level))
    if successor is None:
        raise TerminalLevelError(f"Ticket is already at the highest level ({HierarchyLevel(level).value})")
    return successor


def is_terminal_level(level: HierarchyLevel) -> bool:
    return ROUTING_HIERARCHY.get(HierarchyLevel(level)) is None


def compute_sla_due_at(created_at: datetime, priority: TicketPriority) -> datetime:
    """SLA deadlines are always anchored to the ticket's creation time"""
    return created_at + timedelta(hours=SLA_HOURS[TicketPriority(priority)])
