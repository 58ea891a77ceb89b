"""
Routing Resolver

Maps a ticket's category / college / department to an initial owner and
hierarchy level, and resolves a concrete assignee for any level. Issues
read-only lookups only. A level with no eligible user yields
assigned_user_id=None rather than an error.
"""
from typing import Optional

from campusdesk.models.hierarchy import CATEGORY_ROUTING
from campusdesk.models.schemas import HierarchyLevel, RoutingResult, TicketCategory
from campusdesk.repositories.directory_repository import DirectoryRepository
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

# Entry levels filled by any active holder of the role of the same name
CAMPUS_WIDE_LEVELS = frozenset({
    HierarchyLevel.TRANSPORT_INCHARGE,
    HierarchyLevel.HOSTEL_WARDEN,
    HierarchyLevel.CAMPUS_ADMIN,
    HierarchyLevel.SYSTEM_ADMIN,
})


class RoutingResolver:
    """Decides who owns a ticket at a given hierarchy level."""

    def __init__(self, directory: DirectoryRepository):
        self.directory = directory

    async def resolve_initial_routing(
        self,
        category: TicketCategory,
        college_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> RoutingResult:
        """
        Initial owner and level for a new ticket.

        Transport and hostel tickets go straight to their incharge; every
        other category enters at the department HOD, falling back to the
        college director and then the campus admin when the ticket carries
        no department / college.
        """
        entry_level = CATEGORY_ROUTING[TicketCategory(category)]

        if entry_level in CAMPUS_WIDE_LEVELS:
            result = await self._find_role_holder(entry_level)
        elif department_id:
            result = await self.find_department_hod(department_id)
        elif college_id:
            result = await self.find_college_director(college_id)
        else:
            result = await self._find_role_holder(HierarchyLevel.CAMPUS_ADMIN)

        if result.assigned_user_id is None:
            logger.warning(f"No eligible {result.level.value} for {TicketCategory(category).value} ticket, leaving unassigned")
        else:
            logger.info(f"Routed {TicketCategory(category).value} ticket to {result.level.value} {result.assigned_user_id}")
        return result

    async def resolve_assignee(
        self,
        level: HierarchyLevel,
        college_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Concrete assignee for `level` given the ticket's organisational context.

        HOD falls back to the college director when the ticket has no
        department; DIRECTOR falls back to the campus admin when it has no
        college.
        """
        level = HierarchyLevel(level)

        if level == HierarchyLevel.HOD:
            if department_id:
                result = await self.find_department_hod(department_id)
            elif college_id:
                result = await self.find_college_director(college_id)
            else:
                result = await self._find_role_holder(HierarchyLevel.CAMPUS_ADMIN)
        elif level == HierarchyLevel.DIRECTOR:
            if college_id:
                result = await self.find_college_director(college_id)
            else:
                result = await self._find_role_holder(HierarchyLevel.CAMPUS_ADMIN)
        elif level in CAMPUS_WIDE_LEVELS:
            result = await self._find_role_holder(level)
        else:
            result = await self._find_role_holder(level, college_id=college_id)

        return result.assigned_user_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def find_department_hod(self, department_id: str) -> RoutingResult:
        department = await self.directory.get_department(department_id)
        if department and department.hod_user_id:
            return RoutingResult(assigned_user_id=department.hod_user_id, level=HierarchyLevel.HOD)

        # Fallback: any active HOD in the department
        user = await self.directory.find_active_user_with_role(
            HierarchyLevel.HOD.value, department_id=department_id
        )
        return RoutingResult(assigned_user_id=user.id if user else None, level=HierarchyLevel.HOD)

    async def find_college_director(self, college_id: str) -> RoutingResult:
        college = await self.directory.get_college(college_id)
        if college and college.director_user_id:
            return RoutingResult(assigned_user_id=college.director_user_id, level=HierarchyLevel.DIRECTOR)

        # Fallback: any active director of the college
        user = await self.directory.find_active_user_with_role(
            HierarchyLevel.DIRECTOR.value, college_id=college_id
        )
        return RoutingResult(assigned_user_id=user.id if user else None, level=HierarchyLevel.DIRECTOR)

    async def _find_role_holder(
        self,
        level: HierarchyLevel,
        college_id: Optional[str] = None
    ) -> RoutingResult:
        user = await self.directory.find_active_user_with_role(level.value, college_id=college_id)
        return RoutingResult(assigned_user_id=user.id if user else None, level=level)
