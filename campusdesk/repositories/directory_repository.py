"""
Directory Repository

Read-only lookups over users, departments and colleges used to resolve a
concrete assignee for a hierarchy level.
"""
from typing import Optional

from campusdesk.models.schemas import College, Department, User, UserStatus
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryRepository:
    """Lookups over the organisational directory."""

    def __init__(self, store: Store):
        self.store = store

    async def find_active_user_with_role(
        self,
        role: str,
        college_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> Optional[User]:
        """
        First active user holding `role`, optionally scoped.

        Args:
            role: Role name (e.g. "HOD", "CAMPUS_ADMIN")
            college_id: Restrict to users of this college
            department_id: Restrict to users of this department
        """
        filters = {
            "roles__contains": [role],
            "status": UserStatus.ACTIVE,
        }
        if college_id:
            filters["college_id"] = college_id
        if department_id:
            filters["department_id"] = department_id

        row = await self.store.find_one(Tables.USERS, filters, order_by="created_at")
        if row is None:
            logger.debug(f"No active {role} found (college={college_id}, department={department_id})")
            return None
        return User.model_validate(row)

    async def get_user(self, user_id: str) -> Optional[User]:
        row = await self.store.find(Tables.USERS, user_id)
        return User.model_validate(row) if row else None

    async def get_department(self, department_id: str) -> Optional[Department]:
        row = await self.store.find(Tables.DEPARTMENTS, department_id)
        return Department.model_validate(row) if row else None

    async def get_college(self, college_id: str) -> Optional[College]:
        row = await self.store.find(Tables.COLLEGES, college_id)
        return College.model_validate(row) if row else None
