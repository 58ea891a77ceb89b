"""
Audit Logger - best-effort trail of ticket actions
"""
from typing import Any, Dict, Optional

from campusdesk.models.schemas import new_id, utcnow
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


class AuditLogger:
    """
    Writes `audit_logs` rows.

    A failed audit write is logged and otherwise ignored; it never fails the
    operation being audited.
    """

    def __init__(self, store: Store):
        self.store = store

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        record = {
            "id": new_id(),
            "user_id": user_id,
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "metadata": metadata or {},
            "created_at": utcnow(),
        }
        try:
            await self.store.create(Tables.AUDIT_LOGS, record)
            return True
        except Exception as e:
            logger.error(f"Audit write failed for {action} {entity_type} {entity_id}: {e}")
            return False
