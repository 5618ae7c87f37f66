"""
AuditLog repository.

Data access layer for AuditLog model.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.audit_log import AuditLog
from payouts.models.enums import AuditAction
from payouts.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """AuditLog repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize audit log repository."""
        super().__init__(AuditLog, session)

    async def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: int,
        actor_id: int | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Add an audit entry to the current transaction.

        Args:
            action: What happened
            entity_type: Affected table
            entity_id: Affected row
            actor_id: Admin (None for system actions)
            old_value: State before the change
            new_value: State after the change

        Returns:
            Created entry
        """
        entry = AuditLog(
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            old_value=old_value,
            new_value=new_value,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def find_for_entity(
        self, entity_type: str, entity_id: int
    ) -> list[AuditLog]:
        """Get audit entries of an entity in chronological order."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
