"""
AuditLog model.

Records every commission and withdrawal transition and manual bonus change.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payouts.models.base import Base
from payouts.utils.datetime_utils import utc_now


class AuditLog(Base):
    """
    AuditLog entity.

    Attributes:
        id: Primary key
        actor_id: Admin (or None for system actions)
        action: AuditAction value
        entity_type: Affected table
        entity_id: Affected row
        old_value: State before the change
        new_value: State after the change
        created_at: When the change happened
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_log_entity", "entity_type", "entity_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    actor_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    old_value: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"{self.entity_type}#{self.entity_id})>"
        )
