"""
PartnerRelationship model.

Materialised referral chain: one row per (up-line partner, referral) pair.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payouts.models.base import Base
from payouts.utils.datetime_utils import utc_now


class PartnerRelationship(Base):
    """
    PartnerRelationship entity.

    Level 1 is the direct referrer, level 5 the most distant partner
    that still earns commission.

    Attributes:
        id: Primary key
        partner_id: Up-line partner
        referral_id: Referred user
        level: Distance between them (1-5)
        created_at: When the relationship was created
    """

    __tablename__ = "partner_relationships"
    __table_args__ = (
        UniqueConstraint(
            "partner_id", "referral_id", name="uq_partner_relationship_pair"
        ),
        CheckConstraint(
            "level >= 1 AND level <= 5",
            name="check_partner_relationship_level_range",
        ),
        CheckConstraint(
            "partner_id <> referral_id",
            name="check_partner_relationship_not_self",
        ),
        Index("idx_partner_relationship_referral_level", "referral_id", "level"),
        Index("idx_partner_relationship_partner_level", "partner_id", "level"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    referral_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PartnerRelationship(partner_id={self.partner_id}, "
            f"referral_id={self.referral_id}, level={self.level})>"
        )
