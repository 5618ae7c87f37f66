"""
BonusTransaction model.

Append-only ledger of the platform bonus currency.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payouts.models.base import Base
from payouts.models.types import MoneyType
from payouts.utils.datetime_utils import utc_now


class BonusTransaction(Base):
    """
    BonusTransaction entity.

    Amount is signed: positive for EARNED and credit ADJUSTMENT, negative
    for SPENT, WITHDRAWN, EXPIRED and debit ADJUSTMENT. An EARNED row is
    expired at most once: expired_at and expired_by_id point at the
    EXPIRED row that debited it.

    Attributes:
        id: Primary key
        user_id: Bonus holder
        type: Entry type
        source: Origin of the bonus
        amount: Signed amount in kopecks
        expires_at: Expiry time (EARNED only)
        expired_at: When the sweep expired this row
        expired_by_id: EXPIRED row created for this row
        description: Human-readable description
        reference_id: External reference (order id, etc.)
        reference_type: Kind of reference
        created_by: Admin for manual adjustments
        details: Conversion figures and requisites (WITHDRAWN only)
    """

    __tablename__ = "bonus_transactions"
    __table_args__ = (
        CheckConstraint(
            "amount <> 0", name="check_bonus_transaction_amount_non_zero"
        ),
        Index("idx_bonus_transaction_user_type", "user_id", "type"),
        Index("idx_bonus_transaction_expiry", "type", "expires_at", "expired_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amount: Mapped[int] = mapped_column(MoneyType, nullable=False)

    # Expiry (EARNED only)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expired_by_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("bonus_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BonusTransaction(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, amount={self.amount})>"
        )
