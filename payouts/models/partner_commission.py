"""
PartnerCommission model.

Commission earned by an up-line partner on a purchase.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payouts.models.base import Base
from payouts.models.enums import CommissionStatus
from payouts.models.types import MoneyType, RateType
from payouts.utils.datetime_utils import utc_now


class PartnerCommission(Base):
    """
    PartnerCommission entity.

    Lifecycle: PENDING at purchase -> APPROVED -> PAID once covered by a
    completed withdrawal. PENDING or APPROVED may be CANCELLED.

    Attributes:
        id: Primary key
        partner_id: Beneficiary partner
        referred_user_id: Purchaser
        source_transaction_id: Purchase that produced the commission
        level: Referral depth (1-5)
        base_amount: Purchase amount in kopecks
        rate: Commission rate for the level
        amount: round_half_up(base_amount * rate) in kopecks
        status: Commission status
        withdrawal_id: Completed withdrawal that marked it PAID
    """

    __tablename__ = "partner_commissions"
    __table_args__ = (
        UniqueConstraint(
            "source_transaction_id",
            "partner_id",
            "level",
            name="uq_partner_commission_source_partner_level",
        ),
        CheckConstraint(
            "level >= 1 AND level <= 5",
            name="check_partner_commission_level_range",
        ),
        CheckConstraint(
            "base_amount >= 0", name="check_partner_commission_base_non_negative"
        ),
        CheckConstraint(
            "amount >= 0", name="check_partner_commission_amount_non_negative"
        ),
        Index("idx_partner_commission_partner_status", "partner_id", "status"),
        Index("idx_partner_commission_source", "source_transaction_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    referred_user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_transaction_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    base_amount: Mapped[int] = mapped_column(MoneyType, nullable=False)
    rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    amount: Mapped[int] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=CommissionStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    withdrawal_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("withdrawal_requests.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PartnerCommission(id={self.id}, partner_id={self.partner_id}, "
            f"level={self.level}, amount={self.amount}, status={self.status})>"
        )
