"""
WithdrawalRequest model.

Partner request to pay accumulated commission out as real money.
"""

from datetime import datetime
from decimal import Decimal
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
from payouts.models.enums import WithdrawalStatus
from payouts.models.types import MoneyType, RateType
from payouts.utils.datetime_utils import utc_now


class WithdrawalRequest(Base):
    """
    WithdrawalRequest entity.

    amount is the gross amount reserved against the partner balance.
    tax_amount and net_amount are fixed at creation.

    Attributes:
        id: Primary key
        partner_id: Requesting partner
        amount: Gross amount in kopecks
        tax_status: Recipient tax classification
        tax_rate: Withholding rate applied
        tax_amount: Withheld tax in kopecks
        net_amount: Amount actually paid out in kopecks
        payment_method: CARD or BANK_ACCOUNT
        payment_details: Payout requisites (JSON)
        status: Workflow status
        rejection_reason: Admin's reason when REJECTED
        processed_by: Admin who completed or rejected the request
        version: Optimistic lock version
    """

    __tablename__ = "withdrawal_requests"
    __table_args__ = (
        CheckConstraint(
            "amount > 0", name="check_withdrawal_amount_positive"
        ),
        CheckConstraint(
            "tax_amount >= 0", name="check_withdrawal_tax_non_negative"
        ),
        CheckConstraint(
            "net_amount = amount - tax_amount",
            name="check_withdrawal_net_amount",
        ),
        Index("idx_withdrawal_partner_status", "partner_id", "status"),
        Index("idx_withdrawal_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Amounts
    amount: Mapped[int] = mapped_column(MoneyType, nullable=False)
    tax_status: Mapped[str] = mapped_column(String(20), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    tax_amount: Mapped[int] = mapped_column(MoneyType, nullable=False)
    net_amount: Mapped[int] = mapped_column(MoneyType, nullable=False)

    # Payout requisites
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_details: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False
    )

    # Workflow
    status: Mapped[str] = mapped_column(
        String(20),
        default=WithdrawalStatus.PENDING.value,
        nullable=False,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    processed_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WithdrawalRequest(id={self.id}, partner_id={self.partner_id}, "
            f"amount={self.amount}, status={self.status})>"
        )

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self.status in (
            WithdrawalStatus.COMPLETED.value,
            WithdrawalStatus.REJECTED.value,
        )
