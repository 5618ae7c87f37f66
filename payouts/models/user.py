"""
User model.

Represents a platform user. Every user can act as a partner.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payouts.models.base import Base
from payouts.utils.datetime_utils import utc_now


class User(Base):
    """
    User entity.

    The row doubles as the per-user lock for balance-changing operations:
    it is selected FOR UPDATE NOWAIT and balance_changed_at is bumped,
    which increments the optimistic version.

    Attributes:
        id: Primary key
        email: Login email
        display_name: Name shown in the UI
        referral_code: Code other users register with
        created_at: Registration timestamp
        balance_changed_at: Last balance-changing operation
        version: Optimistic lock version
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    display_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(32), unique=True, index=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    balance_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email!r})>"
