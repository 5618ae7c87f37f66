"""
BonusTransaction repository.

Data access layer for the bonus ledger.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.bonus_transaction import BonusTransaction
from payouts.models.enums import BonusTransactionType
from payouts.repositories.base import BaseRepository


class BonusTransactionRepository(BaseRepository[BonusTransaction]):
    """BonusTransaction repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize bonus transaction repository."""
        super().__init__(BonusTransaction, session)

    def _overdue_filter(self, as_of: datetime) -> tuple:
        return (
            BonusTransaction.type == BonusTransactionType.EARNED.value,
            BonusTransaction.expires_at.is_not(None),
            BonusTransaction.expires_at <= as_of,
            BonusTransaction.expired_at.is_(None),
        )

    async def get_balance(self, user_id: int) -> int:
        """Sum of all ledger entries of a user."""
        stmt = select(func.coalesce(func.sum(BonusTransaction.amount), 0)).where(
            BonusTransaction.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def sum_overdue(self, user_id: int, as_of: datetime) -> int:
        """Sum EARNED amounts already past expiry but not yet swept."""
        stmt = select(func.coalesce(func.sum(BonusTransaction.amount), 0)).where(
            BonusTransaction.user_id == user_id,
            *self._overdue_filter(as_of),
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def sum_by_type(self, user_id: int) -> dict[str, int]:
        """
        Sum ledger entries of a user grouped by type.

        Returns:
            Mapping type -> signed total (missing types are 0)
        """
        stmt = (
            select(BonusTransaction.type, func.sum(BonusTransaction.amount))
            .where(BonusTransaction.user_id == user_id)
            .group_by(BonusTransaction.type)
        )
        result = await self.session.execute(stmt)
        totals = {tx_type.value: 0 for tx_type in BonusTransactionType}
        for tx_type, total in result.all():
            totals[tx_type] = int(total or 0)
        return totals

    async def find_users_with_overdue(self, as_of: datetime) -> list[int]:
        """Get ids of users that have EARNED rows due for expiry."""
        stmt = (
            select(BonusTransaction.user_id)
            .where(*self._overdue_filter(as_of))
            .distinct()
            .order_by(BonusTransaction.user_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_overdue(
        self, user_id: int, as_of: datetime
    ) -> list[BonusTransaction]:
        """Get EARNED rows of a user due for expiry, earliest expiry first."""
        stmt = (
            select(BonusTransaction)
            .where(BonusTransaction.user_id == user_id, *self._overdue_filter(as_of))
            .order_by(BonusTransaction.expires_at, BonusTransaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_expiring_between(
        self, user_id: int, start: datetime, end: datetime
    ) -> list[BonusTransaction]:
        """Get active EARNED rows with expires_at in [start, end]."""
        stmt = (
            select(BonusTransaction)
            .where(
                BonusTransaction.user_id == user_id,
                BonusTransaction.type == BonusTransactionType.EARNED.value,
                BonusTransaction.expired_at.is_(None),
                BonusTransaction.expires_at >= start,
                BonusTransaction.expires_at <= end,
            )
            .order_by(BonusTransaction.expires_at, BonusTransaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_history(
        self,
        user_id: int,
        type: str | None = None,
        source: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[BonusTransaction], int]:
        """
        Get ledger entries of a user, newest first.

        Args:
            user_id: Bonus holder
            type: Only entries of this type
            source: Only entries from this source
            from_date: Created at or after
            to_date: Created at or before
            page: Page number (1-indexed)
            per_page: Items per page

        Returns:
            Tuple of (items, total_count)
        """
        conditions = [BonusTransaction.user_id == user_id]
        if type is not None:
            conditions.append(BonusTransaction.type == type)
        if source is not None:
            conditions.append(BonusTransaction.source == source)
        if from_date is not None:
            conditions.append(BonusTransaction.created_at >= from_date)
        if to_date is not None:
            conditions.append(BonusTransaction.created_at <= to_date)

        count_stmt = select(func.count(BonusTransaction.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(BonusTransaction)
            .where(*conditions)
            .order_by(BonusTransaction.created_at.desc(), BonusTransaction.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
