"""
WithdrawalRequest repository.

Data access layer for WithdrawalRequest model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.enums import WithdrawalStatus
from payouts.models.withdrawal_request import WithdrawalRequest
from payouts.repositories.base import BaseRepository


class WithdrawalRequestRepository(BaseRepository[WithdrawalRequest]):
    """WithdrawalRequest repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal request repository."""
        super().__init__(WithdrawalRequest, session)

    async def sum_by_status(self, partner_id: int) -> dict[str, int]:
        """
        Sum gross withdrawal amounts of a partner grouped by status.

        Args:
            partner_id: Partner ID

        Returns:
            Mapping status -> total gross amount in kopecks
        """
        stmt = (
            select(WithdrawalRequest.status, func.sum(WithdrawalRequest.amount))
            .where(WithdrawalRequest.partner_id == partner_id)
            .group_by(WithdrawalRequest.status)
        )
        result = await self.session.execute(stmt)
        totals = {status.value: 0 for status in WithdrawalStatus}
        for status, total in result.all():
            totals[status] = int(total or 0)
        return totals

    async def stats_by_status(self) -> dict[str, tuple[int, int]]:
        """
        Count and sum withdrawals of all partners grouped by status.

        Returns:
            Mapping status -> (count, total gross amount)
        """
        stmt = select(
            WithdrawalRequest.status,
            func.count(WithdrawalRequest.id),
            func.sum(WithdrawalRequest.amount),
        ).group_by(WithdrawalRequest.status)
        result = await self.session.execute(stmt)
        stats = {status.value: (0, 0) for status in WithdrawalStatus}
        for status, count, total in result.all():
            stats[status] = (count, int(total or 0))
        return stats

    async def completed_since(self, since: datetime) -> tuple[int, int, int]:
        """
        Count and sum withdrawals completed since a moment.

        Returns:
            Tuple of (count, gross total, net total)
        """
        stmt = select(
            func.count(WithdrawalRequest.id),
            func.coalesce(func.sum(WithdrawalRequest.amount), 0),
            func.coalesce(func.sum(WithdrawalRequest.net_amount), 0),
        ).where(
            WithdrawalRequest.status == WithdrawalStatus.COMPLETED.value,
            WithdrawalRequest.processed_at >= since,
        )
        result = await self.session.execute(stmt)
        count, gross, net = result.one()
        return count, int(gross), int(net)

    async def find_recent(
        self, partner_id: int, limit: int = 5
    ) -> list[WithdrawalRequest]:
        """Get latest withdrawals of a partner."""
        stmt = (
            select(WithdrawalRequest)
            .where(WithdrawalRequest.partner_id == partner_id)
            .order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
