"""
PartnerCommission repository.

Data access layer for PartnerCommission model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.enums import CommissionStatus
from payouts.models.partner_commission import PartnerCommission
from payouts.repositories.base import BaseRepository


class PartnerCommissionRepository(BaseRepository[PartnerCommission]):
    """PartnerCommission repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize partner commission repository."""
        super().__init__(PartnerCommission, session)

    async def sum_by_status(self, partner_id: int) -> dict[str, int]:
        """
        Sum commission amounts of a partner grouped by status.

        Args:
            partner_id: Partner ID

        Returns:
            Mapping status -> total amount in kopecks (missing statuses are 0)
        """
        stmt = (
            select(PartnerCommission.status, func.sum(PartnerCommission.amount))
            .where(PartnerCommission.partner_id == partner_id)
            .group_by(PartnerCommission.status)
        )
        result = await self.session.execute(stmt)
        totals = {status.value: 0 for status in CommissionStatus}
        for status, total in result.all():
            # PostgreSQL returns NUMERIC for SUM(BIGINT)
            totals[status] = int(total or 0)
        return totals

    async def exists_for_source(self, source_transaction_id: str) -> bool:
        """Check if commissions were already created for a purchase."""
        return await self.exists(source_transaction_id=source_transaction_id)

    async def find_by_source(
        self, source_transaction_id: str
    ) -> list[PartnerCommission]:
        """Get commissions of a purchase ordered by level."""
        stmt = (
            select(PartnerCommission)
            .where(PartnerCommission.source_transaction_id == source_transaction_id)
            .order_by(PartnerCommission.level)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_approved_oldest_first(
        self, partner_id: int
    ) -> list[PartnerCommission]:
        """Get APPROVED commissions of a partner, oldest first."""
        stmt = (
            select(PartnerCommission)
            .where(
                PartnerCommission.partner_id == partner_id,
                PartnerCommission.status == CommissionStatus.APPROVED.value,
            )
            .order_by(PartnerCommission.created_at, PartnerCommission.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sum_earned_since(self, partner_id: int, since: datetime) -> int:
        """Sum APPROVED and PAID commissions created since a moment."""
        stmt = select(func.coalesce(func.sum(PartnerCommission.amount), 0)).where(
            PartnerCommission.partner_id == partner_id,
            PartnerCommission.status.in_(
                [CommissionStatus.APPROVED.value, CommissionStatus.PAID.value]
            ),
            PartnerCommission.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def sum_earned_by_referral(self, partner_id: int) -> dict[int, int]:
        """Sum APPROVED and PAID commissions of a partner per referred user."""
        stmt = (
            select(PartnerCommission.referred_user_id, func.sum(PartnerCommission.amount))
            .where(
                PartnerCommission.partner_id == partner_id,
                PartnerCommission.status.in_(
                    [CommissionStatus.APPROVED.value, CommissionStatus.PAID.value]
                ),
            )
            .group_by(PartnerCommission.referred_user_id)
        )
        result = await self.session.execute(stmt)
        return {user_id: int(total or 0) for user_id, total in result.all()}

    async def stats_by_status(self) -> dict[str, tuple[int, int]]:
        """
        Count and sum commissions of all partners grouped by status.

        Returns:
            Mapping status -> (count, total amount)
        """
        stmt = select(
            PartnerCommission.status,
            func.count(PartnerCommission.id),
            func.sum(PartnerCommission.amount),
        ).group_by(PartnerCommission.status)
        result = await self.session.execute(stmt)
        stats = {status.value: (0, 0) for status in CommissionStatus}
        for status, count, total in result.all():
            stats[status] = (count, int(total or 0))
        return stats

    async def sum_all_earned_since(self, since: datetime) -> int:
        """Sum APPROVED and PAID commissions of all partners created since a moment."""
        stmt = select(func.coalesce(func.sum(PartnerCommission.amount), 0)).where(
            PartnerCommission.status.in_(
                [CommissionStatus.APPROVED.value, CommissionStatus.PAID.value]
            ),
            PartnerCommission.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def find_recent(
        self, partner_id: int, limit: int = 10
    ) -> list[PartnerCommission]:
        """Get latest commissions of a partner."""
        stmt = (
            select(PartnerCommission)
            .where(PartnerCommission.partner_id == partner_id)
            .order_by(PartnerCommission.created_at.desc(), PartnerCommission.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
