"""
PartnerRelationship repository.

Data access layer for the materialised referral chain.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.partner_relationship import PartnerRelationship
from payouts.repositories.base import BaseRepository


class PartnerRelationshipRepository(BaseRepository[PartnerRelationship]):
    """PartnerRelationship repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize partner relationship repository."""
        super().__init__(PartnerRelationship, session)

    async def get_upline(
        self, referral_id: int, max_level: int = 5
    ) -> list[PartnerRelationship]:
        """
        Get up-line relationships of a user ordered by level.

        Args:
            referral_id: User whose up-line is requested
            max_level: Deepest level to include

        Returns:
            Relationships, level 1 first
        """
        stmt = (
            select(PartnerRelationship)
            .where(
                PartnerRelationship.referral_id == referral_id,
                PartnerRelationship.level <= max_level,
            )
            .order_by(PartnerRelationship.level)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_level(self, partner_id: int) -> dict[int, int]:
        """Count referrals of a partner grouped by level."""
        stmt = (
            select(PartnerRelationship.level, func.count(PartnerRelationship.id))
            .where(PartnerRelationship.partner_id == partner_id)
            .group_by(PartnerRelationship.level)
        )
        result = await self.session.execute(stmt)
        return {level: count for level, count in result.all()}

    async def get_referrer_id(self, referral_id: int) -> int | None:
        """Get direct (level 1) referrer of a user."""
        stmt = select(PartnerRelationship.partner_id).where(
            PartnerRelationship.referral_id == referral_id,
            PartnerRelationship.level == 1,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_direct_referrals(
        self, partner_id: int, limit: int | None = None
    ) -> list[PartnerRelationship]:
        """Get level 1 relationships of a partner, newest first."""
        stmt = (
            select(PartnerRelationship)
            .where(
                PartnerRelationship.partner_id == partner_id,
                PartnerRelationship.level == 1,
            )
            .order_by(PartnerRelationship.created_at.desc(), PartnerRelationship.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
