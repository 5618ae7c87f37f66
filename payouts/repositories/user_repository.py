"""
User repository.

Data access layer for User model.
"""

from datetime import datetime

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.models.partner_commission import PartnerCommission
from payouts.models.partner_relationship import PartnerRelationship
from payouts.models.user import User
from payouts.repositories.base import BaseRepository
from payouts.utils.datetime_utils import utc_now


def _has_direct_referrals():
    return exists().where(
        PartnerRelationship.partner_id == User.id,
        PartnerRelationship.level == 1,
    )


def _is_partner():
    # Anyone who invited a user or earned a commission
    return or_(
        _has_direct_referrals(),
        exists().where(PartnerCommission.partner_id == User.id),
    )


class UserRepository(BaseRepository[User]):
    """User repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def lock_balance(self, user_id: int) -> User | None:
        """
        Acquire the per-user balance lock.

        Locks the user row (FOR UPDATE NOWAIT) and bumps
        balance_changed_at, which increments the row version on flush.
        A concurrent writer either fails to get the lock or hits a stale
        version; both surface as retryable errors.

        Args:
            user_id: User ID

        Returns:
            Locked user or None if not found
        """
        user = await self.get_for_update(user_id)
        if user is None:
            return None

        user.balance_changed_at = utc_now()
        await self.session.flush()
        return user

    async def get_many(self, ids: list[int]) -> dict[int, User]:
        """Get users by ids as a mapping id -> user."""
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    def _partners_stmt(self, search: str | None):
        stmt = select(User).where(_is_partner())
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.display_name).like(pattern),
                    func.lower(User.referral_code).like(pattern),
                )
            )
        return stmt

    async def find_partners(
        self,
        search: str | None = None,
        page: int | None = None,
        per_page: int = 20,
    ) -> tuple[list[User], int]:
        """
        Find partners, newest first.

        Args:
            search: Case-insensitive substring of email, name or referral code
            page: Page number (1-indexed); all matches if None
            per_page: Items per page

        Returns:
            Tuple of (items, total_count)
        """
        stmt = self._partners_stmt(search)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(User.created_at.desc(), User.id.desc())
        if page is not None:
            stmt = stmt.offset((page - 1) * per_page).limit(per_page)

        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def count_partners(self, created_since: datetime | None = None) -> int:
        """Count partners, optionally only those registered since a moment."""
        stmt = select(func.count(User.id)).where(_is_partner())
        if created_since is not None:
            stmt = stmt.where(User.created_at >= created_since)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_with_direct_referrals(self) -> int:
        """Count users that invited at least one user."""
        stmt = select(func.count(User.id)).where(_has_direct_referrals())
        result = await self.session.execute(stmt)
        return result.scalar() or 0
