"""
Referral chain manager.

Maintains the materialised up-line (PartnerRelationship rows, levels 1-5).
"""

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.commissions import MAX_REFERRAL_DEPTH
from payouts.config.policy import PayoutPolicy
from payouts.models.partner_relationship import PartnerRelationship
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.services.base_service import BaseService, transaction
from payouts.utils.exceptions import NotFoundError, ValidationError


class ReferralChainManager(BaseService):
    """Referral registration and up-line lookup."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize referral chain manager."""
        super().__init__(session, policy)
        self.relationship_repo = PartnerRelationshipRepository(session)
        self.user_repo = UserRepository(session)

    @transaction
    async def register_referral(
        self, new_user_id: int, referrer_id: int
    ) -> list[PartnerRelationship]:
        """
        Attach a user to a referrer and copy the referrer's up-line.

        The referrer becomes level 1, the referrer's level N partner
        becomes level N + 1, up to level 5. Registering the same pair
        again returns the existing chain.

        Args:
            new_user_id: Referred user
            referrer_id: Direct referrer

        Returns:
            Up-line relationships of the new user, level 1 first

        Raises:
            ValidationError: Self-referral, loop, or a different referrer
                already registered
            NotFoundError: Unknown user
        """
        if new_user_id == referrer_id:
            raise ValidationError("Нельзя пригласить самого себя")

        for user_id in (new_user_id, referrer_id):
            if await self.user_repo.get_by_id(user_id) is None:
                raise NotFoundError(f"Пользователь #{user_id} не найден")

        existing = await self.relationship_repo.get_upline(new_user_id)
        if existing:
            if existing[0].partner_id == referrer_id:
                return existing
            raise ValidationError("У пользователя уже есть пригласивший партнер")

        if await self._is_ancestor(new_user_id, referrer_id):
            raise ValidationError("Циклическая реферальная связь недопустима")

        referrer_upline = await self.relationship_repo.get_upline(
            referrer_id, max_level=MAX_REFERRAL_DEPTH - 1
        )

        chain = [
            PartnerRelationship(partner_id=referrer_id, referral_id=new_user_id, level=1)
        ]
        chain.extend(
            PartnerRelationship(
                partner_id=rel.partner_id,
                referral_id=new_user_id,
                level=rel.level + 1,
            )
            for rel in referrer_upline
        )
        self.session.add_all(chain)
        await self.session.flush()

        self.logger.info(
            "Referral registered",
            extra={
                "user_id": new_user_id,
                "referrer_id": referrer_id,
                "levels": len(chain),
            },
        )
        return chain

    async def _is_ancestor(self, candidate_id: int, user_id: int) -> bool:
        """
        Check if candidate_id is anywhere above user_id in the referral tree.

        Follows direct referrers to the root, so loops deeper than the
        stored up-line are found too.
        """
        seen: set[int] = set()
        current = await self.relationship_repo.get_referrer_id(user_id)
        while current is not None and current not in seen:
            if current == candidate_id:
                return True
            seen.add(current)
            current = await self.relationship_repo.get_referrer_id(current)
        return False

    async def get_upline(self, user_id: int) -> list[int]:
        """
        Get up-line partner ids of a user.

        Returns:
            Partner ids, direct referrer first
        """
        relationships = await self.relationship_repo.get_upline(
            user_id, max_level=MAX_REFERRAL_DEPTH
        )
        return [rel.partner_id for rel in relationships]
