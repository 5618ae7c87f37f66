"""
Partner dashboard service.

Aggregates referral counts, tier and balance for the partner cabinet,
and builds the referral tree.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.commissions import MAX_REFERRAL_DEPTH
from earnings_calculator.core.levels import next_level_progress, resolve_level
from earnings_calculator.core.models import PartnerLevelConfig
from payouts.config.policy import PayoutPolicy
from payouts.repositories.partner_commission_repository import (
    PartnerCommissionRepository,
)
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.schemas.partner import PartnerDashboard, ReferralNode, ReferralTree
from payouts.services.base_service import BaseService
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.utils.datetime_utils import month_start
from payouts.utils.exceptions import NotFoundError, ValidationError


class PartnerDashboardService(BaseService):
    """Partner cabinet overview."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize partner dashboard service."""
        super().__init__(session, policy)
        self.ledger = BalanceLedger(session, self.policy)
        self.user_repo = UserRepository(session)
        self.relationship_repo = PartnerRelationshipRepository(session)
        self.commission_repo = PartnerCommissionRepository(session)

    async def _require_user(self, partner_id: int) -> None:
        if await self.user_repo.get_by_id(partner_id) is None:
            raise NotFoundError(f"Партнер #{partner_id} не найден")

    async def get_dashboard(self, partner_id: int) -> PartnerDashboard:
        """
        Build dashboard of a partner.

        The tier is resolved from direct referrals and total earnings
        (APPROVED + PAID commissions).

        Raises:
            NotFoundError: Unknown partner
        """
        await self._require_user(partner_id)

        by_level = await self.relationship_repo.count_by_level(partner_id)
        direct_referrals = by_level.get(1, 0)
        balance = await self.ledger.get_available_balance(partner_id)
        earned_this_month = await self.commission_repo.sum_earned_since(
            partner_id, month_start()
        )

        levels = self.policy.partner_levels
        level = resolve_level(direct_referrals, balance.total_earnings, levels)
        progress = next_level_progress(direct_referrals, balance.total_earnings, levels)

        return PartnerDashboard(
            partner_id=partner_id,
            direct_referrals=direct_referrals,
            team_size=sum(by_level.values()),
            referrals_by_level=by_level,
            level=level,
            progress=progress,
            balance=balance,
            earned_this_month=earned_this_month,
        )

    def get_partner_levels(self) -> list[PartnerLevelConfig]:
        """Get tier table, lowest tier first."""
        return sorted(self.policy.partner_levels, key=lambda lvl: lvl.level_number)

    async def get_referral_tree(
        self, partner_id: int, max_depth: int = 1
    ) -> ReferralTree:
        """
        Get referral tree of a partner.

        Args:
            partner_id: Partner ID
            max_depth: Levels to expand, 1 (direct referrals only) to 5

        Returns:
            ReferralTree; each node carries the commissions the partner
            earned from that user (APPROVED + PAID)

        Raises:
            ValidationError: Depth out of range
            NotFoundError: Unknown partner
        """
        if not 1 <= max_depth <= MAX_REFERRAL_DEPTH:
            raise ValidationError(
                f"Глубина дерева должна быть от 1 до {MAX_REFERRAL_DEPTH}"
            )
        await self._require_user(partner_id)

        earned = await self.commission_repo.sum_earned_by_referral(partner_id)
        direct = await self._build_nodes(partner_id, 1, max_depth, earned)
        by_level = await self.relationship_repo.count_by_level(partner_id)

        return ReferralTree(
            direct_referrals=direct,
            direct_count=len(direct),
            team_size=sum(by_level.values()),
        )

    async def _build_nodes(
        self, parent_id: int, level: int, max_depth: int, earned: dict[int, int]
    ) -> list[ReferralNode]:
        relationships = await self.relationship_repo.find_direct_referrals(parent_id)
        users = await self.user_repo.get_many([rel.referral_id for rel in relationships])

        nodes = []
        for rel in relationships:
            user = users[rel.referral_id]
            children = []
            if level < max_depth:
                children = await self._build_nodes(user.id, level + 1, max_depth, earned)
            nodes.append(
                ReferralNode(
                    user_id=user.id,
                    email=user.email,
                    display_name=user.display_name,
                    level=level,
                    joined_at=user.created_at,
                    earned=earned.get(user.id, 0),
                    children=children,
                )
            )
        return nodes
