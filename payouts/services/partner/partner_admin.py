"""
Partner back-office service.

Program statistics, the partner list and the partner card for admins.
Read only.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.levels import resolve_level
from earnings_calculator.types import PartnerLevelName
from payouts.config.business_constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from payouts.config.policy import PayoutPolicy
from payouts.models.enums import CommissionStatus, WithdrawalStatus
from payouts.models.user import User
from payouts.repositories.partner_commission_repository import (
    PartnerCommissionRepository,
)
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.repositories.withdrawal_request_repository import (
    WithdrawalRequestRepository,
)
from payouts.schemas.partner import (
    CommissionItem,
    PartnerDetail,
    PartnerProgramStats,
    PartnerSummary,
    ReferralNode,
    ReferrerInfo,
    WithdrawalItem,
)
from payouts.services.base_service import BaseService
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.utils.datetime_utils import month_start
from payouts.utils.exceptions import NotFoundError, ValidationError


RECENT_COMMISSIONS_LIMIT = 10
RECENT_WITHDRAWALS_LIMIT = 5
DIRECT_REFERRALS_LIMIT = 20


class PartnerAdminService(BaseService):
    """Partner program back-office."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize partner admin service."""
        super().__init__(session, policy)
        self.ledger = BalanceLedger(session, self.policy)
        self.user_repo = UserRepository(session)
        self.relationship_repo = PartnerRelationshipRepository(session)
        self.commission_repo = PartnerCommissionRepository(session)
        self.withdrawal_repo = WithdrawalRequestRepository(session)

    async def _summarize(self, user: User) -> PartnerSummary:
        by_level = await self.relationship_repo.count_by_level(user.id)
        direct = by_level.get(1, 0)
        balance = await self.ledger.get_available_balance(user.id)
        level = resolve_level(direct, balance.total_earnings, self.policy.partner_levels)

        return PartnerSummary(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name,
            referral_code=user.referral_code,
            registered_at=user.created_at,
            level=level.name,
            direct_referrals=direct,
            team_size=sum(by_level.values()),
            total_earnings=balance.total_earnings,
            pending_earnings=balance.pending_earnings,
            withdrawn=balance.withdrawn,
            available=balance.available,
        )

    async def get_program_stats(self) -> PartnerProgramStats:
        """
        Partner program overview.

        A partner is a user who invited someone or earned a commission.
        """
        since = month_start()
        total_partners = await self.user_repo.count_partners()
        new_partners = await self.user_repo.count_partners(created_since=since)
        active_partners = await self.user_repo.count_with_direct_referrals()

        partners, _ = await self.user_repo.find_partners()
        by_level = {name: 0 for name in PartnerLevelName}
        for partner in partners:
            summary = await self._summarize(partner)
            by_level[summary.level] += 1

        commissions = await self.commission_repo.stats_by_status()
        withdrawals = await self.withdrawal_repo.stats_by_status()
        _, completed_this_month, _ = await self.withdrawal_repo.completed_since(since)

        pending_withdrawal_count = (
            withdrawals[WithdrawalStatus.PENDING.value][0]
            + withdrawals[WithdrawalStatus.APPROVED.value][0]
        )
        pending_withdrawals = (
            withdrawals[WithdrawalStatus.PENDING.value][1]
            + withdrawals[WithdrawalStatus.APPROVED.value][1]
        )

        return PartnerProgramStats(
            total_partners=total_partners,
            new_partners_this_month=new_partners,
            active_partners=active_partners,
            partners_by_level=by_level,
            total_commissions=(
                commissions[CommissionStatus.APPROVED.value][1]
                + commissions[CommissionStatus.PAID.value][1]
            ),
            pending_commissions=commissions[CommissionStatus.PENDING.value][1],
            pending_commission_count=commissions[CommissionStatus.PENDING.value][0],
            total_withdrawn=withdrawals[WithdrawalStatus.COMPLETED.value][1],
            pending_withdrawals=pending_withdrawals,
            pending_withdrawal_count=pending_withdrawal_count,
            commissions_this_month=await self.commission_repo.sum_all_earned_since(since),
            withdrawals_this_month=completed_this_month,
        )

    async def list_partners(
        self,
        search: str | None = None,
        level: PartnerLevelName | str | None = None,
        min_earnings: int | None = None,
        min_referrals: int | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[PartnerSummary], int]:
        """
        List partners, newest first.

        Tier, earnings and referral filters are computed per partner, so
        with any of them the whole search result is summarised before the
        page is cut.

        Args:
            search: Substring of email, display name or referral code
            level: Only partners in this tier
            min_earnings: Only partners with at least this total earnings
            min_referrals: Only partners with at least this many direct referrals
            page: Page number (1-indexed)
            limit: Page size (capped at MAX_PAGE_SIZE)

        Returns:
            Tuple of (items, total_count)
        """
        if page < 1:
            raise ValidationError("Номер страницы должен быть положительным")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        level_name = None
        if level is not None:
            try:
                level_name = PartnerLevelName(level)
            except ValueError:
                raise ValidationError(f"Неизвестный уровень партнера: {level}") from None

        search = (search or "").strip() or None
        computed = (
            level_name is not None
            or min_earnings is not None
            or min_referrals is not None
        )

        if not computed:
            users, total = await self.user_repo.find_partners(search, page=page, per_page=limit)
            return [await self._summarize(user) for user in users], total

        users, _ = await self.user_repo.find_partners(search)
        summaries = [await self._summarize(user) for user in users]
        if level_name is not None:
            summaries = [s for s in summaries if s.level == level_name]
        if min_earnings is not None:
            summaries = [s for s in summaries if s.total_earnings >= min_earnings]
        if min_referrals is not None:
            summaries = [s for s in summaries if s.direct_referrals >= min_referrals]

        offset = (page - 1) * limit
        return summaries[offset:offset + limit], len(summaries)

    async def get_partner(self, partner_id: int) -> PartnerDetail:
        """
        Get partner card: summary, referrer, recent commissions and
        withdrawals, latest direct referrals.

        Raises:
            NotFoundError: Unknown user
        """
        user = await self.user_repo.get_by_id(partner_id)
        if user is None:
            raise NotFoundError(f"Пользователь #{partner_id} не найден")

        summary = await self._summarize(user)

        referred_by = None
        referrer_id = await self.relationship_repo.get_referrer_id(partner_id)
        if referrer_id is not None:
            referrer = await self.user_repo.get_by_id(referrer_id)
            referred_by = ReferrerInfo(
                user_id=referrer.id,
                email=referrer.email,
                display_name=referrer.display_name,
                referral_code=referrer.referral_code,
            )

        commissions = await self.commission_repo.find_recent(
            partner_id, RECENT_COMMISSIONS_LIMIT
        )
        withdrawals = await self.withdrawal_repo.find_recent(
            partner_id, RECENT_WITHDRAWALS_LIMIT
        )

        relationships = await self.relationship_repo.find_direct_referrals(
            partner_id, DIRECT_REFERRALS_LIMIT
        )
        referrals = await self.user_repo.get_many([rel.referral_id for rel in relationships])
        earned = await self.commission_repo.sum_earned_by_referral(partner_id)

        return PartnerDetail(
            **summary.model_dump(),
            referred_by=referred_by,
            recent_commissions=[CommissionItem.model_validate(c) for c in commissions],
            recent_withdrawals=[WithdrawalItem.model_validate(w) for w in withdrawals],
            direct_referrals_list=[
                ReferralNode(
                    user_id=referral.id,
                    email=referral.email,
                    display_name=referral.display_name,
                    level=1,
                    joined_at=referral.created_at,
                    earned=earned.get(referral.id, 0),
                )
                for referral in (referrals[rel.referral_id] for rel in relationships)
            ],
        )
