"""
Balance ledger.

Derives a partner's balance from commissions and withdrawals on read.
Nothing is stored: the workflow holds the partner lock while it reads
the ledger, which makes check-then-reserve atomic.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from payouts.config.policy import PayoutPolicy
from payouts.models.enums import CommissionStatus, WithdrawalStatus
from payouts.repositories.partner_commission_repository import (
    PartnerCommissionRepository,
)
from payouts.repositories.withdrawal_request_repository import (
    WithdrawalRequestRepository,
)
from payouts.schemas.balance import AvailableBalance
from payouts.services.base_service import BaseService


class BalanceLedger(BaseService):
    """Read-only partner balance aggregation."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize balance ledger."""
        super().__init__(session, policy)
        self.commission_repo = PartnerCommissionRepository(session)
        self.withdrawal_repo = WithdrawalRequestRepository(session)

    async def get_available_balance(self, partner_id: int) -> AvailableBalance:
        """
        Compute balance figures of a partner.

        Withdrawals are counted with their gross amount in every bucket.

        Args:
            partner_id: Partner ID

        Returns:
            AvailableBalance
        """
        commissions = await self.commission_repo.sum_by_status(partner_id)
        withdrawals = await self.withdrawal_repo.sum_by_status(partner_id)

        total_earnings = (
            commissions[CommissionStatus.APPROVED.value]
            + commissions[CommissionStatus.PAID.value]
        )
        pending_withdrawals = (
            withdrawals[WithdrawalStatus.PENDING.value]
            + withdrawals[WithdrawalStatus.APPROVED.value]
        )
        processing = withdrawals[WithdrawalStatus.PROCESSING.value]
        withdrawn = withdrawals[WithdrawalStatus.COMPLETED.value]

        available = total_earnings - pending_withdrawals - processing - withdrawn
        deficit = 0
        if available < 0:
            # Guards on create and reject keep this from happening
            self.logger.error(
                "Negative derived balance",
                extra={"partner_id": partner_id, "available": available},
            )
            deficit = -available
            available = 0

        return AvailableBalance(
            total_earnings=total_earnings,
            pending_earnings=commissions[CommissionStatus.PENDING.value],
            pending_withdrawals=pending_withdrawals,
            processing=processing,
            withdrawn=withdrawn,
            available=available,
            minimum_withdrawal=self.policy.minimum_withdrawal,
            deficit=deficit,
        )

    async def available_balance(self, partner_id: int) -> int:
        """Get amount a partner can withdraw right now, in kopecks."""
        balance = await self.get_available_balance(partner_id)
        return balance.available

    async def can_withdraw(self, partner_id: int, amount: int) -> bool:
        """
        Check if a withdrawal of amount would be accepted.

        Args:
            partner_id: Partner ID
            amount: Gross amount in kopecks

        Returns:
            True if amount >= minimum and amount <= available
        """
        if amount < self.policy.minimum_withdrawal:
            return False
        return amount <= await self.available_balance(partner_id)
