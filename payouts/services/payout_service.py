"""
Payout service facade.

Single entry point for the HTTP layer, the admin back-office and the job
runner. Delegates to the workflow, ledger and expiry policy sharing one
session, one policy and one tax calculator, so the preview and the
authoritative computation can never diverge.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.models import TaxBreakdown
from earnings_calculator.core.tax import TaxCalculator
from earnings_calculator.types import TaxStatus
from payouts.config.policy import PayoutPolicy
from payouts.models.withdrawal_request import WithdrawalRequest
from payouts.schemas.balance import AvailableBalance
from payouts.schemas.withdrawal import (
    BankAccountPaymentDetails,
    CardPaymentDetails,
    WithdrawalPreview,
    WithdrawalStats,
)
from payouts.services.base_service import BaseService
from payouts.services.bonus.expiry_policy import BonusExpiryPolicy
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.services.withdrawal.withdrawal_query_service import (
    WithdrawalQueryService,
)
from payouts.services.withdrawal.withdrawal_workflow import WithdrawalWorkflow


class PayoutService(BaseService):
    """Facade over withdrawals, balances and bonus expiry."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize payout service."""
        super().__init__(session, policy)
        self.tax_calculator = TaxCalculator(self.policy.tax_rates)
        self.workflow = WithdrawalWorkflow(session, self.policy, self.tax_calculator)
        self.queries = WithdrawalQueryService(session, self.policy)
        self.ledger = BalanceLedger(session, self.policy)
        self.expiry_policy = BonusExpiryPolicy(session, self.policy)

    def calculate_tax(self, amount: int, tax_status: TaxStatus | str) -> TaxBreakdown:
        """Tax breakdown of a gross amount in kopecks."""
        return self.workflow.calculate_tax(amount, tax_status)

    async def preview_withdrawal(
        self, partner_id: int, amount: int, tax_status: TaxStatus | str
    ) -> WithdrawalPreview:
        """Preview a withdrawal without writing anything."""
        return await self.workflow.preview(partner_id, amount, tax_status)

    async def create_withdrawal(
        self,
        partner_id: int,
        amount: int,
        tax_status: TaxStatus | str,
        payment_details: CardPaymentDetails | BankAccountPaymentDetails | dict[str, Any],
    ) -> WithdrawalRequest:
        """Create a PENDING withdrawal and reserve its amount."""
        return await self.workflow.create(partner_id, amount, tax_status, payment_details)

    async def approve_withdrawal(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """PENDING -> APPROVED."""
        return await self.workflow.approve(withdrawal_id, admin_id)

    async def begin_processing_withdrawal(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """APPROVED -> PROCESSING."""
        return await self.workflow.begin_processing(withdrawal_id, admin_id)

    async def reject_withdrawal(
        self, withdrawal_id: int, reason: str, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """PENDING | APPROVED -> REJECTED, releasing the reservation."""
        return await self.workflow.reject(withdrawal_id, reason, admin_id)

    async def complete_withdrawal(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """APPROVED | PROCESSING -> COMPLETED."""
        return await self.workflow.complete(withdrawal_id, admin_id)

    async def get_withdrawal(self, withdrawal_id: int) -> WithdrawalRequest:
        """Get withdrawal by ID."""
        return await self.queries.get_withdrawal(withdrawal_id)

    async def get_withdrawal_stats(self) -> WithdrawalStats:
        """Back-office withdrawal statistics."""
        return await self.queries.get_withdrawal_stats()

    async def get_available_balance(self, partner_id: int) -> AvailableBalance:
        """Balance figures of a partner."""
        return await self.ledger.get_available_balance(partner_id)

    async def sweep_expired_bonuses(self, as_of: datetime | None = None) -> int:
        """Expire bonus grants due by as_of; returns number of grants expired."""
        return await self.expiry_policy.sweep_expired_bonuses(as_of)
