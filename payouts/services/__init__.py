"""
Business services.

Services own transactions: every public mutating method commits on
success and rolls back on error.
"""

from payouts.services.bonus.bonus_service import BonusService
from payouts.services.bonus.expiry_policy import BonusExpiryPolicy
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.services.partner.commission_service import CommissionService
from payouts.services.partner.dashboard import PartnerDashboardService
from payouts.services.partner.partner_admin import PartnerAdminService
from payouts.services.partner.referral_chain import ReferralChainManager
from payouts.services.payout_service import PayoutService
from payouts.services.withdrawal.withdrawal_query_service import (
    WithdrawalQueryService,
)
from payouts.services.withdrawal.withdrawal_workflow import WithdrawalWorkflow


__all__ = [
    "BalanceLedger",
    "BonusExpiryPolicy",
    "BonusService",
    "CommissionService",
    "PartnerAdminService",
    "PartnerDashboardService",
    "PayoutService",
    "ReferralChainManager",
    "WithdrawalQueryService",
    "WithdrawalWorkflow",
]
