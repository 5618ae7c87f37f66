"""Pydantic schemas returned by services."""

from payouts.schemas.balance import AvailableBalance
from payouts.schemas.bonus import (
    BonusBalance,
    BonusWithdrawalPreview,
    BonusWithdrawalResult,
    ExpiringBonus,
    ExpiringBonusSummary,
)
from payouts.schemas.partner import (
    BatchApprovalResult,
    CommissionItem,
    PartnerDashboard,
    PartnerDetail,
    PartnerProgramStats,
    PartnerSummary,
    ReferralNode,
    ReferralTree,
    ReferrerInfo,
    WithdrawalItem,
)
from payouts.schemas.withdrawal import (
    BankAccountPaymentDetails,
    CardPaymentDetails,
    PaymentDetails,
    StatusStats,
    WithdrawalPreview,
    WithdrawalStats,
    parse_payment_details,
    payment_details_adapter,
)


__all__ = [
    "AvailableBalance",
    "BankAccountPaymentDetails",
    "BatchApprovalResult",
    "BonusBalance",
    "BonusWithdrawalPreview",
    "BonusWithdrawalResult",
    "CardPaymentDetails",
    "CommissionItem",
    "ExpiringBonus",
    "ExpiringBonusSummary",
    "PartnerDashboard",
    "PartnerDetail",
    "PartnerProgramStats",
    "PartnerSummary",
    "PaymentDetails",
    "ReferralNode",
    "ReferralTree",
    "ReferrerInfo",
    "StatusStats",
    "WithdrawalItem",
    "WithdrawalPreview",
    "WithdrawalStats",
    "parse_payment_details",
    "payment_details_adapter",
]
