"""
Enums for database models.

Statuses are stored as plain strings (the enum value) in String columns.
"""

from enum import Enum

from earnings_calculator.types import PartnerLevelName, TaxStatus


class CommissionStatus(str, Enum):
    """Partner commission status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class WithdrawalStatus(str, Enum):
    """Withdrawal request status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class PaymentMethod(str, Enum):
    """Payout method for a withdrawal."""

    CARD = "CARD"
    BANK_ACCOUNT = "BANK_ACCOUNT"


class BonusTransactionType(str, Enum):
    """Bonus ledger entry type."""

    EARNED = "EARNED"
    SPENT = "SPENT"
    WITHDRAWN = "WITHDRAWN"
    EXPIRED = "EXPIRED"
    ADJUSTMENT = "ADJUSTMENT"


class BonusSource(str, Enum):
    """Origin of an earned bonus."""

    PARTNER = "PARTNER"
    PROMO = "PROMO"
    REFUND = "REFUND"
    REFERRAL_BONUS = "REFERRAL_BONUS"
    ACTIVITY = "ACTIVITY"


class AuditAction(str, Enum):
    """Audited state changes."""

    COMMISSION_APPROVED = "COMMISSION_APPROVED"
    COMMISSION_CANCELLED = "COMMISSION_CANCELLED"
    COMMISSION_PAID = "COMMISSION_PAID"
    WITHDRAWAL_CREATED = "WITHDRAWAL_CREATED"
    WITHDRAWAL_APPROVED = "WITHDRAWAL_APPROVED"
    WITHDRAWAL_PROCESSING = "WITHDRAWAL_PROCESSING"
    WITHDRAWAL_COMPLETED = "WITHDRAWAL_COMPLETED"
    WITHDRAWAL_REJECTED = "WITHDRAWAL_REJECTED"
    BONUS_ADJUSTED = "BONUS_ADJUSTED"
    BONUS_WITHDRAWN = "BONUS_WITHDRAWN"
    BONUS_EXPIRED = "BONUS_EXPIRED"


__all__ = [
    "AuditAction",
    "BonusSource",
    "BonusTransactionType",
    "CommissionStatus",
    "PartnerLevelName",
    "PaymentMethod",
    "TaxStatus",
    "WithdrawalStatus",
]
