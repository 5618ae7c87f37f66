"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from payouts.models.audit_log import AuditLog
from payouts.models.base import Base
from payouts.models.bonus_transaction import BonusTransaction
from payouts.models.enums import (
    AuditAction,
    BonusSource,
    BonusTransactionType,
    CommissionStatus,
    PartnerLevelName,
    PaymentMethod,
    TaxStatus,
    WithdrawalStatus,
)
from payouts.models.partner_commission import PartnerCommission
from payouts.models.partner_relationship import PartnerRelationship
from payouts.models.user import User
from payouts.models.withdrawal_request import WithdrawalRequest


__all__ = [
    "AuditAction",
    "AuditLog",
    "Base",
    "BonusSource",
    "BonusTransaction",
    "BonusTransactionType",
    "CommissionStatus",
    "PartnerCommission",
    "PartnerLevelName",
    "PartnerRelationship",
    "PaymentMethod",
    "TaxStatus",
    "User",
    "WithdrawalRequest",
]
