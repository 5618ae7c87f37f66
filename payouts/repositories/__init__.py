"""Repositories."""

from payouts.repositories.audit_log_repository import AuditLogRepository
from payouts.repositories.bonus_transaction_repository import BonusTransactionRepository
from payouts.repositories.partner_commission_repository import PartnerCommissionRepository
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.repositories.withdrawal_request_repository import (
    WithdrawalRequestRepository,
)


__all__ = [
    "AuditLogRepository",
    "BonusTransactionRepository",
    "PartnerCommissionRepository",
    "PartnerRelationshipRepository",
    "UserRepository",
    "WithdrawalRequestRepository",
]
