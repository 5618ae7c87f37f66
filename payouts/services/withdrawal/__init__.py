"""Withdrawal services."""

from payouts.services.withdrawal.state_machine import (
    TERMINAL_STATUSES,
    WITHDRAWAL_TRANSITIONS,
    can_transition,
    ensure_transition,
)
from payouts.services.withdrawal.withdrawal_query_service import (
    WithdrawalQueryService,
)
from payouts.services.withdrawal.withdrawal_workflow import WithdrawalWorkflow


__all__ = [
    "TERMINAL_STATUSES",
    "WITHDRAWAL_TRANSITIONS",
    "WithdrawalQueryService",
    "WithdrawalWorkflow",
    "can_transition",
    "ensure_transition",
]
