"""
Withdrawal state machine.

PENDING -> APPROVED -> PROCESSING -> COMPLETED
PENDING | APPROVED -> REJECTED

APPROVED -> COMPLETED is allowed unless the policy requires PROCESSING.
COMPLETED and REJECTED are terminal.
"""

from payouts.models.enums import WithdrawalStatus
from payouts.utils.exceptions import InvalidStateError


WITHDRAWAL_TRANSITIONS: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset(
        {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED}
    ),
    WithdrawalStatus.APPROVED: frozenset(
        {
            WithdrawalStatus.PROCESSING,
            WithdrawalStatus.COMPLETED,
            WithdrawalStatus.REJECTED,
        }
    ),
    WithdrawalStatus.PROCESSING: frozenset({WithdrawalStatus.COMPLETED}),
    WithdrawalStatus.COMPLETED: frozenset(),
    WithdrawalStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in WITHDRAWAL_TRANSITIONS.items() if not targets
)

STATUS_LABELS = {
    WithdrawalStatus.PENDING: "Ожидает",
    WithdrawalStatus.APPROVED: "Одобрена",
    WithdrawalStatus.PROCESSING: "В обработке",
    WithdrawalStatus.COMPLETED: "Выплачена",
    WithdrawalStatus.REJECTED: "Отклонена",
}


def allowed_transitions(
    current: WithdrawalStatus, require_processing: bool = False
) -> frozenset[WithdrawalStatus]:
    """
    Get statuses reachable from the current one in a single step.

    Args:
        current: Current status
        require_processing: Forbid APPROVED -> COMPLETED

    Returns:
        Reachable statuses
    """
    targets = WITHDRAWAL_TRANSITIONS[current]
    if require_processing and current is WithdrawalStatus.APPROVED:
        targets = targets - {WithdrawalStatus.COMPLETED}
    return targets


def can_transition(
    current: WithdrawalStatus,
    target: WithdrawalStatus,
    require_processing: bool = False,
) -> bool:
    """Check whether current -> target is a legal transition."""
    return target in allowed_transitions(current, require_processing)


def ensure_transition(
    current: WithdrawalStatus,
    target: WithdrawalStatus,
    require_processing: bool = False,
) -> None:
    """
    Validate a transition.

    Raises:
        InvalidStateError: If current -> target is not allowed
    """
    if can_transition(current, target, require_processing):
        return

    if current in TERMINAL_STATUSES:
        message = (
            f"Заявка уже в финальном статусе «{STATUS_LABELS[current]}», "
            f"изменение невозможно"
        )
    else:
        message = (
            f"Нельзя перевести заявку из статуса «{STATUS_LABELS[current]}» "
            f"в «{STATUS_LABELS[target]}»"
        )
    raise InvalidStateError(message)
