"""
Exception types for the payout domain.

Each exception carries a user-facing message (Russian, the UI language)
and a stable machine-readable error code. Services raise these and never
return error strings.
"""

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


class PayoutError(Exception):
    """Base class for payout domain errors."""

    error_code = "payout_error"
    retryable = False

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    def __str__(self) -> str:
        return self.message


class ValidationError(PayoutError):
    """Malformed input: amount below minimum, bad payment details, short reason."""

    error_code = "validation_error"


class InsufficientBalanceError(PayoutError):
    """Requested amount exceeds the available balance."""

    error_code = "insufficient_balance"


class InvalidStateError(PayoutError):
    """Transition attempted from a state that does not permit it."""

    error_code = "invalid_state"


class ConcurrencyConflictError(PayoutError):
    """Lock or version conflict during a balance check-and-reserve."""

    error_code = "concurrency_conflict"
    retryable = True

    def __init__(
        self,
        message: str = "Система временно занята. Попробуйте через несколько секунд.",
        error_code: str | None = None,
    ) -> None:
        super().__init__(message, error_code)


class NotFoundError(PayoutError):
    """Referenced entity does not exist."""

    error_code = "not_found"


# Database lock errors raised by SELECT ... FOR UPDATE NOWAIT
LOCK_ERROR_MARKERS = ("could not obtain lock", "lock_not_available", "database is locked")


def is_lock_error(exc: Exception) -> bool:
    """
    Check if exception is a row lock conflict.

    Args:
        exc: Exception to check

    Returns:
        True if the database refused to grant a lock
    """
    if not isinstance(exc, OperationalError):
        return False
    error_str = str(exc).lower()
    return any(marker in error_str for marker in LOCK_ERROR_MARKERS)


def is_retryable(exc: Exception) -> bool:
    """
    Check if operation that raised exception can be retried as is.

    Args:
        exc: Exception to check

    Returns:
        True for concurrency conflicts, stale versions and lock errors
    """
    if isinstance(exc, PayoutError):
        return exc.retryable
    return isinstance(exc, StaleDataError) or is_lock_error(exc)
