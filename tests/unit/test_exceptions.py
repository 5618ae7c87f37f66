"""Tests for payout exception types."""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from payouts.utils.exceptions import (
    ConcurrencyConflictError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    PayoutError,
    ValidationError,
    is_lock_error,
    is_retryable,
)


class TestPayoutErrors:
    """Error hierarchy and attributes."""

    @pytest.mark.parametrize(
        "error_class,code",
        [
            (ValidationError, "validation_error"),
            (InsufficientBalanceError, "insufficient_balance"),
            (InvalidStateError, "invalid_state"),
            (NotFoundError, "not_found"),
        ],
    )
    def test_codes(self, error_class, code):
        """Each error carries a stable code and is not retryable."""
        error = error_class("Сообщение")
        assert isinstance(error, PayoutError)
        assert error.error_code == code
        assert error.message == "Сообщение"
        assert str(error) == "Сообщение"
        assert error.retryable is False

    def test_custom_code(self):
        """Code can be overridden per instance."""
        error = ValidationError("Плохие реквизиты", error_code="invalid_payment_details")
        assert error.error_code == "invalid_payment_details"
        assert ValidationError.error_code == "validation_error"

    def test_concurrency_conflict_is_retryable(self):
        """Concurrency conflicts have a default user message."""
        error = ConcurrencyConflictError()
        assert error.retryable is True
        assert "Попробуйте" in error.message


class TestRetryClassification:
    """Which failures may be retried automatically."""

    def test_lock_not_available(self):
        """FOR UPDATE NOWAIT failure on PostgreSQL."""
        exc = OperationalError(
            "SELECT ...", {}, Exception("could not obtain lock on row in relation")
        )
        assert is_lock_error(exc)
        assert is_retryable(exc)

    def test_other_operational_error(self):
        """Connection errors are not lock conflicts."""
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))
        assert not is_lock_error(exc)
        assert not is_retryable(exc)

    def test_stale_data(self):
        """Optimistic version mismatch is retryable."""
        assert is_retryable(StaleDataError("version mismatch"))

    def test_business_errors_not_retryable(self):
        """Validation and balance errors need different input."""
        assert not is_retryable(InsufficientBalanceError("нет денег"))
        assert not is_retryable(ValueError("boom"))
