"""Tests for the concurrency retry decorator."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from payouts.utils.db_decorators import retry_on_conflict
from payouts.utils.exceptions import ConcurrencyConflictError, ValidationError


class FakeService:
    """Object with a session attribute, like a service."""

    def __init__(self, session, failures):
        self.session = session
        self.failures = list(failures)
        self.calls = 0

    @retry_on_conflict(max_retries=3, base_delay=0)
    async def run(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "done"


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip backoff delays."""
    with patch("payouts.utils.db_decorators.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestRetryOnConflict:
    """Bounded retry with backoff."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, mock_session):
        """No conflict, no retry."""
        service = FakeService(mock_session, [])

        assert await service.run() == "done"
        assert service.calls == 1
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, mock_session, no_sleep):
        """Two conflicts then success: three attempts, two rollbacks."""
        service = FakeService(
            mock_session,
            [ConcurrencyConflictError(), StaleDataError("stale")],
        )

        assert await service.run() == "done"
        assert service.calls == 3
        assert mock_session.rollback.await_count == 2
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_lock_error_retried(self, mock_session):
        """NOWAIT lock failure is retried."""
        lock_error = OperationalError("SELECT", {}, Exception("lock_not_available"))
        service = FakeService(mock_session, [lock_error])

        assert await service.run() == "done"
        assert service.calls == 2

    @pytest.mark.asyncio
    async def test_exhausted_raises_conflict(self, mock_session):
        """After max_retries the caller gets ConcurrencyConflictError."""
        service = FakeService(mock_session, [StaleDataError("stale")] * 3)

        with pytest.raises(ConcurrencyConflictError):
            await service.run()
        assert service.calls == 3

    @pytest.mark.asyncio
    async def test_business_error_not_retried(self, mock_session):
        """Validation errors propagate immediately."""
        service = FakeService(mock_session, [ValidationError("bad")])

        with pytest.raises(ValidationError):
            await service.run()
        assert service.calls == 1
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backoff_grows(self, mock_session, no_sleep):
        """Delay doubles per attempt."""

        class SlowService(FakeService):
            @retry_on_conflict(max_retries=3, base_delay=1.0)
            async def run(self):
                return await FakeService.run.__wrapped__(self)

        service = SlowService(mock_session, [StaleDataError("a"), StaleDataError("b")])
        await service.run()

        delays = [call.args[0] for call in no_sleep.await_args_list]
        assert 1.0 <= delays[0] < 1.2
        assert 2.0 <= delays[1] < 2.2

    @pytest.mark.asyncio
    async def test_limits_from_callables(self, mock_session):
        """Limits may be read from the instance."""

        class PolicyService(FakeService):
            max_retries = 2

            @retry_on_conflict(max_retries=lambda self: self.max_retries, base_delay=lambda self: 0)
            async def run(self):
                return await FakeService.run.__wrapped__(self)

        service = PolicyService(mock_session, [StaleDataError("a")] * 2)
        with pytest.raises(ConcurrencyConflictError):
            await service.run()
        assert service.calls == 2

