"""
Withdrawal query service.

Read-only listings and statistics for the partner cabinet and back-office.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from payouts.config.business_constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from payouts.config.policy import PayoutPolicy
from payouts.models.enums import WithdrawalStatus
from payouts.models.withdrawal_request import WithdrawalRequest
from payouts.repositories.withdrawal_request_repository import (
    WithdrawalRequestRepository,
)
from payouts.schemas.withdrawal import StatusStats, WithdrawalStats
from payouts.services.base_service import BaseService
from payouts.utils.datetime_utils import month_start
from payouts.utils.exceptions import NotFoundError, ValidationError


class WithdrawalQueryService(BaseService):
    """Withdrawal listings and statistics."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize withdrawal query service."""
        super().__init__(session, policy)
        self.withdrawal_repo = WithdrawalRequestRepository(session)

    async def get_withdrawal(self, withdrawal_id: int) -> WithdrawalRequest:
        """
        Get withdrawal by ID.

        Raises:
            NotFoundError: Unknown withdrawal
        """
        withdrawal = await self.withdrawal_repo.get_by_id(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError(f"Заявка на вывод #{withdrawal_id} не найдена")
        return withdrawal

    async def list_withdrawals(
        self,
        partner_id: int | None = None,
        status: WithdrawalStatus | str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[WithdrawalRequest], int]:
        """
        List withdrawals, newest first.

        Args:
            partner_id: Only this partner's requests
            status: Only requests in this status
            page: Page number (1-indexed)
            limit: Page size (capped at MAX_PAGE_SIZE)

        Returns:
            Tuple of (items, total_count)
        """
        if page < 1:
            raise ValidationError("Номер страницы должен быть положительным")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        status_value = None
        if status is not None:
            try:
                status_value = WithdrawalStatus(status).value
            except ValueError:
                raise ValidationError(f"Неизвестный статус заявки: {status}") from None

        return await self.withdrawal_repo.find_paginated(
            page=page,
            per_page=limit,
            partner_id=partner_id,
            status=status_value,
        )

    async def get_withdrawal_stats(self) -> WithdrawalStats:
        """
        Back-office statistics.

        Count and gross total per non-terminal status plus everything
        completed since the start of the current month.
        """
        by_status = await self.withdrawal_repo.stats_by_status()
        count, gross, net = await self.withdrawal_repo.completed_since(month_start())

        def _stats(status: WithdrawalStatus) -> StatusStats:
            status_count, amount = by_status[status.value]
            return StatusStats(count=status_count, amount=amount)

        return WithdrawalStats(
            pending=_stats(WithdrawalStatus.PENDING),
            approved=_stats(WithdrawalStatus.APPROVED),
            processing=_stats(WithdrawalStatus.PROCESSING),
            completed_this_month=StatusStats(count=count, amount=gross),
            completed_this_month_net=net,
        )
