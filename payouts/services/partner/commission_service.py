"""
Commission service.

Creates multi-level commissions from purchases and manages their
admin lifecycle (approve, cancel).
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.commissions import CommissionLevelResolver
from earnings_calculator.utils.formatters import format_money
from payouts.config.business_constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from payouts.config.policy import PayoutPolicy
from payouts.models.enums import AuditAction, CommissionStatus
from payouts.models.partner_commission import PartnerCommission
from payouts.repositories.audit_log_repository import AuditLogRepository
from payouts.repositories.partner_commission_repository import (
    PartnerCommissionRepository,
)
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.schemas.partner import BatchApprovalResult
from payouts.services.base_service import (
    BaseService,
    policy_max_retries,
    policy_retry_delay,
    transaction,
)
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.utils.datetime_utils import utc_now
from payouts.utils.db_decorators import retry_on_conflict
from payouts.utils.exceptions import (
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    PayoutError,
    ValidationError,
)


ENTITY_TYPE = "partner_commission"

CANCELLABLE_STATUSES = (CommissionStatus.PENDING.value, CommissionStatus.APPROVED.value)


class CommissionService(BaseService):
    """Partner commission lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        policy: PayoutPolicy | None = None,
        resolver: CommissionLevelResolver | None = None,
    ) -> None:
        """Initialize commission service."""
        super().__init__(session, policy)
        self.resolver = resolver or CommissionLevelResolver(self.policy.commission_rates)
        self.ledger = BalanceLedger(session, self.policy)
        self.commission_repo = PartnerCommissionRepository(session)
        self.relationship_repo = PartnerRelationshipRepository(session)
        self.user_repo = UserRepository(session)
        self.audit_repo = AuditLogRepository(session)

    async def create_commissions(
        self,
        source_transaction_id: str,
        purchaser_id: int,
        base_amount: int,
    ) -> list[PartnerCommission]:
        """
        Create PENDING commissions for every up-line partner of a purchaser.

        Processing the same purchase again returns the existing records.

        Args:
            source_transaction_id: Purchase identifier
            purchaser_id: User who paid
            base_amount: Purchase amount in kopecks

        Returns:
            Commissions of the purchase ordered by level

        Raises:
            ValidationError: Negative amount or empty transaction id
        """
        if not source_transaction_id:
            raise ValidationError("Не указан идентификатор покупки")

        try:
            return await self._insert_commissions(
                source_transaction_id, purchaser_id, base_amount
            )
        except IntegrityError:
            existing = await self.commission_repo.find_by_source(source_transaction_id)
            if not existing:
                raise
            # Concurrent processing of the same purchase won the race
            self.logger.warning(
                "Commissions already created concurrently",
                extra={"source_transaction_id": source_transaction_id},
            )
            return existing

    @transaction
    async def _insert_commissions(
        self,
        source_transaction_id: str,
        purchaser_id: int,
        base_amount: int,
    ) -> list[PartnerCommission]:
        if await self.commission_repo.exists_for_source(source_transaction_id):
            self.logger.info(
                "Commissions already exist for purchase",
                extra={"source_transaction_id": source_transaction_id},
            )
            return await self.commission_repo.find_by_source(source_transaction_id)

        upline = await self.relationship_repo.get_upline(
            purchaser_id, max_level=self.resolver.depth
        )
        chain: list[int | None] = [None] * self.resolver.depth
        for relationship in upline:
            chain[relationship.level - 1] = relationship.partner_id

        try:
            drafts = self.resolver.resolve(chain, base_amount)
        except ValueError as e:
            raise ValidationError(f"Некорректная сумма покупки: {e}") from e

        commissions = [
            PartnerCommission(
                partner_id=draft.partner_id,
                referred_user_id=purchaser_id,
                source_transaction_id=source_transaction_id,
                level=draft.level,
                base_amount=draft.base_amount,
                rate=draft.rate,
                amount=draft.amount,
                status=CommissionStatus.PENDING.value,
            )
            for draft in drafts
        ]
        self.session.add_all(commissions)
        await self.session.flush()

        self.logger.info(
            "Commissions created",
            extra={
                "source_transaction_id": source_transaction_id,
                "purchaser_id": purchaser_id,
                "base_amount": base_amount,
                "levels": [c.level for c in commissions],
                "total": sum(c.amount for c in commissions),
            },
        )
        return commissions

    async def _get_locked(self, commission_id: int) -> PartnerCommission:
        commission = await self.commission_repo.get_for_update(commission_id)
        if commission is None:
            raise NotFoundError(f"Комиссия #{commission_id} не найдена")
        return commission

    @transaction
    async def approve_commission(
        self, commission_id: int, admin_id: int | None = None
    ) -> PartnerCommission:
        """
        Approve a PENDING commission, making it withdrawable.

        Raises:
            NotFoundError: Unknown commission
            InvalidStateError: Commission is not PENDING
        """
        commission = await self._get_locked(commission_id)
        if commission.status != CommissionStatus.PENDING.value:
            raise InvalidStateError(
                f"Одобрить можно только ожидающую комиссию "
                f"(текущий статус: {commission.status})"
            )

        commission.status = CommissionStatus.APPROVED.value
        commission.approved_at = utc_now()
        await self.session.flush()

        await self.audit_repo.record(
            AuditAction.COMMISSION_APPROVED,
            ENTITY_TYPE,
            commission.id,
            actor_id=admin_id,
            old_value={"status": CommissionStatus.PENDING.value},
            new_value={"status": commission.status, "amount": commission.amount},
        )

        self.logger.info(
            "Commission approved",
            extra={
                "commission_id": commission.id,
                "partner_id": commission.partner_id,
                "amount": commission.amount,
                "admin_id": admin_id,
            },
        )
        return commission

    async def approve_commissions_batch(
        self, commission_ids: list[int], admin_id: int | None = None
    ) -> list[BatchApprovalResult]:
        """
        Approve several commissions, each in its own transaction.

        Args:
            commission_ids: Commissions to approve
            admin_id: Admin performing the action

        Returns:
            Per-id results in input order
        """
        results: list[BatchApprovalResult] = []
        for commission_id in commission_ids:
            try:
                await self.approve_commission(commission_id, admin_id)
            except PayoutError as e:
                results.append(
                    BatchApprovalResult(
                        commission_id=commission_id,
                        success=False,
                        error=e.message,
                        error_code=e.error_code,
                    )
                )
            else:
                results.append(
                    BatchApprovalResult(commission_id=commission_id, success=True)
                )

        self.logger.info(
            "Batch approval finished",
            extra={
                "requested": len(commission_ids),
                "approved": sum(1 for r in results if r.success),
                "admin_id": admin_id,
            },
        )
        return results

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def cancel_commission(
        self, commission_id: int, reason: str, admin_id: int | None = None
    ) -> PartnerCommission:
        """
        Cancel a PENDING or APPROVED commission (refund, fraud).

        An APPROVED commission contributes to the balance, so cancelling it
        runs under the partner lock and is refused when withdrawals already
        reserve that money.

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown commission
            InvalidStateError: Commission is PAID or CANCELLED
            InsufficientBalanceError: Amount is reserved by withdrawals
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Укажите причину отмены комиссии")

        commission = await self.commission_repo.get_by_id(commission_id)
        if commission is None:
            raise NotFoundError(f"Комиссия #{commission_id} не найдена")

        await self.user_repo.lock_balance(commission.partner_id)
        commission = await self._get_locked(commission_id)

        if commission.status not in CANCELLABLE_STATUSES:
            raise InvalidStateError(
                f"Нельзя отменить комиссию в статусе {commission.status}"
            )

        old_status = commission.status
        if old_status == CommissionStatus.APPROVED.value:
            available = await self.ledger.available_balance(commission.partner_id)
            if commission.amount > available:
                raise InsufficientBalanceError(
                    f"Комиссия уже зарезервирована заявками на вывод. "
                    f"Доступно: {format_money(available)}, "
                    f"комиссия: {format_money(commission.amount)}"
                )

        commission.status = CommissionStatus.CANCELLED.value
        commission.cancelled_at = utc_now()
        commission.cancel_reason = reason
        await self.session.flush()

        await self.audit_repo.record(
            AuditAction.COMMISSION_CANCELLED,
            ENTITY_TYPE,
            commission.id,
            actor_id=admin_id,
            old_value={"status": old_status},
            new_value={"status": commission.status, "reason": reason},
        )

        self.logger.info(
            "Commission cancelled",
            extra={
                "commission_id": commission.id,
                "partner_id": commission.partner_id,
                "amount": commission.amount,
                "old_status": old_status,
                "admin_id": admin_id,
            },
        )
        return commission

    async def list_commissions(
        self,
        partner_id: int,
        status: CommissionStatus | str | None = None,
        level: int | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[PartnerCommission], int]:
        """
        List commissions of a partner, newest first.

        Returns:
            Tuple of (items, total_count)
        """
        if page < 1:
            raise ValidationError("Номер страницы должен быть положительным")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        status_value = None
        if status is not None:
            try:
                status_value = CommissionStatus(status).value
            except ValueError:
                raise ValidationError(f"Неизвестный статус комиссии: {status}") from None

        return await self.commission_repo.find_paginated(
            page=page,
            per_page=limit,
            partner_id=partner_id,
            status=status_value,
            level=level,
        )
