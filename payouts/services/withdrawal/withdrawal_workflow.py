"""
Withdrawal workflow.

Creates withdrawal requests and moves them through the state machine.
Creation and completion run under the partner balance lock; every
transition locks the withdrawal row and writes an audit entry in the
same transaction.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.models import TaxBreakdown
from earnings_calculator.core.tax import TaxCalculator
from earnings_calculator.types import TaxStatus
from earnings_calculator.utils.formatters import format_money
from payouts.config.policy import PayoutPolicy
from payouts.models.enums import AuditAction, CommissionStatus, WithdrawalStatus
from payouts.models.withdrawal_request import WithdrawalRequest
from payouts.repositories.audit_log_repository import AuditLogRepository
from payouts.repositories.partner_commission_repository import (
    PartnerCommissionRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.repositories.withdrawal_request_repository import (
    WithdrawalRequestRepository,
)
from payouts.schemas.withdrawal import (
    BankAccountPaymentDetails,
    CardPaymentDetails,
    WithdrawalPreview,
    parse_payment_details,
)
from payouts.services.base_service import (
    BaseService,
    policy_max_retries,
    policy_retry_delay,
    transaction,
)
from payouts.services.partner.balance_ledger import BalanceLedger
from payouts.services.withdrawal.state_machine import ensure_transition
from payouts.utils.datetime_utils import utc_now
from payouts.utils.db_decorators import retry_on_conflict
from payouts.utils.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)


ENTITY_TYPE = "withdrawal_request"


def _snapshot(withdrawal: WithdrawalRequest) -> dict[str, Any]:
    return {
        "status": withdrawal.status,
        "amount": withdrawal.amount,
        "net_amount": withdrawal.net_amount,
        "version": withdrawal.version,
    }


class WithdrawalWorkflow(BaseService):
    """
    Withdrawal request lifecycle.

    PENDING -> APPROVED -> PROCESSING -> COMPLETED, with PENDING or
    APPROVED -> REJECTED. Amounts are gross kopecks; the reservation is the
    gross amount and stays in place until REJECTED.
    """

    def __init__(
        self,
        session: AsyncSession,
        policy: PayoutPolicy | None = None,
        tax_calculator: TaxCalculator | None = None,
    ) -> None:
        """
        Initialize withdrawal workflow.

        Args:
            session: Async database session
            policy: Business policy
            tax_calculator: Calculator shared with the preview path
        """
        super().__init__(session, policy)
        self.tax_calculator = tax_calculator or TaxCalculator(self.policy.tax_rates)
        self.ledger = BalanceLedger(session, self.policy)
        self.user_repo = UserRepository(session)
        self.withdrawal_repo = WithdrawalRequestRepository(session)
        self.commission_repo = PartnerCommissionRepository(session)
        self.audit_repo = AuditLogRepository(session)

    # ------------------------------------------------------------------
    # Validation helpers

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Сумма должна быть целым числом копеек")
        if amount < 0:
            raise ValidationError("Сумма не может быть отрицательной")

    def _check_minimum(self, amount: int) -> None:
        if amount < self.policy.minimum_withdrawal:
            raise ValidationError(
                f"Минимальная сумма вывода: "
                f"{format_money(self.policy.minimum_withdrawal)}"
            )

    def _coerce_tax_status(self, tax_status: TaxStatus | str) -> TaxStatus:
        try:
            return TaxStatus(tax_status)
        except ValueError:
            raise ValidationError(f"Неизвестный налоговый статус: {tax_status}") from None

    def calculate_tax(self, amount: int, tax_status: TaxStatus | str) -> TaxBreakdown:
        """
        Calculate withholding tax for a gross amount.

        Used both for preview and for authoritative creation.

        Raises:
            ValidationError: Negative amount or unknown tax status
        """
        self._validate_amount(amount)
        status = self._coerce_tax_status(tax_status)
        try:
            return self.tax_calculator.calculate(amount, status)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    async def _get_locked(self, withdrawal_id: int) -> WithdrawalRequest:
        withdrawal = await self.withdrawal_repo.get_for_update(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError(f"Заявка на вывод #{withdrawal_id} не найдена")
        return withdrawal

    # ------------------------------------------------------------------
    # Creation

    async def preview(
        self, partner_id: int, amount: int, tax_status: TaxStatus | str
    ) -> WithdrawalPreview:
        """
        Preview a withdrawal without writing anything.

        Below-minimum and above-balance amounts are reported through
        can_withdraw rather than raised.

        Args:
            partner_id: Partner ID
            amount: Gross amount in kopecks
            tax_status: Recipient tax status

        Returns:
            WithdrawalPreview
        """
        breakdown = self.calculate_tax(amount, tax_status)
        available = await self.ledger.available_balance(partner_id)

        return WithdrawalPreview(
            amount=breakdown.gross_amount,
            tax_status=breakdown.tax_status,
            tax_rate=breakdown.tax_rate,
            tax_amount=breakdown.tax_amount,
            net_amount=breakdown.net_amount,
            available_balance=available,
            minimum_withdrawal=self.policy.minimum_withdrawal,
            can_withdraw=self.policy.minimum_withdrawal <= amount <= available,
        )

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def create(
        self,
        partner_id: int,
        amount: int,
        tax_status: TaxStatus | str,
        payment_details: CardPaymentDetails | BankAccountPaymentDetails | dict[str, Any],
    ) -> WithdrawalRequest:
        """
        Create a withdrawal request in PENDING and reserve its amount.

        Args:
            partner_id: Partner ID
            amount: Gross amount in kopecks
            tax_status: Recipient tax status
            payment_details: CARD or BANK_ACCOUNT requisites

        Returns:
            Created WithdrawalRequest

        Raises:
            ValidationError: Amount below minimum or invalid requisites
            InsufficientBalanceError: Amount exceeds available balance
            NotFoundError: Unknown partner
            ConcurrencyConflictError: Lock still contended after retries
        """
        breakdown = self.calculate_tax(amount, tax_status)
        self._check_minimum(amount)
        details = parse_payment_details(payment_details)

        # Per-partner lock: check and reserve must not interleave
        partner = await self.user_repo.lock_balance(partner_id)
        if partner is None:
            raise NotFoundError(f"Партнер #{partner_id} не найден")

        available = await self.ledger.available_balance(partner_id)
        if amount > available:
            raise InsufficientBalanceError(
                f"Недостаточно средств. Доступно: {format_money(available)}, "
                f"запрошено: {format_money(amount)}"
            )

        withdrawal = await self.withdrawal_repo.create(
            partner_id=partner_id,
            amount=breakdown.gross_amount,
            tax_status=breakdown.tax_status.value,
            tax_rate=breakdown.tax_rate,
            tax_amount=breakdown.tax_amount,
            net_amount=breakdown.net_amount,
            payment_method=details.method,
            payment_details=details.model_dump(mode="json"),
            status=WithdrawalStatus.PENDING.value,
        )

        await self.audit_repo.record(
            AuditAction.WITHDRAWAL_CREATED,
            ENTITY_TYPE,
            withdrawal.id,
            actor_id=partner_id,
            new_value=_snapshot(withdrawal),
        )

        self.logger.info(
            "Withdrawal request created",
            extra={
                "withdrawal_id": withdrawal.id,
                "partner_id": partner_id,
                "amount": withdrawal.amount,
                "tax_amount": withdrawal.tax_amount,
                "net_amount": withdrawal.net_amount,
                "tax_status": withdrawal.tax_status,
            },
        )
        return withdrawal

    # ------------------------------------------------------------------
    # Transitions

    async def _apply(
        self,
        withdrawal: WithdrawalRequest,
        target: WithdrawalStatus,
        action: AuditAction,
        admin_id: int | None,
        extra_audit: dict[str, Any] | None = None,
        **changes: Any,
    ) -> WithdrawalRequest:
        ensure_transition(
            WithdrawalStatus(withdrawal.status),
            target,
            require_processing=self.policy.withdrawal_require_processing,
        )
        old_value = _snapshot(withdrawal)

        withdrawal.status = target.value
        for key, value in changes.items():
            setattr(withdrawal, key, value)
        # Version check: a stale row raises StaleDataError here
        await self.session.flush()

        new_value = _snapshot(withdrawal)
        if extra_audit:
            new_value.update(extra_audit)
        await self.audit_repo.record(
            action,
            ENTITY_TYPE,
            withdrawal.id,
            actor_id=admin_id,
            old_value=old_value,
            new_value=new_value,
        )

        self.logger.info(
            f"Withdrawal {old_value['status']} -> {target.value}",
            extra={
                "withdrawal_id": withdrawal.id,
                "partner_id": withdrawal.partner_id,
                "admin_id": admin_id,
                "amount": withdrawal.amount,
            },
        )
        return withdrawal

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def approve(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """
        Approve a PENDING withdrawal. The reservation persists.

        Raises:
            NotFoundError: Unknown withdrawal
            InvalidStateError: Withdrawal is not PENDING
        """
        withdrawal = await self._get_locked(withdrawal_id)
        return await self._apply(
            withdrawal,
            WithdrawalStatus.APPROVED,
            AuditAction.WITHDRAWAL_APPROVED,
            admin_id,
            approved_at=utc_now(),
            approved_by=admin_id,
        )

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def begin_processing(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """
        Hand an APPROVED withdrawal to the payment processor.

        Raises:
            NotFoundError: Unknown withdrawal
            InvalidStateError: Withdrawal is not APPROVED
        """
        withdrawal = await self._get_locked(withdrawal_id)
        return await self._apply(
            withdrawal,
            WithdrawalStatus.PROCESSING,
            AuditAction.WITHDRAWAL_PROCESSING,
            admin_id,
            processing_started_at=utc_now(),
        )

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def complete(
        self, withdrawal_id: int, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """
        Mark a withdrawal as paid out.

        Valid from PROCESSING, and from APPROVED unless the policy requires
        PROCESSING. The reservation becomes a permanent debit, so the
        available balance does not change. The partner's oldest APPROVED
        commissions are marked PAID until PAID covers everything withdrawn.

        Raises:
            NotFoundError: Unknown withdrawal
            InvalidStateError: Transition not allowed
        """
        withdrawal = await self._get_locked(withdrawal_id)
        await self.user_repo.lock_balance(withdrawal.partner_id)

        now = utc_now()
        withdrawal = await self._apply(
            withdrawal,
            WithdrawalStatus.COMPLETED,
            AuditAction.WITHDRAWAL_COMPLETED,
            admin_id,
            processed_at=now,
            processed_by=admin_id,
        )

        paid_ids = await self._settle_commissions(withdrawal, now)
        if paid_ids:
            await self.audit_repo.record(
                AuditAction.COMMISSION_PAID,
                ENTITY_TYPE,
                withdrawal.id,
                actor_id=admin_id,
                new_value={"commission_ids": paid_ids},
            )
            self.logger.info(
                "Commissions marked as paid",
                extra={
                    "withdrawal_id": withdrawal.id,
                    "partner_id": withdrawal.partner_id,
                    "count": len(paid_ids),
                },
            )
        return withdrawal

    async def _settle_commissions(
        self, withdrawal: WithdrawalRequest, now: datetime
    ) -> list[int]:
        commissions = await self.commission_repo.sum_by_status(withdrawal.partner_id)
        withdrawals = await self.withdrawal_repo.sum_by_status(withdrawal.partner_id)

        paid_total = commissions[CommissionStatus.PAID.value]
        withdrawn_total = withdrawals[WithdrawalStatus.COMPLETED.value]

        paid_ids: list[int] = []
        if paid_total >= withdrawn_total:
            return paid_ids

        for commission in await self.commission_repo.find_approved_oldest_first(
            withdrawal.partner_id
        ):
            if paid_total >= withdrawn_total:
                break
            commission.status = CommissionStatus.PAID.value
            commission.paid_at = now
            commission.withdrawal_id = withdrawal.id
            paid_total += commission.amount
            paid_ids.append(commission.id)

        await self.session.flush()
        return paid_ids

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def reject(
        self, withdrawal_id: int, reason: str, admin_id: int | None = None
    ) -> WithdrawalRequest:
        """
        Reject a PENDING or APPROVED withdrawal and release its reservation.

        Args:
            withdrawal_id: Withdrawal ID
            reason: Rejection reason shown to the partner
            admin_id: Admin performing the action

        Raises:
            ValidationError: Reason shorter than the policy minimum
            NotFoundError: Unknown withdrawal
            InvalidStateError: Withdrawal is not PENDING or APPROVED
        """
        reason = (reason or "").strip()
        if len(reason) < self.policy.rejection_reason_min_length:
            raise ValidationError(
                f"Причина отклонения должна содержать минимум "
                f"{self.policy.rejection_reason_min_length} символов",
                error_code="rejection_reason_too_short",
            )

        withdrawal = await self._get_locked(withdrawal_id)
        return await self._apply(
            withdrawal,
            WithdrawalStatus.REJECTED,
            AuditAction.WITHDRAWAL_REJECTED,
            admin_id,
            extra_audit={"reason": reason},
            rejection_reason=reason,
            processed_at=utc_now(),
            processed_by=admin_id,
        )
