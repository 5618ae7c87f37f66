"""
Bonus service.

Credits, debits and balances of the platform bonus currency, conversion
of bonuses to currency and the one-off referral bonus.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from earnings_calculator.core.models import TaxBreakdown
from earnings_calculator.core.money import apply_rate
from earnings_calculator.core.tax import TaxCalculator
from earnings_calculator.types import TaxStatus
from earnings_calculator.utils.formatters import format_money
from payouts.config.business_constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from payouts.config.policy import PayoutPolicy
from payouts.models.bonus_transaction import BonusTransaction
from payouts.models.enums import AuditAction, BonusSource, BonusTransactionType
from payouts.repositories.audit_log_repository import AuditLogRepository
from payouts.repositories.bonus_transaction_repository import (
    BonusTransactionRepository,
)
from payouts.repositories.partner_relationship_repository import (
    PartnerRelationshipRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.schemas.bonus import (
    BonusBalance,
    BonusWithdrawalPreview,
    BonusWithdrawalResult,
)
from payouts.schemas.withdrawal import (
    BankAccountPaymentDetails,
    CardPaymentDetails,
    parse_payment_details,
)
from payouts.services.base_service import (
    BaseService,
    policy_max_retries,
    policy_retry_delay,
    transaction,
)
from payouts.utils.datetime_utils import ensure_utc, utc_now
from payouts.utils.db_decorators import retry_on_conflict
from payouts.utils.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Сумма должна быть положительной")


# Reference type of the one-off referral bonus, referenced by the referral id
REFERRAL_FIRST_PURCHASE = "ReferralFirstPurchase"


class BonusService(BaseService):
    """Bonus ledger operations."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize bonus service."""
        super().__init__(session, policy)
        self.bonus_repo = BonusTransactionRepository(session)
        self.user_repo = UserRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.relationship_repo = PartnerRelationshipRepository(session)
        self.tax_calculator = TaxCalculator(self.policy.tax_rates)

    async def _lock_user(self, user_id: int) -> None:
        if await self.user_repo.lock_balance(user_id) is None:
            raise NotFoundError(f"Пользователь #{user_id} не найден")

    async def _active_balance(self, user_id: int, now: datetime) -> int:
        balance = await self.bonus_repo.get_balance(user_id)
        overdue = await self.bonus_repo.sum_overdue(user_id, now)
        return max(0, balance - overdue)

    @transaction
    async def earn(
        self,
        user_id: int,
        amount: int,
        source: BonusSource | str,
        expiry_days: int | None = None,
        description: str | None = None,
        reference_id: str | None = None,
        reference_type: str | None = None,
    ) -> BonusTransaction:
        """
        Credit bonuses that expire after expiry_days.

        Args:
            user_id: Bonus holder
            amount: Positive amount in kopecks
            source: Origin of the bonus
            expiry_days: Lifetime in days (policy default if omitted)
            description: Human-readable description
            reference_id: External reference
            reference_type: Kind of reference

        Returns:
            EARNED transaction
        """
        _require_positive(amount)
        try:
            source = BonusSource(source)
        except ValueError:
            raise ValidationError(f"Неизвестный источник бонуса: {source}") from None

        days = self.policy.bonus_default_expiry_days if expiry_days is None else expiry_days
        if days <= 0:
            raise ValidationError("Срок действия бонуса должен быть положительным")

        if await self.user_repo.get_by_id(user_id) is None:
            raise NotFoundError(f"Пользователь #{user_id} не найден")

        transaction_ = await self.bonus_repo.create(
            user_id=user_id,
            type=BonusTransactionType.EARNED.value,
            source=source.value,
            amount=amount,
            expires_at=utc_now() + timedelta(days=days),
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
        )

        self.logger.info(
            "Bonus earned",
            extra={
                "user_id": user_id,
                "amount": amount,
                "source": source.value,
                "expiry_days": days,
            },
        )
        return transaction_

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def spend(
        self,
        user_id: int,
        amount: int,
        reference_id: str,
        reference_type: str | None = None,
        description: str | None = None,
    ) -> BonusTransaction:
        """
        Debit bonuses from the active balance.

        Raises:
            ValidationError: Non-positive amount
            InsufficientBalanceError: Active balance is lower than amount
        """
        _require_positive(amount)
        await self._lock_user(user_id)

        active = await self._active_balance(user_id, utc_now())
        if amount > active:
            raise InsufficientBalanceError(
                f"Недостаточно бонусов. Доступно: {format_money(active)}, "
                f"требуется: {format_money(amount)}"
            )

        transaction_ = await self.bonus_repo.create(
            user_id=user_id,
            type=BonusTransactionType.SPENT.value,
            amount=-amount,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
        )

        self.logger.info(
            "Bonus spent",
            extra={"user_id": user_id, "amount": amount, "reference_id": reference_id},
        )
        return transaction_

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def adjust(
        self,
        user_id: int,
        signed_amount: int,
        reason: str,
        admin_id: int,
    ) -> BonusTransaction:
        """
        Manual correction by an admin.

        A debit may not exceed the active balance. Credits do not expire.

        Args:
            user_id: Bonus holder
            signed_amount: Positive to credit, negative to debit
            reason: Why the correction is made
            admin_id: Admin performing the correction

        Returns:
            ADJUSTMENT transaction
        """
        if isinstance(signed_amount, bool) or not isinstance(signed_amount, int) or signed_amount == 0:
            raise ValidationError("Сумма корректировки не может быть нулевой")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Укажите причину корректировки")

        await self._lock_user(user_id)

        if signed_amount < 0:
            active = await self._active_balance(user_id, utc_now())
            if -signed_amount > active:
                raise InsufficientBalanceError(
                    f"Недостаточно бонусов для списания. Доступно: "
                    f"{format_money(active)}"
                )

        transaction_ = await self.bonus_repo.create(
            user_id=user_id,
            type=BonusTransactionType.ADJUSTMENT.value,
            amount=signed_amount,
            description=reason,
            created_by=admin_id,
        )

        await self.audit_repo.record(
            AuditAction.BONUS_ADJUSTED,
            "bonus_transaction",
            transaction_.id,
            actor_id=admin_id,
            new_value={"user_id": user_id, "amount": signed_amount, "reason": reason},
        )

        self.logger.info(
            "Bonus adjusted",
            extra={"user_id": user_id, "amount": signed_amount, "admin_id": admin_id},
        )
        return transaction_

    async def get_balance(
        self, user_id: int, now: datetime | None = None
    ) -> BonusBalance:
        """
        Get bonus balance of a user.

        active_balance excludes grants already past expiry that the sweep
        has not processed yet.
        """
        now = ensure_utc(now) if now else utc_now()
        totals = await self.bonus_repo.sum_by_type(user_id)
        balance = sum(totals.values())
        overdue = await self.bonus_repo.sum_overdue(user_id, now)

        return BonusBalance(
            balance=balance,
            active_balance=max(0, balance - overdue),
            lifetime_earned=totals[BonusTransactionType.EARNED.value],
            lifetime_spent=-(
                totals[BonusTransactionType.SPENT.value]
                + totals[BonusTransactionType.WITHDRAWN.value]
            ),
            lifetime_expired=-totals[BonusTransactionType.EXPIRED.value],
        )

    async def get_transaction_history(
        self,
        user_id: int,
        type: BonusTransactionType | str | None = None,
        source: BonusSource | str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[BonusTransaction], int]:
        """
        Get bonus ledger entries of a user, newest first.

        Args:
            user_id: Bonus holder
            type: Only entries of this type
            source: Only entries from this source
            from_date: Created at or after
            to_date: Created at or before
            page: Page number (1-indexed)
            limit: Page size (capped at MAX_PAGE_SIZE)

        Returns:
            Tuple of (items, total_count)
        """
        if page < 1:
            raise ValidationError("Номер страницы должен быть положительным")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        type_value = source_value = None
        if type is not None:
            try:
                type_value = BonusTransactionType(type).value
            except ValueError:
                raise ValidationError(f"Неизвестный тип операции: {type}") from None
        if source is not None:
            try:
                source_value = BonusSource(source).value
            except ValueError:
                raise ValidationError(f"Неизвестный источник бонуса: {source}") from None

        return await self.bonus_repo.find_history(
            user_id,
            type=type_value,
            source=source_value,
            from_date=ensure_utc(from_date) if from_date else None,
            to_date=ensure_utc(to_date) if to_date else None,
            page=page,
            per_page=limit,
        )

    # ------------------------------------------------------------------
    # Conversion to currency

    def _convert(self, amount: int, tax_status: TaxStatus | str) -> tuple[int, TaxBreakdown]:
        _require_positive(amount)
        try:
            status = TaxStatus(tax_status)
        except ValueError:
            raise ValidationError(f"Неизвестный налоговый статус: {tax_status}") from None

        currency_amount = apply_rate(amount, self.policy.bonus_currency_rate)
        return currency_amount, self.tax_calculator.calculate(currency_amount, status)

    async def preview_withdrawal(
        self, user_id: int, amount: int, tax_status: TaxStatus | str
    ) -> BonusWithdrawalPreview:
        """
        Preview converting bonuses to currency.

        Currency amount is the bonus amount times the conversion rate; tax
        is withheld from the currency amount. Ineligible amounts are
        reported through can_withdraw.
        """
        currency_amount, breakdown = self._convert(amount, tax_status)
        active = await self._active_balance(user_id, utc_now())
        minimum = self.policy.bonus_minimum_withdrawal

        return BonusWithdrawalPreview(
            bonus_amount=amount,
            rate=self.policy.bonus_currency_rate,
            currency_amount=currency_amount,
            tax_status=breakdown.tax_status,
            tax_rate=breakdown.tax_rate,
            tax_amount=breakdown.tax_amount,
            net_amount=breakdown.net_amount,
            active_balance=active,
            minimum_withdrawal=minimum,
            can_withdraw=minimum <= amount <= active,
        )

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def withdraw_to_currency(
        self,
        user_id: int,
        amount: int,
        tax_status: TaxStatus | str,
        payment_details: CardPaymentDetails | BankAccountPaymentDetails | dict[str, Any],
    ) -> BonusWithdrawalResult:
        """
        Convert bonuses to currency for payout.

        Writes one WITHDRAWN entry carrying the conversion figures and the
        requisites, under the user lock.

        Args:
            user_id: Bonus holder
            amount: Bonuses to convert, in kopecks
            tax_status: Recipient tax status
            payment_details: CARD or BANK_ACCOUNT requisites

        Returns:
            BonusWithdrawalResult

        Raises:
            ValidationError: Below minimum, unknown tax status or bad requisites
            InsufficientBalanceError: Amount exceeds the active bonus balance
            NotFoundError: Unknown user
        """
        currency_amount, breakdown = self._convert(amount, tax_status)
        if amount < self.policy.bonus_minimum_withdrawal:
            raise ValidationError(
                f"Минимальная сумма вывода бонусов: "
                f"{format_money(self.policy.bonus_minimum_withdrawal)}"
            )
        details = parse_payment_details(payment_details)

        await self._lock_user(user_id)

        active = await self._active_balance(user_id, utc_now())
        if amount > active:
            raise InsufficientBalanceError(
                f"Недостаточно бонусов. Доступно: {format_money(active)}, "
                f"запрошено: {format_money(amount)}"
            )

        figures = {
            "currency_amount": currency_amount,
            "rate": str(self.policy.bonus_currency_rate),
            "tax_status": breakdown.tax_status.value,
            "tax_rate": str(breakdown.tax_rate),
            "tax_amount": breakdown.tax_amount,
            "net_amount": breakdown.net_amount,
        }
        transaction_ = await self.bonus_repo.create(
            user_id=user_id,
            type=BonusTransactionType.WITHDRAWN.value,
            amount=-amount,
            description="Вывод бонусов в рубли",
            reference_type="BonusWithdrawal",
            details={**figures, "payment_details": details.model_dump(mode="json")},
        )

        await self.audit_repo.record(
            AuditAction.BONUS_WITHDRAWN,
            "bonus_transaction",
            transaction_.id,
            actor_id=user_id,
            new_value={"user_id": user_id, "bonus_amount": amount, **figures},
        )

        self.logger.info(
            "Bonuses withdrawn to currency",
            extra={
                "user_id": user_id,
                "bonus_amount": amount,
                "currency_amount": currency_amount,
                "net_amount": breakdown.net_amount,
            },
        )
        return BonusWithdrawalResult(
            transaction_id=transaction_.id,
            bonus_amount=amount,
            rate=self.policy.bonus_currency_rate,
            currency_amount=currency_amount,
            tax_status=breakdown.tax_status,
            tax_amount=breakdown.tax_amount,
            net_amount=breakdown.net_amount,
        )

    # ------------------------------------------------------------------
    # Referral bonus

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def grant_referral_bonus(
        self, referral_user_id: int, purchase_amount: int
    ) -> BonusTransaction | None:
        """
        Credit the direct referrer for a referral's first purchase.

        Granted at most once per referred user; later purchases, users
        without a referrer and zero amounts grant nothing.

        Args:
            referral_user_id: User who made the purchase
            purchase_amount: Purchase amount in kopecks

        Returns:
            EARNED transaction of the referrer, or None
        """
        _require_positive(purchase_amount)

        referrer_id = await self.relationship_repo.get_referrer_id(referral_user_id)
        if referrer_id is None:
            return None

        # Lock serialises concurrent grants for the same referrer
        await self._lock_user(referrer_id)
        if await self.bonus_repo.exists(
            user_id=referrer_id,
            source=BonusSource.REFERRAL_BONUS.value,
            reference_id=str(referral_user_id),
            reference_type=REFERRAL_FIRST_PURCHASE,
        ):
            return None

        amount = apply_rate(purchase_amount, self.policy.referral_bonus_rate)
        if amount <= 0:
            return None

        grant = await self.bonus_repo.create(
            user_id=referrer_id,
            type=BonusTransactionType.EARNED.value,
            source=BonusSource.REFERRAL_BONUS.value,
            amount=amount,
            expires_at=utc_now() + timedelta(days=self.policy.bonus_default_expiry_days),
            description="Бонус за первую покупку приглашенного пользователя",
            reference_id=str(referral_user_id),
            reference_type=REFERRAL_FIRST_PURCHASE,
        )

        self.logger.info(
            "Referral bonus granted",
            extra={
                "referrer_id": referrer_id,
                "referral_user_id": referral_user_id,
                "amount": amount,
            },
        )
        return grant
