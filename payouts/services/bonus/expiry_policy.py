"""
Bonus expiry policy.

Materialises expired grants as EXPIRED ledger entries. Safe to re-run:
every EARNED row is expired at most once.
"""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from payouts.config.business_constants import BONUS_EXPIRY_WARNING_DAYS
from payouts.config.policy import PayoutPolicy
from payouts.models.bonus_transaction import BonusTransaction
from payouts.models.enums import AuditAction, BonusTransactionType
from payouts.repositories.audit_log_repository import AuditLogRepository
from payouts.repositories.bonus_transaction_repository import (
    BonusTransactionRepository,
)
from payouts.repositories.user_repository import UserRepository
from payouts.schemas.bonus import ExpiringBonus, ExpiringBonusSummary
from payouts.services.base_service import (
    BaseService,
    log_operation,
    policy_max_retries,
    policy_retry_delay,
    transaction,
)
from payouts.utils.datetime_utils import ensure_utc, utc_now
from payouts.utils.db_decorators import retry_on_conflict
from payouts.utils.exceptions import ConcurrencyConflictError, ValidationError


class BonusExpiryPolicy(BaseService):
    """Scheduled expiry of bonus grants."""

    def __init__(
        self, session: AsyncSession, policy: PayoutPolicy | None = None
    ) -> None:
        """Initialize bonus expiry policy."""
        super().__init__(session, policy)
        self.bonus_repo = BonusTransactionRepository(session)
        self.user_repo = UserRepository(session)
        self.audit_repo = AuditLogRepository(session)

    @log_operation
    async def sweep_expired_bonuses(self, as_of: datetime | None = None) -> int:
        """
        Expire every EARNED grant with expires_at <= as_of.

        Each user is processed in its own transaction under the user lock.
        A user whose lock stays contended is skipped and picked up by the
        next run.

        Args:
            as_of: Cutoff (now if omitted)

        Returns:
            Number of EARNED grants expired by this run
        """
        as_of = ensure_utc(as_of) if as_of else utc_now()
        user_ids = await self.bonus_repo.find_users_with_overdue(as_of)

        expired = 0
        for user_id in user_ids:
            try:
                expired += await self._expire_for_user(user_id, as_of)
            except ConcurrencyConflictError:
                self.logger.warning(
                    "Bonus expiry skipped, user is locked",
                    extra={"user_id": user_id},
                )

        self.logger.info(
            "Bonus expiry sweep finished",
            extra={
                "as_of": as_of.isoformat(),
                "users": len(user_ids),
                "expired": expired,
            },
        )
        return expired

    @retry_on_conflict(max_retries=policy_max_retries, base_delay=policy_retry_delay)
    @transaction
    async def _expire_for_user(self, user_id: int, as_of: datetime) -> int:
        if await self.user_repo.lock_balance(user_id) is None:
            return 0

        grants = await self.bonus_repo.find_overdue(user_id, as_of)
        balance = await self.bonus_repo.get_balance(user_id)
        now = utc_now()

        debited = 0
        for grant in grants:
            # Never debit below zero: the grant may be partly spent already
            debit = min(grant.amount, balance)
            expired_tx = None
            if debit > 0:
                expired_tx = BonusTransaction(
                    user_id=user_id,
                    type=BonusTransactionType.EXPIRED.value,
                    source=grant.source,
                    amount=-debit,
                    description=f"Истек срок действия бонуса #{grant.id}",
                    reference_id=str(grant.id),
                    reference_type="bonus_transaction",
                )
                self.session.add(expired_tx)
                await self.session.flush()
                balance -= debit
                debited += debit

            grant.expired_at = now
            grant.expired_by_id = expired_tx.id if expired_tx else None

        await self.session.flush()

        if grants:
            await self.audit_repo.record(
                AuditAction.BONUS_EXPIRED,
                "user",
                user_id,
                new_value={
                    "grant_ids": [grant.id for grant in grants],
                    "debited": debited,
                    "as_of": as_of.isoformat(),
                },
            )
            self.logger.info(
                "Bonuses expired",
                extra={"user_id": user_id, "grants": len(grants), "debited": debited},
            )
        return len(grants)

    async def expiring_within(
        self,
        user_id: int,
        days: int = BONUS_EXPIRY_WARNING_DAYS,
        now: datetime | None = None,
    ) -> ExpiringBonusSummary:
        """
        Sum active grants with expires_at in [now, now + days].

        Read only; used for UI warnings.
        """
        if days < 0:
            raise ValidationError("Период не может быть отрицательным")

        now = ensure_utc(now) if now else utc_now()
        grants = await self.bonus_repo.find_expiring_between(
            user_id, now, now + timedelta(days=days)
        )
        items = [
            ExpiringBonus(
                transaction_id=grant.id,
                amount=grant.amount,
                expires_at=ensure_utc(grant.expires_at),
            )
            for grant in grants
        ]
        return ExpiringBonusSummary(
            total=sum(item.amount for item in items),
            window_days=days,
            items=items,
        )
