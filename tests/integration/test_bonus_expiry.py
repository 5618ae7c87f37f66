"""Integration tests for the bonus expiry sweep."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from jobs.tasks.bonus_expiry import sweep_expired_bonuses_async
from payouts.models import AuditAction, BonusTransaction, BonusTransactionType
from payouts.repositories import AuditLogRepository
from payouts.services import BonusExpiryPolicy, BonusService
from payouts.utils.datetime_utils import utc_now
from payouts.utils.exceptions import ValidationError


@pytest.fixture
def expiry(session, policy) -> BonusExpiryPolicy:
    return BonusExpiryPolicy(session, policy)


@pytest.fixture
def bonuses(session, policy) -> BonusService:
    return BonusService(session, policy)


async def _expired_rows(session, user_id: int) -> list[BonusTransaction]:
    result = await session.execute(
        select(BonusTransaction).where(
            BonusTransaction.user_id == user_id,
            BonusTransaction.type == BonusTransactionType.EXPIRED.value,
        )
    )
    return list(result.scalars().all())


class TestSweep:
    """sweep_expired_bonuses."""

    @pytest.mark.asyncio
    async def test_unspent_grant_expires(self, session, expiry, bonuses, make_user, add_bonus):
        """Whole grant is debited and marked."""
        user = await make_user()
        user_id = user.id
        grant = await add_bonus(user_id, 1_000, expires_in_days=10)

        count = await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=11))

        assert count == 1
        rows = await _expired_rows(session, user_id)
        assert [r.amount for r in rows] == [-1_000]
        await session.refresh(grant)
        assert grant.expired_at is not None
        assert grant.expired_by_id == rows[0].id
        assert (await bonuses.get_balance(user_id)).balance == 0

    @pytest.mark.asyncio
    async def test_not_yet_due(self, session, expiry, make_user, add_bonus):
        """Grants expiring after as_of are untouched."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 1_000, expires_in_days=10)

        assert await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=5)) == 0
        assert await _expired_rows(session, user_id) == []

    @pytest.mark.asyncio
    async def test_idempotent(self, session, expiry, make_user, add_bonus):
        """Second run with the same cutoff changes nothing."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 1_000, expires_in_days=1)
        as_of = utc_now() + timedelta(days=2)

        assert await expiry.sweep_expired_bonuses(as_of) == 1
        assert await expiry.sweep_expired_bonuses(as_of) == 0
        assert len(await _expired_rows(session, user_id)) == 1

    @pytest.mark.asyncio
    async def test_partly_spent_grant_capped(
        self, session, expiry, bonuses, make_user, add_bonus
    ):
        """Only what is left is debited; balance never goes negative."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 1_000, expires_in_days=10)
        await bonuses.spend(user_id, 700, reference_id="order-1")

        await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=11))

        rows = await _expired_rows(session, user_id)
        assert [r.amount for r in rows] == [-300]
        balance = await bonuses.get_balance(user_id)
        assert balance.balance == 0
        assert balance.lifetime_expired == 300

    @pytest.mark.asyncio
    async def test_earliest_expiry_first(
        self, session, expiry, bonuses, make_user, add_bonus
    ):
        """Remaining balance is consumed by the earliest grant."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 500, expires_in_days=20)
        await add_bonus(user_id, 1_000, expires_in_days=10)
        await bonuses.spend(user_id, 1_200, reference_id="order-1")

        count = await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=30))

        assert count == 2
        rows = await _expired_rows(session, user_id)
        assert [r.amount for r in rows] == [-300]
        assert (await bonuses.get_balance(user_id)).balance == 0

    @pytest.mark.asyncio
    async def test_active_grants_survive(
        self, session, expiry, bonuses, make_user, add_bonus
    ):
        """Expiring one grant leaves later ones usable."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 1_000, expires_in_days=10)
        await add_bonus(user_id, 400, expires_in_days=60)

        await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=11))

        balance = await bonuses.get_balance(user_id)
        assert balance.balance == 400
        assert balance.active_balance == 400

    @pytest.mark.asyncio
    async def test_audited(self, session, expiry, make_user, add_bonus):
        """Each processed user gets a BONUS_EXPIRED entry."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 1_000, expires_in_days=1)

        await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=2))

        entries = await AuditLogRepository(session).find_for_entity("user", user_id)
        assert [e.action for e in entries] == [AuditAction.BONUS_EXPIRED.value]
        assert entries[0].new_value["debited"] == 1_000

    @pytest.mark.asyncio
    async def test_job_entry_point(self, session, session_maker, policy, make_user, add_bonus):
        """The job helper runs the sweep in its own session."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 250, expires_in_days=1)

        count = await sweep_expired_bonuses_async(
            session_maker, utc_now() + timedelta(days=2), policy
        )

        assert count == 1
        assert [r.amount for r in await _expired_rows(session, user_id)] == [-250]


class TestExpiringWithin:
    """expiring_within."""

    @pytest.mark.asyncio
    async def test_window(self, expiry, make_user, add_bonus):
        """Only grants inside the window are reported."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 100, expires_in_days=5)
        await add_bonus(user_id, 200, expires_in_days=20)
        await add_bonus(user_id, 400, expires_in_days=60)

        summary = await expiry.expiring_within(user_id, days=30)

        assert summary.total == 300
        assert summary.window_days == 30
        assert [item.amount for item in summary.items] == [100, 200]

    @pytest.mark.asyncio
    async def test_swept_grants_excluded(self, expiry, make_user, add_bonus):
        """Already expired grants are not reported."""
        user = await make_user()
        user_id = user.id
        await add_bonus(user_id, 100, expires_in_days=1)
        await expiry.sweep_expired_bonuses(utc_now() + timedelta(days=2))

        summary = await expiry.expiring_within(
            user_id, days=30, now=utc_now() - timedelta(days=1)
        )

        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_negative_window(self, expiry):
        """Negative window is invalid."""
        with pytest.raises(ValidationError):
            await expiry.expiring_within(1, days=-1)
