"""
Integration tests for the withdrawal workflow.

Run against in-memory SQLite; row locks are no-ops there, the version
column still guards concurrent writers. Simultaneous requests run on a
file database so each session gets its own connection.
"""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payouts.config.policy import PayoutPolicy
from payouts.models import (
    AuditAction,
    Base,
    CommissionStatus,
    PartnerCommission,
    User,
    WithdrawalRequest,
    WithdrawalStatus,
)
from payouts.repositories import AuditLogRepository
from payouts.services import BalanceLedger, WithdrawalWorkflow
from payouts.services.withdrawal.withdrawal_workflow import ENTITY_TYPE
from payouts.utils.exceptions import (
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def small_policy() -> PayoutPolicy:
    """Policy with a low minimum so small amounts pass."""
    return PayoutPolicy(minimum_withdrawal=1000, retry_base_delay=0)


@pytest.fixture
def workflow(session, small_policy) -> WithdrawalWorkflow:
    return WithdrawalWorkflow(session, small_policy)


@pytest.fixture
def ledger(session, small_policy) -> BalanceLedger:
    return BalanceLedger(session, small_policy)


@pytest_asyncio.fixture
async def partner_id(make_user, add_commission) -> int:
    """ID of a partner with 10 000 kopecks of approved commissions."""
    partner = await make_user()
    await add_commission(partner.id, 10_000)
    return partner.id


class TestCreateWithdrawal:
    """Withdrawal creation."""

    @pytest.mark.asyncio
    async def test_create_reserves_amount(
        self, workflow, ledger, partner_id, card_details
    ):
        """PENDING request with tax breakdown; available drops by gross."""
        withdrawal = await workflow.create(
            partner_id, 5_000, "SELF_EMPLOYED", card_details
        )

        assert withdrawal.status == WithdrawalStatus.PENDING.value
        assert withdrawal.amount == 5_000
        assert withdrawal.tax_rate == Decimal("0.04")
        assert withdrawal.tax_amount == 200
        assert withdrawal.net_amount == 4_800
        assert withdrawal.payment_method == "CARD"
        assert withdrawal.payment_details["card_number"] == "4276160000000000"

        balance = await ledger.get_available_balance(partner_id)
        assert balance.available == 5_000
        assert balance.pending_withdrawals == 5_000

    @pytest.mark.asyncio
    async def test_tax_scenario(self, workflow, make_user, add_commission, card_details):
        """1000 for a self-employed partner: tax 40, net 960."""
        partner = await make_user()
        await add_commission(partner.id, 1_000)

        withdrawal = await workflow.create(
            partner.id, 1_000, "SELF_EMPLOYED", card_details
        )

        assert withdrawal.tax_amount == 40
        assert withdrawal.net_amount == 960

    @pytest.mark.asyncio
    async def test_insufficient_balance(
        self, session, workflow, ledger, make_user, add_commission, card_details
    ):
        """Available 4000, request 5000: error and nothing written."""
        partner = await make_user()
        partner_id = partner.id
        await add_commission(partner_id, 4_000)

        with pytest.raises(InsufficientBalanceError):
            await workflow.create(partner_id, 5_000, "INDIVIDUAL", card_details)

        result = await session.execute(select(WithdrawalRequest))
        assert result.scalars().all() == []
        assert await ledger.available_balance(partner_id) == 4_000

    @pytest.mark.asyncio
    async def test_below_minimum(self, workflow, partner_id, card_details):
        """Amount below the policy minimum is rejected."""
        with pytest.raises(ValidationError, match="Минимальная сумма"):
            await workflow.create(partner_id, 999, "INDIVIDUAL", card_details)

    @pytest.mark.asyncio
    async def test_pending_earnings_not_withdrawable(
        self, workflow, make_user, add_commission, card_details
    ):
        """PENDING commissions do not count towards the balance."""
        partner = await make_user()
        await add_commission(partner.id, 10_000, status=CommissionStatus.PENDING)

        with pytest.raises(InsufficientBalanceError):
            await workflow.create(partner.id, 1_000, "INDIVIDUAL", card_details)

    @pytest.mark.asyncio
    async def test_invalid_payment_details(self, workflow, partner_id):
        """CARD without card number is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            await workflow.create(
                partner_id,
                1_000,
                "INDIVIDUAL",
                {"method": "CARD", "recipient_name": "Иванов Иван"},
            )
        assert exc_info.value.error_code == "invalid_payment_details"

    @pytest.mark.asyncio
    async def test_unknown_tax_status(self, workflow, partner_id, card_details):
        """Unknown tax status is a validation error."""
        with pytest.raises(ValidationError):
            await workflow.create(partner_id, 1_000, "PENSIONER", card_details)

    @pytest.mark.asyncio
    async def test_unknown_partner(self, workflow, card_details):
        """Missing partner row is NotFoundError."""
        with pytest.raises(NotFoundError):
            await workflow.create(9_999, 1_000, "INDIVIDUAL", card_details)

    @pytest.mark.asyncio
    async def test_bank_account_details(self, workflow, partner_id, bank_details):
        """BANK_ACCOUNT requisites are stored as given."""
        withdrawal = await workflow.create(
            partner_id, 1_000, "LEGAL_ENTITY", bank_details
        )

        assert withdrawal.payment_method == "BANK_ACCOUNT"
        assert withdrawal.payment_details["bik"] == "044525225"
        assert withdrawal.tax_amount == 0
        assert withdrawal.net_amount == 1_000

    @pytest.mark.asyncio
    async def test_sequential_requests_cannot_overdraw(
        self, workflow, partner_id, card_details
    ):
        """Second request sees the first reservation."""
        await workflow.create(partner_id, 6_000, "INDIVIDUAL", card_details)

        with pytest.raises(InsufficientBalanceError):
            await workflow.create(partner_id, 6_000, "INDIVIDUAL", card_details)

    @pytest.mark.asyncio
    async def test_creation_audited(
        self, session, workflow, partner_id, card_details
    ):
        """Creation writes WITHDRAWAL_CREATED."""
        withdrawal = await workflow.create(
            partner_id, 1_000, "INDIVIDUAL", card_details
        )

        entries = await AuditLogRepository(session).find_for_entity(
            ENTITY_TYPE, withdrawal.id
        )
        assert [e.action for e in entries] == [AuditAction.WITHDRAWAL_CREATED.value]
        assert entries[0].actor_id == partner_id


class TestPreview:
    """Preview never writes and never raises on eligibility."""

    @pytest.mark.asyncio
    async def test_preview_matches_create(
        self, session, workflow, partner_id, card_details
    ):
        """Preview and creation use the same calculation."""
        preview = await workflow.preview(partner_id, 3_333, "INDIVIDUAL")
        withdrawal = await workflow.create(
            partner_id, 3_333, "INDIVIDUAL", card_details
        )

        assert preview.can_withdraw is True
        assert preview.tax_amount == withdrawal.tax_amount == 433
        assert preview.net_amount == withdrawal.net_amount == 2_900

    @pytest.mark.asyncio
    async def test_preview_above_balance(self, session, workflow, partner_id):
        """Above-balance preview reports can_withdraw=False."""
        preview = await workflow.preview(partner_id, 50_000, "INDIVIDUAL")

        assert preview.can_withdraw is False
        assert preview.available_balance == 10_000
        result = await session.execute(select(WithdrawalRequest))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_preview_below_minimum(self, workflow, partner_id):
        """Below-minimum preview reports can_withdraw=False."""
        preview = await workflow.preview(partner_id, 500, "INDIVIDUAL")
        assert preview.can_withdraw is False

    @pytest.mark.asyncio
    async def test_preview_negative_amount(self, workflow, partner_id):
        """Negative amount is invalid input."""
        with pytest.raises(ValidationError):
            await workflow.preview(partner_id, -1, "INDIVIDUAL")


class TestTransitions:
    """State machine transitions."""

    @pytest_asyncio.fixture
    async def pending_id(self, workflow, partner_id, card_details) -> int:
        withdrawal = await workflow.create(
            partner_id, 4_000, "INDIVIDUAL", card_details
        )
        return withdrawal.id

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, workflow, ledger, partner_id, pending_id):
        """PENDING -> APPROVED -> PROCESSING -> COMPLETED keeps available constant."""
        before = await ledger.available_balance(partner_id)

        approved = await workflow.approve(pending_id, admin_id=partner_id)
        assert approved.status == WithdrawalStatus.APPROVED.value
        assert approved.approved_at is not None
        assert await ledger.available_balance(partner_id) == before

        processing = await workflow.begin_processing(pending_id)
        assert processing.status == WithdrawalStatus.PROCESSING.value
        assert processing.processing_started_at is not None
        balance = await ledger.get_available_balance(partner_id)
        assert balance.processing == 4_000
        assert balance.available == before

        completed = await workflow.complete(pending_id)
        assert completed.status == WithdrawalStatus.COMPLETED.value
        assert completed.processed_at is not None
        balance = await ledger.get_available_balance(partner_id)
        assert balance.withdrawn == 4_000
        assert balance.available == before

    @pytest.mark.asyncio
    async def test_complete_from_approved(self, workflow, pending_id):
        """PROCESSING can be skipped by default."""
        await workflow.approve(pending_id)
        completed = await workflow.complete(pending_id)
        assert completed.status == WithdrawalStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_processing_required_by_policy(
        self, session, partner_id, card_details
    ):
        """With the flag set APPROVED -> COMPLETED is refused."""
        strict = WithdrawalWorkflow(
            session,
            PayoutPolicy(
                minimum_withdrawal=1000,
                retry_base_delay=0,
                withdrawal_require_processing=True,
            ),
        )
        withdrawal = await strict.create(
            partner_id, 1_000, "INDIVIDUAL", card_details
        )
        withdrawal_id = withdrawal.id
        await strict.approve(withdrawal_id)

        with pytest.raises(InvalidStateError):
            await strict.complete(withdrawal_id)

        await strict.begin_processing(withdrawal_id)
        completed = await strict.complete(withdrawal_id)
        assert completed.status == WithdrawalStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_reject_after_approve(self, workflow, ledger, partner_id, pending_id):
        """Rejecting an APPROVED request releases the reservation."""
        await workflow.approve(pending_id)
        assert await ledger.available_balance(partner_id) == 6_000

        rejected = await workflow.reject(
            pending_id, "Недостаточно документов для проверки"
        )

        assert rejected.status == WithdrawalStatus.REJECTED.value
        assert rejected.rejection_reason == "Недостаточно документов для проверки"
        assert await ledger.available_balance(partner_id) == 10_000

    @pytest.mark.asyncio
    async def test_reject_reason_too_short(self, workflow, pending_id):
        """Short reason is refused and the request stays PENDING."""
        with pytest.raises(ValidationError) as exc_info:
            await workflow.reject(pending_id, "   нет    ")

        assert exc_info.value.error_code == "rejection_reason_too_short"
        withdrawal = await workflow.withdrawal_repo.get_by_id(pending_id)
        assert withdrawal.status == WithdrawalStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_reject_processing_refused(self, workflow, pending_id):
        """PROCESSING cannot be rejected."""
        await workflow.approve(pending_id)
        await workflow.begin_processing(pending_id)

        with pytest.raises(InvalidStateError):
            await workflow.reject(pending_id, "Передумали выплачивать")

    @pytest.mark.asyncio
    async def test_terminal_states_closed(self, workflow, pending_id):
        """Nothing leaves COMPLETED."""
        await workflow.approve(pending_id)
        completed = await workflow.complete(pending_id)
        assert completed.is_terminal

        with pytest.raises(InvalidStateError):
            await workflow.approve(pending_id)
        with pytest.raises(InvalidStateError):
            await workflow.reject(pending_id, "Слишком поздно отклонять")

    @pytest.mark.asyncio
    async def test_begin_processing_from_pending_refused(self, workflow, pending_id):
        """PENDING -> PROCESSING is not a transition."""
        with pytest.raises(InvalidStateError):
            await workflow.begin_processing(pending_id)

    @pytest.mark.asyncio
    async def test_unknown_withdrawal(self, workflow):
        """Transitions of a missing request raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await workflow.approve(12_345)

    @pytest.mark.asyncio
    async def test_transitions_audited(self, session, workflow, pending_id):
        """Every transition leaves an audit entry."""
        await workflow.approve(pending_id, admin_id=7)
        await workflow.reject(pending_id, "Реквизиты не совпадают", admin_id=7)

        entries = await AuditLogRepository(session).find_for_entity(
            ENTITY_TYPE, pending_id
        )
        assert [e.action for e in entries] == [
            AuditAction.WITHDRAWAL_CREATED.value,
            AuditAction.WITHDRAWAL_APPROVED.value,
            AuditAction.WITHDRAWAL_REJECTED.value,
        ]
        rejected = entries[-1]
        assert rejected.actor_id == 7
        assert rejected.old_value["status"] == WithdrawalStatus.APPROVED.value
        assert rejected.new_value["reason"] == "Реквизиты не совпадают"


class TestCompletionSettlesCommissions:
    """Completion marks commissions as paid."""

    @pytest.mark.asyncio
    async def test_oldest_commissions_paid(
        self, session, workflow, make_user, add_commission, card_details
    ):
        """Oldest approved commissions cover the completed amount."""
        partner = await make_user()
        first = await add_commission(partner.id, 3_000)
        second = await add_commission(partner.id, 3_000)
        third = await add_commission(partner.id, 3_000)

        withdrawal = await workflow.create(partner.id, 5_000, "INDIVIDUAL", card_details)
        await workflow.approve(withdrawal.id)
        await workflow.complete(withdrawal.id)

        result = await session.execute(
            select(PartnerCommission).order_by(PartnerCommission.id)
        )
        statuses = {c.id: c.status for c in result.scalars().all()}
        assert statuses[first.id] == CommissionStatus.PAID.value
        assert statuses[second.id] == CommissionStatus.PAID.value
        assert statuses[third.id] == CommissionStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_paid_commissions_keep_balance(
        self, workflow, ledger, make_user, add_commission, card_details
    ):
        """PAID still counts as earned, so available is unchanged."""
        partner = await make_user()
        await add_commission(partner.id, 3_000)
        await add_commission(partner.id, 3_000)

        withdrawal = await workflow.create(partner.id, 2_000, "INDIVIDUAL", card_details)
        await workflow.approve(withdrawal.id)
        await workflow.complete(withdrawal.id)

        balance = await ledger.get_available_balance(partner.id)
        assert balance.total_earnings == 6_000
        assert balance.withdrawn == 2_000
        assert balance.available == 4_000


class TestReservationConservation:
    """available + reserved + withdrawn == total_earnings."""

    @pytest.mark.asyncio
    async def test_conservation_across_states(
        self, workflow, ledger, partner_id, card_details
    ):
        """Sum of buckets equals total earnings in every state mix."""
        w1 = await workflow.create(partner_id, 1_000, "INDIVIDUAL", card_details)
        w2 = await workflow.create(partner_id, 2_000, "INDIVIDUAL", card_details)
        w3 = await workflow.create(partner_id, 3_000, "INDIVIDUAL", card_details)

        await workflow.approve(w1.id)
        await workflow.approve(w2.id)
        await workflow.begin_processing(w2.id)
        await workflow.reject(w3.id, "Неверные реквизиты карты")
        await workflow.complete(w1.id)

        balance = await ledger.get_available_balance(partner_id)
        assert balance.withdrawn == 1_000
        assert balance.processing == 2_000
        assert balance.pending_withdrawals == 0
        assert balance.available + balance.reserved + balance.withdrawn == (
            balance.total_earnings
        )


class TestConcurrentCreate:
    """Two writers on a file database, each with its own connection."""

    @pytest_asyncio.fixture
    async def file_session_maker(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payouts.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_simultaneous_requests_cannot_overdraw(
        self, file_session_maker, card_details
    ):
        """Only one of two 7 000 requests fits into a 10 000 balance."""
        policy = PayoutPolicy(minimum_withdrawal=1000, max_retries=5, retry_base_delay=0)

        async with file_session_maker() as session:
            partner = User(email="concurrent@example.com")
            session.add(partner)
            await session.flush()
            session.add(
                PartnerCommission(
                    partner_id=partner.id,
                    referred_user_id=partner.id,
                    source_transaction_id="order-concurrent",
                    level=1,
                    base_amount=100_000,
                    rate=Decimal("0.10"),
                    amount=10_000,
                    status=CommissionStatus.APPROVED.value,
                )
            )
            await session.commit()
            partner_id = partner.id

        async def _create():
            async with file_session_maker() as session:
                workflow = WithdrawalWorkflow(session, policy)
                return await workflow.create(partner_id, 7_000, "INDIVIDUAL", card_details)

        results = await asyncio.gather(_create(), _create(), return_exceptions=True)

        created = [r for r in results if isinstance(r, WithdrawalRequest)]
        refused = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(created) == 1
        assert len(refused) == 1

        async with file_session_maker() as session:
            count = await session.scalar(
                select(func.count(WithdrawalRequest.id)).where(
                    WithdrawalRequest.partner_id == partner_id
                )
            )
            balance = await BalanceLedger(session, policy).get_available_balance(partner_id)

        assert count == 1
        assert balance.reserved == 7_000
        assert balance.available == 3_000
