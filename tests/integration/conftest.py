"""
Shared fixtures for integration tests.

Factories insert rows directly so tests can set up balances without
going through the services under test.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from payouts.models import (
    BonusSource,
    BonusTransaction,
    BonusTransactionType,
    CommissionStatus,
    PartnerCommission,
    User,
)
from payouts.utils.datetime_utils import utc_now


@pytest.fixture
def make_user(session):
    """Factory creating committed users."""
    counter = {"n": 0}

    async def _make_user(email: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            display_name=f"User {counter['n']}",
        )
        session.add(user)
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def add_commission(session):
    """Factory creating a committed commission with given amount and status."""

    async def _add_commission(
        partner_id: int,
        amount: int,
        status: CommissionStatus = CommissionStatus.APPROVED,
        referred_user_id: int | None = None,
        level: int = 1,
    ) -> PartnerCommission:
        commission = PartnerCommission(
            partner_id=partner_id,
            referred_user_id=referred_user_id or partner_id,
            source_transaction_id=f"order-{uuid.uuid4().hex[:12]}",
            level=level,
            base_amount=amount * 10,
            rate=Decimal("0.10"),
            amount=amount,
            status=status.value,
        )
        session.add(commission)
        await session.commit()
        return commission

    return _add_commission


@pytest.fixture
def add_bonus(session):
    """Factory creating a committed EARNED bonus expiring after given days."""

    async def _add_bonus(
        user_id: int,
        amount: int,
        expires_in_days: float = 30,
        source: BonusSource = BonusSource.PROMO,
    ) -> BonusTransaction:
        grant = BonusTransaction(
            user_id=user_id,
            type=BonusTransactionType.EARNED.value,
            source=source.value,
            amount=amount,
            expires_at=utc_now() + timedelta(days=expires_in_days),
        )
        session.add(grant)
        await session.commit()
        return grant

    return _add_bonus


@pytest.fixture
def card_details() -> dict:
    """Valid CARD payment details."""
    return {
        "method": "CARD",
        "card_number": "4276 1600 0000 0000",
        "recipient_name": "Иванов Иван",
    }


@pytest.fixture
def bank_details() -> dict:
    """Valid BANK_ACCOUNT payment details."""
    return {
        "method": "BANK_ACCOUNT",
        "bank_account": "40817810099910004312",
        "bank_name": "Сбербанк",
        "bik": "044525225",
        "recipient_name": "Петров Петр",
    }
