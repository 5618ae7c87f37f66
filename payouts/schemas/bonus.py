"""Pydantic schemas for the bonus currency."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from earnings_calculator.types import TaxStatus


class BonusBalance(BaseModel):
    """Bonus balance of a user in kopecks."""

    model_config = ConfigDict(frozen=True)

    balance: int = Field(..., ge=0, description="Sum of all ledger entries")
    active_balance: int = Field(..., ge=0, description="Balance without overdue grants")
    lifetime_earned: int = Field(..., ge=0)
    lifetime_spent: int = Field(..., ge=0)
    lifetime_expired: int = Field(..., ge=0)


class ExpiringBonus(BaseModel):
    """One EARNED grant that expires soon."""

    transaction_id: int
    amount: int = Field(..., gt=0)
    expires_at: datetime


class ExpiringBonusSummary(BaseModel):
    """Bonuses expiring within a window, for UI warnings."""

    total: int = Field(..., ge=0, description="Total expiring amount in kopecks")
    window_days: int = Field(..., ge=0)
    items: list[ExpiringBonus] = Field(default_factory=list)


class BonusWithdrawalPreview(BaseModel):
    """Currency value and tax of converting bonuses, before anything is written."""

    model_config = ConfigDict(frozen=True)

    bonus_amount: int = Field(..., ge=0, description="Bonuses to convert")
    rate: Decimal = Field(..., gt=0, description="Currency kopecks per bonus kopeck")
    currency_amount: int = Field(..., ge=0, description="Gross currency amount in kopecks")
    tax_status: TaxStatus
    tax_rate: Decimal = Field(..., ge=0, le=1)
    tax_amount: int = Field(..., ge=0)
    net_amount: int = Field(..., ge=0)
    active_balance: int = Field(..., ge=0, description="Bonuses available to convert")
    minimum_withdrawal: int = Field(..., gt=0, description="Minimum bonus amount")
    can_withdraw: bool


class BonusWithdrawalResult(BaseModel):
    """Outcome of converting bonuses to currency."""

    model_config = ConfigDict(frozen=True)

    transaction_id: int = Field(..., description="WITHDRAWN ledger entry")
    bonus_amount: int = Field(..., gt=0)
    rate: Decimal = Field(..., gt=0)
    currency_amount: int = Field(..., ge=0)
    tax_status: TaxStatus
    tax_amount: int = Field(..., ge=0)
    net_amount: int = Field(..., ge=0)
