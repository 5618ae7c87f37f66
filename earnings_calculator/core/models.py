"""Pydantic models for earnings calculator."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from earnings_calculator.types import PartnerLevelName, TaxStatus


class TaxBreakdown(BaseModel):
    """Result of withholding tax calculation.

    All amounts are in minor currency units.
    """

    model_config = ConfigDict(frozen=True)

    gross_amount: int = Field(..., ge=0, description="Requested gross amount")
    tax_status: TaxStatus = Field(..., description="Recipient tax status")
    tax_rate: Decimal = Field(..., ge=0, le=1, description="Withholding rate as a fraction")
    tax_amount: int = Field(..., ge=0, description="Withheld tax")
    net_amount: int = Field(..., ge=0, description="Amount paid out after tax")


class CommissionDraft(BaseModel):
    """Commission to be created for one ancestor in a referral chain."""

    model_config = ConfigDict(frozen=True)

    partner_id: int = Field(..., description="Partner who earns the commission")
    level: int = Field(..., ge=1, le=5, description="Referral depth (1 = direct referrer)")
    base_amount: int = Field(..., ge=0, description="Purchase amount the commission is based on")
    rate: Decimal = Field(..., ge=0, le=1, description="Commission rate for this level")
    amount: int = Field(..., ge=0, description="Commission amount")


class PartnerLevelConfig(BaseModel):
    """Partner tier with its qualification thresholds.

    A partner qualifies for a tier when both the referral count and the total
    earnings reach the thresholds.
    """

    model_config = ConfigDict(frozen=True)

    name: PartnerLevelName = Field(..., description="Tier identifier")
    level_number: int = Field(..., ge=1, le=5, description="Tier position (1 = STARTER)")
    display_name: str = Field(..., description="Human readable tier name")
    min_referrals: int = Field(..., ge=0, description="Required direct referrals")
    min_earnings: int = Field(..., ge=0, description="Required total earnings (minor units)")
    benefits: tuple[str, ...] = Field(default=(), description="Tier benefits")


class LevelProgress(BaseModel):
    """Progress from the current tier towards the next one."""

    model_config = ConfigDict(frozen=True)

    current_level: PartnerLevelName
    next_level: PartnerLevelName | None = Field(
        default=None, description="None when already at the highest tier"
    )
    referrals_needed: int = Field(..., ge=0)
    current_referrals: int = Field(..., ge=0)
    earnings_needed: int = Field(..., ge=0)
    current_earnings: int = Field(..., ge=0)
    progress_percent: int = Field(..., ge=0, le=100)
