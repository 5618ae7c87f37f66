"""Pydantic schemas for the partner program."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from earnings_calculator.core.models import LevelProgress, PartnerLevelConfig
from earnings_calculator.types import PartnerLevelName
from payouts.schemas.balance import AvailableBalance


class BatchApprovalResult(BaseModel):
    """Outcome of approving one commission in a batch."""

    commission_id: int
    success: bool
    error: str | None = None
    error_code: str | None = None


class PartnerDashboard(BaseModel):
    """Partner cabinet overview."""

    partner_id: int
    direct_referrals: int = Field(..., ge=0)
    team_size: int = Field(..., ge=0)
    referrals_by_level: dict[int, int] = Field(default_factory=dict)
    level: PartnerLevelConfig
    progress: LevelProgress
    balance: AvailableBalance
    earned_this_month: int = Field(..., ge=0)


class ReferralNode(BaseModel):
    """One referral in a partner's tree."""

    user_id: int
    email: str
    display_name: str | None = None
    level: int = Field(..., ge=1, le=5, description="Depth below the partner")
    joined_at: datetime
    earned: int = Field(..., ge=0, description="Commissions the partner earned from this user")
    children: list["ReferralNode"] = Field(default_factory=list)


class ReferralTree(BaseModel):
    """Direct referrals of a partner with their own teams down to a depth."""

    direct_referrals: list[ReferralNode] = Field(default_factory=list)
    direct_count: int = Field(..., ge=0)
    team_size: int = Field(..., ge=0)


class PartnerSummary(BaseModel):
    """Partner row of the back-office list."""

    user_id: int
    email: str
    display_name: str | None = None
    referral_code: str | None = None
    registered_at: datetime
    level: PartnerLevelName
    direct_referrals: int = Field(..., ge=0)
    team_size: int = Field(..., ge=0)
    total_earnings: int = Field(..., ge=0)
    pending_earnings: int = Field(..., ge=0)
    withdrawn: int = Field(..., ge=0)
    available: int = Field(..., ge=0)


class CommissionItem(BaseModel):
    """Commission line of the partner detail view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    referred_user_id: int
    level: int
    amount: int
    status: str
    created_at: datetime


class WithdrawalItem(BaseModel):
    """Withdrawal line of the partner detail view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    net_amount: int
    status: str
    created_at: datetime


class ReferrerInfo(BaseModel):
    """Who invited the partner."""

    user_id: int
    email: str
    display_name: str | None = None
    referral_code: str | None = None


class PartnerDetail(PartnerSummary):
    """Back-office partner card."""

    referred_by: ReferrerInfo | None = None
    recent_commissions: list[CommissionItem] = Field(default_factory=list)
    recent_withdrawals: list[WithdrawalItem] = Field(default_factory=list)
    direct_referrals_list: list[ReferralNode] = Field(default_factory=list)


class PartnerProgramStats(BaseModel):
    """Back-office partner program overview, amounts in kopecks."""

    total_partners: int = Field(..., ge=0)
    new_partners_this_month: int = Field(..., ge=0)
    active_partners: int = Field(..., ge=0, description="Partners with direct referrals")
    partners_by_level: dict[PartnerLevelName, int] = Field(default_factory=dict)
    total_commissions: int = Field(..., ge=0, description="APPROVED + PAID")
    pending_commissions: int = Field(..., ge=0)
    pending_commission_count: int = Field(..., ge=0)
    total_withdrawn: int = Field(..., ge=0, description="COMPLETED, gross")
    pending_withdrawals: int = Field(..., ge=0, description="PENDING + APPROVED, gross")
    pending_withdrawal_count: int = Field(..., ge=0)
    commissions_this_month: int = Field(..., ge=0)
    withdrawals_this_month: int = Field(..., ge=0)
