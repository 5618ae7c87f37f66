"""
Payout policy.

Immutable snapshot of the business configuration handed to services,
so calculators never read global settings.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from earnings_calculator.core.models import PartnerLevelConfig
from earnings_calculator.types import TaxStatus
from payouts.config.business_constants import (
    COMMISSION_RATES_BY_DEPTH,
    PARTNER_LEVELS,
    TAX_RATES,
)
from payouts.config.settings import Settings


class PayoutPolicy(BaseModel):
    """Business rules for withdrawals, commissions and bonuses."""

    model_config = ConfigDict(frozen=True)

    minimum_withdrawal: int = Field(
        default=100_000, gt=0, description="Minimum gross withdrawal in kopecks"
    )
    rejection_reason_min_length: int = Field(
        default=10, ge=1, description="Minimum stripped length of a rejection reason"
    )
    withdrawal_require_processing: bool = Field(
        default=False, description="Forbid APPROVED -> COMPLETED without PROCESSING"
    )
    bonus_default_expiry_days: int = Field(
        default=365, gt=0, description="Days until an earned bonus expires"
    )
    bonus_minimum_withdrawal: int = Field(
        default=100_000, gt=0, description="Minimum bonus withdrawal in kopecks"
    )
    bonus_currency_rate: Decimal = Field(
        default=Decimal("1"), gt=0, description="Currency kopecks per bonus kopeck"
    )
    referral_bonus_rate: Decimal = Field(
        default=Decimal("0.05"), ge=0, le=1, description="Referral first purchase bonus"
    )
    max_retries: int = Field(
        default=3, ge=1, description="Attempts on a concurrency conflict"
    )
    retry_base_delay: float = Field(
        default=0.2, ge=0, description="Base backoff delay in seconds"
    )
    tax_rates: dict[TaxStatus, Decimal] = Field(
        default_factory=lambda: dict(TAX_RATES),
        description="Withholding rate per tax status",
    )
    commission_rates: dict[int, Decimal] = Field(
        default_factory=lambda: dict(COMMISSION_RATES_BY_DEPTH),
        description="Commission rate per referral level",
    )
    partner_levels: tuple[PartnerLevelConfig, ...] = Field(
        default=PARTNER_LEVELS, description="Partner level tiers"
    )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PayoutPolicy":
        """
        Build policy from application settings.

        Args:
            settings: Settings instance (global settings if omitted)

        Returns:
            PayoutPolicy
        """
        if settings is None:
            from payouts.config.settings import settings as app_settings

            settings = app_settings

        return cls(
            minimum_withdrawal=settings.minimum_withdrawal,
            rejection_reason_min_length=settings.rejection_reason_min_length,
            withdrawal_require_processing=settings.withdrawal_require_processing,
            bonus_default_expiry_days=settings.bonus_default_expiry_days,
            bonus_minimum_withdrawal=settings.bonus_minimum_withdrawal,
            bonus_currency_rate=settings.bonus_currency_rate,
            referral_bonus_rate=settings.referral_bonus_rate,
            max_retries=settings.concurrency_max_retries,
            retry_base_delay=settings.concurrency_retry_base_delay,
        )
