"""
Default constants for earnings calculator.

Contains the partner program reference data: withholding tax rates,
commission rates by referral depth and partner tier thresholds.
Values are immutable and passed to the calculators explicitly.
"""

from decimal import Decimal
from types import MappingProxyType

from earnings_calculator.core.commissions import MAX_REFERRAL_DEPTH
from earnings_calculator.core.models import PartnerLevelConfig
from earnings_calculator.types import PartnerLevelName, TaxStatus

DEFAULT_TAX_RATES = MappingProxyType({
    TaxStatus.INDIVIDUAL: Decimal("0.13"),  # НДФЛ 13%
    TaxStatus.SELF_EMPLOYED: Decimal("0.04"),  # НПД 4%
    TaxStatus.SOLE_PROPRIETOR: Decimal("0.06"),  # УСН 6%
    TaxStatus.LEGAL_ENTITY: Decimal("0"),  # Юрлицо отчитывается самостоятельно
})

DEFAULT_COMMISSION_RATES = MappingProxyType({
    1: Decimal("0.10"),  # 10% for direct referrer
    2: Decimal("0.05"),
    3: Decimal("0.03"),
    4: Decimal("0.02"),
    5: Decimal("0.01"),
})

# Earnings thresholds are in kopecks
DEFAULT_PARTNER_LEVELS: tuple[PartnerLevelConfig, ...] = (
    PartnerLevelConfig(
        name=PartnerLevelName.STARTER,
        level_number=1,
        display_name="Стартер",
        min_referrals=0,
        min_earnings=0,
        benefits=("Базовые комиссии",),
    ),
    PartnerLevelConfig(
        name=PartnerLevelName.BRONZE,
        level_number=2,
        display_name="Бронза",
        min_referrals=5,
        min_earnings=1_000_000,
        benefits=("Базовые комиссии", "Повышенная ставка комиссии"),
    ),
    PartnerLevelConfig(
        name=PartnerLevelName.SILVER,
        level_number=3,
        display_name="Серебро",
        min_referrals=15,
        min_earnings=5_000_000,
        benefits=(
            "Базовые комиссии",
            "Повышенная ставка комиссии",
            "Приоритетная поддержка",
        ),
    ),
    PartnerLevelConfig(
        name=PartnerLevelName.GOLD,
        level_number=4,
        display_name="Золото",
        min_referrals=30,
        min_earnings=15_000_000,
        benefits=(
            "Базовые комиссии",
            "Повышенная ставка комиссии",
            "Приоритетная поддержка",
            "Эксклюзивные материалы",
        ),
    ),
    PartnerLevelConfig(
        name=PartnerLevelName.PLATINUM,
        level_number=5,
        display_name="Платина",
        min_referrals=50,
        min_earnings=50_000_000,
        benefits=(
            "Базовые комиссии",
            "Повышенная ставка комиссии",
            "Приоритетная поддержка",
            "Эксклюзивные материалы",
            "VIP статус",
            "Персональный менеджер",
        ),
    ),
)


def get_level_by_name(name: PartnerLevelName | str) -> PartnerLevelConfig | None:
    """
    Get default tier config by name.

    Args:
        name: Tier name

    Returns:
        PartnerLevelConfig or None if not found
    """
    for level in DEFAULT_PARTNER_LEVELS:
        if level.name == name:
            return level
    return None


__all__ = [
    "DEFAULT_COMMISSION_RATES",
    "DEFAULT_PARTNER_LEVELS",
    "DEFAULT_TAX_RATES",
    "MAX_REFERRAL_DEPTH",
    "get_level_by_name",
]
