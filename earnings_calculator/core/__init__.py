"""
Core calculator functionality.

Содержит расчет налогов, комиссий по уровням рефералов и уровней партнеров.
"""

from earnings_calculator.core.commissions import MAX_REFERRAL_DEPTH, CommissionLevelResolver
from earnings_calculator.core.levels import next_level_progress, resolve_level
from earnings_calculator.core.models import (
    CommissionDraft,
    LevelProgress,
    PartnerLevelConfig,
    TaxBreakdown,
)
from earnings_calculator.core.money import apply_rate, to_major_units, to_minor_units
from earnings_calculator.core.tax import TaxCalculator

__all__ = [
    "MAX_REFERRAL_DEPTH",
    "CommissionLevelResolver",
    "TaxCalculator",
    "resolve_level",
    "next_level_progress",
    "CommissionDraft",
    "LevelProgress",
    "PartnerLevelConfig",
    "TaxBreakdown",
    "apply_rate",
    "to_major_units",
    "to_minor_units",
]
