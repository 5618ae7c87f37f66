"""
Partner earnings calculator.

Standalone package for partner program arithmetic: withholding tax,
multi-level referral commissions and partner tiers. Amounts are integers in
minor currency units (kopecks); rates are Decimal fractions.

Example:
    >>> from earnings_calculator import (
    ...     DEFAULT_TAX_RATES, TaxCalculator, TaxStatus,
    ... )
    >>>
    >>> calc = TaxCalculator(DEFAULT_TAX_RATES)
    >>> result = calc.calculate(100_000, TaxStatus.SELF_EMPLOYED)
    >>> print(result.tax_amount, result.net_amount)
    4000 96000
"""

from earnings_calculator.constants import (
    DEFAULT_COMMISSION_RATES,
    DEFAULT_PARTNER_LEVELS,
    DEFAULT_TAX_RATES,
    MAX_REFERRAL_DEPTH,
    get_level_by_name,
)
from earnings_calculator.core import (
    CommissionDraft,
    CommissionLevelResolver,
    LevelProgress,
    PartnerLevelConfig,
    TaxBreakdown,
    TaxCalculator,
    apply_rate,
    next_level_progress,
    resolve_level,
    to_major_units,
    to_minor_units,
)
from earnings_calculator.types import PartnerLevelName, TaxStatus
from earnings_calculator.utils import format_money, format_rate


__version__ = "1.0.0"
__all__ = [
    # Core
    "TaxCalculator",
    "CommissionLevelResolver",
    "resolve_level",
    "next_level_progress",
    "apply_rate",
    "to_minor_units",
    "to_major_units",
    # Models
    "TaxBreakdown",
    "CommissionDraft",
    "PartnerLevelConfig",
    "LevelProgress",
    # Types
    "TaxStatus",
    "PartnerLevelName",
    # Constants
    "DEFAULT_TAX_RATES",
    "DEFAULT_COMMISSION_RATES",
    "DEFAULT_PARTNER_LEVELS",
    "MAX_REFERRAL_DEPTH",
    "get_level_by_name",
    # Formatters
    "format_money",
    "format_rate",
]
