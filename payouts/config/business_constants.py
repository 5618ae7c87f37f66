"""
Business constants for the partner program.

Single source of truth for the rate tables the services use. Values are
re-exported from earnings_calculator so the pure calculators and the
application read the same immutable data.
"""

from earnings_calculator.constants import (
    DEFAULT_COMMISSION_RATES,
    DEFAULT_PARTNER_LEVELS,
    DEFAULT_TAX_RATES,
)

TAX_RATES = DEFAULT_TAX_RATES
COMMISSION_RATES_BY_DEPTH = DEFAULT_COMMISSION_RATES
PARTNER_LEVELS = DEFAULT_PARTNER_LEVELS

# Default page size for list queries
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Period for bonus expiry warnings shown in the UI
BONUS_EXPIRY_WARNING_DAYS = 30
