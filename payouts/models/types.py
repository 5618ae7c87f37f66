"""
Standard type definitions for database models.

Provides consistent types for monetary and rate fields across all models.
"""

from sqlalchemy import DECIMAL, BigInteger

# Money in minor units (kopecks). Signed: bonus debits are negative.
# Range: up to 92 233 720 368 547 758,07 RUB
MoneyType = BigInteger

# Rate as a fraction of one (0.13 = 13%)
# Precision: 6 digits total, 4 after decimal point
# Suitable for: tax rates, commission rates (e.g., 0.1000, 0.0125)
RateType = DECIMAL(6, 4)
