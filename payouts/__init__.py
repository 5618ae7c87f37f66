"""
Partner payouts.

Referral commissions, partner balances, withdrawals with tax withholding
and bonus currency expiry.
"""

__version__ = "1.0.0"
