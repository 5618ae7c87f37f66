"""
Withholding tax calculation.

Pure and deterministic: the same TaxCalculator is used for the withdrawal
preview and for the authoritative computation when a withdrawal is created,
so both always agree.
"""

from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType

from earnings_calculator.core.models import TaxBreakdown
from earnings_calculator.core.money import apply_rate
from earnings_calculator.types import TaxStatus


class TaxCalculator:
    """
    Calculates tax withheld from a partner payout.

    The rate table is passed in explicitly and frozen on construction.
    """

    def __init__(self, rates: Mapping[TaxStatus, Decimal]) -> None:
        """
        Initialize calculator.

        Args:
            rates: Withholding rate per tax status

        Raises:
            ValueError: If a status is missing or a rate is outside [0, 1]
        """
        missing = [status.value for status in TaxStatus if status not in rates]
        if missing:
            raise ValueError(f"Tax rates missing for: {', '.join(missing)}")

        for status, rate in rates.items():
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValueError(f"Tax rate for {status.value} must be in [0, 1], got {rate}")

        self._rates: Mapping[TaxStatus, Decimal] = MappingProxyType(dict(rates))

    @property
    def rates(self) -> Mapping[TaxStatus, Decimal]:
        """Read-only view of the rate table."""
        return self._rates

    def rate_for(self, tax_status: TaxStatus) -> Decimal:
        """
        Get withholding rate for a tax status.

        Raises:
            ValueError: If tax status is unknown
        """
        try:
            return self._rates[TaxStatus(tax_status)]
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown tax status: {tax_status}") from exc

    def calculate(self, amount: int, tax_status: TaxStatus) -> TaxBreakdown:
        """
        Calculate tax breakdown for a gross amount.

        Formula:
            tax_amount = round_half_up(amount * rate)
            net_amount = amount - tax_amount

        Args:
            amount: Gross amount in minor units
            tax_status: Recipient tax status

        Returns:
            TaxBreakdown with rate, tax and net amounts

        Raises:
            ValueError: If amount is negative or tax status is unknown

        Example:
            >>> calc = TaxCalculator(DEFAULT_TAX_RATES)
            >>> calc.calculate(1000, TaxStatus.SELF_EMPLOYED).net_amount
            960
        """
        if amount < 0:
            raise ValueError(f"Amount must not be negative, got {amount}")

        rate = self.rate_for(tax_status)
        tax_amount = apply_rate(amount, rate)

        return TaxBreakdown(
            gross_amount=amount,
            tax_status=TaxStatus(tax_status),
            tax_rate=rate,
            tax_amount=tax_amount,
            net_amount=amount - tax_amount,
        )
