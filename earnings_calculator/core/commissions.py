"""
Multi-level referral commission resolution.

Maps a purchaser's up-line (level 1 = direct referrer) to commission drafts.
Each level is computed from the purchase amount independently; rates never
compound.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from types import MappingProxyType

from earnings_calculator.core.models import CommissionDraft
from earnings_calculator.core.money import apply_rate

# Referral chains are truncated at this depth
MAX_REFERRAL_DEPTH = 5


class CommissionLevelResolver:
    """Resolves commission drafts for a referral chain."""

    def __init__(self, rates: Mapping[int, Decimal]) -> None:
        """
        Initialize resolver with a rate table.

        Args:
            rates: Commission rate per level, levels 1..N with N <= 5

        Raises:
            ValueError: If levels are not contiguous from 1, exceed the
                maximum depth, or rates are not strictly decreasing
        """
        if not rates:
            raise ValueError("Commission rate table is empty")

        levels = sorted(rates)
        if levels != list(range(1, len(levels) + 1)):
            raise ValueError(f"Commission levels must be contiguous from 1, got {levels}")
        if len(levels) > MAX_REFERRAL_DEPTH:
            raise ValueError(
                f"At most {MAX_REFERRAL_DEPTH} commission levels supported, got {len(levels)}"
            )

        previous: Decimal | None = None
        for level in levels:
            rate = rates[level]
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValueError(f"Rate for level {level} must be in [0, 1], got {rate}")
            if previous is not None and rate >= previous:
                raise ValueError(
                    f"Rates must strictly decrease with level: "
                    f"level {level} rate {rate} >= {previous}"
                )
            previous = rate

        self._rates: Mapping[int, Decimal] = MappingProxyType(dict(rates))

    @property
    def depth(self) -> int:
        """Number of levels that earn commission."""
        return len(self._rates)

    @property
    def rates(self) -> Mapping[int, Decimal]:
        """Read-only view of the rate table."""
        return self._rates

    def rate_for(self, level: int) -> Decimal:
        """Rate for a level, zero for levels outside the table."""
        return self._rates.get(level, Decimal("0"))

    def calculate_amount(self, base_amount: int, level: int) -> int:
        """
        Commission amount for a single level.

        Args:
            base_amount: Purchase amount in minor units
            level: Referral level (1-based)

        Returns:
            round_half_up(base_amount * rate[level]), 0 for unknown levels
        """
        if base_amount <= 0:
            return 0
        return apply_rate(base_amount, self.rate_for(level))

    def resolve(
        self, chain: Sequence[int | None], base_amount: int
    ) -> list[CommissionDraft]:
        """
        Build commission drafts for a referral chain.

        Args:
            chain: Up-line partner ids ordered by level; index 0 is level 1.
                None marks an absent ancestor at that level.
            base_amount: Purchase amount in minor units

        Returns:
            One draft per present ancestor with a positive commission.
            Entries deeper than the rate table are ignored.

        Raises:
            ValueError: If base_amount is negative

        Example:
            >>> resolver = CommissionLevelResolver(DEFAULT_COMMISSION_RATES)
            >>> [d.amount for d in resolver.resolve([11, 12, 13, 14, 15], 10000)]
            [1000, 500, 300, 200, 100]
        """
        if base_amount < 0:
            raise ValueError(f"Base amount must not be negative, got {base_amount}")

        drafts: list[CommissionDraft] = []
        for index, partner_id in enumerate(chain[: self.depth]):
            if partner_id is None:
                continue

            level = index + 1
            amount = self.calculate_amount(base_amount, level)
            if amount <= 0:
                continue

            drafts.append(
                CommissionDraft(
                    partner_id=partner_id,
                    level=level,
                    base_amount=base_amount,
                    rate=self.rate_for(level),
                    amount=amount,
                )
            )

        return drafts
