"""Partner tier resolution."""

from collections.abc import Sequence

from earnings_calculator.core.models import LevelProgress, PartnerLevelConfig


def _ordered(levels: Sequence[PartnerLevelConfig]) -> list[PartnerLevelConfig]:
    if not levels:
        raise ValueError("Partner level table is empty")
    return sorted(levels, key=lambda lvl: lvl.level_number)


def resolve_level(
    total_referrals: int,
    total_earnings: int,
    levels: Sequence[PartnerLevelConfig],
) -> PartnerLevelConfig:
    """
    Get highest tier whose referral and earnings thresholds are both met.

    Falls back to the lowest tier when nothing qualifies.

    Args:
        total_referrals: Number of direct referrals
        total_earnings: Total earnings in minor units
        levels: Tier table

    Returns:
        Qualifying tier config

    Example:
        >>> resolve_level(20, 6_000_000, DEFAULT_PARTNER_LEVELS).name
        <PartnerLevelName.SILVER: 'SILVER'>
    """
    ordered = _ordered(levels)
    for level in reversed(ordered):
        if total_referrals >= level.min_referrals and total_earnings >= level.min_earnings:
            return level
    return ordered[0]


def next_level_progress(
    total_referrals: int,
    total_earnings: int,
    levels: Sequence[PartnerLevelConfig],
) -> LevelProgress:
    """
    Calculate progress towards the next tier.

    Progress is the average of the referral and earnings ratios, each capped
    at 100%. At the highest tier progress is always 100.
    """
    ordered = _ordered(levels)
    current = resolve_level(total_referrals, total_earnings, ordered)
    position = ordered.index(current)

    if position == len(ordered) - 1:
        return LevelProgress(
            current_level=current.name,
            next_level=None,
            referrals_needed=0,
            current_referrals=total_referrals,
            earnings_needed=0,
            current_earnings=total_earnings,
            progress_percent=100,
        )

    target = ordered[position + 1]

    if target.min_referrals > 0:
        referral_progress = min(100.0, total_referrals / target.min_referrals * 100)
    else:
        referral_progress = 100.0

    if target.min_earnings > 0:
        earnings_progress = min(100.0, total_earnings / target.min_earnings * 100)
    else:
        earnings_progress = 100.0

    return LevelProgress(
        current_level=current.name,
        next_level=target.name,
        referrals_needed=max(0, target.min_referrals - total_referrals),
        current_referrals=total_referrals,
        earnings_needed=max(0, target.min_earnings - total_earnings),
        current_earnings=total_earnings,
        progress_percent=round((referral_progress + earnings_progress) / 2),
    )
