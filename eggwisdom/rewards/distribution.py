"""
Distribution policy - supply-tiered split of reward payments.

The platform/uploader split is a step function of the secondary token's
total supply. As supply grows past each threshold, a larger share of every
payment flows to the uploader.

    supply <= 10,000       platform 50% / uploader 50%
    supply <= 50,000       45 / 55
    supply <= 100,000      40 / 60
    supply <= 250,000      35 / 65
    supply <= 500,000      30 / 70
    supply <= 1,000,000    25 / 75
    above                  20 / 80

Bounds are inclusive. The uploader share is derived from the platform share,
so the two always sum to exactly one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

from .amounts import Amount, Ratio

logger = logging.getLogger(__name__)


# =============================================================================
# Tier Table
# =============================================================================

@dataclass(frozen=True)
class SupplyTier:
    """One row of the supply table. A bound of None means unbounded."""
    upper_bound_inclusive: Optional[Amount]
    platform_share: Ratio

    def __post_init__(self) -> None:
        if self.platform_share > Ratio.ONE:
            raise ValueError(f"platform_share above one: {self.platform_share}")

    @property
    def uploader_share(self) -> Ratio:
        return self.platform_share.complement()

    def covers(self, total_supply: Amount) -> bool:
        return self.upper_bound_inclusive is None or total_supply <= self.upper_bound_inclusive

    def to_dict(self) -> dict:
        return {
            "upper_bound_inclusive": (
                str(self.upper_bound_inclusive) if self.upper_bound_inclusive is not None else None
            ),
            "platform_share": str(self.platform_share),
            "uploader_share": str(self.uploader_share),
        }


SUPPLY_TIERS: tuple[SupplyTier, ...] = (
    SupplyTier(Amount.of(10_000), Ratio.percent(50)),
    SupplyTier(Amount.of(50_000), Ratio.percent(45)),
    SupplyTier(Amount.of(100_000), Ratio.percent(40)),
    SupplyTier(Amount.of(250_000), Ratio.percent(35)),
    SupplyTier(Amount.of(500_000), Ratio.percent(30)),
    SupplyTier(Amount.of(1_000_000), Ratio.percent(25)),
    SupplyTier(None, Ratio.percent(20)),
)


def validate_supply_tiers(tiers: Sequence[SupplyTier]) -> None:
    """
    Check that a supply table partitions [0, +inf).

    Preconditions:
        - tiers is non-empty

    Postconditions:
        - Bounds strictly ascend and only the last row is unbounded
    """
    if not tiers:
        raise ValueError("supply tier table is empty")
    if tiers[-1].upper_bound_inclusive is not None:
        raise ValueError("last supply tier must be unbounded")

    previous: Optional[Amount] = None
    for index, tier in enumerate(tiers[:-1]):
        bound = tier.upper_bound_inclusive
        if bound is None:
            raise ValueError(f"only the last supply tier may be unbounded (row {index})")
        if previous is not None and bound <= previous:
            raise ValueError(f"supply tier bounds must ascend: {bound} after {previous}")
        previous = bound


validate_supply_tiers(SUPPLY_TIERS)


# =============================================================================
# Lookup
# =============================================================================

class DistributionShares(NamedTuple):
    platform_share: Ratio
    uploader_share: Ratio


class PaymentSplit(NamedTuple):
    platform_amount: Amount
    uploader_amount: Amount
    shares: DistributionShares


def get_distribution(
    total_supply: Amount,
    tiers: Sequence[SupplyTier] = SUPPLY_TIERS,
) -> DistributionShares:
    """
    Return (platform_share, uploader_share) for the given total supply.

    Picks the first tier whose inclusive upper bound is >= total_supply.
    No interpolation between tiers. Pure.
    """
    if not isinstance(total_supply, Amount):
        raise TypeError(f"total_supply must be an Amount, got {type(total_supply).__name__}")

    for tier in tiers:
        if tier.covers(total_supply):
            shares = DistributionShares(tier.platform_share, tier.uploader_share)
            logger.debug(
                f"supply {total_supply} -> platform {shares.platform_share}, "
                f"uploader {shares.uploader_share}"
            )
            return shares

    raise ValueError(f"supply tier table does not cover {total_supply}")


def split_payment(
    payment: Amount,
    total_supply: Amount,
    tiers: Sequence[SupplyTier] = SUPPLY_TIERS,
) -> PaymentSplit:
    """
    Split a base-currency payment between platform and uploader.

    The platform amount rounds down; the uploader takes the remainder, so the
    two legs always add back up to `payment`.
    """
    shares = get_distribution(total_supply, tiers)
    platform_amount = payment.scale(shares.platform_share)
    uploader_amount = payment - platform_amount
    return PaymentSplit(platform_amount, uploader_amount, shares)
