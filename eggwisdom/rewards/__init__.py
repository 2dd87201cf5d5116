"""
EggWisdom reward rules.

- Distribution policy: supply-tiered platform/uploader split
- Boost registry: burn tokens for a temporary reward multiplier
- Reward engine: apply both to pet/mint/reveal events
"""

from .amounts import (
    AMOUNT_DECIMALS,
    BPS_DENOM,
    SECONDS_PER_DAY,
    Amount,
    AmountOverflowError,
    AmountUnderflowError,
    Duration,
    Ratio,
    Timestamp,
)
from .boost import (
    BOOST_TIERS,
    FLAT_BOOST_MULTIPLIER,
    MINIMUM_BOOST_BURN,
    BoostGranted,
    BoostRecord,
    BoostRegistry,
    BoostStore,
    BoostTier,
    InMemoryBoostStore,
    select_boost_tier,
    validate_boost_tiers,
)
from .distribution import (
    SUPPLY_TIERS,
    DistributionShares,
    PaymentSplit,
    SupplyTier,
    get_distribution,
    split_payment,
    validate_supply_tiers,
)
from .engine import (
    RewardEngine,
    RewardEvent,
    RewardKind,
    RewardPayout,
    system_clock,
)
from .errors import (
    BurnFailed,
    InvalidAmount,
    RewardsError,
    TransferFailed,
)

__all__ = [
    # Value types
    "AMOUNT_DECIMALS",
    "BPS_DENOM",
    "SECONDS_PER_DAY",
    "Amount",
    "AmountOverflowError",
    "AmountUnderflowError",
    "Duration",
    "Ratio",
    "Timestamp",
    # Distribution
    "SUPPLY_TIERS",
    "DistributionShares",
    "PaymentSplit",
    "SupplyTier",
    "get_distribution",
    "split_payment",
    "validate_supply_tiers",
    # Boost
    "BOOST_TIERS",
    "FLAT_BOOST_MULTIPLIER",
    "MINIMUM_BOOST_BURN",
    "BoostGranted",
    "BoostRecord",
    "BoostRegistry",
    "BoostStore",
    "BoostTier",
    "InMemoryBoostStore",
    "select_boost_tier",
    "validate_boost_tiers",
    # Engine
    "RewardEngine",
    "RewardEvent",
    "RewardKind",
    "RewardPayout",
    "system_clock",
    # Errors
    "BurnFailed",
    "InvalidAmount",
    "RewardsError",
    "TransferFailed",
]
