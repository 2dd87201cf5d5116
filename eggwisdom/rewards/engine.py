"""
Reward engine - turn a pet/mint/reveal event into concrete transfer amounts.

For each event the engine reads the current total supply and time from its
collaborators, asks the distribution policy for the platform/uploader split,
and asks the boost registry for the requesting user's multiplier. Neither
component knows about the other.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..logging import log_context
from .amounts import Amount, Duration, Ratio, Timestamp
from .boost import BoostRegistry
from .distribution import DistributionShares, split_payment
from .errors import TransferFailed

logger = logging.getLogger(__name__)

SupplySource = Callable[[], Amount]
TransferPrimitive = Callable[[str, Amount], Awaitable[None]]
Clock = Callable[[], Timestamp]


def system_clock() -> Timestamp:
    return int(time.time())


class RewardKind(Enum):
    """Reward-producing user actions."""
    PET = "pet"
    MINT = "mint"
    REVEAL = "reveal"


@dataclass(frozen=True)
class RewardEvent:
    """
    A reward-producing action.

    `user` performed the action (and is the one who may be boosted);
    `uploader` authored the content the payment is shared with.
    """
    kind: RewardKind
    user: str
    uploader: str
    payment: Amount
    token_reward: Amount = Amount(0)

    def __post_init__(self) -> None:
        if not self.user:
            raise ValueError("user must be non-empty")
        if not self.uploader:
            raise ValueError("uploader must be non-empty")


@dataclass(frozen=True)
class RewardPayout:
    """Computed amounts for one event."""
    event: RewardEvent
    platform_amount: Amount
    uploader_amount: Amount
    token_reward: Amount
    multiplier: Ratio
    shares: DistributionShares
    total_supply: Amount
    timestamp: Timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.event.kind.value,
            "user": self.event.user,
            "uploader": self.event.uploader,
            "payment": str(self.event.payment),
            "platform_amount": str(self.platform_amount),
            "uploader_amount": str(self.uploader_amount),
            "platform_share": str(self.shares.platform_share),
            "uploader_share": str(self.shares.uploader_share),
            "token_reward": str(self.token_reward),
            "multiplier": str(self.multiplier),
            "total_supply": str(self.total_supply),
            "timestamp": self.timestamp,
        }


class RewardEngine:
    """
    Compute and settle reward payouts.

    Args:
        registry: boost registry consulted for multipliers
        supply_source: returns the current total supply, queried per event
        transfer: async callable moving base currency to a recipient; raises
            on failure
        platform_account: recipient of the platform share
        clock: returns the current time in seconds
    """

    def __init__(
        self,
        registry: BoostRegistry,
        supply_source: SupplySource,
        transfer: TransferPrimitive,
        platform_account: str,
        clock: Clock = system_clock,
    ):
        if not platform_account:
            raise ValueError("platform_account must be non-empty")
        self._registry = registry
        self._supply_source = supply_source
        self._transfer = transfer
        self._platform_account = platform_account
        self._clock = clock

    @property
    def registry(self) -> BoostRegistry:
        return self._registry

    @property
    def platform_account(self) -> str:
        return self._platform_account

    def quote(self, event: RewardEvent) -> RewardPayout:
        """Compute payout amounts without moving anything."""
        total_supply = self._supply_source()
        now = self._clock()

        split = split_payment(event.payment, total_supply)
        multiplier = self._registry.get_multiplier(event.user, now)

        return RewardPayout(
            event=event,
            platform_amount=split.platform_amount,
            uploader_amount=split.uploader_amount,
            token_reward=event.token_reward.scale(multiplier),
            multiplier=multiplier,
            shares=split.shares,
            total_supply=total_supply,
            timestamp=now,
        )

    async def settle(self, event: RewardEvent) -> RewardPayout:
        """
        Quote the event and transfer both payment legs.

        Zero-amount legs are skipped. Legs are not retried and a completed
        leg is not reversed when a later one fails.

        Raises:
            TransferFailed: a leg's transfer raised
        """
        payout = self.quote(event)
        legs: List[Tuple[str, str, Amount]] = [
            ("platform", self._platform_account, payout.platform_amount),
            ("uploader", event.uploader, payout.uploader_amount),
        ]

        completed: List[str] = []
        for leg, recipient, amount in legs:
            if amount.is_zero():
                continue
            try:
                await self._transfer(recipient, amount)
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
                logger.warning(
                    f"{leg} transfer of {amount} to {recipient} failed: {reason}",
                    extra=log_context(
                        kind=event.kind.value,
                        user=event.user,
                        leg=leg,
                        recipient=recipient,
                        amount=amount,
                        completed=completed,
                    ),
                )
                raise TransferFailed(leg, recipient, amount, reason, completed) from exc
            completed.append(leg)

        logger.info(
            f"Settled {event.kind.value} for {event.user}",
            extra=log_context(
                kind=event.kind.value,
                user=event.user,
                uploader=event.uploader,
                platform_amount=payout.platform_amount,
                uploader_amount=payout.uploader_amount,
                token_reward=payout.token_reward,
                multiplier=payout.multiplier,
            ),
        )
        return payout

    async def boost(
        self,
        user: str,
        amount: Amount,
        current_time: Optional[Timestamp] = None,
    ) -> Tuple[Timestamp, Duration]:
        """Burn for a boost at the engine's current time."""
        now = self._clock() if current_time is None else current_time
        return await self._registry.burn_for_boost(user, amount, now)
