"""
Boost registry - burn secondary tokens to unlock a temporary reward multiplier.

Lifecycle per user:

    (no record) --burn--> BOOSTED(expiration) --time passes--> EXPIRED
                             ^      |                             |
                             +-burn-+ (overwrite)                 |
                             +------------------burn--------------+

A burn selects the best boost tier the amount qualifies for and sets the
user's expiration to `current_time + tier.duration_seconds`. A later burn
replaces the expiration; durations never stack. Expiry is lazy: a record is
active iff `expiration > current_time`, and stale records are never swept.

Burn ordering (fail-closed):
    1. reject sub-floor amounts (no burn, no mutation)
    2. await the external burn primitive
    3. only after the burn succeeded, write the record
    4. notify (fire-and-forget)

Steps 2-3 run under a per-user lock, so two burns for the same user never
interleave while burns for different users proceed independently.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from ..logging import log_context
from .amounts import SECONDS_PER_DAY, Amount, Duration, Ratio, Timestamp
from .errors import BurnFailed, InvalidAmount

logger = logging.getLogger(__name__)

BurnPrimitive = Callable[[str, Amount], Awaitable[None]]
BoostNotifier = Callable[[Amount, str, Duration], None]


# =============================================================================
# Tier Table
# =============================================================================

@dataclass(frozen=True)
class BoostTier:
    """One row of the boost table."""
    minimum_burn: Amount
    duration_seconds: Duration
    reward_multiplier: Ratio

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minimum_burn": str(self.minimum_burn),
            "duration_seconds": self.duration_seconds,
            "reward_multiplier": str(self.reward_multiplier),
        }


# Highest threshold first so the best qualifying tier wins.
BOOST_TIERS: Tuple[BoostTier, ...] = (
    BoostTier(Amount.of(30_000), 20 * SECONDS_PER_DAY, Ratio.of("1.6")),
    BoostTier(Amount.of(15_000), 10 * SECONDS_PER_DAY, Ratio.of("1.5")),
    BoostTier(Amount.of(5_000), 3 * SECONDS_PER_DAY, Ratio.of("1.4")),
)

MINIMUM_BOOST_BURN = BOOST_TIERS[-1].minimum_burn

FLAT_BOOST_MULTIPLIER = Ratio.of(2)


def validate_boost_tiers(tiers: Sequence[BoostTier]) -> None:
    """Raise ValueError unless tiers strictly descend and grant positive durations."""
    if not tiers:
        raise ValueError("boost tier table is empty")
    for index, tier in enumerate(tiers):
        if tier.duration_seconds <= 0:
            raise ValueError(f"boost tier {index} has non-positive duration")
        if tier.minimum_burn.is_zero():
            raise ValueError(f"boost tier {index} has zero minimum burn")
        if index and tier.minimum_burn >= tiers[index - 1].minimum_burn:
            raise ValueError(
                f"boost tiers must descend: {tier.minimum_burn} after {tiers[index - 1].minimum_burn}"
            )


validate_boost_tiers(BOOST_TIERS)


def select_boost_tier(
    amount: Amount,
    tiers: Sequence[BoostTier] = BOOST_TIERS,
) -> Optional[BoostTier]:
    """Return the highest tier whose minimum_burn <= amount, or None."""
    for tier in tiers:
        if tier.minimum_burn <= amount:
            return tier
    return None


# =============================================================================
# Boost State
# =============================================================================

@dataclass(frozen=True)
class BoostRecord:
    """
    Per-user boost fact.

    `multiplier` is the multiplier of the tier selected at burn time; whether
    it is honoured depends on the registry's multiplier scheme.
    """
    expiration: Timestamp
    multiplier: Ratio

    def is_active(self, current_time: Timestamp) -> bool:
        return self.expiration > current_time

    def to_dict(self) -> Dict[str, Any]:
        return {"expiration": self.expiration, "multiplier": str(self.multiplier)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoostRecord":
        return cls(
            expiration=int(data["expiration"]),
            multiplier=Ratio.of(data["multiplier"]),
        )


class BoostGranted(NamedTuple):
    """Notification payload emitted after a successful burn."""
    amount: Amount
    user: str
    duration: Duration


class BoostStore(Protocol):
    """Storage for boost records, owned exclusively by one BoostRegistry."""

    def get(self, user: str) -> Optional[BoostRecord]:
        ...

    def put(self, user: str, record: BoostRecord) -> None:
        ...

    def items(self) -> Iterator[Tuple[str, BoostRecord]]:
        ...


class InMemoryBoostStore:
    """Dict-backed BoostStore."""

    def __init__(self, records: Optional[Dict[str, BoostRecord]] = None):
        self._records: Dict[str, BoostRecord] = dict(records or {})

    def get(self, user: str) -> Optional[BoostRecord]:
        return self._records.get(user)

    def put(self, user: str, record: BoostRecord) -> None:
        self._records[user] = record

    def items(self) -> Iterator[Tuple[str, BoostRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# Registry
# =============================================================================

class BoostRegistry:
    """
    Burn-to-boost state machine.

    Args:
        burner: async callable destroying `amount` tokens held by `user`;
            raises on failure
        store: boost record store (in-memory by default)
        notifier: called as notifier(amount, user, duration) after each grant
        tiers: boost table, highest threshold first
        flat_multiplier: multiplier for every active boost; None honours the
            per-tier multiplier recorded at burn time
    """

    def __init__(
        self,
        burner: BurnPrimitive,
        store: Optional[BoostStore] = None,
        notifier: Optional[BoostNotifier] = None,
        tiers: Sequence[BoostTier] = BOOST_TIERS,
        flat_multiplier: Optional[Ratio] = FLAT_BOOST_MULTIPLIER,
    ):
        validate_boost_tiers(tiers)
        self._burner = burner
        self._store: BoostStore = store if store is not None else InMemoryBoostStore()
        self._notifier = notifier
        self._tiers = tuple(tiers)
        self._flat_multiplier = flat_multiplier
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @property
    def tiers(self) -> Tuple[BoostTier, ...]:
        return self._tiers

    @property
    def minimum_burn(self) -> Amount:
        return self._tiers[-1].minimum_burn

    @property
    def flat_multiplier(self) -> Optional[Ratio]:
        return self._flat_multiplier

    @asynccontextmanager
    async def _user_lock(self, user: str) -> AsyncIterator[None]:
        """
        Hold `user`'s lock for the duration of the block.

        Locks are reference-counted by holders plus waiters and dropped once
        the last one leaves, so the table only holds users with a burn in
        flight.
        """
        lock = self._locks.get(user)
        if lock is None:
            lock = self._locks[user] = asyncio.Lock()
        self._lock_users[user] = self._lock_users.get(user, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[user] - 1
            if remaining:
                self._lock_users[user] = remaining
            else:
                del self._lock_users[user]
                del self._locks[user]

    # -------------------------------------------------------------------------
    # Burn
    # -------------------------------------------------------------------------

    async def burn_for_boost(
        self,
        user: str,
        amount: Amount,
        current_time: Timestamp,
    ) -> Tuple[Timestamp, Duration]:
        """
        Burn `amount` tokens from `user` and (re)start their boost window.

        Returns:
            (new_expiration, duration_seconds)

        Raises:
            InvalidAmount: amount is below every tier (nothing burned)
            BurnFailed: burn primitive raised (state unchanged)

        Postconditions:
            - On success, the user's expiration == current_time + tier duration,
              regardless of any previous, possibly later, expiration
        """
        if not user:
            raise ValueError("user must be a non-empty identity")
        if not isinstance(amount, Amount):
            raise TypeError(f"amount must be an Amount, got {type(amount).__name__}")

        tier = select_boost_tier(amount, self._tiers)
        if tier is None:
            logger.warning(
                f"Boost burn rejected for {user}: {amount} < {self.minimum_burn}",
                extra=log_context(user=user, amount=amount, minimum=self.minimum_burn),
            )
            raise InvalidAmount(amount, self.minimum_burn)

        async with self._user_lock(user):
            try:
                await self._burner(user, amount)
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
                logger.warning(
                    f"Burn failed for {user} ({amount}): {reason}",
                    extra=log_context(user=user, amount=amount, reason=reason),
                )
                raise BurnFailed(user, amount, reason) from exc

            expiration = current_time + tier.duration_seconds
            self._store.put(user, BoostRecord(expiration=expiration, multiplier=tier.reward_multiplier))

        logger.info(
            f"Boost granted: {user} burned {amount}",
            extra=log_context(
                user=user,
                amount=amount,
                duration=tier.duration_seconds,
                expiration=expiration,
                multiplier=tier.reward_multiplier,
            ),
        )
        self._notify(BoostGranted(amount, user, tier.duration_seconds))
        return expiration, tier.duration_seconds

    def _notify(self, event: BoostGranted) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(event.amount, event.user, event.duration)
        except Exception:  # noqa: BLE001
            logger.warning(f"Boost notifier failed for {event.user}", exc_info=True)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_boost(self, user: str) -> Optional[BoostRecord]:
        """Raw record, active or not."""
        return self._store.get(user)

    def has_active_boost(self, user: str, current_time: Timestamp) -> bool:
        record = self._store.get(user)
        return record is not None and record.is_active(current_time)

    def get_multiplier(self, user: str, current_time: Timestamp) -> Ratio:
        """Reward multiplier for `user` at `current_time` (ONE when not boosted)."""
        record = self._store.get(user)
        if record is None or not record.is_active(current_time):
            return Ratio.ONE
        if self._flat_multiplier is not None:
            return self._flat_multiplier
        return record.multiplier

    def remaining_seconds(self, user: str, current_time: Timestamp) -> Duration:
        record = self._store.get(user)
        if record is None or not record.is_active(current_time):
            return 0
        return record.expiration - current_time

    def active_users(self, current_time: Timestamp) -> List[str]:
        return [user for user, record in self._store.items() if record.is_active(current_time)]

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize boost records."""
        return {"boosts": {user: record.to_dict() for user, record in self._store.items()}}

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        burner: BurnPrimitive,
        store: Optional[BoostStore] = None,
        **kwargs: Any,
    ) -> "BoostRegistry":
        """
        Rebuild a registry from to_dict() output.

        Records are loaded into `store` when given, otherwise into a fresh
        in-memory store. Loaded records overwrite same-user records already
        in the store.
        """
        target: BoostStore = store if store is not None else InMemoryBoostStore()
        for user, record in data.get("boosts", {}).items():
            target.put(user, BoostRecord.from_dict(record))
        return cls(burner, store=target, **kwargs)
