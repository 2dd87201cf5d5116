"""Error taxonomy for reward computation and boost burns."""

from __future__ import annotations

from typing import Optional, Sequence

from .amounts import Amount


class RewardsError(Exception):
    """Base class for reward engine failures. Always scoped to one operation."""


class InvalidAmount(RewardsError):
    """Raised when a burn is below the lowest boost tier. Nothing was burned."""

    def __init__(self, amount: Amount, minimum: Amount):
        self.amount = amount
        self.minimum = minimum
        super().__init__(f"burn amount {amount} below minimum boost burn {minimum}")


class BurnFailed(RewardsError):
    """Raised when the external burn primitive fails. Boost state is unchanged."""

    def __init__(self, user: str, amount: Amount, reason: Optional[str] = None):
        self.user = user
        self.amount = amount
        self.reason = reason
        super().__init__(f"burn of {amount} for {user} failed: {reason or 'burn rejected'}")


class TransferFailed(RewardsError):
    """Raised when a payout leg cannot be transferred.

    `completed` lists the legs that were already transferred before the failure;
    the core never reverses them.
    """

    def __init__(
        self,
        leg: str,
        recipient: str,
        amount: Amount,
        reason: Optional[str] = None,
        completed: Sequence[str] = (),
    ):
        self.leg = leg
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        self.completed = tuple(completed)
        super().__init__(
            f"{leg} transfer of {amount} to {recipient} failed: {reason or 'transfer rejected'}"
        )
