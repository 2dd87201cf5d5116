"""
Fixed-point value types shared by the distribution policy and the boost registry.

Provides:
1. Amount - unsigned fixed-point token/currency quantity (8 decimals, 64-bit raw)
2. Ratio - exact non-negative fraction in basis points
3. Timestamp / Duration - integer seconds

Design Principles:
- No floats anywhere in the money path
- Arithmetic never wraps: overflow and underflow raise
- Values are immutable and hashable
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import ClassVar, Type, Union

# =============================================================================
# Constants
# =============================================================================

AMOUNT_DECIMALS = 8
AMOUNT_SCALE = 10 ** AMOUNT_DECIMALS
MAX_AMOUNT_UNITS = 2 ** 64 - 1  # 184467440737.09551615

BPS_DENOM = 10_000
MAX_RATIO_BPS = 2 ** 64 - 1

SECONDS_PER_DAY = 86_400

Timestamp = int
Duration = int

NumberLike = Union[int, str, Decimal]


class AmountOverflowError(ArithmeticError):
    """Raised when an Amount would exceed the 64-bit fixed-point range."""


class AmountUnderflowError(ArithmeticError):
    """Raised when an Amount would drop below zero."""


def _to_scaled_int(
    value: NumberLike,
    scale: int,
    what: str,
    max_scaled: int,
    overflow: Type[Exception],
) -> int:
    """
    Convert value * scale to an int, refusing floats and lost precision.

    Postconditions:
        - 0 <= result <= max_scaled
        - Range is checked before any int is materialized
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{what} must be built from int, str or Decimal, got {type(value).__name__}")
    if not isinstance(value, (int, str, Decimal)):
        raise TypeError(f"{what} must be built from int, str or Decimal, got {type(value).__name__}")

    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{what} must be non-negative, got {value}")
        if value > max_scaled // scale:
            raise overflow(f"{what} exceeds fixed-point range: {value}")
        return value * scale

    with localcontext() as ctx:
        ctx.prec = 60
        try:
            dec = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation as exc:
            raise ValueError(f"not a decimal number: {value!r}") from exc
        if not dec.is_finite():
            raise ValueError(f"{what} must be finite, got {value!r}")
        if dec < 0:
            raise ValueError(f"{what} must be non-negative, got {value!r}")
        if dec > Decimal(max_scaled) / scale:
            raise overflow(f"{what} exceeds fixed-point range: {value!r}")
        scaled = dec * scale
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{what} has more precision than supported: {value!r}")
        return int(scaled)


# =============================================================================
# Amount
# =============================================================================

@dataclass(frozen=True, order=True)
class Amount:
    """
    Unsigned fixed-point quantity with 8 fractional digits.

    `units` counts 1e-8 steps, so Amount(150_000_000) is 1.5.

    Invariants:
        - 0 <= units <= MAX_AMOUNT_UNITS
    """
    units: int

    MAX: ClassVar["Amount"]

    def __post_init__(self) -> None:
        if not isinstance(self.units, int) or isinstance(self.units, bool):
            raise TypeError(f"Amount units must be int, got {type(self.units).__name__}")
        if self.units < 0:
            raise ValueError(f"Amount must be non-negative, got {self.units} units")
        if self.units > MAX_AMOUNT_UNITS:
            raise AmountOverflowError(f"Amount exceeds fixed-point range: {self.units} units")

    @classmethod
    def of(cls, value: NumberLike) -> "Amount":
        """Build from a whole number, a decimal string or a Decimal."""
        return cls(_to_scaled_int(value, AMOUNT_SCALE, "Amount", MAX_AMOUNT_UNITS, AmountOverflowError))

    @classmethod
    def zero(cls) -> "Amount":
        return cls(0)

    def is_zero(self) -> bool:
        return self.units == 0

    def __add__(self, other: "Amount") -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        total = self.units + other.units
        if total > MAX_AMOUNT_UNITS:
            raise AmountOverflowError(f"{self} + {other} exceeds fixed-point range")
        return Amount(total)

    def __sub__(self, other: "Amount") -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        if other.units > self.units:
            raise AmountUnderflowError(f"{self} - {other} would be negative")
        return Amount(self.units - other.units)

    def scale(self, ratio: "Ratio") -> "Amount":
        """Multiply by a ratio, rounding down to the nearest unit."""
        product = self.units * ratio.bps // BPS_DENOM
        if product > MAX_AMOUNT_UNITS:
            raise AmountOverflowError(f"{self} * {ratio} exceeds fixed-point range")
        return Amount(product)

    def to_decimal(self) -> Decimal:
        return Decimal(self.units).scaleb(-AMOUNT_DECIMALS)

    def __str__(self) -> str:
        whole, frac = divmod(self.units, AMOUNT_SCALE)
        return f"{whole}.{frac:0{AMOUNT_DECIMALS}d}"


Amount.MAX = Amount(MAX_AMOUNT_UNITS)


# =============================================================================
# Ratio
# =============================================================================

@dataclass(frozen=True, order=True)
class Ratio:
    """
    Non-negative fraction expressed in basis points.

    Shares stay within [0, ONE]; multipliers may exceed ONE.
    """
    bps: int

    ONE: ClassVar["Ratio"]

    def __post_init__(self) -> None:
        if not isinstance(self.bps, int) or isinstance(self.bps, bool):
            raise TypeError(f"Ratio bps must be int, got {type(self.bps).__name__}")
        if self.bps < 0:
            raise ValueError(f"Ratio must be non-negative, got {self.bps} bps")

    @classmethod
    def of(cls, value: NumberLike) -> "Ratio":
        """Build from a decimal fraction such as "0.45" or 2."""
        return cls(_to_scaled_int(value, BPS_DENOM, "Ratio", MAX_RATIO_BPS, ValueError))

    @classmethod
    def percent(cls, value: int) -> "Ratio":
        return cls(value * (BPS_DENOM // 100))

    def complement(self) -> "Ratio":
        """ONE - self; only defined for shares."""
        if self.bps > BPS_DENOM:
            raise ValueError(f"complement undefined for ratio above one: {self}")
        return Ratio(BPS_DENOM - self.bps)

    def __add__(self, other: "Ratio") -> "Ratio":
        if not isinstance(other, Ratio):
            return NotImplemented
        return Ratio(self.bps + other.bps)

    def to_decimal(self) -> Decimal:
        return Decimal(self.bps).scaleb(-4).normalize()

    def __float__(self) -> float:
        return self.bps / BPS_DENOM

    def __str__(self) -> str:
        return format(self.to_decimal(), "f")


Ratio.ONE = Ratio(BPS_DENOM)
