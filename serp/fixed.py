"""
fixed.py - Unsigned fixed-point Price

Price stores an integer `inner` scaled by ACCURACY (10**18), giving 18
decimal places over an unsigned 128-bit range. Arithmetic stays in the
integer domain; Decimal is used only at the boundary (configuration input
and display).

Rounding: multiplication and division truncate toward zero (floor, since
the domain is non-negative). Results outside [0, PRICE_INNER_MAX] raise
Overflow/Underflow; division by a zero Price raises DivisionByZero.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Union

from .core import Overflow, Underflow, DivisionByZero

ACCURACY = 10 ** 18
PRICE_INNER_MAX = (1 << 128) - 1
# Enough digits for a full 128-bit inner value plus the fractional part.
DECIMAL_PRECISION = 60


def _check(inner: int) -> int:
    if inner < 0:
        raise Underflow(f"Price underflow: {inner}")
    if inner > PRICE_INNER_MAX:
        raise Overflow(f"Price overflow: {inner}")
    return inner


@dataclass(frozen=True, order=True, slots=True)
class Price:
    """Unsigned fixed-point number with 18 decimal places."""
    inner: int

    def __post_init__(self):
        if isinstance(self.inner, bool) or not isinstance(self.inner, int):
            raise TypeError(f"Price inner must be int, got {type(self.inner).__name__}")
        _check(self.inner)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def zero(cls) -> Price:
        return cls(0)

    @classmethod
    def one(cls) -> Price:
        return cls(ACCURACY)

    @classmethod
    def from_int(cls, value: int) -> Price:
        if value < 0:
            raise Underflow(f"Price cannot be negative: {value}")
        return cls(_check(value * ACCURACY))

    @classmethod
    def from_rational(cls, numerator: int, denominator: int) -> Price:
        """numerator / denominator, truncated to 18 decimal places."""
        if denominator == 0:
            raise DivisionByZero(f"Price.from_rational({numerator}, 0)")
        if numerator < 0 or denominator < 0:
            raise Underflow("Price.from_rational requires non-negative operands")
        return cls(_check(numerator * ACCURACY // denominator))

    @classmethod
    def from_decimal(cls, value: Union[Decimal, str, int]) -> Price:
        """Convert a Decimal (or its string form), truncating below 1e-18."""
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if value.is_nan() or value.is_infinite():
            raise ValueError(f"Price must be finite, got {value}")
        if value < 0:
            raise Underflow(f"Price cannot be negative: {value}")
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            scaled = (value * ACCURACY).quantize(Decimal(1), rounding=ROUND_DOWN)
        return cls(_check(int(scaled)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_zero(self) -> bool:
        return self.inner == 0

    def is_one(self) -> bool:
        return self.inner == ACCURACY

    def to_decimal(self) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            return Decimal(self.inner) / Decimal(ACCURACY)

    def floor(self) -> int:
        """Integer part."""
        return self.inner // ACCURACY

    # ------------------------------------------------------------------
    # Checked arithmetic
    # ------------------------------------------------------------------

    def checked_add(self, other: Price) -> Price:
        return Price(_check(self.inner + other.inner))

    def checked_sub(self, other: Price) -> Price:
        return Price(_check(self.inner - other.inner))

    def checked_mul(self, other: Price) -> Price:
        return Price(_check(self.inner * other.inner // ACCURACY))

    def checked_div(self, other: Price) -> Price:
        if other.inner == 0:
            raise DivisionByZero(f"{self} / 0")
        return Price(_check(self.inner * ACCURACY // other.inner))

    def reciprocal(self) -> Price:
        return Price.one().checked_div(self)

    def mul_int_floor(self, value: int) -> int:
        """floor(self * value) for a non-negative integer."""
        if value < 0:
            raise Underflow(f"negative multiplicand: {value}")
        return self.inner * value // ACCURACY

    def mul_int_ceil(self, value: int) -> int:
        """ceil(self * value) for a non-negative integer."""
        if value < 0:
            raise Underflow(f"negative multiplicand: {value}")
        return -(-self.inner * value // ACCURACY)

    def int_div_floor(self, value: int) -> int:
        """floor(value / self) for a non-negative integer."""
        if self.inner == 0:
            raise DivisionByZero(f"{value} / 0")
        if value < 0:
            raise Underflow(f"negative dividend: {value}")
        return value * ACCURACY // self.inner

    __add__ = checked_add
    __sub__ = checked_sub
    __mul__ = checked_mul
    __truediv__ = checked_div

    def __str__(self) -> str:
        return format(self.to_decimal().normalize(), 'f')

    def __repr__(self) -> str:
        return f"Price({self})"
