"""
market.py - Serp Market quoting

Pure functions that price the incentive serpers are paid (on expansion) or
charged (on contraction) for executing a supply adjustment:

1. market_price() - ratio of a base price to a quote price
2. serp_quote() - incentive-adjusted price around the peg
3. native_amount_for() - native currency to mint/burn for a supply change
4. quote() - the three steps above, returned as one SerpQuote

Nothing here touches a ledger; a SerpQuote is computed fresh each tick and
never stored.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .core import Direction, Underflow
from .fixed import Price


@dataclass(frozen=True, slots=True)
class SerpQuote:
    """
    Incentive quote for one tick.

    Attributes:
        ratio: Market price of the stable currency relative to its peg.
        quoted_price: Incentive-adjusted price (serp_quote of ratio).
        incentive_rate: The configured rate the quote was built with.
        native_price: Stable-currency units per native unit at the quoted price.
        native_amount: Native currency to mint (expand) or burn (contract).
    """
    ratio: Price
    quoted_price: Price
    incentive_rate: Price
    native_price: Price
    native_amount: int


def market_price(base_price: Price, quote_price: Price) -> Optional[Price]:
    """
    base_price / quote_price.

    Returns None when quote_price is zero: there is no quotable market this tick.
    """
    if quote_price.is_zero():
        return None
    return base_price.checked_div(quote_price)


def serp_quote(market: Price, rate: Price, direction: Direction) -> Price:
    """
    Incentive-adjusted price.

    fractioned = market - 1 (signed), quotation = fractioned * (rate * 2);
    expansion quotes quotation + market, contraction quotes market - quotation.
    The sign of `fractioned` is carried separately since Price is unsigned.

    Raises:
        ValueError: If rate is outside [0, 1]
        Underflow: If the quoted price would be negative
    """
    one = Price.one()
    if rate > one:
        raise ValueError(f"incentive rate must be within [0, 1], got {rate}")

    above_peg = market >= one
    fractioned = market - one if above_peg else one - market
    quotation = fractioned * (rate * Price.from_int(2))

    # quotation carries the sign of fractioned; EXPAND adds it, CONTRACT subtracts it.
    adds = above_peg if direction is Direction.EXPAND else not above_peg
    if adds:
        return market + quotation
    if quotation > market:
        raise Underflow(f"serp quote below zero: {market} - {quotation}")
    return market - quotation


def native_amount_for(quoted_price: Price, requested_change: int) -> int:
    """
    Native amount for a stable-currency supply change: floor(requested_change / quoted_price).

    Floor rounding favors the protocol over the serper.
    """
    return quoted_price.int_div_floor(requested_change)


def quote(
    stable_price: int,
    native_price: int,
    peg_unit: int,
    rate: Price,
    direction: Direction,
    requested_change: int,
) -> Optional[SerpQuote]:
    """
    Build the full SerpQuote for a tick.

    Prices are integers on the stable currency's peg scale (peg_unit == 1.0).
    Returns None when no quotable market exists (zero peg unit, zero native
    price, or a zero quoted price).

    Example:
        # stable at 1.100, native at 10.000, peg_unit 1_000, rate 1%
        q = quote(1_100, 10_000, 1_000, Price.from_decimal("0.01"), Direction.EXPAND, 100_000)
        q.ratio          # 1.1
        q.quoted_price   # 1.102
        q.native_amount  # 11_020 (floor)
    """
    ratio = market_price(Price.from_int(stable_price), Price.from_int(peg_unit))
    native_in_peg = market_price(Price.from_int(native_price), Price.from_int(peg_unit))
    if ratio is None or native_in_peg is None or native_in_peg.is_zero():
        return None
    quoted = serp_quote(ratio, rate, direction)
    native_quoted = market_price(native_in_peg, quoted)
    if native_quoted is None or native_quoted.is_zero():
        return None
    return SerpQuote(
        ratio=ratio,
        quoted_price=quoted,
        incentive_rate=rate,
        native_price=native_quoted,
        native_amount=native_amount_for(native_quoted, requested_change),
    )
