"""
oracle.py - Price inputs for the supply controller

Provides the read-only price boundary of the engine.

Classes:
- DataProvider: Protocol for per-currency prices against a common reference
- PriceProvider: Protocol for relative prices of a (base, quote) pair
- StaticDataProvider: Fed values, time-independent
- TimeSeriesDataProvider: Observations keyed by the logical clock
- DefaultPriceProvider: Relative prices derived from a DataProvider
- PriceOracleAdapter: The controller-facing adapter; never raises

No caching or retry logic lives here: a missing value is "no price
available" for this tick.
"""

from bisect import bisect_right
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .core import CurrencyId, Moment, SerpError
from .fixed import Price


@runtime_checkable
class DataProvider(Protocol):
    """Price of a single currency against the common peg reference."""

    def get(self, currency: CurrencyId) -> Optional[Price]:
        ...


@runtime_checkable
class PriceProvider(Protocol):
    """Relative price of `base` in units of `quote`."""

    def get_price(self, base: CurrencyId, quote: CurrencyId) -> Optional[Price]:
        ...


class StaticDataProvider:
    """
    Data provider holding fed values (time-independent).

    The reference currency itself always prices at 1.
    """

    def __init__(self, prices: Optional[Dict[CurrencyId, Price]] = None, reference: CurrencyId = "USD"):
        self.reference = reference
        self.prices: Dict[CurrencyId, Price] = dict(prices or {})

    def get(self, currency: CurrencyId) -> Optional[Price]:
        if currency == self.reference:
            return Price.one()
        return self.prices.get(currency)

    def feed_value(self, currency: CurrencyId, price: Price) -> None:
        """Feed a new value for a currency."""
        self.prices[currency] = price

    def feed_values(self, prices: Dict[CurrencyId, Price]) -> None:
        self.prices.update(prices)

    def remove(self, currency: CurrencyId) -> None:
        self.prices.pop(currency, None)

    def __repr__(self):
        return f"StaticDataProvider({len(self.prices)} prices, reference={self.reference})"


class TimeSeriesDataProvider:
    """
    Data provider with observations keyed by the logical clock.

    Returns the most recent observation at or before the cursor set with
    advance(). Supports incremental add_value() and batch initialization.

    Example:
        feed = TimeSeriesDataProvider({
            'SETUSD': [(0, Price.one()), (10, Price.from_decimal("1.1"))],
        })
        feed.advance(12)
        feed.get('SETUSD')   # Price(1.1)
    """

    def __init__(
        self,
        paths: Optional[Dict[CurrencyId, List[Tuple[Moment, Price]]]] = None,
        reference: CurrencyId = "USD",
    ):
        self.reference = reference
        self.now: Moment = 0
        self.history: Dict[CurrencyId, List[Tuple[Moment, Price]]] = {}

        if paths:
            for currency, path in paths.items():
                if not path:
                    continue
                self.history[currency] = sorted(path, key=lambda x: x[0])

    def add_value(self, currency: CurrencyId, at: Moment, price: Price) -> None:
        self.history.setdefault(currency, []).append((at, price))
        self.history[currency].sort(key=lambda x: x[0])

    def advance(self, now: Moment) -> None:
        """Move the read cursor. The cursor never moves backwards."""
        if now < self.now:
            raise ValueError(f"Cannot move time backwards: {now} < {self.now}")
        self.now = now

    def get_at(self, currency: CurrencyId, at: Moment) -> Optional[Price]:
        if currency == self.reference:
            return Price.one()
        history = self.history.get(currency)
        if not history:
            return None
        idx = bisect_right([ts for ts, _ in history], at)
        if idx == 0:
            return None
        return history[idx - 1][1]

    def get(self, currency: CurrencyId) -> Optional[Price]:
        return self.get_at(currency, self.now)

    def __repr__(self):
        observations = sum(len(h) for h in self.history.values())
        return f"TimeSeriesDataProvider({len(self.history)} currencies, {observations} observations, now={self.now})"


class DefaultPriceProvider:
    """Relative price get(base) / get(quote) from a DataProvider."""

    def __init__(self, data: DataProvider):
        self.data = data

    def get_price(self, base: CurrencyId, quote: CurrencyId) -> Optional[Price]:
        base_price = self.data.get(base)
        quote_price = self.data.get(quote)
        if base_price is None or quote_price is None or quote_price.is_zero():
            return None
        return base_price.checked_div(quote_price)


class PriceOracleAdapter:
    """
    Controller-facing oracle adapter.

    Pulls one price per call and turns every failure of the underlying
    provider into None, so an oracle gap can only ever skip a tick.
    """

    def __init__(self, provider: PriceProvider):
        self.provider = provider

    def get_price(self, base: CurrencyId, quote: CurrencyId) -> Optional[Price]:
        try:
            return self.provider.get_price(base, quote)
        except SerpError:
            return None

    def __repr__(self):
        return f"PriceOracleAdapter({self.provider!r})"
