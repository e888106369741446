"""
protocol.py - Elastic Reserve Protocol

Composition root: wires a Ledger, a PriceOracleAdapter and the market quoter
into a SupplyController and exposes the host-facing entry points.

Execution order of on_tick(now, currency):
1. Acquire the currency's lock (ticks of one currency never overlap)
2. Pull stable/peg and native/peg prices from the oracle
3. Scale both onto the currency's peg_unit integer scale; the stable
   price rounds toward the peg, the native price rounds down
4. Run the controller's on_serp_block() and return its TickReport

step(now) ticks every stable currency in sorted order; a failed tick on one
currency does not stop the others. Different currencies may be ticked
from different threads; the controller and ledger are guarded by one
shared lock while an adjustment is decided and applied.
"""

from __future__ import annotations
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .core import (
    CurrencyId, Moment, native, stable,
    CurrencyNotRegistered, InsufficientBalance, Overflow, SerpError, StepFailed, Underflow,
)
from .config import SerpConfig, load_config, config_from_dict
from .controller import ElasticParams, SupplyController, TickReport
from .fixed import Price
from .ledger import Ledger
from .oracle import PriceOracleAdapter, PriceProvider


class ElasticReserveProtocol:
    """
    Multi-currency stabilization engine.

    Example:
        provider = DefaultPriceProvider(StaticDataProvider({
            'SETUSD': Price.from_decimal("1.1"),
            'SETM': Price.from_int(10),
        }))
        protocol = ElasticReserveProtocol.from_config(load_config(), provider)
        protocol.ledger.deposit('SETUSD', 'alice', 1_000_000)
        report = protocol.on_tick(1, 'SETUSD')
    """

    def __init__(
        self,
        config: SerpConfig,
        provider: PriceProvider,
        ledger: Optional[Ledger] = None,
    ):
        """
        Args:
            config: Validated protocol configuration
            provider: Any object with get_price(base, quote) -> Optional[Price]
            ledger: Existing ledger to drive; a fresh one is created and the
                    configured currencies registered when omitted
        """
        self.config = config
        self.verbose = config.verbose
        self.oracle = PriceOracleAdapter(provider)

        if ledger is None:
            ledger = Ledger("serp", verbose=config.verbose)
            ledger.register_currency(native(
                config.native.symbol, config.native.name,
                minimum_balance=config.native.minimum_balance,
            ))
            for s in config.stables:
                ledger.register_currency(stable(
                    s.symbol, s.name, config.native.symbol,
                    s.peg_unit, s.peg_currency,
                    minimum_balance=s.minimum_balance,
                ))
        self.ledger = ledger

        params = {
            s.symbol: ElasticParams(
                peg_unit=s.peg_unit,
                tolerance=s.tolerance,
                incentive_rate=Price.from_decimal(s.incentive_rate),
                adjustment_frequency=s.adjustment_frequency,
            )
            for s in config.stables
        }
        self.controller = SupplyController(
            ledger, params, serper=config.serper, verbose=config.verbose,
        )

        self._currency_locks: Dict[CurrencyId, threading.Lock] = {
            symbol: threading.Lock() for symbol in params
        }
        self._ledger_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Union[SerpConfig, dict], provider: PriceProvider) -> ElasticReserveProtocol:
        if not isinstance(config, SerpConfig):
            config = config_from_dict(config)
        return cls(config, provider)

    @classmethod
    def from_yaml(cls, yaml_path: Optional[Union[str, Path]], provider: PriceProvider) -> ElasticReserveProtocol:
        return cls(load_config(yaml_path), provider)

    @property
    def serper(self) -> str:
        return self.controller.serper

    def stable_currencies(self) -> List[CurrencyId]:
        return sorted(self.controller.params)

    # ========================================================================
    # PRICES
    # ========================================================================

    def fetch_prices(self, currency: CurrencyId) -> Tuple[Optional[int], Optional[int]]:
        """
        Stable and native prices on the currency's peg_unit scale.

        The stable price rounds toward the peg, so a sub-unit deviation in
        either direction lands on peg_unit and never triggers an adjustment.

        Returns:
            (stable_price, native_price); either is None when the oracle has
            no price for that pair this tick.
        """
        peg = self.ledger.get_currency(currency).peg
        native_symbol = self.ledger.native_currency
        stable_price = self.oracle.get_price(currency, peg.peg_currency)
        native_price = self.oracle.get_price(native_symbol, peg.peg_currency)
        return (
            None if stable_price is None else self._scale_toward_peg(stable_price, peg.base_unit),
            None if native_price is None else native_price.mul_int_floor(peg.base_unit),
        )

    @staticmethod
    def _scale_toward_peg(price: Price, peg_unit: int) -> int:
        if price < Price.one():
            return price.mul_int_ceil(peg_unit)
        return price.mul_int_floor(peg_unit)

    # ========================================================================
    # HOST ENTRY POINTS
    # ========================================================================

    def on_tick(self, now: Moment, currency: CurrencyId) -> TickReport:
        """
        Evaluate one stable currency at logical time `now`.

        Returns:
            TickReport (adjustment or no-op with reason)

        Raises:
            CurrencyNotRegistered: If `currency` is not a configured stable currency
            InsufficientBalance, Overflow, Underflow: tick aborted, nothing applied
        """
        lock = self._currency_locks.get(currency)
        if lock is None:
            raise CurrencyNotRegistered(f"{currency} is not a configured stable currency")
        with lock:
            stable_price, native_price = self.fetch_prices(currency)
            with self._ledger_lock:
                return self.controller.on_serp_block(now, currency, stable_price, native_price)

    def step(self, now: Moment) -> List[TickReport]:
        """
        Tick every stable currency at `now`, in sorted currency order.

        Every currency is ticked even when an earlier one aborts.

        Raises:
            StepFailed: After all currencies were ticked, if any tick aborted;
                        carries the completed reports and the per-currency errors
        """
        reports: List[TickReport] = []
        errors: Dict[CurrencyId, SerpError] = {}
        for currency in self.stable_currencies():
            try:
                reports.append(self.on_tick(now, currency))
            except (InsufficientBalance, Overflow, Underflow) as e:
                if self.verbose:
                    print(f"[SERP] {currency}@{now}: aborted - {e}")
                errors[currency] = e
        if errors:
            raise StepFailed(reports, errors)
        return reports

    def __repr__(self) -> str:
        return (
            f"ElasticReserveProtocol(native={self.ledger.native_currency}, "
            f"stables={self.stable_currencies()}, serper={self.serper})"
        )
