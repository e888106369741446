"""
controller.py - Supply Elasticity Controller (SerpTes)

Re-evaluates every stable currency on each tick and decides whether to
expand, contract or leave its supply alone.

Processing order of on_serp_block():
1. Missing stable or native price -> no-op (PRICE_UNAVAILABLE)
2. deviation = stable_price - peg_unit; zero -> no-op (AT_PEG),
   |deviation| < tolerance -> no-op (TOLERANCE_NOT_MET)
3. Fewer than adjustment_frequency ticks since the last adjustment -> no-op
4. supply_change = floor(issuance * |deviation| / peg_unit), capped at issuance
5. Quote the native incentive leg via the market module
6. Build one PendingAdjustment holding both legs and let the ledger validate
   and apply it atomically

Ledger failures (InsufficientBalance, Overflow) abort the tick with no state
changed and propagate to the caller. States (Idle/Expanding/Contracting) are
conceptual; the only stored state is the last tick seen and the last
adjustment per currency.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .core import (
    AdjustmentOrigin, BalanceChange, ChangeKind, CurrencyId, AccountId,
    Direction, ExecuteResult, Moment, NoOpReason, OriginType, PendingAdjustment,
    CurrencyNotRegistered, FrequencyNotMet, NoQuotableMarket, PriceUnavailable,
    SkipTick, ToleranceNotMet, DEFAULT_SERPER,
)
from .fixed import Price
from .ledger import Ledger
from .market import SerpQuote, quote


class TickOutcome(Enum):
    """Result of one controller tick for one currency."""
    EXPANDED = "expanded"
    CONTRACTED = "contracted"
    NO_OP = "no_op"
    ALREADY_APPLIED = "already_applied"


@dataclass(frozen=True, slots=True)
class ElasticParams:
    """
    Per-stable-currency controller parameters.

    Attributes:
        peg_unit: Integer price of exactly one peg unit.
        tolerance: No-op band around the peg, in the same integer scale.
        incentive_rate: Serp quote rate in [0, 1].
        adjustment_frequency: Minimum ticks between two adjustments.
    """
    peg_unit: int
    tolerance: int = 0
    incentive_rate: Price = Price.zero()
    adjustment_frequency: int = 1

    def __post_init__(self):
        if self.peg_unit <= 0:
            raise ValueError(f"peg_unit must be positive, got {self.peg_unit}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance cannot be negative, got {self.tolerance}")
        if self.incentive_rate > Price.one():
            raise ValueError(f"incentive_rate must be within [0, 1], got {self.incentive_rate}")
        if self.adjustment_frequency < 1:
            raise ValueError(f"adjustment_frequency must be >= 1, got {self.adjustment_frequency}")


@dataclass(frozen=True, slots=True)
class TickReport:
    """
    What one tick did for one currency.

    `reason` is set only for NO_OP; `supply_change` and `native_amount` are
    the stable and native amounts minted (EXPANDED) or burned (CONTRACTED).
    """
    currency: CurrencyId
    now: Moment
    outcome: TickOutcome
    reason: Optional[NoOpReason] = None
    direction: Optional[Direction] = None
    supply_change: int = 0
    native_amount: int = 0
    quote: Optional[SerpQuote] = None

    @property
    def adjusted(self) -> bool:
        return self.outcome in (TickOutcome.EXPANDED, TickOutcome.CONTRACTED)

    def __repr__(self) -> str:
        if self.outcome is TickOutcome.NO_OP:
            return f"Tick({self.currency}@{self.now}: no-op {self.reason.value})"
        return (
            f"Tick({self.currency}@{self.now}: {self.outcome.value} "
            f"{self.supply_change} stable / {self.native_amount} native)"
        )


class SupplyController:
    """
    Proportional supply controller over a Ledger.

    The serper account receives minted stable currency and the native
    incentive on expansion, and must already hold the stable currency to burn
    plus the native fee on contraction.

    Example:
        controller = SupplyController(ledger, {"SETUSD": ElasticParams(peg_unit=1_000)})
        report = controller.on_serp_block(now=1, currency="SETUSD",
                                          stable_price=1_100, native_price=10_000)
    """

    def __init__(
        self,
        ledger: Ledger,
        params: Dict[CurrencyId, ElasticParams],
        serper: AccountId = DEFAULT_SERPER,
        name: str = "serp-tes",
        verbose: bool = False,
    ):
        self.ledger = ledger
        self.params = dict(params)
        self.serper = serper
        self.name = name
        self.verbose = verbose
        self.last_seen: Dict[CurrencyId, Moment] = {}
        self.last_adjusted: Dict[CurrencyId, Moment] = {}

        for currency in self.params:
            if not ledger.get_currency(currency).is_stable:
                raise ValueError(f"{currency} is not a stable currency")

    def get_params(self, currency: CurrencyId) -> ElasticParams:
        if currency not in self.params:
            raise CurrencyNotRegistered(f"No elastic parameters for {currency}")
        return self.params[currency]

    # ========================================================================
    # PURE CALCULATIONS
    # ========================================================================

    def calculate_supply_change(self, currency: CurrencyId, stable_price: int) -> Tuple[Optional[Direction], int]:
        """
        Proportional supply change for a price.

        Returns:
            (direction, amount) where amount = floor(issuance * |deviation| / peg_unit),
            never more than the current issuance, and (None, 0) at the peg.
        """
        peg_unit = self.get_params(currency).peg_unit
        deviation = stable_price - peg_unit
        if deviation == 0:
            return None, 0
        issuance = self.ledger.total_issuance(currency)
        amount = min(issuance * abs(deviation) // peg_unit, issuance)
        direction = Direction.EXPAND if deviation > 0 else Direction.CONTRACT
        return direction, amount

    def check_tick(self, now: Moment, currency: CurrencyId, stable_price: Optional[int], native_price: Optional[int]) -> None:
        """
        Raise the SkipTick condition that makes this tick a no-op, if any.
        """
        params = self.get_params(currency)
        if stable_price is None or native_price is None:
            raise PriceUnavailable(f"{currency}: missing price")
        if stable_price == 0 or native_price == 0:
            raise NoQuotableMarket(f"{currency}: zero price")
        deviation = stable_price - params.peg_unit
        if deviation == 0:
            raise ToleranceNotMet(f"{currency}: at peg", reason=NoOpReason.AT_PEG)
        if abs(deviation) < params.tolerance:
            raise ToleranceNotMet(f"{currency}: |{deviation}| < {params.tolerance}")
        last = self.last_adjusted.get(currency)
        if last is not None and now - last < params.adjustment_frequency:
            raise FrequencyNotMet(
                f"{currency}: {now - last} ticks since last adjustment, need {params.adjustment_frequency}"
            )

    def serp_elast(
        self,
        now: Moment,
        currency: CurrencyId,
        stable_price: int,
        native_price: int,
    ) -> Tuple[PendingAdjustment, Direction, int, SerpQuote]:
        """
        Build the pending adjustment for a tick that passed check_tick().

        Both legs are staged in one PendingAdjustment; nothing is applied here.
        """
        params = self.get_params(currency)
        direction, supply_change = self.calculate_supply_change(currency, stable_price)
        if direction is None or supply_change == 0:
            raise SkipTick(f"{currency}: no supply to adjust")

        serp_quote = quote(
            stable_price, native_price, params.peg_unit,
            params.incentive_rate, direction, supply_change,
        )
        if serp_quote is None:
            raise NoQuotableMarket(f"{currency}: no quotable market")

        native = self.ledger.native_currency
        kind = ChangeKind.MINT if direction is Direction.EXPAND else ChangeKind.BURN
        changes = [BalanceChange(currency, self.serper, kind, supply_change)]
        if serp_quote.native_amount > 0:
            changes.append(BalanceChange(native, self.serper, kind, serp_quote.native_amount))

        pending = PendingAdjustment(
            changes=tuple(changes),
            origin=AdjustmentOrigin(
                origin_type=OriginType.CONTROLLER,
                source_id=self.name,
                currency=currency,
                event_type=direction.name,
            ),
            now=now,
        )
        return pending, direction, supply_change, serp_quote

    # ========================================================================
    # TICK ENTRY POINT (Mutating)
    # ========================================================================

    def on_serp_block(
        self,
        now: Moment,
        currency: CurrencyId,
        stable_price: Optional[int],
        native_price: Optional[int],
    ) -> TickReport:
        """
        Expand, contract or skip the supply of `currency` for this tick.

        Args:
            now: Logical clock, non-decreasing per currency
            currency: Stable currency to evaluate
            stable_price: Stable price on the peg_unit scale, or None if unavailable
            native_price: Native price on the same scale, or None if unavailable

        Returns:
            TickReport describing the adjustment or the no-op reason

        Raises:
            ValueError: If `now` is earlier than the last tick seen for `currency`
            InsufficientBalance, Overflow, Underflow: the tick was aborted, nothing applied
        """
        self.get_params(currency)
        last_seen = self.last_seen.get(currency)
        if last_seen is not None and now < last_seen:
            raise ValueError(f"Cannot move time backwards for {currency}: {now} < {last_seen}")
        self.last_seen[currency] = now

        try:
            self.check_tick(now, currency, stable_price, native_price)
            pending, direction, supply_change, serp_quote = self.serp_elast(
                now, currency, stable_price, native_price
            )
        except SkipTick as e:
            report = TickReport(currency, now, TickOutcome.NO_OP, reason=e.reason)
            if self.verbose:
                print(f"[SERP] {report!r}")
            return report

        result = self.ledger.execute(pending)
        if result is ExecuteResult.ALREADY_APPLIED:
            outcome = TickOutcome.ALREADY_APPLIED
        elif direction is Direction.EXPAND:
            outcome = TickOutcome.EXPANDED
        else:
            outcome = TickOutcome.CONTRACTED
        self.last_adjusted[currency] = now

        report = TickReport(
            currency=currency,
            now=now,
            outcome=outcome,
            direction=direction,
            supply_change=supply_change,
            native_amount=serp_quote.native_amount,
            quote=serp_quote,
        )
        if self.verbose:
            print(f"[SERP] {report!r}")
        return report
