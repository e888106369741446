"""
Core types and pure functions for the multi-currency stabilization engine.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Currency, PegTarget, AccountData, BalanceLock,
   BalanceChange, PendingAdjustment, AdjustmentRecord
3. Exceptions: SerpError and domain-specific error types
4. Checked Balance arithmetic: overflow and underflow are hard failures
5. Currency factories: native() and stable()

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import hashlib
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Balances are unsigned 128-bit integers.
BALANCE_BITS = 128
BALANCE_MAX = (1 << BALANCE_BITS) - 1

# Default account that executes supply adjustments.
DEFAULT_SERPER = "serper"


# ============================================================================
# TYPE ALIASES
# ============================================================================

CurrencyId = str
AccountId = str
LockId = str
# Logical clock (block height or epoch counter).
Moment = int
Balance = int

# Mapping from account to (free, reserved) for a single currency.
AccountMap = Dict[AccountId, "AccountData"]


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a pending adjustment execution attempt.

    APPLIED: every balance change was validated and applied.
    ALREADY_APPLIED: intent_id was previously processed (idempotent behavior).

    Validation failures are raised, never returned, so a caller cannot
    mistake a rejected adjustment for a no-op.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


class BalanceStatus(Enum):
    """Where repatriated funds land on the beneficiary account."""
    FREE = "free"
    RESERVED = "reserved"


class ChangeKind(Enum):
    """Kind of issuance-affecting balance change inside a pending adjustment."""
    MINT = "mint"        # deposit into free, issuance up
    BURN = "burn"        # withdraw from free (lock-aware), issuance down
    SLASH = "slash"      # forced deduction, free first then reserved


class Direction(Enum):
    """Direction of a supply adjustment."""
    EXPAND = "expand"
    CONTRACT = "contract"


class NoOpReason(Enum):
    """Why a tick made no adjustment."""
    PRICE_UNAVAILABLE = "price_unavailable"
    NO_QUOTABLE_MARKET = "no_quotable_market"
    AT_PEG = "at_peg"
    TOLERANCE_NOT_MET = "tolerance_not_met"
    FREQUENCY_NOT_MET = "frequency_not_met"
    NOTHING_TO_ADJUST = "nothing_to_adjust"


class OriginType(Enum):
    """Classification of where an adjustment originated."""
    CONTROLLER = "controller"   # supply-elasticity controller tick
    SYSTEM = "system"           # genesis, initial setup
    USER = "user"               # manually submitted


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SerpError(Exception):
    """Base exception for all engine errors."""
    pass


class InsufficientBalance(SerpError):
    """Raised when a withdrawal, transfer or reserve exceeds available funds after lock accounting."""
    pass


class Overflow(SerpError):
    """Raised when an arithmetic result would exceed the representable range."""
    pass


class Underflow(SerpError):
    """Raised when an arithmetic result would drop below zero."""
    pass


class DivisionByZero(SerpError):
    """Raised when dividing by a zero Price."""
    pass


class CurrencyNotRegistered(SerpError):
    """Raised when operating on a currency that has not been registered with the ledger."""
    pass


class InvalidCurrencyConfiguration(SerpError):
    """Raised when a currency registration would break the native/stable invariants."""
    pass


class StepFailed(SerpError):
    """
    Raised by a multi-currency step after every currency has been ticked,
    when at least one tick aborted.

    Attributes:
        reports: TickReports of the currencies that completed
        errors: Currency -> the hard error that aborted its tick
    """

    def __init__(self, reports, errors):
        self.reports = list(reports)
        self.errors = dict(errors)
        failed = ", ".join(f"{c}: {e!r}" for c, e in self.errors.items())
        super().__init__(f"{len(self.errors)} tick(s) aborted ({failed})")


class SkipTick(SerpError):
    """
    Base class for conditions that turn a tick into a no-op.

    These are never surfaced to the host as failures; the controller converts
    them into a TickReport carrying `reason`.
    """
    reason = NoOpReason.NOTHING_TO_ADJUST

    def __init__(self, message: str = "", reason: Optional[NoOpReason] = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class PriceUnavailable(SkipTick):
    """The oracle returned no price for one of the required pairs."""
    reason = NoOpReason.PRICE_UNAVAILABLE


class NoQuotableMarket(SkipTick):
    """The quote-side price is zero."""
    reason = NoOpReason.NO_QUOTABLE_MARKET


class ToleranceNotMet(SkipTick):
    """The deviation from peg is inside the configured tolerance band."""
    reason = NoOpReason.TOLERANCE_NOT_MET


class FrequencyNotMet(SkipTick):
    """Too few ticks have passed since the last adjustment."""
    reason = NoOpReason.FREQUENCY_NOT_MET


# ============================================================================
# CHECKED BALANCE ARITHMETIC
# ============================================================================

def ensure_balance(value: int, what: str = "balance") -> int:
    """Validate that value is an int in [0, BALANCE_MAX]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what} must be int, got {type(value).__name__}")
    if value < 0:
        raise Underflow(f"{what} cannot be negative: {value}")
    if value > BALANCE_MAX:
        raise Overflow(f"{what} exceeds {BALANCE_BITS}-bit range: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > BALANCE_MAX:
        raise Overflow(f"{a} + {b} overflows")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise Underflow(f"{a} - {b} underflows")
    return a - b


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > BALANCE_MAX:
        raise Overflow(f"{a} * {b} overflows")
    return result


# ============================================================================
# CURRENCIES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PegTarget:
    """
    Immutable peg configuration of a stable currency.

    Attributes:
        base_unit: Integer representing one peg unit of the currency.
        peg_currency: External reference the oracle price is expressed against.
    """
    base_unit: int
    peg_currency: str

    def __post_init__(self):
        if isinstance(self.base_unit, bool) or not isinstance(self.base_unit, int) or self.base_unit <= 0:
            raise ValueError(f"PegTarget base_unit must be a positive int, got {self.base_unit!r}")
        if not self.peg_currency or not self.peg_currency.strip():
            raise ValueError("PegTarget peg_currency cannot be empty")


@dataclass(frozen=True, slots=True)
class Currency:
    """
    Definition of a currency held in the ledger.

    Attributes:
        symbol: Short identifier (e.g., "SETM", "SETUSD").
        name: Human-readable name.
        is_native: True for the single native (incentive-settlement) currency.
        minimum_balance: Existential deposit; balances below it are dust.
        base_unit: Integer scale of one whole unit.
        peg: Peg configuration, present for stable currencies only.
        settlement_currency: Native currency the incentive leg settles in
                             (stable currencies only).
    """
    symbol: CurrencyId
    name: str
    is_native: bool = False
    minimum_balance: int = 0
    base_unit: int = 1
    peg: Optional[PegTarget] = None
    settlement_currency: Optional[CurrencyId] = None

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Currency symbol cannot be empty")
        ensure_balance(self.minimum_balance, "minimum_balance")
        if self.base_unit <= 0:
            raise ValueError(f"Currency base_unit must be positive, got {self.base_unit}")
        if self.is_native:
            if self.peg is not None or self.settlement_currency is not None:
                raise ValueError(f"Native currency {self.symbol} cannot carry a peg")
        else:
            if self.peg is None:
                raise ValueError(f"Stable currency {self.symbol} requires a peg")
            if not self.settlement_currency:
                raise ValueError(f"Stable currency {self.symbol} requires a settlement currency")

    @property
    def is_stable(self) -> bool:
        return not self.is_native


def native(symbol: str, name: str, minimum_balance: int = 0, base_unit: int = 1) -> Currency:
    """Create the native currency."""
    return Currency(
        symbol=symbol,
        name=name,
        is_native=True,
        minimum_balance=minimum_balance,
        base_unit=base_unit,
    )


def stable(
    symbol: str,
    name: str,
    settlement_currency: str,
    peg_unit: int,
    peg_currency: str,
    minimum_balance: int = 0,
) -> Currency:
    """
    Create a peg-tracking stable currency.

    Args:
        symbol: Currency code (e.g., "SETUSD").
        name: Full name of the currency.
        settlement_currency: Symbol of the native currency incentives settle in.
        peg_unit: Integer representing one peg unit (e.g., 1_000 for $1.000).
        peg_currency: External reference (e.g., "USD").
        minimum_balance: Existential deposit.
    """
    return Currency(
        symbol=symbol,
        name=name,
        is_native=False,
        minimum_balance=minimum_balance,
        base_unit=peg_unit,
        peg=PegTarget(base_unit=peg_unit, peg_currency=peg_currency),
        settlement_currency=settlement_currency,
    )


# ============================================================================
# ACCOUNT RECORDS
# ============================================================================

@dataclass(slots=True)
class AccountData:
    """Balance record of one (account, currency) pair."""
    free: int = 0
    reserved: int = 0

    @property
    def total(self) -> int:
        return self.free + self.reserved


@dataclass(frozen=True, slots=True)
class BalanceLock:
    """A named hold on an account's free balance."""
    lock_id: LockId
    amount: int


# ============================================================================
# PENDING ADJUSTMENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AdjustmentOrigin:
    """
    Immutable record of an adjustment's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source.
        source_id: Identifier of the specific source (controller name, user ID).
        currency: Currency whose tick produced the adjustment, if any.
        event_type: Specific event (e.g., "EXPAND", "CONTRACT", "GENESIS").
    """
    origin_type: OriginType
    source_id: str
    currency: Optional[CurrencyId] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.currency:
            parts.append(f"currency={self.currency}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


@dataclass(frozen=True, slots=True)
class BalanceChange:
    """
    A single issuance-affecting change to one account.

    Attributes:
        currency: Currency being minted, burned or slashed.
        who: Account whose balance changes.
        kind: MINT, BURN or SLASH.
        amount: Strictly positive amount.
    """
    currency: CurrencyId
    who: AccountId
    kind: ChangeKind
    amount: int

    def __post_init__(self):
        if not self.currency or not self.currency.strip():
            raise ValueError("BalanceChange currency cannot be empty")
        if not self.who or not self.who.strip():
            raise ValueError("BalanceChange account cannot be empty")
        ensure_balance(self.amount, "BalanceChange amount")
        if self.amount == 0:
            raise ValueError("BalanceChange amount is zero")

    def __repr__(self) -> str:
        return f"BalanceChange({self.kind.value} {self.amount} {self.currency} @ {self.who})"


def _compute_intent_id(
    changes: Tuple[BalanceChange, ...],
    origin: AdjustmentOrigin,
    now: Moment,
) -> str:
    """
    Compute a deterministic content hash for an adjustment's intent.

    The tick moment is part of the content: the same deltas issued on two
    different ticks are two different intents.
    """
    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}", f"now:{now}"]
    if origin.currency:
        content_parts.append(f"currency:{origin.currency}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")
    for c in sorted(changes, key=lambda c: (c.currency, c.who, c.kind.value, c.amount)):
        content_parts.append(f"change:{c.kind.value}|{c.amount}|{c.currency}|{c.who}")
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingAdjustment:
    """
    A set of balance changes before execution - represents INTENT.

    Built by the controller with every delta computed up front and submitted
    to Ledger.execute(), which validates all of them before applying any.

    Attributes:
        changes: Tuple of balance changes.
        origin: Who/what created this adjustment and why.
        now: Logical tick at which it was built.
        intent_id: Content-addressable hash (auto-computed).
    """
    changes: Tuple[BalanceChange, ...]
    origin: AdjustmentOrigin
    now: Moment = 0
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(
                self, 'intent_id', _compute_intent_id(self.changes, self.origin, self.now)
            )

    def is_empty(self) -> bool:
        return not self.changes

    def __repr__(self) -> str:
        return f"PendingAdjustment({len(self.changes)} changes, {self.origin}, now={self.now})"


def build_adjustment(
    changes: list,
    origin: Optional[AdjustmentOrigin] = None,
    now: Moment = 0,
) -> PendingAdjustment:
    """
    Build a PendingAdjustment from a list of balance changes.

    Example:
        pending = build_adjustment([
            BalanceChange("SETUSD", "serper", ChangeKind.MINT, 100_000),
            BalanceChange("SETM", "serper", ChangeKind.MINT, 11_019),
        ], now=42)
        ledger.execute(pending)
    """
    if origin is None:
        origin = AdjustmentOrigin(OriginType.USER, "user")
    return PendingAdjustment(changes=tuple(changes), origin=origin, now=now)


@dataclass(frozen=True, slots=True)
class AdjustmentRecord:
    """
    An executed, immutable record of a pending adjustment - represents FACT.

    Attributes:
        changes: Balance changes that were applied.
        origin: Origin of the adjustment.
        now: Tick at which it was built.
        intent_id: Content hash (from PendingAdjustment).
        sequence_number: Monotonic sequence within the ledger.
        ledger_name: Name of the ledger that executed it.
        slashed_shortfall: Unpaid remainder per SLASH change, in change order.
    """
    changes: Tuple[BalanceChange, ...]
    origin: AdjustmentOrigin
    now: Moment
    intent_id: str
    sequence_number: int
    ledger_name: str
    slashed_shortfall: Tuple[int, ...] = ()

    def __repr__(self) -> str:
        body = ", ".join(repr(c) for c in self.changes)
        return f"Adjustment#{self.sequence_number}[{self.intent_id}] {self.origin} now={self.now}: {body}"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Code that only inspects balances (audits, reports, host queries) should
    depend on this protocol rather than on Ledger.
    """

    def get_currency(self, currency: CurrencyId) -> Currency:
        ...

    def total_issuance(self, currency: CurrencyId) -> int:
        ...

    def free_balance(self, currency: CurrencyId, who: AccountId) -> int:
        ...

    def reserved_balance(self, currency: CurrencyId, who: AccountId) -> int:
        ...

    def total_balance(self, currency: CurrencyId, who: AccountId) -> int:
        ...

    def effective_lock(self, currency: CurrencyId, who: AccountId) -> int:
        ...
