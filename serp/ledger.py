"""
ledger.py - Stateful Multi-Currency Balance Ledger

The Ledger class is the central state manager of the engine.
It is the only module that mutates balances, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Owns per-(account, currency) free/reserved balances, named locks and issuance
    - Keeps total issuance equal to the sum of free+reserved after every operation
    - Executes pending adjustments atomically (validate every delta, then apply)
    - Notifies an on_dust callback instead of reaping sub-minimum balances
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set, Tuple, Any

from .core import (
    # Types
    Currency, AccountData, BalanceLock, BalanceChange, PendingAdjustment,
    AdjustmentRecord, ExecuteResult, BalanceStatus, ChangeKind,
    CurrencyId, AccountId, LockId, AccountMap,
    # Exceptions
    InsufficientBalance, Overflow, Underflow,
    CurrencyNotRegistered, InvalidCurrencyConfiguration,
    # Arithmetic
    ensure_balance, checked_add, checked_sub,
)

DustHandler = Callable[[AccountId, CurrencyId, int], None]


class Ledger:
    """
    Multi-currency ledger with free/reserved balances, locks and issuance.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Issuance moves with balances: every mint and burn updates the
          currency's total issuance in the same step, never one without the other.
        - Check before mutate: each operation validates (and computes every
          new value) before it writes anything, so a failure leaves no trace.
        - Accounts are created lazily on first credit and never reaped.

    Thread Safety:
        Not thread-safe. Callers serialise access (see ElasticReserveProtocol).

    Example:
        ledger = Ledger("main")
        ledger.register_currency(native("SETM", "Setheum"))
        ledger.register_currency(stable("SETUSD", "SetDollar", "SETM", 1_000, "USD"))
        ledger.deposit("SETUSD", "alice", 5_000)
        ledger.transfer("SETUSD", "alice", "bob", 1_000)
    """

    def __init__(
        self,
        name: str,
        verbose: bool = False,
        on_dust: Optional[DustHandler] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            verbose: Print registrations and applied adjustments (default: False)
            on_dust: Callback invoked as on_dust(who, currency, amount) when an
                     operation leaves an account between zero and the minimum balance
        """
        self.name = name
        self.verbose = verbose
        self.on_dust = on_dust
        self.currencies: Dict[CurrencyId, Currency] = {}
        self._native: Optional[CurrencyId] = None
        self._accounts: Dict[CurrencyId, Dict[AccountId, AccountData]] = defaultdict(dict)
        self._issuance: Dict[CurrencyId, int] = {}
        self._locks: Dict[Tuple[CurrencyId, AccountId], Dict[LockId, int]] = {}
        self.seen_intent_ids: Set[str] = set()
        self.adjustment_log: List[AdjustmentRecord] = []
        self._next_sequence: int = 0

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_currency(self, currency: Currency) -> None:
        """
        Register a currency.

        Exactly one native currency may be registered, and every stable
        currency must name it as its settlement currency.

        Raises:
            ValueError: If the symbol is already registered
            InvalidCurrencyConfiguration: If the native/stable invariants would break
        """
        if currency.symbol in self.currencies:
            raise ValueError(f"Currency {currency.symbol} already registered")
        if currency.is_native:
            if self._native is not None:
                raise InvalidCurrencyConfiguration(
                    f"Native currency already registered: {self._native}"
                )
        else:
            if self._native is None:
                raise InvalidCurrencyConfiguration(
                    f"Register the native currency before stable currency {currency.symbol}"
                )
            if currency.settlement_currency != self._native:
                raise InvalidCurrencyConfiguration(
                    f"{currency.symbol} settles in {currency.settlement_currency}, "
                    f"native currency is {self._native}"
                )
        self.currencies[currency.symbol] = currency
        self._issuance[currency.symbol] = 0
        if currency.is_native:
            self._native = currency.symbol
        if self.verbose:
            kind = "native" if currency.is_native else f"peg={currency.peg.base_unit} {currency.peg.peg_currency}"
            print(f"Registered: {currency.symbol} ({currency.name}) [{kind}]")

    @property
    def native_currency(self) -> CurrencyId:
        if self._native is None:
            raise CurrencyNotRegistered("No native currency registered")
        return self._native

    def stable_currencies(self) -> List[CurrencyId]:
        """Sorted list of registered stable currency symbols."""
        return sorted(s for s, c in self.currencies.items() if c.is_stable)

    def get_currency(self, currency: CurrencyId) -> Currency:
        if currency not in self.currencies:
            raise CurrencyNotRegistered(f"Currency {currency} not registered")
        return self.currencies[currency]

    def currency(self, currency: CurrencyId) -> CurrencyHandle:
        """Return a single-currency view bound to `currency`."""
        self.get_currency(currency)
        return CurrencyHandle(self, currency)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    def minimum_balance(self, currency: CurrencyId) -> int:
        return self.get_currency(currency).minimum_balance

    def base_unit(self, currency: CurrencyId) -> int:
        return self.get_currency(currency).base_unit

    def total_issuance(self, currency: CurrencyId) -> int:
        self.get_currency(currency)
        return self._issuance[currency]

    def free_balance(self, currency: CurrencyId, who: AccountId) -> int:
        return self._account(currency, who).free

    def reserved_balance(self, currency: CurrencyId, who: AccountId) -> int:
        return self._account(currency, who).reserved

    def total_balance(self, currency: CurrencyId, who: AccountId) -> int:
        return self._account(currency, who).total

    def effective_lock(self, currency: CurrencyId, who: AccountId) -> int:
        """Binding hold: the maximum over all named locks, not their sum."""
        self.get_currency(currency)
        locks = self._locks.get((currency, who))
        return max(locks.values()) if locks else 0

    def locks(self, currency: CurrencyId, who: AccountId) -> List[BalanceLock]:
        self.get_currency(currency)
        locks = self._locks.get((currency, who), {})
        return [BalanceLock(lock_id, amount) for lock_id, amount in sorted(locks.items())]

    def accounts(self, currency: CurrencyId) -> AccountMap:
        """Copy of every account record ever credited in `currency`."""
        self.get_currency(currency)
        return {
            who: AccountData(data.free, data.reserved)
            for who, data in self._accounts[currency].items()
        }

    def verify_issuance(self) -> Dict[str, Any]:
        """
        Verify that total issuance equals Σ(free+reserved) for every currency.

        Accounts are summed in sorted order for a deterministic accumulation.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every currency balances
            - 'issuance': Dict[str, int] - Recorded total issuance per currency
            - 'discrepancies': List[Dict] - unit, recorded, actual, difference
        """
        issuance = {}
        discrepancies = []
        for symbol in sorted(self.currencies):
            recorded = self._issuance[symbol]
            accounts = self._accounts[symbol]
            actual = sum(accounts[who].total for who in sorted(accounts))
            issuance[symbol] = recorded
            if actual != recorded:
                discrepancies.append({
                    'currency': symbol,
                    'recorded': recorded,
                    'actual': actual,
                    'difference': actual - recorded,
                })
        return {
            'valid': len(discrepancies) == 0,
            'issuance': issuance,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # DRY RUNS
    # ========================================================================

    def ensure_can_withdraw(self, currency: CurrencyId, who: AccountId, amount: int) -> None:
        """
        Succeed iff free - amount >= effective lock. No side effects.

        Raises:
            InsufficientBalance: If the withdrawal would breach free balance or locks
        """
        ensure_balance(amount, "amount")
        if amount == 0:
            self.get_currency(currency)
            return
        free = self.free_balance(currency, who)
        if amount > free:
            raise InsufficientBalance(f"{who} {currency}: free {free} < {amount}")
        lock = self.effective_lock(currency, who)
        if free - amount < lock:
            raise InsufficientBalance(
                f"{who} {currency}: {free} - {amount} would breach lock {lock}"
            )

    def can_withdraw(self, currency: CurrencyId, who: AccountId, amount: int) -> bool:
        try:
            self.ensure_can_withdraw(currency, who, amount)
        except InsufficientBalance:
            return False
        return True

    def can_slash(self, currency: CurrencyId, who: AccountId, value: int) -> bool:
        """Same result as slash() (without side effects) ignoring the reserved balance."""
        ensure_balance(value, "value")
        return value == 0 or self.free_balance(currency, who) >= value

    def can_reserve(self, currency: CurrencyId, who: AccountId, value: int) -> bool:
        """Same result as reserve() without side effects."""
        return self.can_withdraw(currency, who, value)

    # ========================================================================
    # BALANCE OPERATIONS (Mutating)
    # ========================================================================

    def transfer(self, currency: CurrencyId, source: AccountId, dest: AccountId, amount: int) -> None:
        """
        Move `amount` of free balance from `source` to `dest`. Issuance unchanged.

        Transferring to the same account is a no-op success.

        Raises:
            InsufficientBalance: If `source` cannot withdraw `amount`
        """
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        if amount == 0 or source == dest:
            return
        self.ensure_can_withdraw(currency, source, amount)
        src = self._account(currency, source)
        dst = self._account(currency, dest)
        new_dst = checked_add(dst.free, amount)
        new_src = src.free - amount
        src = self._account_mut(currency, source)
        dst = self._account_mut(currency, dest)
        src.free = new_src
        dst.free = new_dst
        self._check_dust(currency, source)

    def deposit(self, currency: CurrencyId, who: AccountId, amount: int) -> None:
        """
        Mint `amount` into the free balance of `who`.

        Raises:
            Overflow: If the balance or total issuance would exceed the range
        """
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        if amount == 0:
            return
        new_issuance = checked_add(self._issuance[currency], amount)
        new_free = checked_add(self.free_balance(currency, who), amount)
        self._account_mut(currency, who).free = new_free
        self._issuance[currency] = new_issuance

    def withdraw(self, currency: CurrencyId, who: AccountId, amount: int) -> None:
        """
        Burn `amount` from the free balance of `who`.

        Raises:
            InsufficientBalance: If ensure_can_withdraw fails
        """
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        if amount == 0:
            return
        self.ensure_can_withdraw(currency, who, amount)
        new_issuance = checked_sub(self._issuance[currency], amount)
        self._account_mut(currency, who).free -= amount
        self._issuance[currency] = new_issuance
        self._check_dust(currency, who)

    def update_balance(self, currency: CurrencyId, who: AccountId, by_amount: int) -> None:
        """Deposit a positive `by_amount`, withdraw the absolute value of a negative one."""
        if by_amount > 0:
            self.deposit(currency, who, by_amount)
        elif by_amount < 0:
            self.withdraw(currency, who, -by_amount)
        else:
            self.get_currency(currency)

    def slash(self, currency: CurrencyId, who: AccountId, amount: int) -> int:
        """
        Deduct up to `amount`, free first then reserved. Never fails.

        Locks are not consulted: slashing is the lender-of-last-resort primitive.

        Returns:
            The unpaid remainder (0 if fully satisfied)
        """
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        if amount == 0:
            return 0
        data = self._account(currency, who)
        from_free = min(amount, data.free)
        from_reserved = min(amount - from_free, data.reserved)
        deducted = from_free + from_reserved
        if deducted:
            data = self._account_mut(currency, who)
            data.free -= from_free
            data.reserved -= from_reserved
            self._issuance[currency] -= deducted
            self._check_dust(currency, who)
        return amount - deducted

    # ========================================================================
    # RESERVES (Mutating)
    # ========================================================================

    def reserve(self, currency: CurrencyId, who: AccountId, value: int) -> None:
        """
        Move `value` from free to reserved.

        Raises:
            InsufficientBalance: If free (after locks) is insufficient; nothing moves
        """
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return
        self.ensure_can_withdraw(currency, who, value)
        data = self._account_mut(currency, who)
        new_reserved = checked_add(data.reserved, value)
        data.free -= value
        data.reserved = new_reserved

    def unreserve(self, currency: CurrencyId, who: AccountId, value: int) -> int:
        """Move up to `value` from reserved to free. Returns the unmoved remainder."""
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return 0
        data = self._account(currency, who)
        actual = min(data.reserved, value)
        if actual:
            data = self._account_mut(currency, who)
            data.reserved -= actual
            data.free += actual
        return value - actual

    def slash_reserved(self, currency: CurrencyId, who: AccountId, value: int) -> int:
        """Burn up to `value` from reserved. Returns the unpaid remainder."""
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return 0
        data = self._account(currency, who)
        actual = min(data.reserved, value)
        if actual:
            data = self._account_mut(currency, who)
            data.reserved -= actual
            self._issuance[currency] -= actual
            self._check_dust(currency, who)
        return value - actual

    def repatriate_reserved(
        self,
        currency: CurrencyId,
        slashed: AccountId,
        beneficiary: AccountId,
        value: int,
        status: BalanceStatus,
    ) -> int:
        """
        Move up to `value` from the reserved balance of `slashed` to `beneficiary`.

        Funds land in the beneficiary's free or reserved balance per `status`.
        Issuance is unchanged.

        Returns:
            The unmoved remainder
        """
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return 0
        if slashed == beneficiary:
            if status is BalanceStatus.FREE:
                return self.unreserve(currency, slashed, value)
            return value - min(self.reserved_balance(currency, slashed), value)
        actual = min(self.reserved_balance(currency, slashed), value)
        if actual:
            src = self._account_mut(currency, slashed)
            dst = self._account_mut(currency, beneficiary)
            src.reserved -= actual
            if status is BalanceStatus.FREE:
                dst.free += actual
            else:
                dst.reserved += actual
            self._check_dust(currency, slashed)
        return value - actual

    def create_reserved(self, currency: CurrencyId, who: AccountId, value: int) -> None:
        """
        Mint `value` directly into the reserved balance of `who`.

        Raises:
            Overflow: If total issuance would exceed the range
        """
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return
        new_issuance = checked_add(self._issuance[currency], value)
        new_reserved = checked_add(self.reserved_balance(currency, who), value)
        self._account_mut(currency, who).reserved = new_reserved
        self._issuance[currency] = new_issuance

    def burn_reserved(self, currency: CurrencyId, who: AccountId, value: int) -> None:
        """
        Burn exactly `value` from the reserved balance of `who`.

        Raises:
            InsufficientBalance: If reserved < value; nothing is burned
        """
        ensure_balance(value, "value")
        self.get_currency(currency)
        if value == 0:
            return
        reserved = self.reserved_balance(currency, who)
        if reserved < value:
            raise InsufficientBalance(f"{who} {currency}: reserved {reserved} < {value}")
        self._account_mut(currency, who).reserved -= value
        self._issuance[currency] -= value
        self._check_dust(currency, who)

    # ========================================================================
    # LOCKS (Mutating, accounting-only)
    # ========================================================================

    def set_lock(self, lock_id: LockId, currency: CurrencyId, who: AccountId, amount: int) -> None:
        """Create or replace the lock `lock_id`. Does not check the balance."""
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        self._locks.setdefault((currency, who), {})[lock_id] = amount

    def extend_lock(self, lock_id: LockId, currency: CurrencyId, who: AccountId, amount: int) -> None:
        """Create the lock, or raise its amount if `amount` is larger. Never lowers it."""
        ensure_balance(amount, "amount")
        self.get_currency(currency)
        locks = self._locks.setdefault((currency, who), {})
        if amount > locks.get(lock_id, -1):
            locks[lock_id] = amount

    def remove_lock(self, lock_id: LockId, currency: CurrencyId, who: AccountId) -> None:
        self.get_currency(currency)
        locks = self._locks.get((currency, who))
        if locks is None:
            return
        locks.pop(lock_id, None)
        if not locks:
            del self._locks[(currency, who)]

    # ========================================================================
    # STAGED EXECUTION (Mutating)
    # ========================================================================

    def execute(self, pending: PendingAdjustment) -> ExecuteResult:
        """
        Execute a PendingAdjustment atomically.

        Every change is staged against a working copy of the touched accounts
        and issuance; only when all of them validate is the working copy
        written back. Execution is idempotent: a pending adjustment with the
        same intent_id is not applied twice.

        Returns:
            ExecuteResult.APPLIED if applied (or empty)
            ExecuteResult.ALREADY_APPLIED if the intent was already executed

        Raises:
            CurrencyNotRegistered, InsufficientBalance, Overflow, Underflow:
                on validation failure, with no state changed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        try:
            staged_accounts, staged_issuance, shortfalls = self._stage(pending)
        except (CurrencyNotRegistered, InsufficientBalance, Overflow, Underflow) as e:
            if self.verbose:
                print(f"REJECTED: {pending} - {e}")
            raise

        # Validation passed - write the working copy back.
        # Untouched empty accounts are not materialised.
        for (currency, who), data in staged_accounts.items():
            if data.total == 0 and who not in self._accounts[currency]:
                continue
            self._accounts[currency][who] = data
        self._issuance.update(staged_issuance)

        record = AdjustmentRecord(
            changes=pending.changes,
            origin=pending.origin,
            now=pending.now,
            intent_id=pending.intent_id,
            sequence_number=self._next_sequence,
            ledger_name=self.name,
            slashed_shortfall=tuple(shortfalls),
        )
        self._next_sequence += 1
        self.adjustment_log.append(record)
        self.seen_intent_ids.add(pending.intent_id)

        for currency, who in staged_accounts:
            self._check_dust(currency, who)

        if self.verbose:
            print(f"APPLIED: {record!r}")
        return ExecuteResult.APPLIED

    def _stage(
        self, pending: PendingAdjustment
    ) -> Tuple[Dict[Tuple[CurrencyId, AccountId], AccountData], Dict[CurrencyId, int], List[int]]:
        """
        Compute the post-adjustment state of every touched account and currency.

        Nothing in the ledger is modified; the returned working copy is applied
        by execute() only if this returns without raising.
        """
        accounts: Dict[Tuple[CurrencyId, AccountId], AccountData] = {}
        issuance: Dict[CurrencyId, int] = {}
        shortfalls: List[int] = []

        for change in pending.changes:
            self.get_currency(change.currency)
            key = (change.currency, change.who)
            if key not in accounts:
                current = self._account(change.currency, change.who)
                accounts[key] = AccountData(current.free, current.reserved)
            if change.currency not in issuance:
                issuance[change.currency] = self._issuance[change.currency]
            data = accounts[key]

            if change.kind is ChangeKind.MINT:
                issuance[change.currency] = checked_add(issuance[change.currency], change.amount)
                data.free = checked_add(data.free, change.amount)
            elif change.kind is ChangeKind.BURN:
                lock = self.effective_lock(change.currency, change.who)
                if change.amount > data.free or data.free - change.amount < lock:
                    raise InsufficientBalance(
                        f"{change.who} {change.currency}: cannot burn {change.amount} "
                        f"(free {data.free}, lock {lock})"
                    )
                data.free -= change.amount
                issuance[change.currency] = checked_sub(issuance[change.currency], change.amount)
            else:
                from_free = min(change.amount, data.free)
                from_reserved = min(change.amount - from_free, data.reserved)
                data.free -= from_free
                data.reserved -= from_reserved
                issuance[change.currency] = checked_sub(
                    issuance[change.currency], from_free + from_reserved
                )
                shortfalls.append(change.amount - from_free - from_reserved)

        return accounts, issuance, shortfalls

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _account(self, currency: CurrencyId, who: AccountId) -> AccountData:
        """Read-only lookup; returns a fresh zero record for unknown accounts."""
        self.get_currency(currency)
        return self._accounts[currency].get(who) or AccountData()

    def _account_mut(self, currency: CurrencyId, who: AccountId) -> AccountData:
        accounts = self._accounts[currency]
        if who not in accounts:
            accounts[who] = AccountData()
        return accounts[who]

    def _check_dust(self, currency: CurrencyId, who: AccountId) -> None:
        if self.on_dust is None:
            return
        total = self._account(currency, who).total
        if 0 < total < self.currencies[currency].minimum_balance:
            self.on_dust(who, currency, total)

    def __repr__(self) -> str:
        return f"Ledger({self.name!r}, {len(self.currencies)} currencies, {len(self.adjustment_log)} adjustments)"


class CurrencyHandle:
    """
    Single-currency view of a Ledger.

    Exposes the ledger operations with the currency argument bound, for code
    that only ever deals with one currency.

    Example:
        usd = ledger.currency("SETUSD")
        usd.deposit("alice", 100)
        usd.free_balance("alice")   # 100
    """

    def __init__(self, ledger: Ledger, currency: CurrencyId):
        self.ledger = ledger
        self.currency_id = currency

    def minimum_balance(self) -> int:
        return self.ledger.minimum_balance(self.currency_id)

    def total_issuance(self) -> int:
        return self.ledger.total_issuance(self.currency_id)

    def free_balance(self, who: AccountId) -> int:
        return self.ledger.free_balance(self.currency_id, who)

    def reserved_balance(self, who: AccountId) -> int:
        return self.ledger.reserved_balance(self.currency_id, who)

    def total_balance(self, who: AccountId) -> int:
        return self.ledger.total_balance(self.currency_id, who)

    def ensure_can_withdraw(self, who: AccountId, amount: int) -> None:
        self.ledger.ensure_can_withdraw(self.currency_id, who, amount)

    def transfer(self, source: AccountId, dest: AccountId, amount: int) -> None:
        self.ledger.transfer(self.currency_id, source, dest, amount)

    def deposit(self, who: AccountId, amount: int) -> None:
        self.ledger.deposit(self.currency_id, who, amount)

    def withdraw(self, who: AccountId, amount: int) -> None:
        self.ledger.withdraw(self.currency_id, who, amount)

    def update_balance(self, who: AccountId, by_amount: int) -> None:
        self.ledger.update_balance(self.currency_id, who, by_amount)

    def can_slash(self, who: AccountId, value: int) -> bool:
        return self.ledger.can_slash(self.currency_id, who, value)

    def slash(self, who: AccountId, amount: int) -> int:
        return self.ledger.slash(self.currency_id, who, amount)

    def can_reserve(self, who: AccountId, value: int) -> bool:
        return self.ledger.can_reserve(self.currency_id, who, value)

    def reserve(self, who: AccountId, value: int) -> None:
        self.ledger.reserve(self.currency_id, who, value)

    def unreserve(self, who: AccountId, value: int) -> int:
        return self.ledger.unreserve(self.currency_id, who, value)

    def slash_reserved(self, who: AccountId, value: int) -> int:
        return self.ledger.slash_reserved(self.currency_id, who, value)

    def repatriate_reserved(self, slashed: AccountId, beneficiary: AccountId, value: int, status: BalanceStatus) -> int:
        return self.ledger.repatriate_reserved(self.currency_id, slashed, beneficiary, value, status)

    def set_lock(self, lock_id: LockId, who: AccountId, amount: int) -> None:
        self.ledger.set_lock(lock_id, self.currency_id, who, amount)

    def extend_lock(self, lock_id: LockId, who: AccountId, amount: int) -> None:
        self.ledger.extend_lock(lock_id, self.currency_id, who, amount)

    def remove_lock(self, lock_id: LockId, who: AccountId) -> None:
        self.ledger.remove_lock(lock_id, self.currency_id, who)

    def __repr__(self) -> str:
        return f"CurrencyHandle({self.currency_id}, ledger={self.ledger.name!r})"
