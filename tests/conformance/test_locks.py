"""
Lock Conformance Tests

INVARIANT: Locks compose by "most restrictive wins".

    effective_lock(A) = max over named locks, never the sum
    extend_lock(a); extend_lock(b) ⟹ effective_lock = max(a, b)
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from serp import InsufficientBalance
from tests.helpers import STABLE, make_ledger


lock_amounts = st.integers(min_value=0, max_value=10**12)


class TestLockProperties:
    """Property-based lock tests."""

    @given(a=lock_amounts, b=lock_amounts)
    @settings(max_examples=200)
    def test_extend_lock_twice_is_max(self, a, b):
        ledger = make_ledger()
        ledger.extend_lock("staking", STABLE, "alice", a)
        ledger.extend_lock("staking", STABLE, "alice", b)
        assert ledger.effective_lock(STABLE, "alice") == max(a, b)

    @given(st.dictionaries(st.text("abcdef", min_size=1, max_size=4), lock_amounts, min_size=1, max_size=6))
    @settings(max_examples=100)
    def test_effective_lock_is_max_of_named_locks(self, locks):
        ledger = make_ledger()
        for lock_id, amount in locks.items():
            ledger.set_lock(lock_id, STABLE, "alice", amount)
        assert ledger.effective_lock(STABLE, "alice") == max(locks.values())

    @given(free=st.integers(0, 10**6), lock=st.integers(0, 10**6), amount=st.integers(0, 10**6))
    @settings(max_examples=200)
    def test_dry_run_agrees_with_withdraw(self, free, lock, amount):
        """
        PROPERTY: can_withdraw never disagrees with withdraw.
        """
        ledger = make_ledger()
        ledger.deposit(STABLE, "alice", free)
        ledger.set_lock("staking", STABLE, "alice", lock)
        allowed = ledger.can_withdraw(STABLE, "alice", amount)
        try:
            ledger.withdraw(STABLE, "alice", amount)
            succeeded = True
        except InsufficientBalance:
            succeeded = False
        assert allowed == succeeded
