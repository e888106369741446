"""
Slash Saturation Conformance Tests

INVARIANT: slash is best-effort and never fails.

    r = slash(c, A, x)
        ⟹ 0 <= r <= x
        ⟹ deducted = x - r = min(x, free(A) + reserved(A))
        ⟹ free is drained before reserved
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from serp import BalanceChange, ChangeKind, build_adjustment
from tests.helpers import STABLE, make_ledger


balances = st.integers(min_value=0, max_value=10**9)


class TestSlashProperties:
    """Property-based slash tests."""

    @given(free=balances, reserved=balances, amount=balances, lock=balances)
    @settings(max_examples=300)
    def test_slash_saturates(self, free, reserved, amount, lock):
        ledger = make_ledger()
        ledger.deposit(STABLE, "alice", free + reserved)
        ledger.reserve(STABLE, "alice", reserved)
        ledger.set_lock("staking", STABLE, "alice", lock)

        remainder = ledger.slash(STABLE, "alice", amount)
        deducted = amount - remainder

        assert 0 <= remainder <= amount
        assert deducted == min(amount, free + reserved)
        assert ledger.free_balance(STABLE, "alice") == free - min(amount, free)
        assert ledger.total_balance(STABLE, "alice") == free + reserved - deducted
        assert ledger.total_issuance(STABLE) == free + reserved - deducted

    @given(free=balances, reserved=balances, amount=st.integers(min_value=1, max_value=10**9))
    @settings(max_examples=100)
    def test_staged_slash_matches_direct_slash(self, free, reserved, amount):
        direct = make_ledger()
        staged = make_ledger()
        for ledger in (direct, staged):
            ledger.deposit(STABLE, "alice", free + reserved)
            ledger.reserve(STABLE, "alice", reserved)

        remainder = direct.slash(STABLE, "alice", amount)
        staged.execute(build_adjustment([BalanceChange(STABLE, "alice", ChangeKind.SLASH, amount)]))

        assert staged.accounts(STABLE) == direct.accounts(STABLE)
        assert staged.adjustment_log[0].slashed_shortfall == (remainder,)
