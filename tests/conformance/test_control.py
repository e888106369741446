"""
Control Conformance Tests

INVARIANT: The controller is quiet at the peg and never oscillates.

    stable_price = peg_unit ⟹ zero ledger mutations
    two ticks in immediate succession, unchanged price, tolerance > 0
        ⟹ the second tick is a no-op
    supply_change <= total_issuance
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from serp import SupplyController, ElasticParams, Price, TickOutcome, NoOpReason
from tests.helpers import NATIVE, STABLE, SERPER, make_ledger, snapshot


class TestControlProperties:
    """Property-based controller tests."""

    @given(
        issuance=st.integers(min_value=0, max_value=10**15),
        peg_unit=st.integers(min_value=1, max_value=10**6),
        native_price=st.one_of(st.none(), st.integers(min_value=0, max_value=10**9)),
        tolerance=st.integers(min_value=0, max_value=1_000),
        now=st.integers(min_value=0, max_value=10**6),
    )
    @settings(max_examples=200)
    def test_zero_point(self, issuance, peg_unit, native_price, tolerance, now):
        ledger = make_ledger()
        ledger.deposit(STABLE, SERPER, issuance)
        params = ElasticParams(peg_unit=peg_unit, tolerance=tolerance, incentive_rate=Price.from_decimal("0.01"))
        controller = SupplyController(ledger, {STABLE: params})
        before = snapshot(ledger)

        report = controller.on_serp_block(now, STABLE, peg_unit, native_price)

        assert report.outcome is TickOutcome.NO_OP
        assert snapshot(ledger) == before
        assert ledger.adjustment_log == []

    @given(
        stable_price=st.integers(min_value=1, max_value=10_000),
        tolerance=st.integers(min_value=1, max_value=50),
        now=st.integers(min_value=0, max_value=10**6),
    )
    @settings(max_examples=200)
    def test_round_trip_second_tick_is_noop(self, stable_price, tolerance, now):
        ledger = make_ledger()
        ledger.deposit(STABLE, SERPER, 1_000_000)
        ledger.deposit(NATIVE, SERPER, 10**12)
        params = ElasticParams(peg_unit=1_000, tolerance=tolerance, incentive_rate=Price.from_decimal("0.01"))
        controller = SupplyController(ledger, {STABLE: params})

        controller.on_serp_block(now, STABLE, stable_price, 10_000)
        after_first = snapshot(ledger)
        second = controller.on_serp_block(now, STABLE, stable_price, 10_000)

        assert second.outcome is TickOutcome.NO_OP
        assert snapshot(ledger) == after_first

    @given(
        issuance=st.integers(min_value=0, max_value=10**15),
        stable_price=st.integers(min_value=0, max_value=10**7),
    )
    @settings(max_examples=200)
    def test_supply_change_bounded_by_issuance(self, issuance, stable_price):
        ledger = make_ledger()
        ledger.deposit(STABLE, SERPER, issuance)
        controller = SupplyController(ledger, {STABLE: ElasticParams(peg_unit=1_000)})
        direction, change = controller.calculate_supply_change(STABLE, stable_price)
        assert 0 <= change <= issuance
        assert (direction is None) == (stable_price == 1_000)


class TestControlExamples:
    """Explicit controller examples."""

    def test_unchanged_price_after_expansion_is_noop(self):
        ledger = make_ledger()
        ledger.deposit(STABLE, SERPER, 1_000_000)
        controller = SupplyController(ledger, {STABLE: ElasticParams(peg_unit=1_000, tolerance=5)})

        first = controller.on_serp_block(7, STABLE, 1_100, 10_000)
        second = controller.on_serp_block(7, STABLE, 1_100, 10_000)

        assert first.outcome is TickOutcome.EXPANDED
        assert second.reason is NoOpReason.FREQUENCY_NOT_MET
        assert ledger.total_issuance(STABLE) == 1_100_000
