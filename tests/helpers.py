"""
helpers.py - Shared builders for serp tests

Plain functions (not fixtures) so that hypothesis tests can build a fresh
ledger per example.
"""

from serp import Ledger, native, stable


NATIVE = "SETM"
STABLE = "SETUSD"
SERPER = "serper"
PEG_UNIT = 1_000


def make_ledger(name: str = "test", **kwargs) -> Ledger:
    """Ledger with SETM (native) and SETUSD (pegged to USD at 1_000)."""
    ledger = Ledger(name, verbose=False, **kwargs)
    ledger.register_currency(native(NATIVE, "Setheum"))
    ledger.register_currency(stable(STABLE, "SetDollar", NATIVE, PEG_UNIT, "USD"))
    return ledger


def snapshot(ledger: Ledger) -> dict:
    """Every (currency, account) balance plus issuance, for before/after comparisons."""
    state = {}
    for currency in sorted(ledger.currencies):
        state[("issuance", currency)] = ledger.total_issuance(currency)
        for who, data in ledger.accounts(currency).items():
            state[(currency, who)] = (data.free, data.reserved)
    return state


def reference_config(**overrides) -> dict:
    """Config dict for a single stable currency at the reference parameters."""
    stable_cfg = {
        "symbol": STABLE,
        "name": "SetDollar",
        "peg_currency": "USD",
        "peg_unit": PEG_UNIT,
        "tolerance": 0,
        "incentive_rate": "0.01",
        "adjustment_frequency": 1,
    }
    stable_cfg.update(overrides)
    return {
        "native": {"symbol": NATIVE, "name": "Setheum"},
        "stables": [stable_cfg],
        "serper": SERPER,
    }
