"""
test_oracle.py - Unit tests for price inputs

Tests:
- StaticDataProvider feed/remove
- TimeSeriesDataProvider point-in-time lookup
- DefaultPriceProvider relative prices
- PriceOracleAdapter turning provider errors into "no price"
"""

import pytest

from serp import (
    Price, DataProvider, PriceProvider,
    StaticDataProvider, TimeSeriesDataProvider, DefaultPriceProvider, PriceOracleAdapter,
    Overflow,
)


class TestStaticDataProvider:
    """Tests for StaticDataProvider."""

    def test_reference_is_one(self):
        feed = StaticDataProvider(reference="USD")
        assert feed.get("USD") == Price.one()

    def test_feed_and_remove(self):
        feed = StaticDataProvider()
        assert feed.get("SETUSD") is None
        feed.feed_value("SETUSD", Price.from_decimal("1.02"))
        assert feed.get("SETUSD") == Price.from_decimal("1.02")
        feed.remove("SETUSD")
        assert feed.get("SETUSD") is None

    def test_feed_values(self):
        feed = StaticDataProvider({"SETM": Price.from_int(10)})
        feed.feed_values({"SETUSD": Price.one(), "SETM": Price.from_int(12)})
        assert feed.get("SETM") == Price.from_int(12)
        assert feed.get("SETUSD") == Price.one()

    def test_satisfies_protocol(self):
        assert isinstance(StaticDataProvider(), DataProvider)


class TestTimeSeriesDataProvider:
    """Tests for TimeSeriesDataProvider."""

    @pytest.fixture
    def series(self):
        return TimeSeriesDataProvider({
            "SETUSD": [(10, Price.from_decimal("1.1")), (0, Price.one())],
        })

    def test_latest_at_or_before(self, series):
        assert series.get_at("SETUSD", 0) == Price.one()
        assert series.get_at("SETUSD", 9) == Price.one()
        assert series.get_at("SETUSD", 10) == Price.from_decimal("1.1")
        assert series.get_at("SETUSD", 99) == Price.from_decimal("1.1")

    def test_before_first_observation(self):
        series = TimeSeriesDataProvider({"SETUSD": [(5, Price.one())]})
        assert series.get_at("SETUSD", 4) is None

    def test_get_follows_cursor(self, series):
        assert series.get("SETUSD") == Price.one()
        series.advance(12)
        assert series.get("SETUSD") == Price.from_decimal("1.1")

    def test_cursor_never_moves_backwards(self, series):
        series.advance(5)
        with pytest.raises(ValueError):
            series.advance(4)

    def test_add_value(self, series):
        series.add_value("SETUSD", 5, Price.from_decimal("0.95"))
        assert series.get_at("SETUSD", 7) == Price.from_decimal("0.95")

    def test_unknown_currency(self, series):
        assert series.get("SETEUR") is None
        assert series.get("USD") == Price.one()


class TestDefaultPriceProvider:
    """Tests for relative prices."""

    def test_base_over_quote(self):
        provider = DefaultPriceProvider(StaticDataProvider({
            "SETM": Price.from_int(10),
            "SETUSD": Price.from_decimal("1.25"),
        }))
        assert provider.get_price("SETM", "SETUSD") == Price.from_int(8)
        assert provider.get_price("SETUSD", "USD") == Price.from_decimal("1.25")

    def test_missing_side(self):
        provider = DefaultPriceProvider(StaticDataProvider({"SETM": Price.from_int(10)}))
        assert provider.get_price("SETM", "SETUSD") is None
        assert provider.get_price("SETUSD", "SETM") is None

    def test_zero_quote(self):
        provider = DefaultPriceProvider(StaticDataProvider({"SETM": Price.from_int(10), "SETUSD": Price.zero()}))
        assert provider.get_price("SETM", "SETUSD") is None

    def test_satisfies_protocol(self):
        assert isinstance(DefaultPriceProvider(StaticDataProvider()), PriceProvider)


class TestPriceOracleAdapter:
    """Tests for the controller-facing adapter."""

    def test_passes_prices_through(self):
        adapter = PriceOracleAdapter(DefaultPriceProvider(StaticDataProvider({"SETM": Price.from_int(10)})))
        assert adapter.get_price("SETM", "USD") == Price.from_int(10)
        assert adapter.get_price("SETEUR", "USD") is None

    def test_provider_error_is_no_price(self):
        class Broken:
            def get_price(self, base, quote):
                raise Overflow("feed overflow")

        assert PriceOracleAdapter(Broken()).get_price("SETM", "USD") is None
