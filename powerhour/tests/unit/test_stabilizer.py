"""
POWER HOUR - Unit Tests for Mark Stabilizer & Data Health
"""
import pytest

from powerhour.data.models import DataHealthStatus, Quote
from powerhour.data.stabilizer import compute_data_health, restabilize, stabilize


class TestStabilize:
    def test_midpoint_when_both_sides_quoted(self):
        price = stabilize(bid=99.0, ask=101.0, last=105.0)
        assert price.mark == 100.0
        assert price.display_price == 100.0
        assert price.price_source == "mark"

    def test_last_when_one_side_missing(self):
        price = stabilize(bid=0.0, ask=101.0, last=100.5)
        assert price.display_price == 100.5
        assert price.price_source == "last"

    def test_none_inputs_count_as_absent(self):
        price = stabilize(bid=None, ask=None, last=42.0)
        assert price.display_price == 42.0
        assert price.price_source == "last"

    def test_negative_values_ignored(self):
        price = stabilize(bid=-1.0, ask=-2.0, last=-3.0)
        assert price.display_price == 0.0
        assert price.price_source == "none"

    def test_display_never_negative(self):
        for bid, ask, last in [(0, 0, 0), (-5, 10, 0), (3, -1, -1)]:
            assert stabilize(bid, ask, last).display_price >= 0

    def test_trade_print_does_not_move_mark(self):
        first = stabilize(bid=10.0, ask=10.2, last=10.0)
        second = stabilize(bid=10.0, ask=10.2, last=10.2)
        assert first.display_price == second.display_price


class TestRestabilize:
    def test_overwrites_provider_mark(self):
        quote = Quote(symbol="SPY", bid=600.0, ask=600.2, last=599.0, mark=1.0, display_price=1.0)
        restabilize(quote)
        assert quote.display_price == pytest.approx(600.1)
        assert quote.mark == pytest.approx(600.1)
        assert quote.price_source == "mark"


class TestDataHealth:
    NOW = 1_700_000_000_000

    def test_no_timestamps_is_stale(self):
        health = compute_data_health(None, None, None, now=self.NOW)
        assert health.status == DataHealthStatus.STALE
        assert health.reason == "No timestamp data available"

    def test_recent_is_live(self):
        health = compute_data_health(self.NOW - 2_000, None, None, now=self.NOW)
        assert health.status == DataHealthStatus.LIVE
        assert health.age_seconds == pytest.approx(2.0)

    def test_uses_newest_timestamp(self):
        health = compute_data_health(self.NOW - 120_000, self.NOW - 1_000, self.NOW - 90_000, now=self.NOW)
        assert health.status == DataHealthStatus.LIVE

    def test_possibly_delayed(self):
        health = compute_data_health(None, None, self.NOW - 30_000, now=self.NOW)
        assert health.status == DataHealthStatus.POSSIBLY_DELAYED

    def test_stale_after_a_minute(self):
        health = compute_data_health(None, None, self.NOW - 61_000, now=self.NOW)
        assert health.status == DataHealthStatus.STALE
        assert "61s" in health.reason

    def test_index_reasons(self):
        health = compute_data_health(None, None, self.NOW - 20_000, symbol_type="index", now=self.NOW)
        assert health.status == DataHealthStatus.POSSIBLY_DELAYED
        assert health.reason == "Index data may be delayed"
