"""
POWER HOUR - Unit Tests for Helpers & Settings
"""
import pytest

from powerhour.config.settings import get_settings, reset_settings
from powerhour.utils.helpers import (
    clamp,
    get_symbol_type,
    pct_change,
    safe_divide,
    sanitize_symbol,
    sanitize_symbols,
)


class TestSymbols:
    def test_sanitize_strips_dollar_and_case(self):
        assert sanitize_symbol(" $spx ") == "SPX"
        assert sanitize_symbol("aapl") == "AAPL"

    def test_sanitize_symbols_dedupes_in_order(self):
        assert sanitize_symbols(["spy", "$SPX", "SPY", " ", "qqq"]) == ["SPY", "SPX", "QQQ"]

    def test_symbol_type(self):
        assert get_symbol_type("SPX") == "index"
        assert get_symbol_type("$spy") == "etf"
        assert get_symbol_type("AAPL") == "equity"


class TestMath:
    def test_safe_divide(self):
        assert safe_divide(10, 2) == 5
        assert safe_divide(10, 0) == 0.0
        assert safe_divide(10, 0, default=-1) == -1

    def test_clamp(self):
        assert clamp(150) == 100
        assert clamp(-5) == 0
        assert clamp(5, 0, 10) == 5

    def test_pct_change(self):
        assert pct_change(100, 110) == pytest.approx(10.0)
        assert pct_change(0, 5) == 0.0


class TestSettings:
    def test_defaults(self):
        settings = get_settings()
        assert settings.scorer.adx_weight == 30.0
        assert settings.scorer.rvol_weight == 25.0
        assert settings.stream.max_reconnect_attempts == 5
        assert settings.options.preferred_roots["SPX"] == "SPXW"
        assert settings.indicators.supertrend_period == 7

    def test_singleton(self):
        assert get_settings() is get_settings()

    def test_tradier_token_alias(self, monkeypatch):
        monkeypatch.delenv("TRADIER_API_KEY", raising=False)
        monkeypatch.setenv("TRADIER_TOKEN", "abc123")
        reset_settings()
        assert get_settings().data.tradier_api_key == "abc123"

    def test_env_overrides_threshold(self, monkeypatch):
        monkeypatch.setenv("ADX_EXIT_WARNING", "18")
        reset_settings()
        assert get_settings().scorer.adx_exit_warning == 18.0
