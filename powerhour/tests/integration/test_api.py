"""
POWER HOUR - Integration Tests for the HTTP API
The data layer is real, wired to fake providers; the lifespan is not run.
"""
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from powerhour.api.app import app
from powerhour.data.errors import ConfigurationError, ProviderTransportError
from powerhour.data.models import Candle, OptionContract
from powerhour.data.resolver import FailoverResolver
from powerhour.data.synthetic import SyntheticDataGenerator
from powerhour.options.chain_loader import OptionsChainLoader
from powerhour.streaming.sync_manager import QuoteSyncManager
from powerhour.tests.fakes import FakeAdapter, FakeChainAdapter, FakeTransport, TransportFactory, make_quote

STRONG_BULLISH_STATE = {
    "adx": 35.0, "adx_slope": 1.2, "adx_direction": "BULLISH", "plus_di": 32.0, "minus_di": 12.0,
    "ewo": 6.0, "rvol": 2.5, "rsi": 25.0, "vwap_deviation": 1.5,
}
DYING_TREND_STATE = {
    "adx": 15.0, "adx_slope": -0.5, "ewo": 6.0, "rvol": 2.5, "rsi": 25.0, "vwap_deviation": 1.5,
}


def uptrend_bars(n=60):
    return [
        Candle(timestamp=1_704_205_800_000 + i * 300_000, open=100 + i - 0.2, high=100 + i + 0.5,
               low=100 + i - 0.5, close=100 + i, volume=10_000)
        for i in range(n)
    ]


def contract(option_type, strike, expiration):
    return OptionContract(symbol=f"AAPL{option_type[0].upper()}{strike}", root_symbol="AAPL",
                          underlying="AAPL", option_type=option_type, strike=strike,
                          expiration_date=expiration, bid=1.0, ask=1.2)


@pytest.fixture
def services():
    provider = FakeAdapter(
        "fake",
        quotes={"SPY": make_quote("SPY", bid=599.9, ask=600.1), "AAPL": make_quote("AAPL", last=200.0)},
        candles={"AAPL": uptrend_bars()},
    )
    resolver = FailoverResolver(
        adapters=[provider],
        generator=SyntheticDataGenerator(default_price=100.0),
        timeout_seconds=1.0,
        market_open=lambda: True,
        synthetic_when_closed=False,
    )
    manager = QuoteSyncManager(
        resolver=resolver,
        transport_factory=TransportFactory(FakeTransport(hold=True)),
        symbols=["SPY", "AAPL"],
        poll_interval=60.0,
    )
    chain_adapter = FakeChainAdapter(
        expirations={"AAPL": ["2025-06-20", "2025-07-18"], "BROKEN": ConfigurationError("TRADIER_API_KEY is not configured")},
        chains={
            ("AAPL", "2025-06-20"): [contract("call", 200, "2025-06-20"), contract("put", 200, "2025-06-20")],
            ("AAPL", "2025-07-18"): [contract("call", 210, "2025-07-18")],
        },
    )
    loader = OptionsChainLoader(chain_adapter, preferred_roots={})

    with patch("powerhour.api.app.get_resolver", return_value=resolver), \
            patch("powerhour.api.app.get_sync_manager", return_value=manager), \
            patch("powerhour.api.app.get_chain_loader", return_value=loader):
        yield SimpleNamespace(resolver=resolver, manager=manager, loader=loader, provider=provider)


@pytest.fixture
def client(services):
    return TestClient(app)


class TestSystemEndpoints:
    def test_health_endpoint(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status_endpoint(self, client):
        response = client.get("/api/v1/status")
        assert response.status_code == 200
        data = response.json()
        assert data["providers"] == ["fake"]
        assert data["sync"]["symbols"] == ["SPY", "AAPL"]
        assert "adx" in data["indicators"]
        assert data["candle_cache"]["entries"] == 0

    def test_market_status_endpoint(self, client):
        response = client.get("/api/v1/market-status")
        assert response.status_code == 200
        assert response.json()["session"] in ("regular", "pre_market", "after_hours", "closed")


class TestQuoteEndpoints:
    def test_unknown_quote_is_404(self, client):
        assert client.get("/api/v1/quotes/SPY").status_code == 404

    def test_refresh_then_read(self, client):
        response = client.post("/api/v1/quotes/refresh")
        assert response.status_code == 200
        assert {q["symbol"] for q in response.json()["quotes"]} == {"SPY", "AAPL"}

        quote = client.get("/api/v1/quotes/spy").json()
        assert quote["display_price"] == pytest.approx(600.0)
        assert quote["source"] == "poll"
        assert quote["provider"] == "fake"

        listed = client.get("/api/v1/quotes").json()
        assert [q["symbol"] for q in listed["quotes"]] == ["SPY", "AAPL"]

    def test_watchlist_update(self, client):
        response = client.put("/api/v1/watchlist", json={"symbols": ["$qqq", "spy", "SPY"]})
        assert response.status_code == 200
        assert response.json()["symbols"] == ["QQQ", "SPY"]

    def test_switch_to_polling(self, client):
        response = client.post("/api/v1/data-mode", json={"streaming": False})
        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "poll"
        assert data["streaming_enabled"] is False


class TestSignalEndpoints:
    def test_score_strong_bullish(self, client):
        response = client.post("/api/v1/signal/score", json=STRONG_BULLISH_STATE)
        assert response.status_code == 200
        data = response.json()
        assert data["signal"] == "strong_bullish"
        assert data["confidence"] == 100.0
        assert data["aligned_count"] == 5
        assert data["warnings"] == []

    def test_score_exit_warning(self, client):
        data = client.post("/api/v1/signal/score", json=DYING_TREND_STATE).json()
        assert data["signal"] == "avoid"
        assert data["recommendation"] == "EXIT POSITION - Trend dying"

    def test_score_rejects_incomplete_state(self, client):
        response = client.post("/api/v1/signal/score", json={"adx": 30.0})
        assert response.status_code == 422

    def test_candles_from_provider(self, client):
        data = client.get("/api/v1/candles/aapl", params={"limit": 20}).json()
        assert data["source"] == "fake"
        assert data["is_simulated"] is False
        assert len(data["candles"]) == 20

    def test_candles_fall_back_to_synthetic(self, client):
        data = client.get("/api/v1/candles/TSLA", params={"limit": 30}).json()
        assert data["source"] == "simulated"
        assert data["is_simulated"] is True
        assert len(data["candles"]) == 30

    def test_symbol_signal(self, client):
        response = client.get("/api/v1/signal/AAPL")
        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "AAPL"
        assert data["indicators"]["adx_direction"] == "BULLISH"
        assert data["result"]["signal"] in (
            "strong_bullish", "weak_bullish", "neutral", "weak_bearish", "strong_bearish", "avoid",
        )

    def test_supertrend(self, client):
        data = client.get("/api/v1/supertrend/AAPL", params={"bands": 5}).json()
        assert len(data["bands"]) == 5
        assert data["signal"] == "BUY"
        assert data["bands"][-1]["signal"] == "BUY"

    def test_reversal(self, client):
        response = client.get("/api/v1/reversal/AAPL")
        assert response.status_code == 200
        data = response.json()
        assert set(data) >= {"pivots", "reversal", "upward_run", "downward_run"}
        assert data["reversal"]["type"] in ("BULLISH_REVERSAL", "BEARISH_REVERSAL", "NONE")
        assert data["downward_run"]["probability"] == 0.0
        assert data["pivot_source"] == "fake"
        assert data["pivots_simulated"] is False
        assert data["pivots"]["pivot"] > 0

    def test_reversal_ignores_simulated_daily_pivots(self, client, services):
        services.provider.candles[("AAPL", "D")] = ProviderTransportError("fake", "HTTP 503", symbol="AAPL")
        data = client.get("/api/v1/reversal/AAPL").json()

        assert data["source"] == "fake"
        assert data["is_simulated"] is False
        assert data["pivot_source"] == "simulated"
        assert data["pivots_simulated"] is True
        assert all(level == 0.0 for level in data["pivots"].values())
        assert not any("bounce" in s for s in data["reversal"]["signals"])


class TestOptionsEndpoints:
    def test_load_and_select_expiration(self, client):
        state = client.post("/api/v1/options/aapl").json()
        assert state["symbol"] == "AAPL"
        assert state["selected_expiration"] == "2025-06-20"
        assert len(state["calls"]) == 1 and len(state["puts"]) == 1

        state = client.post("/api/v1/options/expiration", json={"expiration": "2025-07-18"}).json()
        assert state["selected_expiration"] == "2025-07-18"
        assert [c["strike"] for c in state["calls"]] == [210.0]
        assert state["puts"] == []

        assert client.get("/api/v1/options").json()["symbol"] == "AAPL"

    def test_configuration_error_is_500(self, client):
        response = client.post("/api/v1/options/BROKEN")
        assert response.status_code == 500
        assert "TRADIER_API_KEY" in response.json()["detail"]
