"""
POWER HOUR - Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest
import pandas as pd
import numpy as np
from datetime import timezone

from powerhour.config.settings import reset_settings
from powerhour.data.models import Candle


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test reads settings from a clean environment snapshot."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def sample_ohlcv_df():
    """Generate a realistic OHLCV DataFrame for testing."""
    np.random.seed(42)
    n = 200
    dates = pd.date_range(start="2024-01-02 14:30", periods=n, freq="5min", tz=timezone.utc)

    base_price = 100.0
    returns = np.random.normal(0.0001, 0.002, n)
    prices = base_price * np.exp(np.cumsum(returns))
    prices = prices + np.linspace(0, 5, n)

    high_noise = np.abs(np.random.normal(0, 0.5, n))
    low_noise = np.abs(np.random.normal(0, 0.5, n))

    df = pd.DataFrame({
        "open": prices + np.random.normal(0, 0.1, n),
        "high": prices + high_noise,
        "low": prices - low_noise,
        "close": prices,
        "volume": np.random.randint(1000, 50000, n).astype(float),
    }, index=dates)

    df["high"] = df[["open", "high", "close"]].max(axis=1) + 0.01
    df["low"] = df[["open", "low", "close"]].min(axis=1) - 0.01
    return df


@pytest.fixture
def small_ohlcv_df():
    """Small DataFrame for edge case testing."""
    dates = pd.date_range(start="2024-01-02 14:30", periods=10, freq="5min", tz=timezone.utc)
    return pd.DataFrame({
        "open": [100, 101, 102, 101, 103, 104, 103, 105, 106, 107],
        "high": [101, 102, 103, 102, 104, 105, 104, 106, 107, 108],
        "low": [99, 100, 101, 100, 102, 103, 102, 104, 105, 106],
        "close": [100.5, 101.5, 102.5, 101.5, 103.5, 104.5, 103.5, 105.5, 106.5, 107.5],
        "volume": [10000, 12000, 15000, 8000, 20000, 25000, 11000, 30000, 18000, 22000],
    }, index=dates, dtype=float)


@pytest.fixture
def empty_df():
    return pd.DataFrame(columns=["open", "high", "low", "close", "volume"])


def _frame_to_candles(df: pd.DataFrame):
    return [
        Candle(
            timestamp=int(ts.timestamp() * 1000),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for ts, row in df.iterrows()
    ]


@pytest.fixture
def sample_candles(sample_ohlcv_df):
    return _frame_to_candles(sample_ohlcv_df)


@pytest.fixture
def rising_candles():
    """Strictly rising closes with a fixed 1-point range per bar."""
    start = 1_704_205_800_000
    return [
        Candle(timestamp=start + i * 300_000, open=100.0 + i - 0.2, high=100.0 + i + 0.5,
               low=100.0 + i - 0.5, close=100.0 + i, volume=10_000.0)
        for i in range(40)
    ]
