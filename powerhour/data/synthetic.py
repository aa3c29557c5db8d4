"""
POWER HOUR - Synthetic Market Data
Deterministic fallback candles and quotes for when every provider fails.
The same (symbol, base price, count, interval, end time) always yields the
same series, so a degraded dashboard does not jitter between refreshes.
"""
import hashlib
from typing import Dict, List, Optional

import numpy as np

from powerhour.config.settings import get_settings
from powerhour.data.models import Candle, Quote, QuoteSource
from powerhour.data.stabilizer import restabilize
from powerhour.utils.helpers import get_symbol_type, now_ms, safe_divide
from powerhour.utils.logger import get_logger

logger = get_logger("synthetic")

RESOLUTION_MINUTES: Dict[str, int] = {
    "1": 1,
    "5": 5,
    "15": 15,
    "30": 30,
    "60": 60,
    "D": 1440,
    "W": 10080,
    "M": 43200,
}


def resolution_to_minutes(resolution: str) -> int:
    return RESOLUTION_MINUTES.get(str(resolution).upper(), 5)


def _seed_for(symbol: str, base_price: float) -> int:
    digest = hashlib.sha256(f"{symbol}:{base_price:.4f}".encode()).hexdigest()
    return int(digest[:8], 16)


class SyntheticDataGenerator:
    """Mean-reverting random walk around a per-symbol base price."""

    def __init__(self, base_prices: Optional[Dict[str, float]] = None,
                 default_price: Optional[float] = None):
        settings = get_settings().data
        self.base_prices = dict(base_prices if base_prices is not None else settings.synthetic_base_prices)
        self.default_price = default_price if default_price is not None else settings.synthetic_default_price

    def base_price(self, symbol: str) -> float:
        return self.base_prices.get(symbol.upper(), self.default_price)

    def generate_candles(
        self,
        symbol: str,
        count: int = 100,
        interval_minutes: int = 5,
        end_ms: Optional[int] = None,
        base_price: Optional[float] = None,
    ) -> List[Candle]:
        base = base_price if base_price is not None else self.base_price(symbol)
        if count <= 0 or base <= 0:
            return []

        interval_ms = interval_minutes * 60 * 1000
        end = end_ms if end_ms is not None else now_ms()
        # Align to the interval so repeated calls inside one bar agree
        last_start = end - (end % interval_ms)
        first_start = last_start - (count - 1) * interval_ms

        rng = np.random.RandomState(_seed_for(symbol.upper(), base))

        if base > 1000:
            volatility, volume_base = 0.002, 500_000
        elif base > 100:
            volatility, volume_base = 0.003, 1_000_000
        else:
            volatility, volume_base = 0.005, 2_000_000

        candles: List[Candle] = []
        price = base
        for i in range(count):
            trend_bias = (base - price) / base * 0.1
            move = (rng.random_sample() - 0.5 + trend_bias) * base * volatility

            open_ = price
            close = max(price + move, 0.01)
            spread = abs(move) + rng.random_sample() * base * volatility * 0.5
            high = max(open_, close) + rng.random_sample() * spread * 0.5
            low = max(min(open_, close) - rng.random_sample() * spread * 0.5, 0.01)
            volume = int(volume_base * (0.5 + rng.random_sample()) * (1 + abs(move) / base * 10))

            candles.append(Candle(
                timestamp=first_start + i * interval_ms,
                open=round(open_, 2),
                high=round(high, 2),
                low=round(low, 2),
                close=round(close, 2),
                volume=float(volume),
            ))
            price = close

        return candles

    def generate_quote(self, symbol: str, end_ms: Optional[int] = None) -> Quote:
        """Quote derived from the last synthetic one-minute bar."""
        symbol = symbol.upper()
        base = self.base_price(symbol)
        candles = self.generate_candles(symbol, count=30, interval_minutes=1, end_ms=end_ms, base_price=base)
        last = candles[-1].close if candles else base
        prev_close = round(base * 0.998, 2)
        change = round(last - prev_close, 2)

        quote = Quote(
            symbol=symbol,
            symbol_type=get_symbol_type(symbol),
            last=last,
            change=change,
            change_percent=round(safe_divide(change, prev_close) * 100, 4),
            volume=int(sum(c.volume for c in candles)),
            prev_close=prev_close,
            open=candles[0].open if candles else base,
            high=max(c.high for c in candles) if candles else base,
            low=min(c.low for c in candles) if candles else base,
            source=QuoteSource.SIMULATED,
            provider="simulated",
        )
        logger.debug("synthetic_quote_generated", symbol=symbol, last=last)
        return restabilize(quote)
