"""
POWER HOUR - Base Data Adapter Interface
All upstream adapters implement this interface. An adapter talks to exactly one
provider, maps its payloads to canonical shapes, and never retries: failures
surface as ProviderTransportError / NoDataError / ConfigurationError.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp
import pandas as pd

from powerhour.config.settings import get_settings
from powerhour.data.errors import ProviderTransportError
from powerhour.data.models import Candle, Quote
from powerhour.utils.logger import get_logger

logger = get_logger("adapter")

RATE_LIMIT_MARKERS = ("too many requests", "rate limit")


class BaseDataAdapter(ABC):
    """Abstract base class for all market data adapters."""

    name: str = "base"

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or get_settings().data.provider_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=self._default_headers())
            logger.info("adapter_connected", provider=self.name)

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("adapter_disconnected", provider=self.name)

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                        symbol: Optional[str] = None) -> Any:
        """GET and decode JSON, converting every transport problem to ProviderTransportError."""
        if self._session is None or self._session.closed:
            await self.connect()
        try:
            async with self._session.get(url, params=params) as resp:
                text = await resp.text()
                if resp.status != 200:
                    logger.warning("provider_http_error", provider=self.name, status=resp.status, symbol=symbol)
                    raise ProviderTransportError(self.name, f"HTTP {resp.status}", symbol=symbol, status=resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("provider_transport_error", provider=self.name, symbol=symbol, error=str(e))
            raise ProviderTransportError(self.name, str(e) or type(e).__name__, symbol=symbol) from e

        stripped = text.lstrip()
        if not stripped.startswith(("{", "[")) and any(m in stripped[:200].lower() for m in RATE_LIMIT_MARKERS):
            logger.warning("provider_rate_limited", provider=self.name, symbol=symbol)
            raise ProviderTransportError(self.name, "rate limited", symbol=symbol)
        try:
            return json.loads(text)
        except ValueError as e:
            raise ProviderTransportError(self.name, "unparseable response body", symbol=symbol) from e

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the latest quote for a symbol."""

    @abstractmethod
    async def get_candles(self, symbol: str, resolution: str = "5", limit: int = 100) -> List[Candle]:
        """Fetch historical candles, oldest first."""

    async def get_quotes(self, symbols: List[str]) -> List[Quote]:
        """Batch quotes. Providers without a batch endpoint fetch one at a time."""
        return [await self.get_quote(symbol) for symbol in symbols]

    def candles_to_dataframe(self, candles: List[Candle]) -> pd.DataFrame:
        return candles_to_dataframe(candles)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


def normalize_candles(candles: List[Candle]) -> List[Candle]:
    """Sort ascending by timestamp; a duplicated timestamp keeps the later entry."""
    by_ts: Dict[int, Candle] = {}
    for candle in candles:
        by_ts[candle.timestamp] = candle
    return [by_ts[ts] for ts in sorted(by_ts)]


def aggregate_candles(candles: List[Candle], interval_minutes: int) -> List[Candle]:
    """Roll finer bars up into `interval_minutes` buckets aligned to the epoch (15m -> 30m)."""
    bucket_ms = interval_minutes * 60 * 1000
    buckets: Dict[int, List[Candle]] = {}
    for candle in normalize_candles(candles):
        buckets.setdefault(candle.timestamp - candle.timestamp % bucket_ms, []).append(candle)
    merged: List[Candle] = []
    for start in sorted(buckets):
        group = buckets[start]
        merged.append(Candle(
            timestamp=start,
            open=group[0].open,
            high=max(c.high for c in group),
            low=min(c.low for c in group),
            close=group[-1].close,
            volume=sum(c.volume for c in group),
        ))
    return merged


def candles_to_dataframe(candles: List[Candle]) -> pd.DataFrame:
    """Convert candles to an OHLCV DataFrame indexed by UTC timestamp."""
    if not candles:
        return pd.DataFrame(columns=["open", "high", "low", "close", "volume"])
    df = pd.DataFrame([c.model_dump() for c in candles])
    df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    df.set_index("timestamp", inplace=True)
    df.sort_index(inplace=True)
    return df
