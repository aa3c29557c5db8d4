"""
POWER HOUR - Yahoo Finance Data Adapter
Keyless last-resort provider. Serves extended-hours bars, so it keeps charts
alive after the close.
"""
from typing import Any, Dict, List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.adapters.base import BaseDataAdapter, normalize_candles
from powerhour.data.errors import NoDataError, ProviderTransportError
from powerhour.data.models import Candle, Quote
from powerhour.data.stabilizer import restabilize
from powerhour.utils.helpers import get_symbol_type, sanitize_symbol, safe_divide
from powerhour.utils.logger import get_logger

logger = get_logger("yahoo_adapter")

INTERVALS = {"1": "1m", "5": "5m", "15": "15m", "30": "30m", "60": "1h", "D": "1d", "W": "1wk", "M": "1mo"}
RANGES = {"1": "1d", "5": "5d", "15": "5d", "30": "1mo", "60": "1mo", "D": "6mo", "W": "2y", "M": "5y"}

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def map_symbol(symbol: str) -> str:
    return "^GSPC" if symbol == "SPX" else symbol


class YahooAdapter(BaseDataAdapter):
    """Yahoo Finance v8 chart endpoint."""

    name = "yahoo"

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)
        self.base_url = (base_url or get_settings().data.yahoo_base_url).rstrip("/")

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "User-Agent": USER_AGENT}

    async def _chart(self, symbol: str, interval: str, range_: str) -> Dict[str, Any]:
        url = f"{self.base_url}/v8/finance/chart/{map_symbol(symbol)}"
        params = {"interval": interval, "range": range_, "includePrePost": "true"}
        data = await self._get_json(url, params=params, symbol=symbol)
        chart = data.get("chart") if isinstance(data, dict) else None
        if not isinstance(chart, dict):
            raise ProviderTransportError(self.name, "unexpected chart payload", symbol=symbol)
        error = chart.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else str(error)
            # "Not Found" means Yahoo has no such instrument at all
            raise NoDataError(self.name, f"chart error {code}", symbol=symbol, definitive=code == "Not Found")
        results = chart.get("result") or []
        if not results:
            raise NoDataError(self.name, "empty chart result", symbol=symbol)
        return results[0]

    async def get_quote(self, symbol: str) -> Quote:
        symbol = sanitize_symbol(symbol)
        result = await self._chart(symbol, "1m", "1d")
        meta = result.get("meta") or {}
        price = float(meta.get("regularMarketPrice") or 0)
        if price <= 0:
            raise NoDataError(self.name, "no regularMarketPrice", symbol=symbol)

        prev_close = float(meta.get("previousClose") or meta.get("chartPreviousClose") or price)
        change = price - prev_close
        quote = Quote(
            symbol=symbol,
            description=meta.get("longName") or meta.get("shortName") or symbol,
            symbol_type=get_symbol_type(symbol),
            last=price,
            change=round(change, 4),
            change_percent=round(safe_divide(change, prev_close) * 100, 4),
            prev_close=prev_close,
            high=float(meta.get("regularMarketDayHigh") or price),
            low=float(meta.get("regularMarketDayLow") or price),
            open=float(meta.get("regularMarketOpen") or price),
            volume=int(meta.get("regularMarketVolume") or 0),
            trade_time=int(meta["regularMarketTime"]) * 1000 if meta.get("regularMarketTime") else None,
            provider=self.name,
        )
        return restabilize(quote)

    async def get_candles(self, symbol: str, resolution: str = "5", limit: int = 100) -> List[Candle]:
        symbol = sanitize_symbol(symbol)
        resolution = str(resolution).upper()
        result = await self._chart(symbol, INTERVALS.get(resolution, "5m"), RANGES.get(resolution, "5d"))

        timestamps = result.get("timestamp") or []
        quotes = ((result.get("indicators") or {}).get("quote") or [{}])[0]
        opens, highs = quotes.get("open") or [], quotes.get("high") or []
        lows, closes = quotes.get("low") or [], quotes.get("close") or []
        volumes = quotes.get("volume") or []

        candles: List[Candle] = []
        for i, ts in enumerate(timestamps):
            try:
                o, h, l, c = opens[i], highs[i], lows[i], closes[i]
            except IndexError:
                break
            # Yahoo pads gaps with nulls
            if None in (o, h, l, c):
                continue
            v = volumes[i] if i < len(volumes) and volumes[i] is not None else 0
            candles.append(Candle(timestamp=int(ts) * 1000, open=o, high=h, low=l, close=c, volume=float(v)))

        if not candles:
            raise NoDataError(self.name, "no bars in chart", symbol=symbol)
        return normalize_candles(candles)[-limit:]
