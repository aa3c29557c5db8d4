"""
POWER HOUR - Public.com Data Adapter
Consumer brokerage quotes and bars, first in the polling chain.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.adapters.base import BaseDataAdapter, normalize_candles
from powerhour.data.errors import ConfigurationError, NoDataError, ProviderTransportError
from powerhour.data.models import Candle, Quote
from powerhour.data.stabilizer import restabilize
from powerhour.utils.helpers import get_symbol_type, sanitize_symbol
from powerhour.utils.logger import get_logger

logger = get_logger("public_adapter")

INTERVALS = {"1": "1min", "5": "5min", "15": "15min", "30": "30min", "60": "1hour",
             "D": "1day", "W": "1week", "M": "1month"}

# Public does not carry cash indexes; quote the tracking ETF instead
SYMBOL_MAP = {"SPX": "SPY", "^GSPC": "SPY", "^SPX": "SPY"}


def map_symbol(symbol: str) -> str:
    return SYMBOL_MAP.get(symbol, symbol)


def _to_ms(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 10 ** 12 else int(value * 1000)
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


class PublicAdapter(BaseDataAdapter):
    """Public.com market-data API."""

    name = "public"

    def __init__(self, secret_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)
        settings = get_settings().data
        self.secret_key = secret_key if secret_key is not None else settings.public_secret_key
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    def _default_headers(self) -> Dict[str, str]:
        if not self.secret_key:
            raise ConfigurationError("PUBLIC_SECRET_KEY is not configured")
        return {"Authorization": f"Bearer {self.secret_key}", "Accept": "application/json"}

    def _parse_quote(self, raw: Dict[str, Any], requested: str) -> Quote:
        last = float(raw.get("last_price") or raw.get("price") or 0)
        prev_close = float(raw.get("previous_close") or raw.get("prev_close") or 0)
        change = raw.get("change")
        if change is None:
            change = last - prev_close if last > 0 and prev_close > 0 else 0.0
        change_percent = raw.get("change_percent", raw.get("percent_change"))
        if change_percent is None:
            change_percent = change / prev_close * 100 if prev_close > 0 else 0.0

        quote = Quote(
            symbol=requested,
            description=raw.get("name") or requested,
            symbol_type=get_symbol_type(requested),
            bid=max(float(raw.get("bid") or 0), 0.0),
            ask=max(float(raw.get("ask") or 0), 0.0),
            last=max(last, 0.0),
            change=float(change),
            change_percent=float(change_percent),
            prev_close=prev_close,
            open=float(raw.get("open") or 0),
            high=float(raw.get("high") or 0),
            low=float(raw.get("low") or 0),
            volume=int(raw.get("volume") or 0),
            trade_time=_to_ms(raw.get("timestamp")),
            provider=self.name,
        )
        return restabilize(quote)

    async def get_quotes(self, symbols: List[str]) -> List[Quote]:
        requested = [sanitize_symbol(s) for s in symbols if s]
        if not requested:
            return []
        mapped = {map_symbol(s): s for s in requested}
        data = await self._get_json(
            f"{self.base_url}/market-data/quotes",
            params={"symbols": ",".join(mapped)},
            symbol=",".join(requested),
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(self.name, "unexpected quotes payload", symbol=",".join(requested))
        raw_quotes = data.get("quotes")
        if not raw_quotes:
            raise NoDataError(self.name, "no quotes returned", symbol=",".join(requested))
        quotes = []
        for raw in raw_quotes:
            if not isinstance(raw, dict):
                continue
            upstream = sanitize_symbol(str(raw.get("symbol", "")))
            quotes.append(self._parse_quote(raw, mapped.get(upstream, upstream)))
        return quotes

    async def get_quote(self, symbol: str) -> Quote:
        quotes = await self.get_quotes([symbol])
        return quotes[0]

    async def get_candles(self, symbol: str, resolution: str = "5", limit: int = 100) -> List[Candle]:
        symbol = sanitize_symbol(symbol)
        resolution = str(resolution).upper()
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=90 if resolution in ("D", "W", "M") else 7)
        data = await self._get_json(
            f"{self.base_url}/market-data/candles",
            params={
                "symbol": map_symbol(symbol),
                "interval": INTERVALS.get(resolution, "5min"),
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
            symbol=symbol,
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(self.name, "unexpected candles payload", symbol=symbol)

        candles: List[Candle] = []
        for row in data.get("candles") or []:
            ts = _to_ms(row.get("timestamp") or row.get("time"))
            if ts is None:
                continue
            candles.append(Candle(timestamp=ts, open=row["open"], high=row["high"], low=row["low"],
                                  close=row["close"], volume=float(row.get("volume") or 0)))
        for bar in data.get("bars") or []:
            ts = _to_ms(bar.get("t") or bar.get("timestamp"))
            if ts is None:
                continue
            candles.append(Candle(
                timestamp=ts,
                open=bar.get("o", bar.get("open")),
                high=bar.get("h", bar.get("high")),
                low=bar.get("l", bar.get("low")),
                close=bar.get("c", bar.get("close")),
                volume=float(bar.get("v") or bar.get("volume") or 0),
            ))

        if not candles:
            raise NoDataError(self.name, "no bars returned", symbol=symbol)
        return normalize_candles(candles)[-limit:]
