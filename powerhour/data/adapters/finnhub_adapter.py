"""
POWER HOUR - Finnhub Data Adapter
Consumer-grade backup for quotes and daily bars.
"""
import re
import time
from typing import List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.adapters.base import BaseDataAdapter, normalize_candles
from powerhour.data.errors import ConfigurationError, NoDataError, ProviderTransportError
from powerhour.data.models import Candle, Quote
from powerhour.data.stabilizer import restabilize
from powerhour.utils.helpers import get_symbol_type, sanitize_symbol
from powerhour.utils.logger import get_logger

logger = get_logger("finnhub_adapter")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

DAILY_RESOLUTIONS = {"D": 90, "W": 730, "M": 1825}


def is_valid_finnhub_key(key: Optional[str]) -> bool:
    key = (key or "").strip()
    return len(key) > 10 and bool(_KEY_PATTERN.match(key))


def map_symbol(symbol: str) -> str:
    return "^GSPC" if symbol == "SPX" else symbol


class FinnhubAdapter(BaseDataAdapter):
    """Finnhub REST quotes and daily candles."""

    name = "finnhub"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)
        settings = get_settings().data
        self.api_key = (api_key if api_key is not None else settings.finnhub_api_key).strip()
        self.base_url = (base_url or settings.finnhub_base_url).rstrip("/")

    def _require_key(self) -> None:
        if not is_valid_finnhub_key(self.api_key):
            raise ConfigurationError("FINNHUB_API_KEY is missing or malformed")

    async def get_quote(self, symbol: str) -> Quote:
        self._require_key()
        symbol = sanitize_symbol(symbol)
        data = await self._get_json(
            f"{self.base_url}/quote",
            params={"symbol": map_symbol(symbol), "token": self.api_key},
            symbol=symbol,
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(self.name, "unexpected quote payload", symbol=symbol)
        if data.get("error"):
            raise NoDataError(self.name, str(data["error"]), symbol=symbol)

        price = float(data.get("c") or 0)
        if price <= 0:
            # Finnhub answers unknown tickers with an all-zero quote
            raise NoDataError(self.name, "zero price", symbol=symbol)

        quote = Quote(
            symbol=symbol,
            symbol_type=get_symbol_type(symbol),
            last=price,
            change=float(data.get("d") or 0),
            change_percent=float(data.get("dp") or 0),
            high=float(data.get("h") or price),
            low=float(data.get("l") or price),
            open=float(data.get("o") or price),
            prev_close=float(data.get("pc") or price),
            trade_time=int(data["t"]) * 1000 if data.get("t") else None,
            provider=self.name,
        )
        return restabilize(quote)

    async def get_candles(self, symbol: str, resolution: str = "D", limit: int = 100) -> List[Candle]:
        self._require_key()
        symbol = sanitize_symbol(symbol)
        resolution = str(resolution).upper()
        if resolution not in DAILY_RESOLUTIONS:
            raise NoDataError(self.name, f"intraday resolution {resolution} not served", symbol=symbol)

        to = int(time.time())
        start = to - DAILY_RESOLUTIONS[resolution] * 86400
        data = await self._get_json(
            f"{self.base_url}/stock/candle",
            params={
                "symbol": map_symbol(symbol),
                "resolution": resolution,
                "from": start,
                "to": to,
                "token": self.api_key,
            },
            symbol=symbol,
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(self.name, "unexpected candles payload", symbol=symbol)
        if data.get("s") != "ok" or not data.get("t"):
            raise NoDataError(self.name, f"status {data.get('s')}", symbol=symbol)

        candles = [
            Candle(
                timestamp=int(ts) * 1000,
                open=float(data["o"][i]),
                high=float(data["h"][i]),
                low=float(data["l"][i]),
                close=float(data["c"][i]),
                volume=float(data["v"][i]) if data.get("v") else 0.0,
            )
            for i, ts in enumerate(data["t"])
        ]
        return normalize_candles(candles)[-limit:]
