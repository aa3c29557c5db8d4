"""
POWER HOUR - Tradier Data Adapter
Primary brokerage source: quotes, intraday/daily bars, option roots,
expirations and chains.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.adapters.base import BaseDataAdapter, aggregate_candles, normalize_candles
from powerhour.data.errors import ConfigurationError, NoDataError, ProviderTransportError
from powerhour.data.models import Candle, OptionContract, Quote
from powerhour.data.stabilizer import compute_data_health, restabilize, stabilize
from powerhour.utils.helpers import get_symbol_type, sanitize_symbol
from powerhour.utils.logger import get_logger

logger = get_logger("tradier_adapter")

# resolution -> (endpoint, interval, lookback days)
TIMESALES_INTERVALS = {
    "1": ("timesales", "1min", 2),
    "5": ("timesales", "5min", 5),
    "15": ("timesales", "15min", 10),
    "30": ("timesales", "15min", 20),
    "60": ("timesales", "15min", 30),
    "D": ("history", "daily", 180),
    "W": ("history", "weekly", 730),
    "M": ("history", "monthly", 1825),
}


def epoch_ms(value: Any) -> Optional[int]:
    """Tradier mixes epoch seconds and milliseconds; normalize to ms."""
    if value in (None, "", 0):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    return number if number >= 10 ** 12 else number * 1000


def as_list(value: Any) -> List[Any]:
    """Tradier returns a bare object for single results and a list otherwise."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _num(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def validate_tradier_config(api_key: str, base_url: str, environment: str) -> None:
    if not api_key:
        raise ConfigurationError("TRADIER_API_KEY (or TRADIER_TOKEN) is not configured")
    if environment.lower() == "production" and "sandbox" in base_url:
        raise ConfigurationError("Sandbox Tradier endpoint configured in production")


class TradierAdapter(BaseDataAdapter):
    """Tradier brokerage market data."""

    name = "tradier"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)
        self.settings = get_settings().data
        self.api_key = api_key if api_key is not None else self.settings.tradier_api_key
        self.base_url = (base_url or self.settings.tradier_base_url).rstrip("/")

    def _default_headers(self) -> Dict[str, str]:
        validate_tradier_config(self.api_key, self.base_url, self.settings.environment)
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    # ─── Quotes ─────────────────────────────────────────────────

    def _parse_quote(self, raw: Dict[str, Any]) -> Quote:
        symbol = sanitize_symbol(raw.get("symbol", ""))
        symbol_type = get_symbol_type(symbol)
        bid_time = epoch_ms(raw.get("bid_date"))
        ask_time = epoch_ms(raw.get("ask_date"))
        trade_time = epoch_ms(raw.get("trade_date"))
        health = compute_data_health(bid_time, ask_time, trade_time, symbol_type)

        quote = Quote(
            symbol=symbol,
            description=raw.get("description") or symbol,
            symbol_type=symbol_type,
            bid=max(_num(raw.get("bid")), 0.0),
            ask=max(_num(raw.get("ask")), 0.0),
            last=max(_num(raw.get("last")), 0.0),
            change=_num(raw.get("change")),
            change_percent=_num(raw.get("change_percentage")),
            volume=int(max(_num(raw.get("volume")), 0)),
            prev_close=_num(raw.get("prevclose")),
            open=_num(raw.get("open")),
            high=_num(raw.get("high")),
            low=_num(raw.get("low")),
            bid_time=bid_time,
            ask_time=ask_time,
            trade_time=trade_time,
            status=health.status,
            provider=self.name,
        )
        return restabilize(quote)

    async def get_quotes(self, symbols: List[str]) -> List[Quote]:
        symbols = [sanitize_symbol(s) for s in symbols if s]
        if not symbols:
            return []
        url = f"{self.base_url}/markets/quotes"
        data = await self._get_json(url, params={"symbols": ",".join(symbols), "greeks": "false"},
                                    symbol=",".join(symbols))
        block = data.get("quotes") if isinstance(data, dict) else None
        if not isinstance(block, dict):
            raise ProviderTransportError(self.name, "unexpected quotes payload")
        raw_quotes = as_list(block.get("quote"))
        if not raw_quotes:
            raise NoDataError(self.name, "no matching symbols", symbol=",".join(symbols),
                              definitive="unmatched_symbols" in block)
        return [self._parse_quote(q) for q in raw_quotes if isinstance(q, dict)]

    async def get_quote(self, symbol: str) -> Quote:
        quotes = await self.get_quotes([symbol])
        if not quotes:
            raise NoDataError(self.name, "empty quote list", symbol=symbol)
        return quotes[0]

    # ─── Candles ────────────────────────────────────────────────

    async def get_candles(self, symbol: str, resolution: str = "5", limit: int = 100) -> List[Candle]:
        symbol = sanitize_symbol(symbol)
        endpoint, interval, lookback_days = TIMESALES_INTERVALS.get(str(resolution).upper(), TIMESALES_INTERVALS["5"])
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=lookback_days)

        if endpoint == "history":
            url = f"{self.base_url}/markets/history"
            params = {
                "symbol": symbol,
                "interval": interval,
                "start": start.strftime("%Y-%m-%d"),
                "end": end.strftime("%Y-%m-%d"),
            }
            data = await self._get_json(url, params=params, symbol=symbol)
            history = data.get("history") if isinstance(data, dict) else None
            rows = as_list(history.get("day")) if isinstance(history, dict) else []
            candles = [
                Candle(
                    timestamp=int(datetime.strptime(row["date"], "%Y-%m-%d")
                                  .replace(tzinfo=timezone.utc).timestamp() * 1000),
                    open=_num(row.get("open")),
                    high=_num(row.get("high")),
                    low=_num(row.get("low")),
                    close=_num(row.get("close")),
                    volume=_num(row.get("volume")),
                )
                for row in rows if isinstance(row, dict) and row.get("date")
            ]
        else:
            url = f"{self.base_url}/markets/timesales"
            params = {
                "symbol": symbol,
                "interval": interval,
                "start": start.strftime("%Y-%m-%d %H:%M"),
                "end": end.strftime("%Y-%m-%d %H:%M"),
                "session_filter": "all",
            }
            data = await self._get_json(url, params=params, symbol=symbol)
            series = data.get("series") if isinstance(data, dict) else None
            rows = as_list(series.get("data")) if isinstance(series, dict) else []
            candles = [
                Candle(
                    timestamp=epoch_ms(row.get("timestamp")),
                    open=_num(row.get("open")),
                    high=_num(row.get("high")),
                    low=_num(row.get("low")),
                    close=_num(row.get("close")),
                    volume=_num(row.get("volume")),
                )
                for row in rows if isinstance(row, dict) and epoch_ms(row.get("timestamp"))
            ]

        if not candles:
            raise NoDataError(self.name, "no bars returned", symbol=symbol)
        candles = normalize_candles(candles)
        if resolution in ("30", "60"):
            # Tradier timesales stops at 15min bars
            candles = aggregate_candles(candles, int(resolution))
        return candles[-limit:]

    # ─── Options ────────────────────────────────────────────────

    async def get_option_roots(self, underlying: str) -> List[str]:
        underlying = sanitize_symbol(underlying)
        url = f"{self.base_url}/markets/options/lookup"
        data = await self._get_json(url, params={"underlying": underlying}, symbol=underlying)
        roots: List[str] = []
        for entry in as_list(data.get("symbols") if isinstance(data, dict) else None):
            root = entry.get("root_symbol") if isinstance(entry, dict) else None
            if root and root not in roots:
                roots.append(root)
        return roots

    async def get_expirations(self, root: str) -> List[str]:
        root = sanitize_symbol(root)
        url = f"{self.base_url}/markets/options/expirations"
        params = {"symbol": root, "includeAllRoots": "true", "strikes": "false"}
        data = await self._get_json(url, params=params, symbol=root)
        block = data.get("expirations") if isinstance(data, dict) else None
        if not isinstance(block, dict):
            return []
        return sorted(str(d) for d in as_list(block.get("date")))

    def _parse_option(self, raw: Dict[str, Any]) -> OptionContract:
        price = stabilize(raw.get("bid"), raw.get("ask"), raw.get("last"))
        health = compute_data_health(
            epoch_ms(raw.get("bid_date")),
            epoch_ms(raw.get("ask_date")),
            epoch_ms(raw.get("trade_date")),
            "equity",
        )
        greeks = raw.get("greeks") or {}
        return OptionContract(
            symbol=raw.get("symbol", ""),
            root_symbol=raw.get("root_symbol") or raw.get("underlying", ""),
            underlying=raw.get("underlying") or raw.get("root_symbol", ""),
            option_type=raw.get("option_type") or "call",
            strike=_num(raw.get("strike")),
            expiration_date=raw.get("expiration_date", ""),
            bid=max(_num(raw.get("bid")), 0.0),
            ask=max(_num(raw.get("ask")), 0.0),
            last=max(_num(raw.get("last")), 0.0),
            mark=price.mark,
            display_price=price.display_price,
            price_source=price.price_source,
            volume=int(_num(raw.get("volume"))),
            open_interest=int(_num(raw.get("open_interest"))),
            delta=greeks.get("delta"),
            gamma=greeks.get("gamma"),
            theta=greeks.get("theta"),
            vega=greeks.get("vega"),
            implied_volatility=greeks.get("mid_iv"),
            status=health.status,
        )

    async def get_chain(self, root: str, expiration: str) -> List[OptionContract]:
        """All contracts for one root/expiration, sorted by strike."""
        root = sanitize_symbol(root)
        url = f"{self.base_url}/markets/options/chains"
        params = {
            "symbol": root,
            "expiration": expiration,
            "greeks": "true" if get_settings().options.include_greeks else "false",
        }
        data = await self._get_json(url, params=params, symbol=root)
        block = data.get("options") if isinstance(data, dict) else None
        raw_options = as_list(block.get("option")) if isinstance(block, dict) else []
        contracts = [self._parse_option(o) for o in raw_options if isinstance(o, dict)]
        contracts.sort(key=lambda c: c.strike)
        logger.debug("tradier_chain_parsed", root=root, expiration=expiration, contracts=len(contracts))
        return contracts
