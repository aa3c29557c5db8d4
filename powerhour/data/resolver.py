"""
POWER HOUR - Failover Resolver
Walks the configured provider chain in priority order and returns the first
usable answer, falling back to deterministic synthetic data when every
provider fails. Every result carries the source that produced it.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from powerhour.config.settings import get_settings
from powerhour.data.adapters.base import BaseDataAdapter
from powerhour.data.adapters.finnhub_adapter import FinnhubAdapter, is_valid_finnhub_key
from powerhour.data.adapters.public_adapter import PublicAdapter
from powerhour.data.adapters.tradier_adapter import TradierAdapter
from powerhour.data.adapters.yahoo_adapter import YahooAdapter
from powerhour.data.cache.candle_cache import CandleCache
from powerhour.data.errors import NoDataError, ProviderTransportError
from powerhour.data.market_calendar import is_market_open
from powerhour.data.models import Candle, Quote, QuoteSource, ResolvedCandles, ResolvedQuote
from powerhour.data.synthetic import SyntheticDataGenerator, resolution_to_minutes
from powerhour.utils.helpers import sanitize_symbol, sanitize_symbols
from powerhour.utils.logger import get_logger

logger = get_logger("resolver")

T = TypeVar("T")

SIMULATED = "simulated"

ADAPTER_CLASSES: Dict[str, Type[BaseDataAdapter]] = {
    "tradier": TradierAdapter,
    "public": PublicAdapter,
    "finnhub": FinnhubAdapter,
    "yahoo": YahooAdapter,
}


def build_adapters(order: Optional[Sequence[str]] = None) -> List[BaseDataAdapter]:
    """Instantiate the provider chain, leaving out providers with no credentials."""
    settings = get_settings().data
    configured = {
        "tradier": bool(settings.tradier_api_key),
        "public": bool(settings.public_secret_key),
        "finnhub": is_valid_finnhub_key(settings.finnhub_api_key),
        "yahoo": True,
    }
    adapters: List[BaseDataAdapter] = []
    for name in order if order is not None else settings.provider_order:
        name = name.lower()
        if name not in ADAPTER_CLASSES:
            logger.warning("unknown_provider_skipped", provider=name)
            continue
        if not configured[name]:
            logger.info("provider_not_configured", provider=name)
            continue
        adapters.append(ADAPTER_CLASSES[name]())
    return adapters


def is_valid_quote(quote: Optional[Quote]) -> bool:
    return quote is not None and quote.display_price > 0


def is_valid_candles(candles: Optional[List[Candle]]) -> bool:
    return bool(candles)


class FailoverResolver:
    """
    Sequential provider failover.

    Transport failures, timeouts, malformed payloads and non-definitive no-data
    move on to the next provider. A definitive no-data answer jumps straight to synthetic data.
    ConfigurationError is never caught here.
    """

    def __init__(
        self,
        adapters: Optional[List[BaseDataAdapter]] = None,
        generator: Optional[SyntheticDataGenerator] = None,
        cache: Optional[CandleCache] = None,
        timeout_seconds: Optional[float] = None,
        market_open: Optional[Callable[[], bool]] = None,
        synthetic_when_closed: Optional[bool] = None,
    ):
        settings = get_settings().data
        self._adapters = adapters
        self.generator = generator or SyntheticDataGenerator()
        self.cache = cache or CandleCache()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.provider_timeout_seconds
        self._market_open = market_open or is_market_open
        self.synthetic_when_closed = (
            synthetic_when_closed if synthetic_when_closed is not None else settings.synthetic_when_market_closed
        )
        self._initialized = False

    @property
    def adapters(self) -> List[BaseDataAdapter]:
        if self._adapters is None:
            self._adapters = build_adapters()
        return self._adapters

    async def initialize(self) -> None:
        if self._initialized:
            return
        for adapter in self.adapters:
            await adapter.connect()
        self._initialized = True
        logger.info("resolver_initialized", providers=[a.name for a in self.adapters])

    async def shutdown(self) -> None:
        for adapter in self.adapters:
            await adapter.disconnect()
        self._initialized = False

    def _skip_providers(self) -> bool:
        return self.synthetic_when_closed and not self._market_open()

    async def _walk_chain(
        self,
        symbol: str,
        call: Callable[[BaseDataAdapter], Awaitable[T]],
        is_valid: Callable[[T], bool],
    ) -> Tuple[Optional[T], Optional[str]]:
        """Return (result, provider_name) from the first provider with a valid answer."""
        if self._skip_providers():
            logger.debug("market_closed_synthetic", symbol=symbol)
            return None, None

        for adapter in self.adapters:
            try:
                result = await asyncio.wait_for(call(adapter), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("provider_timeout", provider=adapter.name, symbol=symbol,
                               timeout=self.timeout_seconds)
                continue
            except ProviderTransportError as e:
                logger.warning("provider_failed", provider=adapter.name, symbol=symbol, error=str(e))
                continue
            except NoDataError as e:
                if e.definitive:
                    logger.info("provider_no_data_definitive", provider=adapter.name, symbol=symbol, error=str(e))
                    return None, None
                logger.info("provider_no_data", provider=adapter.name, symbol=symbol, error=str(e))
                continue
            except (AttributeError, LookupError, TypeError, ValueError) as e:
                # Payload shape the adapter did not expect
                logger.warning("provider_bad_payload", provider=adapter.name, symbol=symbol,
                               error=f"{type(e).__name__}: {e}")
                continue

            if is_valid(result):
                return result, adapter.name
            logger.info("provider_invalid_result", provider=adapter.name, symbol=symbol)

        return None, None

    # ─── Quotes ─────────────────────────────────────────────────

    async def resolve_quote(self, symbol: str) -> ResolvedQuote:
        symbol = sanitize_symbol(symbol)
        quote, provider = await self._walk_chain(symbol, lambda a: a.get_quote(symbol), is_valid_quote)

        if quote is None:
            logger.warning("quote_fallback_synthetic", symbol=symbol)
            return ResolvedQuote(quote=self.generator.generate_quote(symbol), source=SIMULATED, is_simulated=True)

        quote.symbol = symbol
        quote.source = QuoteSource.POLL
        quote.provider = provider
        return ResolvedQuote(quote=quote, source=provider, is_simulated=False)

    async def resolve_quotes(self, symbols: List[str]) -> List[ResolvedQuote]:
        """Resolve every symbol concurrently. Order follows the input."""
        symbols = sanitize_symbols(symbols)
        if not symbols:
            return []
        return list(await asyncio.gather(*(self.resolve_quote(s) for s in symbols)))

    # ─── Candles ────────────────────────────────────────────────

    async def resolve_candles(self, symbol: str, resolution: str = "5", limit: int = 100,
                              use_cache: bool = True) -> ResolvedCandles:
        symbol = sanitize_symbol(symbol)
        resolution = str(resolution).upper()

        if use_cache:
            cached = self.cache.get(symbol, resolution)
            if cached is not None and len(cached.candles) >= limit:
                return cached.model_copy(update={"candles": cached.candles[-limit:]})

        candles, provider = await self._walk_chain(
            symbol, lambda a: a.get_candles(symbol, resolution, limit), is_valid_candles,
        )

        if candles is None:
            logger.warning("candles_fallback_synthetic", symbol=symbol, resolution=resolution)
            synthetic = self.generator.generate_candles(
                symbol, count=limit, interval_minutes=resolution_to_minutes(resolution),
            )
            return ResolvedCandles(symbol=symbol, resolution=resolution, candles=synthetic,
                                   source=SIMULATED, is_simulated=True)

        resolved = ResolvedCandles(symbol=symbol, resolution=resolution, candles=candles[-limit:],
                                   source=provider, is_simulated=False)
        self.cache.put(resolved)
        return resolved


# Singleton
_resolver: Optional[FailoverResolver] = None


def get_resolver() -> FailoverResolver:
    global _resolver
    if _resolver is None:
        _resolver = FailoverResolver()
    return _resolver
