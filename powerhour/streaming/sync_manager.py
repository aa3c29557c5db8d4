"""
POWER HOUR - Quote Synchronization Manager
Keeps one authoritative quote map alive across a push stream and a polling
fallback.

Stream failures back off exponentially (1s, 2s, 4s ... capped at 30s). Once the
reconnect budget is spent the manager polls permanently until the operator
explicitly asks for streaming again. Stream and poll never run together, and
at most one reconnect wait is pending at any time.
"""
import asyncio
import contextlib
from typing import Callable, Dict, List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.errors import ConfigurationError, ProviderError
from powerhour.data.models import (
    ConnectionStatus,
    DataMode,
    Quote,
    QuoteSource,
    ResolvedQuote,
    StreamEvent,
    SyncStatus,
)
from powerhour.data.resolver import FailoverResolver, get_resolver
from powerhour.data.stabilizer import compute_data_health, restabilize
from powerhour.streaming.transport import StreamTransport, TradierStreamTransport
from powerhour.utils.helpers import get_symbol_type, pct_change, sanitize_symbol, sanitize_symbols
from powerhour.utils.logger import get_logger

logger = get_logger("sync_manager")

QuoteListener = Callable[[Quote], None]


class StreamEnded(ProviderError):
    """Upstream closed the stream without an error."""


def backoff_delay(attempts: int, base_ms: int = 1000, cap_ms: int = 30000) -> float:
    """Reconnect delay in seconds for the given number of prior attempts."""
    return min(base_ms * (2 ** attempts), cap_ms) / 1000.0


class QuoteSyncManager:
    """Owns the quote map, the stream task and the poll task."""

    def __init__(
        self,
        resolver: Optional[FailoverResolver] = None,
        transport_factory: Optional[Callable[[], StreamTransport]] = None,
        symbols: Optional[List[str]] = None,
        poll_interval: Optional[float] = None,
        max_reconnect_attempts: Optional[int] = None,
        reconnect_base_ms: Optional[int] = None,
        reconnect_cap_ms: Optional[int] = None,
    ):
        settings = get_settings()
        stream = settings.stream
        self.resolver = resolver or get_resolver()
        self.transport_factory = transport_factory or TradierStreamTransport
        self.poll_interval = poll_interval if poll_interval is not None else stream.poll_interval_seconds
        self.max_reconnect_attempts = (
            max_reconnect_attempts if max_reconnect_attempts is not None else stream.max_reconnect_attempts
        )
        self.reconnect_base_ms = reconnect_base_ms if reconnect_base_ms is not None else stream.reconnect_base_ms
        self.reconnect_cap_ms = reconnect_cap_ms if reconnect_cap_ms is not None else stream.reconnect_cap_ms

        self._symbols: List[str] = sanitize_symbols(symbols if symbols is not None else settings.watchlist)
        self._quotes: Dict[str, Quote] = {}
        self._listeners: List[QuoteListener] = []

        self._mode = DataMode(stream.default_mode)
        self._connection = ConnectionStatus.DISCONNECTED
        self._reconnect_attempts = 0
        self._last_event_at: Optional[float] = None
        self._last_error: Optional[str] = None

        self._stream_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._transport: Optional[StreamTransport] = None

    # ─── Lifecycle ──────────────────────────────────────────────

    async def start(self, symbols: Optional[List[str]] = None, mode: Optional[DataMode] = None) -> None:
        if symbols is not None:
            self._symbols = sanitize_symbols(symbols)
        if mode is not None:
            self._mode = DataMode(mode)
        logger.info("sync_manager_starting", mode=self._mode.value, symbols=self._symbols)
        await self._activate()

    async def stop(self) -> None:
        await self._cancel_stream()
        await self._cancel_poll()
        self._connection = ConnectionStatus.DISCONNECTED
        logger.info("sync_manager_stopped")

    async def _activate(self) -> None:
        """Start whichever feed the current mode asks for, tearing the other down."""
        if self._mode == DataMode.STREAM:
            await self._cancel_poll()
            await self._cancel_stream()
            self._stream_task = asyncio.create_task(self._stream_loop())
        else:
            await self._cancel_stream()
            self._connection = ConnectionStatus.DISCONNECTED
            self._start_polling()

    # ─── Stream ─────────────────────────────────────────────────

    async def _stream_loop(self) -> None:
        while True:
            try:
                await self._stream_once()
            except ConfigurationError as e:
                # Retrying cannot fix credentials; go straight to the polling chain
                self._connection = ConnectionStatus.ERROR
                self._last_error = str(e)
                logger.error("stream_configuration_error", error=str(e))
                self._mode = DataMode.POLL
                self._start_polling()
                return
            except ProviderError as e:
                self._connection = ConnectionStatus.ERROR
                self._last_error = str(e)
                logger.warning("stream_error", error=str(e), attempts=self._reconnect_attempts)
            except Exception as e:
                self._connection = ConnectionStatus.ERROR
                self._last_error = f"{type(e).__name__}: {e}"
                logger.exception("stream_unexpected_error", attempts=self._reconnect_attempts)

            if self._reconnect_attempts >= self.max_reconnect_attempts:
                logger.warning("stream_reconnects_exhausted", attempts=self._reconnect_attempts)
                self._mode = DataMode.POLL
                self._start_polling()
                return

            delay = backoff_delay(self._reconnect_attempts, self.reconnect_base_ms, self.reconnect_cap_ms)
            self._reconnect_attempts += 1
            logger.info("stream_reconnect_scheduled", delay=delay, attempt=self._reconnect_attempts)
            await asyncio.sleep(delay)

    async def _stream_once(self) -> None:
        self._connection = ConnectionStatus.CONNECTING
        transport = self.transport_factory()
        self._transport = transport
        try:
            await transport.open(list(self._symbols))
            self._on_stream_open()
            async for event in transport.events():
                self.apply_event(event)
        finally:
            self._transport = None
            await transport.close()
        raise StreamEnded(transport.name, "stream closed by upstream")

    def _on_stream_open(self) -> None:
        self._reconnect_attempts = 0
        self._last_error = None
        self._connection = ConnectionStatus.CONNECTED
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        logger.info("stream_connected", symbols=self._symbols)

    async def _cancel_stream(self) -> None:
        task, self._stream_task = self._stream_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ─── Polling ────────────────────────────────────────────────

    def _start_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("polling_started", interval=self.poll_interval)

    async def _poll_loop(self) -> None:
        while True:
            await self._poll_once()
            await asyncio.sleep(self.poll_interval)

    async def _poll_once(self) -> List[Quote]:
        if not self._symbols:
            return []
        try:
            resolved = await self.resolver.resolve_quotes(list(self._symbols))
        except ProviderError as e:
            logger.warning("poll_failed", error=str(e))
            return []
        return [self._apply_resolved(r) for r in resolved]

    async def _cancel_poll(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ─── Merging ────────────────────────────────────────────────

    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    def _get_or_create(self, symbol: str) -> Quote:
        quote = self._quotes.get(symbol)
        if quote is None:
            quote = Quote(symbol=symbol, symbol_type=get_symbol_type(symbol))
            self._quotes[symbol] = quote
        return quote

    def apply_event(self, event: StreamEvent) -> Quote:
        """Merge a partial stream update. Absent fields keep their previous value."""
        quote = self._get_or_create(sanitize_symbol(event.symbol))
        if event.type == "trade":
            if event.last is not None and event.last > 0:
                quote.last = event.last
            if event.trade_time is not None:
                quote.trade_time = event.trade_time
            if event.volume is not None:
                quote.volume = max(event.volume, 0)
        else:
            if event.bid is not None:
                quote.bid = max(event.bid, 0.0)
            if event.ask is not None:
                quote.ask = max(event.ask, 0.0)
            if event.last is not None:
                quote.last = max(event.last, 0.0)
            if event.bid_time is not None:
                quote.bid_time = event.bid_time
            if event.ask_time is not None:
                quote.ask_time = event.ask_time

        restabilize(quote)
        if quote.prev_close > 0 and quote.display_price > 0:
            quote.change = round(quote.display_price - quote.prev_close, 4)
            quote.change_percent = round(pct_change(quote.prev_close, quote.display_price), 4)
        quote.status = compute_data_health(
            quote.bid_time, quote.ask_time, quote.trade_time, quote.symbol_type.value,
        ).status
        quote.source = QuoteSource.STREAM
        quote.last_updated = self._now()
        self._last_event_at = quote.last_updated
        self._notify(quote)
        return quote

    def _apply_resolved(self, resolved: ResolvedQuote) -> Quote:
        """Merge a full polled quote over the existing entry."""
        incoming = resolved.quote
        symbol = sanitize_symbol(incoming.symbol)
        quote = self._get_or_create(symbol)
        for field, value in incoming.model_dump(exclude={"symbol", "last_updated"}, exclude_none=True).items():
            setattr(quote, field, value)
        quote.source = QuoteSource.SIMULATED if resolved.is_simulated else QuoteSource.POLL
        quote.provider = resolved.source
        restabilize(quote)
        quote.last_updated = self._now()
        self._notify(quote)
        return quote

    # ─── Listeners ──────────────────────────────────────────────

    def subscribe(self, listener: QuoteListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, quote: Quote) -> None:
        snapshot = quote.model_copy()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("quote_listener_failed", symbol=quote.symbol)

    # ─── Consumer interface ─────────────────────────────────────

    def get_quote(self, symbol: str) -> Optional[Quote]:
        quote = self._quotes.get(sanitize_symbol(symbol))
        return quote.model_copy() if quote is not None else None

    def quotes_array(self) -> List[Quote]:
        """Quotes for the current watch set, in watch order."""
        return [self._quotes[s].model_copy() for s in self._symbols if s in self._quotes]

    @property
    def symbols(self) -> List[str]:
        return list(self._symbols)

    async def set_symbols(self, symbols: List[str]) -> None:
        """Replace the watch set. Quotes for dropped symbols stay in the map."""
        new_symbols = sanitize_symbols(symbols)
        if new_symbols == self._symbols:
            return
        self._symbols = new_symbols
        logger.info("watchlist_changed", symbols=new_symbols)

        if self._stream_task is not None and not self._stream_task.done():
            await self._cancel_stream()
            self._stream_task = asyncio.create_task(self._stream_loop())
        elif self._poll_task is not None and not self._poll_task.done():
            await self._cancel_poll()
            self._start_polling()

    async def toggle_data_mode(self, streaming: bool) -> None:
        """
        Switch feeds. Asking for streaming again grants a fresh reconnect budget,
        unless the stream is already connected, in which case nothing changes.
        """
        requested = DataMode.STREAM if streaming else DataMode.POLL
        if requested == self._mode and self._feed_is_live():
            logger.debug("data_mode_unchanged", mode=requested.value)
            return
        self._mode = requested
        if streaming:
            self._reconnect_attempts = 0
        logger.info("data_mode_changed", mode=self._mode.value)
        await self._activate()

    def _feed_is_live(self) -> bool:
        if self._mode == DataMode.STREAM:
            return (self._stream_task is not None and not self._stream_task.done()
                    and self._connection == ConnectionStatus.CONNECTED)
        return self._poll_task is not None and not self._poll_task.done()

    async def refresh_quotes(self) -> List[Quote]:
        """One immediate poll of the whole watch set, whatever the mode."""
        updated = await self._poll_once()
        return [q.model_copy() for q in updated]

    def status(self) -> SyncStatus:
        return SyncStatus(
            connection=self._connection,
            mode=self._mode,
            streaming_enabled=self._mode == DataMode.STREAM,
            reconnect_attempts=self._reconnect_attempts,
            max_reconnect_attempts=self.max_reconnect_attempts,
            is_polling=self._poll_task is not None and not self._poll_task.done(),
            last_event_at=self._last_event_at,
            symbols=list(self._symbols),
        )

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error


# Singleton
_manager: Optional[QuoteSyncManager] = None


def get_sync_manager() -> QuoteSyncManager:
    global _manager
    if _manager is None:
        _manager = QuoteSyncManager()
    return _manager
