"""
POWER HOUR - Quote Stream Transport
Push-stream connection to the brokerage. Yields normalized StreamEvents until
the upstream closes or fails; reconnect policy lives in the sync manager.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Optional

import aiohttp

from powerhour.config.settings import get_settings
from powerhour.data.adapters.tradier_adapter import epoch_ms, validate_tradier_config
from powerhour.data.errors import ProviderTransportError
from powerhour.data.models import StreamEvent
from powerhour.utils.logger import get_logger

logger = get_logger("stream_transport")


class StreamTransport(ABC):
    """One live subscription for a fixed symbol list."""

    name: str = "stream"

    @abstractmethod
    async def open(self, symbols: List[str]) -> None:
        """Establish the subscription. Raises ProviderTransportError on failure."""

    @abstractmethod
    def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events until the stream ends. Read failures raise ProviderTransportError."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""


def _float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_stream_line(line: str) -> Optional[StreamEvent]:
    """Decode one NDJSON line into a StreamEvent; None for blanks, junk and ignored types."""
    line = line.strip()
    if not line:
        return None
    try:
        payload = json.loads(line)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not payload.get("symbol"):
        return None

    kind = payload.get("type")
    symbol = str(payload["symbol"]).upper()
    if kind == "quote":
        return StreamEvent(
            type="quote",
            symbol=symbol,
            bid=_float(payload.get("bid")),
            ask=_float(payload.get("ask")),
            last=_float(payload.get("last")),
            bid_time=epoch_ms(payload.get("biddate")),
            ask_time=epoch_ms(payload.get("askdate")),
        )
    if kind == "trade":
        cvol = _float(payload.get("cvol"))
        return StreamEvent(
            type="trade",
            symbol=symbol,
            last=_float(payload.get("price", payload.get("last"))),
            size=_float(payload.get("size")),
            volume=int(cvol) if cvol is not None else None,
            trade_time=epoch_ms(payload.get("date")),
        )
    return None


class TradierStreamTransport(StreamTransport):
    """Tradier HTTP streaming: create a session, then read newline-delimited JSON."""

    name = "tradier_stream"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 stream_url: Optional[str] = None, connect_timeout: Optional[float] = None):
        settings = get_settings().data
        self.api_key = api_key if api_key is not None else settings.tradier_api_key
        self.base_url = (base_url or settings.tradier_base_url).rstrip("/")
        self.stream_url = (stream_url or settings.tradier_stream_url).rstrip("/")
        self.connect_timeout = connect_timeout or settings.provider_timeout_seconds
        self.environment = settings.environment
        self._session: Optional[aiohttp.ClientSession] = None
        self._response: Optional[aiohttp.ClientResponse] = None

    async def _create_session_id(self) -> str:
        url = f"{self.base_url}/markets/events/session"
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        async with self._session.post(url, headers=headers) as resp:
            if resp.status != 200:
                raise ProviderTransportError(self.name, f"session create HTTP {resp.status}", status=resp.status)
            try:
                data: Any = await resp.json(content_type=None)
            except ValueError as e:
                raise ProviderTransportError(self.name, "session reply is not JSON") from e
        stream = data.get("stream") if isinstance(data, dict) else None
        session_id = stream.get("sessionid") if isinstance(stream, dict) else None
        if not session_id:
            raise ProviderTransportError(self.name, "no session id in response")
        return session_id

    async def open(self, symbols: List[str]) -> None:
        validate_tradier_config(self.api_key, self.base_url, self.environment)
        # No total timeout: the read side stays open indefinitely
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)
        try:
            session_id = await self._create_session_id()
            form = {
                "sessionid": session_id,
                "symbols": ",".join(symbols),
                "filter": "quote,trade",
                "linebreak": "true",
            }
            self._response = await self._session.post(
                f"{self.stream_url}/markets/events", data=form, headers={"Accept": "application/json"},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self.close()
            raise ProviderTransportError(self.name, f"stream connect failed: {e}") from e
        except ProviderTransportError:
            await self.close()
            raise

        if self._response.status != 200:
            status = self._response.status
            await self.close()
            raise ProviderTransportError(self.name, f"stream HTTP {status}", status=status)
        logger.info("stream_opened", symbols=symbols)

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._response is None:
            raise ProviderTransportError(self.name, "stream not open")
        buffer = ""
        try:
            async for chunk in self._response.content.iter_any():
                buffer += chunk.decode("utf-8", errors="replace")
                *lines, buffer = buffer.split("\n")
                for line in lines:
                    event = parse_stream_line(line)
                    if event is not None:
                        yield event
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderTransportError(self.name, f"stream read failed: {e}") from e

    async def close(self) -> None:
        if self._response is not None:
            self._response.release()
            self._response = None
        if self._session is not None:
            await self._session.close()
            self._session = None
