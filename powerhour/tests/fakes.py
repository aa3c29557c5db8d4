"""
POWER HOUR - Test doubles for providers and stream transports.
"""
import asyncio
from typing import Dict, List, Optional, Sequence, Tuple, Union

from powerhour.data.adapters.base import BaseDataAdapter
from powerhour.data.errors import ProviderTransportError
from powerhour.data.models import Candle, Quote, StreamEvent
from powerhour.data.stabilizer import restabilize
from powerhour.streaming.transport import StreamTransport

Outcome = Union[Quote, List[Candle], Exception]
CandleKey = Union[str, Tuple[str, str]]


def make_quote(symbol: str, bid: float = 0.0, ask: float = 0.0, last: float = 0.0, **fields) -> Quote:
    return restabilize(Quote(symbol=symbol, bid=bid, ask=ask, last=last, **fields))


class FakeAdapter(BaseDataAdapter):
    """
    Provider that answers from canned outcomes; exceptions are raised.
    Candle outcomes may be keyed by (symbol, resolution) or by symbol alone.
    """

    def __init__(self, name: str, quotes: Optional[Dict[str, Outcome]] = None,
                 candles: Optional[Dict[CandleKey, Outcome]] = None, delay: float = 0.0):
        super().__init__(timeout_seconds=1.0)
        self.name = name
        self.quotes = quotes or {}
        self.candles = candles or {}
        self.delay = delay
        self.quote_calls: List[str] = []
        self.candle_calls: List[str] = []
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def _answer(self, table: Dict, key: CandleKey, symbol: str):
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = table.get(key, ProviderTransportError(self.name, "no canned answer", symbol=symbol))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome.model_copy() if isinstance(outcome, Quote) else outcome

    async def get_quote(self, symbol: str) -> Quote:
        self.quote_calls.append(symbol)
        return await self._answer(self.quotes, symbol, symbol)

    async def get_candles(self, symbol: str, resolution: str = "5", limit: int = 100) -> List[Candle]:
        self.candle_calls.append(symbol)
        key = (symbol, resolution) if (symbol, resolution) in self.candles else symbol
        return await self._answer(self.candles, key, symbol)


class FakeTransport(StreamTransport):
    """
    Scripted stream. `open_error` fails open(); otherwise events are yielded
    and then the stream either ends cleanly or raises `end_error`.
    Set `hold=True` to keep the stream open until closed.
    """

    name = "fake_stream"

    def __init__(self, events: Sequence[StreamEvent] = (), open_error: Optional[Exception] = None,
                 end_error: Optional[Exception] = None, hold: bool = False):
        self._events = list(events)
        self.open_error = open_error
        self.end_error = end_error
        self.hold = hold
        self.opened_with: Optional[List[str]] = None
        self.closed = False
        self._released = asyncio.Event()

    async def open(self, symbols: List[str]) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened_with = list(symbols)

    async def events(self):
        for event in self._events:
            yield event
        if self.hold:
            await self._released.wait()
        if self.end_error is not None:
            raise self.end_error

    async def close(self) -> None:
        self.closed = True
        self._released.set()


class TransportFactory:
    """Hands out scripted transports in order, repeating the last one."""

    def __init__(self, *transports: FakeTransport):
        self.transports = list(transports)
        self.created: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        index = min(len(self.created), len(self.transports) - 1)
        template = self.transports[index]
        transport = FakeTransport(template._events, template.open_error, template.end_error, template.hold)
        self.created.append(transport)
        return transport


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Yield to the loop until predicate() holds; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


class FakeChainAdapter:
    """
    Options endpoints answered from tables keyed by root. Give an underlying
    or root an asyncio.Event in `gates` to hold its root or expiration lookup
    until the event is set.
    """

    name = "fake_chain"

    def __init__(self, roots: Optional[Dict[str, Outcome]] = None,
                 expirations: Optional[Dict[str, Outcome]] = None,
                 chains: Optional[Dict[tuple, Outcome]] = None,
                 gates: Optional[Dict[str, asyncio.Event]] = None):
        self.roots = roots or {}
        self.expirations = expirations or {}
        self.chains = chains or {}
        self.gates = gates or {}
        self.calls: List[tuple] = []

    @staticmethod
    def _resolve(outcome):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get_option_roots(self, underlying: str) -> List[str]:
        self.calls.append(("roots", underlying))
        if underlying in self.gates:
            await self.gates[underlying].wait()
        return self._resolve(self.roots.get(underlying, []))

    async def get_expirations(self, root: str) -> List[str]:
        self.calls.append(("expirations", root))
        if root in self.gates:
            await self.gates[root].wait()
        return self._resolve(self.expirations.get(root, []))

    async def get_chain(self, root: str, expiration: str):
        self.calls.append(("chain", root, expiration))
        return self._resolve(self.chains.get((root, expiration), []))

    async def disconnect(self) -> None:
        pass
