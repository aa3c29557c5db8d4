"""
POWER HOUR - Options Chain Loader
Loads root -> expirations -> chain for the selected underlying. A newer
request always wins: the previous load is cancelled before new requests go
out, and any stage that finishes for a symbol that is no longer selected is
dropped without touching state.
"""
import asyncio
from typing import Awaitable, Dict, List, Optional

from powerhour.config.settings import get_settings
from powerhour.data.adapters.tradier_adapter import TradierAdapter
from powerhour.data.errors import ConfigurationError, ProviderError
from powerhour.data.models import ChainState, OptionContract
from powerhour.utils.helpers import sanitize_symbol
from powerhour.utils.logger import get_logger

logger = get_logger("chain_loader")


def split_chain(contracts: List[OptionContract]):
    """Separate calls and puts, each ordered by strike."""
    calls = sorted((c for c in contracts if c.option_type.lower() == "call"), key=lambda c: c.strike)
    puts = sorted((c for c in contracts if c.option_type.lower() == "put"), key=lambda c: c.strike)
    return calls, puts


def _caller_cancelled() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class OptionsChainLoader:
    """Single-flight loader for the options panel."""

    def __init__(self, adapter: Optional[TradierAdapter] = None,
                 preferred_roots: Optional[Dict[str, str]] = None):
        self.adapter = adapter or TradierAdapter()
        self.preferred_roots = preferred_roots if preferred_roots is not None else get_settings().options.preferred_roots
        self.state = ChainState()
        self._current_symbol: Optional[str] = None
        self._load_task: Optional[asyncio.Task] = None
        self._chain_task: Optional[asyncio.Task] = None

    def snapshot(self) -> ChainState:
        return self.state.model_copy(deep=True)

    def _is_stale(self, symbol: str) -> bool:
        return self._current_symbol != symbol

    def _cancel_inflight(self) -> None:
        for task in (self._load_task, self._chain_task):
            if task is not None and not task.done():
                task.cancel()
        self._load_task = None
        self._chain_task = None

    async def _run(self, task: asyncio.Task, symbol: str) -> ChainState:
        try:
            await task
        except asyncio.CancelledError:
            superseded = task not in (self._load_task, self._chain_task)
            if task.cancelled() and superseded and not _caller_cancelled():
                logger.debug("chain_request_superseded", symbol=symbol)
                return self.snapshot()
            raise
        return self.snapshot()

    # ─── Operations ─────────────────────────────────────────────

    async def load_symbol(self, symbol: str) -> ChainState:
        symbol = sanitize_symbol(symbol)
        self._cancel_inflight()
        self._current_symbol = symbol
        self.state = ChainState(symbol=symbol, loading=True)
        logger.info("chain_load_started", symbol=symbol)

        task = asyncio.create_task(self._load(symbol))
        self._load_task = task
        return await self._run(task, symbol)

    async def select_expiration(self, expiration: str) -> ChainState:
        """Re-fetch only the chain for a new expiration on the resolved root."""
        symbol = self._current_symbol
        root = self.state.root
        if symbol is None:
            return self.snapshot()
        if root is None:
            # Root still resolving; the running load picks this up once expirations arrive
            if self._load_task is not None and not self._load_task.done():
                self.state.selected_expiration = expiration
            return self.snapshot()

        if self._chain_task is not None and not self._chain_task.done():
            self._chain_task.cancel()
        self.state.selected_expiration = expiration
        self.state.loading = True
        self.state.error = None

        task = asyncio.create_task(self._load_chain(symbol, root, expiration))
        self._chain_task = task
        return await self._run(task, symbol)

    async def refresh(self) -> ChainState:
        if self._current_symbol is None:
            return self.snapshot()
        return await self.load_symbol(self._current_symbol)

    # ─── Stages ─────────────────────────────────────────────────

    async def _guarded(self, symbol: str, stage: Awaitable):
        """Await a stage, recording provider errors only while the symbol is current."""
        try:
            return await stage
        except ConfigurationError as e:
            if not self._is_stale(symbol):
                self.state.loading = False
                self.state.error = str(e)
            raise
        except ProviderError as e:
            if self._is_stale(symbol):
                logger.debug("stale_chain_error_dropped", symbol=symbol, error=str(e))
            else:
                logger.warning("chain_load_failed", symbol=symbol, error=str(e))
                self.state.loading = False
                self.state.error = str(e)
            return None

    async def resolve_root(self, symbol: str) -> str:
        preferred = self.preferred_roots.get(symbol)
        if preferred is None:
            return symbol
        try:
            roots = await self.adapter.get_option_roots(symbol)
        except ProviderError as e:
            logger.info("root_lookup_failed", symbol=symbol, error=str(e))
            return symbol
        if preferred in roots:
            return preferred
        if symbol in roots or not roots:
            return symbol
        return roots[0]

    async def _load(self, symbol: str) -> None:
        root = await self.resolve_root(symbol)
        if self._is_stale(symbol):
            return
        self.state.root = root

        expirations = await self._guarded(symbol, self.adapter.get_expirations(root))
        if expirations is None or self._is_stale(symbol):
            return
        self.state.expirations = expirations
        if not expirations:
            self.state.loading = False
            self.state.error = f"No expirations available for {root}"
            return

        if self._chain_task is not None:
            # A pick made mid-load already owns the chain fetch
            return
        picked = self.state.selected_expiration
        await self._load_chain(symbol, root, picked if picked in expirations else expirations[0])

    async def _load_chain(self, symbol: str, root: str, expiration: str) -> None:
        self.state.selected_expiration = expiration
        contracts = await self._guarded(symbol, self.adapter.get_chain(root, expiration))
        if contracts is None or self._is_stale(symbol) or self.state.selected_expiration != expiration:
            return
        calls, puts = split_chain(contracts)
        self.state.calls = calls
        self.state.puts = puts
        self.state.loading = False
        self.state.error = None
        logger.info("chain_loaded", symbol=symbol, root=root, expiration=expiration,
                    calls=len(calls), puts=len(puts))


# Singleton
_loader: Optional[OptionsChainLoader] = None


def get_chain_loader() -> OptionsChainLoader:
    global _loader
    if _loader is None:
        _loader = OptionsChainLoader()
    return _loader
