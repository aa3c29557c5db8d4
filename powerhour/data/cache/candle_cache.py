"""
POWER HOUR - Candle Cache Layer
Short-TTL cache for resolved candle series so chart refreshes inside one
bar do not hit the failover chain again.
"""
import time
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

from powerhour.config.settings import get_settings
from powerhour.data.models import ResolvedCandles
from powerhour.utils.logger import get_logger

logger = get_logger("candle_cache")


class CandleCache:
    """In-memory TTL cache of ResolvedCandles keyed by symbol and resolution."""

    def __init__(self, ttl_seconds: Optional[float] = None, maxsize: int = 256,
                 timer: Callable[[], float] = time.monotonic):
        ttl = ttl_seconds if ttl_seconds is not None else get_settings().data.cache_ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(symbol: str, resolution: str) -> str:
        return f"{symbol.upper()}:{str(resolution).upper()}"

    def get(self, symbol: str, resolution: str) -> Optional[ResolvedCandles]:
        entry = self._cache.get(self._key(symbol, resolution))
        if entry is None:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    def put(self, resolved: ResolvedCandles) -> None:
        # Synthetic series are cheap to rebuild and must not mask a recovered provider
        if resolved.is_simulated:
            return
        self._cache[self._key(resolved.symbol, resolved.resolution)] = resolved

    def invalidate(self, symbol: str, resolution: Optional[str] = None) -> None:
        if resolution is not None:
            self._cache.pop(self._key(symbol, resolution), None)
            return
        prefix = f"{symbol.upper()}:"
        for key in [k for k in self._cache if k.startswith(prefix)]:
            self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()
        logger.info("candle_cache_cleared")

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self._cache.ttl,
        }
