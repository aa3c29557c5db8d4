"""
POWER HOUR - Common Utility Functions
"""
from datetime import datetime, timezone
from typing import Iterable, List
import time


INDEX_SYMBOLS = ("SPX", "NDX", "DJX", "RUT", "VIX")
ETF_SYMBOLS = ("SPY", "QQQ", "IWM", "DIA", "GLD", "SLV", "TLT", "XLF", "XLE", "XLK")


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO string."""
    return utc_now().isoformat()


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division avoiding ZeroDivisionError."""
    if denominator == 0:
        return default
    return numerator / denominator


def clamp(value: float, min_val: float = 0.0, max_val: float = 100.0) -> float:
    """Clamp a value between min and max."""
    return max(min_val, min(max_val, value))


def sanitize_symbol(symbol: str) -> str:
    """Normalize user input: '$spx ' -> 'SPX'."""
    symbol = symbol.strip()
    if symbol.startswith("$"):
        symbol = symbol[1:]
    return symbol.strip().upper()


def sanitize_symbols(symbols: Iterable[str]) -> List[str]:
    """Sanitize a symbol list, dropping blanks and duplicates while keeping order."""
    seen = set()
    result = []
    for raw in symbols:
        symbol = sanitize_symbol(raw)
        if symbol and symbol not in seen:
            seen.add(symbol)
            result.append(symbol)
    return result


def get_symbol_type(symbol: str) -> str:
    """Classify a ticker as index, etf or equity."""
    upper = sanitize_symbol(symbol)
    if upper in INDEX_SYMBOLS:
        return "index"
    if upper in ETF_SYMBOLS:
        return "etf"
    return "equity"


def pct_change(old_val: float, new_val: float) -> float:
    """Calculate percentage change between two values."""
    if old_val == 0:
        return 0.0
    return ((new_val - old_val) / abs(old_val)) * 100.0
