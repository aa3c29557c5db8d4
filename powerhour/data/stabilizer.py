"""
POWER HOUR - Mark Stabilizer
Derives the displayed price from bid/ask/last so a quote does not flicker
between trade prints. Also grades quote freshness.
"""
from typing import Optional

from powerhour.data.models import DataHealth, DataHealthStatus, MarkPrice, Quote
from powerhour.utils.helpers import now_ms

STALE_THRESHOLD_MS = 60_000
DELAYED_THRESHOLD_MS = 15_000


def _positive(value: Optional[float]) -> float:
    if value is None or value <= 0:
        return 0.0
    return float(value)


def stabilize(bid: Optional[float], ask: Optional[float], last: Optional[float]) -> MarkPrice:
    """
    Mark-first pricing.

    Both sides quoted -> midpoint. Otherwise the last trade. Otherwise zero.
    Non-positive or missing inputs count as absent.
    """
    bid = _positive(bid)
    ask = _positive(ask)
    last = _positive(last)

    if bid > 0 and ask > 0:
        mark = (bid + ask) / 2
        return MarkPrice(mark=mark, display_price=mark, price_source="mark")
    if last > 0:
        return MarkPrice(mark=last, display_price=last, price_source="last")
    return MarkPrice(mark=0.0, display_price=0.0, price_source="none")


def restabilize(quote: Quote) -> Quote:
    """Re-derive mark/display_price on a quote in place and return it."""
    price = stabilize(quote.bid, quote.ask, quote.last)
    quote.mark = price.mark
    quote.display_price = price.display_price
    quote.price_source = price.price_source
    return quote


def compute_data_health(
    bid_time: Optional[int],
    ask_time: Optional[int],
    trade_time: Optional[int],
    symbol_type: str = "equity",
    now: Optional[int] = None,
) -> DataHealth:
    """Grade freshness from the newest of the bid/ask/trade timestamps (epoch ms)."""
    now = now if now is not None else now_ms()
    timestamps = [t for t in (bid_time, ask_time, trade_time) if t is not None and t > 0]
    if not timestamps:
        return DataHealth(status=DataHealthStatus.STALE, reason="No timestamp data available")

    age = now - max(timestamps)
    age_s = age / 1000.0

    if symbol_type == "index":
        if age > STALE_THRESHOLD_MS:
            return DataHealth(status=DataHealthStatus.STALE, age_seconds=age_s,
                              reason=f"Index data {round(age_s)}s old")
        if age > DELAYED_THRESHOLD_MS:
            return DataHealth(status=DataHealthStatus.POSSIBLY_DELAYED, age_seconds=age_s,
                              reason="Index data may be delayed")
        return DataHealth(status=DataHealthStatus.LIVE, age_seconds=age_s, reason="Index data current")

    if age > STALE_THRESHOLD_MS:
        return DataHealth(status=DataHealthStatus.STALE, age_seconds=age_s, reason=f"Data {round(age_s)}s old")
    if age > DELAYED_THRESHOLD_MS:
        return DataHealth(status=DataHealthStatus.POSSIBLY_DELAYED, age_seconds=age_s,
                          reason=f"Data {round(age_s)}s old")
    return DataHealth(status=DataHealthStatus.LIVE, age_seconds=age_s, reason="Real-time")
