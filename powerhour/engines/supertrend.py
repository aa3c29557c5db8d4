"""
POWER HOUR - SuperTrend Band Tracker
Incremental ATR trailing bands with a persistent BUY/SELL/HOLD state.
Upper band only ratchets down and lower band only ratchets up, unless the
prior close broke through the band.
"""
from typing import List, Optional, Sequence

from powerhour.config.settings import get_settings
from powerhour.data.models import Candle, SuperTrendBand
from powerhour.utils.logger import get_logger

logger = get_logger("supertrend")

BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"


class SuperTrendTracker:
    """
    Feed candles oldest-first through update(). Each call returns the band
    entry for that bar.

    ATR is an EMA (k = 2 / (period + 1)) of true range, seeded with the simple
    mean of the first `period` ranges. Before the seed is available the
    running mean of the ranges seen so far is used.

    When the bands collapse onto the close (a flat bar with zero ATR) an
    inclusive tracker reports BUY.
    """

    def __init__(self, period: int = 7, multiplier: float = 2.5, inclusive: bool = True):
        if period < 1:
            raise ValueError("period must be >= 1")
        self.period = period
        self.multiplier = multiplier
        self.inclusive = inclusive
        self.reset()

    def reset(self) -> None:
        self._prev_close: Optional[float] = None
        self._prev_upper: Optional[float] = None
        self._prev_lower: Optional[float] = None
        self._signal = HOLD
        self._atr: Optional[float] = None
        self._tr_count = 0
        self._tr_sum = 0.0

    @property
    def signal(self) -> str:
        return self._signal

    def _update_atr(self, tr: float) -> float:
        self._tr_count += 1
        if self._tr_count <= self.period:
            self._tr_sum += tr
            self._atr = self._tr_sum / self._tr_count
        else:
            k = 2.0 / (self.period + 1)
            self._atr = (tr - self._atr) * k + self._atr
        return self._atr

    def _crossed_above(self, close: float, band: float) -> bool:
        return close >= band if self.inclusive else close > band

    def _crossed_below(self, close: float, band: float) -> bool:
        return close <= band if self.inclusive else close < band

    def update(self, candle: Candle) -> SuperTrendBand:
        if self._prev_close is None:
            tr = candle.high - candle.low
        else:
            tr = max(
                candle.high - candle.low,
                abs(candle.high - self._prev_close),
                abs(candle.low - self._prev_close),
            )
        atr = self._update_atr(tr)

        hl2 = (candle.high + candle.low) / 2.0
        basic_upper = hl2 + self.multiplier * atr
        basic_lower = hl2 - self.multiplier * atr

        if self._prev_upper is None:
            upper, lower = basic_upper, basic_lower
        else:
            if basic_upper < self._prev_upper or self._prev_close > self._prev_upper:
                upper = basic_upper
            else:
                upper = self._prev_upper
            if basic_lower > self._prev_lower or self._prev_close < self._prev_lower:
                lower = basic_lower
            else:
                lower = self._prev_lower

        previous_signal = self._signal
        # Upper band is checked first: a bar sitting on both bands reads as BUY
        if self._crossed_above(candle.close, upper):
            self._signal = BUY
        elif self._crossed_below(candle.close, lower):
            self._signal = SELL

        # The opening bar has no prior signal to flip from
        is_flip = self._prev_close is not None and self._signal != previous_signal
        if is_flip:
            logger.debug("supertrend_flip", signal=self._signal, timestamp=candle.timestamp,
                         close=candle.close)

        self._prev_close = candle.close
        self._prev_upper = upper
        self._prev_lower = lower

        return SuperTrendBand(
            timestamp=candle.timestamp,
            upper_band=upper,
            lower_band=lower,
            atr=atr,
            signal=self._signal,
            is_flip=is_flip,
        )


def compute_supertrend(
    candles: Sequence[Candle],
    period: Optional[int] = None,
    multiplier: Optional[float] = None,
    inclusive: Optional[bool] = None,
) -> List[SuperTrendBand]:
    """Run a fresh tracker over a candle series. Unset parameters come from settings."""
    cfg = get_settings().indicators
    tracker = SuperTrendTracker(
        period=cfg.supertrend_period if period is None else period,
        multiplier=cfg.supertrend_multiplier if multiplier is None else multiplier,
        inclusive=cfg.supertrend_inclusive if inclusive is None else inclusive,
    )
    return [tracker.update(c) for c in candles]
