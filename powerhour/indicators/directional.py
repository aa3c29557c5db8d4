"""
POWER HOUR - Directional Indicators
ADX (14) with +DI/-DI and a direction call.
"""
import pandas as pd
import numpy as np
from powerhour.indicators.base import BaseIndicator


class ADXIndicator(BaseIndicator):
    """Average Directional Index with +DI/-DI. Measures trend strength and side."""

    def __init__(self, period: int = 14, di_margin: float = 5.0):
        self.period = period
        self.di_margin = di_margin
        super().__init__(name="adx", params={"period": period, "di_margin": di_margin})

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        # True Range
        high_low = df["high"] - df["low"]
        high_close = (df["high"] - df["close"].shift(1)).abs()
        low_close = (df["low"] - df["close"].shift(1)).abs()
        tr = pd.concat([high_low, high_close, low_close], axis=1).max(axis=1)

        # Directional Movement
        up_move = df["high"] - df["high"].shift(1)
        down_move = df["low"].shift(1) - df["low"]

        plus_dm = pd.Series(np.where((up_move > down_move) & (up_move > 0), up_move, 0.0), index=df.index)
        minus_dm = pd.Series(np.where((down_move > up_move) & (down_move > 0), down_move, 0.0), index=df.index)

        # Wilder's smoothing (EMA with alpha=1/period)
        alpha = 1.0 / self.period
        atr_smooth = tr.ewm(alpha=alpha, min_periods=self.period, adjust=False).mean()
        plus_dm_smooth = plus_dm.ewm(alpha=alpha, min_periods=self.period, adjust=False).mean()
        minus_dm_smooth = minus_dm.ewm(alpha=alpha, min_periods=self.period, adjust=False).mean()

        df["plus_di"] = (100.0 * plus_dm_smooth / atr_smooth.replace(0, np.nan)).fillna(0)
        df["minus_di"] = (100.0 * minus_dm_smooth / atr_smooth.replace(0, np.nan)).fillna(0)

        di_sum = df["plus_di"] + df["minus_di"]
        di_diff = (df["plus_di"] - df["minus_di"]).abs()
        dx = (100.0 * di_diff / di_sum.replace(0, np.nan)).fillna(0)

        df["adx"] = dx.ewm(alpha=alpha, min_periods=self.period, adjust=False).mean().fillna(0)
        df["adx_slope"] = df["adx"].diff().fillna(0)

        # +DI must clear -DI by the margin (and vice versa) to call a side
        df["adx_direction"] = np.where(
            df["plus_di"] > df["minus_di"] + self.di_margin, "BULLISH",
            np.where(df["minus_di"] > df["plus_di"] + self.di_margin, "BEARISH", "NEUTRAL"),
        )

        return df


def classify_trend_strength(adx: float) -> str:
    if adx >= 50:
        return "VERY_STRONG"
    if adx >= 40:
        return "STRONG"
    if adx >= 25:
        return "MODERATE"
    if adx >= 15:
        return "WEAK"
    return "NO_TREND"
