"""
POWER HOUR - Momentum Indicators
RSI (14), Elliott Wave Oscillator (EMA5 - EMA35)
"""
import pandas as pd
import numpy as np
from powerhour.indicators.base import BaseIndicator


class RSIIndicator(BaseIndicator):
    """Relative Strength Index."""

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="rsi", params={"period": period})

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        delta = df["close"].diff()
        gain = delta.where(delta > 0, 0.0)
        loss = (-delta).where(delta < 0, 0.0)

        avg_gain = gain.ewm(alpha=1.0 / self.period, min_periods=self.period, adjust=False).mean()
        avg_loss = loss.ewm(alpha=1.0 / self.period, min_periods=self.period, adjust=False).mean()

        rs = avg_gain / avg_loss.replace(0, np.nan)
        df["rsi"] = 100.0 - (100.0 / (1.0 + rs))
        # No losses in the window means RSI pegs at 100
        df.loc[(avg_loss == 0) & (avg_gain > 0), "rsi"] = 100.0
        df["rsi"] = df["rsi"].fillna(50.0)

        return df


class EWOIndicator(BaseIndicator):
    """Elliott Wave Oscillator: fast EMA minus slow EMA of close."""

    def __init__(self, fast: int = 5, slow: int = 35):
        self.fast = fast
        self.slow = slow
        super().__init__(name="ewo", params={"fast": fast, "slow": slow})

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        ema_fast = df["close"].ewm(span=self.fast, adjust=False).mean()
        ema_slow = df["close"].ewm(span=self.slow, adjust=False).mean()
        df["ewo"] = ema_fast - ema_slow

        # Zero-line crosses
        df["ewo_cross_bull"] = ((df["ewo"] > 0) & (df["ewo"].shift(1) <= 0)).astype(int)
        df["ewo_cross_bear"] = ((df["ewo"] < 0) & (df["ewo"].shift(1) >= 0)).astype(int)

        return df
