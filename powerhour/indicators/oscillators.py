"""
POWER HOUR - Oscillator Indicators
MACD (12, 26, 9)
"""
import pandas as pd
from powerhour.indicators.base import BaseIndicator


class MACDIndicator(BaseIndicator):
    """MACD: Moving Average Convergence Divergence."""

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = fast
        self.slow = slow
        self.signal_period = signal
        super().__init__(name="macd", params={
            "fast": fast, "slow": slow, "signal": signal
        })

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        ema_fast = df["close"].ewm(span=self.fast, adjust=False).mean()
        ema_slow = df["close"].ewm(span=self.slow, adjust=False).mean()

        df["macd_line"] = ema_fast - ema_slow
        df["macd_signal"] = df["macd_line"].ewm(span=self.signal_period, adjust=False).mean()
        df["macd_histogram"] = df["macd_line"] - df["macd_signal"]

        # Histogram sign flips
        df["macd_hist_turn_bull"] = (
            (df["macd_histogram"] > 0) & (df["macd_histogram"].shift(1) <= 0)
        ).astype(int)
        df["macd_hist_turn_bear"] = (
            (df["macd_histogram"] < 0) & (df["macd_histogram"].shift(1) >= 0)
        ).astype(int)

        return df
