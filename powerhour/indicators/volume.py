"""
POWER HOUR - Volume Indicators
Relative Volume, VWAP with standard-deviation bands
"""
import pandas as pd
import numpy as np
from powerhour.indicators.base import BaseIndicator


class RelativeVolumeIndicator(BaseIndicator):
    """Current bar volume over the mean of the preceding `period` bars."""

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="rvol", params={"period": period})

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        avg_vol = df["volume"].shift(1).rolling(window=self.period).mean()
        df["rvol"] = (df["volume"] / avg_vol.replace(0, np.nan)).fillna(1.0)
        df["rvol_spike"] = (df["rvol"] >= 2.0).astype(int)

        return df


class VWAPIndicator(BaseIndicator):
    """
    Volume-weighted average price over the frame, with 1σ/2σ bands of typical
    price around it. `vwap_deviation` is the close's distance from VWAP in σ.
    """

    def __init__(self, band_std: float = 2.0):
        self.band_std = band_std
        super().__init__(name="vwap", params={"band_std": band_std})

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        typical = (df["high"] + df["low"] + df["close"]) / 3.0
        cum_vol = df["volume"].cumsum()
        cum_tpv = (typical * df["volume"]).cumsum()

        df["vwap"] = (cum_tpv / cum_vol.replace(0, np.nan)).fillna(df["close"])

        # Population std of typical price around the running VWAP
        count = pd.Series(np.arange(1, len(df) + 1), index=df.index, dtype=float)
        sq_dev = (typical - df["vwap"]) ** 2
        df["vwap_std"] = np.sqrt(sq_dev.cumsum() / count)

        df["vwap_upper"] = df["vwap"] + self.band_std * df["vwap_std"]
        df["vwap_lower"] = df["vwap"] - self.band_std * df["vwap_std"]
        df["vwap_deviation"] = ((df["close"] - df["vwap"]) / df["vwap_std"].replace(0, np.nan)).fillna(0.0)

        return df


def vwap_summary(df: pd.DataFrame, band_std: float = 2.0) -> dict:
    """Whole-frame VWAP, σ bands and where the last close sits."""
    if df.empty:
        return {"vwap": 0.0, "std": 0.0, "upper": 0.0, "lower": 0.0, "position": "AT_VWAP", "deviation": 0.0}

    typical = (df["high"] + df["low"] + df["close"]) / 3.0
    total_vol = df["volume"].sum()
    close = float(df["close"].iloc[-1])
    vwap = float((typical * df["volume"]).sum() / total_vol) if total_vol > 0 else close
    std = float(np.sqrt(((typical - vwap) ** 2).mean()))
    upper = vwap + band_std * std
    lower = vwap - band_std * std

    if close > upper:
        position = "ABOVE_UPPER"
    elif close < lower:
        position = "BELOW_LOWER"
    elif close > vwap:
        position = "ABOVE_VWAP"
    elif close < vwap:
        position = "BELOW_VWAP"
    else:
        position = "AT_VWAP"

    return {
        "vwap": vwap,
        "std": std,
        "upper": upper,
        "lower": lower,
        "position": position,
        "deviation": (close - vwap) / std if std > 0 else 0.0,
    }
