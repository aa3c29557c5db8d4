"""
POWER HOUR - Indicator Snapshot
Collapse a computed indicator frame into the latest IndicatorState.
"""
from typing import Optional

import numpy as np
import pandas as pd

from powerhour.data.models import IndicatorState
from powerhour.indicators.registry import IndicatorRegistry, get_indicator_registry


def _latest(df: pd.DataFrame, column: str, default: float) -> float:
    if column not in df.columns:
        return default
    value = df[column].iloc[-1]
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return default if np.isnan(value) else value


def build_indicator_state(df: pd.DataFrame,
                          registry: Optional[IndicatorRegistry] = None) -> IndicatorState:
    """Compute every registered indicator over an OHLCV frame and read the last bar."""
    if df.empty:
        raise ValueError("Cannot build indicator state from an empty frame")

    registry = registry or get_indicator_registry()
    computed = registry.compute_all(df)

    direction = "NEUTRAL"
    if "adx_direction" in computed.columns:
        direction = str(computed["adx_direction"].iloc[-1])

    return IndicatorState(
        adx=_latest(computed, "adx", 0.0),
        adx_slope=_latest(computed, "adx_slope", 0.0),
        adx_direction=direction,
        plus_di=_latest(computed, "plus_di", 0.0),
        minus_di=_latest(computed, "minus_di", 0.0),
        ewo=_latest(computed, "ewo", 0.0),
        rvol=_latest(computed, "rvol", 1.0),
        rsi=_latest(computed, "rsi", 50.0),
        vwap_deviation=_latest(computed, "vwap_deviation", 0.0),
        macd_histogram=_latest(computed, "macd_histogram", 0.0),
    )
