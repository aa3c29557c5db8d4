"""
POWER HOUR - Reversal Detectors
Heuristic trend-reversal warnings and run-exhaustion probability built from
RSI divergence and extremes, MACD histogram turns, ADX strength, floor pivots
and VWAP band extension.
"""
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from powerhour.data.adapters.base import candles_to_dataframe
from powerhour.data.models import Candle, PivotPoints, ReversalProbability, TrendReversal
from powerhour.indicators.momentum import RSIIndicator
from powerhour.indicators.volume import vwap_summary
from powerhour.utils.logger import get_logger

logger = get_logger("reversal")

UPWARD_RUN = "UPWARD_RUN"
DOWNWARD_RUN = "DOWNWARD_RUN"

BULLISH_REVERSAL = "BULLISH_REVERSAL"
BEARISH_REVERSAL = "BEARISH_REVERSAL"
NO_REVERSAL = "NONE"

CandleInput = Union[pd.DataFrame, Sequence[Candle]]


def _as_frame(data: CandleInput) -> pd.DataFrame:
    if isinstance(data, pd.DataFrame):
        return data
    return candles_to_dataframe(list(data))


def _last(values: Sequence[float], offset: int = 1, default: float = 0.0) -> float:
    """values[-offset], or default when missing or NaN."""
    if len(values) < offset:
        return default
    value = float(values[-offset])
    return default if np.isnan(value) else value


# ─── Pivots & Levels ─────────────────────────────────────────

def calculate_pivot_points(candle: Optional[Candle]) -> PivotPoints:
    """Standard floor pivots from one (usually the prior session's) bar."""
    if candle is None:
        return PivotPoints(pivot=0.0, r1=0.0, r2=0.0, r3=0.0, s1=0.0, s2=0.0, s3=0.0)

    high, low, close = candle.high, candle.low, candle.close
    pivot = (high + low + close) / 3.0
    return PivotPoints(
        pivot=pivot,
        r1=2 * pivot - low,
        s1=2 * pivot - high,
        r2=pivot + (high - low),
        s2=pivot - (high - low),
        r3=high + 2 * (pivot - low),
        s3=low - 2 * (high - pivot),
    )


def detect_support_resistance_bounce(price: float, pivots: PivotPoints, rsi: float,
                                     threshold: float = 5.0) -> Dict:
    """
    Find the pivot level closest to price. Within `threshold` points of a
    support level with RSI < 35 is STRONG_BUY (< 45 BUY); near resistance with
    RSI > 65 is STRONG_SELL (> 55 SELL).
    """
    levels = [
        ("S3", pivots.s3), ("S2", pivots.s2), ("S1", pivots.s1),
        ("P", pivots.pivot),
        ("R1", pivots.r1), ("R2", pivots.r2), ("R3", pivots.r3),
    ]
    name, value = min(levels, key=lambda lv: abs(price - lv[1]))
    distance = abs(price - value)

    at_support = name.startswith("S") and distance <= threshold
    at_resistance = name.startswith("R") and distance <= threshold

    signal = "NONE"
    if at_support and rsi < 35:
        signal = "STRONG_BUY"
    elif at_support and rsi < 45:
        signal = "BUY"
    elif at_resistance and rsi > 65:
        signal = "STRONG_SELL"
    elif at_resistance and rsi > 55:
        signal = "SELL"

    return {
        "at_support": at_support,
        "at_resistance": at_resistance,
        "level": name,
        "bounce_signal": signal,
        "distance": distance,
    }


# ─── Divergence ──────────────────────────────────────────────

def detect_rsi_divergence(closes: Sequence[float], rsi: Sequence[float],
                          lookback: int = 10) -> Dict[str, bool]:
    """
    Compare the older and newer halves of the lookback window.
    Bullish: lower price low with a higher RSI low. Bearish is the mirror.
    """
    if len(closes) < lookback or len(rsi) < lookback:
        return {"bullish": False, "bearish": False}

    prices = np.asarray(closes[-lookback:], dtype=float)
    rsis = np.asarray(rsi[-lookback:], dtype=float)
    half = lookback // 2
    p_old, p_new = prices[:half], prices[half:]
    r_old, r_new = rsis[:half], rsis[half:]

    bullish = p_new.min() < p_old.min() and r_new.min() > r_old.min()
    bearish = p_new.max() > p_old.max() and r_new.max() < r_old.max()
    return {"bullish": bool(bullish), "bearish": bool(bearish)}


# ─── Trend Reversal ──────────────────────────────────────────

def _severity(score: float) -> str:
    if score >= 50:
        return "CRITICAL"
    if score >= 30:
        return "HIGH"
    return "MEDIUM"


def detect_trend_reversal(
    candles: CandleInput,
    rsi: Sequence[float],
    macd_histogram: Sequence[float],
    adx: Sequence[float],
    price: float,
    pivots: PivotPoints,
) -> TrendReversal:
    """Score bullish vs bearish reversal evidence; the larger side wins."""
    df = _as_frame(candles)
    if len(df) < 5 or len(rsi) < 5:
        return TrendReversal(type=NO_REVERSAL, severity="LOW", confidence=0.0, signals=[],
                             bullish_score=0.0, bearish_score=0.0)

    signals: List[str] = []
    bullish = 0.0
    bearish = 0.0
    current_rsi = _last(rsi, default=50.0)

    divergence = detect_rsi_divergence(df["close"].tolist(), list(rsi), lookback=10)
    if divergence["bullish"]:
        bullish += 25
        signals.append("Bullish RSI divergence")
    if divergence["bearish"]:
        bearish += 25
        signals.append("Bearish RSI divergence")

    if current_rsi < 20:
        bullish += 20
        signals.append("RSI extremely oversold")
    if current_rsi > 80:
        bearish += 20
        signals.append("RSI extremely overbought")

    hist_now = _last(macd_histogram)
    hist_prev = _last(macd_histogram, offset=2)
    if hist_now > 0 and hist_prev <= 0:
        bullish += 15
        signals.append("MACD Histogram turned positive")
    elif hist_now < 0 and hist_prev >= 0:
        bearish += 15
        signals.append("MACD Histogram turned negative")

    current_adx = _last(adx)
    if current_adx < 25:
        bullish -= 10
        bearish -= 10
        signals.append("Weak trend strength (ADX < 25)")

    bounce = detect_support_resistance_bounce(price, pivots, current_rsi, threshold=8.0)
    if bounce["at_support"] and bounce["bounce_signal"] == "STRONG_BUY":
        bullish += 20
        signals.append("Strong bounce near support")
    elif bounce["at_resistance"] and bounce["bounce_signal"] == "STRONG_SELL":
        bearish += 20
        signals.append("Strong bounce near resistance")

    if bullish > bearish:
        kind, confidence, severity = BULLISH_REVERSAL, bullish, _severity(bullish)
    elif bearish > bullish:
        kind, confidence, severity = BEARISH_REVERSAL, bearish, _severity(bearish)
    else:
        kind, confidence, severity = NO_REVERSAL, 0.0, "LOW"

    if kind != NO_REVERSAL:
        logger.debug("trend_reversal_detected", type=kind, severity=severity, confidence=confidence)

    return TrendReversal(
        type=kind,
        severity=severity,
        confidence=confidence,
        signals=signals,
        bullish_score=bullish,
        bearish_score=bearish,
        details={
            "rsi": current_rsi,
            "adx": current_adx,
            "macd_histogram": hist_now,
            "nearest_level": bounce["level"],
            "level_distance": bounce["distance"],
        },
    )


# ─── Run Exhaustion ──────────────────────────────────────────

def calculate_reversal_probability(candles: CandleInput, run_type: str) -> ReversalProbability:
    """Likelihood that an UPWARD_RUN or DOWNWARD_RUN is about to exhaust."""
    if run_type not in (UPWARD_RUN, DOWNWARD_RUN):
        raise ValueError(f"Unknown run type: {run_type}")

    df = _as_frame(candles)
    factors: List[str] = []
    probability = 0.0

    if df.empty:
        return ReversalProbability(probability=0.0, level="LOW", factors=factors)

    rsi = float(RSIIndicator(period=14).calculate(df)["rsi"].iloc[-1])
    vwap = vwap_summary(df)

    if run_type == UPWARD_RUN and rsi > 70:
        probability += 25
        factors.append("RSI overbought")
    elif run_type == DOWNWARD_RUN and rsi < 30:
        probability += 25
        factors.append("RSI oversold")

    if run_type == UPWARD_RUN and vwap["position"] == "ABOVE_UPPER":
        probability += 20
        factors.append("Price extended above VWAP")
    elif run_type == DOWNWARD_RUN and vwap["position"] == "BELOW_LOWER":
        probability += 20
        factors.append("Price extended below VWAP")

    if probability >= 60:
        level = "CRITICAL"
    elif probability >= 40:
        level = "HIGH"
    elif probability >= 20:
        level = "MEDIUM"
    else:
        level = "LOW"

    return ReversalProbability(probability=probability, level=level, factors=factors)
