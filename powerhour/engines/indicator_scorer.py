"""
POWER HOUR - Indicator Signal Scorer
Weighted aggregation of ADX, EWO, RVOL, RSI and VWAP deviation into a
directional call with a confidence score and human-readable warnings.

Weights: ADX 30, EWO 20, RVOL 25, RSI 15, VWAP 15. Confidence is capped at
100. Warnings are a hard override: an ADX exit warning or two or more
warnings force the signal to `avoid` whatever the score says.
"""
from typing import List, Optional

from powerhour.config.settings import ScorerSettings, get_settings
from powerhour.data.models import IndicatorState, SignalResult
from powerhour.utils.helpers import clamp

STRONG_BULLISH = "strong_bullish"
WEAK_BULLISH = "weak_bullish"
NEUTRAL = "neutral"
WEAK_BEARISH = "weak_bearish"
STRONG_BEARISH = "strong_bearish"
AVOID = "avoid"

RECOMMENDATIONS = {
    STRONG_BULLISH: "STRONG BUY - High confidence setup",
    STRONG_BEARISH: "STRONG SELL - High confidence setup",
    WEAK_BULLISH: "Cautious bullish bias",
    WEAK_BEARISH: "Cautious bearish bias",
    NEUTRAL: "NO TRADE - Wait for alignment",
}
EXIT_RECOMMENDATION = "EXIT POSITION - Trend dying"
AVOID_RECOMMENDATION = "AVOID - Multiple warnings"


class IndicatorSignalScorer:
    """Stateless scorer; all thresholds come from ScorerSettings."""

    def __init__(self, settings: Optional[ScorerSettings] = None):
        self.cfg = settings or get_settings().scorer

    def score(self, state: IndicatorState) -> SignalResult:
        cfg = self.cfg
        bullish = 0.0
        bearish = 0.0
        aligned = 0
        warnings: List[str] = []
        notes: List[str] = []
        exit_warning = False

        # ── 1. ADX: strength gates the weight, +DI/-DI picks the side ──
        adx_weight = 0.0
        if state.adx < cfg.adx_exit_warning:
            exit_warning = True
            warnings.append(
                f"ADX EXIT WARNING: {state.adx:.1f} < {cfg.adx_exit_warning:.0f} (trend dying)"
            )
        elif state.adx >= cfg.adx_strong_trend and state.adx_slope > 0:
            adx_weight = cfg.adx_weight
        elif state.adx >= cfg.adx_entry and state.adx_slope > 0:
            adx_weight = cfg.adx_weight * cfg.adx_partial_factor
        elif state.adx_slope < 0:
            warnings.append("ADX falling: trend losing strength")

        if adx_weight > 0:
            if state.adx_direction == "BULLISH":
                bullish += adx_weight
                aligned += 1
            elif state.adx_direction == "BEARISH":
                bearish += adx_weight
                aligned += 1

        if state.plus_di is not None and state.minus_di is not None:
            notes.append(
                f"+DI {state.plus_di:.1f} / -DI {state.minus_di:.1f} ({state.adx_direction})"
            )

        # ── 2. EWO ──
        if state.ewo >= cfg.ewo_entry:
            bullish += cfg.ewo_weight
            aligned += 1
        elif state.ewo <= -cfg.ewo_entry:
            bearish += cfg.ewo_weight
            aligned += 1
        elif cfg.ewo_neutral_low <= state.ewo <= cfg.ewo_neutral_high:
            warnings.append(f"EWO in neutral zone ({state.ewo:.1f}): no momentum")

        # ── 3. RVOL confirms whichever side EWO leans to ──
        if state.rvol >= cfg.rvol_spike:
            if state.ewo > 0:
                bullish += cfg.rvol_weight
                aligned += 1
            elif state.ewo < 0:
                bearish += cfg.rvol_weight
                aligned += 1
        elif state.rvol < cfg.rvol_confirmation:
            warnings.append(f"Low volume ({state.rvol:.1f}x): weak confirmation")

        # ── 4. RSI extremes are contrarian ──
        if state.rsi <= cfg.rsi_oversold:
            bullish += cfg.rsi_weight
            aligned += 1
        elif state.rsi >= cfg.rsi_overbought:
            bearish += cfg.rsi_weight
            aligned += 1
        elif cfg.rsi_chop_low <= state.rsi <= cfg.rsi_chop_high:
            warnings.append(f"RSI in chop zone ({state.rsi:.0f}): avoid entries")

        # ── 5. VWAP deviation ──
        if abs(state.vwap_deviation) >= cfg.vwap_deviation:
            if state.vwap_deviation > 0:
                bullish += cfg.vwap_weight
            else:
                bearish += cfg.vwap_weight
            aligned += 1

        net = bullish - bearish
        bonus = cfg.adx_confidence_bonus if state.adx > cfg.adx_strong_trend else 0.0
        confidence = clamp(abs(net) + bonus)

        if exit_warning:
            signal, recommendation = AVOID, EXIT_RECOMMENDATION
        elif len(warnings) >= cfg.avoid_warning_count:
            signal, recommendation = AVOID, AVOID_RECOMMENDATION
        else:
            signal = self._classify(net, confidence)
            recommendation = RECOMMENDATIONS[signal]

        return SignalResult(
            signal=signal,
            confidence=confidence,
            aligned_count=aligned,
            warnings=warnings,
            recommendation=recommendation,
            bullish_score=bullish,
            bearish_score=bearish,
            net_score=net,
            notes=notes,
        )

    def _classify(self, net: float, confidence: float) -> str:
        cfg = self.cfg
        if abs(net) >= cfg.strong_net_score and confidence >= cfg.strong_min_confidence:
            return STRONG_BULLISH if net > 0 else STRONG_BEARISH
        if abs(net) >= cfg.weak_net_score:
            return WEAK_BULLISH if net > 0 else WEAK_BEARISH
        return NEUTRAL

    def check_adx_exit_warning(self, current: float, previous: float, peak: float) -> bool:
        """Exit when ADX drops below the exit level, or sags under 80% of its peak while still falling."""
        if current < self.cfg.adx_exit_warning:
            return True
        return current < peak * self.cfg.adx_peak_decay and current < previous


def score(state: IndicatorState, settings: Optional[ScorerSettings] = None) -> SignalResult:
    return IndicatorSignalScorer(settings).score(state)


def check_adx_exit_warning(current: float, previous: float, peak: float,
                           settings: Optional[ScorerSettings] = None) -> bool:
    return IndicatorSignalScorer(settings).check_adx_exit_warning(current, previous, peak)
