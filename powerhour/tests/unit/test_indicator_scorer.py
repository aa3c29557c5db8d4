"""
POWER HOUR - Unit Tests for the Indicator Signal Scorer
Table-driven: each row is an indicator state and the call it must produce.
"""
import pytest

from powerhour.config.settings import ScorerSettings
from powerhour.data.models import IndicatorState
from powerhour.engines.indicator_scorer import (
    AVOID,
    NEUTRAL,
    STRONG_BEARISH,
    STRONG_BULLISH,
    WEAK_BEARISH,
    WEAK_BULLISH,
    IndicatorSignalScorer,
    check_adx_exit_warning,
    score,
)


def state(**overrides) -> IndicatorState:
    values = dict(adx=27.0, adx_slope=0.0, adx_direction="NEUTRAL", ewo=4.0, rvol=1.6, rsi=35.0,
                  vwap_deviation=0.0)
    values.update(overrides)
    return IndicatorState(**values)


SCORING_TABLE = [
    pytest.param(
        state(adx=31, adx_slope=1, adx_direction="BULLISH", ewo=6, rsi=52, rvol=2.2, vwap_deviation=1.2),
        STRONG_BULLISH, 90.0, 100.0, 1, id="strong_bull_with_chop_warning",
    ),
    pytest.param(
        state(adx=35, adx_slope=2, adx_direction="BEARISH", ewo=-7, rsi=55, rvol=2.5, vwap_deviation=-1.5),
        STRONG_BEARISH, -90.0, 100.0, 1, id="strong_bear",
    ),
    pytest.param(
        state(adx=26, adx_slope=0.5, adx_direction="BULLISH", ewo=4, rvol=1.8, rsi=35, vwap_deviation=1.1),
        WEAK_BULLISH, 37.5, 37.5, 0, id="partial_adx_weak_bull",
    ),
    pytest.param(
        state(adx=26, adx_slope=1, adx_direction="BULLISH", ewo=5, rvol=2.0, rsi=35, vwap_deviation=0),
        WEAK_BULLISH, 67.5, 67.5, 0, id="big_net_low_confidence_is_weak",
    ),
    pytest.param(
        state(adx=22, adx_slope=1, ewo=-6, rvol=3.0, rsi=35, vwap_deviation=0),
        WEAK_BEARISH, -45.0, 45.0, 0, id="rvol_follows_ewo_sign",
    ),
    pytest.param(
        state(),
        NEUTRAL, 0.0, 0.0, 0, id="nothing_aligned",
    ),
    pytest.param(
        state(adx=40, adx_slope=1, adx_direction="NEUTRAL"),
        NEUTRAL, 0.0, 20.0, 0, id="neutral_di_adds_no_side",
    ),
    pytest.param(
        state(adx=35, adx_slope=1, adx_direction="BULLISH", ewo=8, rvol=2.5, rsi=28, vwap_deviation=1.5),
        STRONG_BULLISH, 105.0, 100.0, 0, id="all_aligned_confidence_capped",
    ),
]


class TestScoringTable:
    @pytest.mark.parametrize("indicators,signal,net,confidence,warning_count", SCORING_TABLE)
    def test_table(self, indicators, signal, net, confidence, warning_count):
        result = score(indicators)
        assert result.signal == signal
        assert result.net_score == pytest.approx(net)
        assert result.confidence == pytest.approx(confidence)
        assert len(result.warnings) == warning_count
        assert 0 <= result.confidence <= 100


class TestWarnings:
    def test_exit_warning_forces_avoid(self):
        result = score(state(adx=18, adx_slope=-0.5, ewo=-1, rsi=53, rvol=1.1, vwap_deviation=0.1))
        assert result.signal == AVOID
        assert "EXIT WARNING" in result.warnings[0]
        assert result.recommendation == "EXIT POSITION - Trend dying"

    def test_exit_warning_overrides_strong_score(self):
        result = score(state(adx=15, adx_slope=1, ewo=9, rvol=3.0, rsi=25, vwap_deviation=2.0))
        assert result.bullish_score == pytest.approx(75.0)
        assert result.signal == AVOID

    def test_two_warnings_force_avoid(self):
        result = score(state(adx=28, adx_slope=-1, ewo=0.5, rvol=1.7, rsi=35))
        assert result.warnings == [
            "ADX falling: trend losing strength",
            "EWO in neutral zone (0.5): no momentum",
        ]
        assert result.signal == AVOID
        assert result.recommendation == "AVOID - Multiple warnings"

    def test_low_volume_warning(self):
        result = score(state(rvol=1.2))
        assert "Low volume (1.2x): weak confirmation" in result.warnings

    def test_chop_zone_is_inclusive(self):
        assert any("chop zone" in w for w in score(state(rsi=40)).warnings)
        assert any("chop zone" in w for w in score(state(rsi=60)).warnings)
        assert not any("chop zone" in w for w in score(state(rsi=39.9)).warnings)

    def test_ewo_between_neutral_and_entry_is_silent(self):
        result = score(state(ewo=-4))
        assert result.warnings == []
        assert result.bearish_score == 0


class TestContributions:
    def test_rsi_is_contrarian(self):
        assert score(state(rsi=30)).bullish_score == pytest.approx(15.0)
        assert score(state(rsi=70)).bearish_score == pytest.approx(15.0)

    def test_vwap_signed_by_deviation(self):
        assert score(state(vwap_deviation=-1.0)).bearish_score == pytest.approx(15.0)
        assert score(state(vwap_deviation=0.99)).bullish_score == 0

    def test_aligned_count(self):
        result = score(state(adx=31, adx_slope=1, adx_direction="BULLISH", ewo=6, rsi=52, rvol=2.2,
                             vwap_deviation=1.2))
        assert result.aligned_count == 4

    def test_di_reading_is_a_note_not_a_warning(self):
        result = score(state(plus_di=28.4, minus_di=12.1, adx_direction="BULLISH"))
        assert result.notes == ["+DI 28.4 / -DI 12.1 (BULLISH)"]
        assert result.warnings == []

    def test_deterministic(self):
        s = state(adx=31, adx_slope=1, adx_direction="BULLISH", ewo=6, rsi=52, rvol=2.2, vwap_deviation=1.2)
        assert score(s) == score(s)

    def test_custom_thresholds(self):
        scorer = IndicatorSignalScorer(ScorerSettings(adx_exit_warning=10.0))
        result = scorer.score(state(adx=15, adx_slope=0))
        assert not any("EXIT WARNING" in w for w in result.warnings)


class TestAdxExitWarning:
    @pytest.mark.parametrize("current,previous,peak,expected", [
        (19.0, 22.0, 30.0, True),
        (23.0, 25.0, 30.0, True),
        (23.0, 22.0, 30.0, False),
        (28.0, 29.0, 30.0, False),
    ])
    def test_exit_rule(self, current, previous, peak, expected):
        assert check_adx_exit_warning(current, previous, peak) is expected
