"""
POWER HOUR - Indicator Registry
Holds the configured indicators and computes them over a frame in one pass.
"""
import pandas as pd
from typing import Dict, List, Optional
from powerhour.indicators.base import BaseIndicator
from powerhour.indicators.directional import ADXIndicator
from powerhour.indicators.momentum import RSIIndicator, EWOIndicator
from powerhour.indicators.oscillators import MACDIndicator
from powerhour.indicators.volume import RelativeVolumeIndicator, VWAPIndicator
from powerhour.config.settings import get_settings
from powerhour.utils.logger import get_logger

logger = get_logger("indicator_registry")


class IndicatorRegistry:
    """Registry of the indicators behind the signal scorer."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings().indicators
        self._indicators: Dict[str, BaseIndicator] = {}
        self._register_all()

    def _register_all(self) -> None:
        s = self.settings
        indicators = [
            ADXIndicator(period=s.adx_period, di_margin=s.di_margin),
            RSIIndicator(period=s.rsi_period),
            EWOIndicator(fast=s.ewo_fast, slow=s.ewo_slow),
            RelativeVolumeIndicator(period=s.rvol_lookback),
            VWAPIndicator(),
            MACDIndicator(fast=s.macd_fast, slow=s.macd_slow, signal=s.macd_signal),
        ]
        for ind in indicators:
            self._indicators[ind.name] = ind

        logger.debug("indicators_registered", count=len(self._indicators),
                     names=list(self._indicators.keys()))

    @property
    def indicator_names(self) -> List[str]:
        return list(self._indicators.keys())

    def compute_all(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Compute every registered indicator on the OHLCV frame.
        A failing indicator is logged and skipped so the rest still land.
        """
        if data.empty:
            logger.warning("compute_all_empty_data")
            return data

        df = data.copy()
        computed = 0

        for name, indicator in self._indicators.items():
            try:
                df = indicator.calculate(df)
                computed += 1
            except Exception as e:
                logger.error("indicator_compute_error", indicator=name, error=str(e))

        logger.debug("indicators_computed", total=computed, columns=len(df.columns))
        return df


# Singleton
_registry: Optional[IndicatorRegistry] = None


def get_indicator_registry() -> IndicatorRegistry:
    global _registry
    if _registry is None:
        _registry = IndicatorRegistry()
    return _registry
