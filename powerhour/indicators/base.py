"""
POWER HOUR - Base Indicator Interface
Every indicator implements calculate() over an OHLCV frame.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import pandas as pd


class BaseIndicator(ABC):
    """Abstract base class for the technical indicators feeding the scorer."""

    def __init__(self, name: str, params: Optional[Dict[str, Any]] = None):
        self.name = name
        self.params = params or {}

    @abstractmethod
    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Add this indicator's columns to a copy of the frame and return it.
        Input columns: open, high, low, close, volume (oldest row first).
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, params={self.params})"
