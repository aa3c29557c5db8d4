"""
POWER HOUR - Market Data Errors
Adapters raise these instead of returning sentinel values so the resolver can
tell "try the next provider" apart from "stop and fix the deployment".
"""
from typing import Optional


class PowerHourError(Exception):
    """Base class for all application errors."""


class ProviderError(PowerHourError):
    """An upstream provider could not supply data."""

    def __init__(self, provider: str, message: str, symbol: Optional[str] = None):
        self.provider = provider
        self.symbol = symbol
        super().__init__(f"{provider}: {message}")


class ProviderTransportError(ProviderError):
    """Network failure, timeout, non-2xx status, rate limit or unparseable body."""

    def __init__(self, provider: str, message: str, symbol: Optional[str] = None,
                 status: Optional[int] = None):
        self.status = status
        super().__init__(provider, message, symbol)


class NoDataError(ProviderError):
    """Valid response with no usable instrument data.

    ``definitive`` means the upstream is authoritative about the absence
    (market closed, unknown instrument) and further providers are pointless.
    """

    def __init__(self, provider: str, message: str, symbol: Optional[str] = None,
                 definitive: bool = False):
        self.definitive = definitive
        super().__init__(provider, message, symbol)


class ConfigurationError(PowerHourError):
    """Missing or invalid credentials. Never swallowed."""
