"""
POWER HOUR - Central Configuration
All settings are loaded from environment variables with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from typing import Dict, List, Optional


class DataSourceSettings(BaseSettings):
    """Upstream provider credentials, endpoints and failover behaviour."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    tradier_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("TRADIER_API_KEY", "TRADIER_TOKEN"),
    )
    tradier_base_url: str = "https://api.tradier.com/v1"
    tradier_stream_url: str = "https://stream.tradier.com/v1"

    public_secret_key: str = ""
    public_base_url: str = "https://api.public.com/v1"

    finnhub_api_key: str = ""
    finnhub_base_url: str = "https://finnhub.io/api/v1"

    yahoo_base_url: str = "https://query1.finance.yahoo.com"

    # Polling failover chain, highest priority first
    provider_order: List[str] = ["public", "finnhub", "yahoo"]
    provider_timeout_seconds: float = 8.0
    cache_ttl_seconds: int = 5
    synthetic_when_market_closed: bool = False
    synthetic_candle_count: int = 100

    synthetic_base_prices: Dict[str, float] = {
        "SPX": 6050.0,
        "SPY": 605.0,
        "QQQ": 530.0,
        "AAPL": 225.0,
        "GOOGL": 198.0,
        "TSLA": 415.0,
        "NVDA": 138.0,
    }
    synthetic_default_price: float = 100.0

    environment: str = Field(default="development", validation_alias=AliasChoices("APP_ENV", "ENVIRONMENT"))


class StreamSettings(BaseSettings):
    """Quote synchronization: stream reconnect backoff and poll cadence."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    poll_interval_seconds: float = 3.0
    max_reconnect_attempts: int = 5
    reconnect_base_ms: int = 1000
    reconnect_cap_ms: int = 30000
    default_mode: str = "stream"


class ScorerSettings(BaseSettings):
    """Indicator signal scorer weights and thresholds."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    adx_weight: float = 30.0
    ewo_weight: float = 20.0
    rvol_weight: float = 25.0
    rsi_weight: float = 15.0
    vwap_weight: float = 15.0

    adx_strong_trend: float = 30.0
    adx_entry: float = 25.0
    adx_exit_warning: float = 20.0
    adx_partial_factor: float = 0.75
    adx_peak_decay: float = 0.8

    ewo_entry: float = 5.0
    ewo_neutral_low: float = -3.0
    ewo_neutral_high: float = 3.0

    rvol_spike: float = 2.0
    rvol_confirmation: float = 1.5

    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    rsi_chop_low: float = 40.0
    rsi_chop_high: float = 60.0

    vwap_deviation: float = 1.0

    strong_net_score: float = 50.0
    weak_net_score: float = 25.0
    strong_min_confidence: float = 70.0
    adx_confidence_bonus: float = 20.0
    avoid_warning_count: int = 2


class IndicatorSettings(BaseSettings):
    """Indicator computation parameters."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    adx_period: int = 14
    di_margin: float = 5.0
    rsi_period: int = 14
    ewo_fast: int = 5
    ewo_slow: int = 35
    rvol_lookback: int = 20
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    supertrend_period: int = 7
    supertrend_multiplier: float = 2.5
    supertrend_inclusive: bool = True


class OptionsSettings(BaseSettings):
    """Options chain loading."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Index underlyings whose weekly/PM-settled sibling root is preferred
    preferred_roots: Dict[str, str] = {
        "SPX": "SPXW",
        "NDX": "NDXP",
        "RUT": "RUTW",
    }
    include_greeks: bool = True


class AppSettings(BaseSettings):
    """Top-level application settings."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "POWER HOUR"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    watchlist: List[str] = ["SPX", "SPY", "QQQ", "AAPL", "TSLA", "GOOGL", "NVDA"]

    data: DataSourceSettings = Field(default_factory=DataSourceSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    scorer: ScorerSettings = Field(default_factory=ScorerSettings)
    indicators: IndicatorSettings = Field(default_factory=IndicatorSettings)
    options: OptionsSettings = Field(default_factory=OptionsSettings)


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
