"""
POWER HOUR - Data Models for Market Data
Canonical data structures shared by adapters, the sync manager and the scorer.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from enum import Enum


class DataHealthStatus(str, Enum):
    LIVE = "LIVE"
    POSSIBLY_DELAYED = "POSSIBLY_DELAYED"
    STALE = "STALE"


class QuoteSource(str, Enum):
    STREAM = "stream"
    POLL = "poll"
    SIMULATED = "simulated"


class DataMode(str, Enum):
    STREAM = "stream"
    POLL = "poll"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class SymbolType(str, Enum):
    INDEX = "index"
    ETF = "etf"
    EQUITY = "equity"


class Quote(BaseModel):
    """Last known state of one instrument. Merged in place by the sync manager."""
    symbol: str
    description: str = ""
    symbol_type: SymbolType = SymbolType.EQUITY
    bid: float = Field(default=0.0, ge=0)
    ask: float = Field(default=0.0, ge=0)
    last: float = Field(default=0.0, ge=0)
    mark: float = Field(default=0.0, ge=0)
    display_price: float = Field(default=0.0, ge=0)
    price_source: str = "none"
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = Field(default=0, ge=0)
    prev_close: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    bid_time: Optional[int] = None
    ask_time: Optional[int] = None
    trade_time: Optional[int] = None
    status: DataHealthStatus = DataHealthStatus.STALE
    source: QuoteSource = QuoteSource.POLL
    provider: Optional[str] = None
    last_updated: float = 0.0


class Candle(BaseModel):
    """Single OHLCV bar. timestamp is the period start in epoch milliseconds."""
    model_config = ConfigDict(frozen=True)

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class MarkPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    mark: float
    display_price: float
    price_source: str


class DataHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: DataHealthStatus
    age_seconds: Optional[float] = None
    reason: str = ""


class ResolvedQuote(BaseModel):
    """A quote tagged with the upstream (or simulated) source that produced it."""
    quote: Quote
    source: str
    is_simulated: bool = False


class ResolvedCandles(BaseModel):
    symbol: str
    resolution: str
    candles: List[Candle]
    source: str
    is_simulated: bool = False


class StreamEvent(BaseModel):
    """Normalized push-stream message. Absent fields are None."""
    type: str
    symbol: str
    bid: Optional[float] = None
    ask: Optional[float] = None
    last: Optional[float] = None
    size: Optional[float] = None
    volume: Optional[int] = None
    bid_time: Optional[int] = None
    ask_time: Optional[int] = None
    trade_time: Optional[int] = None


class SyncStatus(BaseModel):
    """Read-only snapshot of the sync manager's connection state."""
    model_config = ConfigDict(frozen=True)

    connection: ConnectionStatus
    mode: DataMode
    streaming_enabled: bool
    reconnect_attempts: int
    max_reconnect_attempts: int
    is_polling: bool
    last_event_at: Optional[float] = None
    symbols: List[str] = []


class IndicatorState(BaseModel):
    """Latest indicator readings for one symbol. Read-only input to the scorer."""
    model_config = ConfigDict(frozen=True)

    adx: float
    adx_slope: float
    adx_direction: str = "NEUTRAL"
    plus_di: Optional[float] = None
    minus_di: Optional[float] = None
    ewo: float
    rvol: float
    rsi: float
    vwap_deviation: float
    macd_histogram: float = 0.0


class SignalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    signal: str
    confidence: float
    aligned_count: int
    warnings: List[str]
    recommendation: str
    bullish_score: float = 0.0
    bearish_score: float = 0.0
    net_score: float = 0.0
    notes: List[str] = []


class SuperTrendBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: int
    upper_band: float
    lower_band: float
    atr: float
    signal: str
    is_flip: bool = False


class OptionContract(BaseModel):
    symbol: str
    root_symbol: str
    underlying: str
    option_type: str
    strike: float
    expiration_date: str
    bid: float = 0.0
    ask: float = 0.0
    last: float = 0.0
    mark: float = 0.0
    display_price: float = 0.0
    price_source: str = "none"
    volume: int = 0
    open_interest: int = 0
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    implied_volatility: Optional[float] = None
    status: DataHealthStatus = DataHealthStatus.STALE


class OptionChain(BaseModel):
    root: str
    expiration: str
    calls: List[OptionContract] = []
    puts: List[OptionContract] = []


class ChainState(BaseModel):
    """Options panel state for the currently selected underlying."""
    symbol: Optional[str] = None
    root: Optional[str] = None
    expirations: List[str] = []
    selected_expiration: Optional[str] = None
    calls: List[OptionContract] = []
    puts: List[OptionContract] = []
    loading: bool = False
    error: Optional[str] = None


class MarketStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_open: bool
    session: str
    is_weekend: bool = False
    holiday: Optional[str] = None
    early_close: bool = False
    next_open: Optional[str] = None
    next_open_label: str = ""
    minutes_until_open: int = 0
    timestamp: str


class ReversalProbability(BaseModel):
    model_config = ConfigDict(frozen=True)

    probability: float
    level: str
    factors: List[str]


class TrendReversal(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    severity: str
    confidence: float
    signals: List[str]
    bullish_score: float
    bearish_score: float
    details: Dict[str, Any] = {}


class PivotPoints(BaseModel):
    model_config = ConfigDict(frozen=True)

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float
