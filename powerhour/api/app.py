"""
POWER HOUR - FastAPI Application
Quote feed, candles, signal scoring, SuperTrend, reversal warnings and the
options panel behind one HTTP API.
"""
import uuid
from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from powerhour.config.settings import get_settings
from powerhour.utils.logger import get_logger, setup_logging
from powerhour.utils.helpers import sanitize_symbol, utc_timestamp
from powerhour.data.adapters.base import candles_to_dataframe
from powerhour.data.errors import ConfigurationError
from powerhour.data.market_calendar import get_market_status
from powerhour.data.models import Candle, IndicatorState
from powerhour.data.resolver import get_resolver
from powerhour.engines.indicator_scorer import score
from powerhour.engines.reversal import (
    DOWNWARD_RUN,
    UPWARD_RUN,
    calculate_pivot_points,
    calculate_reversal_probability,
    detect_trend_reversal,
)
from powerhour.engines.supertrend import compute_supertrend
from powerhour.indicators.directional import classify_trend_strength
from powerhour.indicators.registry import get_indicator_registry
from powerhour.indicators.snapshot import build_indicator_state
from powerhour.options.chain_loader import get_chain_loader
from powerhour.streaming.sync_manager import get_sync_manager

logger = get_logger("api")

# Application state
app_state: Dict[str, Any] = {
    "instance_id": str(uuid.uuid4())[:8],
    "started_at": None,
    "signals_scored": 0,
    "errors": 0,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: bring the data layer up, then tear it down."""
    setup_logging()
    settings = get_settings()
    app_state["started_at"] = utc_timestamp()

    logger.info("power_hour_starting",
                version=settings.version,
                instance=app_state["instance_id"],
                watchlist=settings.watchlist)

    resolver = get_resolver()
    await resolver.initialize()

    manager = get_sync_manager()
    await manager.start()

    logger.info("power_hour_ready")

    yield

    logger.info("power_hour_shutting_down")
    await manager.stop()
    await resolver.shutdown()
    await get_chain_loader().adapter.disconnect()


app = FastAPI(
    title="POWER HOUR",
    description="Options dashboard market-data and signal core",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    app_state["errors"] += 1
    logger.error("configuration_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# ─── Health & Status ────────────────────────────────────────────

@app.get("/healthz", tags=["System"])
async def health_check():
    """Fast health check endpoint for load balancers and monitoring."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "instance": app_state["instance_id"],
            "uptime_since": app_state["started_at"],
            "timestamp": utc_timestamp(),
        },
    )


@app.get("/api/v1/status", tags=["System"])
async def status():
    """Feed connection state, provider chain and component stats."""
    settings = get_settings()
    manager = get_sync_manager()
    resolver = get_resolver()

    return {
        "app": {
            "name": settings.app_name,
            "version": settings.version,
            "instance_id": app_state["instance_id"],
            "started_at": app_state["started_at"],
        },
        "sync": manager.status().model_dump(mode="json"),
        "last_error": manager.last_error,
        "providers": [a.name for a in resolver.adapters],
        "candle_cache": resolver.cache.stats,
        "indicators": get_indicator_registry().indicator_names,
        "signals_scored": app_state["signals_scored"],
        "errors": app_state["errors"],
        "timestamp": utc_timestamp(),
    }


@app.get("/api/v1/market-status", tags=["System"])
async def market_status():
    return get_market_status().model_dump(mode="json")


# ─── Quotes ─────────────────────────────────────────────────────

class DataModeRequest(BaseModel):
    streaming: bool


class WatchlistRequest(BaseModel):
    symbols: List[str]


@app.get("/api/v1/quotes", tags=["Quotes"])
async def list_quotes():
    """Current quotes for the watch set, in watch order."""
    manager = get_sync_manager()
    return {
        "quotes": [q.model_dump(mode="json") for q in manager.quotes_array()],
        "status": manager.status().model_dump(mode="json"),
        "timestamp": utc_timestamp(),
    }


@app.get("/api/v1/quotes/{symbol}", tags=["Quotes"])
async def get_quote(symbol: str):
    quote = get_sync_manager().get_quote(symbol)
    if quote is None:
        raise HTTPException(status_code=404, detail=f"No quote for {sanitize_symbol(symbol)}")
    return quote.model_dump(mode="json")


@app.post("/api/v1/quotes/refresh", tags=["Quotes"])
async def refresh_quotes():
    """Poll every watched symbol once, regardless of data mode."""
    quotes = await get_sync_manager().refresh_quotes()
    return {"quotes": [q.model_dump(mode="json") for q in quotes], "timestamp": utc_timestamp()}


@app.post("/api/v1/data-mode", tags=["Quotes"])
async def set_data_mode(request: DataModeRequest):
    manager = get_sync_manager()
    await manager.toggle_data_mode(request.streaming)
    return manager.status().model_dump(mode="json")


@app.put("/api/v1/watchlist", tags=["Quotes"])
async def set_watchlist(request: WatchlistRequest):
    manager = get_sync_manager()
    await manager.set_symbols(request.symbols)
    return {"symbols": manager.symbols}


# ─── Candles & Signals ──────────────────────────────────────────

async def _resolve_frame(symbol: str, resolution: str, limit: int):
    resolved = await get_resolver().resolve_candles(symbol, resolution, limit)
    if not resolved.candles:
        raise HTTPException(status_code=404, detail=f"No candles for {resolved.symbol}")
    return resolved, candles_to_dataframe(resolved.candles)


@app.get("/api/v1/candles/{symbol}", tags=["Data"])
async def get_candles(symbol: str,
                      resolution: str = Query("5"),
                      limit: int = Query(100, ge=1, le=1000)):
    resolved = await get_resolver().resolve_candles(symbol, resolution, limit)
    return resolved.model_dump(mode="json")


@app.post("/api/v1/signal/score", tags=["Signals"])
async def score_state(state: IndicatorState):
    """Score a caller-supplied set of indicator readings."""
    result = score(state)
    app_state["signals_scored"] += 1
    return result.model_dump(mode="json")


@app.get("/api/v1/signal/{symbol}", tags=["Signals"])
async def symbol_signal(symbol: str,
                        resolution: str = Query("5"),
                        limit: int = Query(100, ge=2, le=1000)):
    """Compute indicators over the symbol's candles and score the latest bar."""
    resolved, df = await _resolve_frame(symbol, resolution, limit)
    try:
        state = build_indicator_state(df)
    except ValueError as e:
        app_state["errors"] += 1
        logger.error("signal_generation_error", symbol=resolved.symbol, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))

    result = score(state)
    app_state["signals_scored"] += 1

    return {
        "symbol": resolved.symbol,
        "source": resolved.source,
        "is_simulated": resolved.is_simulated,
        "indicators": state.model_dump(mode="json"),
        "trend_strength": classify_trend_strength(state.adx),
        "result": result.model_dump(mode="json"),
        "timestamp": utc_timestamp(),
    }


@app.get("/api/v1/supertrend/{symbol}", tags=["Signals"])
async def supertrend(symbol: str,
                     resolution: str = Query("5"),
                     limit: int = Query(100, ge=1, le=1000),
                     bands: int = Query(20, ge=1, le=1000)):
    resolved = await get_resolver().resolve_candles(symbol, resolution, limit)
    series = compute_supertrend(resolved.candles)
    return {
        "symbol": resolved.symbol,
        "source": resolved.source,
        "is_simulated": resolved.is_simulated,
        "signal": series[-1].signal if series else "HOLD",
        "bands": [b.model_dump(mode="json") for b in series[-bands:]],
    }


@app.get("/api/v1/reversal/{symbol}", tags=["Signals"])
async def reversal(symbol: str,
                   resolution: str = Query("5"),
                   limit: int = Query(100, ge=5, le=1000)):
    """Trend-reversal warning plus run-exhaustion odds in both directions."""
    resolved, df = await _resolve_frame(symbol, resolution, limit)
    computed = get_indicator_registry().compute_all(df)

    # Floor pivots come from the prior daily bar. Synthetic daily bars are not
    # mixed with real intraday prices, so pivots stay zeroed in that case.
    daily = await get_resolver().resolve_candles(symbol, "D", 5)
    prior: Optional[Candle] = None
    if daily.is_simulated and not resolved.is_simulated:
        logger.warning("pivots_skipped_simulated_daily", symbol=resolved.symbol, intraday_source=resolved.source)
    elif len(daily.candles) >= 2:
        prior = daily.candles[-2]
    elif daily.candles:
        prior = daily.candles[-1]
    pivots = calculate_pivot_points(prior)

    warning = detect_trend_reversal(
        df,
        computed["rsi"].tolist(),
        computed["macd_histogram"].tolist(),
        computed["adx"].tolist(),
        float(df["close"].iloc[-1]),
        pivots,
    )

    return {
        "symbol": resolved.symbol,
        "source": resolved.source,
        "is_simulated": resolved.is_simulated,
        "pivots": pivots.model_dump(mode="json"),
        "pivot_source": daily.source,
        "pivots_simulated": daily.is_simulated,
        "reversal": warning.model_dump(mode="json"),
        "upward_run": calculate_reversal_probability(df, UPWARD_RUN).model_dump(mode="json"),
        "downward_run": calculate_reversal_probability(df, DOWNWARD_RUN).model_dump(mode="json"),
        "timestamp": utc_timestamp(),
    }


# ─── Options Panel ──────────────────────────────────────────────

class ExpirationRequest(BaseModel):
    expiration: str


@app.get("/api/v1/options", tags=["Options"])
async def options_state():
    return get_chain_loader().snapshot().model_dump(mode="json")


# Registered before /options/{symbol} so "expiration" is not taken as a symbol
@app.post("/api/v1/options/expiration", tags=["Options"])
async def select_expiration(request: ExpirationRequest):
    state = await get_chain_loader().select_expiration(request.expiration)
    return state.model_dump(mode="json")


@app.post("/api/v1/options/{symbol}", tags=["Options"])
async def load_options(symbol: str):
    """Select an underlying and load its nearest-expiration chain."""
    state = await get_chain_loader().load_symbol(symbol)
    return state.model_dump(mode="json")
