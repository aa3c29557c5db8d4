"""
POWER HOUR - Main Entry Point
Serves the market-data and signal API.
"""
import uvicorn
from powerhour.config.settings import get_settings
from powerhour.utils.logger import setup_logging, get_logger

logger = get_logger("main")


def run_api():
    """Run the FastAPI application."""
    settings = get_settings()
    setup_logging()
    logger.info("starting_power_hour", version=settings.version, port=settings.port)
    uvicorn.run(
        "powerhour.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run_api()
