"""
Main entrypoint: Backend Shield gateway (FastAPI under uvicorn).

Env: API_HOST, API_PORT, LOG_LEVEL, RATE_MAX, RATE_WINDOW_MS, BAGS_API_KEY,
BIRDEYE_API_KEY, etc. (see backend_shield.config.settings).

Equivalent: uvicorn backend_shield.api_server.app:app --host 0.0.0.0 --port 8000
"""

# Configure structured JSON logging before other imports that may log
from backend_shield.shield_logging import configure_stdlib_logging, get_logger

logger = get_logger("main")


def main() -> None:
    """Build the app from env settings and serve it in the main thread."""
    import uvicorn

    from backend_shield.api_server.server import create_app
    from backend_shield.config import get_settings

    configure_stdlib_logging()
    settings = get_settings()
    app = create_app(settings)
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        rate_max=settings.rate_max,
        rate_window_ms=settings.rate_window_ms,
        bags_configured=bool(settings.bags_api_key),
    )
    # log_config=None keeps the structlog handlers installed above
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    main()
