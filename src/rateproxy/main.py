"""Entry point for the P2P rate proxy.

Wires all components together and serves them through FastAPI. The
refresh scheduler and the HTTP server share one asyncio event loop via
uvicorn's programmatic API and FastAPI's lifespan context manager.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. BinanceP2PClient (listing fetcher)
4. RateCalculator (band selection + rate math)
5. ErrorTracker (consecutive failures, cooldown timer)
6. RateCache (freshness window, stale fallback, single-flight refresh)
7. RefreshScheduler (startup + interval refresh)
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from rateproxy.cache.error_tracker import ErrorTracker
from rateproxy.cache.rate_cache import RateCache
from rateproxy.cache.scheduler import RefreshScheduler
from rateproxy.config import AppSettings
from rateproxy.logging import get_logger, setup_logging
from rateproxy.p2p.binance_client import BinanceP2PClient
from rateproxy.pricing.calculator import RateCalculator


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Does NOT start the scheduler -- that happens in the lifespan.

    Returns:
        Dict mapping component names to instances.
    """
    client = BinanceP2PClient(settings.p2p)
    calculator = RateCalculator(client, settings.p2p, settings.rate)
    error_tracker = ErrorTracker(
        threshold=settings.cache.failure_threshold,
        cooldown_seconds=settings.cache.cooldown_seconds,
    )
    rate_cache = RateCache(
        calculator,
        error_tracker,
        freshness_seconds=settings.cache.freshness_seconds,
    )
    scheduler = RefreshScheduler(
        rate_cache,
        interval_seconds=settings.cache.refresh_interval_seconds,
    )

    return {
        "client": client,
        "calculator": calculator,
        "error_tracker": error_tracker,
        "rate_cache": rate_cache,
        "scheduler": scheduler,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the refresh scheduler on startup; stop it and release resources on shutdown."""
    logger = get_logger("rateproxy.main")
    components = app.state.components

    app.state.rate_cache = components["rate_cache"]
    app.state.calculator = components["calculator"]

    await components["scheduler"].start()
    logger.info("lifespan_started")

    yield

    await components["scheduler"].stop()
    # A reader-triggered refresh may still be running on the shared client
    await components["rate_cache"].aclose()
    components["error_tracker"].close()
    await components["client"].close()

    logger.info("rate_proxy_stopped")


async def run() -> None:
    """Run the rate proxy until the server exits."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("rateproxy.main")

    # 3-7. Build all components
    components = _build_components(settings)

    from rateproxy.api.app import create_app

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_rate_proxy",
        host=settings.server.host,
        port=settings.server.port,
        source_fiat=settings.p2p.source_fiat,
        target_fiat=settings.p2p.target_fiat,
        freshness_seconds=settings.cache.freshness_seconds,
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
