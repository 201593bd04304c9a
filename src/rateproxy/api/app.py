"""FastAPI application factory for the rate proxy."""

from __future__ import annotations

import time
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rateproxy.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application. Callers set ``app.state.settings``,
        ``app.state.rate_cache`` and ``app.state.calculator`` before serving.
    """
    app = FastAPI(
        title="P2P Rate Proxy",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.started_at = time.monotonic()

    app.include_router(routes.router)

    return app
