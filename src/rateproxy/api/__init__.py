"""HTTP layer -- FastAPI app exposing /rate, /debug and the health check."""

from rateproxy.api.app import create_app

__all__ = ["create_app"]
