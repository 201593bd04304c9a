"""Tests for component wiring and the FastAPI lifespan."""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from rateproxy.api.app import create_app
from rateproxy.cache.error_tracker import ErrorTracker
from rateproxy.cache.rate_cache import RateCache
from rateproxy.cache.scheduler import RefreshScheduler
from rateproxy.config import AppSettings
from rateproxy.main import _build_components, lifespan
from rateproxy.p2p.binance_client import BinanceP2PClient
from rateproxy.pricing.calculator import RateCalculator


class TestBuildComponents:
    def test_wires_all_components(self, mock_settings: AppSettings) -> None:
        components = _build_components(mock_settings)

        assert isinstance(components["client"], BinanceP2PClient)
        assert isinstance(components["calculator"], RateCalculator)
        assert isinstance(components["error_tracker"], ErrorTracker)
        assert isinstance(components["rate_cache"], RateCache)
        assert isinstance(components["scheduler"], RefreshScheduler)
        assert components["rate_cache"].error_tracker is components["error_tracker"]
        assert components["rate_cache"].freshness_seconds == 900.0


class TestLifespan:
    def test_starts_and_stops_components(self, mock_settings: AppSettings) -> None:
        components = {
            "client": AsyncMock(),
            "calculator": AsyncMock(),
            "error_tracker": MagicMock(),
            "rate_cache": AsyncMock(),
            "scheduler": AsyncMock(),
        }
        order: list[str] = []
        components["scheduler"].stop.side_effect = lambda: order.append("scheduler")
        components["rate_cache"].aclose.side_effect = lambda: order.append("rate_cache")
        components["error_tracker"].close.side_effect = lambda: order.append("error_tracker")
        components["client"].close.side_effect = lambda: order.append("client")
        app = create_app(lifespan=lifespan)
        app.state.settings = mock_settings
        app.state.components = components

        with TestClient(app):
            components["scheduler"].start.assert_awaited_once()
            assert app.state.rate_cache is components["rate_cache"]
            assert app.state.calculator is components["calculator"]

        components["scheduler"].stop.assert_awaited_once()
        components["error_tracker"].close.assert_called_once()
        components["client"].close.assert_awaited_once()
        components["rate_cache"].aclose.assert_awaited_once()
        # In-flight refresh is cancelled before the client it uses is closed
        assert order == ["scheduler", "rate_cache", "error_tracker", "client"]
