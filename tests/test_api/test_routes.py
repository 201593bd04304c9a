"""Tests for the HTTP endpoints: /rate, /debug and the health check.

Routes run against a real RateCache whose calculator is an AsyncMock.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from rateproxy.api.app import create_app
from rateproxy.cache.error_tracker import ErrorTracker
from rateproxy.cache.rate_cache import STALE_WARNING, RateCache
from rateproxy.config import AppSettings
from rateproxy.exceptions import MalformedResponseError, NetworkError
from rateproxy.models import PriceSelection, RateBreakdown, RateSnapshot
from rateproxy.pricing.calculator import RateCalculator

SNAPSHOT = RateSnapshot(
    timestamp=datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
    source_average=Decimal("4000.00"),
    target_average=Decimal("40.00"),
    real_rate=Decimal("100.0000"),
    final_rate=Decimal("115.0000"),
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def calculator() -> AsyncMock:
    calc = AsyncMock(spec=RateCalculator)
    calc.compute.return_value = SNAPSHOT
    return calc


@pytest.fixture
def rate_cache(calculator: AsyncMock, clock: FakeClock) -> RateCache:
    return RateCache(calculator, ErrorTracker(), freshness_seconds=900.0, clock=clock)


@pytest.fixture
def client(mock_settings: AppSettings, rate_cache: RateCache, calculator: AsyncMock):
    app = create_app()
    app.state.settings = mock_settings
    app.state.rate_cache = rate_cache
    app.state.calculator = calculator
    with TestClient(app) as test_client:
        yield test_client


class TestRateEndpoint:
    def test_cold_cache_computes(self, client: TestClient) -> None:
        response = client.get("/rate")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["cache"] is False
        assert body["timestamp"] == "2026-01-15T12:00:00Z"
        assert body["data"] == {
            "sourceAverage": 4000.0,
            "targetAverage": 40.0,
            "realRate": 100.0,
            "finalRate": 115.0,
        }
        assert "cacheAgeSeconds" not in body
        assert "warning" not in body

    def test_second_read_served_from_cache(
        self, client: TestClient, clock: FakeClock, calculator: AsyncMock
    ) -> None:
        client.get("/rate")
        clock.now += 30

        body = client.get("/rate").json()

        assert body["cache"] is True
        assert body["cacheAgeSeconds"] == 30
        assert body["stats"] == {"totalRequests": 2, "fromCache": 1, "efficiency": "50%"}
        assert calculator.compute.await_count == 1

    def test_stale_fallback_on_refresh_failure(
        self, client: TestClient, clock: FakeClock, calculator: AsyncMock
    ) -> None:
        client.get("/rate")
        clock.now += 1000
        calculator.compute.side_effect = NetworkError("timeout")

        response = client.get("/rate")

        assert response.status_code == 200
        body = response.json()
        assert body["cache"] is True
        assert body["warning"] == STALE_WARNING
        assert body["cacheAgeSeconds"] == 1000
        assert body["data"]["finalRate"] == 115.0

    def test_cold_failure_returns_500(self, client: TestClient, calculator: AsyncMock) -> None:
        calculator.compute.side_effect = MalformedResponseError("response has no 'data' list")

        response = client.get("/rate")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]
        assert body["message"] == "response has no 'data' list"

    def test_unexpected_error_falls_back_to_stale(
        self, client: TestClient, clock: FakeClock, calculator: AsyncMock
    ) -> None:
        client.get("/rate")
        clock.now += 1000
        calculator.compute.side_effect = InvalidOperation("quantize result has too many digits")

        response = client.get("/rate")

        assert response.status_code == 200
        assert response.json()["warning"] == STALE_WARNING

    def test_unexpected_cold_error_returns_json_500(
        self, client: TestClient, calculator: AsyncMock
    ) -> None:
        calculator.compute.side_effect = RuntimeError("client has been closed")

        response = client.get("/rate")

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "client has been closed"

    def test_cors_allows_any_origin(self, client: TestClient) -> None:
        response = client.get("/rate", headers={"Origin": "https://example.com"})
        assert response.headers["access-control-allow-origin"] == "*"


def _make_breakdown(snapshot: RateSnapshot = SNAPSHOT) -> RateBreakdown:
    return RateBreakdown(
        snapshot=snapshot,
        source=PriceSelection(
            sorted_prices=[Decimal("3900"), Decimal("4000")],
            selected=[Decimal("4000")],
            average=Decimal("4000"),
        ),
        target=PriceSelection(
            sorted_prices=[Decimal("45"), Decimal("40")],
            selected=[Decimal("40")],
            average=Decimal("40"),
        ),
        margin_factor=Decimal("1.15"),
    )


class TestDebugEndpoint:
    def test_breakdown(self, client: TestClient, calculator: AsyncMock, rate_cache: RateCache) -> None:
        calculator.compute_detailed.return_value = _make_breakdown()

        response = client.get("/debug")

        assert response.status_code == 200
        body = response.json()
        assert body["source"] == {
            "fiat": "COP",
            "side": "BUY",
            "allPrices": [3900.0, 4000.0],
            "selected": [4000.0],
            "average": 4000.0,
        }
        assert body["target"]["side"] == "SELL"
        assert body["target"]["allPrices"] == [45.0, 40.0]
        assert body["rates"] == {
            "real": 100.0,
            "final": 115.0,
            "margin": "15%",
            "formula": "finalRate = (COP/VES) * 1.15",
        }
        assert body["example"]["received"] == 869.57
        # Debug never touches the cache or its counters
        assert rate_cache.get() == (None, None)
        assert rate_cache.stats.total_requests == 0
        calculator.compute.assert_not_awaited()

    def test_failure_returns_500(self, client: TestClient, calculator: AsyncMock) -> None:
        calculator.compute_detailed.side_effect = NetworkError("connection refused")

        response = client.get("/debug")

        assert response.status_code == 500
        assert response.json() == {"error": "connection refused"}

    def test_zero_final_rate_has_no_example_conversion(
        self, client: TestClient, calculator: AsyncMock
    ) -> None:
        tiny = replace(SNAPSHOT, real_rate=Decimal("0.0000"), final_rate=Decimal("0.0000"))
        calculator.compute_detailed.return_value = _make_breakdown(tiny)

        response = client.get("/debug")

        assert response.status_code == 200
        body = response.json()
        assert body["rates"]["final"] == 0.0
        assert body["example"]["received"] is None

    def test_unrenderable_breakdown_returns_json_500(
        self, client: TestClient, calculator: AsyncMock
    ) -> None:
        minute = replace(SNAPSHOT, final_rate=Decimal("1E-30"))
        calculator.compute_detailed.return_value = _make_breakdown(minute)

        response = client.get("/debug")

        assert response.status_code == 500
        assert "error" in response.json()


class TestHealthEndpoint:
    def test_pending_before_first_refresh(self, client: TestClient) -> None:
        body = client.get("/").json()

        assert body["status"] == "ok"
        assert body["currentRates"] == "pending"
        assert body["cache"] == {"active": False, "ageSeconds": None, "valid": False}
        assert body["stats"]["totalRequests"] == 0
        assert body["stats"]["efficiency"] == "0%"
        assert body["stats"]["consecutiveFailures"] == 0
        assert body["stats"]["inCooldown"] is False
        assert isinstance(body["uptimeSeconds"], int)

    def test_reports_cached_values(
        self, client: TestClient, rate_cache: RateCache, clock: FakeClock
    ) -> None:
        rate_cache.put(SNAPSHOT)
        clock.now += 120

        body = client.get("/").json()

        assert body["currentRates"]["finalRate"] == 115.0
        assert body["cache"] == {"active": True, "ageSeconds": 120, "valid": True}

    def test_reports_failures(self, client: TestClient, calculator: AsyncMock) -> None:
        calculator.compute.side_effect = NetworkError("down")
        client.get("/rate")

        body = client.get("/").json()

        assert body["stats"]["consecutiveFailures"] == 1
        assert body["stats"]["totalRequests"] == 1
