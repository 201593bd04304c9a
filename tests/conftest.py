"""Shared test fixtures for the P2P rate proxy."""

from decimal import Decimal

import pytest

from rateproxy.config import AppSettings, CacheSettings, P2PSettings, RateSettings


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with the production defaults made explicit."""
    return AppSettings(
        log_level="DEBUG",
        p2p=P2PSettings(
            asset="USDT",
            source_fiat="COP",
            target_fiat="VES",
        ),
        rate=RateSettings(
            margin_factor=Decimal("1.15"),
            skip=1,
            take=6,
        ),
        cache=CacheSettings(
            freshness_seconds=900.0,
            refresh_interval_seconds=900.0,
            failure_threshold=3,
            cooldown_seconds=1800.0,
        ),
    )
