"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rateproxy.models import TradeSide

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", populate_by_name=True)

    host: str = "0.0.0.0"
    # Plain PORT is honoured for PaaS deployments that inject it
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "SERVER_PORT"))


class P2PSettings(BaseSettings):
    """P2P listing endpoint and the two fiat legs of the composite rate."""

    model_config = SettingsConfigDict(env_prefix="P2P_")

    endpoint_url: str = "https://p2p.binance.com/bapi/c2c/v2/friendly/c2c/adv/search"
    asset: str = "USDT"
    source_fiat: str = "COP"
    target_fiat: str = "VES"
    source_side: TradeSide = TradeSide.BUY
    target_side: TradeSide = TradeSide.SELL
    page: int = 1
    rows: int = 10
    merchant_check: bool = True
    timeout_seconds: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT


class RateSettings(BaseSettings):
    """Band selection, margin and presentation rounding."""

    model_config = SettingsConfigDict(env_prefix="RATE_")

    margin_factor: Decimal = Decimal("1.15")  # final = real * margin
    skip: int = Field(default=1, ge=0)  # extreme listings dropped after sorting
    take: int = Field(default=6, ge=1)
    price_precision: int = 2
    rate_precision: int = 4
    example_amount: Decimal = Decimal("100000")  # source fiat amount shown by /debug


class CacheSettings(BaseSettings):
    """Freshness window, refresh cadence and error cooldown."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    freshness_seconds: float = 900.0  # 15 minutes
    refresh_interval_seconds: float = 900.0
    failure_threshold: int = 3
    cooldown_seconds: float = 1800.0  # 30 minutes


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    server: ServerSettings = ServerSettings()
    p2p: P2PSettings = P2PSettings()
    rate: RateSettings = RateSettings()
    cache: CacheSettings = CacheSettings()
