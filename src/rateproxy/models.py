"""Shared data models for the P2P rate proxy.

All prices and rates use Decimal. Floats appear only at the JSON boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TradeSide(str, Enum):
    """Listing side as named by the P2P endpoint."""

    BUY = "BUY"
    SELL = "SELL"


class SortOrder(str, Enum):
    """Direction the band selector sorts prices in before trimming."""

    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def for_side(cls, side: TradeSide) -> SortOrder:
        """BUY listings sort cheapest first, SELL listings dearest first."""
        return cls.ASCENDING if side == TradeSide.BUY else cls.DESCENDING


@dataclass(frozen=True)
class ListingQuery:
    """One (asset, fiat, side) listing search."""

    asset: str
    fiat: str
    side: TradeSide
    page: int = 1
    rows: int = 10
    merchant_check: bool = True
    publisher_type: str | None = None

    def to_payload(self) -> dict:
        """Return the JSON body expected by the listing endpoint."""
        return {
            "asset": self.asset,
            "fiat": self.fiat,
            "page": self.page,
            "rows": self.rows,
            "tradeType": self.side.value,
            "merchantCheck": self.merchant_check,
            "publisherType": self.publisher_type,
        }


@dataclass(frozen=True)
class PriceSelection:
    """Sorted positive prices, the band kept after trimming, and its mean."""

    sorted_prices: list[Decimal]
    selected: list[Decimal]
    average: Decimal


@dataclass(frozen=True)
class RateSnapshot:
    """One completed rate computation, rounded for presentation.

    Immutable; this is the unit stored in the cache.
    """

    timestamp: datetime  # UTC
    source_average: Decimal
    target_average: Decimal
    real_rate: Decimal
    final_rate: Decimal

    def as_dict(self) -> dict:
        return {
            "sourceAverage": self.source_average,
            "targetAverage": self.target_average,
            "realRate": self.real_rate,
            "finalRate": self.final_rate,
        }


@dataclass(frozen=True)
class RateBreakdown:
    """Snapshot plus the intermediate price lists it was derived from."""

    snapshot: RateSnapshot
    source: PriceSelection
    target: PriceSelection
    margin_factor: Decimal


@dataclass
class CacheEntry:
    """Last successful snapshot and the monotonic time it was stored."""

    snapshot: RateSnapshot | None = None
    last_updated_at: float | None = None


@dataclass
class ErrorState:
    """Consecutive refresh failures and the pending cooldown deadline, if any."""

    consecutive_failures: int = 0
    cooldown_until: float | None = None


@dataclass
class UsageStats:
    """Process-lifetime request counters. Never decremented."""

    total_requests: int = 0
    served_from_cache: int = 0

    @property
    def efficiency_pct(self) -> int:
        """Whole-percent share of requests answered from a fresh cache."""
        if self.total_requests == 0:
            return 0
        return self.served_from_cache * 100 // self.total_requests

    def as_dict(self) -> dict:
        return {
            "totalRequests": self.total_requests,
            "fromCache": self.served_from_cache,
            "efficiency": f"{self.efficiency_pct}%",
        }


@dataclass
class RateRead:
    """Outcome of a cache read as seen by one caller."""

    snapshot: RateSnapshot
    from_cache: bool
    age_seconds: int | None = None
    warning: str | None = None
    stats: UsageStats | None = None
