"""Composite rate computation from two P2P listings.

RATE CONVENTION: real_rate is units of SOURCE fiat per one unit of TARGET
fiat, i.e. source_average / target_average, both averages being prices of
the same asset. The margin MULTIPLIES the real rate, so a customer paying
in source fiat receives fewer target units than at the real rate.
With USDT at 4000 COP and 40 VES: real = 100 COP/VES, final = 115 COP/VES.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from rateproxy.config import P2PSettings, RateSettings
from rateproxy.logging import get_logger
from rateproxy.models import (
    ListingQuery,
    PriceSelection,
    RateBreakdown,
    RateSnapshot,
    SortOrder,
    TradeSide,
)
from rateproxy.p2p.client import ListingClient
from rateproxy.pricing.selector import select_prices

logger = get_logger(__name__)


def compute_rates(
    source_average: Decimal,
    target_average: Decimal,
    margin_factor: Decimal,
) -> tuple[Decimal, Decimal]:
    """Return (real_rate, final_rate) at full precision.

    target_average is always positive here: the selector refuses empty
    bands and drops non-positive prices.
    """
    real_rate = source_average / target_average
    final_rate = real_rate * margin_factor
    return real_rate, final_rate


def round_to(value: Decimal, places: int) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateCalculator:
    """Fetches both fiat legs and turns them into a RateSnapshot.

    Fetcher and selector errors propagate unchanged.

    Args:
        client: Listing client used for both legs.
        p2p_settings: Asset, fiats, sides and paging for the queries.
        rate_settings: Band trimming, margin and rounding.
        now: UTC clock for snapshot timestamps.
    """

    def __init__(
        self,
        client: ListingClient,
        p2p_settings: P2PSettings,
        rate_settings: RateSettings,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._client = client
        self._p2p = p2p_settings
        self._rate = rate_settings
        self._now = now

    @property
    def margin_factor(self) -> Decimal:
        return self._rate.margin_factor

    def _query(self, fiat: str, side: TradeSide) -> ListingQuery:
        return ListingQuery(
            asset=self._p2p.asset,
            fiat=fiat,
            side=side,
            page=self._p2p.page,
            rows=self._p2p.rows,
            merchant_check=self._p2p.merchant_check,
        )

    async def _select_leg(self, fiat: str, side: TradeSide) -> PriceSelection:
        prices = await self._client.fetch_prices(self._query(fiat, side))
        return select_prices(
            prices,
            SortOrder.for_side(side),
            skip=self._rate.skip,
            take=self._rate.take,
        )

    async def compute_detailed(self) -> RateBreakdown:
        """Fetch both legs concurrently and compute the rounded snapshot."""
        source, target = await asyncio.gather(
            self._select_leg(self._p2p.source_fiat, self._p2p.source_side),
            self._select_leg(self._p2p.target_fiat, self._p2p.target_side),
        )

        real_rate, final_rate = compute_rates(
            source.average, target.average, self._rate.margin_factor
        )

        price_places = self._rate.price_precision
        rate_places = self._rate.rate_precision
        snapshot = RateSnapshot(
            timestamp=self._now(),
            source_average=round_to(source.average, price_places),
            target_average=round_to(target.average, price_places),
            real_rate=round_to(real_rate, rate_places),
            final_rate=round_to(final_rate, rate_places),
        )

        logger.info(
            "rate_computed",
            source_fiat=self._p2p.source_fiat,
            target_fiat=self._p2p.target_fiat,
            real_rate=str(snapshot.real_rate),
            final_rate=str(snapshot.final_rate),
        )
        return RateBreakdown(
            snapshot=snapshot,
            source=source,
            target=target,
            margin_factor=self._rate.margin_factor,
        )

    async def compute(self) -> RateSnapshot:
        """Compute a fresh snapshot, discarding the intermediate lists."""
        breakdown = await self.compute_detailed()
        return breakdown.snapshot
