"""Binance P2P listing client implementation via httpx async.

Posts to the public ``adv/search`` endpoint and extracts ``data[].adv.price``.
Every transport failure is translated into NetworkError and every shape
problem into MalformedResponseError so callers never see httpx types.
"""

from decimal import Decimal, InvalidOperation

import httpx

from rateproxy.config import P2PSettings
from rateproxy.exceptions import MalformedResponseError, NetworkError
from rateproxy.logging import get_logger
from rateproxy.models import ListingQuery
from rateproxy.p2p.client import ListingClient

logger = get_logger(__name__)


def parse_prices(body: object) -> list[Decimal]:
    """Extract listed prices from a decoded ``adv/search`` response body.

    Args:
        body: Decoded JSON, expected to look like ``{"data": [{"adv": {"price": "4012.5"}}]}``.

    Returns:
        Prices in response order. Non-positive prices are kept; filtering
        is the band selector's job.

    Raises:
        MalformedResponseError: If ``data`` is missing, not a list, or an
            entry has no parseable ``adv.price``.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"expected JSON object, got {type(body).__name__}")

    data = body.get("data")
    if not isinstance(data, list):
        raise MalformedResponseError("response has no 'data' list")

    prices: list[Decimal] = []
    for index, ad in enumerate(data):
        try:
            raw = ad["adv"]["price"]
        except (KeyError, TypeError) as exc:
            raise MalformedResponseError(f"entry {index} has no adv.price") from exc
        try:
            price = Decimal(str(raw))
        except InvalidOperation as exc:
            raise MalformedResponseError(f"entry {index} price {raw!r} is not a number") from exc
        if not price.is_finite():
            raise MalformedResponseError(f"entry {index} price {raw!r} is not finite")
        prices.append(price)
    return prices


class BinanceP2PClient(ListingClient):
    """Concrete Binance P2P client using a shared httpx.AsyncClient.

    Args:
        settings: Endpoint URL, timeout and User-Agent.
        http_client: Optional pre-built client (tests inject one backed by
            ``httpx.MockTransport``). When omitted, one is created and owned.
    """

    def __init__(
        self,
        settings: P2PSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
        }
        self._http = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def fetch_prices(self, query: ListingQuery) -> list[Decimal]:
        """POST one advert search and return its prices."""
        try:
            response = await self._http.post(
                self._settings.endpoint_url,
                json=query.to_payload(),
                headers=self._headers,
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise NetworkError(
                f"timed out after {self._settings.timeout_seconds}s fetching {query.fiat} {query.side.value}"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"listing endpoint returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedResponseError("response body is not JSON") from exc

        prices = parse_prices(body)
        logger.debug(
            "p2p_prices_fetched",
            asset=query.asset,
            fiat=query.fiat,
            side=query.side.value,
            count=len(prices),
        )
        return prices

    async def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()
            logger.info("p2p_client_closed")
