"""Abstract P2P listing client interface.

Pricing code depends only on this interface, keeping the Binance
request and response shapes isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from rateproxy.models import ListingQuery


class ListingClient(ABC):
    """Abstract base class for P2P listing endpoints."""

    @abstractmethod
    async def fetch_prices(self, query: ListingQuery) -> list[Decimal]:
        """Return the advertised prices for one query, in response order.

        Performs exactly one request. No retry.

        Raises:
            NetworkError: On timeout, connection failure or error status.
            MalformedResponseError: If the body does not have the expected shape.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...
