"""P2P listing layer -- Binance P2P advert search via httpx."""

from rateproxy.p2p.binance_client import BinanceP2PClient
from rateproxy.p2p.client import ListingClient

__all__ = ["BinanceP2PClient", "ListingClient"]
