"""Custom exceptions for the P2P rate proxy.

Fetch and selection errors live here so the pricing, cache and API
layers can share them without circular imports.
"""


class RateProxyError(Exception):
    """Base exception for all rate proxy errors."""


class NetworkError(RateProxyError):
    """Raised on timeout, connection failure or an error status from the listing endpoint."""


class MalformedResponseError(RateProxyError):
    """Raised when the listing endpoint returns a body of unexpected shape."""


class InsufficientDataError(RateProxyError):
    """Raised when no prices remain in the band after filtering and trimming."""
