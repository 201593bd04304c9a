"""Cache layer -- rate cache, error tracking and the background refresh loop."""

from rateproxy.cache.error_tracker import ErrorTracker
from rateproxy.cache.rate_cache import STALE_WARNING, RateCache
from rateproxy.cache.scheduler import RefreshScheduler

__all__ = ["ErrorTracker", "RateCache", "RefreshScheduler", "STALE_WARNING"]
