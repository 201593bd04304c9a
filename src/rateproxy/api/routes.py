"""JSON read endpoints: cached rate, uncached debug breakdown, and health."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from rateproxy.cache.rate_cache import RateCache
from rateproxy.config import AppSettings
from rateproxy.models import PriceSelection, RateBreakdown
from rateproxy.pricing.calculator import RateCalculator, round_to

log = structlog.get_logger(__name__)

router = APIRouter()


def _decimal_to_float(obj: Any) -> Any:
    """Recursively convert Decimal values to floats for JSON serialization."""
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_float(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_float(item) for item in obj]
    return obj


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _margin_pct(margin_factor: Decimal) -> str:
    return f"{((margin_factor - 1) * 100).normalize():f}%"


@router.get("/rate")
async def get_rate(request: Request) -> JSONResponse:
    """Composite rate, served from cache while fresh."""
    cache: RateCache = request.app.state.rate_cache

    try:
        result = await cache.read()
    except Exception as exc:
        log.error(
            "rate_unavailable",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Could not obtain the rate from the P2P endpoint",
                "message": str(exc),
            },
        )

    snapshot = result.snapshot
    body: dict[str, Any] = {
        "success": True,
        "timestamp": _isoformat(snapshot.timestamp),
        "data": snapshot.as_dict(),
        "cache": result.from_cache,
    }
    if result.age_seconds is not None:
        body["cacheAgeSeconds"] = result.age_seconds
    if result.warning is not None:
        body["warning"] = result.warning
    if result.stats is not None:
        body["stats"] = result.stats.as_dict()

    return JSONResponse(content=_decimal_to_float(body))


def _selection_body(fiat: str, side: str, selection: PriceSelection, places: int) -> dict:
    return {
        "fiat": fiat,
        "side": side,
        "allPrices": selection.sorted_prices,
        "selected": selection.selected,
        "average": round_to(selection.average, places),
    }


def _debug_body(breakdown: RateBreakdown, settings: AppSettings) -> dict:
    snapshot = breakdown.snapshot
    p2p = settings.p2p
    amount = settings.rate.example_amount
    # A final rate that rounds to zero has no meaningful example conversion
    received = round_to(amount / snapshot.final_rate, 2) if snapshot.final_rate else None

    return {
        "timestamp": _isoformat(snapshot.timestamp),
        "source": _selection_body(
            p2p.source_fiat, p2p.source_side.value, breakdown.source, settings.rate.price_precision
        ),
        "target": _selection_body(
            p2p.target_fiat, p2p.target_side.value, breakdown.target, settings.rate.price_precision
        ),
        "rates": {
            "real": snapshot.real_rate,
            "final": snapshot.final_rate,
            "margin": _margin_pct(breakdown.margin_factor),
            "formula": (
                f"finalRate = ({p2p.source_fiat}/{p2p.target_fiat}) * {breakdown.margin_factor}"
            ),
        },
        "example": {
            "amount": amount,
            "received": received,
            "message": (
                f"With {amount} {p2p.source_fiat} the customer receives "
                f"{received if received is not None else 'no'} {p2p.target_fiat}"
            ),
        },
    }


@router.get("/debug")
async def get_debug(request: Request) -> JSONResponse:
    """Full uncached computation with the intermediate price lists."""
    calculator: RateCalculator = request.app.state.calculator
    settings: AppSettings = request.app.state.settings

    try:
        breakdown = await calculator.compute_detailed()
        body = _debug_body(breakdown, settings)
    except Exception as exc:
        log.error("debug_computation_failed", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return JSONResponse(content=_decimal_to_float(body))



@router.get("/")
async def get_health(request: Request) -> JSONResponse:
    """Process uptime, cached values, cache validity, usage and error counters."""
    cache: RateCache = request.app.state.rate_cache
    started_at: float = request.app.state.started_at

    uptime = int(time.monotonic() - started_at)
    snapshot, age = cache.get()
    tracker = cache.error_tracker
    stats = cache.stats

    body = {
        "status": "ok",
        "message": "P2P rate proxy running",
        "uptimeSeconds": uptime,
        "uptime": f"{uptime // 60} minutes",
        "currentRates": snapshot.as_dict() if snapshot is not None else "pending",
        "cache": {
            "active": snapshot is not None,
            "ageSeconds": int(age) if age is not None else None,
            "valid": cache.is_fresh(),
        },
        "stats": {
            **stats.as_dict(),
            "consecutiveFailures": tracker.consecutive_failures,
            "inCooldown": tracker.in_cooldown,
        },
        "endpoints": {
            "rate": f"/rate (cached for {int(cache.freshness_seconds // 60)} min)",
            "debug": "/debug (direct uncached query)",
        },
    }
    return JSONResponse(content=_decimal_to_float(body))
