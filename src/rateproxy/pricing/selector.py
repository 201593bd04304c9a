"""Band selection: the outlier-rejection policy applied to raw listings.

Non-positive prices are dropped, the rest sorted (cheapest first for BUY
listings, dearest first for SELL listings), the first ``skip`` entries
discarded and the next ``take`` averaged. Skipping the head removes the
single most extreme advert, which is usually a bait price or a tiny
limit order.
"""

from decimal import Decimal

from rateproxy.exceptions import InsufficientDataError
from rateproxy.models import PriceSelection, SortOrder


def select_prices(
    prices: list[Decimal],
    order: SortOrder,
    skip: int = 1,
    take: int = 6,
) -> PriceSelection:
    """Sort, trim and average a raw listing.

    Args:
        prices: Raw listed prices in any order; may be empty.
        order: Sort direction applied before trimming.
        skip: Number of leading entries to discard after sorting.
        take: Maximum number of entries kept after the skipped ones.

    Returns:
        PriceSelection with the sorted positive prices, the kept band and
        its arithmetic mean.

    Raises:
        InsufficientDataError: If the band is empty.
    """
    positive = [p for p in prices if p > 0]
    sorted_prices = sorted(positive, reverse=order == SortOrder.DESCENDING)
    selected = sorted_prices[skip : skip + take]

    if not selected:
        raise InsufficientDataError(
            f"no prices left after trimming: {len(prices)} listed, "
            f"{len(positive)} positive, skip={skip}"
        )

    average = sum(selected, Decimal("0")) / len(selected)
    return PriceSelection(
        sorted_prices=sorted_prices,
        selected=selected,
        average=average,
    )


def average_band(
    prices: list[Decimal],
    order: SortOrder,
    skip: int = 1,
    take: int = 6,
) -> Decimal:
    """Return only the band mean from select_prices."""
    return select_prices(prices, order, skip=skip, take=take).average
