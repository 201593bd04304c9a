"""Pricing layer -- band selection and composite rate computation."""

from rateproxy.pricing.calculator import RateCalculator, compute_rates, round_to
from rateproxy.pricing.selector import average_band, select_prices

__all__ = ["RateCalculator", "average_band", "compute_rates", "round_to", "select_prices"]
