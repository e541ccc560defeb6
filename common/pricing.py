"""Rental price calculation with tiered long-rental discounts."""
from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from pydantic import BaseModel, Field


class DiscountTier(BaseModel):
    min_days: int = Field(..., ge=1, description="Minimum rental length (days) for the tier to apply")
    percentage: float = Field(..., ge=0, le=100, description="Discount in percent of the base price")
    label: str = ""


class PriceBreakdown(BaseModel):
    days: int = 0
    base_price: int = 0
    tier: Optional[DiscountTier] = None
    discount_amount: int = 0
    final_price: int = 0


DEFAULT_DISCOUNT_TIERS: tuple[DiscountTier, ...] = (
    DiscountTier(min_days=7, percentage=10, label="Week"),
    DiscountTier(min_days=14, percentage=15, label="Two weeks"),
    DiscountTier(min_days=30, percentage=20, label="Month"),
)


def rental_days(start: Optional[date], end: Optional[date]) -> int:
    """Inclusive day count; both endpoints are rental days."""

    if start is None or end is None:
        return 0
    if end < start:
        start, end = end, start
    return (end - start).days + 1


def find_applicable_discount(days: int, tiers: Sequence[DiscountTier]) -> Optional[DiscountTier]:
    """Pick the qualifying tier with the longest threshold.

    The longest threshold wins even when a shorter one carries a bigger
    percentage.
    """

    for tier in sorted(tiers, key=lambda t: t.min_days, reverse=True):
        if days >= tier.min_days:
            return tier
    return None


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_pricing(
    start: Optional[date],
    end: Optional[date],
    daily_rate: int,
    tiers: Sequence[DiscountTier] = DEFAULT_DISCOUNT_TIERS,
) -> PriceBreakdown:
    days = rental_days(start, end)
    if days == 0:
        return PriceBreakdown()

    tier = find_applicable_discount(days, tiers)
    if daily_rate <= 0:
        return PriceBreakdown(days=days, tier=tier)

    base_price = days * daily_rate
    discount_amount = 0
    if tier is not None:
        discount_amount = _round_half_up(Decimal(base_price) * Decimal(str(tier.percentage)) / Decimal(100))
    return PriceBreakdown(
        days=days,
        base_price=base_price,
        tier=tier,
        discount_amount=discount_amount,
        final_price=base_price - discount_amount,
    )
