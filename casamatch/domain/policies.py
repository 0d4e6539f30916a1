# casamatch/domain/policies.py
from __future__ import annotations

from .geo import point_in_polygon
from .types import BuyerCriteria, ListingFacts

# Tolerances are compared as integer ratios (x10) so 1.1 x max_price is exact.
PRICE_TOLERANCE_X10 = 11  # price may exceed budget by 10%
SIZE_TOLERANCE_X10 = 9    # size may fall short by 10%


def over_budget(price: float | None, max_price: float | None) -> bool:
    if not price or not max_price:
        return False
    return price * 10 > max_price * PRICE_TOLERANCE_X10


def undersized(size: float | None, min_size: float | None) -> bool:
    # size 0 means the portal did not publish it
    if not size or not min_size:
        return False
    return size * 10 < min_size * SIZE_TOLERANCE_X10


def tolerance_gate(listing: ListingFacts, buyer: BuyerCriteria) -> tuple[bool, str | None]:
    if undersized(listing.size, buyer.min_size):
        return True, f"size {listing.size} m2 below 90% of min {buyer.min_size} m2"
    if over_budget(listing.price, buyer.max_price):
        return True, f"price {listing.price} above 110% of max {buyer.max_price}"
    return False, None


def match_gate(listing: ListingFacts, buyer: BuyerCriteria) -> tuple[bool, str | None]:
    """
    Returns (blocked, reason)
    """
    if listing.status != "available":
        return True, f"listing not available (status={listing.status})"

    blocked, reason = tolerance_gate(listing, buyer)
    if blocked:
        return blocked, reason

    if buyer.search_polygon and listing.latitude is not None and listing.longitude is not None:
        if not point_in_polygon((listing.longitude, listing.latitude), buyer.search_polygon):
            return True, "outside search area"

    return False, None
