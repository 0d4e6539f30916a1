# casamatch/domain/scoring.py
from __future__ import annotations

import math
from typing import Any

from .normalize import normalize_property_type
from .policies import match_gate, tolerance_gate
from .types import BuyerCriteria, ListingFacts, MatchCandidate

OVERSIZE_MAX_PENALTY = 30.0
OVER_BUDGET_MAX_PENALTY = 40.0
UNDERPRICED_MAX_PENALTY = 15.0
TYPE_MISMATCH_PENALTY = 25.0
ROOM_PENALTY = 5


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _clamp(x: float) -> int:
    return max(0, min(100, _round_half_up(x)))


def _facts(listing: Any) -> ListingFacts:
    return listing if isinstance(listing, ListingFacts) else ListingFacts.of(listing)


def _criteria(buyer: Any) -> BuyerCriteria:
    return buyer if isinstance(buyer, BuyerCriteria) else BuyerCriteria.of(buyer)


def _blocked(reason: str | None) -> MatchCandidate:
    return MatchCandidate(score=0, reasoning=f"blocked: {reason}", gated=True, gate_reason=reason)


def size_penalty(size: float | None, min_size: float | None) -> tuple[float, str | None]:
    if not size or not min_size:
        return 0.0, None
    if size * 2 <= min_size * 3:
        return 0.0, None
    p = min(OVERSIZE_MAX_PENALTY, OVERSIZE_MAX_PENALTY * (size - min_size) / min_size)
    return p, f"oversize {size}/{min_size} m2 (-{p:.1f})"


def price_penalty(price: float | None, max_price: float | None) -> tuple[float, str | None]:
    if not price or not max_price:
        return 0.0, None
    r = price / max_price
    if r > 1:
        p = min(OVER_BUDGET_MAX_PENALTY, 400 * (r - 1))
        return p, f"price {100 * (r - 1):.1f}% over budget (-{p:.1f})"
    if r < 0.8:
        p = min(UNDERPRICED_MAX_PENALTY, 75 * (0.8 - r))
        return p, f"price {100 * (1 - r):.0f}% under budget (-{p:.1f})"
    return 0.0, None


def type_penalty(listing_type: str | None, wanted_type: str | None) -> tuple[float, str | None]:
    # unknown on either side is not a mismatch
    have = normalize_property_type(listing_type)
    want = normalize_property_type(wanted_type)
    if not have or not want or have == want:
        return 0.0, None
    return TYPE_MISMATCH_PENALTY, f"type {have} vs wanted {want} (-{TYPE_MISMATCH_PENALTY:.0f})"


def score_match(listing: Any, buyer: Any) -> MatchCandidate:
    """
    Full scoring path: hard gates first (status, size/price tolerance, search area),
    then independent soft penalties from 100 (size, price, property type).

    `listing` may be a Listing row or ListingFacts; `buyer` a BuyerProfile row or BuyerCriteria.
    """
    facts = _facts(listing)
    criteria = _criteria(buyer)

    blocked, reason = match_gate(facts, criteria)
    if blocked:
        return _blocked(reason)

    score = 100.0
    parts: list[str] = []
    for penalty, why in (
        size_penalty(facts.size, criteria.min_size),
        price_penalty(facts.price, criteria.max_price),
        type_penalty(facts.property_type, criteria.property_type),
    ):
        if why:
            score -= penalty
            parts.append(why)

    return MatchCandidate(score=_clamp(score), reasoning=" | ".join(parts) or "within criteria")


def quick_match_score(listing: Any, buyer: Any) -> MatchCandidate:
    """Room-count path for generic matching: tolerance gates only, no status or area check."""
    facts = _facts(listing)
    criteria = _criteria(buyer)

    blocked, reason = tolerance_gate(facts, criteria)
    if blocked:
        return _blocked(reason)

    score = 100
    parts: list[str] = []
    if criteria.rooms is not None and facts.bedrooms is not None:
        diff = abs(criteria.rooms - facts.bedrooms)
        if diff:
            score -= ROOM_PENALTY * diff
            parts.append(f"rooms {facts.bedrooms} vs {criteria.rooms} (-{ROOM_PENALTY * diff})")

    return MatchCandidate(score=max(0, score), reasoning=" | ".join(parts) or "rooms match")
