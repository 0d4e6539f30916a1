# casamatch/domain/similarity.py
"""
Is this the same physical property, listed on another portal?

Pairwise score on 0-100, out of the points both listings can actually be compared on:
  location   40  distance under 500 m, or street similarity when a side has no coordinates
  price      20  within 5% (15 within 10%)
  size       20  within 5 m2 (15 within 10 m2)
  floor      10  identical
  bedrooms   10  identical
Generic addresses ("Milano", no street number) never match anything.
"""
from __future__ import annotations

import difflib
import re
from typing import Any

from .geo import haversine_m

SAME_PROPERTY_THRESHOLD = 70.0
MAX_DISTANCE_M = 500.0
MIN_ADDRESS_RATIO = 0.65

GENERIC_ADDRESSES = frozenset(
    {"milano", "roma", "torino", "firenze", "bologna", "napoli", "genova", "venezia", "italy", "italia"}
)

_ABBREVIATIONS = (
    (re.compile(r"viale\s+"), "vle "),
    (re.compile(r"via\s+"), "v "),
    (re.compile(r"corso\s+"), "cso "),
    (re.compile(r"piazza\s+"), "pza "),
)


def is_generic_address(address: str | None) -> bool:
    s = (address or "").strip().lower()
    if not s or s in GENERIC_ADDRESSES:
        return True
    # a usable address carries a street number
    if not re.search(r"\d", s):
        return True
    return len(s) < 5


def normalize_street(address: str) -> str:
    s = address.strip().lower()
    for pattern, repl in _ABBREVIATIONS:
        s = pattern.sub(repl, s)
    return re.sub(r"[,.]", "", s).strip()


def address_ratio(a: str, b: str) -> float:
    return difflib.SequenceMatcher(None, normalize_street(a), normalize_street(b)).ratio()


def _coords(listing: Any) -> tuple[float, float] | None:
    lat, lng = getattr(listing, "latitude", None), getattr(listing, "longitude", None)
    if lat is None or lng is None:
        return None
    return float(lng), float(lat)


def listing_similarity(a: Any, b: Any) -> tuple[float, list[str]]:
    """Works on Listing rows or anything with the same attribute names."""
    if is_generic_address(a.address) or is_generic_address(b.address):
        return 0.0, ["generic or missing address"]

    got = 0.0
    possible = 0.0
    reasons: list[str] = []

    pa, pb = _coords(a), _coords(b)
    possible += 40
    if pa and pb:
        d = haversine_m(pa, pb)
        if d <= MAX_DISTANCE_M:
            got += 40 * (1 - d / MAX_DISTANCE_M)
            reasons.append(f"{d:.0f} m apart")
    else:
        ratio = address_ratio(a.address, b.address)
        if ratio > MIN_ADDRESS_RATIO:
            got += 40 * ratio
            reasons.append(f"address {ratio:.0%} similar")

    if a.price and b.price:
        possible += 20
        diff = abs(a.price - b.price) / ((a.price + b.price) / 2)
        if diff < 0.05:
            got += 20
            reasons.append(f"price within {diff:.1%}")
        elif diff < 0.10:
            got += 15
            reasons.append(f"price within {diff:.1%}")

    if a.size and b.size:
        possible += 20
        diff = abs(a.size - b.size)
        if diff <= 5:
            got += 20
            reasons.append(f"size {a.size:g}/{b.size:g} m2")
        elif diff <= 10:
            got += 15
            reasons.append(f"size {a.size:g}/{b.size:g} m2")

    fa, fb = getattr(a, "floor", None), getattr(b, "floor", None)
    if fa is not None and fb is not None:
        possible += 10
        if str(fa).strip().lower() == str(fb).strip().lower():
            got += 10
            reasons.append(f"floor {fa}")

    ra, rb = getattr(a, "bedrooms", None), getattr(b, "bedrooms", None)
    if ra and rb:
        possible += 10
        if ra == rb:
            got += 10
            reasons.append(f"{ra} rooms")

    return (100 * got / possible if possible else 0.0), reasons


def same_property(a: Any, b: Any) -> bool:
    score, _ = listing_similarity(a, b)
    return score >= SAME_PROPERTY_THRESHOLD
