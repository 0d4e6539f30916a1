# casamatch/adapters/sources/stub_json.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ...config import settings
from ...domain.parsing import get_first, parse_euro_amount, parse_surface
from ...domain.types import RawListing, SearchCriteria


def _as_list_of_dicts(payload: Any) -> list[dict[str, Any]]:
    """
    Accept either:
      - list[dict]
      - {"value": list[dict]} (what dataset exports look like)
    """
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    if isinstance(payload, dict):
        v = payload.get("value")
        if isinstance(v, list):
            return [x for x in v if isinstance(x, dict)]
    return []


def matches_criteria(item: dict[str, Any], criteria: SearchCriteria) -> bool:
    """Loose pre-filter, as a portal search page would apply it. Unknown values pass."""
    if criteria.city:
        city = str(get_first(item, "city", "municipality") or "").strip().lower()
        if city and city != criteria.city.strip().lower():
            return False

    price = parse_euro_amount(get_first(item, "price", "priceValue", "listPrice"))
    if price is not None:
        if criteria.min_price is not None and price < criteria.min_price:
            return False
        if criteria.max_price is not None and price > criteria.max_price:
            return False

    size = parse_surface(get_first(item, "size", "surface", "surfaceValue", "sqm"))
    if size:
        if criteria.min_size is not None and size < criteria.min_size:
            return False
        if criteria.max_size is not None and size > criteria.max_size:
            return False
    return True


@dataclass
class FixtureSourceAdapter:
    """
    Offline source for development/testing.

    Reads raw portal payloads from:
      <fixtures_dir>/<portal_id>.json

    A missing fixture file means the source is unavailable.
    """

    fixtures_dir: Path
    portal_id: str = "stub_json"
    name: str = "Fixture JSON"

    @classmethod
    def from_settings(cls, portal_id: str = "stub_json") -> "FixtureSourceAdapter":
        return cls(fixtures_dir=Path(settings.STUB_LISTINGS_DIR), portal_id=portal_id)

    @property
    def path(self) -> Path:
        return self.fixtures_dir / f"{self.portal_id}.json"

    async def is_available(self) -> bool:
        return self.path.exists()

    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return [
            RawListing(payload=it, portal=self.portal_id)
            for it in _as_list_of_dicts(raw)
            if matches_criteria(it, criteria)
        ]
