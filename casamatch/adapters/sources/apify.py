# casamatch/adapters/sources/apify.py
from __future__ import annotations

import logging
from typing import Any

from ...config import settings
from ...domain.types import RawListing, SearchCriteria
from ...errors import SourceFailure
from ..clients.http_resilience import ResilientHttpClient

log = logging.getLogger(__name__)


class ApifyActorAdapter:
    """
    Runs a scraper actor on Apify synchronously and returns its dataset items as raw listings.

    The actor does the portal-specific crawling; this adapter only builds the actor
    input from SearchCriteria and hands the items to the normalizer untouched
    (apart from filling `city` when the actor omits it).
    """

    def __init__(
        self,
        *,
        portal_id: str,
        name: str,
        actor_id: str,
        token: str | None,
        base_url: str | None = None,
        max_items: int | None = None,
        timeout_s: float | None = None,
        http: ResilientHttpClient | None = None,
    ) -> None:
        self.portal_id = portal_id
        self.name = name
        self.actor_id = actor_id
        self.token = token
        self.base_url = (base_url or settings.APIFY_BASE_URL).rstrip("/")
        self.max_items = int(max_items if max_items is not None else settings.APIFY_MAX_ITEMS)
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.INGESTION_ADAPTER_TIMEOUT_S)
        # actor runs are slow and not idempotent enough to retry blindly
        self.http = http or ResilientHttpClient(name=f"apify:{portal_id}", max_retries=0)

    @property
    def run_url(self) -> str:
        # Apify actor ids use "~" instead of "/" in URLs
        return f"{self.base_url}/acts/{self.actor_id.replace('/', '~')}/run-sync-get-dataset-items"

    async def is_available(self) -> bool:
        return bool(self.token and self.actor_id)

    def build_input(self, criteria: SearchCriteria) -> dict[str, Any]:
        body: dict[str, Any] = {
            "location": (criteria.city or "").title() or None,
            "operation": "sale",
            "maxItems": self.max_items,
            "minPrice": criteria.min_price,
            "maxPrice": criteria.max_price,
            "minSize": criteria.min_size,
            "maxSize": criteria.max_size,
            "bedrooms": criteria.bedrooms,
            "zone": criteria.zone,
        }
        return {k: v for k, v in body.items() if v is not None}

    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        if not self.token:
            raise SourceFailure(self.portal_id, "APIFY_TOKEN not configured")

        resp = await self.http.post(
            self.run_url,
            params={"token": self.token, "format": "json", "clean": "true"},
            json=self.build_input(criteria),
            timeout_s=self.timeout_s,
        )
        items = resp.json()
        if not isinstance(items, list):
            raise SourceFailure(self.portal_id, f"unexpected dataset payload: {type(items).__name__}")

        out: list[RawListing] = []
        for it in items:
            if not isinstance(it, dict):
                continue
            if criteria.city and not (it.get("city") or it.get("municipality")):
                it = {**it, "city": criteria.city}
            out.append(RawListing(payload=it, portal=self.portal_id))

        log.info("apify actor=%s portal=%s items=%s", self.actor_id, self.portal_id, len(out))
        return out
