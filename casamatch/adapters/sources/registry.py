# casamatch/adapters/sources/registry.py
from __future__ import annotations

import logging

from ...config import Settings
from .apify import ApifyActorAdapter
from .base import AdapterRegistry
from .stub_json import FixtureSourceAdapter

log = logging.getLogger(__name__)


def build_registry(s: Settings) -> AdapterRegistry:
    """
    INGESTION_SOURCES picks the adapters:
      stub_json    -> fixture files under STUB_LISTINGS_DIR
      immobiliare  -> Apify actor APIFY_IMMOBILIARE_ACTOR
      idealista    -> Apify actor APIFY_IDEALISTA_ACTOR
    Unknown ids and vendor sources without an actor id are skipped with a warning.
    """
    registry = AdapterRegistry()
    actors = {
        "immobiliare": ("Immobiliare.it (Apify)", s.APIFY_IMMOBILIARE_ACTOR),
        "idealista": ("Idealista (Apify)", s.APIFY_IDEALISTA_ACTOR),
    }

    for source in s.ingestion_sources:
        if source == "stub_json":
            registry.register(FixtureSourceAdapter.from_settings())
        elif source in actors:
            name, actor_id = actors[source]
            if not actor_id:
                log.warning("ingestion source %s enabled but no actor configured; skipping", source)
                continue
            registry.register(
                ApifyActorAdapter(
                    portal_id=source,
                    name=name,
                    actor_id=actor_id,
                    token=s.APIFY_TOKEN,
                    base_url=s.APIFY_BASE_URL,
                    max_items=s.APIFY_MAX_ITEMS,
                )
            )
        else:
            log.warning("unknown ingestion source %r; skipping", source)

    return registry
