# casamatch/adapters/sources/base.py
from __future__ import annotations

import logging
from typing import Iterator, Protocol, runtime_checkable

from ...domain.types import RawListing, SearchCriteria

log = logging.getLogger(__name__)


@runtime_checkable
class SourceAdapter(Protocol):
    """
    One listing source (portal scraper, vendor actor, fixture file).

    May raise from search(); the coordinator records the failure and moves on.
    Adapters holding external session state can also define `async cleanup()`.
    """

    portal_id: str
    name: str

    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        raise NotImplementedError

    async def is_available(self) -> bool:
        raise NotImplementedError


async def cleanup_adapter(adapter: SourceAdapter) -> None:
    cleanup = getattr(adapter, "cleanup", None)
    if cleanup is None:
        return
    try:
        await cleanup()
    except Exception:
        log.exception("adapter cleanup failed portal=%s", adapter.portal_id)


class AdapterRegistry:
    """Adapters keyed by portal id, iterated in registration order."""

    def __init__(self, adapters: list[SourceAdapter] | None = None) -> None:
        self._adapters: dict[str, SourceAdapter] = {}
        for a in adapters or []:
            self.register(a)

    def register(self, adapter: SourceAdapter) -> None:
        if adapter.portal_id in self._adapters:
            raise ValueError(f"adapter already registered for portal {adapter.portal_id!r}")
        self._adapters[adapter.portal_id] = adapter

    def get(self, portal_id: str) -> SourceAdapter | None:
        return self._adapters.get(portal_id)

    @property
    def portal_ids(self) -> list[str]:
        return list(self._adapters)

    def __iter__(self) -> Iterator[SourceAdapter]:
        return iter(list(self._adapters.values()))

    def __len__(self) -> int:
        return len(self._adapters)
