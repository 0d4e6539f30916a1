# casamatch/service_layer/geocoding.py
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.clients.nominatim import Geocoder
from ..adapters.repos.geocode_cache import GeocodeCacheRepository, normalize_address
from ..adapters.repos.listings import ListingRepository
from ..models import GeocodeStatus

log = logging.getLogger(__name__)


class GeocodeDispatcher:
    """
    Fire-and-forget geocoding for freshly inserted listings.

    dispatch() schedules a detached task and returns immediately. Each task uses its
    own session and only ever writes the listing's coordinates and geocode_status
    (plus the geocode cache). Failures end as geocode_status=failed, never raised.

    Running tasks are held in a set so they are not garbage collected mid-flight;
    drain() awaits them (shutdown, tests).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        geocoder: Geocoder | None,
        *,
        enabled: bool = True,
    ) -> None:
        self.session_factory = session_factory
        self.geocoder = geocoder
        self.enabled = enabled and geocoder is not None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, listing_id: int, address: str, city: str | None) -> asyncio.Task | None:
        if not self.enabled:
            return None
        task = asyncio.create_task(self._run(listing_id, address, city), name=f"geocode:{listing_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, listing_id: int, address: str, city: str | None) -> None:
        key = normalize_address(address, city)
        status = GeocodeStatus.failed
        coords: tuple[float, float] | None = None
        try:
            async with self.session_factory() as session:
                cache = GeocodeCacheRepository(session)
                hit = await cache.get(key)
                if hit is not None:
                    status = hit.status
                    if hit.status == GeocodeStatus.success and hit.latitude is not None and hit.longitude is not None:
                        coords = (hit.latitude, hit.longitude)
                else:
                    error = None
                    try:
                        coords = await self.geocoder.geocode(address, city)
                    except Exception as e:
                        error = f"{type(e).__name__}: {e}"
                        log.warning("geocode failed listing_id=%s address=%r: %s", listing_id, address, error)
                    status = GeocodeStatus.success if coords else GeocodeStatus.failed
                    # transport errors are not cached; a later listing at the same address retries
                    if error is None:
                        await cache.put(key, status=status, coords=coords, error=None if coords else "no result")

                await ListingRepository(session).set_geocode(listing_id, status, coords)
                await session.commit()
        except Exception:
            log.exception("geocode bookkeeping failed listing_id=%s", listing_id)
            await self._mark_failed(listing_id)

    async def _mark_failed(self, listing_id: int) -> None:
        try:
            async with self.session_factory() as session:
                await ListingRepository(session).set_geocode(listing_id, GeocodeStatus.failed)
                await session.commit()
        except Exception:
            log.exception("could not mark geocode failed listing_id=%s", listing_id)
