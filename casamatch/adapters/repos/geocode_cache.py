# casamatch/adapters/repos/geocode_cache.py
from __future__ import annotations

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import GeocodeCache, GeocodeStatus, utcnow


def normalize_address(address: str, city: str | None = None) -> str:
    s = f"{address} {city or ''}".lower()
    s = re.sub(r"[^\w\s]", " ", s)
    return re.sub(r"\s+", " ", s).strip()


class GeocodeCacheRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> GeocodeCache | None:
        q = select(GeocodeCache).where(GeocodeCache.normalized_address == key)
        return (await self.session.execute(q)).scalars().first()

    async def put(
        self,
        key: str,
        *,
        status: GeocodeStatus,
        coords: tuple[float, float] | None = None,
        error: str | None = None,
    ) -> GeocodeCache:
        row = await self.get(key)
        if row is None:
            row = GeocodeCache(normalized_address=key, status=status)
            self.session.add(row)
        row.status = status
        row.latitude, row.longitude = coords if coords else (None, None)
        row.error_message = error
        row.updated_at = utcnow()
        await self.session.flush()
        return row
