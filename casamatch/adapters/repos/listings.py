# casamatch/adapters/repos/listings.py
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.types import CanonicalListing, OwnerClassification
from ...errors import PersistenceFailure
from ...models import GeocodeStatus, Listing, ListingStatus, utcnow


class ListingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_key(self, portal: str, source_id: str) -> Listing | None:
        q = select(Listing).where(Listing.portal == portal, Listing.source_id == source_id)
        return (await self.session.execute(q)).scalars().first()

    async def upsert(
        self,
        listing: CanonicalListing,
        classification: OwnerClassification,
        *,
        now: datetime | None = None,
    ) -> tuple[Listing, bool]:
        """
        Natural key: (portal, source_id).

        New rows get first_seen_at = last_seen_at = now. Existing rows get their mutable
        fields refreshed and last_seen_at bumped; first_seen_at is never touched.
        Storage errors surface as PersistenceFailure.
        """
        now = now or utcnow()
        try:
            row = await self.get_by_key(listing.portal, listing.source_id)

            created = False
            if row is None:
                row = Listing(
                    portal=listing.portal,
                    source_id=listing.source_id,
                    address=listing.address,
                    city=listing.city,
                    status=ListingStatus.available,
                    geocode_status=GeocodeStatus.pending,
                    # portal listings belong to someone else; is_owned is never touched on update
                    is_owned=False,
                    is_multiagency=False,
                    first_seen_at=now,
                    created_at=now,
                )
                self.session.add(row)
                created = True

            self._apply(row, listing, classification)
            row.last_seen_at = now
            row.updated_at = now

            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceFailure(listing.source_id, f"{type(e).__name__}: {e}") from e

        return row, created

    @staticmethod
    def _apply(row: Listing, listing: CanonicalListing, c: OwnerClassification) -> None:
        row.address = listing.address
        row.city = listing.city
        row.price = int(listing.price)
        row.size = float(listing.size or 0)

        # optional descriptive fields: keep what we have when the source drops them
        for attr in ("title", "zone", "property_type", "bedrooms", "bathrooms", "floor", "description", "url"):
            value = getattr(listing, attr)
            if value is not None:
                setattr(row, attr, value)

        row.owner_type = c.owner_type
        row.owner_type_confidence = c.confidence
        row.owner_type_reasoning = c.reasoning
        row.agency_name = c.agency_name or listing.agency_name
        row.owner_name = listing.owner_name or row.owner_name
        row.owner_phone = listing.owner_phone or row.owner_phone
        row.owner_email = listing.owner_email or row.owner_email
        row.exclusivity_hint = bool(listing.exclusivity_hint) and not row.is_multiagency

        if listing.has_coordinates:
            row.latitude = listing.latitude
            row.longitude = listing.longitude
            row.geocode_status = GeocodeStatus.success

    async def set_geocode(
        self,
        listing_id: int,
        status: GeocodeStatus,
        coords: tuple[float, float] | None = None,
    ) -> None:
        row = await self.session.get(Listing, listing_id)
        if row is None:
            return
        row.geocode_status = status
        if coords is not None:
            row.latitude, row.longitude = coords
        row.updated_at = utcnow()
        await self.session.flush()

    async def list_available(self, ids: Sequence[int] | None = None) -> list[Listing]:
        q = select(Listing).where(Listing.status == ListingStatus.available)
        if ids is not None:
            if not ids:
                return []
            q = q.where(Listing.id.in_(list(ids)))
        return list((await self.session.execute(q.order_by(Listing.id))).scalars().all())

    async def list_available_in_cities(self, cities: Sequence[str]) -> list[Listing]:
        names = sorted({c.strip().lower() for c in cities if c and c.strip()})
        if not names:
            return []
        q = (
            select(Listing)
            .where(Listing.status == ListingStatus.available, func.lower(Listing.city).in_(names))
            .order_by(Listing.id)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def mark_multiagency(self, ids: Sequence[int]) -> int:
        """Flag only; rows stay separate. Returns how many rows flipped."""
        if not ids:
            return 0
        q = select(Listing).where(Listing.id.in_(list(ids)), Listing.is_multiagency.is_(False))
        rows = list((await self.session.execute(q)).scalars().all())
        now = utcnow()
        for row in rows:
            row.is_multiagency = True
            # a listing shared across agencies is not an exclusive mandate
            row.exclusivity_hint = False
            row.updated_at = now
        await self.session.flush()
        return len(rows)

    async def count(self) -> int:
        return int((await self.session.execute(select(func.count(Listing.id)))).scalar_one())
