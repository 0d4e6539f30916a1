from __future__ import annotations

import argparse
import asyncio
import json

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamatch.db import AsyncSessionLocal, create_all
from casamatch.models import BuyerProfile, Client

# Rough box around Milano centro / Porta Venezia, [lng, lat]
DEMO_POLYGON = [
    [9.170, 45.455],
    [9.225, 45.455],
    [9.225, 45.490],
    [9.170, 45.490],
]


async def _upsert_buyer(
    session: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    phone: str,
    max_price: int,
    min_size: int,
    rooms: int | None,
    polygon: list[list[float]] | None,
) -> None:
    # naive idempotent behavior: uniqueness on phone
    client = (await session.execute(select(Client).where(Client.phone == phone))).scalars().first()
    if client is None:
        client = Client(first_name=first_name, last_name=last_name, phone=phone)
        session.add(client)
        await session.flush()

    profile = (
        await session.execute(select(BuyerProfile).where(BuyerProfile.client_id == client.id))
    ).scalars().first()
    if profile is None:
        profile = BuyerProfile(client_id=client.id)
        session.add(profile)

    profile.max_price = max_price
    profile.min_size = min_size
    profile.rooms = rooms
    profile.search_polygon_json = json.dumps(polygon) if polygon else None
    await session.flush()


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--phone", default="+39 333 0000000", help="Demo buyer phone (keep it off OUTREACH_ALLOWLIST)")
    parser.add_argument("--no-polygon", action="store_true", help="Seed the demo buyer without a search area")
    args = parser.parse_args()

    await create_all()

    async with AsyncSessionLocal() as session:
        await _upsert_buyer(
            session,
            first_name="Giulia",
            last_name="Demo",
            phone=args.phone,
            max_price=650_000,
            min_size=80,
            rooms=3,
            polygon=None if args.no_polygon else DEMO_POLYGON,
        )
        await session.commit()

    print(f"Seeded demo buyer. phone={args.phone} polygon={not args.no_polygon}")


if __name__ == "__main__":
    asyncio.run(main())
