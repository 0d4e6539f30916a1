# tests/conftest.py
import json

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from casamatch.models import Base, BuyerProfile, Client, Listing, OwnerType


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
def make_listing(async_session_maker):
    counter = {"n": 0}

    async def _make(**overrides) -> Listing:
        counter["n"] += 1
        fields = dict(
            portal="immobiliare",
            source_id=f"L-{counter['n']}",
            address=f"Via Roma {counter['n']}",
            city="Milano",
            price=300_000,
            size=80,
            bedrooms=3,
            owner_type=OwnerType.private,
            url=f"https://example.com/listing/{counter['n']}",
        )
        fields.update(overrides)
        async with async_session_maker() as session:
            row = Listing(**fields)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    return _make


@pytest.fixture
def make_buyer(async_session_maker):
    counter = {"n": 0}

    async def _make(*, polygon=None, **overrides) -> tuple[Client, BuyerProfile]:
        counter["n"] += 1
        client_fields = dict(
            first_name="Marco",
            last_name=f"Rossi{counter['n']}",
            phone=f"+39 333 000000{counter['n']}",
        )
        for k in list(overrides):
            if k in client_fields or k in ("salutation", "email", "is_friend"):
                client_fields[k] = overrides.pop(k)

        profile_fields = dict(max_price=300_000, min_size=75, rooms=3)
        profile_fields.update(overrides)

        async with async_session_maker() as session:
            client = Client(**client_fields)
            session.add(client)
            await session.flush()
            profile = BuyerProfile(
                client_id=client.id,
                search_polygon_json=json.dumps(polygon) if polygon is not None else None,
                **profile_fields,
            )
            session.add(profile)
            await session.commit()
            await session.refresh(client)
            await session.refresh(profile)
            return client, profile

    return _make
