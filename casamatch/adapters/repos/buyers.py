# casamatch/adapters/repos/buyers.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import BuyerProfile, Client


class BuyerRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_with_profiles(self) -> list[tuple[Client, BuyerProfile]]:
        """Clients that have a buyer profile; clients without one are not buyers."""
        q = (
            select(Client, BuyerProfile)
            .join(BuyerProfile, BuyerProfile.client_id == Client.id)
            .order_by(Client.id)
        )
        return [(c, p) for c, p in (await self.session.execute(q)).all()]
