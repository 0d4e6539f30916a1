# casamatch/adapters/repos/interactions.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import Interaction, utcnow


class InteractionRepository:
    """Append-only: no update, no delete."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists_since(self, client_id: int, property_id: int, channel: str, since: datetime) -> bool:
        q = (
            select(Interaction.id)
            .where(
                Interaction.client_id == client_id,
                Interaction.property_id == property_id,
                Interaction.channel == channel,
                Interaction.created_at >= since,
            )
            .limit(1)
        )
        return (await self.session.execute(q)).first() is not None

    async def append(
        self,
        *,
        client_id: int,
        property_id: int,
        channel: str,
        text: str | None = None,
        direction: str = "out",
        payload: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> Interaction:
        row = Interaction(
            client_id=client_id,
            property_id=property_id,
            channel=channel,
            direction=direction,
            text=text,
            payload_json=json.dumps(payload) if payload is not None else None,
            created_at=created_at or utcnow(),
        )
        self.session.add(row)
        await self.session.flush()
        return row
