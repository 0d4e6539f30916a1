# casamatch/service_layer/guard.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.interactions import InteractionRepository
from ..models import Channel, utcnow


class AntiDuplicationGuard:
    """
    Has this client already been contacted about this property on this channel
    within the last `window_days`? Read-only.
    """

    def __init__(self, session: AsyncSession, *, clock: Callable[[], datetime] = utcnow):
        self.interactions = InteractionRepository(session)
        self.clock = clock

    async def has_recent_interaction(
        self,
        client_id: int,
        property_id: int,
        channel: Channel | str,
        window_days: int,
    ) -> bool:
        since = self.clock() - timedelta(days=window_days)
        ch = channel.value if isinstance(channel, Channel) else str(channel)
        return await self.interactions.exists_since(client_id, property_id, ch, since)
