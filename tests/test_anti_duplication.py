from datetime import datetime, timedelta

import pytest

from casamatch.adapters.repos.interactions import InteractionRepository
from casamatch.models import Channel
from casamatch.service_layer.guard import AntiDuplicationGuard

NOW = datetime(2026, 6, 30, 12, 0)


@pytest.mark.asyncio
async def test_recent_interaction_is_detected_per_channel(async_session_maker):
    async with async_session_maker() as session:
        await InteractionRepository(session).append(
            client_id=1, property_id=10, channel="whatsapp", text="Ciao", created_at=NOW - timedelta(days=3)
        )
        await session.commit()

        guard = AntiDuplicationGuard(session, clock=lambda: NOW)
        assert await guard.has_recent_interaction(1, 10, Channel.whatsapp, 30) is True
        assert await guard.has_recent_interaction(1, 10, Channel.call_agency, 30) is False
        assert await guard.has_recent_interaction(2, 10, Channel.whatsapp, 30) is False
        assert await guard.has_recent_interaction(1, 11, "whatsapp", 30) is False


@pytest.mark.asyncio
async def test_window_is_rolling(async_session_maker):
    async with async_session_maker() as session:
        repo = InteractionRepository(session)
        await repo.append(client_id=1, property_id=10, channel="call_owner", created_at=NOW - timedelta(days=31))
        await repo.append(client_id=1, property_id=20, channel="call_owner", created_at=NOW - timedelta(days=30))
        await session.commit()

        guard = AntiDuplicationGuard(session, clock=lambda: NOW)
        assert await guard.has_recent_interaction(1, 10, "call_owner", 30) is False
        # window boundary is inclusive
        assert await guard.has_recent_interaction(1, 20, "call_owner", 30) is True
        assert await guard.has_recent_interaction(1, 10, "call_owner", 45) is True
