# tests/test_task_engine.py
from datetime import datetime

import pytest
from sqlalchemy import func, select

from casamatch.integrations.base import SendResult
from casamatch.models import Interaction, Task, TaskStatus, TaskType
from casamatch.service_layer.task_engine import TaskEngine, select_task_type

NOW = datetime(2026, 7, 1, 10, 30)


class FakeMessenger:
    def __init__(self, result=None, exc=None):
        self.result = result or SendResult(success=True, external_id="wamid-1")
        self.exc = exc
        self.sent = []

    async def send(self, phone, text):
        self.sent.append((phone, text))
        if self.exc is not None:
            raise self.exc
        return self.result


def _engine(session, **kwargs):
    kwargs.setdefault("threshold", 70)
    kwargs.setdefault("window_days", 30)
    kwargs.setdefault("outreach_enabled", False)
    kwargs.setdefault("allowlist", [])
    return TaskEngine(session, clock=lambda: NOW, **kwargs)


async def _count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_task_type_branching(make_listing):
    owned = await make_listing(is_owned=True)
    unset = await make_listing(is_owned=None)
    multi = await make_listing(is_owned=False, is_multiagency=True)
    external = await make_listing(is_owned=False, is_multiagency=False)

    assert select_task_type(owned) == TaskType.SEND_MESSAGE
    assert select_task_type(unset) == TaskType.SEND_MESSAGE
    assert select_task_type(multi) == TaskType.CALL_OWNER
    assert select_task_type(external) == TaskType.CALL_AGENCY


@pytest.mark.asyncio
async def test_below_threshold_creates_nothing(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True)
    client, _ = await make_buyer()

    async with async_session_maker() as session:
        result = await _engine(session).process([(listing, client, 69)])
        assert result.below_threshold == 1
        assert result.created == 0
        assert await _count(session, Task) == 0
        assert await _count(session, Interaction) == 0


@pytest.mark.asyncio
async def test_send_message_task_has_prefilled_whatsapp_link(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True, address="Via Lecco 12", price=590_000, size=95, floor="3")
    client, _ = await make_buyer(first_name="Giulia", phone="+39 333 1234567")

    async with async_session_maker() as session:
        result = await _engine(session).process([(listing, client, 88)])
        await session.commit()
        (task,) = (await session.execute(select(Task))).scalars().all()

    assert result.created == 1
    assert task.type == TaskType.SEND_MESSAGE
    assert task.status == TaskStatus.open
    assert task.due_date == NOW.date()
    assert task.score == 88
    assert task.target == "+39 333 1234567"
    assert task.notes.startswith("https://wa.me/393331234567?text=Ciao%20Giulia")
    assert "590.000" in task.notes


@pytest.mark.asyncio
async def test_call_agency_notes_carry_exclusivity_hint(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=False, agency_name="Navigli Casa Srl", exclusivity_hint=True)
    client, _ = await make_buyer()

    async with async_session_maker() as session:
        await _engine(session).process([(listing, client, 90)])
        (task,) = (await session.execute(select(Task))).scalars().all()

    assert task.type == TaskType.CALL_AGENCY
    assert task.target == "Navigli Casa Srl"
    assert "[Possible exclusive mandate]" in task.notes


@pytest.mark.asyncio
async def test_repeat_match_yields_one_task_and_one_interaction(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True)
    client, _ = await make_buyer(phone="+39 333 1234567")
    messenger = FakeMessenger()

    async with async_session_maker() as session:
        engine = _engine(session, messenger=messenger, outreach_enabled=True, allowlist=["393331234567"])
        first = await engine.process([(listing, client, 95)])
        second = await engine.process([(listing, client, 95)])
        await session.commit()

        assert await _count(session, Task) == 1
        assert await _count(session, Interaction) == 1
        (interaction,) = (await session.execute(select(Interaction))).scalars().all()

    assert first.created == 1 and first.dispatched == 1
    assert second.duplicates == 1 and second.created == 0
    assert len(messenger.sent) == 1
    assert interaction.channel == "whatsapp"
    assert interaction.text.startswith("Ciao Marco")


@pytest.mark.asyncio
async def test_same_triple_twice_in_one_batch_sends_once(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True)
    client, _ = await make_buyer(phone="3331112222")
    messenger = FakeMessenger()

    async with async_session_maker() as session:
        engine = _engine(session, messenger=messenger, outreach_enabled=True, allowlist=["3331112222"])
        result = await engine.process([(listing, client, 80), (listing, client, 80)])

    assert result.dispatched == 1
    assert result.duplicates == 1
    assert len(messenger.sent) == 1


@pytest.mark.asyncio
async def test_live_send_only_for_allowlisted_phone(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True)
    allowed, _ = await make_buyer(phone="+39 333 0000001")
    other, _ = await make_buyer(phone="+39 333 0000002")
    messenger = FakeMessenger()

    async with async_session_maker() as session:
        engine = _engine(session, messenger=messenger, outreach_enabled=True, allowlist=["+39 333 0000001"])
        result = await engine.process([(listing, allowed, 90), (listing, other, 90)])

        assert await _count(session, Task) == 2

    assert result.created == 2
    assert result.dispatched == 1
    assert [p for p, _ in messenger.sent] == ["+39 333 0000001"]


@pytest.mark.asyncio
async def test_nothing_is_sent_when_outreach_disabled(async_session_maker, make_listing, make_buyer):
    listing = await make_listing(is_owned=True)
    client, _ = await make_buyer(phone="3331112222")
    messenger = FakeMessenger()

    async with async_session_maker() as session:
        result = await _engine(session, messenger=messenger, outreach_enabled=False, allowlist=["3331112222"]).process(
            [(listing, client, 90)]
        )
        assert await _count(session, Interaction) == 0

    assert result.created == 1
    assert messenger.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "messenger",
    [
        FakeMessenger(result=SendResult(success=False, error="instance not authorized")),
        FakeMessenger(exc=ConnectionError("gateway down")),
    ],
)
async def test_dispatch_failure_keeps_task(async_session_maker, make_listing, make_buyer, messenger):
    listing = await make_listing(is_owned=True)
    client, _ = await make_buyer(phone="3331112222")

    async with async_session_maker() as session:
        result = await _engine(session, messenger=messenger, outreach_enabled=True, allowlist=["3331112222"]).process(
            [(listing, client, 90)]
        )
        assert await _count(session, Task) == 1
        assert await _count(session, Interaction) == 0

    assert result.created == 1
    assert result.dispatch_failed == 1
    assert result.dispatched == 0


@pytest.mark.asyncio
async def test_recent_call_interaction_blocks_call_task(async_session_maker, make_listing, make_buyer):
    from casamatch.adapters.repos.interactions import InteractionRepository

    listing = await make_listing(is_owned=False, is_multiagency=True)
    client, _ = await make_buyer()

    async with async_session_maker() as session:
        await InteractionRepository(session).append(
            client_id=client.id, property_id=listing.id, channel="call_owner", created_at=NOW
        )
        result = await _engine(session).process([(listing, client, 90)])
        assert await _count(session, Task) == 0

    assert result.duplicates == 1
