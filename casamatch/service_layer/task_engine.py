# casamatch/service_layer/task_engine.py
"""
Qualifying matches -> outreach tasks.

Per (listing, client, score):
  1. below MATCH_SCORE_THRESHOLD: dropped
  2. task type from listing provenance:
       is_owned true/NULL   -> SEND_MESSAGE  (channel whatsapp)
       is_multiagency       -> CALL_OWNER    (channel call_owner)
       otherwise            -> CALL_AGENCY   (channel call_agency)
  3. recent interaction on that channel within ANTI_DUP_WINDOW_DAYS: dropped
  4. open task upserted, due today
  5. SEND_MESSAGE only: live send when OUTREACH_ENABLED and the client's phone is
     allow-listed; a successful send is logged as an Interaction. A failed send
     leaves the task as the manual fallback.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.interactions import InteractionRepository
from ..adapters.repos.tasks import TaskRepository
from ..config import normalize_phone, settings
from ..domain import messages
from ..errors import DispatchFailure
from ..integrations.base import Messenger
from ..models import Channel, TaskType, utcnow
from .guard import AntiDuplicationGuard

log = logging.getLogger(__name__)

CHANNEL_FOR = {
    TaskType.SEND_MESSAGE: Channel.whatsapp,
    TaskType.CALL_OWNER: Channel.call_owner,
    TaskType.CALL_AGENCY: Channel.call_agency,
}

ACTION_FOR = {
    TaskType.SEND_MESSAGE: "Send the property sheet on WhatsApp",
    TaskType.CALL_OWNER: "Find the owner's number and call them",
    TaskType.CALL_AGENCY: "Call the agency and ask whether they co-broker",
}


def select_task_type(listing: Any) -> TaskType:
    if listing.is_owned is None or listing.is_owned:
        return TaskType.SEND_MESSAGE
    if listing.is_multiagency:
        return TaskType.CALL_OWNER
    return TaskType.CALL_AGENCY


@dataclass
class TaskEngineResult:
    processed: int = 0
    below_threshold: int = 0
    duplicates: int = 0
    created: int = 0
    refreshed: int = 0
    dispatched: int = 0
    dispatch_failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class TaskEngine:
    def __init__(
        self,
        session: AsyncSession,
        *,
        messenger: Messenger | None = None,
        threshold: int | None = None,
        window_days: int | None = None,
        outreach_enabled: bool | None = None,
        allowlist: Iterable[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.messenger = messenger
        self.threshold = int(threshold if threshold is not None else settings.MATCH_SCORE_THRESHOLD)
        self.window_days = int(window_days if window_days is not None else settings.ANTI_DUP_WINDOW_DAYS)
        self.outreach_enabled = bool(outreach_enabled if outreach_enabled is not None else settings.OUTREACH_ENABLED)
        self.allowlist = (
            frozenset(normalize_phone(p) for p in allowlist) if allowlist is not None else settings.outreach_allowlist
        )
        self.clock = clock

        self.guard = AntiDuplicationGuard(session, clock=clock)
        self.tasks = TaskRepository(session)
        self.interactions = InteractionRepository(session)
        self._locks: dict[tuple[int, int, str], asyncio.Lock] = {}

    def _lock(self, client_id: int, property_id: int, channel: Channel) -> asyncio.Lock:
        key = (client_id, property_id, channel.value)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def can_send_live(self, phone: str | None) -> bool:
        return self.outreach_enabled and bool(phone) and normalize_phone(phone) in self.allowlist

    async def process(self, matches: Iterable[Any]) -> TaskEngineResult:
        """`matches` are (listing, client, score) triples; MatchTriple works too."""
        result = TaskEngineResult()
        for listing, client, score, *_ in matches:
            result.processed += 1
            if score < self.threshold:
                result.below_threshold += 1
                log.debug("skip listing=%s client=%s score=%s below threshold %s", listing.id, client.id, score, self.threshold)
                continue
            await self._handle(listing, client, int(score), result)

        log.info("task engine: %s", result.as_dict())
        return result

    async def _handle(self, listing: Any, client: Any, score: int, result: TaskEngineResult) -> None:
        task_type = select_task_type(listing)
        channel = CHANNEL_FOR[task_type]

        # guard read and interaction write for one triple never interleave
        async with self._lock(client.id, listing.id, channel):
            if await self.guard.has_recent_interaction(client.id, listing.id, channel, self.window_days):
                result.duplicates += 1
                log.debug(
                    "skip %s listing=%s client=%s: contacted on %s within %s days",
                    task_type.value, listing.id, client.id, channel.value, self.window_days,
                )
                return

            text: str | None = None
            if task_type == TaskType.SEND_MESSAGE:
                text = messages.render_property_message(listing, client)
                target = client.phone
                notes = messages.whatsapp_link(client.phone, text)
            elif task_type == TaskType.CALL_OWNER:
                target = listing.owner_phone or "OWNER"
                notes = messages.call_owner_notes(listing, client, score)
            else:
                target = listing.agency_name or listing.portal or "AGENCY"
                notes = messages.call_agency_notes(listing, client, score)

            today: date = self.clock().date()
            _, was_created = await self.tasks.upsert_open(
                client_id=client.id,
                property_id=listing.id,
                type=task_type,
                title=f"{task_type.value}: {listing.address} -> {messages.client_label(client)}",
                description=ACTION_FOR[task_type],
                due_date=today,
                target=target,
                notes=notes,
                score=score,
            )
            if was_created:
                result.created += 1
                log.info("task %s listing=%s client=%s score=%s", task_type.value, listing.id, client.id, score)
            else:
                result.refreshed += 1

            if text is not None and self.can_send_live(client.phone):
                try:
                    external_id = await self._send(client.phone, text)
                except DispatchFailure as e:
                    result.dispatch_failed += 1
                    log.warning("dispatch failed listing=%s client=%s: %s (task kept)", listing.id, client.id, e)
                    return

                await self.interactions.append(
                    client_id=client.id,
                    property_id=listing.id,
                    channel=channel.value,
                    text=text,
                    payload={"sent": True, "external_id": external_id, "score": score},
                    created_at=self.clock(),
                )
                # a real message went out: persist the log entry now
                await self.session.commit()
                result.dispatched += 1

    async def _send(self, phone: str, text: str) -> str | None:
        if self.messenger is None:
            raise DispatchFailure("no messenger configured")
        try:
            res = await self.messenger.send(phone, text)
        except Exception as e:
            raise DispatchFailure(f"{type(e).__name__}: {e}") from e
        if not res.success:
            raise DispatchFailure(res.error or "send failed")
        return res.external_id
