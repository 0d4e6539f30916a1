# casamatch/jobs/pipeline.py
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.clients.nominatim import NominatimGeocoder
from ..adapters.sources.registry import build_registry
from ..config import Settings, settings as default_settings
from ..domain.types import SearchCriteria
from ..integrations.base import Messenger
from ..integrations.ultramsg import UltraMsgMessenger
from ..service_layer.geocoding import GeocodeDispatcher
from ..service_layer.ingestion import IngestionCoordinator, RunGuard
from ..service_layer.jobruns import finish_job_fail, finish_job_success, start_job
from ..service_layer.matching import find_matches
from ..service_layer.task_engine import TaskEngine

log = logging.getLogger(__name__)

# process-wide; the scheduler and the CLI share it
PIPELINE_RUN_GUARD = RunGuard()


def criteria_from_settings(s: Settings) -> SearchCriteria:
    return SearchCriteria(
        city=s.INGESTION_CITY or None,
        min_price=s.INGESTION_MIN_PRICE,
        max_price=s.INGESTION_MAX_PRICE,
        min_size=s.INGESTION_MIN_SIZE,
    )


def build_coordinator(
    session_factory: async_sessionmaker[AsyncSession],
    s: Settings,
    *,
    run_guard: RunGuard | None = None,
) -> IngestionCoordinator:
    geocoder = NominatimGeocoder.from_settings(s) if s.GEOCODER_ENABLED else None
    return IngestionCoordinator(
        session_factory,
        build_registry(s),
        geocode_dispatcher=GeocodeDispatcher(session_factory, geocoder, enabled=s.GEOCODER_ENABLED),
        run_guard=run_guard or PIPELINE_RUN_GUARD,
        adapter_timeout_s=s.INGESTION_ADAPTER_TIMEOUT_S,
        adapter_delay_s=s.INGESTION_ADAPTER_DELAY_S,
        max_errors_per_adapter=s.INGESTION_MAX_ERRORS_PER_ADAPTER,
    )


async def run_pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    criteria: SearchCriteria | None = None,
    coordinator: IngestionCoordinator | None = None,
    messenger: Messenger | None = None,
    s: Settings | None = None,
    match_all: bool = False,
) -> dict[str, Any]:
    """
    ingest -> match -> tasks, tracked as a JobRun.

    By default only listings written in this run are matched; match_all re-scores
    every available listing (useful after buyer profiles change).
    Raises IngestionAlreadyRunning when another run holds the guard.
    """
    s = s or default_settings
    criteria = criteria or criteria_from_settings(s)
    coordinator = coordinator or build_coordinator(session_factory, s)
    if messenger is None and s.OUTREACH_ENABLED:
        messenger = UltraMsgMessenger.from_settings(s)

    async with session_factory() as session:
        jr = await start_job(session, "pipeline", meta={"criteria": criteria.as_dict(), "match_all": match_all})
        await session.commit()

        try:
            report = await coordinator.run_ingestion(criteria)

            listing_ids = None if match_all else report.listing_ids
            matches = await find_matches(session, listing_ids)

            engine = TaskEngine(
                session,
                messenger=messenger,
                threshold=s.MATCH_SCORE_THRESHOLD,
                window_days=s.ANTI_DUP_WINDOW_DAYS,
                outreach_enabled=s.OUTREACH_ENABLED,
                allowlist=s.outreach_allowlist,
            )
            tasks = await engine.process(matches)

            summary = {
                "ingestion": report.as_dict(),
                "matches": len(matches),
                "tasks": tasks.as_dict(),
            }
            await finish_job_success(session, jr, summary)
            await session.commit()
        except Exception as e:
            await session.rollback()
            await finish_job_fail(session, jr, e)
            await session.commit()
            raise

    log.info(
        "pipeline done imported=%s updated=%s matches=%s tasks_created=%s",
        report.total("imported"),
        report.total("updated"),
        len(matches),
        tasks.created,
    )
    return summary
