# casamatch/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import Settings, settings as default_settings
from ..db import AsyncSessionLocal
from ..errors import IngestionAlreadyRunning
from .pipeline import run_pipeline

log = logging.getLogger(__name__)


async def _run_pipeline_quiet(s: Settings) -> None:
    """
    A tick that lands while a run is active is skipped, not queued.
    Any other failure is logged; the JobRun row carries the details.
    """
    try:
        await run_pipeline(AsyncSessionLocal, s=s)
    except IngestionAlreadyRunning:
        log.info("pipeline tick skipped: a run is already in progress")
    except Exception:
        log.exception("scheduled pipeline run failed")


def build_scheduler(s: Settings | None = None) -> AsyncIOScheduler:
    s = s or default_settings
    sched = AsyncIOScheduler()

    sched.add_job(
        lambda: asyncio.create_task(_run_pipeline_quiet(s)),
        "interval",
        minutes=int(s.SCHED_PIPELINE_INTERVAL_MINUTES),
        id="pipeline",
        max_instances=1,
        coalesce=True,
    )

    return sched
