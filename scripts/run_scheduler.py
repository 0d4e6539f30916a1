from __future__ import annotations

import asyncio
import logging

from casamatch.config import settings
from casamatch.db import create_all
from casamatch.jobs.scheduler import build_scheduler


def _quiet_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


async def main() -> None:
    _quiet_logging()
    await create_all()

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info(
        "Scheduler started (pipeline every %s min)", settings.SCHED_PIPELINE_INTERVAL_MINUTES
    )

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        scheduler.shutdown(wait=False)
        logging.getLogger(__name__).info("Scheduler stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
