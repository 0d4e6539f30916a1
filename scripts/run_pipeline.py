from __future__ import annotations

import argparse
import asyncio
import json
import logging

from casamatch.config import settings
from casamatch.db import AsyncSessionLocal, create_all
from casamatch.domain.types import SearchCriteria
from casamatch.errors import IngestionAlreadyRunning
from casamatch.jobs.pipeline import build_coordinator, criteria_from_settings, run_pipeline


def _quiet_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _criteria(args: argparse.Namespace) -> SearchCriteria:
    base = criteria_from_settings(settings)
    return SearchCriteria(
        city=args.city or base.city,
        zone=args.zone,
        min_price=args.min_price if args.min_price is not None else base.min_price,
        max_price=args.max_price if args.max_price is not None else base.max_price,
        min_size=args.min_size if args.min_size is not None else base.min_size,
        max_size=args.max_size,
        bedrooms=args.bedrooms,
        property_type=args.property_type,
    )


async def main() -> int:
    parser = argparse.ArgumentParser(description="Run ingest -> match -> tasks once.")
    parser.add_argument("--city", default=None)
    parser.add_argument("--zone", default=None)
    parser.add_argument("--min-price", type=int, default=None)
    parser.add_argument("--max-price", type=int, default=None)
    parser.add_argument("--min-size", type=int, default=None)
    parser.add_argument("--max-size", type=int, default=None)
    parser.add_argument("--bedrooms", type=int, default=None)
    parser.add_argument("--property-type", default=None)
    parser.add_argument("--match-all", action="store_true", help="Score every available listing, not just this run's")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args()

    _quiet_logging(args.log_level)
    await create_all()

    coordinator = build_coordinator(AsyncSessionLocal, settings)
    try:
        summary = await run_pipeline(
            AsyncSessionLocal,
            criteria=_criteria(args),
            coordinator=coordinator,
            match_all=args.match_all,
        )
    except IngestionAlreadyRunning as e:
        logging.getLogger(__name__).error("%s", e)
        return 2
    finally:
        # let detached geocoding finish before the loop goes away
        if coordinator.geocode_dispatcher is not None:
            await coordinator.geocode_dispatcher.drain()

    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
