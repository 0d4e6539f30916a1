# casamatch/service_layer/ingestion.py
"""
One ingestion run:

  fetch    every registered adapter concurrently (bounded by adapter count), each
           under its own timeout; failures and timeouts land in that adapter's report
  persist  adapter by adapter, with a short pause between adapters; every record is
           normalized, classified, de-duplicated within the run by portal:source_id,
           and upserted in its own transaction
  flag     listings written in the run that match a listing on another portal are
           marked is_multiagency on both sides; rows are never merged
  geocode  new listings without coordinates get a detached geocoding task

Only IngestionAlreadyRunning escapes; everything else is a counter in the report.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.repos.listings import ListingRepository
from ..adapters.sources.base import AdapterRegistry, SourceAdapter, cleanup_adapter
from ..config import settings
from ..domain.normalize import ListingNormalizer
from ..domain.owner_classification import OwnerClassifier
from ..domain.similarity import same_property
from ..domain.types import RawListing, SearchCriteria
from ..errors import IngestionAlreadyRunning, NormalizationError, PersistenceFailure, SourceFailure
from ..models import utcnow
from .geocoding import GeocodeDispatcher

log = logging.getLogger(__name__)


class RunGuard:
    """At most one active run per holder. A second caller is refused, not queued."""

    def __init__(self) -> None:
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def try_acquire(self) -> bool:
        # no await between check and set, so this is atomic on the event loop
        if self._active:
            return False
        self._active = True
        return True

    def release(self) -> None:
        self._active = False


@dataclass
class AdapterReport:
    portal: str
    name: str
    available: bool = True
    timed_out: bool = False
    fetched: int = 0
    imported: int = 0
    updated: int = 0
    skipped_duplicate: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    errors_truncated: int = 0
    duration_s: float = 0.0

    def add_error(self, message: str, limit: int) -> None:
        if len(self.errors) < limit:
            self.errors.append(message)
        else:
            self.errors_truncated += 1

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IngestionReport:
    started_at: datetime
    criteria: dict[str, Any]
    finished_at: datetime | None = None
    adapters: list[AdapterReport] = field(default_factory=list)
    listing_ids: list[int] = field(default_factory=list)
    new_listing_ids: list[int] = field(default_factory=list)
    multiagency_flagged: int = 0

    def adapter(self, portal: str) -> AdapterReport | None:
        return next((a for a in self.adapters if a.portal == portal), None)

    def total(self, counter: str) -> int:
        return sum(int(getattr(a, counter)) for a in self.adapters)

    @property
    def ok(self) -> bool:
        return all(a.available and not a.timed_out and not a.errors for a in self.adapters)

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "criteria": self.criteria,
            "totals": {
                k: self.total(k)
                for k in ("fetched", "imported", "updated", "skipped_duplicate", "failed")
            },
            "adapters": [a.as_dict() for a in self.adapters],
            "listing_ids": list(self.listing_ids),
            "multiagency_flagged": self.multiagency_flagged,
        }


class IngestionCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: AdapterRegistry,
        *,
        normalizer: ListingNormalizer | None = None,
        classifier: OwnerClassifier | None = None,
        geocode_dispatcher: GeocodeDispatcher | None = None,
        run_guard: RunGuard | None = None,
        adapter_timeout_s: float | None = None,
        adapter_delay_s: float | None = None,
        max_errors_per_adapter: int | None = None,
        clock: Callable[[], datetime] = utcnow,
        repository_factory: Callable[[AsyncSession], ListingRepository] = ListingRepository,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.normalizer = normalizer or ListingNormalizer()
        self.classifier = classifier or OwnerClassifier.from_settings()
        self.geocode_dispatcher = geocode_dispatcher
        self.run_guard = run_guard or RunGuard()
        self.adapter_timeout_s = float(
            adapter_timeout_s if adapter_timeout_s is not None else settings.INGESTION_ADAPTER_TIMEOUT_S
        )
        self.adapter_delay_s = float(adapter_delay_s if adapter_delay_s is not None else settings.INGESTION_ADAPTER_DELAY_S)
        self.max_errors = int(
            max_errors_per_adapter if max_errors_per_adapter is not None else settings.INGESTION_MAX_ERRORS_PER_ADAPTER
        )
        self.clock = clock
        self.repository_factory = repository_factory

        self.last_run_at: datetime | None = None
        self.last_finished_at: datetime | None = None
        self.last_success_at: datetime | None = None
        self.last_report: IngestionReport | None = None

    # -------------------------
    # Public
    # -------------------------

    async def run_ingestion(self, criteria: SearchCriteria) -> IngestionReport:
        if not self.run_guard.try_acquire():
            raise IngestionAlreadyRunning("an ingestion run is already in progress")
        try:
            report = await self._run(criteria)
        finally:
            self.run_guard.release()

        self.last_report = report
        self.last_finished_at = report.finished_at
        if report.ok:
            self.last_success_at = report.finished_at
        return report

    def status(self) -> dict[str, Any]:
        last = self.last_report
        return {
            "running": self.run_guard.active,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "adapters": [
                {
                    "portal": a.portal_id,
                    "name": a.name,
                    "available": (last.adapter(a.portal_id).available if last and last.adapter(a.portal_id) else None),
                }
                for a in self.registry
            ],
            "last_report": last.as_dict() if last else None,
        }

    # -------------------------
    # Run
    # -------------------------

    async def _run(self, criteria: SearchCriteria) -> IngestionReport:
        started = self.clock()
        self.last_run_at = started
        report = IngestionReport(started_at=started, criteria=criteria.as_dict())

        adapters = list(self.registry)
        reports = [AdapterReport(portal=a.portal_id, name=a.name) for a in adapters]
        report.adapters = reports
        log.info("ingestion start adapters=%s criteria=%s", [a.portal_id for a in adapters], report.criteria)

        sem = asyncio.Semaphore(max(1, len(adapters)))
        fetched = await asyncio.gather(
            *(self._fetch(a, r, criteria, sem) for a, r in zip(adapters, reports))
        )

        seen: set[str] = set()
        for i, (r, raws) in enumerate(zip(reports, fetched)):
            if i > 0 and self.adapter_delay_s > 0:
                await asyncio.sleep(self.adapter_delay_s)
            await self._persist(r, raws, seen, report)

        await self._flag_multiagency(report)

        report.finished_at = self.clock()
        log.info(
            "ingestion done fetched=%s imported=%s updated=%s duplicates=%s failed=%s",
            report.total("fetched"),
            report.total("imported"),
            report.total("updated"),
            report.total("skipped_duplicate"),
            report.total("failed"),
        )
        return report

    async def _fetch(
        self,
        adapter: SourceAdapter,
        r: AdapterReport,
        criteria: SearchCriteria,
        sem: asyncio.Semaphore,
    ) -> list[RawListing]:
        async with sem:
            t0 = time.monotonic()
            try:
                return await self._fetch_one(adapter, r, criteria)
            finally:
                await cleanup_adapter(adapter)
                r.duration_s = round(time.monotonic() - t0, 3)

    async def _fetch_one(self, adapter: SourceAdapter, r: AdapterReport, criteria: SearchCriteria) -> list[RawListing]:
        try:
            available = await asyncio.wait_for(adapter.is_available(), timeout=self.adapter_timeout_s)
        except Exception as e:
            r.available = False
            self._source_failure(r, SourceFailure(adapter.portal_id, f"health check failed: {type(e).__name__}: {e}"))
            return []
        if not available:
            r.available = False
            self._source_failure(r, SourceFailure(adapter.portal_id, "adapter not available"))
            return []

        try:
            raws = await asyncio.wait_for(adapter.search(criteria), timeout=self.adapter_timeout_s)
        except asyncio.TimeoutError:
            r.timed_out = True
            self._source_failure(r, SourceFailure(adapter.portal_id, f"search timed out after {self.adapter_timeout_s:g}s"))
            return []
        except Exception as e:
            self._source_failure(r, SourceFailure(adapter.portal_id, f"search failed: {type(e).__name__}: {e}"))
            return []

        raws = list(raws or [])
        r.fetched = len(raws)
        return raws

    def _source_failure(self, r: AdapterReport, err: SourceFailure) -> None:
        log.warning("source failure %s", err)
        r.add_error(str(err), self.max_errors)

    async def _persist(
        self,
        r: AdapterReport,
        raws: list[RawListing],
        seen: set[str],
        report: IngestionReport,
    ) -> None:
        for raw in raws:
            try:
                listing = self.normalizer.normalize(raw)
            except NormalizationError as e:
                r.failed += 1
                r.add_error(f"normalize: {e}", self.max_errors)
                continue

            if listing.key in seen:
                r.skipped_duplicate += 1
                continue
            seen.add(listing.key)

            classification = self.classifier.classify(listing.signals)

            try:
                async with self.session_factory() as session:
                    row, created = await self.repository_factory(session).upsert(
                        listing, classification, now=self.clock()
                    )
                    listing_id = row.id
                    try:
                        await session.commit()
                    except SQLAlchemyError as e:
                        raise PersistenceFailure(listing.source_id, f"{type(e).__name__}: {e}") from e
            except PersistenceFailure as e:
                r.failed += 1
                r.add_error(str(e), self.max_errors)
                log.warning("persist failed portal=%s %s", r.portal, e)
                continue

            report.listing_ids.append(listing_id)
            if created:
                r.imported += 1
                report.new_listing_ids.append(listing_id)
                if self.geocode_dispatcher is not None and not listing.has_coordinates:
                    self.geocode_dispatcher.dispatch(listing_id, listing.address, listing.city)
            else:
                r.updated += 1

    async def _flag_multiagency(self, report: IngestionReport) -> None:
        if not report.listing_ids:
            return
        run_ids = set(report.listing_ids)
        try:
            async with self.session_factory() as session:
                repo = self.repository_factory(session)
                fresh = await repo.list_available(report.listing_ids)
                pool = await repo.list_available_in_cities([row.city for row in fresh])

                hits: set[int] = set()
                for a in fresh:
                    for b in pool:
                        if b.portal == a.portal:
                            continue
                        # run-vs-run pairs are compared once
                        if b.id in run_ids and b.id < a.id:
                            continue
                        if same_property(a, b):
                            hits.update((a.id, b.id))

                report.multiagency_flagged = await repo.mark_multiagency(sorted(hits))
                await session.commit()
        except SQLAlchemyError as e:
            log.warning("multi-agency pass failed: %s: %s", type(e).__name__, e)
            return

        if report.multiagency_flagged:
            log.info("multi-agency: flagged %s listings", report.multiagency_flagged)
