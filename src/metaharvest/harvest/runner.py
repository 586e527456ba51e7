"""Run several source harvests concurrently."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import threading
from typing import Callable, Mapping

from metaharvest.config import HarvestSettings, SourceSettings
from metaharvest.harvest.controller import OaiPmhHarvester
from metaharvest.harvest.models import HarvestSummary, HarvestWindow
from metaharvest.harvest.sink import NormalizingSink
from metaharvest.harvest.store import SqliteStore
from metaharvest.normalize import PROFILES, RecordNormalizer

logger = logging.getLogger(__name__)

HarvestJob = Callable[[], HarvestSummary]


@dataclass(frozen=True, slots=True)
class SourceJob:
    """Harvest one configured source into its own store connection."""

    source_settings: SourceSettings
    settings: HarvestSettings
    window: HarvestWindow | None = None
    cancel_event: threading.Event | None = None

    def __call__(self) -> HarvestSummary:
        source = self.source_settings.source_id
        normalizer = RecordNormalizer(
            PROFILES[self.source_settings.format],
            self.source_settings.normalizer,
            authority=self.source_settings.authority_mapper(),
        )
        with SqliteStore(self.settings.db_path) as store:
            harvester = OaiPmhHarvester(
                source,
                self.settings,
                self.source_settings,
                store,
                cancel_event=self.cancel_event,
            )
            return harvester.harvest(NormalizingSink(source, normalizer, store), self.window)


async def harvest_sources(
    jobs: Mapping[str, HarvestJob],
    cancel_event: threading.Event | None = None,
) -> dict[str, HarvestSummary | BaseException]:
    """Run each job in a worker thread; failures are returned, not raised.

    Sources share nothing but the database file, so one failing source never
    stops the others. ``cancel_event`` is set when the caller is cancelled so
    that running harvests stop at their next page boundary.
    """

    names = list(jobs)
    try:
        results = await asyncio.gather(
            *(asyncio.to_thread(jobs[name]) for name in names),
            return_exceptions=True,
        )
    except asyncio.CancelledError:
        if cancel_event is not None:
            cancel_event.set()
        raise

    outcome: dict[str, HarvestSummary | BaseException] = {}
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            logger.error("[%s] Harvest failed: %s", name, result)
        outcome[name] = result
    return outcome


def run_harvests(
    sources: Mapping[str, SourceSettings],
    settings: HarvestSettings,
    window: HarvestWindow | None = None,
) -> dict[str, HarvestSummary | BaseException]:
    cancel_event = threading.Event()
    jobs = {
        name: SourceJob(source_settings, settings, window=window, cancel_event=cancel_event)
        for name, source_settings in sources.items()
    }
    try:
        return asyncio.run(harvest_sources(jobs, cancel_event))
    except KeyboardInterrupt:
        cancel_event.set()
        raise
