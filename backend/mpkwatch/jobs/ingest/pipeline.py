"""
Run driver for one harvest: list stops once, fan out the per-stop fetches,
build each trip record and persist it as soon as its stop's batch arrives.

States: IDLE -> LISTING_STOPS -> FETCHING -> DRAINING -> DONE, with FAILED
reachable only from LISTING_STOPS. Per-stop and per-record failures are
counted in the RunOutcome and never fail the run.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from mpkwatch.jobs.ingest.builder import build_records
from mpkwatch.jobs.ingest.errors import FetchError, PersistenceError
from mpkwatch.jobs.ingest.loader import Persister
from mpkwatch.jobs.ingest.scheduler import DEFAULT_CONCURRENCY, iter_stop_passages
from mpkwatch.jobs.ingest.sources.base import BaseSource
from mpkwatch.jobs.ingest.types import PassageMode, StopFetchResult

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    LISTING_STOPS = "listing_stops"
    FETCHING = "fetching"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunOutcome:
    state: RunState = RunState.IDLE
    error: Optional[str] = None

    stops_total: int = 0
    stops_fetched: int = 0
    stops_failed: int = 0
    stops_empty: int = 0

    records_built: int = 0
    records_failed: int = 0

    records_persisted: int = 0
    persist_failed: int = 0
    persist_transient: int = 0
    persist_rejected: int = 0

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED

    def as_dict(self) -> dict:
        d = asdict(self)
        d["state"] = self.state.value
        return d


class IngestRun:
    def __init__(
        self,
        source: BaseSource,
        persister: Persister,
        *,
        mode: PassageMode = PassageMode.DEPARTURE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.source = source
        self.persister = persister
        self.mode = PassageMode(mode)
        self.concurrency = concurrency
        self.outcome = RunOutcome()

    @property
    def state(self) -> RunState:
        return self.outcome.state

    def _enter(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.outcome.state.value, state.value)
        self.outcome.state = state

    async def run(self) -> RunOutcome:
        if self.outcome.state is not RunState.IDLE:
            raise RuntimeError(f"IngestRun already used (state={self.outcome.state.value})")

        self._enter(RunState.LISTING_STOPS)
        logger.info("Fetching all stops.")
        try:
            stops = await self.source.list_stops()
        except FetchError as e:
            logger.error("Stop list retrieval failed, aborting run: %s", e)
            self.outcome.error = str(e)
            self._enter(RunState.FAILED)
            return self.outcome
        except Exception as e:
            self.outcome.error = repr(e)
            self._enter(RunState.FAILED)
            raise

        # feed ids are short names; keep first occurrence only
        stop_ids = list(dict.fromkeys(s.short_name for s in stops))
        self.outcome.stops_total = len(stop_ids)
        logger.info("Finished fetching all stops: %d distinct stop ids.", len(stop_ids))

        self._enter(RunState.FETCHING)
        results = iter_stop_passages(self.source, stop_ids, mode=self.mode, concurrency=self.concurrency)
        async with aclosing(results):
            async for result in results:
                await self._handle_stop(result)

        self._enter(RunState.DRAINING)
        logger.info("Finished the execution: %s", self.outcome.as_dict())
        self._enter(RunState.DONE)
        return self.outcome

    async def _handle_stop(self, result: StopFetchResult) -> None:
        o = self.outcome
        if not result.ok:
            o.stops_failed += 1
            logger.warning(
                "Stop %s fetch failed kind=%s: %s",
                result.stop_id,
                getattr(result.error, "kind", "unknown"),
                result.error,
            )
            return

        o.stops_fetched += 1
        actual = result.passages.actual if result.passages is not None else []
        if not actual:
            o.stops_empty += 1
            logger.info("No future trips fetched for stop %s.", result.stop_id)
            return

        persisted = 0
        for built in build_records(result.stop_id, actual):
            if not built.ok:
                o.records_failed += 1
                continue

            o.records_built += 1
            try:
                # one write at a time, off the loop so fetches keep moving
                await asyncio.to_thread(self.persister.insert, built.trip)
            except PersistenceError as e:
                o.persist_failed += 1
                if e.retriable:
                    o.persist_transient += 1
                else:
                    o.persist_rejected += 1
                logger.error(
                    "DB error stop=%s trip=%s kind=%s: %s",
                    result.stop_id,
                    built.trip.trip_id,
                    e.kind,
                    e,
                )
                continue
            persisted += 1

        o.records_persisted += persisted
        logger.info("Processing data for stop %s succeeded: %d/%d trips stored.", result.stop_id, persisted, len(actual))
