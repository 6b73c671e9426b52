"""
Bounded fan-out of per-stop feed requests.

A fixed pool of workers pulls stop ids off a shared queue, performs one fetch
each and pushes the outcome onto a results queue. The consumer sees outcomes
in completion order, exactly one per input stop id, with at most
`concurrency` requests outstanding at any time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Sequence

from mpkwatch.jobs.ingest.errors import FetchError
from mpkwatch.jobs.ingest.sources.base import BaseSource
from mpkwatch.jobs.ingest.types import PassageMode, StopFetchResult

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10


async def _fetch_one(source: BaseSource, stop_id: str, mode: PassageMode) -> StopFetchResult:
    logger.debug("Fetching data for stop %s", stop_id)
    try:
        passages = await source.fetch_departures(stop_id, mode)
    except FetchError as e:
        return StopFetchResult(stop_id=stop_id, error=e)
    except Exception as e:
        # a single stop must not take its worker down
        logger.exception("Unexpected error fetching stop %s", stop_id)
        return StopFetchResult(
            stop_id=stop_id,
            error=FetchError(f"{e.__class__.__name__}: {e}", kind="transport", stop_id=stop_id),
        )
    logger.debug("Finished fetching data for stop %s", stop_id)
    return StopFetchResult(stop_id=stop_id, passages=passages)


async def _worker(
    source: BaseSource,
    mode: PassageMode,
    todo: asyncio.Queue,
    done: asyncio.Queue,
) -> None:
    while True:
        try:
            stop_id = todo.get_nowait()
        except asyncio.QueueEmpty:
            return
        await done.put(await _fetch_one(source, stop_id, mode))


async def iter_stop_passages(
    source: BaseSource,
    stop_ids: Sequence[str],
    *,
    mode: PassageMode = PassageMode.DEPARTURE,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> AsyncIterator[StopFetchResult]:
    """
    Yield one StopFetchResult per stop id as fetches complete (unordered).

    Failed fetches are yielded with `error` set; nothing is dropped. The
    returned async generator is single-use.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    stop_ids = list(stop_ids)
    if not stop_ids:
        return

    todo: asyncio.Queue = asyncio.Queue()
    for stop_id in stop_ids:
        todo.put_nowait(stop_id)
    done: asyncio.Queue = asyncio.Queue()

    n_workers = min(concurrency, len(stop_ids))
    workers = [asyncio.create_task(_worker(source, mode, todo, done)) for _ in range(n_workers)]
    logger.info("Fetching %d stops with %d workers", len(stop_ids), n_workers)

    try:
        for _ in range(len(stop_ids)):
            yield await done.get()
    finally:
        # only non-empty if the consumer stopped early
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
