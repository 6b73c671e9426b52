import logging
import os
import time
from typing import Any, Optional

import httpx

from mpkwatch.jobs.ingest.errors import FetchError

from .config import TtssConfig

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 10


def configure_logging_if_needed() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


async def log_request(request: httpx.Request) -> None:
    logger.debug("HTTP %s %s", request.method, request.url)


def make_client(cfg: TtssConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        connect=cfg.connect_timeout,
        read=cfg.read_timeout,
        write=cfg.write_timeout,
        pool=cfg.pool_timeout,
    )
    # the pool must fit every in-flight fetch
    limits = httpx.Limits(max_connections=cfg.concurrency, max_keepalive_connections=cfg.concurrency)
    return httpx.AsyncClient(
        base_url=cfg.base_url,
        timeout=timeout,
        limits=limits,
        headers={"Accept": "application/json"},
        event_hooks={"request": [log_request]},
        transport=transport,
    )


async def get_json(
    client: httpx.AsyncClient,
    path: str,
    *,
    params: Optional[dict] = None,
    stop_id: Optional[str] = None,
) -> Any:
    """
    Single GET, no retries. Every failure surfaces as a FetchError.
    """
    t0 = time.perf_counter()
    try:
        r = await client.get(path, params=params)
    except httpx.HTTPError as e:
        elapsed = time.perf_counter() - t0
        logger.warning("%s GET %s stop=%s after %.2fs", e.__class__.__name__, path, stop_id, elapsed)
        raise FetchError(f"{e.__class__.__name__}: {e}", kind="transport", stop_id=stop_id) from e

    elapsed = time.perf_counter() - t0
    if r.is_error:
        snippet = (r.text or "")[:300]
        logger.error(
            "HTTP %d GET %s stop=%s after %.2fs body_snippet=%r",
            r.status_code,
            path,
            stop_id,
            elapsed,
            snippet,
        )
        raise FetchError(f"HTTP {r.status_code} for {path}", kind="status", stop_id=stop_id)

    if elapsed > SLOW_REQUEST_SECONDS:
        logger.info("GET %s stop=%s completed in %.2fs status=%d (slow)", path, stop_id, elapsed, r.status_code)
    else:
        logger.debug("GET %s stop=%s completed in %.2fs status=%d", path, stop_id, elapsed, r.status_code)

    try:
        return r.json()
    except ValueError as e:
        raise FetchError(f"Response from {path} is not JSON: {e}", kind="decode", stop_id=stop_id) from e
