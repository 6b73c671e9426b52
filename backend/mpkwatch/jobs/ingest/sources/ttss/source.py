import logging
from typing import Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from mpkwatch.jobs.ingest.errors import FetchError, StopListError
from mpkwatch.jobs.ingest.sources.base import BaseSource
from mpkwatch.jobs.ingest.types import AutocompleteResult, PassageMode, Stop, StopList, StopPassages

from .config import TtssConfig
from .http import configure_logging_if_needed, get_json, make_client

logger = logging.getLogger(__name__)

STOPS_PATH = "/geoserviceDispatcher/services/stopinfo/stops"
PASSAGES_PATH = "/services/passageInfo/stopPassages/stopPoint"
AUTOCOMPLETE_PATH = "/services/lookup/autocomplete/json"

# bounding box covering the whole globe, in milliarcseconds
WORLD_BOUNDS = {"left": -648000000, "bottom": -324000000, "right": 648000000, "top": 324000000}

_autocomplete_adapter = TypeAdapter(list[AutocompleteResult])


class TtssSource(BaseSource):
    """
    Krakow TTSS passenger information service:
      - GET stopinfo/stops for the stop catalogue
      - GET stopPassages/stopPoint per stop for live passages

    Use as an async context manager so the shared client is closed.
    """

    def __init__(self, cfg: TtssConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        configure_logging_if_needed()
        self.cfg = cfg
        self.client = make_client(cfg, transport=transport)

        logger.info(
            "TTSS configured base_url=%s transit_mode=%s passage_mode=%s concurrency=%d "
            "timeouts(connect=%.1f read=%.1f write=%.1f pool=%.1f)",
            cfg.base_url,
            cfg.transit_mode.value,
            cfg.passage_mode.value,
            cfg.concurrency,
            cfg.connect_timeout,
            cfg.read_timeout,
            cfg.write_timeout,
            cfg.pool_timeout,
        )

    async def __aenter__(self) -> "TtssSource":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def list_stops(self) -> list[Stop]:
        try:
            data = await get_json(self.client, STOPS_PATH, params=WORLD_BOUNDS)
        except FetchError as e:
            raise StopListError(f"Stop list unavailable: {e}", kind=e.kind) from e

        try:
            stops = StopList.model_validate(data).stops
        except ValidationError as e:
            raise StopListError(f"Stop list has unexpected shape: {e}", kind="decode") from e

        logger.info("TTSS returned %d stops", len(stops))
        return stops

    async def fetch_departures(self, stop_id: str, mode: PassageMode) -> StopPassages:
        params = {"stopPoint": stop_id, "mode": PassageMode(mode).value}
        data = await get_json(self.client, PASSAGES_PATH, params=params, stop_id=stop_id)
        try:
            return StopPassages.model_validate(data)
        except ValidationError as e:
            raise FetchError(
                f"Passages for stop {stop_id} have unexpected shape: {e}",
                kind="decode",
                stop_id=stop_id,
            ) from e

    async def autocomplete(self, query: str) -> list[AutocompleteResult]:
        """Stop-name lookup as used by the TTSS search box."""
        data = await get_json(self.client, AUTOCOMPLETE_PATH, params={"query": query})
        try:
            return _autocomplete_adapter.validate_python(data)
        except ValidationError as e:
            raise FetchError(f"Autocomplete for {query!r} has unexpected shape: {e}", kind="decode") from e
