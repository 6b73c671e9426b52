"""
fixtures shared across the ingest tests: a throwaway sqlite database with the
trips table, feed payload builders and an instrumented in-memory feed source.
"""

import asyncio
from typing import Callable, Iterator, Optional

import pytest
from sqlalchemy.orm import Session

from mpkwatch.core.db import Base, make_engine, make_session_factory
from mpkwatch.jobs.ingest.errors import FetchError, StopListError
from mpkwatch.jobs.ingest.sources.base import BaseSource
from mpkwatch.jobs.ingest.sources.ttss.config import TtssConfig
from mpkwatch.jobs.ingest.types import PassageMode, Stop, StopPassages, TransitMode, TripObservation
from mpkwatch.models.trips import Trip  # noqa: F401  registers the table


@pytest.fixture(name="db")
def fixture_db() -> Iterator[Session]:
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def trip_payload(**overrides) -> dict:
    """A single `actual` entry as TTSS sends it."""
    payload = {
        "actualRelativeTime": 120,
        "direction": "Bronowice Małe",
        "mixedTime": "2 %UNIT_MIN%",
        "passageid": "-1152921504326053498",
        "patternText": "4",
        "plannedTime": "10:00",
        "routeId": "8095257447305838596",
        "status": "PREDICTED",
        "tripId": "8095258838875686915",
        "vehicleId": "-1188950301312649999",
    }
    payload.update(overrides)
    return {k: v for k, v in payload.items() if v is not None}


def stop_payload(short_name: str, **overrides) -> dict:
    payload = {
        "category": "tram",
        "id": f"81{short_name}",
        "latitude": 180352066,
        "longitude": 71582044,
        "name": f"Stop {short_name}",
        "shortName": short_name,
    }
    payload.update(overrides)
    return payload


@pytest.fixture(name="make_observation")
def fixture_make_observation() -> Callable[..., TripObservation]:
    def _make(**overrides) -> TripObservation:
        return TripObservation.model_validate(trip_payload(**overrides))

    return _make


@pytest.fixture(name="ttss_config")
def fixture_ttss_config() -> TtssConfig:
    return TtssConfig(
        transit_mode=TransitMode.TRAM,
        passage_mode=PassageMode.DEPARTURE,
        base_url_override=None,
        concurrency=4,
        connect_timeout=1.0,
        read_timeout=1.0,
        write_timeout=1.0,
        pool_timeout=1.0,
    )


class FakeSource(BaseSource):
    """
    In-memory feed. `passages` maps stop id to a StopPassages or an exception
    to raise; `delays` lets individual stops finish late. Tracks how many
    fetches are in flight at once.
    """

    def __init__(
        self,
        stops: Optional[list] = None,
        passages: Optional[dict] = None,
        *,
        delays: Optional[dict] = None,
        stop_list_error: Optional[Exception] = None,
    ):
        self.stops = stops or []
        self.passages = passages or {}
        self.delays = delays or {}
        self.stop_list_error = stop_list_error

        self.list_calls = 0
        self.fetched: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_stops(self) -> list[Stop]:
        self.list_calls += 1
        if self.stop_list_error is not None:
            raise self.stop_list_error
        return [Stop.model_validate(stop_payload(s)) for s in self.stops]

    async def fetch_departures(self, stop_id: str, mode: PassageMode) -> StopPassages:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(stop_id, 0.001))
            self.fetched.append(stop_id)
            value = self.passages.get(stop_id, StopPassages())
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.in_flight -= 1


@pytest.fixture(name="fake_source_cls")
def fixture_fake_source_cls() -> type:
    return FakeSource


class RecordingPersister:
    def __init__(self, fail_for: Optional[dict] = None):
        self.rows = []
        self.fail_for = fail_for or {}

    def insert(self, trip) -> None:
        err = self.fail_for.get(trip.trip_id)
        if err is not None:
            raise err
        self.rows.append(trip)


@pytest.fixture(name="persister_cls")
def fixture_persister_cls() -> type:
    return RecordingPersister


@pytest.fixture(name="stop_list_timeout")
def fixture_stop_list_timeout() -> StopListError:
    return StopListError("Stop list unavailable: ReadTimeout", kind="transport")


@pytest.fixture(name="fetch_timeout")
def fixture_fetch_timeout() -> Callable[[str], FetchError]:
    def _make(stop_id: str) -> FetchError:
        return FetchError("ReadTimeout: timed out", kind="transport", stop_id=stop_id)

    return _make


@pytest.fixture(name="make_trip_payload")
def fixture_make_trip_payload() -> Callable[..., dict]:
    return trip_payload


@pytest.fixture(name="make_stop_payload")
def fixture_make_stop_payload() -> Callable[..., dict]:
    return stop_payload
