from dataclasses import replace
from datetime import datetime, time, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from mpkwatch.jobs.ingest.builder import build_trip
from mpkwatch.jobs.ingest.errors import RejectedPersistenceError, TransientPersistenceError
from mpkwatch.jobs.ingest.loader import TripLoader, trip_row
from mpkwatch.models.trips import Trip

CAPTURED = datetime(2024, 5, 6, 8, 0, tzinfo=timezone.utc)


def test_insert_writes_one_row(db, make_observation) -> None:
    trip = build_trip(make_observation(actualTime="10:01"), CAPTURED)

    TripLoader(db).insert(trip)

    row = db.execute(select(Trip)).scalar_one()
    assert row.trip_id == trip.trip_id
    assert row.status == "PREDICTED"
    assert row.planned_time == time(10, 0)
    assert row.actual_time == time(10, 1)
    assert row.vehicle_id == "-1188950301312649999"
    assert row.actual_relative_time == 120


def test_insert_is_not_idempotent(db, make_observation) -> None:
    trip = build_trip(make_observation(), CAPTURED)
    loader = TripLoader(db)

    loader.insert(trip)
    loader.insert(trip)

    assert db.execute(select(func.count()).select_from(Trip)).scalar_one() == 2


def test_rejected_row_does_not_poison_session(db, make_observation) -> None:
    good = build_trip(make_observation(tripId="good"), CAPTURED)
    bad = replace(good, trip_id=None)
    loader = TripLoader(db)

    with pytest.raises(RejectedPersistenceError) as exc:
        loader.insert(bad)
    assert exc.value.retriable is False
    assert exc.value.kind == "rejected"

    loader.insert(good)
    assert db.execute(select(Trip.trip_id)).scalars().all() == ["good"]


def test_operational_error_is_transient(make_observation) -> None:
    session = MagicMock()
    session.execute.side_effect = OperationalError("INSERT", {}, Exception("server closed the connection"))
    trip = build_trip(make_observation(), CAPTURED)

    with pytest.raises(TransientPersistenceError) as exc:
        TripLoader(session).insert(trip)

    assert exc.value.retriable is True
    session.rollback.assert_called_once()
    session.commit.assert_not_called()


def test_trip_row_uses_status_literal(make_observation) -> None:
    row = trip_row(build_trip(make_observation(status="STOPPING"), CAPTURED))
    assert row["status"] == "STOPPING"
    assert row["actual_time"] is None
