import logging
from typing import Protocol

from sqlalchemy import insert
from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from mpkwatch.jobs.ingest.errors import RejectedPersistenceError, TransientPersistenceError
from mpkwatch.jobs.ingest.types import NormalizedTrip
from mpkwatch.models.trips import Trip

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class Persister(Protocol):
    def insert(self, trip: NormalizedTrip) -> None:
        ...


def trip_row(trip: NormalizedTrip) -> dict:
    return {
        "trip_id": trip.trip_id,
        "captured_at": trip.captured_at,
        "actual_relative_time": trip.actual_relative_time,
        "actual_time": trip.actual_time,
        "direction": trip.direction,
        "mixed_time": trip.mixed_time,
        "passage_id": trip.passage_id,
        "pattern_text": trip.pattern_text,
        "planned_time": trip.planned_time,
        "route_id": trip.route_id,
        "status": trip.status.value,
        "vehicle_id": trip.vehicle_id,
    }


class TripLoader:
    """
    Writes NormalizedTrip rows into `trips`, one INSERT + COMMIT each.

    Plain insert: re-running against an unchanged feed stores the same trips
    again, there is no unique key to conflict on.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, trip: NormalizedTrip) -> None:
        try:
            self.db.execute(insert(Trip).values(**trip_row(trip)))
            self.db.commit()
        except TRANSIENT_ERRORS as e:
            self._rollback()
            raise TransientPersistenceError(f"trip {trip.trip_id}: {e}") from e
        except SQLAlchemyError as e:
            self._rollback()
            raise RejectedPersistenceError(f"trip {trip.trip_id}: {e}") from e

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            # connection already gone; the next insert checks out a fresh one
            logger.warning("Rollback failed", exc_info=True)
