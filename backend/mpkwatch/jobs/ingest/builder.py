import logging
from datetime import datetime
from typing import Iterable, Iterator, Optional

from mpkwatch.jobs.ingest.errors import BuildError
from mpkwatch.jobs.ingest.types import BuildResult, NormalizedTrip, TripObservation
from mpkwatch.jobs.ingest.utils.time import (
    capture_timestamp,
    parse_clock_time,
    parse_optional_clock_time,
    to_signed_duration,
    to_status,
)

logger = logging.getLogger(__name__)


def build_trip(obs: TripObservation, captured_at: datetime) -> NormalizedTrip:
    return NormalizedTrip(
        trip_id=obs.trip_id,
        captured_at=captured_at,
        actual_relative_time=to_signed_duration(obs.actual_relative_time),
        actual_time=parse_optional_clock_time(obs.actual_time),
        planned_time=parse_clock_time(obs.planned_time),
        status=to_status(obs.status),
        direction=obs.direction,
        mixed_time=obs.mixed_time,
        passage_id=obs.passage_id,
        pattern_text=obs.pattern_text,
        route_id=obs.route_id,
        vehicle_id=obs.vehicle_id,
    )


def build_records(
    stop_id: str,
    observations: Optional[Iterable[TripObservation]],
    *,
    captured_at: Optional[datetime] = None,
) -> Iterator[BuildResult]:
    """
    One BuildResult per observation, in feed order. A bad observation is
    reported in its own result and does not stop the rest of the batch.
    """
    if not observations:
        return

    captured_at = captured_at or capture_timestamp()

    for obs in observations:
        try:
            trip = build_trip(obs, captured_at)
        except BuildError as e:
            logger.warning(
                "Stop %s trip %s dropped: %s (%s)",
                stop_id,
                obs.trip_id,
                e,
                e.__class__.__name__,
            )
            yield BuildResult(stop_id=stop_id, observation=obs, error=e)
            continue

        yield BuildResult(stop_id=stop_id, observation=obs, trip=trip)
