from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# TTSS reports coordinates in milliarcseconds
MAS_PER_DEGREE = 3_600_000


class TransitMode(str, Enum):
    TRAM = "tram"
    BUS = "bus"


class PassageMode(str, Enum):
    ARRIVAL = "arrival"
    DEPARTURE = "departure"


class TripStatus(str, Enum):
    PREDICTED = "PREDICTED"
    DEPARTED = "DEPARTED"
    STOPPING = "STOPPING"


class FeedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class Stop(FeedModel):
    id: str
    short_name: str = Field(..., alias="shortName")
    category: str
    latitude: int
    longitude: int
    name: str

    @property
    def lat(self) -> float:
        return self.latitude / MAS_PER_DEGREE

    @property
    def lon(self) -> float:
        return self.longitude / MAS_PER_DEGREE


class StopList(FeedModel):
    stops: list[Stop] = Field(default_factory=list)


class TripObservation(FeedModel):
    """One entry of a stop's `actual` / `old` list, kept as the feed sent it."""

    trip_id: str = Field(..., alias="tripId")
    route_id: str = Field(..., alias="routeId")
    vehicle_id: str = Field(..., alias="vehicleId")
    passage_id: str = Field(..., alias="passageid")

    status: str
    actual_relative_time: int = Field(..., alias="actualRelativeTime")
    actual_time: Optional[str] = Field(None, alias="actualTime")   # HH:MM, only when the vehicle is located
    planned_time: str = Field(..., alias="plannedTime")             # HH:MM

    mixed_time: str = Field(..., alias="mixedTime")                 # as shown on the stop display
    direction: str
    pattern_text: str = Field(..., alias="patternText")             # line "number"


class RouteInfo(FeedModel):
    id: str
    name: str
    short_name: str = Field(..., alias="shortName")
    authority: str
    directions: list[str] = Field(default_factory=list)
    route_type: str = Field(..., alias="routeType")


class StopPassages(FeedModel):
    actual: list[TripObservation] = Field(default_factory=list)
    old: list[TripObservation] = Field(default_factory=list)
    first_passage_time: Optional[int] = Field(None, alias="firstPassageTime")  # unix ms
    last_passage_time: Optional[int] = Field(None, alias="lastPassageTime")    # unix ms
    routes: list[RouteInfo] = Field(default_factory=list)
    stop_name: Optional[str] = Field(None, alias="stopName")
    stop_short_name: Optional[str] = Field(None, alias="stopShortName")


class AutocompleteResult(FeedModel):
    name: str
    count: Optional[int] = None
    id: Optional[str] = None
    type: Literal["divider", "stop"]


@dataclass(frozen=True)
class NormalizedTrip:
    trip_id: str
    captured_at: datetime

    actual_relative_time: int              # seconds, negative = already happened
    actual_time: Optional[time]
    planned_time: time

    status: TripStatus

    direction: str
    mixed_time: str
    passage_id: str
    pattern_text: str
    route_id: str
    vehicle_id: str


@dataclass(frozen=True)
class StopFetchResult:
    stop_id: str
    passages: Optional[StopPassages] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BuildResult:
    stop_id: str
    observation: TripObservation
    trip: Optional[NormalizedTrip] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
