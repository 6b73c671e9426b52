import re
from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from mpkwatch.jobs.ingest.errors import MalformedDurationError, MalformedTimeError, UnknownStatusError
from mpkwatch.jobs.ingest.types import TripStatus

KRAKOW = ZoneInfo("Europe/Warsaw")

_CLOCK_RE = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")


def parse_clock_time(text: str) -> time:
    """
    Convert "HH:MM" (24h, zero padded) into a time of day.
    Anything else, including "8:15" and "", is a MalformedTimeError.
    """
    if not isinstance(text, str):
        raise MalformedTimeError(f"Bad HH:MM value: {text!r}")
    m = _CLOCK_RE.fullmatch(text)
    if m is None:
        raise MalformedTimeError(f"Bad HH:MM value: {text!r}")
    return time(int(m.group(1)), int(m.group(2)))


def parse_optional_clock_time(text: Optional[str]) -> Optional[time]:
    """None stays None; a present value must still be a valid HH:MM."""
    if text is None:
        return None
    return parse_clock_time(text)


def to_signed_duration(value: int) -> int:
    # bool is an int subclass but never a duration
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedDurationError(f"Bad relative time: {value!r}")
    return value


def to_status(text: str) -> TripStatus:
    try:
        return TripStatus(text)
    except ValueError:
        raise UnknownStatusError(f"Unknown trip status: {text!r}") from None


def capture_timestamp() -> datetime:
    return datetime.now(tz=KRAKOW)
