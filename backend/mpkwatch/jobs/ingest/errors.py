from typing import Optional


class IngestError(Exception):
    """Root of everything the ingest job raises on purpose."""


class FetchError(IngestError):
    """
    A single feed request failed.

    kind is one of "transport" (network / timeout), "status" (non-2xx reply)
    or "decode" (payload did not match the expected shape).
    """

    def __init__(self, message: str, *, kind: str, stop_id: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.stop_id = stop_id


class StopListError(FetchError):
    """The stop catalogue could not be retrieved. Fatal for a run."""


class BuildError(IngestError):
    pass


class NormalizationError(BuildError):
    pass


class MalformedTimeError(NormalizationError):
    pass


class MalformedDurationError(NormalizationError):
    pass


class UnknownStatusError(NormalizationError):
    pass


class PersistenceError(IngestError):
    kind = "unknown"
    retriable = False


class TransientPersistenceError(PersistenceError):
    """Connection dropped, pool exhausted, statement timed out."""

    kind = "transient"
    retriable = True


class RejectedPersistenceError(PersistenceError):
    """The database refused the row (constraint / bad value)."""

    kind = "rejected"
    retriable = False
