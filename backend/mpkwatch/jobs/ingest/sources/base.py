from abc import ABC, abstractmethod

from mpkwatch.jobs.ingest.types import PassageMode, Stop, StopPassages

class BaseSource(ABC):
    @abstractmethod
    async def list_stops(self) -> list[Stop]:
        """
        Full stop catalogue for the configured transit mode. Raises StopListError.
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_departures(self, stop_id: str, mode: PassageMode) -> StopPassages:
        """
        Live passages for one stop. Raises FetchError.
        """
        raise NotImplementedError
