import os
from dataclasses import dataclass, replace
from typing import Optional

from mpkwatch.jobs.ingest.types import PassageMode, TransitMode

TTSS_TRAM_API_URL = "http://www.ttss.krakow.pl/internetservice"
TTSS_BUS_API_URL = "http://ttss.mpk.krakow.pl/internetservice"

DEFAULT_BASE_URLS = {
    TransitMode.TRAM: TTSS_TRAM_API_URL,
    TransitMode.BUS: TTSS_BUS_API_URL,
}


@dataclass(frozen=True)
class TtssConfig:
    transit_mode: TransitMode
    passage_mode: PassageMode
    base_url_override: Optional[str]

    concurrency: int

    connect_timeout: float
    read_timeout: float
    write_timeout: float
    pool_timeout: float

    @property
    def base_url(self) -> str:
        return self.base_url_override or DEFAULT_BASE_URLS[self.transit_mode]

    def with_overrides(self, **changes) -> "TtssConfig":
        """Return a copy with every non-None keyword applied (CLI flags)."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if "transit_mode" in changes:
            changes["transit_mode"] = TransitMode(changes["transit_mode"])
        if "passage_mode" in changes:
            changes["passage_mode"] = PassageMode(changes["passage_mode"])
        cfg = replace(self, **changes)
        if cfg.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {cfg.concurrency}")
        return cfg


def load_config() -> TtssConfig:
    concurrency = int(os.getenv("TTSS_CONCURRENCY", "10"))
    if concurrency < 1:
        raise ValueError(f"TTSS_CONCURRENCY must be >= 1, got {concurrency}")

    return TtssConfig(
        transit_mode=TransitMode(os.getenv("TTSS_TRANSIT_MODE", "tram")),
        passage_mode=PassageMode(os.getenv("TTSS_PASSAGE_MODE", "departure")),
        base_url_override=os.getenv("TTSS_BASE_URL") or None,
        concurrency=concurrency,
        connect_timeout=float(os.getenv("TTSS_CONNECT_TIMEOUT_SECONDS", "10")),
        read_timeout=float(os.getenv("TTSS_READ_TIMEOUT_SECONDS", "30")),
        write_timeout=float(os.getenv("TTSS_WRITE_TIMEOUT_SECONDS", "30")),
        pool_timeout=float(os.getenv("TTSS_POOL_TIMEOUT_SECONDS", "30")),
    )
