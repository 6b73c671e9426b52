import argparse
import asyncio
import logging
import sys
from typing import Optional

from mpkwatch.core.db import database_url_from_env, make_engine, make_session_factory, normalize_database_url
from mpkwatch.jobs.ingest.loader import TripLoader
from mpkwatch.jobs.ingest.pipeline import IngestRun, RunOutcome
from mpkwatch.jobs.ingest.sources.ttss.config import TtssConfig, load_config
from mpkwatch.jobs.ingest.sources.ttss.http import configure_logging_if_needed
from mpkwatch.jobs.ingest.sources.ttss.source import TtssSource
from mpkwatch.jobs.ingest.types import PassageMode, TransitMode

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Harvest live TTSS passages into the trips table")
    p.add_argument("--transit-mode", choices=[m.value for m in TransitMode], help="tram or bus (default: TTSS_TRANSIT_MODE or tram)")
    p.add_argument("--passage-mode", choices=[m.value for m in PassageMode], help="arrival or departure (default: TTSS_PASSAGE_MODE or departure)")
    p.add_argument("--concurrency", type=int, help="Max in-flight stop requests (default: TTSS_CONCURRENCY or 10)")
    p.add_argument("--base-url", help="Override the TTSS base URL")
    p.add_argument("--database-url", help="SQLAlchemy URL (default: DATABASE_URL or POSTGRES_* parts)")
    return p


async def harvest(cfg: TtssConfig, loader: TripLoader) -> RunOutcome:
    async with TtssSource(cfg) as source:
        run = IngestRun(source, loader, mode=cfg.passage_mode, concurrency=cfg.concurrency)
        return await run.run()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging_if_needed()

    cfg = load_config().with_overrides(
        transit_mode=args.transit_mode,
        passage_mode=args.passage_mode,
        concurrency=args.concurrency,
        base_url_override=args.base_url,
    )
    database_url = normalize_database_url(args.database_url) if args.database_url else database_url_from_env()

    engine = make_engine(database_url)
    db = make_session_factory(engine)()

    try:
        outcome = asyncio.run(harvest(cfg, TripLoader(db)))
    finally:
        db.close()
        engine.dispose()

    print(outcome.as_dict())

    if outcome.failed:
        logger.error("Run failed: %s", outcome.error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
