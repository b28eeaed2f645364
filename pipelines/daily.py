"""Daily pipeline entry point.

    python -m pipelines.daily            # ingest, then deliver
    python -m pipelines.daily ingest
    python -m pipelines.daily deliver
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

import structlog

from core.config import Settings, load_config
from core.errors import ConfigValidationError
from core.log import configure_logging
from orchestration.runner import Services, run_delivery_async, run_ingestion_async

logger = structlog.get_logger()


async def run_daily_pipeline(settings: Settings, sources_path: Path | None, mode: str) -> int:
    """
    Run the daily pipeline.

    Steps:
    1. Ingest: collect from all enabled sources, normalize, filter, store
    2. Deliver: schedule, match and hand over per user

    Returns:
        Process exit code
    """
    _, sources = load_config(sources_path, settings)
    logger.info(
        "Starting daily pipeline",
        date=str(date.today()),
        mode=mode,
        sources_enabled=[s.source_id for s in sources.sources if s.enabled],
    )

    services = Services.from_settings(settings)
    if mode in ("ingest", "all"):
        ctx = await run_ingestion_async(settings, sources, services=services)
        logger.info("Ingestion finished", **ctx.summary()["metrics"])
    if mode in ("deliver", "all"):
        ctx, summary = await run_delivery_async(settings, services=services)
        logger.info(
            "Delivery finished",
            delivered=summary.count("delivered"),
            skipped=summary.count("skipped"),
            failed=summary.count("failed"),
        )

    logger.info("Daily pipeline complete")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the daily pipeline."""
    parser = argparse.ArgumentParser(prog="pipelines.daily")
    parser.add_argument("mode", nargs="?", choices=("ingest", "deliver", "all"), default="all")
    parser.add_argument("--sources", type=Path, default=None, help="Path to sources YAML")
    args = parser.parse_args(argv)

    try:
        settings, _ = load_config(args.sources)
    except ConfigValidationError as e:
        configure_logging()
        logger.error("Configuration error", error=str(e), errors=e.errors)
        sys.exit(1)

    configure_logging(settings.log_level)
    try:
        code = asyncio.run(run_daily_pipeline(settings, args.sources, args.mode))
    except ConfigValidationError as e:
        logger.error("Configuration error", error=str(e), errors=e.errors)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
