"""
Run one tracking pass, optionally importing keywords first.

Examples:
    python scripts/run_tracking.py --priority high
    python scripts/run_tracking.py --import-config config/tracking-config.json --project acme
    python scripts/run_tracking.py --import-csv keywords.csv --project acme --domain acme.com
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings, load_tracking_config
from core.database import build_engine, build_session_factory
from core.exceptions import TrackerException
from core.logging import setup_logging
from models.base import PriorityTier
from tracking.alerts import AlertEngine
from tracking.batch_scheduler import BatchScheduler
from tracking.importers import KeywordCSVImporter, TrackingConfigImporter
from tracking.providers.dataforseo import DataForSEOClient
from tracking.repository import Repository

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Track keyword positions")
    parser.add_argument(
        "--priority",
        choices=[p.value for p in PriorityTier],
        help="Priority tier to track (default: all tiers)"
    )
    parser.add_argument("--project", help="Limit to one project id")
    parser.add_argument("--import-config", help="Tracking config JSON to import first")
    parser.add_argument("--import-csv", help="Keyword CSV to import first")
    parser.add_argument("--domain", help="Domain for CSV rows without one")
    parser.add_argument("--import-only", action="store_true", help="Import keywords and exit")
    return parser.parse_args(argv)


async def run_tracking(args) -> int:
    """Returns the process exit code"""
    config = load_tracking_config(settings)
    engine = build_engine(settings.DATABASE_URL)
    SessionLocal = build_session_factory(engine)

    try:
        async with SessionLocal() as session:
            repository = Repository(session)

            if args.import_config:
                result = await TrackingConfigImporter(repository).import_file(
                    args.import_config, project_id=args.project
                )
                logger.info(f"Imported config: {result['imported']} new, {result['updated']} updated")

            if args.import_csv:
                result = await KeywordCSVImporter(
                    repository,
                    default_project_id=args.project,
                    default_domain=args.domain
                ).import_file(args.import_csv)
                logger.info(
                    f"Imported CSV: {result['imported']} new, {result['updated']} updated, "
                    f"{result['invalid']} invalid"
                )

            if args.import_only:
                return 0

            runner = BatchScheduler(
                repository=repository,
                provider=DataForSEOClient(),
                alert_engine=AlertEngine(repository, config.alerts),
                config=config,
            )
            priority = PriorityTier(args.priority) if args.priority else None
            result = await runner.run(priority, project_id=args.project)

            logger.info(
                f"Tracking finished: {result['keywords_succeeded']} succeeded, "
                f"{result['keywords_failed']} failed, {result['alerts_created']} alerts"
            )
            if result["keywords_processed"] and not result["keywords_succeeded"]:
                return 1
            return 0

    except TrackerException as e:
        logger.error(f"Tracking aborted: {e}")
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_tracking(parse_args())))
