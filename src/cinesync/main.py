"""Command-line entry point: one-off sync or scheduled syncs."""

import argparse
import asyncio
import logging
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from cinesync.config import settings
from cinesync.scrapers import SCRAPER_REGISTRY
from cinesync.tasks.sync_job import SourceUnreachableError, run_sync

logger = logging.getLogger(__name__)


async def run_scheduled(source: str, days: int, schedule_url: str | None, cron: str) -> None:
    """Run a sync now, then on every tick of ``cron`` until interrupted."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_sync,
        trigger=CronTrigger.from_crontab(cron),
        kwargs={"source": source, "days": days, "schedule_url": schedule_url},
        id=f"sync_{source}",
        name=f"Scheduled sync of {source}",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"Scheduler started, {source} sync registered for '{cron}'")

    try:
        await run_sync(source, days, schedule_url)
    except SourceUnreachableError as e:
        logger.error(f"Startup sync aborted: {e}")

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Sync cinema schedules into the Strapi parties collection."
    )
    parser.add_argument(
        "--source",
        choices=sorted(SCRAPER_REGISTRY),
        default=settings.source,
        help=f"Schedule source (default: {settings.source})",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=settings.days_to_parse,
        metavar="N",
        help=f"Number of days to sync, today included (default: {settings.days_to_parse})",
    )
    parser.add_argument(
        "--url",
        default=settings.cinema_url or None,
        help="Schedule URL overriding the source default",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help=f"Keep running and sync on the cron schedule '{settings.sync_cron}'",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(levelname)s %(message)s",
    )
    logger.info(f"Strapi base: {settings.strapi_url}")
    logger.info(f"Strapi content UID: {settings.strapi_content_uid}")
    logger.info(f"Locale: {settings.strapi_locale or '(default)'}")

    if args.schedule:
        try:
            asyncio.run(run_scheduled(args.source, args.days, args.url, settings.sync_cron))
        except KeyboardInterrupt:
            pass
        return

    try:
        report = asyncio.run(run_sync(args.source, args.days, args.url))
    except SourceUnreachableError as e:
        logger.error(f"{e}. Aborting.")
        sys.exit(1)

    sys.exit(0 if report.failed == 0 and report.failed_pages == 0 else 1)


if __name__ == "__main__":
    main()
