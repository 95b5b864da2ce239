"""Sync job: fetch schedule pages and upsert their screenings into Strapi."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cinesync.config import settings
from cinesync.scrapers import get_scraper
from cinesync.scrapers.base import BaseScraper
from cinesync.scrapers.models import PageContext
from cinesync.services.asset_linker import AssetLinker
from cinesync.services.enrichment import EnrichmentCache, EnrichmentResolver
from cinesync.services.grouper import group_showtimes
from cinesync.services.reconciler import Reconciler, UpsertOutcome
from cinesync.services.strapi_client import StrapiClient

logger = logging.getLogger(__name__)


class SourceUnreachableError(Exception):
    """The schedule site could not be reached at the start of a run."""

    pass


@dataclass
class PageReport:
    """Per-page tally of reconciliation outcomes."""

    url: str
    showtimes: int = 0
    screenings: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    covers_linked: int = 0

    @property
    def succeeded(self) -> int:
        return self.created + self.updated


@dataclass
class SyncReport:
    """Aggregate of a whole run."""

    source: str
    pages: list[PageReport] = field(default_factory=list)
    failed_pages: int = 0

    @property
    def screenings(self) -> int:
        return sum(p.screenings for p in self.pages)

    @property
    def succeeded(self) -> int:
        return sum(p.succeeded for p in self.pages)

    @property
    def skipped(self) -> int:
        return sum(p.skipped for p in self.pages)

    @property
    def failed(self) -> int:
        return sum(p.failed for p in self.pages)


async def check_connection(client: httpx.AsyncClient, url: str) -> None:
    """
    Make sure the schedule site answers at all.

    Raises:
        SourceUnreachableError: On any transport error
    """
    logger.info(f"Testing connection to {url}...")
    try:
        response = await client.get(url, timeout=settings.connection_check_timeout)
    except httpx.HTTPError as e:
        raise SourceUnreachableError(f"Cannot connect to {url}: {e!r}") from e
    logger.info(f"Connection OK. Status: {response.status_code}")


async def fetch_page(client: httpx.AsyncClient, url: str) -> str:
    """Fetch a schedule page, retrying transport errors and error statuses."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.scrape_max_retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.HTTPError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            response = await client.get(url)
            response.raise_for_status()
    return response.text


async def process_page(
    html: str,
    page: PageContext,
    scraper: BaseScraper,
    days: int,
    resolver: EnrichmentResolver,
    reconciler: Reconciler,
    linker: AssetLinker,
    now: datetime | None = None,
) -> PageReport:
    """
    Run extraction, grouping, enrichment and reconciliation for one page.

    Screenings are written one at a time; a failure on one screening is
    counted and the next one is processed.
    """
    report = PageReport(url=page.url)

    showtimes = scraper.extract(html, page)
    report.showtimes = len(showtimes)
    logger.info(f"Found {len(showtimes)} showtimes on {page.url}")

    screenings = group_showtimes(
        showtimes, days, scraper.window_start(page, now), scraper.venue.venue_id
    )
    report.screenings = len(screenings)
    logger.info(f"After grouping and filtering: {len(screenings)} screenings")

    await resolver.resolve(screenings, referer=page.url)

    for screening in screenings:
        try:
            result = await reconciler.upsert(screening)
        except Exception as e:
            logger.warning(
                f"Upsert failed for {screening.title!r} ({screening.identity_slug}): {e}"
            )
            report.failed += 1
            continue

        if result.outcome is UpsertOutcome.CREATED:
            report.created += 1
        elif result.outcome is UpsertOutcome.UPDATED:
            report.updated += 1
        else:
            report.skipped += 1

        if result.id is None:
            continue

        cover = resolver.cover_path(screening)
        if cover and await linker.link(
            cover, result.id, caption=screening.cover_image_url, alt=screening.title
        ):
            report.covers_linked += 1

    logger.info(
        f"Page {page.url}: {report.created} created, {report.updated} updated, "
        f"{report.skipped} skipped, {report.failed} failed, {report.covers_linked} covers"
    )
    return report


async def run_sync(
    source: str | None = None,
    days: int | None = None,
    schedule_url: str | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
    store_transport: httpx.AsyncBaseTransport | None = None,
) -> SyncReport:
    """Synchronise every schedule page of ``source`` into Strapi.

    Raises:
        ValueError: If the source is unknown or ``days`` is negative
        SourceUnreachableError: If the schedule site cannot be reached
    """
    source = source or settings.source
    if days is None:
        days = settings.days_to_parse
    if days < 0:
        raise ValueError(f"days must not be negative, got {days}")

    scraper = get_scraper(source, schedule_url or settings.cinema_url)
    if not scraper:
        raise ValueError(f"No scraper found for source {source!r}")

    report = SyncReport(source=source)
    if days == 0:
        logger.warning(f"Nothing to sync for {source}: window of 0 days")
        return report

    today = datetime.now(scraper.venue.tz).date()
    urls = scraper.page_urls(today, days)
    logger.info(f"Syncing {source}: {len(urls)} page(s), {days} days from {today}")

    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": settings.accept_language,
    }

    async with httpx.AsyncClient(
        timeout=settings.scrape_timeout,
        headers=headers,
        follow_redirects=True,
        transport=http_transport,
    ) as client:
        await check_connection(client, urls[0])

        async with StrapiClient(transport=store_transport) as strapi:
            cache = EnrichmentCache()
            resolver = EnrichmentResolver(client, scraper, cache)
            reconciler = Reconciler(strapi, scraper.venue)
            linker = AssetLinker(strapi)

            for url in urls:
                logger.info(f"Loading: {url}")
                try:
                    html = await fetch_page(client, url)
                except Exception as e:
                    logger.error(f"Request {url} failed: {e!r}")
                    report.failed_pages += 1
                    continue

                page = PageContext(url=url, page_date=scraper.page_date(url))
                report.pages.append(
                    await process_page(html, page, scraper, days, resolver, reconciler, linker)
                )

    logger.info(
        f"Sync complete for {source}: {report.screenings} screenings, "
        f"{report.succeeded} succeeded, {report.skipped} skipped, {report.failed} failed, "
        f"{report.failed_pages} page(s) failed"
    )
    return report
