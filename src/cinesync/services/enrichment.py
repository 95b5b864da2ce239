"""Best-effort enrichment of screenings with descriptions and cover images.

For every page, the resolver launches one task per distinct movie page URL
(description) and one per distinct cover URL (image download) and waits
for all of them to settle. A failing task never cancels its siblings and
never fails a screening: the screening simply goes on without that
description or cover.

Results are memoised in an ``EnrichmentCache`` that lives for one run and
is shared by every page of the run.
"""

import asyncio
import hashlib
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from cinesync.config import settings
from cinesync.models.screening import Screening
from cinesync.scrapers.base import BaseScraper
from cinesync.utils.text import safe_base_name
from cinesync.utils.urls import (
    DEFAULT_IMAGE_EXT,
    ext_from_content_type,
    ext_from_url,
    is_valid_http_url,
)

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentCache:
    """
    Run-scoped memo of resolved enrichment.

    Insert-only: once a URL is resolved its value is never replaced, so
    concurrently running tasks for different URLs can share it safely.
    """

    descriptions: dict[str, str] = field(default_factory=dict)
    images: dict[str, Path] = field(default_factory=dict)

    def add_description(self, url: str, text: str) -> None:
        self.descriptions.setdefault(url, text)

    def add_image(self, url: str, path: Path) -> None:
        self.images.setdefault(url, path)


async def settle_all(tasks: list[Awaitable[Any]]) -> list[Any]:
    """Wait for every task; each slot holds a result or the raised exception."""
    return await asyncio.gather(*tasks, return_exceptions=True)


def cover_file_base(slug: str, image_url: str) -> str:
    """Deterministic file stem: identity slug plus a short hash of the URL."""
    digest = hashlib.md5(image_url.encode("utf-8")).hexdigest()[:8]
    return safe_base_name(f"{slug}-{digest}")


class EnrichmentResolver:
    """Fetches movie descriptions and cover images for grouped screenings."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        scraper: BaseScraper,
        cache: EnrichmentCache,
        images_dir: Path | None = None,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ) -> None:
        """
        Args:
            client: Shared HTTP client (carries the schedule site's cookies)
            scraper: Source scraper, used to parse movie pages
            cache: Run-scoped enrichment cache
            images_dir: Where covers are stored (created if absent)
            max_attempts: Download attempts per image
            backoff: Linear backoff step in seconds between image attempts
        """
        self.client = client
        self.scraper = scraper
        self.cache = cache
        self.images_dir = images_dir or settings.images_dir
        self.max_attempts = max_attempts or settings.image_max_attempts
        self.backoff = settings.image_backoff if backoff is None else backoff

    async def resolve(self, screenings: list[Screening], referer: str | None = None) -> None:
        """
        Enrich ``screenings`` in place.

        Descriptions are fetched once per distinct movie URL and covers once
        per distinct image URL not already in the cache.
        """
        tasks: list[Awaitable[None]] = []

        detail_urls: list[str] = []
        for screening in screenings:
            url = screening.detail_page_url
            if is_valid_http_url(url) and url not in self.cache.descriptions and url not in detail_urls:
                detail_urls.append(url)
        for url in detail_urls:
            tasks.append(self._resolve_description(url, referer))

        # The first screening carrying a cover URL names its file
        cover_slugs: dict[str, str] = {}
        for screening in screenings:
            url = screening.cover_image_url
            if url and url not in self.cache.images and url not in cover_slugs:
                cover_slugs[url] = screening.identity_slug
        for url, slug in cover_slugs.items():
            tasks.append(self._resolve_cover(url, slug, referer))

        if tasks:
            logger.info(
                f"Enriching {len(screenings)} screenings: "
                f"{len(detail_urls)} descriptions, {len(cover_slugs)} covers"
            )
            results = await settle_all(tasks)
            for result in results:
                if isinstance(result, BaseException):
                    logger.warning(f"Enrichment task failed: {result!r}")

        for screening in screenings:
            if not screening.description and screening.detail_page_url in self.cache.descriptions:
                screening.description = self.cache.descriptions[screening.detail_page_url]

    def cover_path(self, screening: Screening) -> Path | None:
        """Local file of the screening's cover, if one was downloaded."""
        if not screening.cover_image_url:
            return None
        return self.cache.images.get(screening.cover_image_url)

    # -------------------------------------------------------------------------
    # Descriptions
    # -------------------------------------------------------------------------

    async def _resolve_description(self, url: str, referer: str | None) -> None:
        description = await self.fetch_description(url, referer)
        self.cache.add_description(url, description)

    async def fetch_description(self, url: str, referer: str | None = None) -> str:
        """
        Fetch a movie page and extract its description.

        Returns "" on any failure.
        """
        try:
            response = await self.client.get(
                url,
                headers=self._headers("text/html,application/xhtml+xml", referer),
                timeout=settings.description_timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch description from {url}: {e!r}")
            return ""

        if response.status_code >= 400:
            logger.warning(f"Description page {url} returned {response.status_code}")
            return ""

        try:
            return self.scraper.extract_description(response.text)
        except Exception as e:
            logger.warning(f"Failed to parse description from {url}: {e}")
            return ""

    # -------------------------------------------------------------------------
    # Covers
    # -------------------------------------------------------------------------

    async def _resolve_cover(self, url: str, slug: str, referer: str | None) -> None:
        try:
            path = await self.download_image(url, cover_file_base(slug, url), referer)
        except Exception as e:
            logger.warning(f"Failed to download cover {url}: {e!r}")
            return
        self.cache.add_image(url, path)

    async def download_image(self, url: str, file_base: str, referer: str | None = None) -> Path:
        """
        Download an image into the images directory.

        The extension comes from the URL path, else from the response
        Content-Type, else defaults to jpg. Existing files are reused and
        never overwritten.

        Raises:
            httpx.HTTPError: When every attempt failed
        """
        self.images_dir.mkdir(parents=True, exist_ok=True)

        ext = ext_from_url(url)
        if ext:
            existing = self.images_dir / f"{file_base}.{ext}"
            if existing.exists():
                logger.info(f"File already exists, skipping: {existing.name}")
                return existing

        response = await self._fetch_image(url, referer)

        if not ext:
            ext = ext_from_content_type(response.headers.get("content-type"), DEFAULT_IMAGE_EXT)
        path = self.images_dir / f"{file_base}.{ext}"
        if path.exists():
            logger.info(f"File already exists, skipping: {path.name}")
            return path

        # Only complete files ever carry the final name
        partial = path.with_name(f"{path.name}.part")
        partial.write_bytes(response.content)
        partial.replace(path)
        logger.info(f"Saved image: {path.name}")
        return path

    async def _fetch_image(self, url: str, referer: str | None) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception_type(httpx.HTTPError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self.client.get(
                    url,
                    headers=self._headers("image/avif,image/webp,image/apng,image/*,*/*;q=0.8", referer),
                    timeout=settings.image_timeout,
                    follow_redirects=True,
                )
                response.raise_for_status()
        return response

    def _headers(self, accept: str, referer: str | None) -> dict[str, str]:
        headers = {
            "User-Agent": settings.user_agent,
            "Accept": accept,
            "Accept-Language": settings.accept_language,
        }
        if referer:
            headers["Referer"] = referer
        return headers
