"""Unit tests for description and cover enrichment."""

import asyncio
from collections import Counter
from pathlib import Path

import httpx
import pytest

from cinesync.scrapers.almaz import AlmazScraper
from cinesync.services.enrichment import (
    EnrichmentCache,
    EnrichmentResolver,
    cover_file_base,
    settle_all,
)

MOVIE_URL = "https://almazcinema.com/ijv/cinema/movie/123/"
OTHER_MOVIE_URL = "https://almazcinema.com/ijv/cinema/movie/456/"
COVER_URL = "https://almazcinema.com/upload/posters/dune.jpg"
REFERER = "https://almazcinema.com/ijv/cinema/53/schedule/"


class FakeSite:
    """Serves movie pages and posters, counting hits per URL."""

    def __init__(self) -> None:
        self.hits: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []
        self.pages: dict[str, str] = {
            MOVIE_URL: '<div class="description">Пески Арракиса.</div>',
            OTHER_MOVIE_URL: '<div class="description">Москва, 1930-е.</div>',
        }
        self.images: dict[str, tuple[bytes, str]] = {COVER_URL: (b"jpeg-bytes", "image/jpeg")}
        self.failures: dict[str, int] = {}  # URL -> number of 503s before success
        self.broken: set[str] = set()  # URLs that raise a transport error

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.hits[url] += 1
        self.requests.append(request)
        if url in self.broken:
            raise httpx.ConnectError("connection reset", request=request)
        if self.failures.get(url, 0) >= self.hits[url]:
            return httpx.Response(503)
        if url in self.pages:
            return httpx.Response(200, text=self.pages[url])
        if url in self.images:
            content, content_type = self.images[url]
            return httpx.Response(200, content=content, headers={"content-type": content_type})
        return httpx.Response(404)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
async def client(site: FakeSite):
    async with httpx.AsyncClient(transport=httpx.MockTransport(site.handler)) as client:
        yield client


@pytest.fixture
def resolver(client: httpx.AsyncClient, tmp_path: Path) -> EnrichmentResolver:
    return EnrichmentResolver(
        client, AlmazScraper(), EnrichmentCache(), images_dir=tmp_path, max_attempts=3, backoff=0
    )


# ---------------------------------------------------------------------------
# Descriptions
# ---------------------------------------------------------------------------


class TestDescriptions:
    async def test_one_fetch_per_distinct_movie_url(self, site, resolver, make_screening) -> None:
        screenings = [
            make_screening(identity_slug="a", description=None, cover_image_url=""),
            make_screening(identity_slug="b", description=None, cover_image_url=""),
            make_screening(
                identity_slug="c", description=None, cover_image_url="", detail_page_url=OTHER_MOVIE_URL
            ),
        ]
        await resolver.resolve(screenings, referer=REFERER)

        assert site.hits[MOVIE_URL] == 1
        assert site.hits[OTHER_MOVIE_URL] == 1
        assert [s.description for s in screenings] == [
            "Пески Арракиса.",
            "Пески Арракиса.",
            "Москва, 1930-е.",
        ]

    async def test_cache_is_reused_across_pages(self, site, resolver, make_screening) -> None:
        await resolver.resolve([make_screening(description=None, cover_image_url="")])
        later = make_screening(identity_slug="later", description=None, cover_image_url="")
        await resolver.resolve([later])

        assert site.hits[MOVIE_URL] == 1
        assert later.description == "Пески Арракиса."

    async def test_invalid_detail_url_is_not_fetched(self, site, resolver, make_screening) -> None:
        screening = make_screening(description=None, cover_image_url="", detail_page_url="")
        await resolver.resolve([screening])
        assert site.requests == []
        assert screening.description is None

    async def test_error_status_gives_empty_description(self, site, resolver) -> None:
        site.failures[MOVIE_URL] = 99
        assert await resolver.fetch_description(MOVIE_URL) == ""

    async def test_transport_error_gives_empty_description(self, site, resolver) -> None:
        site.broken.add(MOVIE_URL)
        assert await resolver.fetch_description(MOVIE_URL) == ""

    async def test_sends_browser_headers_and_referer(self, site, resolver) -> None:
        await resolver.fetch_description(MOVIE_URL, referer=REFERER)
        request = site.requests[0]
        assert request.headers["Referer"] == REFERER
        assert request.headers["Accept-Language"].startswith("ru-RU")
        assert request.headers["User-Agent"]


# ---------------------------------------------------------------------------
# Covers
# ---------------------------------------------------------------------------


class TestCovers:
    async def test_downloads_cover_once_named_after_first_screening(
        self, site, resolver, make_screening, tmp_path: Path
    ) -> None:
        first = make_screening(identity_slug="first-slug")
        second = make_screening(identity_slug="second-slug")
        await resolver.resolve([first, second], referer=REFERER)

        assert site.hits[COVER_URL] == 1
        path = resolver.cover_path(first)
        assert path == tmp_path / f"{cover_file_base('first-slug', COVER_URL)}.jpg"
        assert resolver.cover_path(second) == path
        assert path.read_bytes() == b"jpeg-bytes"

    async def test_retries_transient_failures(self, site, resolver, tmp_path: Path) -> None:
        site.failures[COVER_URL] = 2
        path = await resolver.download_image(COVER_URL, "dune")

        assert site.hits[COVER_URL] == 3
        assert path == tmp_path / "dune.jpg"

    async def test_gives_up_after_max_attempts(self, site, resolver) -> None:
        site.failures[COVER_URL] = 99
        with pytest.raises(httpx.HTTPStatusError):
            await resolver.download_image(COVER_URL, "dune")
        assert site.hits[COVER_URL] == 3

    async def test_failed_cover_is_not_cached(self, site, resolver, make_screening) -> None:
        site.broken.add(COVER_URL)
        screening = make_screening()
        await resolver.resolve([screening])

        assert resolver.cover_path(screening) is None
        assert COVER_URL not in resolver.cache.images

    async def test_extension_from_content_type(self, site, resolver, tmp_path: Path) -> None:
        url = "https://cdn.example.com/posters/dune"
        site.images[url] = (b"webp-bytes", "image/webp")
        assert await resolver.download_image(url, "dune") == tmp_path / "dune.webp"

    async def test_extension_defaults_to_jpg(self, site, resolver, tmp_path: Path) -> None:
        url = "https://cdn.example.com/posters/dune"
        site.images[url] = (b"bytes", "application/octet-stream")
        assert await resolver.download_image(url, "dune") == tmp_path / "dune.jpg"

    async def test_existing_file_is_kept(self, site, resolver, tmp_path: Path) -> None:
        existing = tmp_path / "dune.jpg"
        existing.write_bytes(b"old")

        assert await resolver.download_image(COVER_URL, "dune") == existing
        assert existing.read_bytes() == b"old"
        assert site.hits[COVER_URL] == 0

    async def test_leftover_partial_file_is_replaced(self, site, resolver, tmp_path: Path) -> None:
        leftover = tmp_path / "dune.jpg.part"
        leftover.write_bytes(b"trunc")

        path = await resolver.download_image(COVER_URL, "dune")

        assert path.read_bytes() == b"jpeg-bytes"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["dune.jpg"]

    async def test_failed_download_leaves_no_file(self, site, resolver, tmp_path: Path) -> None:
        site.broken.add(COVER_URL)
        with pytest.raises(httpx.ConnectError):
            await resolver.download_image(COVER_URL, "dune")
        assert list(tmp_path.iterdir()) == []

    async def test_creates_images_dir(self, client, tmp_path: Path) -> None:
        images_dir = tmp_path / "nested" / "images"
        resolver = EnrichmentResolver(
            client, AlmazScraper(), EnrichmentCache(), images_dir=images_dir, backoff=0
        )
        path = await resolver.download_image(COVER_URL, "dune")
        assert path.parent == images_dir


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------


class TestFailureIsolation:
    async def test_one_failure_does_not_cancel_siblings(self, site, resolver, make_screening) -> None:
        site.broken.add(MOVIE_URL)
        failing = make_screening(identity_slug="a", description=None)
        working = make_screening(
            identity_slug="b", description=None, cover_image_url="", detail_page_url=OTHER_MOVIE_URL
        )
        await resolver.resolve([failing, working])

        assert not failing.description
        assert working.description == "Москва, 1930-е."
        assert resolver.cover_path(failing) is not None

    async def test_settle_all_collects_results_and_exceptions(self) -> None:
        async def ok() -> int:
            await asyncio.sleep(0)
            return 1

        async def boom() -> int:
            raise RuntimeError("boom")

        results = await settle_all([ok(), boom(), ok()])
        assert results[0] == 1 and results[2] == 1
        assert isinstance(results[1], RuntimeError)


class TestCoverFileBase:
    def test_is_deterministic(self) -> None:
        assert cover_file_base("slug", COVER_URL) == cover_file_base("slug", COVER_URL)

    def test_differs_per_url(self) -> None:
        assert cover_file_base("slug", COVER_URL) != cover_file_base("slug", COVER_URL + "?v=2")

    def test_starts_with_slug(self) -> None:
        assert cover_file_base("10611-diuna-20-10-2026", COVER_URL).startswith("10611-diuna-20-10-2026-")


class TestEnrichmentCache:
    def test_first_value_wins(self, tmp_path: Path) -> None:
        cache = EnrichmentCache()
        cache.add_description(MOVIE_URL, "first")
        cache.add_description(MOVIE_URL, "second")
        cache.add_image(COVER_URL, tmp_path / "a.jpg")
        cache.add_image(COVER_URL, tmp_path / "b.jpg")
        assert cache.descriptions[MOVIE_URL] == "first"
        assert cache.images[COVER_URL] == tmp_path / "a.jpg"
