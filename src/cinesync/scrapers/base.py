"""Base scraper interface for all schedule sources."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta

from bs4 import BeautifulSoup

from cinesync.scrapers.models import PageContext, RawShowtime, VenueConfig
from cinesync.utils.text import clean_text

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    Abstract base class for all schedule scrapers.

    A scraper is a pure extraction strategy: it turns the markup of one
    fetched page into raw showtimes and never touches the network itself.
    Fetching, grouping and synchronisation are shared by every source.
    """

    name: str = ""
    venue: VenueConfig

    def __init__(self, schedule_url: str | None = None) -> None:
        self.schedule_url = schedule_url or self.venue.schedule_url

    @abstractmethod
    def extract(self, html: str, page: PageContext) -> list[RawShowtime]:
        """
        Parse a schedule page into raw showtimes.

        Args:
            html: Page markup
            page: Identity of the page (URL and, for per-day pages, its date)

        Returns:
            List of raw showtimes

        Raises:
            Should NOT raise exceptions. Malformed entries are dropped one by one.
        """
        pass

    def extract_description(self, html: str) -> str:
        """
        Extract a free-text movie description from a detail page.

        The default looks at the Open Graph and meta description tags.
        """
        soup = BeautifulSoup(html, "html.parser")
        return self._meta_description(soup)

    def page_urls(self, today: date, days: int) -> list[str]:
        """Return the schedule pages to fetch for a run starting on ``today``."""
        return [self.schedule_url]

    def page_date(self, url: str) -> date | None:
        """Return the calendar date a page is parameterised by, if any."""
        return None

    def window_start(self, page: PageContext, now: datetime | None = None) -> datetime:
        """
        Start of the day window used to filter showtimes from ``page``.

        Midnight of the page's own date for per-day sources, otherwise
        midnight of the current day, both in the venue's local offset.
        """
        tz = self.venue.tz
        day = page.page_date
        if day is None:
            day = (now or datetime.now(tz)).astimezone(tz).date()
        return datetime(day.year, day.month, day.day, tzinfo=tz)

    def local_time(self, timestamp: float) -> datetime:
        """Convert an epoch timestamp into the venue's fixed-offset local time."""
        return datetime.fromtimestamp(timestamp, tz=self.venue.tz)

    def combine(self, day: date, hour: int, minute: int) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=self.venue.tz)

    @staticmethod
    def _meta_description(soup: BeautifulSoup) -> str:
        for attrs in ({"name": "description"}, {"property": "og:description"}):
            meta = soup.find("meta", attrs=attrs)
            if meta and meta.get("content"):
                return clean_text(meta["content"])
        return ""


def day_offsets(today: date, days: int) -> list[date]:
    """Calendar days ``today``, ``today + 1`` ... for ``days`` days."""
    return [today + timedelta(days=i) for i in range(days)]
