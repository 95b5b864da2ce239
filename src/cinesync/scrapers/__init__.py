"""Scraper registry for mapping source names to scraper classes."""

from typing import Type

from cinesync.scrapers.almaz import AlmazScraper
from cinesync.scrapers.base import BaseScraper
from cinesync.scrapers.kinoteatr import KinoteatrScraper
from cinesync.scrapers.models import PageContext, RawShowtime, VenueConfig

# Registry mapping source names to scraper classes
SCRAPER_REGISTRY: dict[str, Type[BaseScraper]] = {
    "almaz": AlmazScraper,
    "kinoteatr": KinoteatrScraper,
}


def get_scraper(source: str, schedule_url: str | None = None) -> BaseScraper | None:
    """
    Get a scraper instance by source name.

    Args:
        source: The source name (e.g., "almaz", "kinoteatr")
        schedule_url: Optional schedule URL overriding the scraper default

    Returns:
        Scraper instance or None if the source is unknown
    """
    scraper_class = SCRAPER_REGISTRY.get(source)
    if scraper_class:
        return scraper_class(schedule_url=schedule_url or None)
    return None


__all__ = [
    "SCRAPER_REGISTRY",
    "get_scraper",
    "BaseScraper",
    "AlmazScraper",
    "KinoteatrScraper",
    "PageContext",
    "RawShowtime",
    "VenueConfig",
]
