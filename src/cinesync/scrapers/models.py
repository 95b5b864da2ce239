"""Data models for scrapers."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone


@dataclass
class RawShowtime:
    """
    Raw showtime data from a cinema scraper.

    This is the output format that all scrapers must return.
    The grouper folds these into one screening per title and day.
    """

    base_title: str  # Film title as it appears on the schedule page
    start_time: datetime  # Start time with the venue's fixed UTC offset
    age_rating: str | None = None  # e.g. "16+"
    duration_minutes: int | None = None
    cover_image_url: str | None = None  # Absolute poster URL
    detail_page_url: str = ""  # Normalised movie page URL or ""
    abbreviated_title: str | None = None  # Short title shown by some sites

    def __post_init__(self) -> None:
        """Validate that start_time is timezone-aware."""
        if self.start_time.tzinfo is None:
            raise ValueError("start_time must be timezone-aware")

    @property
    def title(self) -> str:
        """Base title with the ", <age rating>" suffix when one was found."""
        if self.age_rating:
            return f"{self.base_title}, {self.age_rating}"
        return self.base_title

    @property
    def end_time(self) -> datetime | None:
        if self.duration_minutes and self.duration_minutes > 0:
            return self.start_time + timedelta(minutes=self.duration_minutes)
        return None


@dataclass
class PageContext:
    """Identity of a fetched schedule page."""

    url: str
    page_date: date | None = None  # Set for sources with one page per day


@dataclass
class VenueConfig:
    """Fixed per-venue constants injected verbatim into every record."""

    venue_id: int
    utc_offset: timedelta
    schedule_url: str
    categories: list[int] = field(default_factory=list)
    for_cities: list[int] = field(default_factory=list)
    discount: str = ""
    discount_rule: str = ""

    @property
    def tz(self) -> timezone:
        return timezone(self.utc_offset)
