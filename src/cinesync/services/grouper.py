"""Fold raw showtimes into one screening per title and calendar day."""

import logging
from datetime import date, datetime, timedelta

from cinesync.models.screening import Screening
from cinesync.scrapers.models import RawShowtime
from cinesync.utils.text import slugify

logger = logging.getLogger(__name__)


def format_showtime(start: datetime) -> str:
    """Human-readable showtime, e.g. "20.10.2026 в 14:00"."""
    return f"{start.strftime('%d.%m.%Y')} в {start.strftime('%H:%M')}"


def screening_slug(venue_id: int, base_title: str, day: date) -> str:
    """Natural-key slug unique per venue, title and day."""
    return slugify(f"{venue_id}-{base_title}-{day.strftime('%d-%m-%Y')}")


def group_showtimes(
    showtimes: list[RawShowtime],
    days: int,
    window_start: datetime,
    venue_id: int,
) -> list[Screening]:
    """
    Collapse raw showtimes into canonical screenings.

    Showtimes outside ``[window_start, window_start + days)`` are dropped.
    The rest are partitioned by (base title, calendar day in the offset of
    ``window_start``); each partition becomes one screening whose start,
    title, links and cover come from its earliest showtime.

    Args:
        showtimes: Raw showtimes from a scraper
        days: Size of the day window
        window_start: Timezone-aware midnight the window starts at
        venue_id: Venue the showtimes belong to

    Returns:
        Screenings ordered by start time, then title
    """
    if window_start.tzinfo is None:
        raise ValueError("window_start must be timezone-aware")

    tz = window_start.tzinfo
    window_end = window_start + timedelta(days=days)
    logger.info(f"Grouping showtimes for {days} days from {window_start.date()} to {window_end.date()}")

    groups: dict[tuple[str, date], list[RawShowtime]] = {}
    for showtime in showtimes:
        if not showtime.base_title:
            continue
        if showtime.start_time < window_start or showtime.start_time >= window_end:
            continue
        local_day = showtime.start_time.astimezone(tz).date()
        groups.setdefault((showtime.base_title, local_day), []).append(showtime)

    screenings: list[Screening] = []
    for (base_title, local_day), members in groups.items():
        # Ties on the same instant resolve on the remaining fields so the
        # result never depends on input order
        members.sort(
            key=lambda s: (
                s.start_time,
                s.age_rating or "",
                s.detail_page_url,
                s.cover_image_url or "",
                s.abbreviated_title or "",
            )
        )
        earliest = members[0]
        screenings.append(
            Screening(
                title=earliest.title,
                base_title=base_title,
                identity_slug=screening_slug(venue_id, base_title, local_day),
                canonical_start=earliest.start_time.astimezone(tz),
                venue_id=venue_id,
                all_showtimes=[format_showtime(s.start_time.astimezone(tz)) for s in members],
                detail_page_url=earliest.detail_page_url,
                cover_image_url=earliest.cover_image_url,
                abbreviated_title=earliest.abbreviated_title,
            )
        )

    screenings.sort(key=lambda s: (s.canonical_start, s.base_title))
    return screenings
