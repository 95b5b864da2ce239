"""Cinema Park "Planeta" (Perm) scraper for kinoteatr.ru day pages."""

import logging
import re
from datetime import date, datetime, timedelta
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup, Tag

from cinesync.scrapers.base import BaseScraper, day_offsets
from cinesync.scrapers.models import PageContext, RawShowtime, VenueConfig
from cinesync.utils.text import clean_text, extract_age_rating
from cinesync.utils.urls import normalize_page_url, pick_image_url

logger = logging.getLogger(__name__)

SCHEDULE_URL = "https://kinoteatr.ru/raspisanie-kinoteatrov/perm/planeta/"

DISCOUNT_RULE = (
    "Скидка на покупку билетов по промокоду **10086** по ссылке выше. "
    'Для получения скидки нужно ввести код в поле "Промокод"'
)

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class KinoteatrScraper(BaseScraper):
    """
    Scraper for Cinema Park "Planeta" on kinoteatr.ru.

    The site renders one schedule page per day, selected with a
    ``?date=YYYY-MM-DD`` query parameter. Session buttons only show
    "HH:MM", so the calendar date comes from the page URL.
    """

    name = "kinoteatr"
    venue = VenueConfig(
        venue_id=10984,
        utc_offset=timedelta(hours=5),
        schedule_url=SCHEDULE_URL,
        categories=[28],
        for_cities=[22],
        discount="15%",
        discount_rule=DISCOUNT_RULE,
    )

    def page_urls(self, today: date, days: int) -> list[str]:
        """One URL per day of the window, e.g. ``.../planeta/?date=2026-10-19``."""
        base = self.schedule_url.split("?")[0]
        return [f"{base}?date={day.isoformat()}" for day in day_offsets(today, days)]

    def page_date(self, url: str) -> date | None:
        values = parse_qs(urlsplit(url).query).get("date")
        if not values:
            return None
        try:
            return date.fromisoformat(values[0])
        except ValueError:
            logger.debug(f"Kinoteatr: unparsable date parameter in {url}")
            return None

    def extract(self, html: str, page: PageContext) -> list[RawShowtime]:
        """Parse one kinoteatr.ru day page into raw showtimes."""
        soup = BeautifulSoup(html, "html.parser")
        page_date = page.page_date or datetime.now(self.venue.tz).date()
        showtimes: list[RawShowtime] = []

        movie_cards = soup.select(".shedule_movie.bordered")
        logger.debug(f"Kinoteatr: found {len(movie_cards)} movie cards for {page_date}")

        for card in movie_cards:
            try:
                showtimes.extend(self._parse_card(card, page.url, page_date))
            except Exception as e:
                logger.warning(f"Kinoteatr: failed to parse movie card: {e}")
                continue

        return showtimes

    def _parse_card(self, card: Tag, base_url: str, page_date: date) -> list[RawShowtime]:
        title_elem = card.select_one(".movie_card_header.title")
        base_title = clean_text(title_elem.get_text()) if title_elem else ""
        if not base_title:
            return []

        rating_elem = card.select_one(".movie_card_raiting.sub_title")
        age_rating = extract_age_rating(rating_elem.get_text(" ") if rating_elem else "")

        img = card.select_one(".shedule_movie_img")
        if img is not None and img.name != "img":
            img = img.find("img")
        cover_url = pick_image_url(img, base_url)

        link = card.select_one("a.gtm-ec-list-item-movie")
        detail_url = normalize_page_url(str(link["href"]), base_url) if link and link.get("href") else ""

        showtimes: list[RawShowtime] = []
        for seance in card.select(".shedule_movie_sessions a.buy_seance"):
            time_elem = seance.select_one(".shedule_session_time")
            m = _TIME_RE.match(clean_text(time_elem.get_text()) if time_elem else "")
            if not m:
                continue

            hour, minute = int(m.group(1)), int(m.group(2))
            if hour > 23 or minute > 59:
                continue

            showtime = RawShowtime(
                base_title=base_title,
                age_rating=age_rating,
                start_time=self.combine(page_date, hour, minute),
                cover_image_url=cover_url,
                detail_page_url=detail_url,
            )
            # The site has no separate short title; the full one is used
            showtime.abbreviated_title = showtime.title
            showtimes.append(showtime)

        return showtimes

    def extract_description(self, html: str) -> str:
        """Movie synopsis from a kinoteatr.ru movie page."""
        soup = BeautifulSoup(html, "html.parser")
        elem = soup.select_one('p[itemprop="description"]')
        if elem:
            text = clean_text(elem.get_text(" "))
            if text:
                return text
        meta = soup.find("meta", attrs={"property": "og:description"})
        if meta and meta.get("content"):
            return clean_text(meta["content"])
        return ""
