"""Almaz Cinema (Izhevsk) schedule scraper."""

import json
import logging
from datetime import timedelta

from bs4 import BeautifulSoup, Tag

from cinesync.scrapers.base import BaseScraper
from cinesync.scrapers.models import PageContext, RawShowtime, VenueConfig
from cinesync.utils.text import clean_text, extract_age_rating
from cinesync.utils.urls import pick_best_movie_url, pick_image_url

logger = logging.getLogger(__name__)

SCHEDULE_URL = "https://almazcinema.com/ijv/cinema/53/schedule/"

DISCOUNT_RULE = (
    "Скидка на взрослый билет при покупке билета по ссылке выше по промокоду **99001365**\n"
    "**Для покупки билета**:\n"
    "- Нужно пройти регистрацию на сайте Алмаз Синема\n"
    '- Промокод вводить в поле "БОНУСЫ"\n'
    "Возможна покупка нескольких взрослых билетов."
)

# Showtime buttons; the ".sale" variant is matched by the plain selector too
_SHOWTIME_SELECTOR = ".seances .format .content-list a.btn.btn__time"

_DESCRIPTION_SELECTORS = [
    "div.description",
    "div.movie-desc",
    "div.movie_desc",
    "div.movie-description",
    "div.synopsis",
    "div.summary",
    "div.about",
    "div[itemprop=description]",
]


class AlmazScraper(BaseScraper):
    """
    Scraper for Almaz Cinema.

    The schedule page lists every day in the booking horizon as an
    ``.item.day`` block. Each showtime button carries a ``data-data`` JSON
    attribute with the epoch timestamp and running time, so no date
    parsing from visible text is needed.
    """

    name = "almaz"
    venue = VenueConfig(
        venue_id=10611,
        utc_offset=timedelta(hours=4),
        schedule_url=SCHEDULE_URL,
        categories=[28],
        for_cities=[2],
        discount="20%",
        discount_rule=DISCOUNT_RULE,
    )

    def extract(self, html: str, page: PageContext) -> list[RawShowtime]:
        """Parse the Almaz schedule page into raw showtimes."""
        soup = BeautifulSoup(html, "html.parser")
        showtimes: list[RawShowtime] = []

        movie_cards = soup.select(".item.day .scheduleList .scheduleMovie__item")
        logger.debug(f"Almaz: found {len(movie_cards)} movie cards")

        for card in movie_cards:
            try:
                showtimes.extend(self._parse_card(card, page.url))
            except Exception as e:
                logger.warning(f"Almaz: failed to parse movie card: {e}")
                continue

        return showtimes

    def _parse_card(self, card: Tag, base_url: str) -> list[RawShowtime]:
        title_elem = card.select_one(".scheduleMovie__item-content .title h3")
        base_title = clean_text(title_elem.get_text()) if title_elem else ""
        if not base_title:
            return []

        content = card.select_one(".scheduleMovie__item-content")
        age_rating = extract_age_rating(content.get_text(" ") if content else "")

        abbr = card.select_one(
            ".scheduleMovie__item-content .title .abbr, .scheduleMovie__item-content .title abbr"
        )
        abbreviated_title = (clean_text(abbr.get_text()) if abbr else "") or base_title

        cover_url = pick_image_url(
            card.select_one(".scheduleMovie__item-poster img"), base_url
        ) or pick_image_url(card.select_one(".scheduleMovie__item-hposter img"), base_url)

        showtimes: list[RawShowtime] = []
        for button in card.select(_SHOWTIME_SELECTOR):
            showtime = self._parse_showtime(
                button, card, base_url, base_title, age_rating, abbreviated_title, cover_url
            )
            if showtime:
                showtimes.append(showtime)
        return showtimes

    def _parse_showtime(
        self,
        button: Tag,
        card: Tag,
        base_url: str,
        base_title: str,
        age_rating: str | None,
        abbreviated_title: str,
        cover_url: str | None,
    ) -> RawShowtime | None:
        data = self._parse_data_attr(button.get("data-data"))

        try:
            timestamp = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            return None
        if timestamp <= 0:
            return None
        try:
            start_time = self.local_time(timestamp)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Almaz: timestamp out of range for {base_title!r}: {timestamp}")
            return None

        duration = data.get("length")
        if not duration and isinstance(data.get("duration"), dict):
            duration = data["duration"].get("release")
        try:
            duration_minutes = int(duration) if duration else None
        except (TypeError, ValueError):
            duration_minutes = None

        return RawShowtime(
            base_title=base_title,
            age_rating=age_rating,
            start_time=start_time,
            duration_minutes=duration_minutes,
            cover_image_url=cover_url,
            detail_page_url=self._movie_url(card, base_url, data),
            abbreviated_title=abbreviated_title,
        )

    @staticmethod
    def _parse_data_attr(raw: str | list | None) -> dict:
        if not raw or not isinstance(raw, str):
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def _movie_url(self, card: Tag, base_url: str, data: dict) -> str:
        candidates: list[str | None] = []
        for selector in (
            "a.movie__item-cover",
            ".scheduleMovie__item-poster a",
            ".scheduleMovie__item-content .title a",
        ):
            link = card.select_one(selector)
            if link and link.get("href"):
                candidates.append(str(link["href"]))
        for key in ("movieUrl", "url", "href", "link"):
            value = data.get(key)
            if isinstance(value, list):
                value = value[0] if value else None
            if value:
                candidates.append(str(value))
        return pick_best_movie_url(candidates, base_url)

    def extract_description(self, html: str) -> str:
        """Movie description from an Almaz movie page."""
        soup = BeautifulSoup(html, "html.parser")
        for selector in _DESCRIPTION_SELECTORS:
            elem = soup.select_one(selector)
            if elem:
                text = clean_text(elem.get_text(" "))
                if text:
                    return text
        return self._meta_description(soup)
