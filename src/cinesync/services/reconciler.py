"""Create-or-update of screenings in the content store."""

import logging
from dataclasses import dataclass
from enum import Enum

from cinesync.models.screening import Screening
from cinesync.schemas.party import PartyPayload, PartyRecord
from cinesync.scrapers.models import VenueConfig
from cinesync.services.strapi_client import (
    StrapiClient,
    StrapiConflictError,
    StrapiError,
    StrapiNotFoundError,
)

logger = logging.getLogger(__name__)

SCHEDULE_HEADER = "**Расписание сеансов:**"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_CONFLICT = "skipped-conflict"


@dataclass
class UpsertResult:
    id: int | None
    outcome: UpsertOutcome


def compose_description(screening: Screening) -> str:
    """
    Build the record description.

    A bulleted schedule block when the screening has more than one
    showtime, then the enrichment description, separated by a blank line
    when both are present.
    """
    parts: list[str] = []
    if len(screening.all_showtimes) > 1:
        lines = "\n".join(f"• {t}" for t in screening.all_showtimes)
        parts.append(f"{SCHEDULE_HEADER}\n{lines}")
    if screening.description and screening.description.strip():
        parts.append(screening.description.strip())
    return "\n\n".join(parts)


class Reconciler:
    """
    Idempotent upsert of screenings keyed by (slug, start time, venue).

    Writes are issued one at a time by the caller; the reconciler itself
    holds no state besides the client and the venue constants.
    """

    def __init__(self, strapi: StrapiClient, venue: VenueConfig) -> None:
        self.strapi = strapi
        self.venue = venue

    def build_payload(self, screening: Screening) -> PartyPayload:
        description = compose_description(screening)
        return PartyPayload(
            title=screening.title,
            abb_title=screening.abbreviated_title or screening.title,
            slug=screening.identity_slug,
            date_start=screening.start_iso,
            site=screening.detail_page_url,
            tel="",
            categories=list(self.venue.categories),
            for_cities=list(self.venue.for_cities),
            place=self.venue.venue_id,
            discount=self.venue.discount,
            discount_rule=self.venue.discount_rule,
            description=description or None,
            locale=self.strapi.locale or None,
        )

    async def find_existing(self, screening: Screening) -> PartyRecord | None:
        """Natural-key lookup; a failed lookup counts as "not found"."""
        try:
            record = await self.strapi.find_party(
                screening.identity_slug, screening.start_iso, self.venue.venue_id
            )
        except StrapiError as e:
            logger.warning(f"Lookup failed for {screening.identity_slug}: {e}")
            return None

        if record:
            logger.info(f"Found existing record: {screening.identity_slug} -> ID {record.id}")
        else:
            logger.info(f"No record for {screening.identity_slug}, a new one will be created")
        return record

    async def upsert(self, screening: Screening) -> UpsertResult:
        """
        Create or update the record for ``screening``.

        Returns:
            UpsertResult with the record id and the outcome

        Raises:
            StrapiError: On any failure other than a natural-key conflict
        """
        existing = await self.find_existing(screening)
        payload = self.build_payload(screening)

        if existing:
            try:
                record_id = await self.strapi.update_party(existing, payload)
            except StrapiNotFoundError:
                logger.warning(
                    f"Record {existing.id} vanished (404) but {screening.identity_slug}"
                    f"+{screening.start_iso} is taken, skipping"
                )
                return UpsertResult(id=None, outcome=UpsertOutcome.SKIPPED_CONFLICT)
            logger.info(f"Updated record ID {record_id} for slug {screening.identity_slug}")
            return UpsertResult(id=record_id, outcome=UpsertOutcome.UPDATED)

        try:
            record_id = await self.strapi.create_party(payload)
        except StrapiConflictError:
            logger.warning(
                f"{screening.identity_slug}+{screening.start_iso} already exists, skipping"
            )
            return UpsertResult(id=None, outcome=UpsertOutcome.SKIPPED_CONFLICT)
        logger.info(f"Created record ID {record_id} for slug {screening.identity_slug}")
        return UpsertResult(id=record_id, outcome=UpsertOutcome.CREATED)
