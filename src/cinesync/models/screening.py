"""Canonical screening: one movie, one venue, one calendar day."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Screening:
    """
    Canonical screening folded from one or more raw showtimes.

    Never persisted on its own; the reconciler writes it into the
    content store keyed by (identity_slug, canonical_start, venue_id).
    """

    title: str  # Base title plus ", <age rating>" when known
    base_title: str
    identity_slug: str
    canonical_start: datetime  # Earliest showtime of the day
    venue_id: int
    all_showtimes: list[str] = field(default_factory=list)  # "DD.MM.YYYY в HH:MM", ascending
    detail_page_url: str = ""
    cover_image_url: str | None = None
    abbreviated_title: str | None = None
    description: str | None = None  # Filled in by enrichment

    @property
    def start_iso(self) -> str:
        """Start time as stored in the content store, e.g. 2026-10-20T14:00:00+04:00."""
        return self.canonical_start.isoformat(timespec="seconds")
