"""Text utilities for titles, slugs and descriptions."""

import html
import re

from unidecode import unidecode

_AGE_RATING_RE = re.compile(r"\b(\d{1,2}\s*\+)")


def slugify(text: str) -> str:
    """
    Convert text to a URL-safe slug.

    Non-Latin scripts are transliterated to ASCII first, so "Дюна" becomes
    "diuna" and "Amélie" becomes "amelie".

    Args:
        text: Text to slugify

    Returns:
        Lowercase slug with hyphens
    """
    # Transliterate to ASCII and lowercase
    text = unidecode(text).lower()

    # Replace spaces and underscores with hyphens
    text = re.sub(r"[\s_]+", "-", text)

    # Remove non-alphanumeric characters (except hyphens)
    text = re.sub(r"[^a-z0-9-]", "", text)

    # Remove multiple consecutive hyphens
    text = re.sub(r"-+", "-", text)

    # Strip leading/trailing hyphens
    text = text.strip("-")

    return text


def clean_text(text: str) -> str:
    """
    Decode HTML entities and collapse whitespace.

    Examples:
        "Фильм&nbsp;о  море" → "Фильм о море"
        "&laquo;Дюна&raquo;" → "«Дюна»"
    """
    text = html.unescape(text).replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def extract_age_rating(text: str) -> str | None:
    """
    Find an age classification like "16+" or "6 +" in free text.

    Returns the rating without inner whitespace, or None.
    """
    m = _AGE_RATING_RE.search(text or "")
    if not m:
        return None
    return re.sub(r"\s+", "", m.group(1))


def safe_base_name(name: str) -> str:
    """Reduce a name to characters safe for a local file name."""
    name = re.sub(r"[^a-zA-Z0-9._-]", "-", str(name))
    name = re.sub(r"-+", "-", name)
    return name.strip("-")
