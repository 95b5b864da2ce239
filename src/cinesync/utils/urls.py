"""URL helpers for schedule pages, movie pages and poster images."""

import re
from urllib.parse import urljoin, urlsplit

from bs4 import Tag

_MARKDOWN_LINK_RE = re.compile(r"\((https?://[^\s)]+)\)")
_BARE_LINK_RE = re.compile(r"https?://[^\s,]+")
_URL_EXT_RE = re.compile(r"\.([a-zA-Z0-9]+)$")

_CONTENT_TYPE_EXT: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/avif": "avif",
}

_EXT_MIME: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "avif": "image/avif",
}

DEFAULT_IMAGE_EXT = "jpg"


def is_valid_http_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def to_abs_url(maybe_url: str, base: str) -> str:
    """Resolve a possibly relative URL against ``base``."""
    return urljoin(base, maybe_url.strip())


def _strip_markdown_url(value: str) -> str:
    """'[text](https://x/y)' → 'https://x/y'; trims stray commas and spaces."""
    value = str(value or "").strip()
    m = _MARKDOWN_LINK_RE.search(value)
    if m:
        return m.group(1)
    m = _BARE_LINK_RE.search(value)
    if m:
        return m.group(0)
    return value.strip(" ,")


def normalize_page_url(value: str, base: str) -> str:
    """
    Reduce a link to a single canonical page URL.

    Keeps scheme, host and path; forces a trailing slash and drops the
    query string and fragment. Returns "" when nothing usable remains.

    Examples:
        "/cinema/movie/42?utm=x#top" → "https://site/cinema/movie/42/"
    """
    raw = _strip_markdown_url(value).strip('"')
    if not raw:
        return ""
    absolute = to_abs_url(raw, base)
    parts = urlsplit(absolute)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""
    path = parts.path or "/"
    if not path.endswith("/"):
        path += "/"
    return f"{parts.scheme}://{parts.netloc}{path}"


def pick_best_movie_url(candidates: list[str | None], base: str, preferred: str = "/cinema/movie/") -> str:
    """
    Choose one movie page URL among several candidate links.

    Candidates are normalised and de-duplicated; links containing
    ``preferred`` win, then the shortest one.
    """
    urls: list[str] = []
    for candidate in candidates:
        if not candidate:
            continue
        url = normalize_page_url(candidate, base)
        if url and url not in urls:
            urls.append(url)
    if not urls:
        return ""
    urls.sort(key=lambda u: (0 if preferred in u else 1, len(u)))
    return urls[0]


def pick_image_url(img: Tag | None, base: str) -> str | None:
    """Return the absolute URL of an <img>, honouring srcset and lazy-load attributes."""
    if img is None:
        return None
    candidates: list[str] = []
    srcset = img.get("srcset")
    if srcset:
        first = str(srcset).split(",")[0].strip().split()
        if first:
            candidates.append(first[0])
    for attr in ("src", "data-src", "data-original", "data-lazy"):
        value = img.get(attr)
        if value:
            candidates.append(str(value))
    if not candidates:
        return None
    return to_abs_url(candidates[0], base)


def ext_from_url(url: str) -> str:
    """File extension of the URL path, lowercased, or ""."""
    m = _URL_EXT_RE.search(urlsplit(url).path)
    return m.group(1).lower() if m else ""


def ext_from_content_type(content_type: str | None, fallback: str = DEFAULT_IMAGE_EXT) -> str:
    base = (content_type or "").split(";")[0].strip().lower()
    return _CONTENT_TYPE_EXT.get(base, fallback)


def mime_from_ext(ext: str) -> str:
    return _EXT_MIME.get((ext or "").lower().lstrip("."), "application/octet-stream")
