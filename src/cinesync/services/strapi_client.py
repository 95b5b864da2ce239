"""Strapi REST client for the "parties" collection and media uploads."""

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from cinesync.config import settings
from cinesync.schemas.party import PartyPayload, PartyRecord, UploadedFile
from cinesync.utils.urls import mime_from_ext

logger = logging.getLogger(__name__)

# Fragments Strapi uses in 400 responses when a unique attribute is taken
_UNIQUE_FRAGMENTS = ("unique", "already taken", "already exists")


class StrapiError(Exception):
    """Base exception for Strapi client errors."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StrapiNotFoundError(StrapiError):
    """Raised when the target record does not exist (404)."""

    pass


class StrapiConflictError(StrapiError):
    """Raised when a write violates a uniqueness constraint."""

    pass


class StrapiClient:
    """
    Async HTTP client for the Strapi content API.

    Use as an async context manager so that all calls of one run share a
    connection pool:

        async with StrapiClient() as strapi:
            record = await strapi.find_party(slug, date_start, place_id)
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        collection: str | None = None,
        content_uid: str | None = None,
        locale: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Strapi client.

        Args:
            base_url: Strapi root URL (uses settings if not provided)
            token: API token (uses settings if not provided)
            collection: Collection API name, e.g. "parties"
            content_uid: Content-type UID used to link uploads, e.g. "api::party.party"
            locale: i18n locale appended to queries, "" for the default locale
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or settings.strapi_url).rstrip("/")
        self.token = settings.strapi_token if token is None else token
        self.collection = collection or settings.strapi_collection
        self.content_uid = content_uid or settings.strapi_content_uid
        self.locale = settings.strapi_locale if locale is None else locale
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.token:
            logger.warning("STRAPI_TOKEN not configured, Strapi may reject requests")

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "StrapiClient":
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=settings.store_timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Parties
    # -------------------------------------------------------------------------

    async def find_party(self, slug: str, date_start: str, place_id: int) -> PartyRecord | None:
        """
        Look up a party by its natural key.

        Args:
            slug: Identity slug
            date_start: ISO start time with offset
            place_id: Venue id

        Returns:
            The matching record or None

        Raises:
            StrapiError: On transport errors or unexpected responses
        """
        params = {
            "filters[slug][$eq]": slug,
            "filters[dateStart][$eq]": date_start,
            "filters[place][id][$eq]": str(place_id),
            "pagination[pageSize]": "1",
        }
        if self.locale:
            params["locale"] = self.locale

        data = await self._request("GET", f"/api/{self.collection}", params=params)
        if not isinstance(data, dict):
            raise StrapiError(f"Malformed lookup response for {slug}: {str(data)[:200]}")
        rows = data.get("data") or []
        if not isinstance(rows, list):
            raise StrapiError(f"Malformed lookup response for {slug}: {str(rows)[:200]}")
        if not rows:
            return None

        try:
            return PartyRecord.model_validate(rows[0])
        except ValidationError as e:
            raise StrapiError(f"Malformed party row for {slug}: {e}") from e

    async def create_party(self, payload: PartyPayload) -> int:
        """Create a party and return its numeric id."""
        data = await self._request("POST", f"/api/{self.collection}", json=payload.to_strapi())
        return self._record_id(data)

    async def update_party(self, record: PartyRecord, payload: PartyPayload) -> int:
        """
        Update a party in place and return its numeric id.

        Strapi 5 addresses entries by ``documentId``; older versions by the
        numeric id. The key the store handed back on lookup is used.
        """
        key = record.document_id or str(record.id)
        params = {"locale": self.locale} if self.locale else None
        data = await self._request(
            "PUT", f"/api/{self.collection}/{key}", params=params, json=payload.to_strapi()
        )
        try:
            return self._record_id(data)
        except StrapiError:
            return record.id

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    async def upload_file(
        self,
        path: Path,
        ref_id: int,
        field: str = "cover",
        caption: str | None = None,
        alt: str | None = None,
    ) -> UploadedFile:
        """
        Upload a local file and attach it to ``field`` of record ``ref_id``.

        Raises:
            StrapiError: On HTTP errors or an empty upload response
        """
        name = path.name
        mime = mime_from_ext(path.suffix)
        files = {"files": (name, path.read_bytes(), mime)}
        form = {
            "ref": self.content_uid,
            "refId": str(ref_id),
            "field": field,
            "fileInfo": json.dumps({"caption": caption or name, "alternativeText": alt or name}),
        }

        result = await self._request(
            "POST", "/api/upload", data=form, files=files, timeout=settings.upload_timeout
        )
        if not isinstance(result, list) or not result:
            raise StrapiError("Upload returned empty array")
        try:
            return UploadedFile.model_validate(result[0])
        except ValidationError as e:
            raise StrapiError(f"Malformed upload response: {e}") from e

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if self._client is None:
            raise StrapiError("Client not initialized. Use async context manager.")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StrapiError(f"{method} {path} failed: {e!r}") from e

        return self._handle_response(response, f"{method} {path}")

    @staticmethod
    def _handle_response(response: httpx.Response, what: str) -> Any:
        """
        Map an HTTP response to JSON or to the matching exception.

        Raises:
            StrapiNotFoundError: On 404
            StrapiConflictError: On 400/409 mentioning a uniqueness violation
            StrapiError: On any other non-2xx status or a non-JSON body
        """
        status = response.status_code
        if 200 <= status < 300:
            try:
                return response.json()
            except ValueError as e:
                raise StrapiError(f"{what} -> {status}: invalid JSON", status, response.text) from e

        body = response.text
        message = f"{what} -> {status}\n{body}"
        if status == 404:
            raise StrapiNotFoundError(message, status, body)
        if status in (400, 409) and any(f in body.lower() for f in _UNIQUE_FRAGMENTS):
            raise StrapiConflictError(message, status, body)
        raise StrapiError(message, status, body)

    @staticmethod
    def _record_id(data: Any) -> int:
        """Numeric id from ``{"data": {"id": ...}}`` or a bare ``{"id": ...}``."""
        if isinstance(data, dict):
            row = data.get("data") if isinstance(data.get("data"), dict) else data
            record_id = row.get("id")
            if isinstance(record_id, int):
                return record_id
        raise StrapiError(f"Response has no record id: {str(data)[:200]}")
