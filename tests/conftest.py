"""Shared test fixtures."""

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from cinesync.models.screening import Screening


class FakeStrapi:
    """
    In-memory stand-in for the Strapi REST API, served through httpx.MockTransport.

    Enforces uniqueness of (slug, dateStart, place) the way a unique index
    in the real store would, and lets tests inject failures or concurrent
    writers between lookup and write.
    """

    def __init__(self) -> None:
        self.records: dict[int, dict] = {}
        self.uploads: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.next_id = 1
        self.find_status: int | None = None  # Force an error status on lookup
        self.find_response: httpx.Response | None = None  # Canned lookup reply
        self.create_status: int | None = None
        self.update_status: int | None = None
        self.upload_status: int | None = None
        self.before_create: Callable[[dict], None] | None = None
        self.before_update: Callable[[str], None] | None = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def insert(self, slug: str, date_start: str, place: int, **fields) -> dict:
        record_id = self.next_id
        self.next_id += 1
        row = {
            "id": record_id,
            "documentId": f"doc{record_id}",
            "slug": slug,
            "dateStart": date_start,
            "place": place,
            **fields,
        }
        self.records[record_id] = row
        return row

    def matching(self, slug: str, date_start: str, place: int) -> list[dict]:
        return [
            r
            for r in self.records.values()
            if r["slug"] == slug and r["dateStart"] == date_start and r["place"] == place
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        path = request.url.path

        if path == "/api/upload" and request.method == "POST":
            return self._upload(request)
        if path == "/api/parties" and request.method == "GET":
            return self._find(request)
        if path == "/api/parties" and request.method == "POST":
            return self._create(request)
        if path.startswith("/api/parties/") and request.method == "PUT":
            return self._update(request, path.rsplit("/", 1)[1])
        return httpx.Response(405)

    def _find(self, request: httpx.Request) -> httpx.Response:
        if self.find_status:
            return httpx.Response(self.find_status, text="lookup failed")
        if self.find_response is not None:
            return self.find_response
        params = request.url.params
        rows = self.matching(
            params["filters[slug][$eq]"],
            params["filters[dateStart][$eq]"],
            int(params["filters[place][id][$eq]"]),
        )
        size = int(params.get("pagination[pageSize]", "25"))
        return httpx.Response(200, json={"data": rows[:size], "meta": {"pagination": {"total": len(rows)}}})

    def _create(self, request: httpx.Request) -> httpx.Response:
        data = json.loads(request.content)["data"]
        if self.before_create:
            self.before_create(data)
        if self.create_status:
            return httpx.Response(self.create_status, text="internal error")
        if self.matching(data["slug"], data["dateStart"], data["place"]):
            return httpx.Response(
                400,
                json={"error": {"status": 400, "name": "ValidationError", "message": "This attribute must be unique"}},
            )
        row = self.insert(**{"date_start": data.pop("dateStart"), **data})
        return httpx.Response(200, json={"data": row, "meta": {}})

    def _update(self, request: httpx.Request, key: str) -> httpx.Response:
        if self.before_update:
            self.before_update(key)
        if self.update_status:
            return httpx.Response(self.update_status, text="internal error")
        row = next(
            (r for r in self.records.values() if r["documentId"] == key or str(r["id"]) == key),
            None,
        )
        if row is None:
            return httpx.Response(404, json={"error": {"status": 404, "name": "NotFoundError"}})
        row.update(json.loads(request.content)["data"])
        return httpx.Response(200, json={"data": row, "meta": {}})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        if self.upload_status:
            return httpx.Response(self.upload_status, text="upload failed")
        file_id = 100 + len(self.uploads)
        self.uploads.append({"id": file_id, "body": request.content, "headers": request.headers})
        return httpx.Response(200, json=[{"id": file_id, "name": "cover.jpg", "url": "/uploads/cover.jpg"}])


@pytest.fixture
def fake_strapi() -> FakeStrapi:
    return FakeStrapi()


@pytest.fixture
def make_screening() -> Callable[..., Screening]:
    """Factory for screenings at the Almaz venue (+04:00)."""

    def factory(**overrides) -> Screening:
        tz = timezone(timedelta(hours=4))
        fields = {
            "title": "Дюна, 16+",
            "base_title": "Дюна",
            "identity_slug": "10611-diuna-20-10-2026",
            "canonical_start": datetime(2026, 10, 20, 14, 0, tzinfo=tz),
            "venue_id": 10611,
            "all_showtimes": ["20.10.2026 в 14:00", "20.10.2026 в 17:00"],
            "detail_page_url": "https://almazcinema.com/ijv/cinema/movie/123/",
            "cover_image_url": "https://almazcinema.com/upload/posters/dune.jpg",
            "abbreviated_title": "Дюна",
            "description": "Пол Атрейдес объединяется с Чани.",
        }
        fields.update(overrides)
        return Screening(**fields)

    return factory
