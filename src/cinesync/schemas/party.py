"""Pydantic schemas for Strapi "party" records."""

from pydantic import BaseModel, ConfigDict, Field


class PartyPayload(BaseModel):
    """Field set written on create and update."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    abb_title: str = Field(alias="abbTitle")
    slug: str
    date_start: str = Field(alias="dateStart")
    site: str = ""
    tel: str = ""
    categories: list[int] = Field(default_factory=list)
    for_cities: list[int] = Field(default_factory=list, alias="forCities")
    place: int
    discount: str = ""
    discount_rule: str = Field(default="", alias="discountRule")
    description: str | None = None
    locale: str | None = None

    def to_strapi(self) -> dict:
        """JSON body for POST/PUT: ``{"data": {...}}`` with Strapi field names."""
        return {"data": self.model_dump(by_alias=True, exclude_none=True)}


class PartyRecord(BaseModel):
    """The subset of a stored record needed for reconciliation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    document_id: str | None = Field(default=None, alias="documentId")
    slug: str | None = None
    date_start: str | None = Field(default=None, alias="dateStart")


class UploadedFile(BaseModel):
    """A file entry returned by the upload endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str | None = None
    url: str | None = None
