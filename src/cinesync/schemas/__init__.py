"""Pydantic schemas for content store requests and responses."""

from cinesync.schemas.party import PartyPayload, PartyRecord, UploadedFile

__all__ = [
    "PartyPayload",
    "PartyRecord",
    "UploadedFile",
]
