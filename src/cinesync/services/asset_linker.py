"""Attach downloaded cover images to stored records."""

import logging
from pathlib import Path

from cinesync.services.strapi_client import StrapiClient, StrapiError

logger = logging.getLogger(__name__)


class AssetLinker:
    """Uploads a local image and links it to a record's cover field."""

    def __init__(self, strapi: StrapiClient, field: str = "cover") -> None:
        self.strapi = strapi
        self.field = field

    async def link(
        self,
        path: Path,
        record_id: int,
        caption: str | None = None,
        alt: str | None = None,
    ) -> bool:
        """
        Upload ``path`` and attach it to record ``record_id``.

        Never raises: a failed link leaves the record valid, just without
        a cover.

        Returns:
            True when the file was uploaded and linked
        """
        try:
            uploaded = await self.strapi.upload_file(
                path, record_id, field=self.field, caption=caption, alt=alt
            )
        except (StrapiError, OSError) as e:
            logger.warning(f"Failed to link cover {path.name} to record {record_id}: {e}")
            return False

        logger.info(f"Cover {path.name} linked to record {record_id} (file ID {uploaded.id})")
        return True
