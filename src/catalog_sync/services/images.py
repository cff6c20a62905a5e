"""Product image download, validation and deduplication."""

import asyncio
import uuid
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.config import Settings, get_settings
from catalog_sync.exceptions import ImageError
from catalog_sync.infrastructure.database.models import MediaAttachment
from shared.constants import IMAGE_DOWNLOAD_TIMEOUT, VALID_IMAGE_TYPES

logger = structlog.get_logger()

VALID_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp"}


def normalize_content_type(content_type: str | None) -> str:
    """Strip parameters such as charset from a Content-Type header."""
    return (content_type or "").split(";")[0].strip().lower()


def is_valid_image_type(content_type: str | None) -> bool:
    return normalize_content_type(content_type) in VALID_IMAGE_TYPES


def extension_for(content_type: str | None) -> str:
    return VALID_IMAGE_TYPES.get(normalize_content_type(content_type), "jpg")


def filename_from_url(url: str, content_type: str | None) -> str:
    """Derive a safe filename from the URL path.

    The extension comes from the content type when the path has none or an
    unknown one; an empty stem gets a generated name.
    """
    name = PurePosixPath(urlparse(url).path).name
    if "." in name:
        stem, extension = name.rsplit(".", 1)
    else:
        stem, extension = name, ""

    if extension.lower() not in VALID_IMAGE_EXTENSIONS:
        extension = extension_for(content_type)

    stem = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in stem).strip("-")
    if not stem:
        stem = f"catalog-image-{uuid.uuid4().hex}"

    return f"{stem}.{extension.lower()}"


class ImageService:
    """Attaches vendor images to catalog products, downloading each URL once."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.media_root = Path(self.settings.media_root)

    async def find_existing_attachment(self, url: str) -> int | None:
        result = await self.session.execute(
            select(MediaAttachment.id).where(MediaAttachment.source_url == url).limit(1)
        )
        return result.scalar()

    async def get_or_download_image(self, url: str, product_id: int) -> int:
        """Return the attachment id for ``url``, downloading it if unseen."""
        url = (url or "").strip()
        if not url:
            raise ImageError("Image URL is empty.")

        existing_id = await self.find_existing_attachment(url)
        if existing_id:
            logger.debug("Reusing existing image", url=url, attachment_id=existing_id)
            return existing_id

        return await self.download_and_import_image(url, product_id)

    async def download_and_import_image(self, url: str, product_id: int) -> int:
        content, content_type = await self._download(url)

        filename = filename_from_url(url, content_type)
        target = self.media_root / filename
        if target.exists():
            target = self.media_root / f"{uuid.uuid4().hex[:8]}-{filename}"

        try:
            await asyncio.to_thread(self._write_file, target, content)
        except OSError as e:
            raise ImageError(f"Failed to save image: {e}") from e

        attachment = MediaAttachment(
            product_id=product_id,
            source_url=url,
            file_path=str(target),
            mime_type=normalize_content_type(content_type),
        )
        self.session.add(attachment)
        try:
            await self.session.flush()
        except Exception as e:
            target.unlink(missing_ok=True)
            raise ImageError("Failed to create attachment.") from e

        logger.info("Image imported", url=url, attachment_id=attachment.id, product_id=product_id)
        return attachment.id

    async def _download(self, url: str) -> tuple[bytes, str]:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, timeout=IMAGE_DOWNLOAD_TIMEOUT)
            else:
                async with httpx.AsyncClient(
                    timeout=IMAGE_DOWNLOAD_TIMEOUT,
                    verify=self.settings.vendor_verify_ssl,
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise ImageError(f"Failed to download image: {e}") from e

        if response.status_code != 200 or not response.content:
            raise ImageError(f"Failed to download image (HTTP {response.status_code}).")

        content_type = response.headers.get("content-type", "")
        if not is_valid_image_type(content_type):
            raise ImageError(f"Invalid image content type: {content_type}")

        return response.content, content_type

    @staticmethod
    def _write_file(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
