"""Asset reading and remote storage upload.

Processing flow:
    1. Read asset bytes from its local collection (`read_asset`).
    2. Infer media type from the filename extension.
    3. Initiate a fal storage upload and receive a signed upload URL.
    4. PUT the bytes to the signed URL and return the durable file URL.

Size validation:
    - No local size limit is enforced; storage limits apply remotely.

Error handling strategy:
    - `upload` raises `UploadError` for missing credentials, unreadable files,
      and HTTP/transport failures.
    - `try_upload` returns a `Degraded` outcome for the same failures. The
      orchestrator uses it for the optional crowd asset.

Security considerations:
    - Filenames containing path components are rejected so reads stay inside
      the collection directory.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Union

import httpx

from evacgen.config import ServiceConfig
from evacgen.core.errors import UploadError
from evacgen.core.types import AssetCategory, ImageAsset, RemoteAsset


logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".avif": "image/avif",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(filename: str) -> str:
    """Map a filename extension to a media type; unknown -> octet-stream."""
    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


@dataclass(frozen=True)
class Uploaded:
    remote: RemoteAsset


@dataclass(frozen=True)
class Degraded:
    filename: str
    reason: str


UploadOutcome = Union[Uploaded, Degraded]


class AssetUploader:
    """Push local assets to fal storage.

    Args:
        config: Injected service configuration (credentials and endpoints).
        transport: Optional httpx transport, used by tests to stub the network.
    """

    _INITIATE_PATH = "/storage/upload/initiate"

    def __init__(
        self,
        config: ServiceConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def read_asset(self, category: AssetCategory, filename: str) -> ImageAsset:
        """Read one asset from its collection.

        Raises:
            UploadError: For unsafe names or unreadable/missing files.
        """
        category = AssetCategory(category)
        if os.path.basename(filename) != filename or filename in ("", ".", ".."):
            raise UploadError(category.value, filename, "invalid filename")

        path = os.path.join(self.config.images_root, category.value, filename)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise UploadError(category.value, filename, str(exc)) from exc

        return ImageAsset(
            category=category,
            filename=filename,
            media_type=get_mime_type(filename),
            data=data,
        )

    async def upload(self, asset: ImageAsset) -> RemoteAsset:
        """Upload asset bytes and return the durable URL.

        Raises:
            UploadError: Missing key, HTTP status failure, transport error, or
                a malformed storage response.
        """
        category = asset.category.value
        if not self.config.fal_key:
            raise UploadError(category, asset.filename, "FAL_KEY is not configured")

        logger.info(
            "Uploading %s image %r (%d bytes, %s)",
            category,
            asset.filename,
            len(asset.data),
            asset.media_type,
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                initiate = await client.post(
                    f"{self.config.storage_url}{self._INITIATE_PATH}",
                    params={"storage_type": "fal-cdn-v3"},
                    headers=self.config.auth_headers(),
                    json={"content_type": asset.media_type, "file_name": asset.filename},
                )
                initiate.raise_for_status()
                target = initiate.json()
                upload_url = target["upload_url"]
                file_url = target["file_url"]

                put = await client.put(
                    upload_url,
                    content=asset.data,
                    headers={"Content-Type": asset.media_type},
                )
                put.raise_for_status()
        except httpx.HTTPStatusError as exc:
            reason = f"storage returned HTTP {exc.response.status_code}"
            raise UploadError(category, asset.filename, reason) from exc
        except httpx.HTTPError as exc:
            raise UploadError(category, asset.filename, str(exc) or type(exc).__name__) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise UploadError(category, asset.filename, "malformed storage response") from exc

        logger.info("Uploaded %s image %r -> %s", category, asset.filename, file_url)
        return RemoteAsset(url=file_url)

    async def upload_file(self, category: AssetCategory, filename: str) -> RemoteAsset:
        """Read and upload one collection file; the read runs in a worker thread."""
        asset = await asyncio.to_thread(self.read_asset, category, filename)
        return await self.upload(asset)

    async def try_upload(self, category: AssetCategory, filename: str) -> UploadOutcome:
        """Upload without raising; failures become a `Degraded` outcome."""
        try:
            remote = await self.upload_file(category, filename)
        except UploadError as exc:
            logger.warning(
                "Failed to upload %s image %r, continuing without it: %s",
                AssetCategory(category).value,
                filename,
                exc.reason,
            )
            return Degraded(filename=filename, reason=exc.reason)
        return Uploaded(remote=remote)
