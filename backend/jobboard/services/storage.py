"""
Blob storage client.

Pushes uploaded bytes to Cloudinary through the official SDK. The SDK is
blocking, so each upload runs in a worker thread. One client is created per
process in the FastAPI lifespan and shared by all requests.
"""
import asyncio
import io
import logging
from typing import Optional

import cloudinary.exceptions
import cloudinary.uploader
from pydantic import BaseModel

from jobboard.config import Settings
from jobboard.errors import InternalError

logger = logging.getLogger(__name__)


class StoredBlob(BaseModel):
    """What the store reports back for an uploaded file."""
    url: str
    size: int
    format: Optional[str] = None
    duration: Optional[float] = None


class BlobStorage:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "job-board",
        upload_prefix: Optional[str] = None,
        timeout_seconds: int = 60,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.upload_prefix = upload_prefix
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlobStorage":
        return cls(
            cloud_name=settings.storage_cloud_name,
            api_key=settings.storage_api_key,
            api_secret=settings.storage_api_secret,
            folder=settings.storage_folder,
            upload_prefix=settings.storage_upload_prefix or None,
            timeout_seconds=settings.storage_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _options(self, filename: Optional[str], resource_type: str) -> dict:
        options = {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "folder": self.folder,
            "resource_type": resource_type,
            "timeout": self.timeout_seconds,
        }
        if filename:
            options["filename_override"] = filename
            options["use_filename"] = True
        if self.upload_prefix:
            options["upload_prefix"] = self.upload_prefix
        return options

    async def upload(
        self,
        data: bytes,
        filename: Optional[str],
        content_type: str,
        resource_type: str = "auto",
    ) -> StoredBlob:
        """
        Upload ``data`` and return its durable URL.

        ``resource_type`` is one of image, video (also used for audio), raw
        or auto. Raises InternalError when the store is unreachable or
        rejects the upload.
        """
        if not self.configured:
            raise InternalError("Blob storage is not configured")

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                **self._options(filename, resource_type),
            )
        except cloudinary.exceptions.Error as e:
            logger.error(f"Blob upload of {filename} ({content_type}) failed: {e}", exc_info=True)
            raise InternalError(f"Failed to upload {resource_type} to blob storage")

        logger.info(f"Uploaded {filename} ({len(data)} bytes) to {result.get('secure_url')}")
        return StoredBlob(
            url=result["secure_url"],
            size=result.get("bytes") or len(data),
            format=result.get("format"),
            duration=result.get("duration"),
        )
