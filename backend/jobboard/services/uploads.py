"""Upload validation and forwarding to blob storage."""
import logging
from typing import Optional

from fastapi import UploadFile

from jobboard.config import settings
from jobboard.database_types import utcnow
from jobboard.errors import ValidationError
from jobboard.schemas.upload import UploadResponse
from jobboard.services.storage import BlobStorage

logger = logging.getLogger(__name__)


IMAGE_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

RECORDING_MIME_TYPES = {
    # Video
    "video/mp4", "video/webm", "video/quicktime", "video/x-msvideo", "video/mpeg", "video/ogg",
    # Audio
    "audio/webm", "audio/wav", "audio/mpeg", "audio/mp3", "audio/ogg", "audio/mp4",
    "audio/x-m4a", "audio/aac",
}

# kind -> (allowed mime types, size limit setting, blob resource type, error text)
UPLOAD_KINDS = {
    "image": (IMAGE_MIME_TYPES, "max_image_mb", "image",
              "Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed."),
    "document": (DOCUMENT_MIME_TYPES, "max_document_mb", "raw",
                 "Invalid document type. Only PDF, Word and Excel files are allowed."),
    "voice_recording": (RECORDING_MIME_TYPES, "max_recording_mb", "video",
                        "Invalid file type. Only video and audio recordings are allowed."),
    "video_recording": (RECORDING_MIME_TYPES, "max_recording_mb", "video",
                        "Invalid file type. Only video and audio recordings are allowed."),
}


def max_upload_bytes(kind: str) -> int:
    _, limit_setting, _, _ = UPLOAD_KINDS[kind]
    return getattr(settings, limit_setting) * 1024 * 1024


def validate_upload(kind: str, content_type: Optional[str], size: int) -> None:
    """
    Validate an upload's mime type and size.

    Raises:
        ValidationError: empty file, disallowed type or too large
    """
    allowed, limit_setting, _, type_error = UPLOAD_KINDS[kind]
    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in allowed:
        raise ValidationError(type_error)
    if size == 0:
        raise ValidationError("Uploaded file is empty")
    if size > max_upload_bytes(kind):
        raise ValidationError(f"File too large. Maximum size: {getattr(settings, limit_setting)}MB")


async def store_upload(storage: BlobStorage, kind: str, file: UploadFile) -> UploadResponse:
    """Validate ``file`` and push it to blob storage."""
    # At most limit + 1 bytes
    data = await file.read(max_upload_bytes(kind) + 1)
    validate_upload(kind, file.content_type, len(data))

    _, _, resource_type, _ = UPLOAD_KINDS[kind]
    content_type = file.content_type.split(";")[0].strip().lower()
    blob = await storage.upload(data, file.filename, content_type, resource_type=resource_type)

    logger.info(f"{kind} uploaded: {file.filename} ({len(data)} bytes)")
    return UploadResponse(
        url=blob.url,
        filename=file.filename,
        size=blob.size,
        mime_type=content_type,
        format=blob.format,
        duration=blob.duration,
        uploaded_at=utcnow(),
    )
