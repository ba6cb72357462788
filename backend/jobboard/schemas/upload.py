"""Upload response schema."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """
    Metadata of a file pushed to blob storage.

    Shaped so it can be copied as-is into an application response's
    ``files`` entry or ``voice_recording`` / ``video_recording``.
    """
    url: str
    filename: Optional[str] = None
    size: int
    mime_type: str
    format: Optional[str] = None
    duration: Optional[float] = None
    uploaded_at: datetime
