"""Application-related Pydantic schemas."""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from jobboard.database_types import as_naive_utc
from jobboard.schemas.form import FormSnapshot


# ============================================================
# EMBEDDED PIECES
# ============================================================

class Candidate(BaseModel):
    # Presence is checked by the service, not here
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class FileAttachment(BaseModel):
    url: str
    filename: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class RecordingAttachment(BaseModel):
    """An uploaded voice or video clip. ``duration`` is in seconds."""
    url: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)
    format: Optional[str] = None
    filename: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    @field_validator("uploaded_at")
    @classmethod
    def normalize_uploaded_at(cls, value):
        return as_naive_utc(value)


class ApplicationResponseItem(BaseModel):
    """
    One answered field.

    field_label and field_type are copies taken from the schema field when
    the candidate answered it. ``value`` is a scalar for most types and a
    list of option values for multi_select / checkbox.
    """
    field_name: str
    field_label: Optional[str] = None
    field_type: Optional[str] = None
    value: Any = None
    files: list[FileAttachment] = Field(default_factory=list)
    voice_recording: Optional[RecordingAttachment] = None
    video_recording: Optional[RecordingAttachment] = None


# ============================================================
# REQUESTS
# ============================================================

class ApplicationSubmit(BaseModel):
    """
    Submission payload.

    When ``form_snapshot`` is omitted the listing's current custom sections
    are captured as the snapshot.
    """
    job_listing_id: str
    candidate: Candidate = Field(default_factory=Candidate)
    responses: list[ApplicationResponseItem] = Field(default_factory=list)
    form_snapshot: Optional[FormSnapshot] = None


class ApplicationStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None
    rating: Optional[int] = None


class NotesRequest(BaseModel):
    notes: str


class RatingRequest(BaseModel):
    rating: int


class BulkApplicationStatusUpdate(BaseModel):
    application_ids: list[str]
    status: str


# ============================================================
# RESPONSES
# ============================================================

class ApplicationOut(BaseModel):
    """Schema for application response."""
    id: UUID
    job_listing_id: UUID
    candidate: Candidate
    responses: list[ApplicationResponseItem]
    form_snapshot: FormSnapshot
    status: str
    notes: Optional[str] = None
    rating: Optional[int] = None
    submitted_at: datetime
    created_at: datetime
    updated_at: datetime


class ApplicationStatistics(BaseModel):
    job_listing_id: UUID
    total: int
    by_status: dict[str, int]
