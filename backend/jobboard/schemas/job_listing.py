"""Job listing Pydantic schemas."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from jobboard.database_types import as_naive_utc
from jobboard.models.job_listing import JobStatus, EmploymentType
from jobboard.schemas.form import FormSection


MediaType = Literal["image", "video", "document"]


# ============================================================
# NESTED OBJECTS
# ============================================================

class ExperienceRange(BaseModel):
    min: int = Field(0, ge=0)
    max: Optional[int] = Field(None, ge=0)
    unit: Literal["years", "months"] = "years"


class CompanyInfo(BaseModel):
    name: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None


class Location(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    is_remote: bool = False


class Salary(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    currency: str = "INR"
    period: Literal["hourly", "monthly", "yearly"] = "yearly"
    is_negotiable: bool = False


# ============================================================
# MEDIA
# ============================================================

class MediaCreate(BaseModel):
    """Request body for attaching an already-uploaded file to a listing."""
    url: Optional[str] = None
    type: Optional[MediaType] = None
    filename: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None
    caption: Optional[str] = None
    order: int = 0


class MediaUpdate(BaseModel):
    caption: Optional[str] = None
    order: Optional[int] = None


class MediaItem(BaseModel):
    id: str
    url: str
    type: MediaType
    filename: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    caption: Optional[str] = None
    order: int = 0
    created_at: datetime
    updated_at: datetime


# ============================================================
# JOB LISTING REQUESTS
# ============================================================

class JobListingCreate(BaseModel):
    """
    Schema for creating a job listing.

    title/description/role are checked by the service so that a missing
    value is reported as a domain validation error.
    """
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    role: Optional[str] = None
    experience_required: ExperienceRange = Field(default_factory=ExperienceRange)
    qualifications: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    company_info: Optional[CompanyInfo] = None
    location: Optional[Location] = None
    salary: Optional[Salary] = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    custom_sections: list[FormSection] = Field(default_factory=list)
    media: list[MediaCreate] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    slug: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return as_naive_utc(value)


class JobListingUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    role: Optional[str] = None
    experience_required: Optional[ExperienceRange] = None
    qualifications: Optional[list[str]] = None
    notes: Optional[str] = None
    company_info: Optional[CompanyInfo] = None
    location: Optional[Location] = None
    salary: Optional[Salary] = None
    employment_type: Optional[EmploymentType] = None
    custom_sections: Optional[list[FormSection]] = None
    status: Optional[JobStatus] = None
    tags: Optional[list[str]] = None
    slug: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return as_naive_utc(value)


class JobStatusUpdate(BaseModel):
    status: JobStatus


class BulkJobStatusUpdate(BaseModel):
    job_ids: list[str]
    status: JobStatus


class TagsRequest(BaseModel):
    tags: list[str]


# ============================================================
# QUERY FILTERS
# ============================================================

class JobListingFilters(BaseModel):
    """Filters for the recruiter-facing listing query."""
    status: Optional[JobStatus] = None
    search_term: Optional[str] = None
    tags: Optional[list[str]] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    is_remote: Optional[bool] = None
    employment_type: Optional[EmploymentType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: str = "-created_at"

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)


class PublishedFilters(BaseModel):
    """Filters for the public listing query."""
    tags: Optional[list[str]] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    is_remote: Optional[bool] = None
    experience_min: Optional[int] = None
    experience_max: Optional[int] = None
    employment_type: Optional[EmploymentType] = None


# ============================================================
# RESPONSES
# ============================================================

class JobListingResponse(BaseModel):
    """Schema for job listing response."""
    id: UUID
    slug: Optional[str] = None
    title: str
    description: str
    role: str
    experience_required: ExperienceRange
    qualifications: list[str]
    notes: Optional[str] = None
    company_info: Optional[CompanyInfo] = None
    location: Location
    salary: Optional[Salary] = None
    employment_type: str
    custom_sections: list[FormSection]
    media: list[MediaItem]
    status: str
    is_published: bool
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    views: int
    applications: int
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class PopularTag(BaseModel):
    tag: str
    count: int


class ClosedCountResponse(BaseModel):
    closed_count: int
