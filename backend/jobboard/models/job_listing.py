from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, Index
import uuid
import enum

from jobboard.database import Base
from jobboard.database_types import GUID, JSON, utcnow


class JobStatus(str, enum.Enum):
    """Job listing lifecycle status."""
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class EmploymentType(str, enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    TEMPORARY = "temporary"
    INTERNSHIP = "internship"


class JobListing(Base):
    __tablename__ = "job_listings"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)

    # Unique when present; NULL slugs never collide
    slug = Column(String(255), nullable=True, unique=True, index=True)

    # Core fields
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    role = Column(String, nullable=False)

    # Experience range (unit: years | months)
    experience_min = Column(Integer, nullable=False, default=0)
    experience_max = Column(Integer, nullable=True)
    experience_unit = Column(String, nullable=False, default="years")

    qualifications = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    # Company info
    company_name = Column(String, nullable=True)
    company_logo = Column(String, nullable=True)
    company_website = Column(String, nullable=True)

    # Location (flattened for filtering)
    location_city = Column(String, nullable=True, index=True)
    location_state = Column(String, nullable=True)
    location_country = Column(String, nullable=True, index=True)
    is_remote = Column(Boolean, nullable=False, default=False)

    # Structure: {"min": 50000, "max": 90000, "currency": "INR", "period": "yearly", "is_negotiable": false}
    salary = Column(JSON, nullable=True)

    employment_type = Column(String, nullable=False, default=EmploymentType.FULL_TIME.value, index=True)

    # Embedded documents: list of form sections and media items (see schemas/form.py, schemas/job_listing.py)
    custom_sections = Column(JSON, nullable=False, default=list)
    media = Column(JSON, nullable=False, default=list)

    # Lifecycle
    status = Column(String, nullable=False, default=JobStatus.DRAFT.value)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Counters (only ever changed with atomic UPDATE col = col +/- 1)
    views = Column(Integer, nullable=False, default=0)
    applications = Column(Integer, nullable=False, default=0)

    # Lowercase, deduplicated
    tags = Column(JSON, nullable=False, default=list)

    # Optimistic concurrency for ORM writes
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('idx_job_listings_published', 'is_published', 'status'),
        Index('idx_job_listings_created_at', 'created_at'),
    )

    def missing_required_fields(self) -> list[str]:
        """Names of the core fields that are empty (checked before publishing)."""
        missing = []
        for field in ("title", "description", "role"):
            value = getattr(self, field)
            if not value or not str(value).strip():
                missing.append(field)
        return missing
