from sqlalchemy import Column, String, Integer, Text, DateTime, Index, UniqueConstraint
import uuid
import enum

from jobboard.database import Base
from jobboard.database_types import GUID, JSON, utcnow


class ApplicationStatus(str, enum.Enum):
    """Review status of a candidate application."""
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"
    ACCEPTED = "accepted"


class Application(Base):
    __tablename__ = "applications"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)

    # Not a foreign key: applications outlive edits and deletion of the listing
    job_listing_id = Column(GUID, nullable=False, index=True)

    # Candidate (email is stored lowercased)
    candidate_name = Column(String(255), nullable=False)
    candidate_email = Column(String(320), nullable=False, index=True)
    candidate_phone = Column(String(50), nullable=True)

    # Ordered list of responses, one per answered field
    responses = Column(JSON, nullable=False, default=list)

    # Structure: {"custom_sections": [...]} copied from the listing at submission time
    form_snapshot = Column(JSON, nullable=False, default=dict)

    status = Column(String, nullable=False, default=ApplicationStatus.SUBMITTED.value)
    notes = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)

    # Timestamps
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # One application per candidate per job listing
        UniqueConstraint('candidate_email', 'job_listing_id', name='uq_candidate_job'),
        Index('idx_applications_job_status', 'job_listing_id', 'status'),
    )
