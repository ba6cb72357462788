"""Per-request service providers."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.services.applications import ApplicationService
from jobboard.services.job_listings import JobListingService
from jobboard.services.storage import BlobStorage


def get_job_listing_service(db: AsyncSession = Depends(get_db)) -> JobListingService:
    return JobListingService(db)


def get_application_service(db: AsyncSession = Depends(get_db)) -> ApplicationService:
    return ApplicationService(db, JobListingService(db))


def get_blob_storage(request: Request) -> BlobStorage:
    """The process-wide storage client created in the lifespan."""
    storage = getattr(request.app.state, "blob_storage", None)
    if storage is None:
        storage = BlobStorage.from_settings(settings)
        request.app.state.blob_storage = storage
    return storage
