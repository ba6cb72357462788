"""
Job listings API endpoints.

Public endpoints serve candidates (published listings, lookups, similar
listings); everything that changes a listing requires authentication.
Static paths are declared before ``/{job_id}`` so they are not captured
by it.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from jobboard.api.auth import require_auth
from jobboard.api.deps import get_job_listing_service
from jobboard.models.job_listing import EmploymentType, JobStatus
from jobboard.schemas.common import ModifiedCountResponse, Page
from jobboard.schemas.form import FormSectionCreate, FormSectionUpdate
from jobboard.schemas.job_listing import (
    BulkJobStatusUpdate,
    ClosedCountResponse,
    JobListingCreate,
    JobListingFilters,
    JobListingResponse,
    JobListingUpdate,
    JobStatusUpdate,
    MediaCreate,
    MediaUpdate,
    PopularTag,
    PublishedFilters,
    TagsRequest,
)
from jobboard.services.job_listings import JobListingService, build_job_listing_response

logger = logging.getLogger(__name__)
router = APIRouter()


def _split_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    """Accept both ``?tags=a&tags=b`` and ``?tags=a,b``."""
    if not tags:
        return None
    return [part for tag in tags for part in tag.split(",") if part.strip()]


def _page(result, page: int, limit: int) -> Page[JobListingResponse]:
    items, total, pages = result
    return Page[JobListingResponse](
        items=[build_job_listing_response(listing) for listing in items],
        total=total,
        page=page,
        limit=limit,
        pages=pages,
    )


# ============================================================
# PUBLIC
# ============================================================

@router.get("/published", response_model=Page[JobListingResponse])
async def list_published(
    page: int = Query(1, description="Page number (1-based)"),
    limit: int = Query(10, description="Page size (1-100)"),
    tags: Optional[list[str]] = Query(None, description="Match any of these tags"),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    is_remote: Optional[bool] = Query(None),
    experience_min: Optional[int] = Query(None, description="Listings whose minimum is at most this"),
    experience_max: Optional[int] = Query(None, description="Listings whose maximum is at least this"),
    employment_type: Optional[EmploymentType] = Query(None),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Published, active, unexpired listings, newest published first."""
    filters = PublishedFilters(
        tags=_split_tags(tags),
        city=city,
        state=state,
        country=country,
        is_remote=is_remote,
        experience_min=experience_min,
        experience_max=experience_max,
        employment_type=employment_type,
    )
    return _page(await service.get_published(filters, page, limit), page, limit)


@router.get("/search", response_model=Page[JobListingResponse])
async def search_job_listings(
    search_term: str = Query("", description="Matched against title, description, role, company, tags and qualifications"),
    page: int = Query(1),
    limit: int = Query(10),
    service: JobListingService = Depends(get_job_listing_service),
):
    return _page(await service.search(search_term, page, limit), page, limit)


@router.get("/location", response_model=Page[JobListingResponse])
async def list_by_location(
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    service: JobListingService = Depends(get_job_listing_service),
):
    return _page(await service.by_location(city, state, country, page, limit), page, limit)


@router.get("/employment-type/{employment_type}", response_model=Page[JobListingResponse])
async def list_by_employment_type(
    employment_type: str,
    page: int = Query(1),
    limit: int = Query(10),
    service: JobListingService = Depends(get_job_listing_service),
):
    return _page(await service.by_employment_type(employment_type, page, limit), page, limit)


@router.get("/tags/popular", response_model=list[PopularTag])
async def popular_tags(
    limit: int = Query(20, description="Number of tags (1-100)"),
    service: JobListingService = Depends(get_job_listing_service),
):
    return [PopularTag(tag=tag, count=count) for tag, count in await service.popular_tags(limit)]


@router.get("/slug/{slug}", response_model=JobListingResponse)
async def get_by_slug(
    slug: str,
    increment_views: bool = Query(False, description="Count a view if the listing is published"),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.get_by_slug(slug, increment_views))


# ============================================================
# PROTECTED: COLLECTION
# ============================================================

@router.post("/", response_model=JobListingResponse, status_code=201)
async def create_job_listing(
    data: JobListingCreate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Create a draft job listing. A slug is derived from the title when none is given."""
    return build_job_listing_response(await service.create(data))


@router.get("/", response_model=Page[JobListingResponse])
async def list_job_listings(
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[JobStatus] = Query(None),
    search_term: Optional[str] = Query(None),
    tags: Optional[list[str]] = Query(None),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    is_remote: Optional[bool] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    start_date: Optional[datetime] = Query(None, description="Created at or after"),
    end_date: Optional[datetime] = Query(None, description="Created at or before"),
    sort_by: str = Query("-created_at", description="Field name, prefix with - for descending"),
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """
    List all job listings (any status) for recruiters.

    Filters combine with AND; ``search_term`` matches any of title,
    description, role, company name or tags.
    """
    filters = JobListingFilters(
        status=status,
        search_term=search_term,
        tags=_split_tags(tags),
        city=city,
        state=state,
        country=country,
        is_remote=is_remote,
        employment_type=employment_type,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
    )
    return _page(await service.get_all(filters, page, limit), page, limit)


@router.post("/bulk/status", response_model=ModifiedCountResponse)
async def bulk_update_status(
    request: BulkJobStatusUpdate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    modified = await service.bulk_update_status(request.job_ids, request.status)
    return ModifiedCountResponse(modified_count=modified)


@router.get("/stats/date-range", response_model=Page[JobListingResponse])
async def list_by_date_range(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    filters = JobListingFilters(start_date=start_date, end_date=end_date)
    result = await service.by_date_range(filters.start_date, filters.end_date, page, limit)
    return _page(result, page, limit)


@router.get("/expired/list", response_model=Page[JobListingResponse])
async def list_expired(
    page: int = Query(1),
    limit: int = Query(10),
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Listings past their expiry that are not closed yet."""
    return _page(await service.list_expired(page, limit), page, limit)


@router.post("/expired/close", response_model=ClosedCountResponse)
async def close_expired(
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Close every expired listing. Meant to be called by a periodic trigger."""
    return ClosedCountResponse(closed_count=await service.close_expired())


# ============================================================
# SINGLE LISTING
# ============================================================

@router.get("/{job_id}", response_model=JobListingResponse)
async def get_job_listing(
    job_id: str,
    increment_views: bool = Query(False, description="Count a view if the listing is published"),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.get_by_id(job_id, increment_views))


@router.get("/{job_id}/similar", response_model=list[JobListingResponse])
async def similar_job_listings(
    job_id: str,
    limit: int = Query(5, description="Number of listings (1-20)"),
    service: JobListingService = Depends(get_job_listing_service),
):
    return [build_job_listing_response(listing) for listing in await service.similar(job_id, limit)]


@router.patch("/{job_id}", response_model=JobListingResponse)
async def update_job_listing(
    job_id: str,
    data: JobListingUpdate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Partial update; only the fields present in the body change."""
    return build_job_listing_response(await service.update(job_id, data))


@router.delete("/{job_id}", status_code=204)
async def delete_job_listing(
    job_id: str,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    await service.delete(job_id)


@router.patch("/{job_id}/status", response_model=JobListingResponse)
async def update_job_status(
    job_id: str,
    request: JobStatusUpdate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    """Change the lifecycle status. Closing a listing also sets its expiry to now."""
    return build_job_listing_response(await service.update_status(job_id, request.status))


@router.post("/{job_id}/publish", response_model=JobListingResponse)
async def publish_job_listing(
    job_id: str,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.publish(job_id))


@router.post("/{job_id}/unpublish", response_model=JobListingResponse)
async def unpublish_job_listing(
    job_id: str,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.unpublish(job_id))


# Media

@router.post("/{job_id}/media", response_model=JobListingResponse, status_code=201)
async def add_media(
    job_id: str,
    item: MediaCreate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.add_media(job_id, item))


@router.patch("/{job_id}/media/{media_id}", response_model=JobListingResponse)
async def update_media(
    job_id: str,
    media_id: str,
    data: MediaUpdate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.update_media(job_id, media_id, data))


@router.delete("/{job_id}/media/{media_id}", response_model=JobListingResponse)
async def remove_media(
    job_id: str,
    media_id: str,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.remove_media(job_id, media_id))


# Custom sections

@router.post("/{job_id}/sections", response_model=JobListingResponse, status_code=201)
async def add_custom_section(
    job_id: str,
    data: FormSectionCreate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.add_custom_section(job_id, data))


@router.patch("/{job_id}/sections/{section_id}", response_model=JobListingResponse)
async def update_custom_section(
    job_id: str,
    section_id: str,
    data: FormSectionUpdate,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.update_custom_section(job_id, section_id, data))


@router.delete("/{job_id}/sections/{section_id}", response_model=JobListingResponse)
async def remove_custom_section(
    job_id: str,
    section_id: str,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.remove_custom_section(job_id, section_id))


# Tags

@router.post("/{job_id}/tags", response_model=JobListingResponse)
async def add_tags(
    job_id: str,
    request: TagsRequest,
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.add_tags(job_id, request.tags))


@router.delete("/{job_id}/tags", response_model=JobListingResponse)
async def remove_tags(
    job_id: str,
    request: TagsRequest = Body(...),
    _: str = Depends(require_auth),
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.remove_tags(job_id, request.tags))


# Application counter

@router.post("/{job_id}/applications/increment", response_model=JobListingResponse)
async def increment_applications(
    job_id: str,
    service: JobListingService = Depends(get_job_listing_service),
):
    return build_job_listing_response(await service.increment_applications(job_id))


@router.post("/{job_id}/applications/decrement", response_model=JobListingResponse)
async def decrement_applications(
    job_id: str,
    service: JobListingService = Depends(get_job_listing_service),
):
    """Decrement the applications counter. Stops at zero."""
    return build_job_listing_response(await service.decrement_applications(job_id))
