"""
Applications API endpoints.

Candidates submit and look up their own applications without
credentials; reviewing, counting and searching require authentication.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from jobboard.api.auth import require_auth
from jobboard.api.deps import get_application_service
from jobboard.database_types import as_naive_utc
from jobboard.schemas.application import (
    ApplicationOut,
    ApplicationStatistics,
    ApplicationStatusUpdate,
    ApplicationSubmit,
    BulkApplicationStatusUpdate,
    NotesRequest,
    RatingRequest,
)
from jobboard.schemas.common import CountResponse, ExistsResponse, ModifiedCountResponse, Page
from jobboard.services.applications import ApplicationService, build_application_response

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================
# PUBLIC (candidates)
# ============================================================

@router.post("/submit", response_model=ApplicationOut, status_code=201)
async def submit_application(
    params: ApplicationSubmit,
    service: ApplicationService = Depends(get_application_service),
):
    """
    Submit an application.

    Responses are validated against ``form_snapshot`` (or the listing's
    current sections when no snapshot is sent).

    Returns:
        201: stored application
        400: malformed id, missing candidate data or failed form validation
        409: this email already applied to this listing
    """
    return build_application_response(await service.submit(params))


@router.get("/check-exists/{job_listing_id}", response_model=ExistsResponse)
async def check_application_exists(
    job_listing_id: str,
    email: str = Query("", description="Candidate email"),
    service: ApplicationService = Depends(get_application_service),
):
    return ExistsResponse(exists=await service.exists(email, job_listing_id))


@router.get("/candidate/{email}", response_model=list[ApplicationOut])
async def list_by_candidate_email(
    email: str,
    service: ApplicationService = Depends(get_application_service),
):
    return [build_application_response(a) for a in await service.by_candidate_email(email)]


# ============================================================
# PROTECTED (recruiters)
# ============================================================

@router.patch("/bulk-update-status", response_model=ModifiedCountResponse)
async def bulk_update_status(
    request: BulkApplicationStatusUpdate,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    """All ids are checked first; one malformed id rejects the whole request."""
    modified = await service.bulk_update_status(request.application_ids, request.status)
    return ModifiedCountResponse(modified_count=modified)


@router.get("/job/{job_listing_id}", response_model=Page[ApplicationOut])
async def list_by_job_listing(
    job_listing_id: str,
    status: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(10, description="Page size (1-100), 0 for all"),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    items, total, pages = await service.list_by_job_listing(job_listing_id, status, page, limit)
    return Page[ApplicationOut](
        items=[build_application_response(a) for a in items],
        total=total,
        page=page,
        limit=limit,
        pages=pages,
    )


@router.get("/count/{job_listing_id}", response_model=CountResponse)
async def count_applications(
    job_listing_id: str,
    status: Optional[str] = Query(None),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return CountResponse(count=await service.count(job_listing_id, status))


@router.get("/count-by-status/{job_listing_id}", response_model=CountResponse)
async def count_applications_by_status(
    job_listing_id: str,
    status: str = Query(..., description="One of the five application statuses"),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return CountResponse(count=await service.count(job_listing_id, status))


@router.get("/date-range/{job_listing_id}", response_model=list[ApplicationOut])
async def list_by_date_range(
    job_listing_id: str,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    applications = await service.by_date_range(
        job_listing_id, as_naive_utc(start_date), as_naive_utc(end_date)
    )
    return [build_application_response(a) for a in applications]


@router.get("/search/{job_listing_id}", response_model=list[ApplicationOut])
async def search_by_response(
    job_listing_id: str,
    field_name: str = Query(""),
    value: str = Query(""),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    """Applications whose answer to ``field_name`` equals ``value`` (case-insensitive)."""
    applications = await service.search_by_response(job_listing_id, field_name, value)
    return [build_application_response(a) for a in applications]


@router.get("/recent/{job_listing_id}", response_model=list[ApplicationOut])
async def recent_applications(
    job_listing_id: str,
    limit: int = Query(5, description="Number of applications (1-50)"),
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return [build_application_response(a) for a in await service.recent(job_listing_id, limit)]


@router.get("/statistics/{job_listing_id}", response_model=ApplicationStatistics)
async def application_statistics(
    job_listing_id: str,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return ApplicationStatistics(**await service.statistics(job_listing_id))


@router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return build_application_response(await service.get_by_id(application_id))


@router.patch("/{application_id}/status", response_model=ApplicationOut)
async def update_application_status(
    application_id: str,
    request: ApplicationStatusUpdate,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    application = await service.update_status(
        application_id, request.status, notes=request.notes, rating=request.rating
    )
    return build_application_response(application)


@router.patch("/{application_id}/notes", response_model=ApplicationOut)
async def add_notes(
    application_id: str,
    request: NotesRequest,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return build_application_response(await service.add_notes(application_id, request.notes))


@router.patch("/{application_id}/rating", response_model=ApplicationOut)
async def rate_application(
    application_id: str,
    request: RatingRequest,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    return build_application_response(await service.rate(application_id, request.rating))


@router.delete("/{application_id}", status_code=204)
async def delete_application(
    application_id: str,
    _: str = Depends(require_auth),
    service: ApplicationService = Depends(get_application_service),
):
    await service.delete(application_id)
