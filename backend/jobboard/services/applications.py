"""
Application business logic.

One application per (candidate email, job listing). Submissions are
validated against the form snapshot they carry (or the listing's live
sections, captured as the snapshot when the client sends none); the
snapshot is stored with the application so later edits to the listing
never reinterpret it.
"""
import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.database_types import utcnow
from jobboard.errors import ConflictError, NotFoundError, ValidationError
from jobboard.models.application import Application, ApplicationStatus
from jobboard.schemas.application import ApplicationOut, ApplicationSubmit, Candidate
from jobboard.schemas.form import FormSnapshot
from jobboard.services.filters import (
    json_text_contains_ci,
    paginate,
    parse_id,
    validate_date_range,
    validate_pagination,
)
from jobboard.services.form_validation import validate_responses
from jobboard.services.job_listings import JobListingService

logger = logging.getLogger(__name__)


RECENT_LIMIT_MAX = 50


def coerce_application_status(value) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in ApplicationStatus)
        raise ValidationError(f"invalid status: {value}. Must be one of: {allowed}")


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer between 1 and 5")
    return rating


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _value_matches(value, search: str) -> bool:
    search = search.strip().lower()
    if isinstance(value, list):
        return any(str(item).strip().lower() == search for item in value)
    if value is None:
        return False
    return str(value).strip().lower() == search


def build_application_response(application: Application) -> ApplicationOut:
    """Build ApplicationOut from the Application model."""
    return ApplicationOut(
        id=application.id,
        job_listing_id=application.job_listing_id,
        candidate=Candidate(
            name=application.candidate_name,
            email=application.candidate_email,
            phone=application.candidate_phone,
        ),
        responses=application.responses or [],
        form_snapshot=application.form_snapshot or {},
        status=application.status,
        notes=application.notes,
        rating=application.rating,
        submitted_at=application.submitted_at,
        created_at=application.created_at,
        updated_at=application.updated_at,
    )


class ApplicationService:
    """Domain operations on applications, bound to one database session."""

    def __init__(self, db: AsyncSession, listings: Optional[JobListingService] = None):
        self.db = db
        self.listings = listings or JobListingService(db)

    async def _get(self, application_id) -> Application:
        application = await self.db.get(Application, parse_id(application_id, "application_id"))
        if not application:
            raise NotFoundError(f"Application {application_id} not found")
        return application

    async def _commit(self, application: Optional[Application] = None) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Application write rejected by unique constraint")
            raise ConflictError("Candidate has already applied to this job listing")
        if application is not None:
            await self.db.refresh(application)

    # ============================================================
    # SUBMIT
    # ============================================================

    async def submit(self, params: ApplicationSubmit) -> Application:
        """
        Validate and persist a submission.

        Checks run in this order: job listing id syntax, duplicate
        candidate, candidate/response presence, form validation.
        """
        job_listing_id = parse_id(params.job_listing_id, "job_listing_id")
        email = normalize_email(params.candidate.email)
        name = (params.candidate.name or "").strip()

        if email and await self.exists(email, job_listing_id):
            logger.warning(f"Duplicate application from {email} for job listing {job_listing_id}")
            raise ConflictError("Candidate has already applied to this job listing")

        if not name or not email:
            raise ValidationError("candidate name and email are required")
        if not params.responses:
            raise ValidationError("responses are required")

        snapshot = params.form_snapshot
        if snapshot is None:
            listing = await self.listings.get_by_id(job_listing_id)
            snapshot = FormSnapshot(custom_sections=listing.custom_sections or [])

        responses = validate_responses(params.responses, snapshot)

        now = utcnow()
        phone = (params.candidate.phone or "").strip() or None
        application = Application(
            job_listing_id=job_listing_id,
            candidate_name=name,
            candidate_email=email,
            candidate_phone=phone,
            responses=[response.model_dump(mode="json") for response in responses],
            form_snapshot=snapshot.model_dump(mode="json"),
            status=ApplicationStatus.SUBMITTED.value,
            submitted_at=now,
        )
        self.db.add(application)
        await self._commit(application)

        logger.info(f"Application submitted: {application.id} by {email} for job listing {job_listing_id}")
        return application

    # ============================================================
    # READ
    # ============================================================

    async def get_by_id(self, application_id) -> Application:
        return await self._get(application_id)

    async def list_by_job_listing(
        self,
        job_listing_id,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ):
        """
        Applications for one listing, newest first.

        Returns (items, total, pages). ``limit=0`` returns every match.
        """
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        validate_pagination(page, limit, allow_unlimited=True)

        query = select(Application).where(Application.job_listing_id == job_listing_id)
        if status:
            query = query.where(Application.status == coerce_application_status(status).value)
        query = query.order_by(Application.submitted_at.desc())
        return await paginate(self.db, query, page, limit)

    async def by_candidate_email(self, email: str) -> list[Application]:
        email = normalize_email(email)
        if not email:
            raise ValidationError("email is required")
        result = await self.db.execute(
            select(Application)
            .where(Application.candidate_email == email)
            .order_by(Application.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def count(self, job_listing_id, status: Optional[str] = None) -> int:
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        query = select(func.count()).select_from(Application).where(
            Application.job_listing_id == job_listing_id
        )
        if status:
            query = query.where(Application.status == coerce_application_status(status).value)
        return (await self.db.execute(query)).scalar_one()

    async def exists(self, email: str, job_listing_id) -> bool:
        email = normalize_email(email)
        if not email:
            raise ValidationError("email is required")
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        result = await self.db.execute(
            select(Application.id).where(
                Application.candidate_email == email,
                Application.job_listing_id == job_listing_id,
            )
        )
        return result.first() is not None

    async def by_date_range(self, job_listing_id, start_date, end_date) -> list[Application]:
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        validate_date_range(start_date, end_date)
        result = await self.db.execute(
            select(Application)
            .where(
                Application.job_listing_id == job_listing_id,
                Application.submitted_at >= start_date,
                Application.submitted_at <= end_date,
            )
            .order_by(Application.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def search_by_response(self, job_listing_id, field_name: str, value: str) -> list[Application]:
        """
        Applications whose response for ``field_name`` equals ``value``.

        Comparison is case-insensitive; for multi-value answers any selected
        value may match.
        """
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        if not field_name or not field_name.strip():
            raise ValidationError("field_name is required")
        if value is None or not str(value).strip():
            raise ValidationError("search value is required")
        field_name = field_name.strip()

        result = await self.db.execute(
            select(Application)
            .where(
                Application.job_listing_id == job_listing_id,
                json_text_contains_ci(Application.responses, field_name),
            )
            .order_by(Application.submitted_at.desc())
        )
        return [
            application
            for application in result.scalars().all()
            if any(
                response.get("field_name") == field_name and _value_matches(response.get("value"), str(value))
                for response in application.responses or []
            )
        ]

    async def recent(self, job_listing_id, limit: int = 5) -> list[Application]:
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        if limit < 1 or limit > RECENT_LIMIT_MAX:
            raise ValidationError(f"limit must be between 1 and {RECENT_LIMIT_MAX}")
        result = await self.db.execute(
            select(Application)
            .where(Application.job_listing_id == job_listing_id)
            .order_by(Application.submitted_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def statistics(self, job_listing_id) -> dict:
        """Total plus per-status counts, read in a single grouped query."""
        job_listing_id = parse_id(job_listing_id, "job_listing_id")
        result = await self.db.execute(
            select(Application.status, func.count())
            .where(Application.job_listing_id == job_listing_id)
            .group_by(Application.status)
        )
        by_status = {status.value: 0 for status in ApplicationStatus}
        for status, count in result.all():
            by_status[status] = count
        return {
            "job_listing_id": job_listing_id,
            "total": sum(by_status.values()),
            "by_status": by_status,
        }

    # ============================================================
    # REVIEW
    # ============================================================

    async def update_status(
        self,
        application_id,
        status: str,
        notes: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> Application:
        status = coerce_application_status(status)
        if rating is not None:
            validate_rating(rating)
        application = await self._get(application_id)

        application.status = status.value
        if notes is not None:
            application.notes = notes.strip() or None
        if rating is not None:
            application.rating = rating
        await self._commit(application)

        logger.info(f"Application {application.id} status -> {status.value}")
        return application

    async def add_notes(self, application_id, notes: str) -> Application:
        if not notes or not notes.strip():
            raise ValidationError("notes cannot be empty")
        application = await self._get(application_id)

        application.notes = notes.strip()
        await self._commit(application)
        return application

    async def rate(self, application_id, rating: int) -> Application:
        validate_rating(rating)
        application = await self._get(application_id)

        application.rating = rating
        await self._commit(application)
        return application

    async def delete(self, application_id) -> None:
        application = await self._get(application_id)
        await self.db.delete(application)
        await self._commit()
        logger.info(f"Application deleted: {application_id}")

    async def bulk_update_status(self, application_ids: list[str], status: str) -> int:
        """
        Set ``status`` on many applications.

        Every id is parsed before anything is written; a single malformed id
        rejects the whole request. Returns the number of rows changed.
        """
        if not application_ids:
            raise ValidationError("application_ids must be a non-empty list")
        ids = [parse_id(application_id, "application_id") for application_id in application_ids]
        status = coerce_application_status(status)

        result = await self.db.execute(
            update(Application)
            .where(Application.id.in_(ids), Application.status != status.value)
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(f"Bulk application status -> {status.value}: {result.rowcount}/{len(ids)} modified")
        return result.rowcount
