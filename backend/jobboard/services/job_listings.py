"""
Job listing business logic.

Owns the listing lifecycle (draft -> active -> closed/archived), the publish
flag, embedded media and custom form sections, tags and the views /
applications counters. Counters are only ever changed with single
``UPDATE ... SET col = col +/- 1`` statements; every other write goes
through the ORM and is guarded by the listing's version column.
"""
import copy
import logging
import re
import secrets
import string
import uuid
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from jobboard.database_types import utcnow
from jobboard.errors import ConflictError, InternalError, NotFoundError, ValidationError
from jobboard.models.job_listing import EmploymentType, JobListing, JobStatus
from jobboard.schemas.form import FormSection, FormSectionCreate, FormSectionUpdate
from jobboard.schemas.job_listing import (
    CompanyInfo,
    ExperienceRange,
    JobListingCreate,
    JobListingFilters,
    JobListingResponse,
    JobListingUpdate,
    Location,
    MediaCreate,
    MediaUpdate,
    PublishedFilters,
    Salary,
)
from jobboard.services.filters import (
    contains_ci,
    json_list_contains_any,
    json_text_contains_ci,
    normalize_tags,
    paginate,
    parse_id,
    validate_date_range,
    validate_pagination,
)

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("title", "description", "role")

SLUG_SUFFIX_LENGTH = 10
SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_CONSTRAINT = "ix_job_listings_slug"

SORT_FIELDS = {
    "created_at": JobListing.created_at,
    "updated_at": JobListing.updated_at,
    "published_at": JobListing.published_at,
    "expires_at": JobListing.expires_at,
    "views": JobListing.views,
    "applications": JobListing.applications,
    "title": JobListing.title,
}


# ============================================================
# HELPERS
# ============================================================

def generate_slug(title: str) -> str:
    """
    Derive a slug from a title.

    Lowercase, runs of anything outside [a-z0-9] collapsed to one hyphen,
    no leading/trailing hyphen, then a random 10 character suffix.
    """
    base = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    suffix = "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    return f"{base}-{suffix}" if base else suffix


def published_condition(now: Optional[datetime] = None):
    """Published, active and not past its expiry."""
    now = now or utcnow()
    return and_(
        JobListing.is_published.is_(True),
        JobListing.status == JobStatus.ACTIVE.value,
        or_(JobListing.expires_at.is_(None), JobListing.expires_at > now),
    )


def parse_sort(sort_by: Optional[str]):
    """Turn ``created_at`` / ``-created_at`` style sort keys into an ORDER BY clause."""
    sort_by = (sort_by or "-created_at").strip()
    descending = sort_by.startswith("-")
    name = sort_by.lstrip("-+")
    column = SORT_FIELDS.get(name)
    if column is None:
        raise ValidationError(
            f"invalid sort_by: {sort_by}. Must be one of {', '.join(SORT_FIELDS)}"
        )
    return column.desc() if descending else column.asc()


def coerce_job_status(value) -> JobStatus:
    try:
        return JobStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in JobStatus)
        raise ValidationError(f"invalid status: {value}. Must be one of: {allowed}")


def coerce_employment_type(value) -> EmploymentType:
    try:
        return EmploymentType(value)
    except ValueError:
        allowed = ", ".join(kind.value for kind in EmploymentType)
        raise ValidationError(f"invalid employment_type: {value}. Must be one of: {allowed}")


def _validation_message(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def _new_media_entry(item: MediaCreate) -> dict:
    if not item.url or not item.url.strip() or not item.type:
        raise ValidationError("media url and type are required")
    now = utcnow().isoformat()
    return {
        "id": uuid.uuid4().hex,
        "url": item.url.strip(),
        "type": item.type,
        "filename": item.filename,
        "size": item.size,
        "mime_type": item.mime_type,
        "caption": item.caption,
        "order": item.order,
        "created_at": now,
        "updated_at": now,
    }


def build_job_listing_response(listing: JobListing) -> JobListingResponse:
    """Build JobListingResponse from the JobListing model."""
    company_info = None
    if listing.company_name or listing.company_logo or listing.company_website:
        company_info = CompanyInfo(
            name=listing.company_name,
            logo=listing.company_logo,
            website=listing.company_website,
        )

    return JobListingResponse(
        id=listing.id,
        slug=listing.slug,
        title=listing.title,
        description=listing.description,
        role=listing.role,
        experience_required=ExperienceRange(
            min=listing.experience_min or 0,
            max=listing.experience_max,
            unit=listing.experience_unit or "years",
        ),
        qualifications=listing.qualifications or [],
        notes=listing.notes,
        company_info=company_info,
        location=Location(
            city=listing.location_city,
            state=listing.location_state,
            country=listing.location_country,
            is_remote=bool(listing.is_remote),
        ),
        salary=Salary(**listing.salary) if listing.salary else None,
        employment_type=listing.employment_type,
        custom_sections=listing.custom_sections or [],
        media=listing.media or [],
        status=listing.status,
        is_published=listing.is_published,
        published_at=listing.published_at,
        expires_at=listing.expires_at,
        views=listing.views,
        applications=listing.applications,
        tags=listing.tags or [],
        created_at=listing.created_at,
        updated_at=listing.updated_at,
    )


# ============================================================
# SERVICE
# ============================================================

class JobListingService:
    """Domain operations on job listings, bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------------- internal ----------------

    async def _get(self, job_id) -> JobListing:
        listing = await self.db.get(JobListing, parse_id(job_id, "job_id"))
        if not listing:
            raise NotFoundError(f"Job listing {job_id} not found")
        return listing

    async def _commit(self, listing: Optional[JobListing] = None) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if SLUG_CONSTRAINT in str(e.orig) or "job_listings.slug" in str(e.orig):
                logger.warning("Job listing write rejected: slug already in use")
                raise ConflictError("slug is already in use by another job listing")
            logger.error(f"Job listing write failed: {e.orig}")
            raise InternalError("job listing could not be saved")
        except StaleDataError:
            await self.db.rollback()
            logger.warning("Job listing write rejected: concurrent modification")
            raise ConflictError("job listing was modified concurrently, reload and retry")
        if listing is not None:
            await self.db.refresh(listing)

    def _apply_fields(self, listing: JobListing, data, fields: Iterable[str]) -> None:
        """Copy request fields onto the flattened model columns."""
        for name in fields:
            value = getattr(data, name)

            if name in REQUIRED_FIELDS:
                if value is None or not str(value).strip():
                    raise ValidationError(f"{name} cannot be empty")
                setattr(listing, name, value.strip())
            elif name == "experience_required":
                if value is None:
                    continue
                if value.max is not None and value.max < value.min:
                    raise ValidationError("experience_required.max cannot be less than min")
                listing.experience_min = value.min
                listing.experience_max = value.max
                listing.experience_unit = value.unit
            elif name == "company_info":
                value = value or CompanyInfo()
                listing.company_name = value.name
                listing.company_logo = value.logo
                listing.company_website = value.website
            elif name == "location":
                value = value or Location()
                listing.location_city = value.city
                listing.location_state = value.state
                listing.location_country = value.country
                listing.is_remote = value.is_remote
            elif name == "salary":
                listing.salary = value.model_dump() if value else None
            elif name == "custom_sections":
                listing.custom_sections = [section.model_dump(mode="json") for section in value or []]
            elif name == "qualifications":
                listing.qualifications = [q.strip() for q in value or [] if q and q.strip()]
            elif name == "tags":
                listing.tags = normalize_tags(value or [])
            elif name in ("status", "employment_type"):
                if value is not None:
                    setattr(listing, name, value.value)
            elif name == "slug":
                listing.slug = value.strip() if value and value.strip() else None
            else:
                setattr(listing, name, value)

    # ---------------- create / read ----------------

    async def create(self, data: JobListingCreate) -> JobListing:
        missing = [name for name in REQUIRED_FIELDS if not (getattr(data, name) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        listing = JobListing()
        fields = [name for name in JobListingCreate.model_fields if name not in ("media", "slug")]
        self._apply_fields(listing, data, fields)

        slug = (data.slug or "").strip()
        listing.slug = slug or generate_slug(data.title)
        listing.media = [_new_media_entry(item) for item in data.media]
        listing.status = JobStatus.DRAFT.value
        listing.is_published = False
        listing.views = 0
        listing.applications = 0

        self.db.add(listing)
        await self._commit(listing)

        logger.info(f"Job listing created: {listing.id} (slug={listing.slug})")
        return listing

    async def _count_view(self, listing: JobListing) -> None:
        await self.db.execute(
            update(JobListing)
            .where(JobListing.id == listing.id)
            .values(views=JobListing.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(listing)

    async def get_by_id(self, job_id, increment_views: bool = False) -> JobListing:
        listing = await self._get(job_id)
        if increment_views and listing.is_published:
            await self._count_view(listing)
        return listing

    async def get_by_slug(self, slug: str, increment_views: bool = False) -> JobListing:
        if not slug or not slug.strip():
            raise ValidationError("slug is required")
        result = await self.db.execute(select(JobListing).where(JobListing.slug == slug.strip()))
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError(f"Job listing with slug '{slug}' not found")
        if increment_views and listing.is_published:
            await self._count_view(listing)
        return listing

    # ---------------- update / lifecycle ----------------

    async def update(self, job_id, data: JobListingUpdate) -> JobListing:
        listing = await self._get(job_id)
        fields = data.model_fields_set

        if "slug" in fields and data.slug and data.slug.strip() != listing.slug:
            taken = await self.db.execute(
                select(JobListing.id).where(
                    JobListing.slug == data.slug.strip(),
                    JobListing.id != listing.id,
                )
            )
            if taken.first() is not None:
                raise ConflictError(f"slug '{data.slug.strip()}' is already in use by another job listing")

        self._apply_fields(listing, data, fields)
        await self._commit(listing)

        logger.info(f"Job listing updated: {listing.id} fields={sorted(fields)}")
        return listing

    async def update_status(self, job_id, status) -> JobListing:
        status = coerce_job_status(status)
        listing = await self._get(job_id)

        listing.status = status.value
        if status == JobStatus.CLOSED:
            listing.expires_at = utcnow()
        await self._commit(listing)

        logger.info(f"Job listing {listing.id} status -> {status.value}")
        return listing

    async def publish(self, job_id) -> JobListing:
        listing = await self._get(job_id)

        missing = listing.missing_required_fields()
        if missing:
            raise ValidationError(f"Cannot publish, missing required fields: {', '.join(missing)}")
        if listing.is_published:
            raise ConflictError("Job listing is already published")

        listing.is_published = True
        listing.published_at = utcnow()
        listing.status = JobStatus.ACTIVE.value
        await self._commit(listing)

        logger.info(f"Job listing published: {listing.id}")
        return listing

    async def unpublish(self, job_id) -> JobListing:
        listing = await self._get(job_id)
        if not listing.is_published:
            raise ConflictError("Job listing is not published")

        listing.is_published = False
        listing.status = JobStatus.DRAFT.value
        await self._commit(listing)

        logger.info(f"Job listing unpublished: {listing.id}")
        return listing

    async def delete(self, job_id) -> None:
        listing = await self._get(job_id)
        await self.db.delete(listing)
        await self._commit()
        logger.info(f"Job listing deleted: {job_id}")

    # ---------------- media ----------------

    async def add_media(self, job_id, item: MediaCreate) -> JobListing:
        listing = await self._get(job_id)
        entry = _new_media_entry(item)

        listing.media = copy.deepcopy(listing.media or []) + [entry]
        flag_modified(listing, "media")
        await self._commit(listing)

        logger.info(f"Media {entry['id']} added to job listing {listing.id}")
        return listing

    async def remove_media(self, job_id, media_id: str) -> JobListing:
        listing = await self._get(job_id)
        media = copy.deepcopy(listing.media or [])
        remaining = [entry for entry in media if entry.get("id") != media_id]
        if len(remaining) == len(media):
            raise NotFoundError(f"Media {media_id} not found on job listing {job_id}")

        listing.media = remaining
        flag_modified(listing, "media")
        await self._commit(listing)

        logger.info(f"Media {media_id} removed from job listing {listing.id}")
        return listing

    async def update_media(self, job_id, media_id: str, data: MediaUpdate) -> JobListing:
        listing = await self._get(job_id)
        media = copy.deepcopy(listing.media or [])
        entry = next((entry for entry in media if entry.get("id") == media_id), None)
        if entry is None:
            raise NotFoundError(f"Media {media_id} not found on job listing {job_id}")

        for name in data.model_fields_set:
            value = getattr(data, name)
            if name == "order" and value is None:
                continue
            entry[name] = value
        entry["updated_at"] = utcnow().isoformat()

        listing.media = media
        flag_modified(listing, "media")
        await self._commit(listing)
        return listing

    # ---------------- custom sections ----------------

    async def add_custom_section(self, job_id, data: FormSectionCreate) -> JobListing:
        if not data.section_title or not data.section_title.strip():
            raise ValidationError("section_title is required")
        if not data.fields:
            raise ValidationError("A section must contain at least one field")

        listing = await self._get(job_id)
        try:
            section = FormSection(
                section_title=data.section_title,
                section_description=data.section_description,
                order=data.order,
                fields=data.fields,
            )
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e))

        listing.custom_sections = copy.deepcopy(listing.custom_sections or []) + [
            section.model_dump(mode="json")
        ]
        flag_modified(listing, "custom_sections")
        await self._commit(listing)

        logger.info(f"Section {section.id} added to job listing {listing.id}")
        return listing

    async def update_custom_section(self, job_id, section_id: str, data: FormSectionUpdate) -> JobListing:
        listing = await self._get(job_id)
        sections = copy.deepcopy(listing.custom_sections or [])
        index = next((i for i, s in enumerate(sections) if s.get("id") == section_id), None)
        if index is None:
            raise NotFoundError(f"Section {section_id} not found on job listing {job_id}")

        merged = dict(sections[index])
        for name in data.model_fields_set:
            value = getattr(data, name)
            if value is None:
                continue
            if name == "fields":
                value = [field.model_dump(mode="json") for field in value]
            merged[name] = value
        try:
            section = FormSection(**merged)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e))

        sections[index] = section.model_dump(mode="json")
        listing.custom_sections = sections
        flag_modified(listing, "custom_sections")
        await self._commit(listing)
        return listing

    async def remove_custom_section(self, job_id, section_id: str) -> JobListing:
        listing = await self._get(job_id)
        sections = copy.deepcopy(listing.custom_sections or [])
        remaining = [s for s in sections if s.get("id") != section_id]
        if len(remaining) == len(sections):
            raise NotFoundError(f"Section {section_id} not found on job listing {job_id}")

        listing.custom_sections = remaining
        flag_modified(listing, "custom_sections")
        await self._commit(listing)

        logger.info(f"Section {section_id} removed from job listing {listing.id}")
        return listing

    # ---------------- tags ----------------

    async def add_tags(self, job_id, tags: list[str]) -> JobListing:
        tags = normalize_tags(tags or [])
        if not tags:
            raise ValidationError("tags must be a non-empty list")
        listing = await self._get(job_id)

        listing.tags = normalize_tags(list(listing.tags or []) + tags)
        flag_modified(listing, "tags")
        await self._commit(listing)
        return listing

    async def remove_tags(self, job_id, tags: list[str]) -> JobListing:
        tags = normalize_tags(tags or [])
        if not tags:
            raise ValidationError("tags must be a non-empty list")
        listing = await self._get(job_id)

        listing.tags = [tag for tag in listing.tags or [] if tag not in tags]
        flag_modified(listing, "tags")
        await self._commit(listing)
        return listing

    # ---------------- counters ----------------

    async def increment_applications(self, job_id) -> JobListing:
        listing = await self._get(job_id)
        await self.db.execute(
            update(JobListing)
            .where(JobListing.id == listing.id)
            .values(applications=JobListing.applications + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(listing)
        return listing

    async def decrement_applications(self, job_id) -> JobListing:
        """Decrement the applications counter, never going below zero."""
        listing = await self._get(job_id)
        await self.db.execute(
            update(JobListing)
            .where(JobListing.id == listing.id, JobListing.applications > 0)
            .values(applications=JobListing.applications - 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(listing)
        return listing

    # ---------------- bulk / expiry ----------------

    async def bulk_update_status(self, job_ids: list[str], status) -> int:
        if not job_ids:
            raise ValidationError("job_ids must be a non-empty list")
        status = coerce_job_status(status)
        ids = [parse_id(job_id, "job_id") for job_id in job_ids]

        result = await self.db.execute(
            update(JobListing)
            .where(JobListing.id.in_(ids), JobListing.status != status.value)
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(f"Bulk status -> {status.value}: {result.rowcount}/{len(ids)} job listings modified")
        return result.rowcount

    def _expired_query(self, now: datetime):
        return select(JobListing).where(
            JobListing.expires_at <= now,
            JobListing.status != JobStatus.CLOSED.value,
        )

    async def list_expired(self, page: int = 1, limit: int = 10):
        validate_pagination(page, limit)
        query = self._expired_query(utcnow()).order_by(JobListing.expires_at.desc())
        return await paginate(self.db, query, page, limit)

    async def close_expired(self) -> int:
        now = utcnow()
        result = await self.db.execute(
            update(JobListing)
            .where(JobListing.expires_at <= now, JobListing.status != JobStatus.CLOSED.value)
            .values(status=JobStatus.CLOSED.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(f"Closed {result.rowcount} expired job listings")
        return result.rowcount

    # ---------------- queries ----------------

    async def get_all(self, filters: JobListingFilters, page: int = 1, limit: int = 10):
        validate_pagination(page, limit)
        order = parse_sort(filters.sort_by)
        conditions = []

        if filters.status:
            conditions.append(JobListing.status == filters.status.value)
        if filters.employment_type:
            conditions.append(JobListing.employment_type == filters.employment_type.value)
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must be before end_date")
        if filters.start_date:
            conditions.append(JobListing.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(JobListing.created_at <= filters.end_date)
        if filters.search_term and filters.search_term.strip():
            term = filters.search_term.strip()
            conditions.append(or_(
                contains_ci(JobListing.title, term),
                contains_ci(JobListing.description, term),
                contains_ci(JobListing.role, term),
                contains_ci(JobListing.company_name, term),
                json_text_contains_ci(JobListing.tags, term),
            ))
        tags = normalize_tags(filters.tags or [])
        if tags:
            conditions.append(json_list_contains_any(JobListing.tags, tags))
        conditions.extend(self._location_conditions(filters.city, filters.state, filters.country))
        if filters.is_remote is not None:
            conditions.append(JobListing.is_remote.is_(filters.is_remote))

        query = select(JobListing).where(*conditions).order_by(order)
        return await paginate(self.db, query, page, limit)

    def _location_conditions(self, city, state, country) -> list:
        conditions = []
        if city and city.strip():
            conditions.append(contains_ci(JobListing.location_city, city.strip()))
        if state and state.strip():
            conditions.append(contains_ci(JobListing.location_state, state.strip()))
        if country and country.strip():
            conditions.append(contains_ci(JobListing.location_country, country.strip()))
        return conditions

    async def get_published(self, filters: Optional[PublishedFilters] = None, page: int = 1, limit: int = 10):
        validate_pagination(page, limit)
        filters = filters or PublishedFilters()
        conditions = [published_condition()]

        tags = normalize_tags(filters.tags or [])
        if tags:
            conditions.append(json_list_contains_any(JobListing.tags, tags))
        conditions.extend(self._location_conditions(filters.city, filters.state, filters.country))
        if filters.is_remote is not None:
            conditions.append(JobListing.is_remote.is_(filters.is_remote))
        if filters.experience_min is not None:
            conditions.append(JobListing.experience_min <= filters.experience_min)
        if filters.experience_max is not None:
            conditions.append(or_(
                JobListing.experience_max.is_(None),
                JobListing.experience_max >= filters.experience_max,
            ))
        if filters.employment_type:
            conditions.append(JobListing.employment_type == filters.employment_type.value)

        query = select(JobListing).where(*conditions).order_by(JobListing.published_at.desc())
        return await paginate(self.db, query, page, limit)

    async def search(self, search_term: str, page: int = 1, limit: int = 10):
        if not search_term or not search_term.strip():
            raise ValidationError("search_term is required")
        validate_pagination(page, limit)
        term = search_term.strip()

        query = select(JobListing).where(or_(
            contains_ci(JobListing.title, term),
            contains_ci(JobListing.description, term),
            contains_ci(JobListing.role, term),
            contains_ci(JobListing.company_name, term),
            json_text_contains_ci(JobListing.tags, term),
            json_text_contains_ci(JobListing.qualifications, term),
        )).order_by(JobListing.created_at.desc())
        return await paginate(self.db, query, page, limit)

    async def by_location(self, city=None, state=None, country=None, page: int = 1, limit: int = 10):
        validate_pagination(page, limit)
        query = (
            select(JobListing)
            .where(published_condition(), *self._location_conditions(city, state, country))
            .order_by(JobListing.published_at.desc())
        )
        return await paginate(self.db, query, page, limit)

    async def by_employment_type(self, employment_type, page: int = 1, limit: int = 10):
        employment_type = coerce_employment_type(employment_type)
        validate_pagination(page, limit)
        query = (
            select(JobListing)
            .where(published_condition(), JobListing.employment_type == employment_type.value)
            .order_by(JobListing.published_at.desc())
        )
        return await paginate(self.db, query, page, limit)

    async def by_date_range(self, start_date, end_date, page: int = 1, limit: int = 10):
        validate_date_range(start_date, end_date)
        validate_pagination(page, limit)
        query = (
            select(JobListing)
            .where(JobListing.created_at >= start_date, JobListing.created_at <= end_date)
            .order_by(JobListing.created_at.desc())
        )
        return await paginate(self.db, query, page, limit)

    async def popular_tags(self, limit: int = 20) -> list[tuple[str, int]]:
        """Tag frequencies over published listings, most frequent first."""
        if limit < 1 or limit > 100:
            raise ValidationError("limit must be between 1 and 100")
        result = await self.db.execute(select(JobListing.tags).where(published_condition()))
        counts = Counter(tag for tags in result.scalars() for tag in tags or [])
        return counts.most_common(limit)

    async def similar(self, job_id, limit: int = 5) -> list[JobListing]:
        """Other published listings sharing the role, a tag or the city."""
        if limit < 1 or limit > 20:
            raise ValidationError("limit must be between 1 and 20")
        listing = await self._get(job_id)

        matches = [JobListing.role == listing.role]
        if listing.tags:
            matches.append(json_list_contains_any(JobListing.tags, listing.tags))
        if listing.location_city:
            matches.append(JobListing.location_city == listing.location_city)

        result = await self.db.execute(
            select(JobListing)
            .where(JobListing.id != listing.id, published_condition(), or_(*matches))
            .order_by(JobListing.published_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
