"""
Tests for job listing domain rules (service layer, in-memory SQLite).
"""
import asyncio
from datetime import timedelta
import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from jobboard.database import Base
from jobboard.database_types import utcnow
from jobboard.errors import ConflictError, InternalError, NotFoundError, ValidationError
from jobboard.models.job_listing import JobListing, JobStatus
from jobboard.schemas.form import FormSectionCreate, FormSectionUpdate
from jobboard.schemas.job_listing import (
    JobListingCreate,
    JobListingFilters,
    JobListingUpdate,
    MediaCreate,
    MediaUpdate,
    PublishedFilters,
)
from jobboard.services.job_listings import JobListingService

from conftest import listing_payload


async def create_listing(service: JobListingService, **overrides) -> JobListing:
    return await service.create(JobListingCreate(**listing_payload(**overrides)))


# ============================================================
# CREATE / READ
# ============================================================

@pytest.mark.asyncio
async def test_create_sets_defaults_and_slug(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    assert listing.status == JobStatus.DRAFT.value
    assert listing.is_published is False
    assert listing.views == 0
    assert listing.applications == 0
    assert listing.slug.startswith("senior-backend-engineer-")
    assert listing.tags == ["python", "backend"]
    assert listing.salary["currency"] == "INR"
    assert listing.salary["period"] == "yearly"
    assert listing.custom_sections[0]["fields"][0]["recording_config"]["format"] == "webm"


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["title", "description", "role"])
async def test_create_requires_core_fields(db: AsyncSession, missing):
    service = JobListingService(db)
    with pytest.raises(ValidationError, match=missing):
        await create_listing(service, **{missing: "  "})


@pytest.mark.asyncio
async def test_create_with_taken_slug_conflicts(db: AsyncSession):
    service = JobListingService(db)
    await create_listing(service, slug="backend-role")
    with pytest.raises(ConflictError):
        await create_listing(service, slug="backend-role")


@pytest.mark.asyncio
async def test_listings_without_slug_do_not_collide(db: AsyncSession):
    db.add_all([
        JobListing(title="A", description="a", role="r"),
        JobListing(title="B", description="b", role="r"),
    ])
    await db.commit()


@pytest.mark.asyncio
async def test_other_integrity_errors_are_not_slug_conflicts(db: AsyncSession):
    db.add(JobListing(description="no title", role="r"))
    with pytest.raises(InternalError):
        await JobListingService(db)._commit()


@pytest.mark.asyncio
async def test_get_unknown_and_malformed_ids(db: AsyncSession):
    service = JobListingService(db)
    with pytest.raises(NotFoundError):
        await service.get_by_id(str(uuid.uuid4()))
    with pytest.raises(ValidationError):
        await service.get_by_id("not-an-id")


# ============================================================
# VIEWS
# ============================================================

@pytest.mark.asyncio
async def test_views_not_counted_for_unpublished(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    fetched = await service.get_by_id(listing.id, increment_views=True)
    assert fetched.views == 0


@pytest.mark.asyncio
async def test_views_counted_once_per_call_when_published(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)
    await service.publish(listing.id)

    for _ in range(5):
        await service.get_by_id(listing.id, increment_views=True)
    await service.get_by_slug(listing.slug, increment_views=True)
    fetched = await service.get_by_id(listing.id)
    assert fetched.views == 6


@pytest.mark.asyncio
async def test_concurrent_views_are_not_lost(tmp_path):
    """
    Test: many readers open a published listing at once

    Verifies:
    - each get_by_id(increment_views=True) on its own session adds exactly one view
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'views.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with sessions() as session:
        service = JobListingService(session)
        listing = await create_listing(service)
        await service.publish(listing.id)

    async def view():
        async with sessions() as session:
            await JobListingService(session).get_by_id(listing.id, increment_views=True)

    readers = 20
    try:
        await asyncio.gather(*(view() for _ in range(readers)))
        async with sessions() as session:
            fetched = await JobListingService(session).get_by_id(listing.id)
            assert fetched.views == readers
    finally:
        await engine.dispose()


# ============================================================
# LIFECYCLE
# ============================================================

@pytest.mark.asyncio
async def test_publish_and_unpublish_transitions(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    published = await service.publish(listing.id)
    assert published.is_published is True
    assert published.status == JobStatus.ACTIVE.value
    assert published.published_at is not None

    with pytest.raises(ConflictError):
        await service.publish(listing.id)

    unpublished = await service.unpublish(listing.id)
    assert unpublished.is_published is False
    assert unpublished.status == JobStatus.DRAFT.value

    with pytest.raises(ConflictError):
        await service.unpublish(listing.id)


@pytest.mark.asyncio
async def test_publish_without_description_fails(db: AsyncSession):
    listing = JobListing(title="Engineer", description="", role="Engineer")
    db.add(listing)
    await db.commit()

    service = JobListingService(db)
    with pytest.raises(ValidationError, match="description"):
        await service.publish(listing.id)

    await db.refresh(listing)
    assert listing.is_published is False


@pytest.mark.asyncio
async def test_closing_stamps_expiry(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)
    assert listing.expires_at is None

    closed = await service.update_status(listing.id, "closed")
    assert closed.status == "closed"
    assert closed.expires_at is not None
    assert closed.expires_at <= utcnow()

    with pytest.raises(ValidationError):
        await service.update_status(listing.id, "paused")


@pytest.mark.asyncio
async def test_update_applies_only_sent_fields(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    updated = await service.update(listing.id, JobListingUpdate(title="Staff Backend Engineer"))
    assert updated.title == "Staff Backend Engineer"
    assert updated.description == "Build and run the hiring platform APIs."
    assert updated.location_city == "Bengaluru"

    with pytest.raises(ValidationError):
        await service.update(listing.id, JobListingUpdate(role=""))


@pytest.mark.asyncio
async def test_update_slug_taken_by_other_listing(db: AsyncSession):
    service = JobListingService(db)
    first = await create_listing(service, slug="first-slug")
    second = await create_listing(service, slug="second-slug")

    with pytest.raises(ConflictError):
        await service.update(second.id, JobListingUpdate(slug="first-slug"))

    # Keeping its own slug is not a conflict
    same = await service.update(first.id, JobListingUpdate(slug="first-slug", notes="x"))
    assert same.slug == "first-slug"


@pytest.mark.asyncio
async def test_version_bumps_on_orm_writes(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)
    version = listing.version

    await service.update(listing.id, JobListingUpdate(notes="Hiring fast"))
    assert listing.version == version + 1


# ============================================================
# MEDIA / SECTIONS / TAGS
# ============================================================

@pytest.mark.asyncio
async def test_media_add_update_remove(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    listing = await service.add_media(listing.id, MediaCreate(url="https://b/office.png", type="image"))
    media_id = listing.media[0]["id"]

    listing = await service.update_media(listing.id, media_id, MediaUpdate(caption="Our office", order=2))
    assert listing.media[0]["caption"] == "Our office"
    assert listing.media[0]["order"] == 2

    listing = await service.remove_media(listing.id, media_id)
    assert listing.media == []

    with pytest.raises(NotFoundError):
        await service.remove_media(listing.id, media_id)
    with pytest.raises(ValidationError):
        await service.add_media(listing.id, MediaCreate(url="https://b/x.png"))


@pytest.mark.asyncio
async def test_custom_section_rules(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service, custom_sections=[])

    with pytest.raises(ValidationError):
        await service.add_custom_section(listing.id, FormSectionCreate(section_title="Empty", fields=[]))
    with pytest.raises(ValidationError):
        await service.add_custom_section(listing.id, FormSectionCreate(
            section_title="  ",
            fields=[{"field_name": "a", "field_label": "A", "field_type": "text"}],
        ))

    listing = await service.add_custom_section(listing.id, FormSectionCreate(
        section_title="Portfolio",
        fields=[{"field_name": "site", "field_label": "Website", "field_type": "url"}],
    ))
    section_id = listing.custom_sections[0]["id"]

    listing = await service.update_custom_section(
        listing.id, section_id, FormSectionUpdate(section_title="Your work")
    )
    assert listing.custom_sections[0]["section_title"] == "Your work"
    assert listing.custom_sections[0]["fields"][0]["field_name"] == "site"

    with pytest.raises(NotFoundError):
        await service.update_custom_section(listing.id, "missing", FormSectionUpdate(order=1))

    listing = await service.remove_custom_section(listing.id, section_id)
    assert listing.custom_sections == []


@pytest.mark.asyncio
async def test_tags_union_and_difference(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    listing = await service.add_tags(listing.id, ["Remote", "python"])
    assert listing.tags == ["python", "backend", "remote"]

    listing = await service.remove_tags(listing.id, ["PYTHON"])
    assert listing.tags == ["backend", "remote"]

    with pytest.raises(ValidationError):
        await service.add_tags(listing.id, [])


# ============================================================
# COUNTERS / BULK / EXPIRY
# ============================================================

@pytest.mark.asyncio
async def test_application_counter_never_negative(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)

    await service.increment_applications(listing.id)
    listing = await service.increment_applications(listing.id)
    assert listing.applications == 2

    for _ in range(3):
        listing = await service.decrement_applications(listing.id)
    assert listing.applications == 0


@pytest.mark.asyncio
async def test_bulk_status_counts_modified_rows(db: AsyncSession):
    service = JobListingService(db)
    first = await create_listing(service)
    second = await create_listing(service)
    archived = await create_listing(service)
    await service.update_status(archived.id, "archived")

    modified = await service.bulk_update_status(
        [str(first.id), str(second.id), str(archived.id), str(uuid.uuid4())], "archived"
    )
    assert modified == 2

    with pytest.raises(ValidationError):
        await service.bulk_update_status(["nope"], "archived")


@pytest.mark.asyncio
async def test_expired_listings_are_listed_and_closed(db: AsyncSession):
    service = JobListingService(db)
    past = utcnow() - timedelta(days=1)
    expired = await create_listing(service, expires_at=past.isoformat())
    await create_listing(service, expires_at=(utcnow() + timedelta(days=30)).isoformat())

    items, total, pages = await service.list_expired()
    assert total == 1
    assert items[0].id == expired.id

    assert await service.close_expired() == 1
    items, total, pages = await service.list_expired()
    assert total == 0


# ============================================================
# QUERIES
# ============================================================

async def published_listing(service: JobListingService, **overrides) -> JobListing:
    listing = await create_listing(service, **overrides)
    return await service.publish(listing.id)


@pytest.mark.asyncio
async def test_get_published_filters(db: AsyncSession):
    service = JobListingService(db)
    blr = await published_listing(service)
    await published_listing(
        service,
        title="Frontend Engineer",
        role="Frontend Engineer",
        location={"city": "Pune", "country": "India", "is_remote": True},
        tags=["react"],
        experience_required={"min": 1, "max": 3},
    )
    await create_listing(service)  # draft, never visible

    items, total, _ = await service.get_published()
    assert total == 2

    items, total, _ = await service.get_published(PublishedFilters(city="bengal"))
    assert [listing.id for listing in items] == [blr.id]

    items, total, _ = await service.get_published(PublishedFilters(tags=["React"]))
    assert total == 1 and items[0].location_city == "Pune"

    items, total, _ = await service.get_published(PublishedFilters(is_remote=True))
    assert total == 1

    # experience_min: listings that accept candidates with this much experience
    items, total, _ = await service.get_published(PublishedFilters(experience_min=2))
    assert total == 1 and items[0].location_city == "Pune"


@pytest.mark.asyncio
async def test_get_published_hides_expired(db: AsyncSession):
    service = JobListingService(db)
    listing = await published_listing(service)
    listing.expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()

    items, total, _ = await service.get_published()
    assert total == 0


@pytest.mark.asyncio
async def test_get_all_filters_and_sorting(db: AsyncSession):
    service = JobListingService(db)
    a = await create_listing(service, title="Alpha Engineer")
    b = await create_listing(service, title="Beta Engineer")
    await service.publish(b.id)

    items, total, _ = await service.get_all(JobListingFilters(sort_by="title"))
    assert [listing.title for listing in items] == ["Alpha Engineer", "Beta Engineer"]

    items, total, _ = await service.get_all(JobListingFilters(status=JobStatus.ACTIVE))
    assert [listing.id for listing in items] == [b.id]

    items, total, _ = await service.get_all(JobListingFilters(search_term="ALPHA"))
    assert [listing.id for listing in items] == [a.id]

    with pytest.raises(ValidationError):
        await service.get_all(JobListingFilters(), page=1, limit=500)


@pytest.mark.asyncio
async def test_search_matches_qualifications_and_company(db: AsyncSession):
    service = JobListingService(db)
    await create_listing(service)

    _, total, _ = await service.search("postgres")
    assert total == 1
    _, total, _ = await service.search("acme")
    assert total == 1
    _, total, _ = await service.search("cobol")
    assert total == 0

    with pytest.raises(ValidationError):
        await service.search("   ")


@pytest.mark.asyncio
async def test_search_and_tag_filter_match_non_ascii_text(db: AsyncSession):
    service = JobListingService(db)
    await published_listing(service, tags=["café"], qualifications=["Français"])

    _, total, _ = await service.search("café")
    assert total == 1
    _, total, _ = await service.search("Français")
    assert total == 1

    _, total, _ = await service.get_published(PublishedFilters(tags=["Café"]))
    assert total == 1


@pytest.mark.asyncio
async def test_popular_tags_and_similar(db: AsyncSession):
    service = JobListingService(db)
    first = await published_listing(service, tags=["python", "django"])
    second = await published_listing(service, tags=["python"], location={"city": "Delhi"})
    await published_listing(service, role="Designer", tags=["figma"], location={"city": "Goa"})

    tags = await service.popular_tags(limit=2)
    assert tags[0] == ("python", 2)

    similar = await service.similar(first.id)
    assert [listing.id for listing in similar] == [second.id]


@pytest.mark.asyncio
async def test_by_employment_type_and_date_range(db: AsyncSession):
    service = JobListingService(db)
    await published_listing(service, employment_type="contract")
    await published_listing(service)

    _, total, _ = await service.by_employment_type("contract")
    assert total == 1
    with pytest.raises(ValidationError):
        await service.by_employment_type("gig")

    now = utcnow()
    _, total, _ = await service.by_date_range(now - timedelta(hours=1), now + timedelta(hours=1))
    assert total == 2
    with pytest.raises(ValidationError):
        await service.by_date_range(now, now - timedelta(days=1))


@pytest.mark.asyncio
async def test_delete(db: AsyncSession):
    service = JobListingService(db)
    listing = await create_listing(service)
    await service.delete(listing.id)
    with pytest.raises(NotFoundError):
        await service.get_by_id(listing.id)
