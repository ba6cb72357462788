"""
Pytest fixtures for testing.
"""
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Optional

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Import database module BEFORE app to allow override
import jobboard.database
from jobboard.config import settings
from jobboard.database import Base
# Import ALL models so Base.metadata knows about all tables
from jobboard.models import JobListing, Application  # noqa: F401
from jobboard.api.deps import get_blob_storage
from jobboard.services.storage import StoredBlob

# Now import app (after we can override database)
from jobboard.main import app as fastapi_app


# Test database URL (use in-memory SQLite for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_AUTH_TOKEN = "test-recruiter-token"
settings.auth_tokens = TEST_AUTH_TOKEN


class FakeBlobStorage:
    """Records uploads instead of sending them anywhere."""

    def __init__(self, duration: Optional[float] = None):
        self.duration = duration
        self.uploads = []

    async def upload(self, data, filename, content_type, resource_type="auto"):
        self.uploads.append({
            "data": data,
            "filename": filename,
            "content_type": content_type,
            "resource_type": resource_type,
        })
        extension = (filename or "upload").rsplit(".", 1)[-1]
        return StoredBlob(
            url=f"https://blobs.test/{resource_type}/{len(self.uploads)}/{filename}",
            size=len(data),
            format=extension,
            duration=self.duration,
        )


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Ensures cleanup happens even if test fails.
    """
    # Use StaticPool to keep single connection alive and reuse it
    # This ensures all sessions see the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Replace the app's engine and sessionmaker so get_db() uses the test DB
    original_engine = jobboard.database.engine
    original_sessionmaker = jobboard.database.AsyncSessionLocal

    jobboard.database.engine = test_engine
    jobboard.database.AsyncSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    # Create session for direct test use
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    session = async_session()

    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            print(f"Warning: Failed to close session: {e}")

        try:
            async with test_engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            print(f"Warning: Failed to drop tables: {e}")

        await test_engine.dispose()

        jobboard.database.engine = original_engine
        jobboard.database.AsyncSessionLocal = original_sessionmaker


@pytest.fixture
def blob_storage() -> FakeBlobStorage:
    return FakeBlobStorage()


@pytest_asyncio.fixture
async def async_client(db: AsyncSession, blob_storage: FakeBlobStorage) -> AsyncGenerator[AsyncClient, None]:
    """
    Unauthenticated async HTTP client (candidate view).

    The db fixture already replaced jobboard.database.engine with the test
    engine, so all endpoints use the test database.
    """
    fastapi_app.dependency_overrides[get_blob_storage] = lambda: blob_storage
    transport = ASGITransport(app=fastapi_app)

    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True  # Follow 307 redirects for trailing slashes
    ) as client:
        yield client

    fastapi_app.dependency_overrides.pop(get_blob_storage, None)


@pytest_asyncio.fixture
async def client(async_client: AsyncClient) -> AsyncClient:
    """Authenticated client with the httpOnly auth cookie (recruiter view)."""
    async_client.cookies.set("auth_token", TEST_AUTH_TOKEN)
    return async_client


# ============================================================
# PAYLOAD BUILDERS
# ============================================================

def listing_payload(**overrides) -> dict:
    payload = {
        "title": "Senior Backend Engineer",
        "description": "Build and run the hiring platform APIs.",
        "role": "Backend Engineer",
        "experience_required": {"min": 3, "max": 6, "unit": "years"},
        "qualifications": ["Python", "PostgreSQL"],
        "company_info": {"name": "Acme Corp", "website": "https://acme.test"},
        "location": {"city": "Bengaluru", "state": "Karnataka", "country": "India", "is_remote": False},
        "salary": {"min": 2000000, "max": 3500000},
        "employment_type": "full_time",
        "tags": ["Python", "backend", "python"],
        "custom_sections": [
            {
                "section_title": "About you",
                "order": 1,
                "fields": [
                    {
                        "field_name": "intro",
                        "field_label": "Introduce yourself",
                        "field_type": "voice_recording",
                        "is_required": True,
                        "recording_config": {"min_duration": 10, "max_duration": 120},
                    },
                    {
                        "field_name": "years",
                        "field_label": "Years of Python",
                        "field_type": "number",
                        "is_required": False,
                        "validation": {"min": 0, "max": 40},
                    },
                ],
            }
        ],
    }
    payload.update(overrides)
    return payload


def voice_response(duration: float = 30, url: Optional[str] = "https://blobs.test/intro.webm") -> dict:
    recording = {"duration": duration, "format": "webm"}
    if url is not None:
        recording["url"] = url
    return {
        "field_name": "intro",
        "field_label": "Introduce yourself",
        "field_type": "voice_recording",
        "voice_recording": recording,
    }
