"""
Tests for the upload endpoints and the blob storage client.

Endpoints run against FakeBlobStorage (see conftest) and the client tests
stub the Cloudinary SDK, so nothing leaves the process.
"""
import cloudinary.exceptions
import cloudinary.uploader
import pytest
from httpx import AsyncClient

from jobboard.config import settings
from jobboard.errors import InternalError
from jobboard.services.storage import BlobStorage

from conftest import FakeBlobStorage

BASE = "/api/uploads"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.mark.asyncio
async def test_upload_image(async_client: AsyncClient, blob_storage: FakeBlobStorage):
    response = await async_client.post(
        f"{BASE}/image", files={"image": ("logo.png", PNG_BYTES, "image/png")}
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["url"] == "https://blobs.test/image/1/logo.png"
    assert data["filename"] == "logo.png"
    assert data["size"] == len(PNG_BYTES)
    assert data["mime_type"] == "image/png"
    assert data["uploaded_at"]

    assert blob_storage.uploads[0]["resource_type"] == "image"
    assert blob_storage.uploads[0]["data"] == PNG_BYTES


@pytest.mark.asyncio
async def test_upload_image_rejects_other_types(async_client: AsyncClient, blob_storage: FakeBlobStorage):
    response = await async_client.post(
        f"{BASE}/image", files={"image": ("cv.pdf", b"%PDF-1.7", "application/pdf")}
    )
    assert response.status_code == 400
    assert "Invalid file type" in response.json()["detail"]
    assert blob_storage.uploads == []


@pytest.mark.asyncio
async def test_upload_rejects_empty_file(async_client: AsyncClient):
    response = await async_client.post(
        f"{BASE}/image", files={"image": ("empty.png", b"", "image/png")}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(async_client: AsyncClient, blob_storage: FakeBlobStorage, monkeypatch):
    monkeypatch.setattr(settings, "max_image_mb", 1)
    payload = b"\x00" * (1024 * 1024 + 1)

    response = await async_client.post(
        f"{BASE}/image", files={"image": ("huge.png", payload, "image/png")}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "File too large. Maximum size: 1MB"
    assert blob_storage.uploads == []


@pytest.mark.asyncio
async def test_upload_document_goes_to_raw_storage(async_client: AsyncClient, blob_storage: FakeBlobStorage):
    response = await async_client.post(
        f"{BASE}/document", files={"document": ("resume.pdf", b"%PDF-1.7 resume", "application/pdf")}
    )
    assert response.status_code == 201
    assert response.json()["format"] == "pdf"
    assert blob_storage.uploads[0]["resource_type"] == "raw"

    response = await async_client.post(
        f"{BASE}/document", files={"document": ("notes.txt", b"hello", "text/plain")}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("endpoint,filename,mime", [
    ("voice-recording", "intro.webm", "audio/webm"),
    ("video-recording", "demo.mp4", "video/mp4"),
])
async def test_upload_recording_reports_duration(
    async_client: AsyncClient, blob_storage: FakeBlobStorage, endpoint, filename, mime
):
    blob_storage.duration = 42.5

    response = await async_client.post(
        f"{BASE}/{endpoint}", files={"recording": (filename, b"\x1a\x45\xdf\xa3" * 32, mime)}
    )
    assert response.status_code == 201, response.text
    assert response.json()["duration"] == 42.5
    assert blob_storage.uploads[0]["resource_type"] == "video"


@pytest.mark.asyncio
async def test_upload_recording_rejects_images(async_client: AsyncClient):
    response = await async_client.post(
        f"{BASE}/voice-recording", files={"recording": ("intro.png", PNG_BYTES, "image/png")}
    )
    assert response.status_code == 400


# ============================================================
# BLOB STORAGE CLIENT
# ============================================================

def test_configured_requires_all_credentials():
    assert BlobStorage("demo", "key", "secret").configured is True
    assert BlobStorage("demo", "", "secret").configured is False


@pytest.mark.asyncio
async def test_unconfigured_storage_refuses_upload():
    storage = BlobStorage("", "", "")
    with pytest.raises(InternalError):
        await storage.upload(b"data", "a.png", "image/png", resource_type="image")


@pytest.mark.asyncio
async def test_upload_maps_sdk_result(monkeypatch):
    calls = []

    def fake_upload(file, **options):
        calls.append((file.read(), options))
        return {
            "secure_url": "https://res.cloudinary.com/demo/video/upload/job-board/intro.webm",
            "bytes": 4096,
            "format": "webm",
            "duration": 31.2,
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    storage = BlobStorage("demo", "key", "secret", folder="resumes", timeout_seconds=15)

    blob = await storage.upload(b"webm-bytes", "intro.webm", "audio/webm", resource_type="video")

    assert blob.url.endswith("/job-board/intro.webm")
    assert (blob.size, blob.format, blob.duration) == (4096, "webm", 31.2)
    data, options = calls[0]
    assert data == b"webm-bytes"
    assert options["resource_type"] == "video"
    assert options["folder"] == "resumes"
    assert options["timeout"] == 15
    assert options["filename_override"] == "intro.webm"
    assert (options["cloud_name"], options["api_key"], options["api_secret"]) == ("demo", "key", "secret")


@pytest.mark.asyncio
async def test_upload_size_falls_back_to_payload_length(monkeypatch):
    monkeypatch.setattr(
        cloudinary.uploader, "upload", lambda file, **options: {"secure_url": "https://res.test/a.png"}
    )
    blob = await BlobStorage("demo", "key", "secret").upload(b"12345", "a.png", "image/png", "image")
    assert blob.size == 5
    assert blob.duration is None


@pytest.mark.asyncio
async def test_sdk_errors_become_internal_errors(monkeypatch):
    def rejecting_upload(file, **options):
        raise cloudinary.exceptions.BadRequest("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", rejecting_upload)
    with pytest.raises(InternalError, match="Failed to upload image"):
        await BlobStorage("demo", "key", "secret").upload(b"data", "a.png", "image/png", "image")
