"""
Upload endpoints used by the application form.

Each endpoint takes one multipart file, checks its type and size, pushes
it to blob storage and returns metadata that can be copied into an
application response.
"""
import logging

from fastapi import APIRouter, Depends, File, UploadFile

from jobboard.api.deps import get_blob_storage
from jobboard.schemas.upload import UploadResponse
from jobboard.services.storage import BlobStorage
from jobboard.services.uploads import store_upload

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/image", response_model=UploadResponse, status_code=201)
async def upload_image(
    image: UploadFile = File(...),
    storage: BlobStorage = Depends(get_blob_storage),
):
    """JPEG, PNG, GIF or WebP, up to 5MB by default."""
    return await store_upload(storage, "image", image)


@router.post("/document", response_model=UploadResponse, status_code=201)
async def upload_document(
    document: UploadFile = File(...),
    storage: BlobStorage = Depends(get_blob_storage),
):
    """PDF, Word or Excel, up to 20MB by default."""
    return await store_upload(storage, "document", document)


@router.post("/voice-recording", response_model=UploadResponse, status_code=201)
async def upload_voice_recording(
    recording: UploadFile = File(...),
    storage: BlobStorage = Depends(get_blob_storage),
):
    return await store_upload(storage, "voice_recording", recording)


@router.post("/video-recording", response_model=UploadResponse, status_code=201)
async def upload_video_recording(
    recording: UploadFile = File(...),
    storage: BlobStorage = Depends(get_blob_storage),
):
    return await store_upload(storage, "video_recording", recording)
