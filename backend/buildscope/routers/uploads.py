import asyncio
import logging
import time

from fastapi import APIRouter, Depends, File, Form, UploadFile

from buildscope.config import Settings
from buildscope.dependencies import get_current_user, get_project_store, get_settings, get_storage_uploader
from buildscope.errors import PersistenceError
from buildscope.models.chat import Attachment
from buildscope.models.uploads import ImageUploadResponse
from buildscope.services.documents import extract_text
from buildscope.services.project_store import ProjectStore
from buildscope.services.storage import DOCUMENT_TYPES, StorageUploader, validate_upload
from buildscope.utils.text import sanitize_filename, truncate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/uploads", tags=["uploads"])


async def _read_validated(file: UploadFile, max_bytes: int, **rules) -> bytes:
    # The multipart parser reports the size up front; reject before reading.
    if file.size is not None:
        validate_upload(file.content_type, file.size, max_bytes, **rules)
    data = await file.read()
    validate_upload(file.content_type, len(data), max_bytes, **rules)
    return data


@router.post("/document", response_model=Attachment, status_code=201)
async def upload_document(
    project_id: str = Form(...),
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    store: ProjectStore = Depends(get_project_store),
    uploader: StorageUploader = Depends(get_storage_uploader),
):
    """Store a project document and return it as a chat attachment."""
    data = await _read_validated(file, settings.max_document_bytes, allowed=DOCUMENT_TYPES)
    store.get_owned_project(project_id, user_id)

    name = file.filename or "document"
    path = f"projects/{project_id}/{int(time.time() * 1000)}-{sanitize_filename(name)}"
    content = await asyncio.to_thread(extract_text, name, file.content_type, data)

    url = await uploader.upload(settings.documents_bucket, path, data, file.content_type)
    try:
        store.record_file(project_id, user_id, name, url, path)
    except Exception as e:
        logger.error("Failed to record upload %s for project %s: %s", path, project_id, e)
        await uploader.remove(settings.documents_bucket, path)
        raise PersistenceError("Failed to save file record") from e
    logger.info("Uploaded %s for project %s (%d bytes)", path, project_id, len(data))

    return Attachment(
        name=name,
        url=url,
        type=file.content_type,
        content=truncate(content, settings.max_attachment_chars) if content else None,
    )


@router.post("/image", response_model=ImageUploadResponse, status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    uploader: StorageUploader = Depends(get_storage_uploader),
):
    """Store a daily-report photo publicly and return its URL."""
    data = await _read_validated(file, settings.max_image_bytes, prefix="image/")

    name = file.filename or "image"
    path = f"daily-reports/{user_id}/{int(time.time() * 1000)}-{sanitize_filename(name)}"
    url = await uploader.upload(settings.images_bucket, path, data, file.content_type, public=True)

    return ImageUploadResponse(url=url, name=name, type=file.content_type)
