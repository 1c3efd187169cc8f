"""API routes for study file upload and management."""

import logging
from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select

from skoolife.api.deps import CurrentUser, DbSession, Storage, get_user_resource_or_404
from skoolife.config import get_settings, sanitize_error
from skoolife.db.models import CalendarEvent, RevisionSession, StudyFile
from skoolife.schemas.files import (
    DownloadURLResponse,
    FileUploadURLRequest,
    FileUploadURLResponse,
    FolderRead,
    StudyFileRead,
    StudyFileUpdate,
)
from skoolife.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])
settings = get_settings()


def _storage_failure(e: StorageError, message: str) -> HTTPException:
    logger.error("%s: %s", message, e, exc_info=True)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=sanitize_error(e, generic_message=message),
    )


# =============================================================================
# UPLOAD
# =============================================================================


@router.post("/upload-url", response_model=FileUploadURLResponse)
async def get_upload_url(
    request: FileUploadURLRequest,
    db: DbSession,
    user: CurrentUser,
    storage: Storage,
):
    """
    Generate presigned POST data for a direct upload to S3.

    Flow:
    1. Client calls this endpoint with filename and content type
    2. Server creates the file record and returns the presigned POST
    3. Client uploads the file directly to S3
    4. Client calls /files/{file_id}/confirm to record the stored size
    """
    if request.session_id is not None:
        await get_user_resource_or_404(db, RevisionSession, request.session_id, user.id)
        prefix = f"users/{user.id}/sessions/{request.session_id}"
    elif request.event_id is not None:
        await get_user_resource_or_404(db, CalendarEvent, request.event_id, user.id)
        prefix = f"users/{user.id}/events/{request.event_id}"
    else:
        prefix = f"users/{user.id}/files"
    file_key = f"{prefix}/{uuid4()}_{request.filename}"

    try:
        presigned = await storage.generate_presigned_upload_url(
            file_key=file_key,
            content_type=request.content_type,
        )
    except StorageError as e:
        raise _storage_failure(e, "Could not prepare the upload.")

    study_file = StudyFile(
        user_id=user.id,
        filename=request.filename,
        file_type=request.content_type,
        file_size=0,
        storage_path=file_key,
        folder_name=request.folder_name,
        session_id=request.session_id,
        event_id=request.event_id,
    )
    db.add(study_file)
    await db.commit()
    await db.refresh(study_file)

    return FileUploadURLResponse(
        upload_url=presigned["url"],
        fields=presigned["fields"],
        file_id=study_file.id,
    )


@router.post("/{file_id}/confirm", response_model=StudyFileRead)
async def confirm_upload(
    file_id: UUID,
    db: DbSession,
    user: CurrentUser,
    storage: Storage,
):
    """Record the size of an uploaded object once the client reports success."""
    study_file = await get_user_resource_or_404(db, StudyFile, file_id, user.id)

    try:
        size = await storage.get_object_size(study_file.storage_path)
    except StorageError as e:
        raise _storage_failure(e, "Could not verify the upload.")

    if size is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File has not been uploaded yet.",
        )

    study_file.file_size = size
    await db.commit()
    await db.refresh(study_file)
    logger.info("Upload confirmed for file %s (%d bytes)", study_file.id, size)
    return StudyFileRead.model_validate(study_file)


# =============================================================================
# FILE MANAGEMENT
# =============================================================================


@router.get("/", response_model=list[StudyFileRead])
async def list_files(
    db: DbSession,
    user: CurrentUser,
    folder_name: str | None = None,
    session_id: UUID | None = None,
    event_id: UUID | None = None,
):
    """List the user's files, newest first, optionally within one folder or attachment."""
    query = select(StudyFile).where(StudyFile.user_id == user.id)

    if folder_name is not None:
        query = query.where(StudyFile.folder_name == folder_name)
    if session_id is not None:
        query = query.where(StudyFile.session_id == session_id)
    if event_id is not None:
        query = query.where(StudyFile.event_id == event_id)

    query = query.order_by(StudyFile.created_at.desc())

    result = await db.execute(query)
    return [StudyFileRead.model_validate(f) for f in result.scalars()]


@router.get("/folders", response_model=list[FolderRead])
async def list_folders(
    db: DbSession,
    user: CurrentUser,
):
    """Folders are the distinct folder names in use, with their file counts."""
    result = await db.execute(
        select(StudyFile.folder_name, func.count(StudyFile.id))
        .where(StudyFile.user_id == user.id, StudyFile.folder_name.is_not(None))
        .group_by(StudyFile.folder_name)
        .order_by(StudyFile.folder_name.asc())
    )
    return [FolderRead(name=name, file_count=count) for name, count in result.all()]


@router.get("/{file_id}", response_model=StudyFileRead)
async def get_file(
    file_id: UUID,
    db: DbSession,
    user: CurrentUser,
):
    """Get file metadata."""
    study_file = await get_user_resource_or_404(db, StudyFile, file_id, user.id)
    return StudyFileRead.model_validate(study_file)


@router.patch("/{file_id}", response_model=StudyFileRead)
async def update_file(
    file_id: UUID,
    data: StudyFileUpdate,
    db: DbSession,
    user: CurrentUser,
):
    """Rename a file or move it to another folder."""
    study_file = await get_user_resource_or_404(db, StudyFile, file_id, user.id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("filename") is None:
        changes.pop("filename", None)
    for key, value in changes.items():
        setattr(study_file, key, value)
    await db.commit()
    await db.refresh(study_file)
    return StudyFileRead.model_validate(study_file)


@router.get("/{file_id}/download-url", response_model=DownloadURLResponse)
async def get_download_url(
    file_id: UUID,
    db: DbSession,
    user: CurrentUser,
    storage: Storage,
):
    """Signed, time-limited GET URL for a stored file."""
    study_file = await get_user_resource_or_404(db, StudyFile, file_id, user.id)
    expires_in = settings.download_url_expiration_seconds

    try:
        url = await storage.generate_presigned_download_url(
            study_file.storage_path, expiration=expires_in
        )
    except StorageError as e:
        raise _storage_failure(e, "Could not create a download link.")

    return DownloadURLResponse(download_url=url, expires_in=expires_in)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: UUID,
    db: DbSession,
    user: CurrentUser,
    storage: Storage,
):
    """Delete a file from S3, then its database record."""
    study_file = await get_user_resource_or_404(db, StudyFile, file_id, user.id)

    try:
        await storage.delete_object(study_file.storage_path)
    except StorageError as e:
        raise _storage_failure(e, "Could not delete the file.")

    await db.delete(study_file)
    await db.commit()
