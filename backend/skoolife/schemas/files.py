"""Pydantic schemas for study file operations."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from skoolife.schemas.base import BaseSchema, IDMixin, TimestampMixin


# Request schemas
class FileUploadURLRequest(BaseModel):
    """Request for presigned upload URL."""

    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field("application/octet-stream", min_length=1, max_length=100)
    folder_name: str | None = Field(None, min_length=1, max_length=100)
    session_id: UUID | None = None
    event_id: UUID | None = None

    @model_validator(mode="after")
    def validate_attachment(self):
        if self.session_id is not None and self.event_id is not None:
            raise ValueError("a file can be attached to a session or an event, not both")
        return self


class StudyFileUpdate(BaseSchema):
    """Rename a file or move it to another folder (null = no folder)."""

    filename: str | None = Field(None, min_length=1, max_length=255)
    folder_name: str | None = Field(None, min_length=1, max_length=100)


# Response schemas
class FileUploadURLResponse(BaseModel):
    """Response with presigned upload URL."""

    upload_url: str
    fields: dict
    file_id: UUID


class StudyFileRead(BaseSchema, IDMixin, TimestampMixin):
    """Full study file response."""

    user_id: UUID
    filename: str
    file_type: str
    file_size: int
    storage_path: str
    folder_name: str | None = None
    session_id: UUID | None = None
    event_id: UUID | None = None


class FolderRead(BaseModel):
    name: str
    file_count: int


class DownloadURLResponse(BaseModel):
    download_url: str
    expires_in: int
