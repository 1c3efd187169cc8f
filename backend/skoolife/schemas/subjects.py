"""Subject schemas."""

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import Field

from skoolife.schemas.base import BaseSchema, HexColor, IDMixin, TimestampMixin

SubjectStatusType = Literal["active", "archived", "terminated"]


class SubjectBase(BaseSchema):
    """Base subject schema."""

    name: str = Field(..., min_length=1, max_length=255)
    color: HexColor = "#6366F1"
    exam_date: date | None = None
    exam_type: str | None = Field(None, max_length=50)
    target_hours: float | None = Field(None, ge=0)
    exam_weight: int = Field(3, ge=1, le=5)
    difficulty_level: str | None = Field(None, max_length=20)
    notes: str | None = None
    status: SubjectStatusType = "active"


class SubjectCreate(SubjectBase):
    """Schema for creating a subject."""


class SubjectRead(SubjectBase, IDMixin, TimestampMixin):
    """Schema for reading subject data."""

    user_id: UUID


class SubjectUpdate(BaseSchema):
    """Schema for updating a subject. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    color: HexColor | None = None
    exam_date: date | None = None
    exam_type: str | None = Field(None, max_length=50)
    target_hours: float | None = Field(None, ge=0)
    exam_weight: int | None = Field(None, ge=1, le=5)
    difficulty_level: str | None = Field(None, max_length=20)
    notes: str | None = None
    status: SubjectStatusType | None = None
