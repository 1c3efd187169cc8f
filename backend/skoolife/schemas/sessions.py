"""Revision session schemas."""

import datetime as dt
from typing import Literal
from uuid import UUID

from pydantic import model_validator

from skoolife.schemas.base import BaseSchema

SessionStatusType = Literal["planned", "done", "skipped"]


class SessionBase(BaseSchema):
    """Base revision session schema."""

    subject_id: UUID
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    status: SessionStatusType = "planned"
    notes: str | None = None

    @model_validator(mode="after")
    def validate_time_range(self) -> "SessionBase":
        """Ensure end_time > start_time."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionCreate(SessionBase):
    """Schema for creating a revision session."""


class SessionRead(SessionBase):
    """Schema for reading revision session data."""

    id: UUID
    user_id: UUID
    created_at: dt.datetime
    updated_at: dt.datetime


class SessionUpdate(BaseSchema):
    """Schema for updating a revision session. All fields optional."""

    subject_id: UUID | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    status: SessionStatusType | None = None
    notes: str | None = None
