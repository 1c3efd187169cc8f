"""Session invite schemas."""

import datetime as dt
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from skoolife.schemas.base import BaseSchema
from skoolife.services.invites import AcceptOutcome

MeetingFormatType = Literal["presentiel", "visio"]


class InviteCreate(BaseSchema):
    """Optional meeting details attached to a new invite."""

    meeting_format: MeetingFormatType | None = None
    meeting_address: str | None = Field(None, max_length=255)
    meeting_link: str | None = Field(None, max_length=500)


class InviteRead(BaseSchema):
    """Schema for reading invite data."""

    id: UUID
    session_id: UUID
    invited_by: UUID
    unique_token: str
    expires_at: dt.datetime
    accepted_by: UUID | None
    accepted_at: dt.datetime | None
    meeting_format: MeetingFormatType | None
    meeting_address: str | None
    meeting_link: str | None
    created_at: dt.datetime


class InviteCreateResponse(InviteRead):
    """Created invite plus the link to share."""

    invite_url: str


class SubjectSummary(BaseSchema):
    id: UUID
    name: str
    color: str


class SessionSummary(BaseSchema):
    id: UUID
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    subject: SubjectSummary


class InviterSummary(BaseSchema):
    name: str
    first_name: str | None
    last_name: str | None


class InvitePreview(BaseModel):
    """Public view of an invite, shown before the visitor signs in."""

    session: SessionSummary
    inviter: InviterSummary
    meeting_format: MeetingFormatType | None
    meeting_address: str | None
    meeting_link: str | None
    expires_at: dt.datetime
    already_accepted: bool


class InviteAcceptRequest(BaseSchema):
    first_name: str | None = Field(None, min_length=1, max_length=100)


class InviteAcceptResponse(BaseModel):
    outcome: AcceptOutcome
    session_id: UUID | None = None
    session_date: dt.date | None = None


class AcceptedSessionRead(BaseModel):
    """A session the caller joined through an invite."""

    invite_id: UUID
    session: SessionSummary
    inviter: InviterSummary
    meeting_format: MeetingFormatType | None
    meeting_address: str | None
    meeting_link: str | None
    accepted_at: dt.datetime | None
