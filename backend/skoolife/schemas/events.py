"""Calendar event schemas."""

import datetime as dt
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from skoolife.config import get_settings
from skoolife.schemas.base import BaseSchema
from skoolife.services.edit_flow import DialogMode, MutationScope

EventTypeType = Literal["cours", "travail", "perso", "revision_libre", "autre"]
RecurrenceType = Literal["none", "weekly"]


class EventTiming(BaseSchema):
    """Wall-clock date and time range shared by create and edit bodies."""

    date: dt.date
    start_time: dt.time
    end_time: dt.time

    @model_validator(mode="after")
    def validate_time_range(self) -> "EventTiming":
        """Ensure end_time > start_time."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventCreate(EventTiming):
    """
    Schema for creating an event.

    With recurrence="weekly" one occurrence is created per week from `date`
    up to `recurrence_end_date` (12 weeks when omitted, at most
    `max_recurrence_weeks`).
    """

    title: str = Field(..., min_length=1, max_length=100)
    event_type: EventTypeType = "autre"
    is_blocking: bool = True
    location: str | None = Field(None, max_length=255)
    recurrence: RecurrenceType = "none"
    recurrence_end_date: dt.date | None = None

    @model_validator(mode="after")
    def validate_recurrence(self) -> "EventCreate":
        if self.recurrence_end_date is not None and self.recurrence_end_date < self.date:
            raise ValueError("recurrence_end_date must not be before date")
        max_weeks = get_settings().max_recurrence_weeks
        if (
            self.recurrence_end_date is not None
            and self.recurrence_end_date > self.date + dt.timedelta(weeks=max_weeks)
        ):
            raise ValueError(f"a weekly series may span at most {max_weeks} weeks")
        return self


class EventEdit(EventTiming):
    """
    Full edit body for one occurrence.

    `scope` answers the this/series question for recurring events; it is
    ignored for standalone ones.
    """

    title: str = Field(..., min_length=1, max_length=100)
    event_type: EventTypeType
    is_blocking: bool
    scope: MutationScope | None = None

    def mutation_values(self) -> dict[str, Any]:
        return self.model_dump(exclude={"scope"})


class EventRead(BaseSchema):
    """Schema for reading event data."""

    id: UUID
    user_id: UUID
    title: str
    event_type: EventTypeType
    start_datetime: dt.datetime
    end_datetime: dt.datetime
    is_blocking: bool
    location: str | None
    source: str
    recurrence_group_id: UUID | None
    created_at: dt.datetime


class ConfirmationRequired(BaseModel):
    """Returned with 409 when a recurring occurrence needs a this/series choice."""

    mode: DialogMode
    detail: str
    recurrence_group_id: UUID
