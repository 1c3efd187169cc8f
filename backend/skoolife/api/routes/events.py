"""
Calendar event routes.

Recurring events are stored as one row per occurrence sharing a
recurrence_group_id. Editing or deleting an occurrence of a series goes
through the edit flow: without a `scope` the request is answered with 409
and the confirm mode the client should show; with `scope=this` or
`scope=series` the matching mutation path runs.
"""

import logging
from datetime import datetime, timedelta
from typing import Annotated
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from skoolife.api.deps import CurrentUser, DbSession, get_user_resource_or_404
from skoolife.config import get_settings
from skoolife.db.models import CalendarEvent, EventSource
from skoolife.schemas.events import (
    ConfirmationRequired,
    EventCreate,
    EventEdit,
    EventRead,
    EventTypeType,
)
from skoolife.services.calendar_import import CalendarImportError, read_calendar_file
from skoolife.services.edit_flow import (
    INITIAL,
    DialogAction,
    DialogState,
    MutationScope,
    confirm_action,
    transition,
)
from skoolife.services.recurrence import (
    apply_to_occurrence,
    apply_to_series,
    as_utc,
    combine,
    delete_series,
    weekly_dates,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])
settings = get_settings()

CONFIRM_RESPONSES = {409: {"model": ConfirmationRequired}}


def _timezone() -> ZoneInfo:
    return ZoneInfo(settings.default_timezone)


def _confirmation_required(state: DialogState, event: CalendarEvent) -> JSONResponse:
    body = ConfirmationRequired(
        mode=state.mode,
        detail="This event is part of a series; choose scope=this or scope=series",
        recurrence_group_id=event.recurrence_group_id,
    )
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump(mode="json"))


@router.get("/", response_model=list[EventRead])
async def list_events(
    current_user: CurrentUser,
    db: DbSession,
    start_after: datetime | None = None,
    start_before: datetime | None = None,
    event_type: EventTypeType | None = None,
) -> list[EventRead]:
    """
    List calendar events for the current user.

    Filters:
    - start_after/start_before: Filter by start_datetime range
    - event_type: cours, travail, perso, revision_libre or autre
    """
    query = select(CalendarEvent).where(CalendarEvent.user_id == current_user.id)

    if start_after:
        query = query.where(CalendarEvent.start_datetime >= as_utc(start_after))
    if start_before:
        query = query.where(CalendarEvent.start_datetime <= as_utc(start_before))
    if event_type:
        query = query.where(CalendarEvent.event_type == event_type)

    query = query.order_by(CalendarEvent.start_datetime.asc())

    result = await db.execute(query)
    return [EventRead.model_validate(e) for e in result.scalars()]


@router.post("/", response_model=list[EventRead], status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> list[EventRead]:
    """
    Create a single event or a weekly series.

    A weekly series gets one row per week up to recurrence_end_date, all
    sharing a fresh recurrence_group_id.
    """
    tz = _timezone()

    if data.recurrence == "weekly":
        last_day = data.recurrence_end_date or data.date + timedelta(
            weeks=settings.default_recurrence_weeks
        )
        days = weekly_dates(data.date, last_day)
        group_id = uuid4()
        source = EventSource.MANUAL_RECURRING.value
    else:
        days = [data.date]
        group_id = None
        source = EventSource.MANUAL.value

    events = [
        CalendarEvent(
            user_id=current_user.id,
            title=data.title,
            event_type=data.event_type,
            start_datetime=combine(day, data.start_time, tz),
            end_datetime=combine(day, data.end_time, tz),
            is_blocking=data.is_blocking,
            location=data.location,
            source=source,
            recurrence_group_id=group_id,
        )
        for day in days
    ]
    db.add_all(events)
    await db.commit()

    if group_id:
        logger.info("Created series %s with %d occurrences", group_id, len(events))
    return [EventRead.model_validate(e) for e in events]


@router.post("/import", response_model=list[EventRead], status_code=status.HTTP_201_CREATED)
async def import_events(
    current_user: CurrentUser,
    db: DbSession,
    file: Annotated[UploadFile, File()],
) -> list[EventRead]:
    """
    Import the events of an uploaded .ics calendar.

    Imported events are blocking and keep their source as `import`; events
    without a title, start or end are skipped.
    """
    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File is too large",
        )

    try:
        imported = read_calendar_file(file.filename or "", content, _timezone())
    except CalendarImportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not imported:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No event found in the calendar file",
        )
    if len(imported) > settings.max_import_events:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A calendar import is limited to {settings.max_import_events} events",
        )

    events = [
        CalendarEvent(
            user_id=current_user.id,
            title=item.title,
            event_type="autre",
            start_datetime=item.start,
            end_datetime=item.end,
            is_blocking=True,
            location=item.location,
            source=EventSource.IMPORT.value,
        )
        for item in imported
    ]
    db.add_all(events)
    await db.commit()

    logger.info("Imported %d event(s) for user %s", len(events), current_user.id)
    return [EventRead.model_validate(e) for e in events]


@router.get("/{event_id}", response_model=EventRead)
async def get_event(
    event_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> EventRead:
    """Get a specific event by ID."""
    event = await get_user_resource_or_404(db, CalendarEvent, event_id, current_user.id)
    return EventRead.model_validate(event)


@router.patch("/{event_id}", response_model=list[EventRead], responses=CONFIRM_RESPONSES)
async def update_event(
    event_id: UUID,
    data: EventEdit,
    current_user: CurrentUser,
    db: DbSession,
):
    """
    Edit an occurrence, or its whole series.

    Returns every occurrence that was written: one for a standalone event or
    scope=this, all siblings for scope=series (each keeps its own date).
    """
    event = await get_user_resource_or_404(db, CalendarEvent, event_id, current_user.id)
    recurring = event.recurrence_group_id is not None

    state, mutation = transition(
        INITIAL, DialogAction.SUBMIT_EDIT, recurring=recurring, values=data.mutation_values()
    )
    if mutation is None:
        if data.scope is None:
            return _confirmation_required(state, event)
        state, mutation = transition(state, confirm_action(data.scope), recurring=recurring)

    tz = _timezone()
    if mutation.scope is MutationScope.SERIES:
        updated = await apply_to_series(db, event, mutation.values, tz)
    else:
        apply_to_occurrence(event, mutation.values, tz)
        updated = [event]

    await db.commit()
    return [EventRead.model_validate(e) for e in updated]


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT, responses=CONFIRM_RESPONSES)
async def delete_event(
    event_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    scope: MutationScope | None = None,
):
    """Delete an occurrence, or every occurrence of its series."""
    event = await get_user_resource_or_404(db, CalendarEvent, event_id, current_user.id)
    recurring = event.recurrence_group_id is not None

    state, mutation = transition(INITIAL, DialogAction.SUBMIT_DELETE, recurring=recurring)
    if mutation is None:
        if scope is None:
            return _confirmation_required(state, event)
        state, mutation = transition(state, confirm_action(scope), recurring=recurring)

    if mutation.scope is MutationScope.SERIES:
        await delete_series(db, current_user.id, event.recurrence_group_id)
    else:
        await db.delete(event)
    await db.commit()
