"""
Recurring calendar events: series generation, sibling lookup and fan-out writes.

Occurrences of one weekly rule share a recurrence_group_id. Editing the
whole series rewrites every sibling's title/type/blocking flag and its
time-of-day while each sibling keeps its own date. Timestamps are stored
in UTC; dates and times coming from the client are wall-clock values in
the configured timezone.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from skoolife.db.models import CalendarEvent

logger = logging.getLogger(__name__)

SERIES_FIELDS = ("title", "event_type", "is_blocking")


def as_utc(value: datetime) -> datetime:
    """Normalise a stored timestamp to an aware UTC datetime (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime, tz: ZoneInfo) -> date:
    """Calendar day of a stored timestamp, as seen in `tz`."""
    return as_utc(value).astimezone(tz).date()


def combine(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Wall-clock `day` + `at` in `tz`, returned as aware UTC."""
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def weekly_dates(first_day: date, last_day: date) -> list[date]:
    """Every date from first_day to last_day (inclusive) stepping one week."""
    days = []
    current = first_day
    while current <= last_day:
        days.append(current)
        current += timedelta(weeks=1)
    return days


async def resolve_siblings(db: AsyncSession, user_id: UUID, group_id: UUID) -> list[CalendarEvent]:
    """All occurrences of a recurrence group owned by `user_id`, earliest first."""
    result = await db.execute(
        select(CalendarEvent)
        .where(
            CalendarEvent.user_id == user_id,
            CalendarEvent.recurrence_group_id == group_id,
        )
        .order_by(CalendarEvent.start_datetime.asc())
    )
    return list(result.scalars())


def apply_to_occurrence(event: CalendarEvent, values: dict[str, Any], tz: ZoneInfo) -> None:
    """Rewrite one occurrence, including its date."""
    day = values.get("date") or local_date(event.start_datetime, tz)
    for key in SERIES_FIELDS:
        if key in values:
            setattr(event, key, values[key])
    event.start_datetime = combine(day, values["start_time"], tz)
    event.end_datetime = combine(day, values["end_time"], tz)


async def apply_to_series(
    db: AsyncSession,
    occurrence: CalendarEvent,
    values: dict[str, Any],
    tz: ZoneInfo,
) -> list[CalendarEvent]:
    """
    Fan one change out to every occurrence sharing `occurrence`'s group.

    The sibling read happens before any write, so a failed read leaves the
    series untouched. Each sibling keeps its own date; `values["date"]` is
    ignored. Writes are flushed together on the caller's session and commit
    or roll back with the request.
    """
    if occurrence.recurrence_group_id is None:
        raise ValueError("occurrence is not part of a recurring series")

    siblings = await resolve_siblings(db, occurrence.user_id, occurrence.recurrence_group_id)
    series_values = {key: value for key, value in values.items() if key != "date"}
    for sibling in siblings:
        apply_to_occurrence(sibling, series_values, tz)

    await db.flush()
    logger.info(
        "Updated %d occurrences of recurrence group %s",
        len(siblings),
        occurrence.recurrence_group_id,
    )
    return siblings


async def delete_series(db: AsyncSession, user_id: UUID, group_id: UUID) -> int:
    """Delete every occurrence of a group in one statement; returns rows removed."""
    result = await db.execute(
        delete(CalendarEvent).where(
            CalendarEvent.user_id == user_id,
            CalendarEvent.recurrence_group_id == group_id,
        )
    )
    logger.info("Deleted %d occurrences of recurrence group %s", result.rowcount, group_id)
    return result.rowcount
