"""Read calendar events from an uploaded iCalendar (.ics) file."""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
LOCATION_MAX_LENGTH = 255

_DATETIME_FORMATS = {6: "%Y%m%dT%H%M%S", 4: "%Y%m%dT%H%M"}


class CalendarImportError(ValueError):
    """The uploaded file cannot be read as an iCalendar file."""


@dataclass(frozen=True)
class ImportedEvent:
    title: str
    start: datetime
    end: datetime
    location: str | None = None


def unfold_lines(text: str) -> list[str]:
    """Join folded content lines (continuations start with a space or tab)."""
    lines: list[str] = []
    for raw in text.splitlines():
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw.strip():
            lines.append(raw.rstrip())
    return lines


def _split_property(line: str) -> tuple[str, dict[str, str], str]:
    head, _, value = line.partition(":")
    name, *raw_params = head.split(";")
    params = {}
    for raw in raw_params:
        key, _, param_value = raw.partition("=")
        params[key.upper()] = param_value.strip('"')
    return name.upper(), params, value


def _unescape(value: str) -> str:
    return (
        value.replace("\\n", " ")
        .replace("\\N", " ")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
        .strip()
    )


def parse_ics_datetime(value: str, tzid: str | None, default_tz: ZoneInfo) -> datetime:
    """
    Parse a DTSTART/DTEND value into an aware UTC datetime.

    `...Z` values are UTC, values with a TZID are local to that zone and
    floating values are local to `default_tz`. Date-only values start at
    midnight.
    """
    value = value.strip()
    tz = default_tz
    if tzid:
        try:
            tz = ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Unknown TZID %r, using %s", tzid, default_tz)

    if value.endswith("Z"):
        value, tz = value[:-1], timezone.utc

    if "T" not in value:
        try:
            day = datetime.strptime(value, "%Y%m%d").date()
        except ValueError as e:
            raise CalendarImportError(f"Invalid date: {value}") from e
        return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)

    # Format by width: strptime reads "0930" against %H%M%S as 09:03:00
    fmt = _DATETIME_FORMATS.get(len(value.partition("T")[2]))
    if fmt is None:
        raise CalendarImportError(f"Invalid date-time: {value}")
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError as e:
        raise CalendarImportError(f"Invalid date-time: {value}") from e
    return parsed.replace(tzinfo=tz).astimezone(timezone.utc)


def _build_event(props: dict) -> ImportedEvent | None:
    title, start, end = props.get("SUMMARY"), props.get("DTSTART"), props.get("DTEND")
    if not title or start is None or end is None or end <= start:
        return None
    location = props.get("LOCATION") or None
    return ImportedEvent(
        title=title[:TITLE_MAX_LENGTH],
        start=start,
        end=end,
        location=location[:LOCATION_MAX_LENGTH] if location else None,
    )


def parse_ics(text: str, default_tz: ZoneInfo) -> list[ImportedEvent]:
    """
    Collect every VEVENT that has a summary, a start and an end.

    Components nested in an event (alarms) are skipped, as are events whose
    end is not after their start.
    """
    events: list[ImportedEvent] = []
    current: dict | None = None
    nested = 0

    for line in unfold_lines(text):
        name, params, value = _split_property(line)

        if name == "BEGIN":
            if value.upper() == "VEVENT":
                current, nested = {}, 0
            elif current is not None:
                nested += 1
            continue
        if name == "END":
            if value.upper() == "VEVENT" and current is not None:
                event = _build_event(current)
                if event is not None:
                    events.append(event)
                current = None
            elif current is not None and nested:
                nested -= 1
            continue
        if current is None or nested:
            continue

        if name in ("SUMMARY", "LOCATION"):
            current[name] = _unescape(value)
        elif name in ("DTSTART", "DTEND"):
            current[name] = parse_ics_datetime(value, params.get("TZID"), default_tz)

    return events


def read_calendar_file(filename: str, content: bytes, default_tz: ZoneInfo) -> list[ImportedEvent]:
    """Decode an uploaded .ics file and return its events."""
    if not filename.lower().endswith(".ics"):
        raise CalendarImportError("Unsupported file type, expected an .ics calendar")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")

    if "BEGIN:VCALENDAR" not in text.upper():
        raise CalendarImportError("Not an iCalendar file")

    events = parse_ics(text, default_tz)
    logger.info("Read %d event(s) from %s", len(events), filename)
    return events
