"""Tests for .ics parsing and the calendar import route."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import headers_for, parse_utc
from skoolife.services.calendar_import import (
    CalendarImportError,
    parse_ics,
    parse_ics_datetime,
    read_calendar_file,
)

PARIS = ZoneInfo("Europe/Paris")
UTC = timezone.utc

CALENDAR = b"""BEGIN:VCALENDAR\r
VERSION:2.0\r
PRODID:-//Ecole//Emploi du temps//FR\r
BEGIN:VEVENT\r
UID:1@ecole\r
SUMMARY:Cours de chimie\r
DTSTART:20250115T090000Z\r
DTEND:20250115T110000Z\r
LOCATION:Salle B12\r
END:VEVENT\r
BEGIN:VEVENT\r
UID:2@ecole\r
SUMMARY:TD d'anglais\r
DTSTART;TZID=Europe/Paris:20250116T140000\r
DTEND;TZID=Europe/Paris:20250116T153000\r
END:VEVENT\r
BEGIN:VEVENT\r
UID:3@ecole\r
DTSTART:20250117T090000Z\r
DTEND:20250117T100000Z\r
END:VEVENT\r
END:VCALENDAR\r
"""


class TestParseDatetime:
    def test_utc_value(self):
        assert parse_ics_datetime("20250115T090000Z", None, PARIS) == datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

    def test_floating_value_uses_default_zone(self):
        assert parse_ics_datetime("20250115T100000", None, PARIS) == datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

    def test_tzid_parameter_wins_over_default_zone(self):
        parsed = parse_ics_datetime("20250115T100000", "America/New_York", PARIS)
        assert parsed == datetime(2025, 1, 15, 15, 0, tzinfo=UTC)

    def test_unknown_tzid_falls_back(self):
        parsed = parse_ics_datetime("20250115T100000", "Not/AZone", PARIS)
        assert parsed == datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

    def test_minutes_precision(self):
        assert parse_ics_datetime("20250115T0930Z", None, PARIS) == datetime(2025, 1, 15, 9, 30, tzinfo=UTC)

    def test_date_only_starts_at_midnight(self):
        assert parse_ics_datetime("20250115", None, UTC) == datetime(2025, 1, 15, tzinfo=UTC)

    @pytest.mark.parametrize("value", ["2025-01-15", "20250115T9", "tomorrow"])
    def test_invalid_values(self, value):
        with pytest.raises(CalendarImportError):
            parse_ics_datetime(value, None, PARIS)


class TestParseIcs:
    def test_skips_events_without_summary(self):
        events = parse_ics(CALENDAR.decode(), PARIS)

        assert [e.title for e in events] == ["Cours de chimie", "TD d'anglais"]
        assert events[0].location == "Salle B12"
        assert events[1].location is None
        assert events[1].start == datetime(2025, 1, 16, 13, 0, tzinfo=UTC)

    def test_folded_lines_and_escapes(self):
        text = (
            "BEGIN:VCALENDAR\n"
            "BEGIN:VEVENT\n"
            "SUMMARY:Examen de math\n"
            " ématiques\\, partie 1\n"
            "DTSTART:20250120T080000Z\n"
            "DTEND:20250120T100000Z\n"
            "END:VEVENT\n"
            "END:VCALENDAR\n"
        )

        [event] = parse_ics(text, UTC)
        assert event.title == "Examen de mathématiques, partie 1"

    def test_alarm_summary_does_not_replace_event_title(self):
        text = (
            "BEGIN:VCALENDAR\n"
            "BEGIN:VEVENT\n"
            "SUMMARY:Oral blanc\n"
            "DTSTART:20250120T080000Z\n"
            "BEGIN:VALARM\n"
            "ACTION:EMAIL\n"
            "SUMMARY:Rappel\n"
            "END:VALARM\n"
            "DTEND:20250120T090000Z\n"
            "END:VEVENT\n"
            "END:VCALENDAR\n"
        )

        [event] = parse_ics(text, UTC)
        assert event.title == "Oral blanc"
        assert event.end == datetime(2025, 1, 20, 9, 0, tzinfo=UTC)

    def test_skips_events_ending_before_start(self):
        text = (
            "BEGIN:VCALENDAR\nBEGIN:VEVENT\nSUMMARY:Bad\n"
            "DTSTART:20250120T100000Z\nDTEND:20250120T090000Z\n"
            "END:VEVENT\nEND:VCALENDAR\n"
        )
        assert parse_ics(text, UTC) == []

    def test_long_title_truncated(self):
        text = (
            "BEGIN:VCALENDAR\nBEGIN:VEVENT\n"
            f"SUMMARY:{'x' * 150}\n"
            "DTSTART:20250120T080000Z\nDTEND:20250120T090000Z\n"
            "END:VEVENT\nEND:VCALENDAR\n"
        )
        [event] = parse_ics(text, UTC)
        assert len(event.title) == 100


class TestReadCalendarFile:
    def test_rejects_other_extensions(self):
        with pytest.raises(CalendarImportError):
            read_calendar_file("agenda.csv", CALENDAR, UTC)

    def test_rejects_non_calendar_content(self):
        with pytest.raises(CalendarImportError):
            read_calendar_file("agenda.ics", b"hello world", UTC)

    def test_accepts_bom(self):
        events = read_calendar_file("agenda.ICS", b"\xef\xbb\xbf" + CALENDAR, UTC)
        assert len(events) == 2


class TestImportRoute:
    async def _upload(self, client, headers, content, filename="emploi.ics"):
        return await client.post(
            "/events/import",
            files={"file": (filename, content, "text/calendar")},
            headers=headers,
        )

    async def test_imports_events_as_blocking(self, client, auth_headers):
        response = await self._upload(client, auth_headers, CALENDAR)

        assert response.status_code == 201, response.text
        events = response.json()
        assert [e["title"] for e in events] == ["Cours de chimie", "TD d'anglais"]
        assert all(e["source"] == "import" for e in events)
        assert all(e["is_blocking"] is True for e in events)
        assert all(e["recurrence_group_id"] is None for e in events)
        assert parse_utc(events[0]["start_datetime"]) == parse_utc("2025-01-15T09:00:00Z")
        assert parse_utc(events[1]["end_datetime"]) == parse_utc("2025-01-16T14:30:00Z")

        listed = (await client.get("/events/", headers=auth_headers)).json()
        assert len(listed) == 2

    async def test_imported_events_belong_to_uploader_only(self, client, auth_headers, make_user):
        other = await make_user("bob@example.com", "Bob")
        await self._upload(client, auth_headers, CALENDAR)

        listed = (await client.get("/events/", headers=headers_for(other))).json()
        assert listed == []

    async def test_wrong_extension(self, client, auth_headers):
        response = await self._upload(client, auth_headers, CALENDAR, filename="emploi.txt")
        assert response.status_code == 400

    async def test_calendar_without_events(self, client, auth_headers):
        response = await self._upload(client, auth_headers, b"BEGIN:VCALENDAR\nEND:VCALENDAR\n")

        assert response.status_code == 400
        assert (await client.get("/events/", headers=auth_headers)).json() == []

    async def test_too_many_events(self, client, auth_headers, monkeypatch):
        from skoolife.api.routes import events as events_routes

        monkeypatch.setattr(events_routes.settings, "max_import_events", 1)
        response = await self._upload(client, auth_headers, CALENDAR)

        assert response.status_code == 400
        assert (await client.get("/events/", headers=auth_headers)).json() == []

    async def test_requires_authentication(self, client):
        response = await self._upload(client, {}, CALENDAR)
        assert response.status_code == 401
