"""Tests for the Google Calendar tools."""

import json
from datetime import UTC, datetime

import pytest

from orbit.constants import SUCCESS_MESSAGES
from orbit.errors import InvalidDateTime
from orbit.tools.calendar.helpers import day_bounds, parse_datetime
from orbit.tools.registry import ToolsRegistry
from tests.conftest import CALENDAR

EVENTS = f"{CALENDAR}/events"

STANDUP = {
    "id": "evt1",
    "summary": "Standup",
    "start": {"dateTime": "2025-09-15T10:00:00Z"},
    "end": {"dateTime": "2025-09-15T10:15:00Z"},
    "location": "Room 4",
    "attendees": [
        {"email": "alice@example.com", "responseStatus": "accepted"},
        {"email": "bob@example.com", "displayName": "Bob", "responseStatus": "tentative"},
    ],
    "htmlLink": "https://calendar.google.com/event?eid=evt1",
}


@pytest.fixture
def registry() -> ToolsRegistry:
    return ToolsRegistry()


class TestDateHelpers:
    """Test date parsing and day boundaries."""

    def test_naive_value_gets_zone(self):
        parsed = parse_datetime("2025-09-20T10:00:00", "America/New_York")
        assert parsed.isoformat() == "2025-09-20T10:00:00-04:00"

    def test_explicit_offset_is_kept(self):
        parsed = parse_datetime("2025-09-20T10:00:00+02:00", "America/New_York")
        assert parsed.utcoffset().total_seconds() == 7200

    def test_natural_language(self):
        parsed = parse_datetime("Monday 15th Sep 2025 10:00 AM")
        assert parsed == datetime(2025, 9, 15, 10, 0, tzinfo=UTC)

    def test_invalid_value(self):
        with pytest.raises(InvalidDateTime):
            parse_datetime("not a date")

    def test_unknown_zone(self):
        with pytest.raises(InvalidDateTime):
            parse_datetime("2025-09-20T10:00:00", "Mars/Olympus_Mons")

    def test_day_bounds_are_utc(self):
        start, end = day_bounds(datetime(2025, 9, 15, 23, 59, tzinfo=UTC))
        assert start == datetime(2025, 9, 15, tzinfo=UTC)
        assert end == datetime(2025, 9, 16, tzinfo=UTC)


class TestReadingTools:
    """Test listing and searching events."""

    @pytest.mark.asyncio
    async def test_today_without_events(self, registry, tool_context, fake_google):
        fake_google.add("GET", EVENTS, {"items": []})

        result = await registry.execute("getTodayEvents", {}, tool_context, output="text")

        assert result.text == "📅 No events scheduled for today."
        params = fake_google.requests[0].url.params
        assert params["timeMin"] == "2025-09-15T00:00:00+00:00"
        assert params["timeMax"] == "2025-09-16T00:00:00+00:00"
        assert params["singleEvents"] == "true"
        assert params["orderBy"] == "startTime"

    @pytest.mark.asyncio
    async def test_today_payload(self, registry, tool_context, fake_google):
        fake_google.add("GET", EVENTS, {"items": [STANDUP]})

        result = await registry.execute("getTodayEvents", {}, tool_context)

        assert result.payload["type"] == "events"
        assert result.payload["title"] == "Today's Events"
        assert result.payload["subtitle"] == "Monday, September 15, 2025"
        assert result.payload["events"][0]["htmlLink"] == STANDUP["htmlLink"]

    @pytest.mark.asyncio
    async def test_upcoming_events_text(self, registry, tool_context, fake_google):
        fake_google.add("GET", EVENTS, {"items": [STANDUP]})

        result = await registry.execute("getUpcomingEvents", {"days": 3}, tool_context, output="text")

        assert result.text.startswith("📅 **Upcoming Events (Next 3 days):**")
        assert "1. 📅 **Standup**" in result.text
        assert "at Room 4 (2 attendees)" in result.text
        params = fake_google.requests[0].url.params
        assert params["timeMin"] == "2025-09-15T09:30:00+00:00"
        assert params["timeMax"] == "2025-09-18T09:30:00+00:00"
        assert params["maxResults"] == "10"

    @pytest.mark.asyncio
    async def test_upcoming_events_grouped(self, registry, tool_context, fake_google):
        fake_google.add("GET", EVENTS, {"items": [STANDUP]})

        result = await registry.execute("getUpcomingEvents", {}, tool_context)

        assert result.payload["groupByDate"] is True
        assert result.payload["count"] == 1

    @pytest.mark.asyncio
    async def test_search_events(self, registry, tool_context, fake_google):
        fake_google.add("GET", EVENTS, {})

        result = await registry.execute("searchEvents", {"query": "dentist"}, tool_context, output="text")

        assert result.text == '📅 No events found matching "dentist" in the next 30 days.'
        assert fake_google.requests[0].url.params["q"] == "dentist"

    @pytest.mark.asyncio
    async def test_event_details(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{EVENTS}/evt1", STANDUP)

        result = await registry.execute("getEventDetails", {"event_id": "evt1"}, tool_context, output="text")

        assert "**Title:** Standup" in result.text
        assert "✅ alice@example.com" in result.text
        assert "❓ bob@example.com (Bob)" in result.text
        assert "🔗 [View in Google Calendar]" in result.text


class TestWritingTools:
    """Test creating, updating and deleting events."""

    @pytest.mark.asyncio
    async def test_create_event_defaults_to_one_hour(self, registry, tool_context, fake_google):
        fake_google.add("POST", EVENTS, lambda request: {**json.loads(request.content), "id": "new"})

        result = await registry.execute(
            "createEvent",
            {"summary": "Planning", "start_date_time": "2025-09-20T10:00:00", "attendees": ["bob@example.com"]},
            tool_context,
        )

        assert result.text.startswith(SUCCESS_MESSAGES.EVENT_CREATED)
        assert "👥 Attendees: bob@example.com" in result.text
        body = json.loads(fake_google.requests[0].content)
        assert body["start"] == {"dateTime": "2025-09-20T10:00:00+00:00", "timeZone": "UTC"}
        assert body["end"] == {"dateTime": "2025-09-20T11:00:00+00:00", "timeZone": "UTC"}
        assert body["attendees"] == [{"email": "bob@example.com"}]

    @pytest.mark.asyncio
    async def test_invalid_start_makes_no_request(self, registry, tool_context, fake_google):
        result = await registry.execute(
            "createEvent", {"summary": "Planning", "start_date_time": "sometime soon"}, tool_context
        )

        assert result.is_error
        assert result.text == "❌ Invalid date/time format: sometime soon"
        assert fake_google.requests == []

    @pytest.mark.asyncio
    async def test_quick_meeting(self, registry, tool_context, fake_google):
        fake_google.add("POST", EVENTS, lambda request: {**json.loads(request.content), "id": "m1"})

        result = await registry.execute(
            "scheduleQuickMeeting",
            {"attendee_email": "alex@example.com", "date": "2025-09-20", "time": "2:30 PM", "duration": 30},
            tool_context,
        )

        assert result.text.startswith(SUCCESS_MESSAGES.MEETING_SCHEDULED)
        assert "📅 **Meeting with alex**" in result.text
        assert "(30 minutes)" in result.text
        body = json.loads(fake_google.requests[0].content)
        assert body["start"]["dateTime"] == "2025-09-20T14:30:00+00:00"
        assert body["end"]["dateTime"] == "2025-09-20T15:00:00+00:00"

    @pytest.mark.asyncio
    async def test_update_event_merges_attendees(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{EVENTS}/evt1", STANDUP)
        fake_google.add("PUT", f"{EVENTS}/evt1", lambda request: json.loads(request.content))

        result = await registry.execute(
            "updateEvent",
            {
                "event_id": "evt1",
                "summary": "Daily standup",
                "add_attendees": ["carol@example.com", "alice@example.com"],
                "remove_attendees": ["bob@example.com"],
            },
            tool_context,
        )

        assert result.text.startswith(SUCCESS_MESSAGES.EVENT_UPDATED)
        assert "📅 **Daily standup**" in result.text
        body = json.loads(fake_google.requests_to("PUT", f"{EVENTS}/evt1")[0].content)
        assert [attendee["email"] for attendee in body["attendees"]] == ["alice@example.com", "carol@example.com"]
        assert body["location"] == "Room 4"

    @pytest.mark.asyncio
    async def test_delete_event(self, registry, tool_context, fake_google):
        fake_google.add("DELETE", f"{EVENTS}/evt1", status=204)

        result = await registry.execute("deleteEvent", {"event_id": "evt1"}, tool_context)

        assert result.text == SUCCESS_MESSAGES.EVENT_DELETED
        assert len(fake_google.requests_to("DELETE", f"{EVENTS}/evt1")) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_event(self, registry, tool_context, fake_google):
        result = await registry.execute("deleteEvent", {"event_id": "missing"}, tool_context)

        assert result.is_error
        assert result.error_type == "api"
        assert result.text.startswith("❌ Error deleting event:")
