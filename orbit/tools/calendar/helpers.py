"""Shared Calendar helpers: date parsing, event formatting and API paths."""

from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from orbit.constants import DEFAULTS
from orbit.errors import InvalidDateTime
from orbit.models.google import CalendarEvent, EventTime

EVENTS_PATH = "calendars/primary/events"

_STATUS_EMOJI = {"accepted": "✅", "declined": "❌", "tentative": "❓", "needsAction": "⏳"}


def event_path(event_id: str) -> str:
    return f"{EVENTS_PATH}/{quote(event_id, safe='')}"


def _zone(time_zone: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(time_zone or DEFAULTS.TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidDateTime(f"unknown time zone {time_zone}")


def parse_datetime(value: str, time_zone: str | None = None, default: datetime | None = None) -> datetime:
    """Parse a free-form date/time ("2025-09-15T10:00", "Monday 15th Sep 2025 10:00 AM").

    Naive results are interpreted in ``time_zone`` (UTC when omitted).

    Raises:
        InvalidDateTime: The value cannot be understood as a date/time
    """
    zone = _zone(time_zone)
    try:
        parsed = date_parser.parse(value, default=default.replace(tzinfo=None) if default else None)
    except (ValueError, OverflowError):
        raise InvalidDateTime(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Start and end of the UTC day containing ``now``."""
    start = now.astimezone(ZoneInfo("UTC")).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def event_query(now: datetime, days: int | None = None, **extra: Any) -> dict[str, Any]:
    params: dict[str, Any] = {"singleEvents": "true", "orderBy": "startTime"}
    if days is None:
        start, end = day_bounds(now)
    else:
        start, end = now, now + timedelta(days=days)
    params["timeMin"] = start.isoformat()
    params["timeMax"] = end.isoformat()
    params.update({key: value for key, value in extra.items() if value is not None})
    return params


def format_time(time: EventTime, fallback: str = "Unknown time") -> str:
    if time.date_time:
        moment = date_parser.parse(time.date_time)
        if time.time_zone:
            moment = moment.astimezone(_zone(time.time_zone))
        return moment.strftime("%B %d, %Y %I:%M %p")
    if time.date:
        return date_parser.parse(time.date).strftime("%B %d, %Y")
    return fallback


def format_event_summary(event: CalendarEvent, index: int) -> str:
    location = f" at {event.location}" if event.location else ""
    attendees = f" ({len(event.attendees)} attendees)" if event.attendees else ""
    return f"{index + 1}. 📅 **{event.summary}**\n🕒 {format_time(event.start)}{location}{attendees}"


def format_event_list(events: list[CalendarEvent]) -> str:
    return "\n\n".join(format_event_summary(event, i) for i, event in enumerate(events))


def format_event_detail(event: CalendarEvent) -> str:
    details = "📅 **Event Details:**\n\n"
    details += f"**Title:** {event.summary}\n"
    details += f"**Start:** {format_time(event.start, 'Unknown')}\n"
    details += f"**End:** {format_time(event.end, 'Unknown')}\n"
    if event.description:
        details += f"**Description:** {event.description}\n"
    if event.location:
        details += f"**Location:** {event.location}\n"
    if event.attendees:
        details += "**Attendees:**\n"
        for attendee in event.attendees:
            emoji = _STATUS_EMOJI.get(attendee.response_status or "needsAction", "⏳")
            name = f" ({attendee.display_name})" if attendee.display_name else ""
            details += f"  {emoji} {attendee.email}{name}\n"
    if event.html_link:
        details += f"\n🔗 [View in Google Calendar]({event.html_link})"
    return details


def parse_events(response: dict[str, Any]) -> list[CalendarEvent]:
    return [CalendarEvent.model_validate(item) for item in response.get("items") or []]


def event_card(event: CalendarEvent) -> dict[str, Any]:
    return event.model_dump(by_alias=True, exclude_none=True)
