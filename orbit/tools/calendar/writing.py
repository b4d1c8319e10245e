"""Calendar tools that create, update and delete events."""

from datetime import timedelta
from typing import Any

from pydantic import Field

from orbit.constants import DEFAULTS, SUCCESS_MESSAGES
from orbit.models.google import CalendarEvent
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.calendar.helpers import EVENTS_PATH, event_path, format_time, parse_datetime


class CreateEventInput(ToolInput):
    summary: str = Field(..., min_length=1, description="Event title/summary")
    description: str | None = Field(default=None, description="Event description")
    start_date_time: str = Field(
        ..., description="Start date and time (e.g. '2025-09-15T10:00:00', 'Monday 15th Sep 2025 10:00 AM')"
    )
    end_date_time: str | None = Field(
        default=None, description="End date and time (defaults to 1 hour after the start)"
    )
    attendees: list[str] | None = Field(default=None, description="Attendee email addresses")
    location: str | None = Field(default=None, description="Event location")
    time_zone: str = Field(default=DEFAULTS.TIME_ZONE, description="Time zone for the event (e.g. 'America/New_York')")


class QuickMeetingInput(ToolInput):
    attendee_email: str = Field(..., min_length=3, description="Email address of the person to meet with")
    date: str = Field(..., description="Date for the meeting (e.g. 'Monday 15th Sep 2025', '2025-09-15')")
    time: str = Field(
        default=DEFAULTS.MEETING_TIME, description="Time for the meeting (e.g. '10:00 AM', '14:30')"
    )
    duration: int = Field(default=DEFAULTS.MEETING_MINUTES, ge=1, description="Meeting duration in minutes")
    subject: str | None = Field(default=None, description="Meeting subject/title")
    location: str | None = Field(default=None, description="Meeting location (physical location or video link)")


class UpdateEventInput(ToolInput):
    event_id: str = Field(..., min_length=1, description="ID of the event to update")
    summary: str | None = Field(default=None, description="New event title/summary")
    description: str | None = Field(default=None, description="New event description")
    start_date_time: str | None = Field(default=None, description="New start date and time")
    end_date_time: str | None = Field(default=None, description="New end date and time")
    location: str | None = Field(default=None, description="New event location")
    add_attendees: list[str] | None = Field(default=None, description="Email addresses to add as attendees")
    remove_attendees: list[str] | None = Field(default=None, description="Email addresses to remove from attendees")


class DeleteEventInput(ToolInput):
    event_id: str = Field(..., min_length=1, description="ID of the event to delete")


async def create_event(params: CreateEventInput, ctx: ToolContext) -> str:
    start = parse_datetime(params.start_date_time, params.time_zone)
    end = parse_datetime(params.end_date_time, params.time_zone) if params.end_date_time else start + timedelta(hours=1)

    event_data: dict[str, Any] = {
        "summary": params.summary,
        "start": {"dateTime": start.isoformat(), "timeZone": params.time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": params.time_zone},
    }
    if params.description:
        event_data["description"] = params.description
    if params.location:
        event_data["location"] = params.location
    if params.attendees:
        event_data["attendees"] = [{"email": email} for email in params.attendees]

    created = CalendarEvent.model_validate(
        await ctx.google.calendar(EVENTS_PATH, method="POST", body=event_data)
    )

    result = f"{SUCCESS_MESSAGES.EVENT_CREATED}\n\n📅 **{created.summary}**\n"
    result += f"🕒 {start.strftime('%B %d, %Y %I:%M %p')} - {end.strftime('%B %d, %Y %I:%M %p')}\n"
    if params.location:
        result += f"📍 {params.location}\n"
    if params.attendees:
        result += f"👥 Attendees: {', '.join(params.attendees)}\n"
    if created.html_link:
        result += f"\n🔗 [View in Google Calendar]({created.html_link})"
    return result


async def schedule_quick_meeting(params: QuickMeetingInput, ctx: ToolContext) -> str:
    start = parse_datetime(f"{params.date} {params.time}", default=ctx.now())
    end = start + timedelta(minutes=params.duration)
    subject = params.subject or f"Meeting with {params.attendee_email.split('@')[0]}"

    event_data: dict[str, Any] = {
        "summary": subject,
        "start": {"dateTime": start.isoformat(), "timeZone": DEFAULTS.TIME_ZONE},
        "end": {"dateTime": end.isoformat(), "timeZone": DEFAULTS.TIME_ZONE},
        "attendees": [{"email": params.attendee_email}],
    }
    if params.location:
        event_data["location"] = params.location

    created = CalendarEvent.model_validate(
        await ctx.google.calendar(EVENTS_PATH, method="POST", body=event_data)
    )

    result = f"{SUCCESS_MESSAGES.MEETING_SCHEDULED}\n\n📅 **{created.summary}**\n"
    result += f"🕒 {start.strftime('%B %d, %Y %I:%M %p')} ({params.duration} minutes)\n"
    result += f"👥 With: {params.attendee_email}\n"
    if params.location:
        result += f"📍 {params.location}\n"
    if created.html_link:
        result += f"\n🔗 [View in Google Calendar]({created.html_link})"
    return result


def _merge_attendees(
    current: list[dict[str, Any]], add: list[str] | None, remove: list[str] | None
) -> list[dict[str, Any]]:
    attendees = [attendee for attendee in current if attendee.get("email") not in (remove or [])]
    known = {attendee.get("email") for attendee in attendees}
    for email in add or []:
        if email not in known:
            attendees.append({"email": email})
            known.add(email)
    return attendees


async def update_event(params: UpdateEventInput, ctx: ToolContext) -> str:
    path = event_path(params.event_id)
    event = await ctx.google.calendar(path)

    if params.summary:
        event["summary"] = params.summary
    if params.description is not None:
        event["description"] = params.description
    if params.location is not None:
        event["location"] = params.location
    if params.start_date_time:
        start = event.get("start") or {}
        start["dateTime"] = parse_datetime(params.start_date_time, start.get("timeZone")).isoformat()
        event["start"] = start
    if params.end_date_time:
        end = event.get("end") or {}
        end["dateTime"] = parse_datetime(params.end_date_time, end.get("timeZone")).isoformat()
        event["end"] = end
    if params.add_attendees or params.remove_attendees:
        event["attendees"] = _merge_attendees(
            event.get("attendees") or [], params.add_attendees, params.remove_attendees
        )

    updated = CalendarEvent.model_validate(await ctx.google.calendar(path, method="PUT", body=event))
    return f"{SUCCESS_MESSAGES.EVENT_UPDATED}\n\n📅 **{updated.summary}**\n🕒 {format_time(updated.start)}"


async def delete_event(params: DeleteEventInput, ctx: ToolContext) -> str:
    await ctx.google.calendar(event_path(params.event_id), method="DELETE")
    return SUCCESS_MESSAGES.EVENT_DELETED


def create_writing_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="createEvent",
            description="Create a new calendar event",
            input_schema_class=CreateEventInput,
            handler=create_event,
            action="creating event",
        ),
        ToolDefinition(
            name="scheduleQuickMeeting",
            description="Quickly schedule a meeting with someone",
            input_schema_class=QuickMeetingInput,
            handler=schedule_quick_meeting,
            action="scheduling meeting",
        ),
        ToolDefinition(
            name="updateEvent",
            description="Update an existing calendar event",
            input_schema_class=UpdateEventInput,
            handler=update_event,
            action="updating event",
        ),
        ToolDefinition(
            name="deleteEvent",
            description="Delete a calendar event",
            input_schema_class=DeleteEventInput,
            handler=delete_event,
            action="deleting event",
        ),
    ]
