"""Calendar reading tools with plain-text and structured tiers."""

from typing import Any

from pydantic import Field

from orbit.constants import DEFAULTS
from orbit.models.google import CalendarEvent
from orbit.models.ui import EventDetailPayload, EventsPayload, dump_payload
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.calendar.helpers import (
    EVENTS_PATH,
    day_bounds,
    event_card,
    event_path,
    event_query,
    format_event_detail,
    format_event_list,
    parse_events,
)


class UpcomingEventsInput(ToolInput):
    max_results: int = Field(
        default=DEFAULTS.EVENT_COUNT,
        ge=1,
        le=DEFAULTS.MAX_EVENT_COUNT,
        description=f"Maximum number of events to retrieve (1-{DEFAULTS.MAX_EVENT_COUNT})",
    )
    days: int = Field(
        default=DEFAULTS.UPCOMING_DAYS,
        ge=1,
        le=DEFAULTS.MAX_DAYS,
        description=f"Number of days to look ahead (1-{DEFAULTS.MAX_DAYS})",
    )


class TodayEventsInput(ToolInput):
    pass


class EventIdInput(ToolInput):
    event_id: str = Field(..., min_length=1, description="The ID of the calendar event")


class SearchEventsInput(ToolInput):
    query: str = Field(
        ..., min_length=1, description="Search query to find events (searches in title, description, location)"
    )
    max_results: int = Field(
        default=DEFAULTS.EVENT_COUNT,
        ge=1,
        le=DEFAULTS.MAX_EVENT_COUNT,
        description="Maximum number of events to return",
    )
    days: int = Field(
        default=DEFAULTS.SEARCH_DAYS,
        ge=1,
        le=DEFAULTS.MAX_DAYS,
        description="Number of days to search within",
    )


async def _upcoming(params: UpcomingEventsInput, ctx: ToolContext) -> list[CalendarEvent]:
    query = event_query(ctx.now(), params.days, maxResults=params.max_results)
    return parse_events(await ctx.google.calendar(EVENTS_PATH, params=query))


async def _today(ctx: ToolContext) -> list[CalendarEvent]:
    return parse_events(await ctx.google.calendar(EVENTS_PATH, params=event_query(ctx.now())))


async def _search(params: SearchEventsInput, ctx: ToolContext) -> list[CalendarEvent]:
    query = event_query(ctx.now(), params.days, q=params.query, maxResults=params.max_results)
    return parse_events(await ctx.google.calendar(EVENTS_PATH, params=query))


async def _event(event_id: str, ctx: ToolContext) -> CalendarEvent:
    return CalendarEvent.model_validate(await ctx.google.calendar(event_path(event_id)))


async def get_upcoming_events(params: UpcomingEventsInput, ctx: ToolContext) -> str:
    events = await _upcoming(params, ctx)
    if not events:
        return f"📅 No upcoming events found in the next {params.days} days."
    return f"📅 **Upcoming Events (Next {params.days} days):**\n\n{format_event_list(events)}"


async def get_upcoming_events_ui(params: UpcomingEventsInput, ctx: ToolContext) -> dict[str, Any]:
    events = await _upcoming(params, ctx)
    return dump_payload(
        EventsPayload(
            events=[event_card(event) for event in events],
            title="Upcoming Events",
            subtitle=f"Next {params.days} days",
            group_by_date=True,
            count=len(events),
        )
    )


async def get_today_events(params: TodayEventsInput, ctx: ToolContext) -> str:
    events = await _today(ctx)
    if not events:
        return "📅 No events scheduled for today."
    return f"📅 **Today's Events:**\n\n{format_event_list(events)}"


async def get_today_events_ui(params: TodayEventsInput, ctx: ToolContext) -> dict[str, Any]:
    events = await _today(ctx)
    start, _ = day_bounds(ctx.now())
    return dump_payload(
        EventsPayload(
            events=[event_card(event) for event in events],
            title="Today's Events",
            subtitle=start.strftime("%A, %B %d, %Y"),
            count=len(events),
        )
    )


async def get_event_details(params: EventIdInput, ctx: ToolContext) -> str:
    return format_event_detail(await _event(params.event_id, ctx))


async def get_event_details_ui(params: EventIdInput, ctx: ToolContext) -> dict[str, Any]:
    event = await _event(params.event_id, ctx)
    return dump_payload(EventDetailPayload(event=event_card(event)))


async def search_events(params: SearchEventsInput, ctx: ToolContext) -> str:
    events = await _search(params, ctx)
    if not events:
        return f'📅 No events found matching "{params.query}" in the next {params.days} days.'
    return f'📅 **Search Results for "{params.query}":**\n\n{format_event_list(events)}'


async def search_events_ui(params: SearchEventsInput, ctx: ToolContext) -> dict[str, Any]:
    events = await _search(params, ctx)
    return dump_payload(
        EventsPayload(
            events=[event_card(event) for event in events],
            title="Search Results",
            subtitle=f'Found {len(events)} events matching "{params.query}"',
            group_by_date=True,
            count=len(events),
            query=params.query,
        )
    )


def create_reading_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="getUpcomingEvents",
            description="Get upcoming calendar events from the user's primary calendar",
            input_schema_class=UpcomingEventsInput,
            handler=get_upcoming_events,
            structured_handler=get_upcoming_events_ui,
            action="getting upcoming events",
        ),
        ToolDefinition(
            name="getTodayEvents",
            description="Get today's calendar events",
            input_schema_class=TodayEventsInput,
            handler=get_today_events,
            structured_handler=get_today_events_ui,
            action="getting today's events",
        ),
        ToolDefinition(
            name="getEventDetails",
            description="Get detailed information about a specific calendar event",
            input_schema_class=EventIdInput,
            handler=get_event_details,
            structured_handler=get_event_details_ui,
            action="getting event details",
        ),
        ToolDefinition(
            name="searchEvents",
            description="Search for calendar events by text query",
            input_schema_class=SearchEventsInput,
            handler=search_events,
            structured_handler=search_events_ui,
            action="searching events",
        ),
    ]
