"""Terminal renderers for structured tool results."""

from typing import Any

from dateutil import parser as date_parser
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from orbit.models.ui import (
    EmailDetailPayload,
    EmailsPayload,
    ErrorPayload,
    EventDetailPayload,
    EventsPayload,
    parse_generative_ui,
)


def _format_moment(value: str, fmt: str) -> str:
    try:
        return date_parser.parse(value).strftime(fmt)
    except (ValueError, OverflowError):
        return value


def _event_start(event: dict[str, Any]) -> str:
    start = event.get("start") or {}
    value = start.get("dateTime") or start.get("date")
    if not value:
        return "Unknown time"
    return _format_moment(value, "%a %b %d, %I:%M %p" if start.get("dateTime") else "%a %b %d (all day)")


def _event_day(event: dict[str, Any]) -> str:
    start = event.get("start") or {}
    value = start.get("dateTime") or start.get("date")
    return _format_moment(value, "%A, %B %d") if value else "Unknown date"


def render_emails(payload: EmailsPayload) -> RenderableType:
    if not payload.emails:
        return Panel(payload.message or payload.subtitle or "No emails found.", title=payload.title)

    table = Table(title=payload.title, caption=payload.subtitle, show_lines=not getattr(payload, "compact", False))
    table.add_column("#", justify="right", style="dim")
    table.add_column("From", style="cyan", overflow="fold")
    table.add_column("Subject", style="bold")
    table.add_column("Preview", overflow="ellipsis", max_width=50)
    table.add_column("ID", style="dim")
    for i, email in enumerate(payload.emails, 1):
        table.add_row(
            str(i), email.get("from", ""), email.get("subject", ""), email.get("snippet", ""), email.get("id", "")
        )
    return table


def render_email_detail(payload: EmailDetailPayload) -> RenderableType:
    email = payload.email
    header = Text()
    for label, value in (("From", email.get("from", "")), ("Date", email.get("date", "")), ("ID", email.get("id", ""))):
        header.append(f"{label}: ", style="bold")
        header.append(f"{value}\n")
    body = Markdown(email.get("body") or email.get("snippet") or "")
    return Panel(Group(header, Text(""), body), title=email.get("subject") or payload.title, border_style="cyan")


def render_events(payload: EventsPayload) -> RenderableType:
    if not payload.events:
        return Panel(payload.subtitle or "No events found.", title=payload.title)

    table = Table(title=payload.title, caption=payload.subtitle)
    table.add_column("When", style="cyan")
    table.add_column("Event", style="bold")
    table.add_column("Location")
    table.add_column("ID", style="dim")

    current_day = None
    for event in payload.events:
        if payload.group_by_date:
            day = _event_day(event)
            if day != current_day:
                table.add_section()
                table.add_row(Text(day, style="bold magenta"), "", "", "")
                current_day = day
        table.add_row(
            _event_start(event), event.get("summary", "(No title)"), event.get("location", ""), event.get("id", "")
        )
    return table


def render_event_detail(payload: EventDetailPayload) -> RenderableType:
    event = payload.event
    lines = [f"**When:** {_event_start(event)}"]
    if event.get("location"):
        lines.append(f"**Location:** {event['location']}")
    if event.get("description"):
        lines.append(f"\n{event['description']}")
    attendees = event.get("attendees") or []
    if attendees:
        lines.append("\n**Attendees:**")
        for attendee in attendees:
            lines.append(f"- {attendee.get('email')} ({attendee.get('responseStatus', 'needsAction')})")
    if event.get("htmlLink"):
        lines.append(f"\n[View in Google Calendar]({event['htmlLink']})")
    return Panel(Markdown("\n".join(lines)), title=event.get("summary") or payload.title, border_style="magenta")


def render_error(payload: ErrorPayload) -> RenderableType:
    return Panel(payload.message, title="Error", border_style="red")


def render_tool_output(value: Any) -> RenderableType | None:
    """Render a structured tool payload, or return None when there is none to render."""
    payload = parse_generative_ui(value)
    if isinstance(payload, EmailsPayload):
        return render_emails(payload)
    if isinstance(payload, EmailDetailPayload):
        return render_email_detail(payload)
    if isinstance(payload, EventsPayload):
        return render_events(payload)
    if isinstance(payload, EventDetailPayload):
        return render_event_detail(payload)
    if isinstance(payload, ErrorPayload):
        return render_error(payload)
    return None
