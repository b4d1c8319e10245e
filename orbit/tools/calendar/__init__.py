"""Google Calendar tools."""

from orbit.tools.base import ToolDefinition
from orbit.tools.calendar.reading import create_reading_tools
from orbit.tools.calendar.writing import create_writing_tools


def create_calendar_tools() -> list[ToolDefinition]:
    return [*create_reading_tools(), *create_writing_tools()]


__all__ = ["create_calendar_tools"]
