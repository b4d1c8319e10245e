"""Gmail tools."""

from orbit.tools.base import ToolDefinition
from orbit.tools.gmail.convenience import create_convenience_tools
from orbit.tools.gmail.management import create_management_tools
from orbit.tools.gmail.reading import create_reading_tools
from orbit.tools.gmail.writing import create_writing_tools


def create_gmail_tools() -> list[ToolDefinition]:
    return [
        *create_reading_tools(),
        *create_writing_tools(),
        *create_management_tools(),
        *create_convenience_tools(),
    ]


__all__ = ["create_gmail_tools"]
