"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from orbit.clients.google import GoogleApiClient

if TYPE_CHECKING:
    from orbit.services.scheduler import TaskScheduler


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ToolContext:
    """Collaborators handed to every tool call."""

    google: GoogleApiClient
    scheduler: "TaskScheduler | None" = None
    clock: Callable[[], datetime] = field(default=utcnow)

    def now(self) -> datetime:
        return self.clock()


class ToolInput(BaseModel):
    """Base class for tool parameter models."""

    model_config = ConfigDict(extra="forbid")


ToolHandler = Callable[[Any, ToolContext], Awaitable[str]]
StructuredToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the assistant.

    ``handler`` produces the plain-text tier. Read tools may also provide a
    ``structured_handler`` returning a typed payload for rich rendering; when
    present it is the tier executed by default.
    """

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    structured_handler: StructuredToolHandler | None = None
    action: str = "running tool"

    @property
    def has_structured_output(self) -> bool:
        return self.structured_handler is not None

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        return schema

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)
