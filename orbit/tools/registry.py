"""Tools registry: advertisement, validation and dispatch."""

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import ValidationError

from orbit.config import get_settings
from orbit.constants import ERROR_MESSAGES
from orbit.errors import ApiError, AuthError, ToolExecutionError, ToolValidationError, UnknownTool
from orbit.models.chat import RenderedOutput, TextOutput
from orbit.models.llm import LLMToolDefinition
from orbit.models.ui import ErrorPayload, dump_payload
from orbit.tools.base import ToolContext, ToolDefinition
from orbit.tools.calendar import create_calendar_tools
from orbit.tools.general import create_scheduling_tools
from orbit.tools.gmail import create_gmail_tools
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

OutputTier = Literal["auto", "text", "rendered"]


def describe_tool_error(error: Exception, action: str) -> tuple[str, str]:
    """Turn an exception raised by a tool into user-facing text.

    Returns:
        (message, error_type) where error_type is one of auth, permission,
        not_found, execution or api
    """
    if isinstance(error, AuthError):
        return ERROR_MESSAGES.RECONNECT, "auth"
    if isinstance(error, ApiError):
        if error.status == 401:
            return ERROR_MESSAGES.RECONNECT, "auth"
        if error.status == 403:
            return f"❌ {ERROR_MESSAGES.INSUFFICIENT_PERMISSIONS}", "permission"
        return f"❌ Error {action}: {error}", "api"
    if isinstance(error, ToolExecutionError):
        return f"❌ {error}", "execution"
    return f"❌ Error {action}: {error}", "execution"


class ToolsRegistry:
    """Registry for assistant tools."""

    def __init__(self, confirmation_required: Iterable[str] = (), register_defaults: bool = True):
        """Initialize tools registry.

        Args:
            confirmation_required: Tool names that need human approval before running
            register_defaults: Register the Gmail, Calendar and scheduling tools
        """
        self.confirmation_required = frozenset(confirmation_required)
        self._tools: dict[str, ToolDefinition] = {}
        if register_defaults:
            self._register_default_tools()

    def _register_default_tools(self) -> None:
        for tool in [*create_scheduling_tools(), *create_gmail_tools(), *create_calendar_tools()]:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(name)
        return tool

    def get_llm_tools(self) -> list[LLMToolDefinition]:
        """Tool definitions advertised to the model, one per tool name."""
        return [
            LLMToolDefinition(name=tool.name, description=tool.description, input_schema=tool.get_json_schema())
            for tool in self._tools.values()
        ]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def requires_confirmation(self, name: str) -> bool:
        return name in self.confirmation_required

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        ctx: ToolContext,
        output: OutputTier = "auto",
    ) -> TextOutput | RenderedOutput:
        """Validate arguments and run a tool, never raising for tool failures.

        Args:
            name: Tool name
            args: Raw arguments from the model
            ctx: Collaborators for the tool
            output: "auto" runs the structured tier when the tool has one,
                "text" forces the plain-text tier, "rendered" requires the structured tier

        Returns:
            The tool output; failures are reported as outputs with ``is_error`` set
        """
        try:
            tool = self.get_tool(name)
        except UnknownTool as e:
            logger.error(f"Unknown tool requested: {name}")
            return TextOutput(text=f"Error: {e}", is_error=True, error_type="unknown_tool")

        try:
            params = tool.parse_input(args)
        except ValidationError as e:
            details = [f"{'.'.join(str(loc) for loc in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()]
            error = ToolValidationError(name, details)
            logger.warning(str(error))
            return TextOutput(text=f"Error: {error}", is_error=True, error_type="validation")

        structured = tool.has_structured_output and output != "text"
        if output == "rendered" and not structured:
            return TextOutput(text=f"Error: {name} has no structured output", is_error=True, error_type="validation")

        logger.info(f"Executing tool {name} ({'structured' if structured else 'text'})")
        try:
            if structured:
                payload = await tool.structured_handler(params, ctx)
                return RenderedOutput(payload=payload, is_error=payload.get("type") == "error")
            text = await tool.handler(params, ctx)
            return TextOutput(text=text)
        except Exception as e:
            message, error_type = describe_tool_error(e, tool.action)
            logger.error(f"Tool {name} failed ({error_type}): {e}")
            if structured:
                return RenderedOutput(
                    payload=dump_payload(ErrorPayload(message=message)), is_error=True, error_type=error_type
                )
            return TextOutput(text=message, is_error=True, error_type=error_type)


_tools_registry: ToolsRegistry | None = None


def get_tools_registry() -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry
    if _tools_registry is None:
        _tools_registry = ToolsRegistry(confirmation_required=get_settings().tools_requiring_confirmation)
    return _tools_registry
