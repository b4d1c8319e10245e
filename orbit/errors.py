"""Exception hierarchy for the assistant core."""

from orbit.constants import ERROR_MESSAGES


class OrbitError(Exception):
    """Base class for all assistant errors."""


class AuthError(OrbitError):
    """The Google account cannot be used to authorize a request."""


class AuthNotConnected(AuthError):
    def __init__(self, message: str = ERROR_MESSAGES.NOT_CONNECTED):
        super().__init__(message)


class TokenExpiredNoRefresh(AuthError):
    def __init__(self, message: str = ERROR_MESSAGES.TOKEN_EXPIRED):
        super().__init__(message)


class TokenRefreshFailed(AuthError):
    def __init__(self, message: str = ERROR_MESSAGES.TOKEN_REFRESH_FAILED):
        super().__init__(message)


class OAuthNotConfigured(OrbitError):
    def __init__(self, message: str = ERROR_MESSAGES.OAUTH_NOT_CONFIGURED):
        super().__init__(message)


class OAuthExchangeFailed(OrbitError):
    """The authorization code could not be exchanged for tokens."""


class ApiError(OrbitError):
    """A Google REST API call returned an error status.

    Attributes:
        status: HTTP status code, or 0 when no response was received
        body: Raw response body (or transport error text)
        service: Which API was called, used only for the message
    """

    def __init__(self, status: int, body: str, service: str = "Google"):
        self.status = status
        self.body = body
        self.service = service
        super().__init__(f"{service} API error: {status} {body}")


class ToolError(OrbitError):
    """Base class for errors raised while dispatching a tool."""


class UnknownTool(ToolError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool {name}")


class ToolValidationError(ToolError):
    """Tool arguments did not match the tool's parameter schema."""

    def __init__(self, tool_name: str, details: list[str]):
        self.tool_name = tool_name
        self.details = details
        super().__init__(f"Invalid arguments for {tool_name}: {'; '.join(details)}")


class ToolExecutionError(ToolError):
    """A tool failed for a reason the tool itself reports."""


class NoEmailsFound(ToolExecutionError):
    def __init__(self, message: str = ERROR_MESSAGES.NO_EMAILS_FOUND):
        super().__init__(message)


class InvalidMessageId(ToolExecutionError):
    def __init__(self, message: str = ERROR_MESSAGES.INVALID_MESSAGE_ID):
        super().__init__(message)


class InvalidDateTime(ToolExecutionError):
    def __init__(self, value: str):
        super().__init__(f"Invalid date/time format: {value}")


class TaskNotFound(OrbitError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"No scheduled task with id {task_id}")


class InvalidToolTransition(OrbitError):
    """A tool invocation was asked to move to a state it cannot reach."""


class DuplicateToolCallId(OrbitError):
    def __init__(self, tool_call_id: str):
        self.tool_call_id = tool_call_id
        super().__init__(f"Tool call id already used in this conversation: {tool_call_id}")


class ConfirmationPending(OrbitError):
    """A new message was submitted while a tool call is awaiting a decision."""

    def __init__(self, tool_call_ids: list[str]):
        self.tool_call_ids = tool_call_ids
        super().__init__(f"Awaiting confirmation for tool calls: {', '.join(tool_call_ids)}")


class ModelNotConfigured(OrbitError):
    def __init__(self, message: str = "ANTHROPIC_API_KEY environment variable is required"):
        super().__init__(message)


class UnknownToolCall(OrbitError):
    def __init__(self, tool_call_id: str):
        self.tool_call_id = tool_call_id
        super().__init__(f"No tool call with id {tool_call_id}")
