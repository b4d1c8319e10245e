"""Conversation history: messages, parts and the tool invocation state machine."""

import json
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

from orbit.errors import DuplicateToolCallId, InvalidToolTransition

cuid = cuid_wrapper()


class TextOutput(BaseModel):
    """Plain text tool result."""

    kind: Literal["text"] = "text"
    text: str
    is_error: bool = False
    error_type: str | None = None

    def to_model_content(self) -> str:
        return self.text


class RenderedOutput(BaseModel):
    """Structured tool result intended for rich rendering.

    ``payload`` carries a ``type`` tag (emails, events, email_detail,
    event_detail, error) that renderers dispatch on.
    """

    kind: Literal["rendered"] = "rendered"
    payload: dict[str, Any]
    is_error: bool = False
    error_type: str | None = None

    def to_model_content(self) -> str:
        return json.dumps(self.payload, default=str)


ToolOutput = Annotated[TextOutput | RenderedOutput, Field(discriminator="kind")]


class ToolInvocationState(StrEnum):
    PARTIAL_CALL = "partial-call"
    CALL = "call"
    RESULT = "result"


_STATE_ORDER = [ToolInvocationState.PARTIAL_CALL, ToolInvocationState.CALL, ToolInvocationState.RESULT]


class ToolInvocation(BaseModel):
    """A single model-issued tool call and its lifecycle.

    The state only ever moves forward one step at a time:
    partial-call (arguments streaming) -> call (arguments complete) -> result.
    """

    tool_call_id: str
    tool_name: str
    state: ToolInvocationState = ToolInvocationState.PARTIAL_CALL
    args: dict[str, Any] = Field(default_factory=dict)
    args_text: str = ""
    result: ToolOutput | None = None

    def _advance(self, target: ToolInvocationState) -> None:
        current = _STATE_ORDER.index(self.state)
        if _STATE_ORDER.index(target) != current + 1:
            raise InvalidToolTransition(
                f"Tool call {self.tool_call_id} cannot move from {self.state} to {target}"
            )
        self.state = target

    def append_args(self, fragment: str) -> None:
        """Append a streamed fragment of the JSON arguments."""
        if self.state != ToolInvocationState.PARTIAL_CALL:
            raise InvalidToolTransition(f"Tool call {self.tool_call_id} is no longer streaming arguments")
        self.args_text += fragment

    def complete_call(self, args: dict[str, Any] | None = None) -> None:
        """Mark the arguments as complete.

        Args:
            args: Final arguments; when omitted they are parsed from the streamed fragments
        """
        if args is None:
            args = json.loads(self.args_text) if self.args_text.strip() else {}
        self._advance(ToolInvocationState.CALL)
        self.args = args

    def resolve(self, output: TextOutput | RenderedOutput) -> None:
        """Record the result of executing (or declining) the call."""
        self._advance(ToolInvocationState.RESULT)
        self.result = output

    @property
    def is_awaiting_result(self) -> bool:
        return self.state == ToolInvocationState.CALL


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class StepStartPart(BaseModel):
    """Boundary between model steps inside one assistant message."""

    type: Literal["step-start"] = "step-start"


class ToolInvocationPart(BaseModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


MessagePart = Annotated[TextPart | StepStartPart | ToolInvocationPart, Field(discriminator="type")]


class Message(BaseModel):
    """A conversation message made of ordered parts."""

    id: str = Field(default_factory=cuid)
    role: Literal["user", "assistant", "system"]
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    parts: list[MessagePart] = Field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", parts=[TextPart(text=text)])

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    def append_text(self, delta: str) -> None:
        """Append streamed text, extending the trailing text part when there is one."""
        if self.parts and isinstance(self.parts[-1], TextPart):
            self.parts[-1].text += delta
        else:
            self.parts.append(TextPart(text=delta))

    def tool_invocations(self) -> Iterator[ToolInvocation]:
        for part in self.parts:
            if isinstance(part, ToolInvocationPart):
                yield part.tool_invocation


class MessageHistory:
    """Ordered message list with a conversation-wide tool call index.

    Tool call ids are the correlation key between a model-issued call and its
    result, so the index refuses to register the same id twice.
    """

    def __init__(self) -> None:
        self.messages: list[Message] = []
        self._invocations: dict[str, ToolInvocation] = {}

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def append(self, message: Message) -> None:
        for invocation in message.tool_invocations():
            self._register(invocation)
        self.messages.append(message)

    def add_tool_invocation(self, message: Message, invocation: ToolInvocation) -> None:
        """Attach a new invocation to a message already in (or about to join) the history."""
        self._register(invocation)
        message.parts.append(ToolInvocationPart(tool_invocation=invocation))

    def _register(self, invocation: ToolInvocation) -> None:
        if invocation.tool_call_id in self._invocations:
            raise DuplicateToolCallId(invocation.tool_call_id)
        self._invocations[invocation.tool_call_id] = invocation

    def get_invocation(self, tool_call_id: str) -> ToolInvocation | None:
        return self._invocations.get(tool_call_id)

    def invocations_awaiting_result(self) -> list[ToolInvocation]:
        return [inv for inv in self._invocations.values() if inv.is_awaiting_result]

    def clear(self) -> None:
        self.messages.clear()
        self._invocations.clear()


class TextDeltaEvent(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCallStartEvent(BaseModel):
    type: Literal["tool-call-streaming-start"] = "tool-call-streaming-start"
    tool_call_id: str
    tool_name: str


class ToolCallDeltaEvent(BaseModel):
    type: Literal["tool-call-delta"] = "tool-call-delta"
    tool_call_id: str
    args_text_delta: str


class ToolCallEvent(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    requires_confirmation: bool = False


class ToolResultEvent(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: ToolOutput


class FinishEvent(BaseModel):
    type: Literal["finish"] = "finish"
    reason: Literal["stop", "awaiting_confirmation", "max_steps", "cancelled"]
    steps: int
    message_id: str | None = None


StreamEvent = Annotated[
    TextDeltaEvent | ToolCallStartEvent | ToolCallDeltaEvent | ToolCallEvent | ToolResultEvent | FinishEvent,
    Field(discriminator="type"),
]
