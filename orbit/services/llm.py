"""LLM service: converts conversation history to model messages and streams steps."""

from collections.abc import AsyncIterator

from orbit.clients.anthropic import (
    AnthropicClient,
    AnthropicMessage,
    AnthropicTool,
    CacheControl,
    get_anthropic_client,
)
from orbit.models.chat import Message, StepStartPart, TextPart, ToolInvocationPart, ToolInvocationState
from orbit.models.llm import (
    ContentBlock,
    LLMMessage,
    LLMToolDefinition,
    StreamChunk,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from orbit.utils.logging import get_logger

logger = get_logger(__name__)


def _assistant_steps(message: Message) -> list[LLMMessage]:
    """Split an assistant message into (assistant, tool results) pairs, one per step.

    Only invocations that have a result are shown to the model; calls still
    streaming or waiting for confirmation are left out.
    """
    converted: list[LLMMessage] = []
    content: list[ContentBlock] = []
    results: list[ContentBlock] = []

    def flush() -> None:
        if content:
            converted.append(LLMMessage(role="assistant", content=list(content)))
            if results:
                converted.append(LLMMessage(role="user", content=list(results)))
        content.clear()
        results.clear()

    for part in message.parts:
        if isinstance(part, StepStartPart):
            flush()
        elif isinstance(part, TextPart):
            if part.text:
                content.append(TextBlock(text=part.text))
        elif isinstance(part, ToolInvocationPart):
            invocation = part.tool_invocation
            if invocation.state != ToolInvocationState.RESULT or invocation.result is None:
                continue
            content.append(ToolUseBlock(id=invocation.tool_call_id, name=invocation.tool_name, input=invocation.args))
            results.append(
                ToolResultBlock(
                    tool_use_id=invocation.tool_call_id,
                    content=invocation.result.to_model_content(),
                    is_error=invocation.result.is_error,
                )
            )
    flush()
    return converted


def to_llm_messages(messages: list[Message]) -> list[LLMMessage]:
    """Convert conversation history to alternating user/assistant model messages."""
    converted: list[LLMMessage] = []
    for message in messages:
        if message.role == "user":
            if message.text:
                converted.append(LLMMessage(role="user", content=message.text))
        elif message.role == "assistant":
            converted.extend(_assistant_steps(message))

    merged: list[LLMMessage] = []
    for message in converted:
        if merged and merged[-1].role == message.role:
            merged[-1] = LLMMessage(role=message.role, content=_as_blocks(merged[-1]) + _as_blocks(message))
        else:
            merged.append(message)
    return merged


def _as_blocks(message: LLMMessage) -> list[ContentBlock]:
    if isinstance(message.content, str):
        return [TextBlock(text=message.content)]
    return list(message.content)


class LLMService:
    """High-level LLM service for streaming agent steps."""

    def __init__(self, client: AnthropicClient | None = None):
        """Initialize LLM service.

        Args:
            client: Anthropic client (defaults to global instance)
        """
        self.client = client or get_anthropic_client()

    @staticmethod
    def build_tools(tools: list[LLMToolDefinition]) -> list[AnthropicTool]:
        """Convert tool definitions, marking the last one for prompt caching."""
        anthropic_tools = []
        for i, tool in enumerate(tools):
            cache_control = CacheControl(type="ephemeral", ttl="5m") if i == len(tools) - 1 else None
            anthropic_tools.append(
                AnthropicTool(
                    name=tool.name,
                    description=tool.description,
                    input_schema=tool.input_schema,
                    cache_control=cache_control,
                )
            )
        return anthropic_tools

    async def stream_step(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[LLMToolDefinition],
        **kwargs,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a single model step over the conversation so far.

        Args:
            messages: Conversation history
            system_prompt: System prompt
            tools: Tools advertised to the model
            **kwargs: Overrides passed to the client

        Yields:
            Stream chunks from the client
        """
        llm_messages = to_llm_messages(messages)
        anthropic_messages = [AnthropicMessage(role=msg.role, content=msg.content) for msg in llm_messages]
        logger.debug(f"Calling LLM with {len(anthropic_messages)} messages and {len(tools)} tools")

        async for chunk in self.client.stream_message(
            messages=anthropic_messages,
            system_prompt=system_prompt,
            tools=self.build_tools(tools),
            **kwargs,
        ):
            yield chunk

    def validate_user_message(self, message: str) -> None:
        """Raises ValueError when a user message exceeds the token limit."""
        self.client.validate_message_tokens(message)


_llm_service: LLMService | None = None


def get_llm_service() -> LLMService:
    """Get or create LLM service instance."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
