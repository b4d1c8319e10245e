"""Conversation agent: runs one streamed, tool-calling turn at a time."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from orbit.clients.google import get_google_client
from orbit.config import Settings, get_settings
from orbit.constants import ERROR_MESSAGES, SYSTEM_PROMPT, schedule_prompt
from orbit.errors import ConfirmationPending
from orbit.models.chat import (
    FinishEvent,
    Message,
    MessageHistory,
    RenderedOutput,
    StepStartPart,
    StreamEvent,
    TextDeltaEvent,
    TextOutput,
    ToolCallDeltaEvent,
    ToolCallEvent,
    ToolCallStartEvent,
    ToolInvocation,
    ToolInvocationState,
    ToolResultEvent,
)
from orbit.models.llm import (
    LLMUsage,
    StepFinished,
    StreamChunk,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallFinished,
    ToolCallStarted,
)
from orbit.services.interceptor import ToolCallInterceptor, execute_to_completion
from orbit.services.llm import LLMService, get_llm_service
from orbit.services.scheduler import ScheduledTask, get_scheduler
from orbit.tools import ToolsRegistry, get_tools_registry
from orbit.tools.base import ToolContext
from orbit.utils.logging import get_logger

logger = get_logger(__name__)


class ConversationAgent:
    """Single conversation with its history, confirmation state and turn loop.

    Turns are serialized by a lock. Every streamed part is written to the
    history as it arrives, so the assistant message is complete in history
    when the turn's finish event is emitted.
    """

    def __init__(
        self,
        llm: LLMService,
        registry: ToolsRegistry,
        ctx: ToolContext,
        settings: Settings | None = None,
    ):
        """Initialize conversation agent.

        Args:
            llm: Service used to stream model steps
            registry: Tools available to the model
            ctx: Collaborators handed to tools
            settings: Application settings (defaults to global settings)
        """
        self.llm = llm
        self.registry = registry
        self.ctx = ctx
        self.settings = settings or get_settings()
        self.history = MessageHistory()
        self.interceptor = ToolCallInterceptor(registry.requires_confirmation)
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()

    @property
    def messages(self) -> list[Message]:
        return list(self.history.messages)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def undecided_confirmations(self) -> list[ToolInvocation]:
        return self.interceptor.undecided(self.history)

    def add_tool_result(self, tool_call_id: str, value: Any) -> None:
        """Record the human's decision for a tool call awaiting confirmation."""
        self.interceptor.add_tool_result(self.history, tool_call_id, value)

    def stop(self) -> None:
        """Ask the running turn to stop at the next chunk or tool boundary."""
        logger.info("Stop requested")
        self._stop.set()

    async def clear_history(self) -> None:
        async with self._lock:
            self.history.clear()
            self.interceptor.clear()
            logger.info("Conversation history cleared")

    def _system_prompt(self) -> str:
        return f"{SYSTEM_PROMPT}\n\n{schedule_prompt(self.ctx.now().isoformat())}"

    async def _execute(self, invocation: ToolInvocation) -> TextOutput | RenderedOutput:
        return await self.registry.execute(invocation.tool_name, invocation.args, self.ctx)

    async def run_turn(self, user_text: str | None = None) -> AsyncIterator[StreamEvent]:
        """Run one turn and stream its events.

        Args:
            user_text: New user message; None continues the conversation after
                confirmation decisions were supplied

        Yields:
            Text deltas, tool call events, tool results and a final FinishEvent

        Raises:
            ConfirmationPending: A new message was sent while a confirmation is undecided
            ValueError: The message exceeds the token limit
        """
        async with self._lock:
            self._stop.clear()

            if user_text is not None:
                undecided = self.interceptor.undecided(self.history)
                if undecided:
                    raise ConfirmationPending([invocation.tool_call_id for invocation in undecided])
                self.llm.validate_user_message(user_text)
                self.history.append(Message.user(user_text))

            for event in await self.interceptor.resolve_pending(self.history, self._execute):
                yield event

            if self.interceptor.undecided(self.history):
                logger.info("Turn is waiting for tool confirmations")
                yield FinishEvent(reason="awaiting_confirmation", steps=0)
                return

            async for event in self._run_steps():
                yield event

    async def _run_steps(self) -> AsyncIterator[StreamEvent]:
        message = Message(role="assistant")
        self.history.append(message)

        system_prompt = self._system_prompt()
        tools = self.registry.get_llm_tools()
        max_steps = self.settings.max_steps
        usage = LLMUsage()
        steps = 0
        reason = "stop"

        try:
            while True:
                if self._stop.is_set():
                    reason = "cancelled"
                    break
                if steps >= max_steps:
                    logger.warning(f"Turn reached max steps ({max_steps})")
                    reason = "max_steps"
                    break

                steps += 1
                logger.debug(f"Step {steps}/{max_steps}")
                message.parts.append(StepStartPart())
                finished: list[ToolInvocation] = []

                async with aclosing(self.llm.stream_step(self.history.messages, system_prompt, tools)) as stream:
                    async for chunk in stream:
                        if self._stop.is_set():
                            break
                        if isinstance(chunk, StepFinished):
                            usage.add(chunk.usage)
                            continue
                        yield self._apply_chunk(message, chunk, finished)

                if self._stop.is_set():
                    reason = "cancelled"
                    break

                awaiting = False
                for invocation in finished:
                    if self.registry.requires_confirmation(invocation.tool_name):
                        awaiting = True
                        continue
                    if self._stop.is_set():
                        break
                    output = await execute_to_completion(invocation, self._execute)
                    yield ToolResultEvent(
                        tool_call_id=invocation.tool_call_id, tool_name=invocation.tool_name, result=output
                    )

                if self._stop.is_set():
                    reason = "cancelled"
                    break
                if awaiting:
                    reason = "awaiting_confirmation"
                    break
                if not finished:
                    break
        finally:
            self._settle_unresolved(message, keep_confirmations=reason == "awaiting_confirmation")

        if reason == "max_steps":
            text = f"\n\n{ERROR_MESSAGES.MAX_STEPS}" if message.text else ERROR_MESSAGES.MAX_STEPS
            message.append_text(text)
            yield TextDeltaEvent(text=text)

        logger.info(
            f"Turn finished ({reason}) after {steps} steps - Input: {usage.input_tokens}, "
            f"Output: {usage.output_tokens}, Cache hits: {usage.cache_read_input_tokens}"
        )
        yield FinishEvent(reason=reason, steps=steps, message_id=message.id)

    def _apply_chunk(
        self, message: Message, chunk: StreamChunk, finished: list[ToolInvocation]
    ) -> StreamEvent:
        """Write a stream chunk into the assistant message and describe it as an event."""
        if isinstance(chunk, TextDelta):
            message.append_text(chunk.text)
            return TextDeltaEvent(text=chunk.text)

        if isinstance(chunk, ToolCallStarted):
            invocation = ToolInvocation(tool_call_id=chunk.id, tool_name=chunk.name)
            self.history.add_tool_invocation(message, invocation)
            return ToolCallStartEvent(tool_call_id=chunk.id, tool_name=chunk.name)

        if isinstance(chunk, ToolCallArgsDelta):
            invocation = self.history.get_invocation(chunk.id)
            if invocation is None:
                raise ValueError(f"Arguments streamed for unknown tool call {chunk.id}")
            invocation.append_args(chunk.partial_json)
            return ToolCallDeltaEvent(tool_call_id=chunk.id, args_text_delta=chunk.partial_json)

        if isinstance(chunk, ToolCallFinished):
            invocation = self.history.get_invocation(chunk.id)
            if invocation is None:
                invocation = ToolInvocation(tool_call_id=chunk.id, tool_name=chunk.name)
                self.history.add_tool_invocation(message, invocation)
            invocation.complete_call(chunk.input)
            finished.append(invocation)
            requires_confirmation = self.registry.requires_confirmation(chunk.name)
            suffix = " - awaiting confirmation" if requires_confirmation else ""
            logger.info(f"Model called {chunk.name} ({chunk.id}){suffix}")
            return ToolCallEvent(
                tool_call_id=chunk.id,
                tool_name=chunk.name,
                args=invocation.args,
                requires_confirmation=requires_confirmation,
            )

        raise TypeError(f"Unexpected stream chunk: {chunk!r}")

    def _settle_unresolved(self, message: Message, keep_confirmations: bool) -> None:
        """Give calls that will never run a cancelled result."""
        for invocation in message.tool_invocations():
            if invocation.state != ToolInvocationState.CALL:
                continue
            if keep_confirmations and self.registry.requires_confirmation(invocation.tool_name):
                continue
            invocation.resolve(
                TextOutput(text=ERROR_MESSAGES.TOOL_CANCELLED, is_error=True, error_type="cancelled")
            )

    async def run_scheduled_task(self, task: ScheduledTask) -> None:
        """Post the scheduled task as a user message and run a full turn."""
        text = f"Running scheduled task: {task.description}"
        try:
            async for _ in self.run_turn(text):
                pass
        except ConfirmationPending as e:
            logger.warning(f"Skipped scheduled task {task.id}: {e}")


_conversation_agent: ConversationAgent | None = None


def get_conversation_agent() -> ConversationAgent:
    """Get or create the conversation agent and wire it to the scheduler."""
    global _conversation_agent
    if _conversation_agent is None:
        scheduler = get_scheduler()
        _conversation_agent = ConversationAgent(
            llm=get_llm_service(),
            registry=get_tools_registry(),
            ctx=ToolContext(google=get_google_client(), scheduler=scheduler),
        )
        scheduler.set_callback(_conversation_agent.run_scheduled_task)
    return _conversation_agent
