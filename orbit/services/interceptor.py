"""Human-in-the-loop confirmation for tool calls.

A tool whose name is in the confirmation set is not executed when the model
calls it. The invocation stays in the ``call`` state until a decision arrives
through :meth:`ToolCallInterceptor.add_tool_result`; the next turn then
resolves it before the model runs again.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from orbit.constants import APPROVAL, ERROR_MESSAGES
from orbit.errors import InvalidToolTransition, UnknownToolCall
from orbit.models.chat import MessageHistory, RenderedOutput, TextOutput, ToolInvocation, ToolResultEvent
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

ToolExecutor = Callable[[ToolInvocation], Awaitable[TextOutput | RenderedOutput]]


async def _execute_reporting_errors(invocation: ToolInvocation, execute: ToolExecutor) -> TextOutput | RenderedOutput:
    try:
        return await execute(invocation)
    except Exception as e:
        logger.error(f"Tool call {invocation.tool_call_id} failed: {e}", exc_info=True)
        return TextOutput(text=f"Error: {e}", is_error=True, error_type="execution")


async def execute_to_completion(invocation: ToolInvocation, execute: ToolExecutor) -> TextOutput | RenderedOutput:
    """Run a tool call and record its result, even if the caller is cancelled.

    The execution runs as its own task. A cancellation of the awaiting task
    that lands while the tool is running is re-raised only after the
    invocation holds the tool's real result.

    Returns:
        The tool output, already recorded on the invocation
    """
    execution = asyncio.ensure_future(_execute_reporting_errors(invocation, execute))
    interrupted: asyncio.CancelledError | None = None
    while not execution.done():
        try:
            await asyncio.shield(execution)
        except asyncio.CancelledError as e:
            if execution.cancelled():
                raise
            interrupted = e

    output = execution.result()
    invocation.resolve(output)
    if interrupted is not None:
        logger.warning(
            f"Cancelled while {invocation.tool_name} ({invocation.tool_call_id}) was running; its result was kept"
        )
        raise interrupted
    return output


class ToolCallInterceptor:
    """Tracks pending confirmations and applies the human's decisions."""

    def __init__(self, requires_confirmation: Callable[[str], bool]):
        """Initialize interceptor.

        Args:
            requires_confirmation: Predicate telling whether a tool name needs approval
        """
        self.requires_confirmation = requires_confirmation
        self._decisions: dict[str, Any] = {}

    def pending_confirmations(self, history: MessageHistory) -> list[ToolInvocation]:
        """Confirmation-required invocations still waiting for a result."""
        return [
            invocation
            for invocation in history.invocations_awaiting_result()
            if self.requires_confirmation(invocation.tool_name)
        ]

    def undecided(self, history: MessageHistory) -> list[ToolInvocation]:
        """Pending confirmations for which no decision has been supplied yet."""
        return [
            invocation
            for invocation in self.pending_confirmations(history)
            if invocation.tool_call_id not in self._decisions
        ]

    def add_tool_result(self, history: MessageHistory, tool_call_id: str, value: Any) -> None:
        """Record the human's decision for a pending tool call.

        Args:
            history: Conversation the call belongs to
            tool_call_id: Id of the model-issued call
            value: APPROVAL.YES, APPROVAL.NO or any custom result

        Raises:
            UnknownToolCall: No call with this id exists
            InvalidToolTransition: The call is not waiting for a confirmation
        """
        invocation = history.get_invocation(tool_call_id)
        if invocation is None:
            raise UnknownToolCall(tool_call_id)
        if not invocation.is_awaiting_result or not self.requires_confirmation(invocation.tool_name):
            raise InvalidToolTransition(f"Tool call {tool_call_id} is not awaiting confirmation")

        logger.info(f"Decision recorded for {invocation.tool_name} ({tool_call_id})")
        self._decisions[tool_call_id] = value

    async def resolve_pending(self, history: MessageHistory, execute: ToolExecutor) -> list[ToolResultEvent]:
        """Apply every recorded decision, executing approved calls exactly once.

        Calls without a decision are left untouched.

        Returns:
            One result event per resolved invocation
        """
        events: list[ToolResultEvent] = []
        for invocation in self.pending_confirmations(history):
            if invocation.tool_call_id not in self._decisions:
                continue
            decision = self._decisions.pop(invocation.tool_call_id)

            if decision == APPROVAL.YES:
                logger.info(f"Executing approved tool call {invocation.tool_name} ({invocation.tool_call_id})")
                output = await execute_to_completion(invocation, execute)
            else:
                if decision == APPROVAL.NO:
                    logger.info(f"Tool call {invocation.tool_name} ({invocation.tool_call_id}) declined")
                    output = TextOutput(text=ERROR_MESSAGES.TOOL_DECLINED, is_error=True, error_type="declined")
                else:
                    text = decision if isinstance(decision, str) else json.dumps(decision, default=str)
                    output = TextOutput(text=text)
                invocation.resolve(output)

            events.append(
                ToolResultEvent(tool_call_id=invocation.tool_call_id, tool_name=invocation.tool_name, result=output)
            )
        return events

    def clear(self) -> None:
        self._decisions.clear()
