"""Tests for the human-in-the-loop confirmation interceptor."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from orbit.constants import APPROVAL, ERROR_MESSAGES
from orbit.errors import InvalidToolTransition, UnknownToolCall
from orbit.models.chat import Message, MessageHistory, TextOutput, ToolInvocation, ToolInvocationState
from orbit.services.interceptor import ToolCallInterceptor


def build_history(*calls: tuple[str, str]) -> MessageHistory:
    """History with one assistant message holding completed calls awaiting results."""
    history = MessageHistory()
    message = Message(role="assistant")
    history.append(message)
    for tool_call_id, tool_name in calls:
        invocation = ToolInvocation(tool_call_id=tool_call_id, tool_name=tool_name)
        history.add_tool_invocation(message, invocation)
        invocation.complete_call({"message_id": "abc"})
    return history


@pytest.fixture
def interceptor() -> ToolCallInterceptor:
    return ToolCallInterceptor(lambda name: name in {"deleteEmail", "deleteEvent"})


@pytest.fixture
def execute() -> AsyncMock:
    return AsyncMock(return_value=TextOutput(text="🗑️ Email moved to trash!"))


class TestPendingConfirmations:
    """Test which calls count as awaiting a decision."""

    def test_only_confirmation_tools_are_pending(self, interceptor):
        history = build_history(("t1", "deleteEmail"), ("t2", "getLatestEmails"))

        assert [inv.tool_call_id for inv in interceptor.pending_confirmations(history)] == ["t1"]
        assert [inv.tool_call_id for inv in interceptor.undecided(history)] == ["t1"]

    def test_decided_calls_are_not_undecided(self, interceptor):
        history = build_history(("t1", "deleteEmail"), ("t2", "deleteEvent"))
        interceptor.add_tool_result(history, "t1", APPROVAL.YES)

        assert [inv.tool_call_id for inv in interceptor.undecided(history)] == ["t2"]

    def test_unknown_tool_call(self, interceptor):
        history = build_history(("t1", "deleteEmail"))
        with pytest.raises(UnknownToolCall):
            interceptor.add_tool_result(history, "nope", APPROVAL.YES)

    def test_tool_without_confirmation_rejects_decisions(self, interceptor):
        history = build_history(("t1", "getLatestEmails"))
        with pytest.raises(InvalidToolTransition):
            interceptor.add_tool_result(history, "t1", APPROVAL.YES)

    def test_resolved_call_rejects_decisions(self, interceptor):
        history = build_history(("t1", "deleteEmail"))
        history.get_invocation("t1").resolve(TextOutput(text="done"))

        with pytest.raises(InvalidToolTransition):
            interceptor.add_tool_result(history, "t1", APPROVAL.NO)


class TestResolvePending:
    """Test applying recorded decisions."""

    @pytest.mark.asyncio
    async def test_approved_call_executes_exactly_once(self, interceptor, execute):
        history = build_history(("t1", "deleteEmail"))
        interceptor.add_tool_result(history, "t1", APPROVAL.YES)

        events = await interceptor.resolve_pending(history, execute)
        again = await interceptor.resolve_pending(history, execute)

        execute.assert_awaited_once()
        assert again == []
        assert len(events) == 1
        assert events[0].tool_call_id == "t1"
        assert events[0].result.text == "🗑️ Email moved to trash!"
        assert history.get_invocation("t1").state == ToolInvocationState.RESULT

    @pytest.mark.asyncio
    async def test_declined_call_never_executes(self, interceptor, execute):
        history = build_history(("t1", "deleteEmail"))
        interceptor.add_tool_result(history, "t1", APPROVAL.NO)

        events = await interceptor.resolve_pending(history, execute)

        execute.assert_not_awaited()
        result = events[0].result
        assert result.text == ERROR_MESSAGES.TOOL_DECLINED
        assert result.is_error
        assert result.error_type == "declined"

    @pytest.mark.asyncio
    async def test_custom_result_is_recorded_verbatim(self, interceptor, execute):
        history = build_history(("t1", "deleteEmail"), ("t2", "deleteEvent"))
        interceptor.add_tool_result(history, "t1", "Use the archive instead")
        interceptor.add_tool_result(history, "t2", {"skipped": True})

        events = await interceptor.resolve_pending(history, execute)

        execute.assert_not_awaited()
        assert [event.result.text for event in events] == ["Use the archive instead", '{"skipped": true}']

    @pytest.mark.asyncio
    async def test_undecided_calls_stay_pending(self, interceptor, execute):
        history = build_history(("t1", "deleteEmail"), ("t2", "deleteEvent"))
        interceptor.add_tool_result(history, "t2", APPROVAL.YES)

        events = await interceptor.resolve_pending(history, execute)

        assert [event.tool_call_id for event in events] == ["t2"]
        assert history.get_invocation("t1").state == ToolInvocationState.CALL
        assert [inv.tool_call_id for inv in interceptor.undecided(history)] == ["t1"]

    @pytest.mark.asyncio
    async def test_execution_exception_becomes_error_result(self, interceptor):
        history = build_history(("t1", "deleteEmail"))
        interceptor.add_tool_result(history, "t1", APPROVAL.YES)
        failing = AsyncMock(side_effect=RuntimeError("gateway exploded"))

        events = await interceptor.resolve_pending(history, failing)

        result = events[0].result
        assert result.text == "Error: gateway exploded"
        assert result.is_error
        assert history.get_invocation("t1").state == ToolInvocationState.RESULT

    @pytest.mark.asyncio
    async def test_clear_forgets_decisions(self, interceptor, execute):
        history = build_history(("t1", "deleteEmail"))
        interceptor.add_tool_result(history, "t1", APPROVAL.YES)
        interceptor.clear()

        assert await interceptor.resolve_pending(history, execute) == []
        execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancelled_caller_waits_for_approved_call(self, interceptor):
        history = build_history(("t1", "deleteEmail"))
        interceptor.add_tool_result(history, "t1", APPROVAL.YES)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_execute(invocation):
            started.set()
            await release.wait()
            return TextOutput(text="🗑️ Email moved to trash!")

        caller = asyncio.create_task(interceptor.resolve_pending(history, slow_execute))
        await started.wait()
        caller.cancel()
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await caller
        invocation = history.get_invocation("t1")
        assert invocation.state == ToolInvocationState.RESULT
        assert invocation.result.text == "🗑️ Email moved to trash!"
