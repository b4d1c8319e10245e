"""Tests for the task scheduler and the scheduling tools."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from orbit.errors import TaskNotFound
from orbit.services.scheduler import TaskScheduler
from orbit.tools.base import ToolContext
from orbit.tools.registry import ToolsRegistry
from tests.conftest import FIXED_NOW


class MovableClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestSchedule:
    """Test creating tasks (no running loop, so no timers are armed)."""

    def test_delayed_task(self):
        scheduler = TaskScheduler(clock=MovableClock())
        task = scheduler.schedule("Check the inbox", delay_seconds=600)

        assert task.trigger_type == "delayed"
        assert task.next_run_at == FIXED_NOW + timedelta(minutes=10)
        assert scheduler.list_tasks() == [task]

    def test_scheduled_task_with_naive_date(self):
        scheduler = TaskScheduler(clock=MovableClock())
        task = scheduler.schedule("Send report", at=datetime(2025, 9, 20, 8, 0))

        assert task.trigger_type == "scheduled"
        assert task.next_run_at == datetime(2025, 9, 20, 8, 0, tzinfo=UTC)
        assert task.run_at == task.next_run_at

    def test_cron_task(self):
        scheduler = TaskScheduler(clock=MovableClock())
        task = scheduler.schedule("Morning digest", cron="0 9 * * *")

        assert task.recurring
        assert task.next_run_at == datetime(2025, 9, 16, 9, 0, tzinfo=UTC)

    def test_exactly_one_trigger_required(self):
        scheduler = TaskScheduler(clock=MovableClock())
        with pytest.raises(ValueError):
            scheduler.schedule("Nothing")
        with pytest.raises(ValueError):
            scheduler.schedule("Both", delay_seconds=5, cron="* * * * *")

    def test_invalid_cron(self):
        scheduler = TaskScheduler(clock=MovableClock())
        with pytest.raises(ValueError):
            scheduler.schedule("Broken", cron="every day")
        assert scheduler.tasks == {}

    def test_negative_delay(self):
        scheduler = TaskScheduler(clock=MovableClock())
        with pytest.raises(ValueError):
            scheduler.schedule("Past", delay_seconds=-1)

    def test_list_is_ordered_by_next_run(self):
        scheduler = TaskScheduler(clock=MovableClock())
        later = scheduler.schedule("Later", delay_seconds=3600)
        sooner = scheduler.schedule("Sooner", delay_seconds=60)

        assert scheduler.list_tasks() == [sooner, later]

    def test_cancel(self):
        scheduler = TaskScheduler(clock=MovableClock())
        task = scheduler.schedule("Check the inbox", delay_seconds=600)

        assert scheduler.cancel(task.id) == task
        assert scheduler.tasks == {}

    def test_cancel_unknown_task(self):
        scheduler = TaskScheduler(clock=MovableClock())
        with pytest.raises(TaskNotFound):
            scheduler.cancel("missing")


class TestFire:
    """Test firing tasks."""

    @pytest.fixture
    def callback(self) -> AsyncMock:
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_one_shot_task_is_removed_after_firing(self, callback):
        scheduler = TaskScheduler(on_fire=callback, clock=MovableClock())
        task = scheduler.schedule("Check the inbox", delay_seconds=3600)

        await scheduler.fire(task.id)
        await scheduler.shutdown()

        callback.assert_awaited_once_with(task)
        assert task.id not in scheduler.tasks

    @pytest.mark.asyncio
    async def test_cron_task_recurs(self, callback):
        clock = MovableClock()
        scheduler = TaskScheduler(on_fire=callback, clock=clock)
        task = scheduler.schedule("Morning digest", cron="0 9 * * *")

        clock.now = datetime(2025, 9, 16, 9, 0, tzinfo=UTC)
        await scheduler.fire(task.id)
        await scheduler.shutdown()

        assert scheduler.tasks[task.id].next_run_at == datetime(2025, 9, 17, 9, 0, tzinfo=UTC)
        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_callback_failure_is_contained(self):
        scheduler = TaskScheduler(on_fire=AsyncMock(side_effect=RuntimeError("model down")), clock=MovableClock())
        task = scheduler.schedule("Check the inbox", delay_seconds=3600)

        await scheduler.fire(task.id)
        await scheduler.shutdown()

        assert scheduler.tasks == {}

    @pytest.mark.asyncio
    async def test_fire_unknown_task(self, callback):
        scheduler = TaskScheduler(on_fire=callback)
        with pytest.raises(TaskNotFound):
            await scheduler.fire("missing")

    @pytest.mark.asyncio
    async def test_timer_fires_due_task(self, callback):
        scheduler = TaskScheduler(on_fire=callback)
        task = scheduler.schedule("Right away", delay_seconds=0)

        await asyncio.sleep(0.05)

        callback.assert_awaited_once_with(task)
        assert scheduler.tasks == {}

    @pytest.mark.asyncio
    async def test_cancel_stops_timer(self, callback):
        scheduler = TaskScheduler(on_fire=callback)
        task = scheduler.schedule("Soon", delay_seconds=1)
        scheduler.cancel(task.id)

        await asyncio.sleep(0)
        await scheduler.shutdown()

        callback.assert_not_awaited()


class TestSchedulingTools:
    """Test the scheduleTask, getScheduledTasks and cancelScheduledTask tools."""

    @pytest.fixture
    def scheduler(self) -> TaskScheduler:
        return TaskScheduler(clock=MovableClock())

    @pytest.fixture
    def ctx(self, google_client, scheduler) -> ToolContext:
        return ToolContext(google=google_client, scheduler=scheduler, clock=MovableClock())

    @pytest.mark.asyncio
    async def test_schedule_delayed_task(self, ctx, scheduler):
        registry = ToolsRegistry()
        result = await registry.execute(
            "scheduleTask",
            {"description": "Remind me to stretch", "when": {"type": "delayed", "delay_in_seconds": 600}},
            ctx,
        )
        await scheduler.shutdown()

        task = scheduler.list_tasks()[0]
        assert result.text.startswith('Task scheduled successfully for type "delayed": Remind me to stretch')
        assert f"• Task ID: {task.id}" in result.text
        assert "• Next run: 2025-09-15T09:40:00+00:00" in result.text

    @pytest.mark.asyncio
    async def test_schedule_at_date(self, ctx, scheduler):
        registry = ToolsRegistry()
        await registry.execute(
            "scheduleTask",
            {"description": "Send weekly report", "when": {"type": "scheduled", "date": "2025-09-19T17:00:00Z"}},
            ctx,
        )
        await scheduler.shutdown()

        assert scheduler.list_tasks()[0].next_run_at == datetime(2025, 9, 19, 17, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_missing_trigger_value_is_validation_error(self, ctx, scheduler):
        result = await ToolsRegistry().execute(
            "scheduleTask", {"description": "Remind me", "when": {"type": "cron"}}, ctx
        )

        assert result.error_type == "validation"
        assert scheduler.tasks == {}

    @pytest.mark.asyncio
    async def test_invalid_cron_is_reported(self, ctx, scheduler):
        result = await ToolsRegistry().execute(
            "scheduleTask", {"description": "Remind me", "when": {"type": "cron", "cron": "whenever"}}, ctx
        )

        assert result.is_error
        assert result.text == "❌ Error scheduling task: Invalid cron expression: whenever"

    @pytest.mark.asyncio
    async def test_list_and_cancel(self, ctx, scheduler):
        registry = ToolsRegistry()
        task = scheduler.schedule("Morning digest", cron="0 9 * * *")

        listing = await registry.execute("getScheduledTasks", {}, ctx)
        cancelled = await registry.execute("cancelScheduledTask", {"task_id": task.id}, ctx)
        empty = await registry.execute("getScheduledTasks", {}, ctx)
        await scheduler.shutdown()

        assert "**Morning digest** (cron `0 9 * * *`)" in listing.text
        assert cancelled.text == f"Task {task.id} has been successfully canceled: Morning digest"
        assert empty.text == "No scheduled tasks found."

    @pytest.mark.asyncio
    async def test_cancel_unknown_task(self, ctx):
        result = await ToolsRegistry().execute("cancelScheduledTask", {"task_id": "missing"}, ctx)

        assert result.is_error
        assert "missing" in result.text

    @pytest.mark.asyncio
    async def test_scheduling_unavailable_without_scheduler(self, tool_context):
        result = await ToolsRegistry().execute("getScheduledTasks", {}, tool_context)

        assert result.text == "❌ Scheduling is not available"
