"""Scheduling tools: schedule, list and cancel tasks."""

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, model_validator

from orbit.constants import SUCCESS_MESSAGES
from orbit.errors import ToolExecutionError
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.calendar.helpers import parse_datetime

if TYPE_CHECKING:
    from orbit.services.scheduler import TaskScheduler


class ScheduleWhen(BaseModel):
    type: Literal["scheduled", "delayed", "cron"] = Field(..., description="Kind of trigger")
    date: str | None = Field(default=None, description="ISO 8601 date/time, for type 'scheduled'")
    delay_in_seconds: int | None = Field(default=None, ge=0, description="Delay in seconds, for type 'delayed'")
    cron: str | None = Field(default=None, description="Five-field cron expression, for type 'cron'")

    @model_validator(mode="after")
    def check_trigger_value(self) -> "ScheduleWhen":
        required = {"scheduled": self.date, "delayed": self.delay_in_seconds, "cron": self.cron}[self.type]
        if required is None:
            field_name = {"scheduled": "date", "delayed": "delay_in_seconds", "cron": "cron"}[self.type]
            raise ValueError(f"'{field_name}' is required when type is '{self.type}'")
        return self


class ScheduleTaskInput(ToolInput):
    description: str = Field(..., min_length=1, description="What to do when the task runs")
    when: ScheduleWhen = Field(..., description="When the task should run")


class NoInput(ToolInput):
    pass


class CancelTaskInput(ToolInput):
    task_id: str = Field(..., min_length=1, description="ID of the task to cancel")


def _scheduler(ctx: ToolContext) -> "TaskScheduler":
    if ctx.scheduler is None:
        raise ToolExecutionError("Scheduling is not available")
    return ctx.scheduler


async def schedule_task(params: ScheduleTaskInput, ctx: ToolContext) -> str:
    scheduler = _scheduler(ctx)
    when = params.when
    try:
        if when.type == "scheduled":
            task = scheduler.schedule(params.description, at=parse_datetime(when.date, default=ctx.now()))
        elif when.type == "delayed":
            task = scheduler.schedule(params.description, delay_seconds=when.delay_in_seconds)
        else:
            task = scheduler.schedule(params.description, cron=when.cron)
    except ValueError as e:
        raise ToolExecutionError(f"Error scheduling task: {e}")

    return (
        f'{SUCCESS_MESSAGES.TASK_SCHEDULED} for type "{when.type}": {params.description}\n'
        f"• Task ID: {task.id}\n"
        f"• Next run: {task.next_run_at.isoformat()}"
    )


async def get_scheduled_tasks(params: NoInput, ctx: ToolContext) -> str:
    tasks = _scheduler(ctx).list_tasks()
    if not tasks:
        return "No scheduled tasks found."

    lines = []
    for task in tasks:
        trigger = f"cron `{task.cron}`" if task.recurring else task.trigger_type
        lines.append(
            f"• **{task.description}** ({trigger})\n"
            f"  Next run: {task.next_run_at.isoformat()}\n"
            f"  ID: `{task.id}`"
        )
    return f"**Scheduled Tasks ({len(tasks)}):**\n\n" + "\n".join(lines)


async def cancel_scheduled_task(params: CancelTaskInput, ctx: ToolContext) -> str:
    task = _scheduler(ctx).cancel(params.task_id)
    return f"Task {task.id} has been successfully canceled: {task.description}"


def create_scheduling_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="scheduleTask",
            description="Schedule a task or reminder to run later, after a delay, or on a recurring cron schedule",
            input_schema_class=ScheduleTaskInput,
            handler=schedule_task,
            action="scheduling task",
        ),
        ToolDefinition(
            name="getScheduledTasks",
            description="List all scheduled tasks",
            input_schema_class=NoInput,
            handler=get_scheduled_tasks,
            action="listing scheduled tasks",
        ),
        ToolDefinition(
            name="cancelScheduledTask",
            description="Cancel a scheduled task by its ID",
            input_schema_class=CancelTaskInput,
            handler=cancel_scheduled_task,
            action="canceling scheduled task",
        ),
    ]
