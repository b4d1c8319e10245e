"""In-process task scheduler for one-shot and recurring (cron) tasks."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Literal

from croniter import croniter
from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

from orbit.errors import TaskNotFound
from orbit.tools.base import utcnow
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

TriggerType = Literal["scheduled", "delayed", "cron"]


class ScheduledTask(BaseModel):
    """A task waiting to be fired."""

    id: str = Field(default_factory=cuid)
    description: str
    trigger_type: TriggerType
    run_at: datetime | None = None
    delay_seconds: int | None = None
    cron: str | None = None
    created_at: datetime
    next_run_at: datetime

    @property
    def recurring(self) -> bool:
        return self.trigger_type == "cron"


TaskCallback = Callable[[ScheduledTask], Awaitable[None]]


def _running_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TaskScheduler:
    """Keeps scheduled tasks and fires them on an asyncio timer.

    One-shot tasks (``scheduled`` and ``delayed``) are removed as they fire;
    ``cron`` tasks recur until cancelled.
    """

    def __init__(self, on_fire: TaskCallback | None = None, clock: Callable[[], datetime] = utcnow):
        """Initialize the scheduler.

        Args:
            on_fire: Coroutine called with each task when it fires
            clock: Source of the current (timezone-aware) time
        """
        self.tasks: dict[str, ScheduledTask] = {}
        self._on_fire = on_fire
        self._clock = clock
        self._timers: dict[str, asyncio.Task] = {}

    def set_callback(self, on_fire: TaskCallback) -> None:
        self._on_fire = on_fire

    def schedule(
        self,
        description: str,
        at: datetime | None = None,
        delay_seconds: int | None = None,
        cron: str | None = None,
    ) -> ScheduledTask:
        """Schedule a task with exactly one trigger.

        Args:
            description: What to do when the task fires
            at: Run once at this time
            delay_seconds: Run once after this many seconds
            cron: Run on this five-field cron expression until cancelled

        Returns:
            The scheduled task

        Raises:
            ValueError: Zero or several triggers, a negative delay or an invalid cron expression
        """
        if sum(trigger is not None for trigger in (at, delay_seconds, cron)) != 1:
            raise ValueError("Exactly one of at, delay_seconds or cron is required")

        now = self._clock()
        if at is not None:
            trigger_type: TriggerType = "scheduled"
            next_run_at = at if at.tzinfo else at.replace(tzinfo=now.tzinfo)
        elif delay_seconds is not None:
            if delay_seconds < 0:
                raise ValueError("delay_seconds must not be negative")
            trigger_type = "delayed"
            next_run_at = now + timedelta(seconds=delay_seconds)
        else:
            if not croniter.is_valid(cron):
                raise ValueError(f"Invalid cron expression: {cron}")
            trigger_type = "cron"
            next_run_at = croniter(cron, now).get_next(datetime)

        task = ScheduledTask(
            description=description,
            trigger_type=trigger_type,
            run_at=next_run_at if trigger_type == "scheduled" else None,
            delay_seconds=delay_seconds,
            cron=cron,
            created_at=now,
            next_run_at=next_run_at,
        )
        self.tasks[task.id] = task
        self._arm(task.id)
        logger.info(f"Scheduled task {task.id} ({trigger_type}) for {next_run_at.isoformat()}: {description}")
        return task

    def list_tasks(self) -> list[ScheduledTask]:
        return sorted(self.tasks.values(), key=lambda task: task.next_run_at)

    def cancel(self, task_id: str) -> ScheduledTask:
        """Cancel a task.

        Raises:
            TaskNotFound: No task has this id
        """
        task = self.tasks.pop(task_id, None)
        if task is None:
            raise TaskNotFound(task_id)

        timer = self._timers.pop(task_id, None)
        # A recurring task may cancel itself from inside its own run
        if timer is not None and timer is not _running_task():
            timer.cancel()
        logger.info(f"Cancelled task {task_id}")
        return task

    async def fire(self, task_id: str) -> None:
        """Run a task now and reschedule or remove it."""
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)

        if task.recurring:
            task.next_run_at = croniter(task.cron, self._clock()).get_next(datetime)
        else:
            del self.tasks[task_id]

        logger.info(f"Firing task {task_id}: {task.description}")
        if self._on_fire is None:
            logger.warning(f"No callback registered, task {task_id} had no effect")
            return
        try:
            await self._on_fire(task)
        except Exception:
            logger.exception(f"Scheduled task {task_id} failed")

    def _arm(self, task_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, task {task_id} will only fire when triggered manually")
            return
        self._timers[task_id] = loop.create_task(self._run(task_id))

    async def _run(self, task_id: str) -> None:
        while task_id in self.tasks:
            delay = (self.tasks[task_id].next_run_at - self._clock()).total_seconds()
            await asyncio.sleep(max(delay, 0))
            if task_id not in self.tasks:
                break
            await self.fire(task_id)
        self._timers.pop(task_id, None)

    async def shutdown(self) -> None:
        """Stop all timers; tasks stay registered."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)


_scheduler: TaskScheduler | None = None


def get_scheduler() -> TaskScheduler:
    """Get or create the scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = TaskScheduler()
    return _scheduler
