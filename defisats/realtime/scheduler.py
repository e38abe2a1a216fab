"""
Interval scheduler for the automation pass.

An APScheduler ``BackgroundScheduler`` calls the pass every
``automation_interval_seconds``; admins can also run it on demand. A
scheduled tick and a manual run never execute the pass at the same time.
Each outcome is kept in a bounded history and, with a stream manager
attached, pushed to WebSocket clients as a system event.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from defisats.application.automation.dtos import RunSummary

logger = logging.getLogger(__name__)

AUTOMATIONS_TASK = "automations"
HISTORY_SIZE = 200
STATUS_HISTORY = 10


class TaskStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskResult:
    task_name: str
    status: TaskStatus
    started_at: str
    finished_at: str | None = None
    duration_seconds: float = 0.0
    details: dict = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        return {**asdict(self), "status": self.status.value}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutomationScheduler:
    """Owns the background job that runs ``run_automations``.

    Args:
        run_automations: One full automation pass, usually
            ``RunAutomationsUseCase.execute``.
        interval_seconds: Seconds between scheduled passes.
        stream_manager: Optional MarketStreamManager for task events.
    """

    def __init__(
        self,
        run_automations: Callable[[], RunSummary],
        interval_seconds: int = 30,
        stream_manager: Any | None = None,
    ) -> None:
        self._run_automations = run_automations
        self._interval = interval_seconds
        self._stream = stream_manager
        self._history: deque[TaskResult] = deque(maxlen=HISTORY_SIZE)
        self._history_lock = threading.Lock()
        self._pass_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._scheduler: BackgroundScheduler | None = None
        self._tasks: dict[str, Callable[[], TaskResult]] = {AUTOMATIONS_TASK: self._task_automations}

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def task_history(self) -> list[TaskResult]:
        with self._history_lock:
            return list(self._history)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def start(self) -> None:
        if self.is_running:
            logger.warning("Automation scheduler already running.")
            return
        scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        scheduler.add_job(
            self._task_automations,
            IntervalTrigger(seconds=self._interval),
            id=AUTOMATIONS_TASK,
            name="Automation pass",
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Automation scheduler started, pass every %ds.", self._interval)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Automation scheduler stopped.")

    def run_now(self, task_name: str) -> TaskResult:
        """Run ``task_name`` in the calling thread and return its result."""
        task = self._tasks.get(task_name)
        if task is None:
            return TaskResult(
                task_name=task_name,
                status=TaskStatus.FAILED,
                started_at=_now(),
                error=f"Unknown task: {task_name}. Available: {sorted(self._tasks)}",
            )
        return task()

    def _task_automations(self) -> TaskResult:
        started_at = _now()
        clock = time.monotonic()
        result = TaskResult(task_name=AUTOMATIONS_TASK, status=TaskStatus.COMPLETED, started_at=started_at)
        try:
            with self._pass_lock:
                result.details = self._run_automations().to_dict()
        except Exception as exc:
            logger.exception("Automation pass failed.")
            result.status = TaskStatus.FAILED
            result.error = str(exc)
        result.finished_at = _now()
        result.duration_seconds = round(time.monotonic() - clock, 2)
        self._record_result(result)
        return result

    def _record_result(self, result: TaskResult) -> None:
        with self._history_lock:
            self._history.append(result)
        self._publish(result)

    def _publish(self, result: TaskResult) -> None:
        if self._stream is None or self._loop is None or not self._loop.is_running():
            return
        event = {
            "task": result.task_name,
            "status": result.status.value,
            "duration_seconds": result.duration_seconds,
            "error": result.error,
        }
        asyncio.run_coroutine_threadsafe(
            self._stream.broadcast_system_event(f"task_{result.status.value}", event),
            self._loop,
        )

    def get_scheduled_jobs(self) -> list[dict]:
        if self._scheduler is None:
            return []
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self._scheduler.get_jobs()
        ]

    def get_status(self) -> dict:
        return {
            "running": self.is_running,
            "interval_seconds": self._interval,
            "jobs": self.get_scheduled_jobs(),
            "recent_tasks": [r.to_dict() for r in self.task_history[-STATUS_HISTORY:]],
        }
