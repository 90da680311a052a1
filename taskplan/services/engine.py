"""
Reschedule service: the entry point callers use.

Validates requests, serialises work per project, runs the engines on a
snapshot read from the repository, writes the result in one transaction
and only then sends notifications.
"""

import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import (
    ConcurrentRescheduleError,
    RescheduleTimeoutError,
    ValidationError,
)
from taskplan.domain.project import ProjectSnapshot
from taskplan.domain.task import Task
from taskplan.domain.workload import WorkloadReport
from taskplan.persistence.repository import TaskRepository
from taskplan.services.bulk import STRATEGIES, BulkRescheduler
from taskplan.services.dependency_graph import DependencyGraph, GraphValidation
from taskplan.services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    notifications_for,
)
from taskplan.services.rescheduler import DependencyRescheduler
from taskplan.services.workload import WorkloadEngine
from taskplan.utils.calendar import to_day
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


def parse_date(value, field: str) -> datetime:
    """
    Accept a date, a datetime or an ISO 8601 string.

    Raises:
        ValidationError: If the value is missing or cannot be parsed
    """
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1]
        try:
            return to_day(datetime.fromisoformat(text))
        except ValueError:
            raise ValidationError(f"{field} is not a valid date: {value!r}")
    try:
        return to_day(value)
    except TypeError:
        raise ValidationError(f"{field} is not a valid date: {value!r}")


class RescheduleService:
    """
    Front door of the scheduling engine.

    Args:
        repository: Where projects, tasks and users are read and written
        notifier: Sink for change notifications (default: log them)
        config: Scheduler configuration
        clock: Callable returning the current datetime
    """

    def __init__(
        self,
        repository: TaskRepository,
        notifier: Optional[NotificationSink] = None,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.notifier = notifier or LoggingNotificationSink()
        self.config = config or SchedulerConfig()
        self.clock = clock or datetime.now

        self._locks: Dict[Any, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, project_id) -> threading.Lock:
        with self._registry_lock:
            if project_id not in self._locks:
                self._locks[project_id] = threading.Lock()
            return self._locks[project_id]

    @contextmanager
    def project_lock(self, project_id):
        """Hold the reschedule lock of a project for the duration of the block."""
        lock = self._lock_for(project_id)
        if not lock.acquire(timeout=self.config.lock_timeout):
            logger.error(f"Timed out waiting for the reschedule lock of project {project_id}")
            raise ConcurrentRescheduleError(
                f"Another reschedule of project {project_id} is still running"
            )
        try:
            yield
        finally:
            lock.release()

    def _check_deadline(self, started: float):
        budget = self.config.reschedule_timeout
        if budget is None:
            return
        elapsed = time.monotonic() - started
        if elapsed > budget:
            logger.error(f"Reschedule took {elapsed:.2f}s, budget is {budget}s; nothing written")
            raise RescheduleTimeoutError(
                f"Reschedule exceeded its {budget}s budget before writing"
            )

    def _load_task_snapshot(self, task: Task) -> ProjectSnapshot:
        if task.project_id is not None:
            return self.repository.load_snapshot(task.project_id)
        tasks = [t for t in self.repository.list_tasks() if t.project_id is None]
        return ProjectSnapshot(None, tasks, self.repository.list_users())

    def _with_workload(self, snapshot: ProjectSnapshot, changed) -> List[Task]:
        """
        Recompute the stored workload fields over the rescheduled snapshot.

        Returns the changed tasks plus any other task whose
        workload_percentage or is_bottleneck moved with them.
        """
        changed_ids = {task.id for task in changed}
        engine = WorkloadEngine(snapshot.tasks, snapshot.users, self.config)
        to_save = []
        for annotated in engine.annotate_tasks():
            current = snapshot.tasks[annotated.id]
            if (
                annotated.id in changed_ids
                or annotated.workload_percentage != current.workload_percentage
                or annotated.is_bottleneck != current.is_bottleneck
            ):
                to_save.append(annotated)
        return to_save

    def _notify(self, changes, tasks):
        notifications = notifications_for(changes, tasks)
        try:
            sent = self.notifier.send_all(notifications)
        except Exception:
            # Changes are already committed
            logger.exception("Sending schedule change notifications failed")
            return
        logger.debug(f"Sent {sent} notifications")

    def reschedule_project(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reschedule every incomplete task of a project.

        Args:
            request: dict with 'projectId', 'rescheduleType' and an optional
                non-negative integer 'delayDays'

        Returns:
            dict: success flag, type, strategy used, number of affected
            tasks, new project end date and the delay applied

        Raises:
            ValidationError: On a missing field, an unknown type or a bad delay
            NotFoundError: If the project does not exist
            ConcurrentRescheduleError: If the project lock cannot be taken
            RescheduleTimeoutError: If computation exceeds reschedule_timeout
        """
        project_id = request.get("projectId")
        reschedule_type = request.get("rescheduleType")
        delay_days = request.get("delayDays", 0)
        if delay_days is None:
            delay_days = 0

        if project_id is None or not reschedule_type:
            raise ValidationError("Missing required fields: projectId, rescheduleType")
        if reschedule_type not in STRATEGIES:
            raise ValidationError(
                f"Invalid reschedule type: {reschedule_type}. Must be one of {list(STRATEGIES)}"
            )
        if not isinstance(delay_days, int) or isinstance(delay_days, bool) or delay_days < 0:
            raise ValidationError("delayDays must be a non-negative integer")

        with self.project_lock(project_id):
            started = time.monotonic()
            snapshot = self.repository.load_snapshot(project_id)
            result = BulkRescheduler(snapshot, self.clock(), self.config).run(
                reschedule_type, delay_days
            )

            self._check_deadline(started)
            with self.repository.transaction():
                self.repository.save_tasks(
                    self._with_workload(result.snapshot, result.changed_tasks())
                )
                self.repository.save_project(result.snapshot.project)

        logger.info(
            f"Project {project_id} rescheduled ({result.strategy_used}): "
            f"{result.affected_tasks} tasks, ends {result.new_end_date}"
        )
        self._notify(result.changes, result.snapshot.tasks)
        return result.to_dict()

    def complete_task(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Complete a task and propagate its finish to dependent tasks.

        Args:
            request: dict with 'taskId' and 'actualFinishDate' (a datetime
                or an ISO 8601 string)

        Returns:
            dict: The updated task, affected task IDs, schedule changes,
            the policy used and visualization data

        Raises:
            ValidationError: On a missing field or an unparseable date
            NotFoundError: If the task does not exist
        """
        task_id = request.get("taskId")
        if task_id is None:
            raise ValidationError("Missing required field: taskId")
        actual_finish_date = parse_date(request.get("actualFinishDate"), "actualFinishDate")

        task = self.repository.get_task(task_id)
        with self.project_lock(task.project_id):
            started = time.monotonic()
            snapshot = self._load_task_snapshot(task)
            update = DependencyRescheduler(snapshot, self.config).on_task_completed(
                task_id, actual_finish_date
            )

            self._check_deadline(started)
            with self.repository.transaction():
                self.repository.save_tasks(
                    self._with_workload(update.snapshot, update.changed_tasks())
                )

        self._notify(update.schedule_changes, update.snapshot.tasks)
        return update.to_dict()

    def add_dependency(self, task_id, depends_on_id) -> Task:
        """
        Make one task depend on another and store both tasks.

        Raises:
            NotFoundError: If either task is unknown
            CycleError: If the edge would close a cycle
        """
        task = self.repository.get_task(task_id)
        with self.project_lock(task.project_id):
            work = self._load_task_snapshot(task)
            graph = DependencyGraph(work.tasks, self.config)
            graph.add_dependency(task_id, depends_on_id)
            with self.repository.transaction():
                self.repository.save_task(work.tasks[task_id])
                self.repository.save_task(work.tasks[depends_on_id])

        logger.info(f"Task {task_id} now depends on {depends_on_id}")
        return work.tasks[task_id]

    def validate_dependencies(self, project_id) -> GraphValidation:
        snapshot = self.repository.load_snapshot(project_id)
        return DependencyGraph(snapshot.tasks, self.config).validate()

    def workload_report(self, project_id, start_date=None, end_date=None) -> WorkloadReport:
        """
        Build a workload report for a project.

        The range defaults to the project's start and end dates.

        Raises:
            ValidationError: If no range is given and the project has none
            NotFoundError: If the project does not exist
        """
        snapshot = self.repository.load_snapshot(project_id)
        start_date = start_date or snapshot.project.start_date
        end_date = end_date or snapshot.project.end_date
        if start_date is None or end_date is None:
            raise ValidationError(f"Project {project_id} has no date range for a report")

        engine = WorkloadEngine(snapshot.tasks, snapshot.users, self.config)
        return engine.generate_report(
            parse_date(start_date, "start_date"), parse_date(end_date, "end_date")
        )
