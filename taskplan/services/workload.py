"""
Per-user, per-day workload projection and bottleneck detection.

Samples are computed on demand from task records: a task spreads its
estimated hours evenly over the working days of its span, and a user's
load on a day is the sum over the tasks they own that are active that day,
divided by their daily capacity.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import ValidationError
from taskplan.domain.task import Task
from taskplan.domain.user import User
from taskplan.domain.workload import BottleneckRecord, WorkloadReport, WorkloadSample
from taskplan.utils.calendar import WEEKDAYS, daterange, to_day, working_days_between
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class BottleneckRule(ABC):
    @abstractmethod
    def is_bottleneck(self, samples: List[WorkloadSample], task_count: int) -> bool:
        """Decide whether a day with these samples and active tasks is a bottleneck"""
        pass

    def get_name(self):
        """Get the name of this rule"""
        return self.__class__.__name__


class SimpleBottleneckRule(BottleneckRule):
    """
    Canonical rule: any user above the overload threshold, or too many
    tasks active on the same day.
    """

    def __init__(self, overload_threshold=80.0, max_daily_tasks=5):
        self.overload_threshold = overload_threshold
        self.max_daily_tasks = max_daily_tasks

    def is_bottleneck(self, samples, task_count):
        max_load = max((s.load_percent for s in samples), default=0)
        return max_load > self.overload_threshold or task_count > self.max_daily_tasks

    def get_name(self):
        return "Simple (load > threshold or too many tasks)"


class CompositeBottleneckRule(BottleneckRule):
    """
    Stricter rule: average load of busy users >= 90, or any user >= 120,
    or at least 8 tasks with an average load >= 75.
    """

    def is_bottleneck(self, samples, task_count):
        busy = [s.load_percent for s in samples if s.hours_allocated > 0]
        average_load = sum(busy) / len(busy) if busy else 0
        max_load = max(busy, default=0)
        return (
            average_load >= 90
            or max_load >= 120
            or (task_count >= 8 and average_load >= 75)
        )

    def get_name(self):
        return "Composite (average/peak/task-count thresholds)"


def create_bottleneck_rule(config: SchedulerConfig) -> BottleneckRule:
    if config.bottleneck_rule == "composite":
        return CompositeBottleneckRule()
    return SimpleBottleneckRule(config.overload_threshold, config.max_daily_tasks)


class WorkloadEngine:
    """
    Computes workload samples, bottleneck records and reports over a fixed
    set of tasks and users.

    The engine only reads the tasks it is given; annotate_tasks() returns
    annotated copies. Samples are cached per day for the lifetime of the
    engine, so build a new engine whenever the schedule changes.
    """

    def __init__(
        self,
        tasks: Union[Dict, Iterable[Task]],
        users: Union[Dict, Iterable[User]],
        config: Optional[SchedulerConfig] = None,
        bottleneck_rule: Optional[BottleneckRule] = None,
    ):
        self.config = config or SchedulerConfig()
        self.tasks = list(tasks.values()) if isinstance(tasks, dict) else list(tasks)
        user_list = list(users.values()) if isinstance(users, dict) else list(users)
        self.users = {user.id: user for user in user_list}
        self.bottleneck_rule = bottleneck_rule or create_bottleneck_rule(self.config)

        self._tasks_by_owner: Dict = {}
        for task in self.tasks:
            if task.assignee_id is not None:
                self._tasks_by_owner.setdefault(task.assignee_id, []).append(task)

        self._cache: Dict[datetime, List[WorkloadSample]] = {}
        self.fallback_count = 0

    def hours_per_day(self, task: Task, user: Optional[User] = None) -> float:
        """
        Hours a task puts on its owner on each working day of its span.

        Falls back to the configured default (4 hours) when the estimate is
        missing or the span holds no working day, and to the whole estimate
        when the task has no dates.
        """
        default = self.config.default_hours_per_day

        if not task.has_dates():
            if task.estimated_hours is None:
                self._note_fallback(task, "no dates and no estimate")
                return default
            return float(task.estimated_hours)

        weekdays = user.working_weekdays if user else WEEKDAYS
        working_days = working_days_between(task.start_date, task.end_date, weekdays)

        if working_days <= 0:
            self._note_fallback(task, "span has no working day")
            return default
        if task.estimated_hours is None:
            self._note_fallback(task, "no estimate")
            return default
        return task.estimated_hours / working_days

    def _note_fallback(self, task: Task, reason: str):
        self.fallback_count += 1
        logger.debug(f"Task {task.id}: using default daily hours ({reason})")

    def task_hours_on(self, task: Task, day: datetime, user: Optional[User] = None) -> float:
        """Hours a task contributes on a specific day (0 if not active)."""
        if not task.is_active_on(day):
            return 0.0
        hours = self.hours_per_day(task, user)
        factor = self.config.weekend_hours_factor
        if factor != 1.0 and user is not None and not user.is_working_day(day):
            hours *= factor
        return hours

    def active_tasks(self, day: datetime) -> List[Task]:
        return [task for task in self.tasks if task.is_active_on(day)]

    def daily_workload(self, day: datetime) -> List[WorkloadSample]:
        """
        Compute each user's workload on a day.

        Args:
            day: The day to compute

        Returns:
            list: One WorkloadSample per known user
        """
        day = to_day(day)
        if day in self._cache:
            return self._cache[day]

        samples = []
        for user in self.users.values():
            hours_allocated = 0.0
            task_ids = []
            for task in self._tasks_by_owner.get(user.id, []):
                if not task.is_active_on(day):
                    continue
                hours_allocated += self.task_hours_on(task, day, user)
                task_ids.append(task.id)
            samples.append(
                WorkloadSample(
                    user_id=user.id,
                    date=day,
                    hours_allocated=hours_allocated,
                    hours_available=user.max_hours_per_day,
                    task_ids=task_ids,
                )
            )

        self._cache[day] = samples
        return samples

    def user_load(self, user_id, day: datetime) -> int:
        for sample in self.daily_workload(day):
            if sample.user_id == user_id:
                return sample.load_percent
        return 0

    def peak_load(self, user_id, start_date: datetime, end_date: datetime) -> int:
        """Highest load of a user over a span of days (inclusive)."""
        return max(
            (self.user_load(user_id, day) for day in daterange(start_date, end_date)),
            default=0,
        )

    def detect_bottleneck(self, day: datetime) -> BottleneckRecord:
        """
        Evaluate the bottleneck rule for a day.

        Args:
            day: The day to evaluate

        Returns:
            BottleneckRecord: Task count, peak load and the rule's verdict
        """
        day = to_day(day)
        samples = self.daily_workload(day)
        active = self.active_tasks(day)
        busy = [s.load_percent for s in samples if s.hours_allocated > 0]

        return BottleneckRecord(
            date=day,
            task_count=len(active),
            max_load_percent=max((s.load_percent for s in samples), default=0),
            average_load_percent=sum(busy) / len(busy) if busy else 0.0,
            is_bottleneck=self.bottleneck_rule.is_bottleneck(samples, len(active)),
            task_ids=[task.id for task in active],
            critical_task_ids=[task.id for task in active if task.is_critical_priority()],
        )

    def generate_report(self, start_date: datetime, end_date: datetime) -> WorkloadReport:
        """
        Build workload statistics for every calendar day in a range.

        Args:
            start_date: First day of the range
            end_date: Last day of the range (inclusive)

        Returns:
            WorkloadReport: Daily records, bottleneck days and aggregates

        Raises:
            ValidationError: If end_date is before start_date
        """
        start_date = to_day(start_date)
        end_date = to_day(end_date)
        if end_date < start_date:
            raise ValidationError("Report end date is before its start date")

        report = WorkloadReport(start_date, end_date)
        seen_tasks = set()
        for day in daterange(start_date, end_date):
            record = self.detect_bottleneck(day)
            report.daily.append(record)
            report.samples[day] = self.daily_workload(day)
            seen_tasks.update(record.task_ids)
        report.total_tasks = len(seen_tasks)

        logger.info(
            f"Workload report {start_date:%Y-%m-%d}..{end_date:%Y-%m-%d}: "
            f"{len(report.bottlenecks)} bottleneck days, max load {report.max_load}%"
        )
        return report

    def annotate_tasks(self) -> List[Task]:
        """
        Compute the stored workload fields of every dated task.

        workload_percentage becomes the owner's peak load over the task's
        span and is_bottleneck is set when any day of the span is a
        bottleneck.

        Returns:
            list: Copies of the tasks with the fields filled in
        """
        annotated = []
        for task in self.tasks:
            task_copy = task.copy()
            if task.has_dates():
                if task.assignee_id is not None:
                    task_copy.workload_percentage = self.peak_load(
                        task.assignee_id, task.start_date, task.end_date
                    )
                task_copy.is_bottleneck = any(
                    self.detect_bottleneck(day).is_bottleneck
                    for day in daterange(task.start_date, task.end_date)
                )
            annotated.append(task_copy)
        return annotated
