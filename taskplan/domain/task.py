from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional, Any

from taskplan.domain.errors import ValidationError
from taskplan.utils.calendar import to_day


class TaskStatus(Enum):
    """
    Enum representing the possible status values of a task.
    """

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"


class Priority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskType(Enum):
    """
    Whether a task takes part in the dependency graph.
    """

    INDEPENDENT = "INDEPENDENT"
    CONNECTED = "CONNECTED"


class SchedulePolicy(Enum):
    """
    How a connected task's early or late finish propagates to its dependents.

    SECURE shifts dependents rigidly, STANDARD shifts them only on a late
    finish, AUTO re-places them with the capacity-aware placer.
    """

    SECURE = "SECURE"
    AUTO = "AUTO"
    STANDARD = "STANDARD"


CRITICAL_PRIORITIES = (Priority.HIGH.value, Priority.URGENT.value)

DATE_FIELDS = (
    "start_date",
    "end_date",
    "estimated_finish_date",
    "actual_finish_date",
    "original_end_date",
)


class TaskError(ValidationError):
    """Exception raised for errors in the Task class."""

    pass


def _coerce_enum(enum_cls, value, label):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        valid_values = [member.value for member in enum_cls]
        raise TaskError(f"Invalid {label}: {value}. Must be one of {valid_values}")


class Task:
    """
    A unit of work owned by at most one assignee.

    Connected tasks carry dependency edges and a schedule policy; the
    engine reads tasks, and writes back dates, delay and workload fields
    when a reschedule is committed.
    """

    def __init__(
        self,
        id: str,
        title: str,
        status: str = "TODO",
        priority: str = "MEDIUM",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        estimated_hours: Optional[float] = None,
        actual_hours: Optional[float] = None,
        task_type: str = "INDEPENDENT",
        schedule_policy: Optional[str] = None,
        dependencies: Optional[List] = None,
        dependents: Optional[List] = None,
        estimated_finish_date: Optional[datetime] = None,
        actual_finish_date: Optional[datetime] = None,
        assignee_id: Optional[str] = None,
        project_id: Optional[str] = None,
        delay_days: int = 0,
    ):
        """
        Initialize a new Task.

        Args:
            id: Unique identifier for the task
            title: Short title of the task
            status: One of TODO, IN_PROGRESS, REVIEW, COMPLETED
            priority: One of LOW, MEDIUM, HIGH, URGENT
            start_date: Planned first day
            end_date: Planned last day
            estimated_hours: Estimated effort in hours
            actual_hours: Effort booked so far
            task_type: INDEPENDENT or CONNECTED
            schedule_policy: SECURE, AUTO or STANDARD (connected tasks only)
            dependencies: IDs of tasks this task depends on
            dependents: IDs of tasks that depend on this task
            estimated_finish_date: Expected finish, falls back to end_date
            actual_finish_date: Recorded finish
            assignee_id: ID of the owning user
            project_id: ID of the owning project
            delay_days: Accumulated delay in days

        Raises:
            TaskError: If any input validation fails
        """
        if id is None:
            raise TaskError("Task ID cannot be None")
        self.id = id

        if not title or not isinstance(title, str):
            raise TaskError("Task title must be a non-empty string")
        self.title = title

        self._status = _coerce_enum(TaskStatus, status, "status")
        self._priority = _coerce_enum(Priority, priority, "priority")
        self._task_type = _coerce_enum(TaskType, task_type, "task type")
        self._schedule_policy = None
        if schedule_policy is not None:
            self._schedule_policy = _coerce_enum(
                SchedulePolicy, schedule_policy, "schedule policy"
            )

        for label, hours in (("Estimated", estimated_hours), ("Actual", actual_hours)):
            if hours is not None and (
                not isinstance(hours, (int, float)) or hours < 0
            ):
                raise TaskError(f"{label} hours must be a non-negative number")
        self.estimated_hours = estimated_hours
        self.actual_hours = actual_hours

        self.start_date = to_day(start_date)
        self.end_date = to_day(end_date)
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise TaskError(f"Task {id} ends before it starts")

        self.estimated_finish_date = to_day(estimated_finish_date)
        self.actual_finish_date = to_day(actual_finish_date)
        self.original_end_date = None

        self.dependencies = list(dependencies) if dependencies else []
        self.dependents = list(dependents) if dependents else []

        self.assignee_id = assignee_id
        self.project_id = project_id

        if not isinstance(delay_days, int):
            raise TaskError("Delay days must be an integer")
        self.delay_days = delay_days
        self.delay_reason = None

        # Last computed workload projection
        self.workload_percentage = 0
        self.is_bottleneck = False

    @property
    def status(self) -> str:
        """Get the current status of the task."""
        return self._status.value

    @status.setter
    def status(self, value: str):
        self._status = _coerce_enum(TaskStatus, value, "status")

    @property
    def priority(self) -> str:
        return self._priority.value

    @priority.setter
    def priority(self, value: str):
        self._priority = _coerce_enum(Priority, value, "priority")

    @property
    def task_type(self) -> str:
        return self._task_type.value

    @task_type.setter
    def task_type(self, value: str):
        self._task_type = _coerce_enum(TaskType, value, "task type")

    @property
    def schedule_policy(self) -> str:
        """Get the schedule policy; connected tasks default to STANDARD."""
        if self._schedule_policy is None:
            return SchedulePolicy.STANDARD.value
        return self._schedule_policy.value

    @schedule_policy.setter
    def schedule_policy(self, value: str):
        self._schedule_policy = _coerce_enum(SchedulePolicy, value, "schedule policy")

    def is_completed(self) -> bool:
        return self._status == TaskStatus.COMPLETED

    def is_connected(self) -> bool:
        return self._task_type == TaskType.CONNECTED

    def is_critical_priority(self) -> bool:
        return self.priority in CRITICAL_PRIORITIES

    def has_dates(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    def is_active_on(self, day: datetime) -> bool:
        """Check whether the task's planned span covers a day."""
        if not self.has_dates():
            return False
        day = to_day(day)
        return self.start_date <= day <= self.end_date

    def is_overdue(self, today: datetime) -> bool:
        return (
            not self.is_completed()
            and self.end_date is not None
            and self.end_date < to_day(today)
        )

    def reference_finish_date(self) -> Optional[datetime]:
        """The date a finish is measured against: estimated finish, else end date."""
        return self.estimated_finish_date or self.end_date

    def complete_task(self, completion_date: datetime) -> "Task":
        """
        Mark task as completed on the given date.

        Args:
            completion_date: The date the task was completed

        Returns:
            self: For method chaining
        """
        self._status = TaskStatus.COMPLETED
        self.actual_finish_date = to_day(completion_date)
        return self

    def reschedule(
        self, start_date: datetime, end_date: datetime, reason: Optional[str] = None
    ) -> "ScheduleChange":
        """
        Move the task to new dates and describe the move.

        Args:
            start_date: New first day
            end_date: New last day
            reason: Human-readable reason for the move

        Returns:
            ScheduleChange: The before/after record of the move

        Raises:
            TaskError: If the new end is before the new start
        """
        start_date = to_day(start_date)
        end_date = to_day(end_date)
        if start_date and end_date and end_date < start_date:
            raise TaskError(f"Task {self.id} cannot end before it starts")

        old_start, old_end = self.start_date, self.end_date
        if old_end is not None and end_date != old_end and self.original_end_date is None:
            self.original_end_date = old_end

        self.start_date = start_date
        self.end_date = end_date

        reference = old_end or old_start
        target = end_date if old_end is not None else start_date
        impact_days = (target - reference).days if reference and target else 0

        if impact_days > 0:
            self.delay_days += impact_days
            if reason:
                self.delay_reason = reason

        return ScheduleChange(
            task_id=self.id,
            old_start_date=old_start,
            new_start_date=start_date,
            old_end_date=old_end,
            new_end_date=end_date,
            reason=reason or "Rescheduled",
            impact_days=impact_days,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert task to a dictionary representation.

        Returns:
            dict: Dictionary representation of the task
        """
        result = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "task_type": self.task_type,
            "schedule_policy": self._schedule_policy.value
            if self._schedule_policy
            else None,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "dependencies": self.dependencies.copy(),
            "dependents": self.dependents.copy(),
            "assignee_id": self.assignee_id,
            "project_id": self.project_id,
            "delay_days": self.delay_days,
            "delay_reason": self.delay_reason,
            "workload_percentage": self.workload_percentage,
            "is_bottleneck": self.is_bottleneck,
        }

        for attr in DATE_FIELDS:
            result[attr] = getattr(self, attr)

        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """
        Create a task from a dictionary representation.

        Args:
            data: Dictionary representation of the task

        Returns:
            Task: New task instance
        """
        task = cls(
            id=data["id"],
            title=data["title"],
            status=data.get("status", "TODO"),
            priority=data.get("priority", "MEDIUM"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            estimated_hours=data.get("estimated_hours"),
            actual_hours=data.get("actual_hours"),
            task_type=data.get("task_type", "INDEPENDENT"),
            schedule_policy=data.get("schedule_policy"),
            dependencies=data.get("dependencies", []),
            dependents=data.get("dependents", []),
            estimated_finish_date=data.get("estimated_finish_date"),
            actual_finish_date=data.get("actual_finish_date"),
            assignee_id=data.get("assignee_id"),
            project_id=data.get("project_id"),
            delay_days=data.get("delay_days", 0),
        )

        task.original_end_date = to_day(data.get("original_end_date"))
        task.delay_reason = data.get("delay_reason")
        task.workload_percentage = data.get("workload_percentage", 0)
        task.is_bottleneck = data.get("is_bottleneck", False)

        return task

    def copy(self) -> "Task":
        """
        Create a deep copy of this task.

        Returns:
            Task: New task instance with the same properties
        """
        return self.from_dict(self.to_dict())

    def __repr__(self) -> str:
        dates = ""
        if self.has_dates():
            dates = f", {self.start_date:%Y-%m-%d}..{self.end_date:%Y-%m-%d}"
        return f"Task(id={self.id}, title={self.title}, status={self.status}{dates})"


class ScheduleChange:
    """
    Record of one task's move produced by a reschedule.

    impact_days is positive when the task moved later and negative when
    it moved earlier.
    """

    def __init__(
        self,
        task_id,
        reason: str,
        impact_days: int,
        old_start_date: Optional[datetime] = None,
        new_start_date: Optional[datetime] = None,
        old_end_date: Optional[datetime] = None,
        new_end_date: Optional[datetime] = None,
    ):
        self.task_id = task_id
        self.old_start_date = old_start_date
        self.new_start_date = new_start_date
        self.old_end_date = old_end_date
        self.new_end_date = new_end_date
        self.reason = reason
        self.impact_days = impact_days

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "oldStartDate": self.old_start_date,
            "newStartDate": self.new_start_date,
            "oldEndDate": self.old_end_date,
            "newEndDate": self.new_end_date,
            "reason": self.reason,
            "impactDays": self.impact_days,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScheduleChange):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"ScheduleChange(task_id={self.task_id}, impact_days={self.impact_days}, "
            f"reason={self.reason!r})"
        )
