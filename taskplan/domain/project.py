from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from taskplan.domain.errors import NotFoundError, ValidationError
from taskplan.domain.task import Task
from taskplan.domain.user import User
from taskplan.utils.calendar import to_day


class ProjectError(ValidationError):
    """Exception raised for errors in the Project class."""

    pass


class Project:
    """
    A project whose end date follows the schedule of its tasks.
    """

    def __init__(
        self,
        id,
        name: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        delay_days: int = 0,
        auto_reschedule: bool = False,
    ):
        if id is None:
            raise ProjectError("Project ID cannot be None")
        self.id = id
        self.name = name or str(id)

        self.start_date = to_day(start_date)
        self.end_date = to_day(end_date)
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ProjectError(f"Project {id} ends before it starts")
        self.original_end_date = None

        if not isinstance(delay_days, int) or delay_days < 0:
            raise ProjectError("Delay days must be a non-negative integer")
        self.delay_days = delay_days
        self.auto_reschedule = bool(auto_reschedule)

    def move_end_date(self, end_date: datetime, delay_days: int = 0) -> "Project":
        """
        Set a new end date and record the largest delay applied so far.

        Args:
            end_date: The new project end date
            delay_days: Delay injected by the reschedule

        Returns:
            self: For method chaining
        """
        end_date = to_day(end_date)
        if self.end_date is not None and self.original_end_date is None:
            self.original_end_date = self.end_date
        self.end_date = end_date
        self.delay_days = max(self.delay_days, delay_days)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "original_end_date": self.original_end_date,
            "delay_days": self.delay_days,
            "auto_reschedule": self.auto_reschedule,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        project = cls(
            id=data["id"],
            name=data.get("name"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            delay_days=data.get("delay_days", 0),
            auto_reschedule=data.get("auto_reschedule", False),
        )
        project.original_end_date = to_day(data.get("original_end_date"))
        return project

    def copy(self) -> "Project":
        return self.from_dict(self.to_dict())

    def __repr__(self) -> str:
        return f"Project(id={self.id}, end_date={self.end_date}, delay_days={self.delay_days})"


class ProjectSnapshot:
    """
    A project together with its tasks and the users who own them.

    Engines receive a snapshot and never modify the caller's records:
    copy() hands each engine private task and project objects, and the
    reschedule engines return the copy they changed.
    """

    def __init__(
        self,
        project: Optional[Project] = None,
        tasks: Optional[Iterable[Task]] = None,
        users: Optional[Iterable[User]] = None,
    ):
        self.project = project
        self.tasks: Dict[Any, Task] = {}
        for task in tasks or []:
            self.tasks[task.id] = task
        self.users: Dict[Any, User] = {user.id: user for user in users or []}

    def get_task(self, task_id) -> Task:
        if task_id not in self.tasks:
            raise NotFoundError("Task", task_id)
        return self.tasks[task_id]

    def incomplete_tasks(self) -> List[Task]:
        return [task for task in self.tasks.values() if not task.is_completed()]

    def copy(self) -> "ProjectSnapshot":
        """Deep-copy tasks and project; users are read-only and shared."""
        return ProjectSnapshot(
            project=self.project.copy() if self.project else None,
            tasks=[task.copy() for task in self.tasks.values()],
            users=self.users.values(),
        )

    def __repr__(self) -> str:
        project_id = self.project.id if self.project else None
        return f"ProjectSnapshot(project={project_id}, tasks={len(self.tasks)}, users={len(self.users)})"
