"""
Repository seam between the engine and the store of tasks, projects and users.

The engine only needs plain reads and writes plus an all-or-nothing
transaction: writes made inside `with repository.transaction():` become
visible together when the block exits normally and are discarded when it
raises.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional

from taskplan.domain.errors import NotFoundError, PersistenceError
from taskplan.domain.project import Project, ProjectSnapshot
from taskplan.domain.task import Task
from taskplan.domain.user import User
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class TaskRepository(ABC):
    @abstractmethod
    def get_project(self, project_id) -> Project:
        """Return a copy of a project or raise NotFoundError"""
        pass

    @abstractmethod
    def get_task(self, task_id) -> Task:
        """Return a copy of a task or raise NotFoundError"""
        pass

    @abstractmethod
    def list_tasks(self, project_id=None) -> List[Task]:
        """Return copies of the tasks of a project (all tasks when None)"""
        pass

    @abstractmethod
    def list_users(self) -> List[User]:
        pass

    @abstractmethod
    def save_task(self, task: Task):
        pass

    @abstractmethod
    def save_project(self, project: Project):
        pass

    @abstractmethod
    def transaction(self):
        """Context manager grouping writes into one atomic unit"""
        pass

    def save_tasks(self, tasks: Iterable[Task]):
        for task in tasks:
            self.save_task(task)

    def load_snapshot(self, project_id) -> ProjectSnapshot:
        """Read a project with its tasks and all users."""
        project = self.get_project(project_id)
        return ProjectSnapshot(project, self.list_tasks(project_id), self.list_users())


class InMemoryRepository(TaskRepository):
    """
    Dictionary-backed repository.

    Reads return copies. Inside a transaction, writes are staged and
    applied together on success.
    """

    def __init__(
        self,
        projects: Optional[Iterable[Project]] = None,
        tasks: Optional[Iterable[Task]] = None,
        users: Optional[Iterable[User]] = None,
    ):
        self._projects: Dict = {p.id: p.copy() for p in projects or []}
        self._tasks: Dict = {t.id: t.copy() for t in tasks or []}
        self._users: Dict = {u.id: u for u in users or []}
        self._lock = threading.RLock()
        self._local = threading.local()
        self.commits = 0

    def _staged(self) -> Optional[Dict]:
        return getattr(self._local, "staged", None)

    def get_project(self, project_id) -> Project:
        with self._lock:
            if project_id not in self._projects:
                raise NotFoundError("Project", project_id)
            return self._projects[project_id].copy()

    def get_task(self, task_id) -> Task:
        with self._lock:
            if task_id not in self._tasks:
                raise NotFoundError("Task", task_id)
            return self._tasks[task_id].copy()

    def list_tasks(self, project_id=None) -> List[Task]:
        with self._lock:
            return [
                task.copy()
                for task in self._tasks.values()
                if project_id is None or task.project_id == project_id
            ]

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def add_user(self, user: User):
        with self._lock:
            self._users[user.id] = user

    def save_task(self, task: Task):
        staged = self._staged()
        if staged is not None:
            staged["tasks"][task.id] = task.copy()
            return
        with self._lock:
            self._tasks[task.id] = task.copy()

    def save_project(self, project: Project):
        staged = self._staged()
        if staged is not None:
            staged["projects"][project.id] = project.copy()
            return
        with self._lock:
            self._projects[project.id] = project.copy()

    @contextmanager
    def transaction(self):
        if self._staged() is not None:
            raise PersistenceError("Nested transactions are not supported")

        self._local.staged = {"tasks": {}, "projects": {}}
        try:
            yield self
            staged = self._local.staged
            with self._lock:
                self._tasks.update(staged["tasks"])
                self._projects.update(staged["projects"])
                self.commits += 1
            logger.debug(
                f"Committed {len(staged['tasks'])} tasks, {len(staged['projects'])} projects"
            )
        except Exception:
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._local.staged = None
