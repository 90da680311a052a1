"""
Task Reschedule Engine
======================

Dependency-aware rescheduling and workload/bottleneck analysis for
project tasks.

Available modules:
- services.rescheduler: propagate a task's finish to its dependents
- services.bulk: whole-project reschedule strategies
- services.workload: daily workload, bottlenecks and reports
- services.dependency_graph: dependency graph queries and edits
- services.engine: request-level service with locking and persistence
- visualization: network diagram and workload chart
"""

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import (
    ConcurrentRescheduleError,
    CycleError,
    NotFoundError,
    PersistenceError,
    RescheduleTimeoutError,
    TaskplanError,
    ValidationError,
)
from taskplan.domain.project import Project, ProjectSnapshot
from taskplan.domain.task import ScheduleChange, Task
from taskplan.domain.user import User
from taskplan.persistence.repository import InMemoryRepository, TaskRepository
from taskplan.persistence.sqlite import SQLiteRepository
from taskplan.services.bulk import BulkRescheduler
from taskplan.services.dependency_graph import DependencyGraph
from taskplan.services.engine import RescheduleService
from taskplan.services.rescheduler import DependencyRescheduler
from taskplan.services.workload import WorkloadEngine

__version__ = "0.1.0"

__all__ = [
    "SchedulerConfig",
    "TaskplanError",
    "ValidationError",
    "NotFoundError",
    "CycleError",
    "ConcurrentRescheduleError",
    "RescheduleTimeoutError",
    "PersistenceError",
    "Project",
    "ProjectSnapshot",
    "Task",
    "ScheduleChange",
    "User",
    "TaskRepository",
    "InMemoryRepository",
    "SQLiteRepository",
    "BulkRescheduler",
    "DependencyGraph",
    "RescheduleService",
    "DependencyRescheduler",
    "WorkloadEngine",
]
