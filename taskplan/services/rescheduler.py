from datetime import datetime
from typing import Any, Dict, List, Optional

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import ValidationError
from taskplan.domain.project import ProjectSnapshot
from taskplan.domain.task import ScheduleChange, SchedulePolicy, Task
from taskplan.services.dependency_graph import DependencyGraph, VisualizationData
from taskplan.services.policies import PropagationContext, get_policy_handler
from taskplan.utils.calendar import to_day
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class DependencyUpdate:
    """
    Result of propagating one task's completion.

    snapshot holds the changed copies of every task; the caller decides
    whether to commit it.
    """

    def __init__(
        self,
        task_id,
        updated_task: Task,
        affected_tasks: List,
        schedule_changes: List[ScheduleChange],
        visualization_data: VisualizationData,
        snapshot: ProjectSnapshot,
        strategy_used: Optional[str] = None,
    ):
        self.task_id = task_id
        self.updated_task = updated_task
        self.affected_tasks = affected_tasks
        self.schedule_changes = schedule_changes
        self.visualization_data = visualization_data
        self.snapshot = snapshot
        self.strategy_used = strategy_used

    def changed_tasks(self) -> List[Task]:
        """The completed task followed by every moved task."""
        return [self.updated_task] + [self.snapshot.tasks[i] for i in self.affected_tasks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "updatedTask": self.updated_task.to_dict(),
            "affectedTasks": list(self.affected_tasks),
            "scheduleChanges": [change.to_dict() for change in self.schedule_changes],
            "strategyUsed": self.strategy_used,
            "visualizationData": self.visualization_data.to_dict(),
        }


class DependencyRescheduler:
    """
    Propagates a task's actual finish to the tasks that depend on it.

    Works on a private copy of the snapshot it is given.
    """

    def __init__(self, snapshot: ProjectSnapshot, config: Optional[SchedulerConfig] = None):
        self.snapshot = snapshot
        self.config = config or SchedulerConfig()

    def on_task_completed(self, task_id, actual_finish_date: datetime) -> DependencyUpdate:
        """
        Mark a task completed and reschedule its dependents.

        The finish difference is measured in whole days against the task's
        estimated finish date (or its end date). Independent tasks only
        report the difference; connected tasks apply their schedule policy.

        Args:
            task_id: ID of the completed task
            actual_finish_date: The day the task was finished

        Returns:
            DependencyUpdate: Changes, affected IDs and the new snapshot

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If a connected task has no estimated finish date
        """
        if actual_finish_date is None:
            raise ValidationError("Actual finish date is required")
        actual_finish_date = to_day(actual_finish_date)

        work = self.snapshot.copy()
        task = work.get_task(task_id)
        reference = task.reference_finish_date()

        if task.is_connected() and reference is None:
            raise ValidationError(
                f"Connected task {task_id} must have an estimated finish date"
            )

        task.complete_task(actual_finish_date)
        day_difference = (actual_finish_date - reference).days if reference else 0
        if day_difference > 0:
            task.delay_days = day_difference
            task.delay_reason = f"Completed {day_difference} days late"

        graph = DependencyGraph(work.tasks, self.config)

        if not task.is_connected():
            changes = [self._finish_record(task, reference, day_difference)]
            logger.info(f"Independent task {task_id} completed ({day_difference:+d} days)")
            return DependencyUpdate(
                task_id=task_id,
                updated_task=task,
                affected_tasks=[],
                schedule_changes=changes,
                visualization_data=graph.visualization(),
                snapshot=work,
            )

        policy = SchedulePolicy(task.schedule_policy)
        handler = get_policy_handler(policy)
        context = PropagationContext(task, day_difference, graph, work.users, self.config)
        changes = handler.propagate(context)
        affected = [change.task_id for change in changes]

        logger.info(
            f"Connected task {task_id} completed ({day_difference:+d} days), "
            f"{policy.value} policy moved {len(affected)} tasks"
        )

        return DependencyUpdate(
            task_id=task_id,
            updated_task=task,
            affected_tasks=affected,
            schedule_changes=changes,
            visualization_data=graph.visualization(
                {change.task_id: change.impact_days for change in changes}
            ),
            snapshot=work,
            strategy_used=policy.value,
        )

    @staticmethod
    def _finish_record(task: Task, reference, day_difference: int) -> ScheduleChange:
        if day_difference > 0:
            reason = f"Task completed {day_difference} days late"
        elif day_difference < 0:
            reason = f"Task completed {abs(day_difference)} days early"
        else:
            reason = "Task completed on time"
        return ScheduleChange(
            task_id=task.id,
            old_end_date=reference,
            new_end_date=task.actual_finish_date,
            reason=reason,
            impact_days=day_difference,
        )
