"""
Capacity-aware placement of dependent tasks after a schedule change.

A best-effort greedy heuristic, not a constraint solver: tasks are placed
one at a time in dependency order, each at the candidate start that keeps
its owner's peak load (and the number of bottleneck days) lowest, never
before its dependencies end.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from taskplan.config import SchedulerConfig
from taskplan.domain.task import Task
from taskplan.services.dependency_graph import DependencyGraph
from taskplan.services.workload import WorkloadEngine
from taskplan.utils.calendar import add_working_days, daterange
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


def effective_end(task: Task) -> Optional[datetime]:
    """The day a task really ends: its recorded finish once completed."""
    if task.is_completed() and task.actual_finish_date is not None:
        return task.actual_finish_date
    return task.end_date


class CapacityAwarePlacer:
    """
    Proposes new dates for a set of dependent tasks.

    Args:
        tasks: Dict of task ID to Task (treated as read-only)
        users: Dict of user ID to User
        config: Scheduler configuration (search window, default span)
    """

    def __init__(self, tasks: Dict, users: Dict, config: Optional[SchedulerConfig] = None):
        self.config = config or SchedulerConfig()
        self.tasks = tasks
        self.users = users
        self.graph = DependencyGraph(tasks, self.config)

    def _span_end(self, task: Task, start: datetime) -> datetime:
        if task.has_dates():
            return start + (task.end_date - task.start_date)
        return add_working_days(start, self.config.default_span_days - 1)

    def _candidates(self, earliest: datetime) -> List[datetime]:
        candidates = [earliest]
        for offset in range(1, self.config.auto_search_days + 1):
            candidates.append(add_working_days(earliest, offset))
        return candidates

    def _score(self, tentative: Dict, task: Task, start: datetime, end: datetime) -> Tuple:
        """Bottleneck days and owner peak load if the task ran from start to end."""
        moved = task.copy()
        moved.start_date, moved.end_date = start, end
        trial = [t for task_id, t in tentative.items() if task_id != task.id] + [moved]
        engine = WorkloadEngine(trial, self.users, self.config)

        bottleneck_days = sum(
            1 for day in daterange(start, end) if engine.detect_bottleneck(day).is_bottleneck
        )
        peak = 0
        if task.assignee_id is not None:
            peak = engine.peak_load(task.assignee_id, start, end)
        return bottleneck_days, peak

    def place(
        self, trigger: Task, task_ids: Iterable, day_difference: int
    ) -> Dict[object, Tuple[datetime, datetime]]:
        """
        Place the given dependents of a finished task.

        Each task keeps its calendar span. Its earliest start is its old
        start shifted by day_difference, pushed later if any dependency
        (as already re-placed) ends after it. Candidate starts from there
        over the search window are compared by bottleneck days, then peak
        load; ties go to the earliest candidate.

        Args:
            trigger: The task whose finish caused the change
            task_ids: IDs of the tasks to place
            day_difference: Signed finish difference of the trigger, in days

        Returns:
            dict: Task ID to proposed (start, end)
        """
        task_ids = list(task_ids)
        tentative = {task_id: task.copy() for task_id, task in self.tasks.items()}
        tentative[trigger.id] = trigger

        proposals = {}
        for task_id in self.graph.topological_order(task_ids):
            task = tentative[task_id]

            dependency_ends = [
                effective_end(tentative[dep_id])
                for dep_id in self.graph.direct_dependencies(task_id)
                if effective_end(tentative[dep_id]) is not None
            ]
            latest_end = max(dependency_ends) if dependency_ends else None

            if task.start_date is not None:
                earliest = task.start_date + timedelta(days=day_difference)
                if latest_end is not None and latest_end > earliest:
                    earliest = latest_end
            else:
                earliest = latest_end or effective_end(trigger)

            if earliest is None:
                logger.debug(f"Task {task_id}: no anchor date, left in place")
                continue

            best = None
            for start in self._candidates(earliest):
                end = self._span_end(task, start)
                score = self._score(tentative, task, start, end)
                if best is None or score < best[0]:
                    best = (score, start, end)

            _, start, end = best
            task.start_date, task.end_date = start, end
            proposals[task_id] = (start, end)
            logger.debug(
                f"Task {task_id}: placed {start:%Y-%m-%d}..{end:%Y-%m-%d} "
                f"(bottleneck days {best[0][0]}, peak load {best[0][1]}%)"
            )

        return proposals
