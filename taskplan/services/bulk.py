"""
Whole-project reschedule strategies.

Every strategy lays incomplete tasks out again from a cursor that starts
at today + delay_days. A task of N working days is placed at the cursor,
ends N working days later, and the cursor moves to the day after its end
(one buffer day). Weekends never count towards a duration, but a task may
still start on a weekend day.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import ValidationError
from taskplan.domain.project import ProjectSnapshot
from taskplan.domain.task import ScheduleChange, Task
from taskplan.utils.calendar import add_working_days, to_day, working_days_between
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class BulkRescheduleResult:
    """Outcome of one bulk reschedule, not yet committed."""

    def __init__(
        self,
        reschedule_type: str,
        strategy_used: str,
        changes: List[ScheduleChange],
        new_end_date: Optional[datetime],
        delay_days: int,
        snapshot: ProjectSnapshot,
    ):
        self.reschedule_type = reschedule_type
        self.strategy_used = strategy_used
        self.changes = changes
        self.new_end_date = new_end_date
        self.delay_days = delay_days
        self.snapshot = snapshot

    @property
    def affected_tasks(self) -> int:
        return len(self.changes)

    def changed_tasks(self) -> List[Task]:
        return [self.snapshot.tasks[change.task_id] for change in self.changes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "rescheduleType": self.reschedule_type,
            "strategyUsed": self.strategy_used,
            "affectedTasks": self.affected_tasks,
            "newProjectEndDate": self.new_end_date,
            "delayDays": self.delay_days,
        }


class RescheduleStrategy(ABC):
    name: str = None

    @abstractmethod
    def reschedule(
        self, planner: "BulkRescheduler", work: ProjectSnapshot, delay_days: int
    ) -> Tuple[List[ScheduleChange], Optional[datetime]]:
        """Re-lay out tasks in work and return (changes, new project end)"""
        pass

    def get_name(self):
        """Get the name of this strategy"""
        return self.__class__.__name__


class SequentialStrategy(RescheduleStrategy):
    """One task after another: safest, longest timeline."""

    name = "sequential"

    def reschedule(self, planner, work, delay_days):
        cursor = planner.start_cursor(delay_days)
        tasks = planner.ordered(work.incomplete_tasks())
        changes, _, cursor = planner.place_lane(tasks, cursor, "Sequential reschedule")
        return changes, cursor

    def get_name(self):
        return "Sequential"


class ParallelStrategy(RescheduleStrategy):
    """One sequential lane per assignee; lanes run side by side."""

    name = "parallel"

    def reschedule(self, planner, work, delay_days):
        start = planner.start_cursor(delay_days)
        lanes: Dict[Any, List[Task]] = {}
        for task in planner.ordered(work.incomplete_tasks()):
            # Unassigned tasks keep their dates
            if task.assignee_id is None:
                continue
            lanes.setdefault(task.assignee_id, []).append(task)

        changes = []
        new_end = None
        for assignee_id, lane in lanes.items():
            lane_changes, lane_end, _ = planner.place_lane(
                lane, start, "Parallel reschedule"
            )
            changes.extend(lane_changes)
            if lane_end is not None and (new_end is None or lane_end > new_end):
                new_end = lane_end

        return changes, new_end or start

    def get_name(self):
        return "Parallel per assignee"


class CriticalTasksStrategy(RescheduleStrategy):
    """Only HIGH and URGENT tasks are laid out again; the rest stay put."""

    name = "critical"

    def reschedule(self, planner, work, delay_days):
        cursor = planner.start_cursor(delay_days)
        critical = [t for t in work.incomplete_tasks() if t.is_critical_priority()]
        changes, last_end, _ = planner.place_lane(
            planner.ordered(critical), cursor, "Critical tasks reschedule"
        )
        return changes, last_end

    def get_name(self):
        return "Critical tasks only"


class AutoStrategy(RescheduleStrategy):
    """
    Picks a strategy from the number of overdue tasks.

    More than half of all tasks overdue: sequential with the largest slip.
    Some overdue: parallel with the largest slip. None: parallel, no delay.
    """

    name = "auto"

    def __init__(self):
        self.chosen: Optional[RescheduleStrategy] = None
        self.total_delay = 0

    def reschedule(self, planner, work, delay_days):
        overdue = [task for task in work.tasks.values() if task.is_overdue(planner.today)]
        total_delay = max(((planner.today - t.end_date).days for t in overdue), default=0)

        if len(overdue) > len(work.tasks) * 0.5:
            chosen = SequentialStrategy()
        elif overdue:
            chosen = ParallelStrategy()
        else:
            chosen = ParallelStrategy()
            total_delay = 0

        logger.info(
            f"Auto reschedule: {len(overdue)}/{len(work.tasks)} tasks overdue, "
            f"using {chosen.name} with {total_delay} delay days"
        )
        self.chosen = chosen
        self.total_delay = total_delay
        return chosen.reschedule(planner, work, total_delay)

    def get_name(self):
        return "Auto-select"


STRATEGIES = {
    strategy.name: strategy
    for strategy in (SequentialStrategy, ParallelStrategy, CriticalTasksStrategy, AutoStrategy)
}


class BulkRescheduler:
    """
    Runs a bulk strategy over a private copy of a project snapshot.

    Args:
        snapshot: The project, its tasks and users
        today: The day placement starts from (default: the current day)
        config: Scheduler configuration
    """

    def __init__(
        self,
        snapshot: ProjectSnapshot,
        today: Optional[datetime] = None,
        config: Optional[SchedulerConfig] = None,
    ):
        if snapshot.project is None:
            raise ValidationError("Bulk reschedule needs a project")
        self.snapshot = snapshot
        self.today = to_day(today or datetime.now())
        self.config = config or SchedulerConfig()

    def start_cursor(self, delay_days: int) -> datetime:
        return self.today + timedelta(days=delay_days)

    def task_duration(self, task: Task) -> int:
        """
        Working-day duration of a task.

        Working days in its current span when it has dates, else its
        estimated hours in 8-hour days (rounded up), else one day.
        """
        if task.has_dates():
            return working_days_between(task.start_date, task.end_date)
        if task.estimated_hours:
            return math.ceil(task.estimated_hours / self.config.hours_per_working_day)
        return 1

    @staticmethod
    def ordered(tasks: List[Task]) -> List[Task]:
        """Sort by original start date; undated tasks go last in their given order."""
        return sorted(
            tasks,
            key=lambda t: (t.start_date is None, t.start_date or datetime.min),
        )

    def place_lane(
        self, tasks: List[Task], cursor: datetime, reason: str
    ) -> Tuple[List[ScheduleChange], Optional[datetime], datetime]:
        """
        Place tasks back to back from a cursor.

        Returns:
            tuple: (changes, end of the last placed task, final cursor)
        """
        changes = []
        last_end = None
        for task in tasks:
            duration = self.task_duration(task)
            start = cursor
            end = add_working_days(start, duration)
            changes.append(task.reschedule(start, end, reason))
            logger.debug(
                f"Task {task.id}: {duration} working days, "
                f"{start:%Y-%m-%d}..{end:%Y-%m-%d}"
            )
            last_end = end
            cursor = end + timedelta(days=1)
        return changes, last_end, cursor

    def run(self, reschedule_type: str, delay_days: int = 0) -> BulkRescheduleResult:
        """
        Reschedule every incomplete task of the project.

        Args:
            reschedule_type: sequential, parallel, critical or auto
            delay_days: Calendar days to push the start cursor by

        Returns:
            BulkRescheduleResult: Changes, new project end and the new snapshot

        Raises:
            ValidationError: On an unknown type or a negative delay
        """
        if reschedule_type not in STRATEGIES:
            raise ValidationError(
                f"Invalid reschedule type: {reschedule_type}. Must be one of {list(STRATEGIES)}"
            )
        if not isinstance(delay_days, int) or isinstance(delay_days, bool) or delay_days < 0:
            raise ValidationError("Delay days must be a non-negative integer")

        strategy = STRATEGIES[reschedule_type]()
        work = self.snapshot.copy()
        changes, new_end = strategy.reschedule(self, work, delay_days)

        strategy_used = reschedule_type
        if isinstance(strategy, AutoStrategy):
            strategy_used = strategy.chosen.name
            delay_days = strategy.total_delay

        if new_end is not None:
            work.project.move_end_date(new_end, delay_days)
        else:
            work.project.delay_days = max(work.project.delay_days, delay_days)

        logger.info(
            f"Project {work.project.id}: {strategy.get_name()} moved {len(changes)} tasks, "
            f"new end {work.project.end_date}"
        )

        return BulkRescheduleResult(
            reschedule_type=reschedule_type,
            strategy_used=strategy_used,
            changes=changes,
            new_end_date=work.project.end_date,
            delay_days=delay_days,
            snapshot=work,
        )
