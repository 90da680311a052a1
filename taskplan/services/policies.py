from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict, List, Optional

from taskplan.config import SchedulerConfig
from taskplan.domain.task import SchedulePolicy, ScheduleChange, Task
from taskplan.services.dependency_graph import DependencyGraph
from taskplan.services.placement import CapacityAwarePlacer
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class PropagationContext:
    """Everything a policy needs to propagate one task's finish."""

    def __init__(
        self,
        task: Task,
        day_difference: int,
        graph: DependencyGraph,
        users: Dict,
        config: Optional[SchedulerConfig] = None,
    ):
        self.task = task
        self.day_difference = day_difference
        self.graph = graph
        self.tasks = graph.tasks
        self.users = users
        self.config = config or SchedulerConfig()

    @property
    def direction(self) -> str:
        if self.day_difference == 0:
            return "on time"
        return "late" if self.day_difference > 0 else "early"


class PropagationPolicy(ABC):
    policy: SchedulePolicy = None

    @abstractmethod
    def propagate(self, context: PropagationContext) -> List[ScheduleChange]:
        """Move the dependents of context.task and return the changes"""
        pass

    def get_name(self):
        """Get the name of this policy"""
        return self.__class__.__name__


def shift_direct_dependents(context: PropagationContext, reason: str) -> List[ScheduleChange]:
    """Shift every dated direct dependent by the finish difference."""
    shift = timedelta(days=context.day_difference)
    changes = []
    for dependent_id in context.graph.direct_dependents(context.task.id):
        dependent = context.tasks[dependent_id]
        if not dependent.has_dates():
            logger.debug(f"Task {dependent_id} has no dates, not shifted")
            continue
        change = dependent.reschedule(
            dependent.start_date + shift, dependent.end_date + shift, reason
        )
        # Start and end move together, so the impact is the finish difference
        change.impact_days = context.day_difference
        changes.append(change)
    return changes


class SecurePolicy(PropagationPolicy):
    """Rigid chain: dependents follow an early or a late finish."""

    policy = SchedulePolicy.SECURE

    def propagate(self, context):
        # An on-time finish still reports every dated dependent, with zero impact
        return shift_direct_dependents(
            context,
            f"Adjusted due to {context.task.title} finishing {context.direction}",
        )

    def get_name(self):
        return "Secure (rigid shift)"


class StandardPolicy(PropagationPolicy):
    """Dependents are delayed by a late finish; an early finish changes nothing."""

    policy = SchedulePolicy.STANDARD

    def propagate(self, context):
        if context.day_difference <= 0:
            return []
        return shift_direct_dependents(
            context, f"Delayed due to {context.task.title} finishing late"
        )

    def get_name(self):
        return "Standard (delay only)"


class AutoPolicy(PropagationPolicy):
    """Re-place every transitive dependent with the capacity-aware placer."""

    policy = SchedulePolicy.AUTO

    def propagate(self, context):
        affected = context.graph.all_dependents(context.task.id)
        if not affected:
            return []

        placer = CapacityAwarePlacer(context.tasks, context.users, context.config)
        proposals = placer.place(context.task, affected, context.day_difference)

        changes = []
        for task_id in affected:
            if task_id not in proposals:
                continue
            task = context.tasks[task_id]
            start, end = proposals[task_id]
            if start == task.start_date and end == task.end_date:
                continue
            changes.append(
                task.reschedule(
                    start, end, "Auto-optimized considering workload and bottlenecks"
                )
            )
        return changes

    def get_name(self):
        return "Auto (capacity-aware placement)"


POLICY_HANDLERS = {
    handler.policy: handler for handler in (SecurePolicy(), StandardPolicy(), AutoPolicy())
}

_unhandled = set(SchedulePolicy) - set(POLICY_HANDLERS)
if _unhandled:
    raise ImportError(f"No propagation handler for policies: {sorted(p.value for p in _unhandled)}")


def get_policy_handler(policy) -> PropagationPolicy:
    """Look up the handler for a SchedulePolicy member or its value."""
    return POLICY_HANDLERS[SchedulePolicy(policy)]
