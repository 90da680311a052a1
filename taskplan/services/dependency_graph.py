import math
from typing import Any, Dict, Iterable, List, Optional, Union

import networkx as nx

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import CycleError, NotFoundError, ValidationError
from taskplan.domain.task import Task
from taskplan.utils.calendar import working_days_between
from taskplan.utils.graph import build_dependency_graph, find_cycles, find_longest_path
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)

HIGH_IMPACT_DEPENDENTS = 5
MEDIUM_IMPACT_DEPENDENTS = 2


class GraphValidation:
    """Outcome of DependencyGraph.validate(): ok, or the cycles found."""

    def __init__(self, errors: Optional[List[CycleError]] = None):
        self.errors = list(errors or [])

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def cycle_task_ids(self) -> List:
        seen = []
        for error in self.errors:
            for task_id in error.task_ids:
                if task_id not in seen:
                    seen.append(task_id)
        return seen

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        return f"GraphValidation(ok={self.ok}, errors={len(self.errors)})"


class VisualizationData:
    """
    Read-only projection of the graph for presentation layers.

    nodes: one dict per task with status, type, policy, dates, critical-path
    flag and impact level. edges: dependency -> dependent with the delay in
    days applied to the dependent by the current change, if any.
    """

    def __init__(self, nodes: List[Dict], edges: List[Dict], critical_path: List):
        self.nodes = nodes
        self.edges = edges
        self.critical_path = critical_path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [dict(node) for node in self.nodes],
            "edges": [dict(edge) for edge in self.edges],
            "criticalPath": list(self.critical_path),
        }


class DependencyGraph:
    """
    Dependency edges between connected tasks.

    Wraps a networkx DiGraph whose edges run from a dependency to its
    dependent. Edge edits go through add_dependency()/remove_dependency(),
    which keep both tasks' edge lists consistent and refuse any edge that
    would close a cycle.
    """

    def __init__(
        self,
        tasks: Union[Dict, Iterable[Task]],
        config: Optional[SchedulerConfig] = None,
    ):
        self.config = config or SchedulerConfig()
        if isinstance(tasks, dict):
            self.tasks = tasks
        else:
            self.tasks = {task.id: task for task in tasks}
        self.graph = build_dependency_graph(self.tasks)

    def rebuild(self) -> "DependencyGraph":
        self.graph = build_dependency_graph(self.tasks)
        return self

    def _require(self, task_id) -> Task:
        if task_id not in self.tasks:
            raise NotFoundError("Task", task_id)
        return self.tasks[task_id]

    def validate(self) -> GraphValidation:
        """
        Check the graph for circular dependencies.

        Every task that can reach itself through its dependencies yields one
        CycleError naming the cycle.

        Returns:
            GraphValidation: ok, or the list of CycleError found
        """
        errors = [CycleError(path) for _, path in find_cycles(self.graph)]
        if errors:
            logger.warning(f"Dependency graph has {len(errors)} tasks on cycles")
        return GraphValidation(errors)

    def direct_dependents(self, task_id) -> List:
        self._require(task_id)
        if task_id not in self.graph:
            return []
        return list(self.graph.successors(task_id))

    def direct_dependencies(self, task_id) -> List:
        self._require(task_id)
        if task_id not in self.graph:
            return []
        return list(self.graph.predecessors(task_id))

    def all_dependents(self, task_id) -> List:
        """
        Get every task that depends on a task, directly or transitively.

        Expands direct dependents breadth-first; a task already visited is
        not expanded again, so cycles terminate.

        Returns:
            list: Task IDs in discovery order, without duplicates
        """
        result = []
        visited = {task_id}
        queue = self.direct_dependents(task_id)
        while queue:
            current = queue.pop(0)
            if current in visited:
                continue
            visited.add(current)
            result.append(current)
            queue.extend(self.graph.successors(current))
        return result

    def all_dependencies(self, task_id) -> List:
        self._require(task_id)
        if task_id not in self.graph:
            return []
        return list(nx.ancestors(self.graph, task_id))

    def impact_level(self, task_id) -> str:
        count = len(self.all_dependents(task_id))
        if count >= HIGH_IMPACT_DEPENDENTS:
            return "HIGH"
        if count >= MEDIUM_IMPACT_DEPENDENTS:
            return "MEDIUM"
        return "LOW"

    def critical_path(self) -> List:
        """
        Approximate the critical path by dependency fan-out.

        Connected tasks are ranked by their number of transitive dependents
        (ties keep task order) and the top share (30% by default, rounded
        up) is returned.
        """
        connected = [task_id for task_id in self.tasks if task_id in self.graph]
        counts = {task_id: len(self.all_dependents(task_id)) for task_id in connected}
        ranked = sorted(connected, key=lambda task_id: -counts[task_id])
        size = math.ceil(len(connected) * self.config.critical_fraction)
        return ranked[:size]

    def task_duration(self, task: Task) -> int:
        """Working-day duration used to weight the longest path."""
        if task.has_dates():
            return working_days_between(task.start_date, task.end_date)
        if task.estimated_hours:
            return math.ceil(task.estimated_hours / self.config.hours_per_working_day)
        return 1

    def longest_path(self) -> List:
        """
        Find the longest-duration chain of dependent tasks.

        Raises:
            CycleError: If the graph is not acyclic
        """
        validation = self.validate()
        if not validation.ok:
            raise validation.errors[0]
        durations = {
            task_id: self.task_duration(self.tasks[task_id]) for task_id in self.graph
        }
        return find_longest_path(self.graph, durations)

    def critical_tasks(self) -> List:
        """Critical tasks according to the configured method."""
        if self.config.critical_path_method == "longest":
            return self.longest_path()
        return self.critical_path()

    def topological_order(self, task_ids: Optional[Iterable] = None) -> List:
        """
        Order tasks so that every dependency comes before its dependents.

        Args:
            task_ids: Optional subset to order (default: all connected tasks)

        Raises:
            CycleError: If the (sub)graph contains a cycle
        """
        graph = self.graph if task_ids is None else self.graph.subgraph(task_ids)
        try:
            return list(nx.topological_sort(graph))
        except nx.NetworkXUnfeasible:
            cycle = [u for u, _ in nx.find_cycle(graph)]
            raise CycleError(cycle + cycle[:1])

    def add_dependency(self, task_id, depends_on_id) -> "DependencyGraph":
        """
        Make one task depend on another.

        The cycle check runs before anything is changed; a rejected edit
        leaves the graph and both tasks untouched.

        Args:
            task_id: The task that gains a dependency
            depends_on_id: The task it will depend on

        Returns:
            self: For method chaining

        Raises:
            NotFoundError: If either task is unknown
            ValidationError: If either task is not a connected task
            CycleError: If the edge would create a cycle
        """
        task = self._require(task_id)
        dependency = self._require(depends_on_id)
        if not task.is_connected() or not dependency.is_connected():
            raise ValidationError("Only connected tasks can have dependencies")

        if task_id == depends_on_id:
            raise CycleError([task_id, task_id])
        if nx.has_path(self.graph, task_id, depends_on_id):
            path = nx.shortest_path(self.graph, task_id, depends_on_id)
            raise CycleError(path + [task_id])

        if depends_on_id not in task.dependencies:
            task.dependencies.append(depends_on_id)
        if task_id not in dependency.dependents:
            dependency.dependents.append(task_id)
        self.graph.add_edge(depends_on_id, task_id)

        logger.debug(f"Task {task_id} now depends on {depends_on_id}")
        return self

    def remove_dependency(self, task_id, depends_on_id) -> "DependencyGraph":
        task = self._require(task_id)
        dependency = self._require(depends_on_id)
        if depends_on_id in task.dependencies:
            task.dependencies.remove(depends_on_id)
        if task_id in dependency.dependents:
            dependency.dependents.remove(task_id)
        if self.graph.has_edge(depends_on_id, task_id):
            self.graph.remove_edge(depends_on_id, task_id)
        return self

    def sync_edges(self) -> List:
        """
        Repair one-sided edges so that dependencies and dependents agree.

        Returns:
            list: IDs of tasks whose edge lists were changed
        """
        changed = []
        for dep_id, task_id in self.graph.edges():
            task = self.tasks[task_id]
            dependency = self.tasks[dep_id]
            if dep_id not in task.dependencies:
                task.dependencies.append(dep_id)
                changed.append(task_id)
            if task_id not in dependency.dependents:
                dependency.dependents.append(task_id)
                changed.append(dep_id)
        return list(dict.fromkeys(changed))

    def visualization(self, delays: Optional[Dict] = None) -> VisualizationData:
        """
        Project the current graph state for presentation.

        Args:
            delays: Optional dict of task ID to the day shift applied to it,
                used to annotate the edges leading into that task

        Returns:
            VisualizationData: Nodes, edges and the critical path
        """
        delays = delays or {}
        critical = self.critical_path()
        critical_set = set(critical)

        nodes = []
        for task_id, task in self.tasks.items():
            nodes.append(
                {
                    "id": task_id,
                    "title": task.title,
                    "status": task.status,
                    "taskType": task.task_type,
                    "schedulePolicy": task.schedule_policy if task.is_connected() else None,
                    "startDate": task.start_date,
                    "endDate": task.end_date,
                    "isOnCriticalPath": task_id in critical_set,
                    "impactLevel": self.impact_level(task_id),
                }
            )

        edges = [
            {
                "from": dep_id,
                "to": task_id,
                "type": "DEPENDENCY",
                "delay": delays.get(task_id, 0),
            }
            for dep_id, task_id in self.graph.edges()
        ]

        return VisualizationData(nodes, edges, critical)
