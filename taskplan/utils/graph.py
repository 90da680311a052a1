import networkx as nx


def build_dependency_graph(tasks, connected_only=True):
    """
    Build a directed graph of task dependencies.

    An edge runs from a dependency to the task that depends on it. Edges
    are read from both the dependencies and the dependents lists; edges to
    tasks outside the graph are ignored. Cycles are kept so that they can
    be reported by find_cycles().
    """
    G = nx.DiGraph()

    for task_id, task in tasks.items():
        if connected_only and not task.is_connected():
            continue
        G.add_node(task_id, task=task)

    for task_id in list(G.nodes()):
        task = tasks[task_id]
        for dep_id in task.dependencies:
            if dep_id in G:
                G.add_edge(dep_id, task_id)
        for dependent_id in task.dependents:
            if dependent_id in G:
                G.add_edge(task_id, dependent_id)

    return G


def _path_back_to(graph, start):
    """Depth-first search along dependencies; return a path that returns to start."""
    stack = [(start, iter(graph.predecessors(start)))]
    path = [start]
    visited = {start}

    while stack:
        node, predecessors = stack[-1]
        advanced = False
        for pred in predecessors:
            if pred == start:
                return path + [start]
            if pred not in visited:
                visited.add(pred)
                path.append(pred)
                stack.append((pred, iter(graph.predecessors(pred))))
                advanced = True
                break
        if not advanced:
            stack.pop()
            path.pop()

    return None


def find_cycles(graph):
    """
    Find every task that can reach itself through its dependencies.

    Returns:
        list: (task_id, path) pairs where path starts and ends at task_id
    """
    cycles = []
    for task_id in graph.nodes():
        path = _path_back_to(graph, task_id)
        if path:
            cycles.append((task_id, path))
    return cycles


def forward_pass(graph, durations):
    """
    Calculate the finish of the longest chain ending at each task.

    Args:
        graph: Acyclic dependency graph
        durations: Dict of task ID to duration

    Returns:
        dict: (early_finish, predecessor_on_longest_chain) per task ID
    """
    finishes = {}
    for task_id in nx.topological_sort(graph):
        best_finish = 0
        best_pred = None
        for pred in graph.predecessors(task_id):
            if finishes[pred][0] > best_finish:
                best_finish = finishes[pred][0]
                best_pred = pred
        finishes[task_id] = (best_finish + durations.get(task_id, 0), best_pred)
    return finishes


def find_longest_path(graph, durations):
    """Find the longest-duration path through an acyclic graph, in order."""
    if graph.number_of_nodes() == 0:
        return []

    finishes = forward_pass(graph, durations)
    end_task = max(finishes, key=lambda task_id: finishes[task_id][0])

    path = []
    node = end_task
    while node is not None:
        path.append(node)
        node = finishes[node][1]
    return list(reversed(path))
