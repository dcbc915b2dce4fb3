"""In-memory dependency graph utilities.

The graph is an adjacency mapping ``task_id -> [depends_on_id, ...]`` built
once from a project's edge set, so traversals never go back to the database
per node. Everything here is a pure function of its arguments.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .conf import get_setting

Graph = Dict[int, List[int]]
# (edge_id, task_id, depends_on_id)
EdgeRow = Tuple[int, int, int]


def build_graph(edges: Iterable[Tuple[int, int]]) -> Graph:
    """Build the adjacency mapping from ``(task_id, depends_on_id)`` pairs, deduped."""
    graph: Graph = {}
    for task_id, depends_on_id in edges:
        deps = graph.setdefault(task_id, [])
        if depends_on_id not in deps:
            deps.append(depends_on_id)
    return graph


def find_dependency_path(graph: Graph, start: int, target: int) -> List[int]:
    """Return a depends-on path ``[start, ..., target]``, or ``[]`` if unreachable.

    Iterative depth-first search; visited nodes are tracked so already
    malformed (cyclic) data cannot loop forever.
    """
    if start == target:
        return [start]

    visited: Set[int] = {start}
    path: List[int] = [start]
    stack = [iter(graph.get(start, []))]

    while stack:
        for neighbour in stack[-1]:
            if neighbour == target:
                return path + [neighbour]
            if neighbour not in visited:
                visited.add(neighbour)
                path.append(neighbour)
                stack.append(iter(graph.get(neighbour, [])))
                break
        else:
            stack.pop()
            path.pop()
    return []


def would_create_cycle(graph: Graph, task_id: int, depends_on_id: int) -> bool:
    """True if adding ``task_id -> depends_on_id`` would close a cycle."""
    if task_id == depends_on_id:
        return True
    return bool(find_dependency_path(graph, depends_on_id, task_id))


def dependency_depth(graph: Graph, task_id: int) -> Tuple[int, List[int]]:
    """Length of the longest depends-on chain below ``task_id`` and that chain.

    A task without dependencies has depth 0.
    """
    memo: Dict[int, Tuple[int, List[int]]] = {}
    on_path: Set[int] = set()

    def longest(node: int) -> Tuple[int, List[int]]:
        if node in memo:
            return memo[node]
        if node in on_path:
            # back-edge in malformed data, stop here
            return 0, []
        on_path.add(node)
        best: Tuple[int, List[int]] = (0, [node])
        for dep in graph.get(node, []):
            depth, chain = longest(dep)
            if chain and depth + 1 > best[0]:
                best = (depth + 1, [node] + chain)
        on_path.discard(node)
        memo[node] = best
        return best

    return longest(task_id)


def find_cycles(graph: Graph) -> List[List[int]]:
    """Detect cycles in the graph.

    Returns a list of cycles, each as a node path that ends where it started
    (e.g. ``[1, 2, 3, 1]``), rotated to start at the smallest id so the same
    cycle is only reported once.
    """
    visited: Set[int] = set()
    stack: List[int] = []
    cycles: List[List[int]] = []
    seen: Set[Tuple[int, ...]] = set()

    def dfs(node: int) -> None:
        if node in stack:
            cycle = stack[stack.index(node):]
            pivot = cycle.index(min(cycle))
            ordered = cycle[pivot:] + cycle[:pivot]
            key = tuple(ordered)
            if key not in seen:
                seen.add(key)
                cycles.append(ordered + [ordered[0]])
            return
        if node in visited:
            return
        visited.add(node)
        stack.append(node)
        for neighbour in graph.get(node, []):
            dfs(neighbour)
        stack.pop()

    for node in list(graph.keys()):
        if node not in visited:
            dfs(node)
    return cycles


def integrity_report(task_ids: Sequence[int], edges: Sequence[EdgeRow],
                     long_chain_depth: Optional[int] = None) -> Dict:
    """Audit a project's dependency structure.

    Orphan edges and cycles are issues (they make the report invalid);
    isolated tasks, parallelizable tasks and long chains are suggestions.
    """
    if long_chain_depth is None:
        long_chain_depth = get_setting('LONG_CHAIN_DEPTH')

    known = set(task_ids)
    issues: List[Dict] = []
    suggestions: List[Dict] = []

    for edge_id, task_id, depends_on_id in edges:
        for endpoint in (task_id, depends_on_id):
            if endpoint not in known:
                issues.append({
                    'type': 'orphan_dependency',
                    'message': f"Dependency references a task outside the project: {endpoint}",
                    'dependency_id': edge_id,
                })

    graph = build_graph((task_id, depends_on_id) for _, task_id, depends_on_id in edges)

    cycles = find_cycles(graph)
    if cycles:
        issues.append({
            'type': 'circular_dependencies',
            'message': f"Found {len(cycles)} circular dependency chain(s)",
            'cycles': cycles,
        })

    linked: Set[int] = set()
    for _, task_id, depends_on_id in edges:
        linked.add(task_id)
        linked.add(depends_on_id)

    isolated = [tid for tid in task_ids if tid not in linked]
    if isolated:
        suggestions.append({
            'type': 'isolated_tasks',
            'message': f"{len(isolated)} task(s) have no dependencies in either direction",
            'tasks': isolated,
        })

    parallelizable = [tid for tid in task_ids if not graph.get(tid)]
    if parallelizable:
        suggestions.append({
            'type': 'parallelize',
            'message': 'These tasks have no prerequisites and can run in parallel',
            'tasks': parallelizable,
        })

    long_chains = []
    if not cycles:
        for tid in graph:
            depth, chain = dependency_depth(graph, tid)
            if depth > long_chain_depth:
                long_chains.append({'start_task': tid, 'depth': depth, 'path': chain})
    if long_chains:
        suggestions.append({
            'type': 'simplify_chains',
            'message': 'Long dependency chains could be simplified',
            'chains': long_chains,
        })

    return {
        'is_valid': not issues,
        'total_tasks': len(task_ids),
        'total_dependencies': len(edges),
        'issues': issues,
        'suggestions': suggestions,
    }
