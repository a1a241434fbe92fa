from __future__ import annotations

from collections import deque

from taskgraph_engine.core.graph.build_graph import DependencyGraph
from taskgraph_engine.core.model import EdgeValidation


CYCLE_REASON = "Adding this dependency would create a circular dependency"


def is_reachable(graph: DependencyGraph, start_id: str, target_id: str) -> bool:
    """True when target_id can be reached from start_id along successor edges.

    Breadth-first with a visited set: each task and edge is looked at once.
    """
    if start_id == target_id:
        return True

    q: deque[str] = deque([start_id])
    seen: set[str] = {start_id}
    while q:
        cur = q.popleft()
        for nxt in graph.successors(cur):
            if nxt == target_id:
                return True
            if nxt not in seen:
                seen.add(nxt)
                q.append(nxt)
    return False


def validate_edge(graph: DependencyGraph, predecessor_id: str, successor_id: str) -> bool:
    """Whether predecessor -> successor keeps the graph acyclic.

    The edge closes a loop exactly when the predecessor is already reachable
    from the successor. Self-loops are never valid.
    """
    if predecessor_id == successor_id:
        return False
    return not is_reachable(graph, successor_id, predecessor_id)


def check_edge(graph: DependencyGraph, predecessor_id: str, successor_id: str) -> EdgeValidation:
    """Full validation result for a proposed dependency.

    Raises TaskNotFoundError when either end is not part of the graph.
    """
    graph.task(predecessor_id)
    graph.task(successor_id)

    if predecessor_id == successor_id:
        return EdgeValidation(
            is_valid=False,
            reason=f"task cannot depend on itself: {predecessor_id}",
            code="E_SELF_LOOP",
        )

    if graph.edge_between(predecessor_id, successor_id) is not None:
        return EdgeValidation(
            is_valid=False,
            reason=f"dependency already exists: {predecessor_id} -> {successor_id}",
            code="E_DUPLICATE_EDGE",
        )

    if not validate_edge(graph, predecessor_id, successor_id):
        return EdgeValidation(is_valid=False, reason=CYCLE_REASON, code="E_CYCLE")

    return EdgeValidation(is_valid=True, reason="Dependency is valid")
