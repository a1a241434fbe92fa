from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from taskgraph_engine.core.availability.availability import blocked_tasks
from taskgraph_engine.core.cpm.critical_path import SLACK_TOLERANCE, compute_critical_path
from taskgraph_engine.core.graph.build_graph import DependencyGraph


@dataclass(frozen=True)
class DependencyStats:
    total_tasks: int
    tasks_with_dependencies: int
    total_dependencies: int
    blocked_tasks_count: int
    dependency_ratio: float


@dataclass(frozen=True)
class GraphNode:
    id: str
    title: str
    status: str
    duration: float
    is_critical: bool
    slack: float


@dataclass(frozen=True)
class GraphEdge:
    id: Optional[str]
    source: str
    target: str
    type: str
    is_critical: bool


@dataclass(frozen=True)
class GraphView:
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    critical_path: list[str]
    total_duration: float


def dependency_stats(graph: DependencyGraph) -> DependencyStats:
    total = len(graph)
    connected = sum(1 for tid in graph.task_ids if graph.predecessors(tid) or graph.successors(tid))
    return DependencyStats(
        total_tasks=total,
        tasks_with_dependencies=connected,
        total_dependencies=len(graph.edges),
        blocked_tasks_count=len(blocked_tasks(graph)),
        dependency_ratio=(connected / total) if total > 0 else 0.0,
    )


def dependency_graph_view(graph: DependencyGraph) -> GraphView:
    """Nodes and edges annotated with CPM results, for rendering.

    An edge is critical when both ends are critical and the successor starts
    exactly when the predecessor finishes.
    """
    report = compute_critical_path(graph)
    by_id = {s.task_id: s for s in report.tasks}

    nodes = [
        GraphNode(
            id=tid,
            title=graph.tasks_by_id[tid].title,
            status=graph.tasks_by_id[tid].status,
            duration=by_id[tid].duration,
            is_critical=by_id[tid].is_critical,
            slack=by_id[tid].slack,
        )
        for tid in graph.task_ids
    ]

    edges: list[GraphEdge] = []
    for e in graph.edges:
        p, s = by_id[e.predecessor_id], by_id[e.successor_id]
        tight = abs(s.earliest_start - p.earliest_finish) <= SLACK_TOLERANCE
        edges.append(
            GraphEdge(
                id=e.id,
                source=e.predecessor_id,
                target=e.successor_id,
                type=e.dependency_type,
                is_critical=p.is_critical and s.is_critical and tight,
            )
        )

    return GraphView(
        nodes=nodes,
        edges=edges,
        critical_path=report.critical_path,
        total_duration=report.total_duration,
    )


def graph_view_to_dict(view: GraphView) -> dict[str, Any]:
    return {
        "nodes": [
            {
                "id": n.id,
                "title": n.title,
                "status": n.status,
                "duration": n.duration,
                "isCritical": n.is_critical,
                "slack": n.slack,
            }
            for n in view.nodes
        ],
        "edges": [
            {
                "id": e.id,
                "source": e.source,
                "target": e.target,
                "type": e.type,
                "isCritical": e.is_critical,
            }
            for e in view.edges
        ],
        "criticalPath": list(view.critical_path),
        "totalDuration": view.total_duration,
    }
