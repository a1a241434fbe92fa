from __future__ import annotations

from typing import Mapping, Optional

from taskgraph_engine.core.graph.build_graph import DependencyGraph
from taskgraph_engine.core.model import (
    CLOSED_STATUSES,
    STATUS_COMPLETED,
    BlockedTask,
    Task,
    normalize_status,
)


def _status_lookup(graph: DependencyGraph, statuses: Optional[Mapping[str, str]]) -> dict[str, str]:
    out = {tid: t.status for tid, t in graph.tasks_by_id.items()}
    if statuses:
        for tid, s in statuses.items():
            if tid in out:
                out[tid] = normalize_status(s)
    return out


def _is_assigned(task: Task, user_id: str) -> bool:
    return task.assignee_id == user_id or user_id in task.assignments


def available_tasks(
    graph: DependencyGraph,
    statuses: Optional[Mapping[str, str]] = None,
    assignee_id: Optional[str] = None,
) -> list[Task]:
    """Open tasks whose predecessors are all completed, in load order.

    `statuses` overrides the statuses carried by the task records.
    """
    status = _status_lookup(graph, statuses)
    out: list[Task] = []
    for tid in graph.task_ids:
        task = graph.tasks_by_id[tid]
        if status[tid] in CLOSED_STATUSES:
            continue
        if assignee_id is not None and not _is_assigned(task, assignee_id):
            continue
        if all(status[p] == STATUS_COMPLETED for p in graph.predecessors(tid)):
            out.append(task)
    return out


def blocked_tasks(
    graph: DependencyGraph,
    statuses: Optional[Mapping[str, str]] = None,
) -> list[BlockedTask]:
    """Open tasks with at least one predecessor that is not completed."""
    status = _status_lookup(graph, statuses)
    out: list[BlockedTask] = []
    for tid in graph.task_ids:
        if status[tid] in CLOSED_STATUSES:
            continue
        blocking = [graph.tasks_by_id[p] for p in graph.predecessors(tid) if status[p] != STATUS_COMPLETED]
        if blocking:
            out.append(BlockedTask(task=graph.tasks_by_id[tid], blocking_predecessors=blocking))
    return out
