from __future__ import annotations

import logging
from collections import deque

from taskgraph_engine.core.errors import InvariantViolationError
from taskgraph_engine.core.graph.build_graph import DependencyGraph
from taskgraph_engine.core.model import CriticalPathReport, TaskSchedule


logger = logging.getLogger(__name__)

# Float noise below this many hours counts as zero slack.
SLACK_TOLERANCE = 1e-9


def topological_order(graph: DependencyGraph) -> list[str]:
    """Kahn's algorithm. Ties keep task load order.

    A task that is never dequeued sits on a cycle, which edge validation
    should have made impossible; that is reported as an internal fault.
    """
    in_degree: dict[str, int] = {tid: len(graph.predecessors(tid)) for tid in graph.task_ids}
    q: deque[str] = deque(tid for tid in graph.task_ids if in_degree[tid] == 0)
    order: list[str] = []

    while q:
        cur = q.popleft()
        order.append(cur)
        for nxt in graph.successors(cur):
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                q.append(nxt)

    if len(order) != len(graph.task_ids):
        stuck = sorted(tid for tid, deg in in_degree.items() if deg > 0)
        logger.critical(
            "cycle in project %s: %d task(s) never became ready: %s",
            graph.project_id,
            len(stuck),
            ", ".join(stuck),
        )
        raise InvariantViolationError(
            code="E_INVARIANT_CYCLE",
            message=f"dependency graph is not acyclic; unprocessed tasks: {', '.join(stuck)}",
            path=graph.project_id,
        )
    return order


def compute_critical_path(graph: DependencyGraph) -> CriticalPathReport:
    """Two-pass CPM over the whole project.

    Forward pass in topological order gives earliest start/finish, backward
    pass in reverse order gives latest start/finish, slack = LS - ES. All
    dependencies are treated as finish-to-start. Nothing is rounded.
    """
    if len(graph) == 0:
        return CriticalPathReport(tasks=[], critical_path=[], total_duration=0.0)

    order = topological_order(graph)
    duration = {tid: graph.tasks_by_id[tid].duration_hours for tid in order}

    es: dict[str, float] = {}
    ef: dict[str, float] = {}
    for tid in order:
        start = 0.0
        for p in graph.predecessors(tid):
            if ef[p] > start:
                start = ef[p]
        es[tid] = start
        ef[tid] = start + duration[tid]

    completion = max(ef.values())

    ls: dict[str, float] = {}
    lf: dict[str, float] = {}
    for tid in reversed(order):
        succs = graph.successors(tid)
        if not succs:
            finish = completion
        else:
            finish = min(ls[s] for s in succs)
        lf[tid] = finish
        ls[tid] = finish - duration[tid]

    position = {tid: i for i, tid in enumerate(order)}
    schedules: list[TaskSchedule] = []
    for tid in graph.task_ids:
        slack = ls[tid] - es[tid]
        if slack < -SLACK_TOLERANCE:
            logger.critical("negative slack %.6f for task %s in project %s", slack, tid, graph.project_id)
            raise InvariantViolationError(
                code="E_INVARIANT_NEGATIVE_SLACK",
                message=f"negative slack {slack} computed for task {tid}",
                path=tid,
            )
        schedules.append(
            TaskSchedule(
                task_id=tid,
                title=graph.tasks_by_id[tid].title,
                duration=duration[tid],
                earliest_start=es[tid],
                earliest_finish=ef[tid],
                latest_start=ls[tid],
                latest_finish=lf[tid],
                slack=slack,
                is_critical=abs(slack) <= SLACK_TOLERANCE,
            )
        )

    critical = sorted(
        (s.task_id for s in schedules if s.is_critical),
        key=lambda tid: (es[tid], position[tid]),
    )

    logger.debug(
        "critical path for project %s: %d of %d tasks, total %.2fh",
        graph.project_id,
        len(critical),
        len(schedules),
        completion,
    )
    return CriticalPathReport(tasks=schedules, critical_path=critical, total_duration=completion)
