from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from taskgraph_engine.core.errors import DanglingEdgeError, TaskNotFoundError, ValidationError
from taskgraph_engine.core.model import Edge, Task, normalize_status, parse_duration


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyGraph:
    project_id: Optional[str]
    tasks_by_id: dict[str, Task]
    task_ids: tuple[str, ...]  # load order
    edges: tuple[Edge, ...]
    _successors: dict[str, tuple[str, ...]]
    _predecessors: dict[str, tuple[str, ...]]
    _edges_by_pair: dict[tuple[str, str], Edge]

    def __len__(self) -> int:
        return len(self.task_ids)

    def has_task(self, task_id: str) -> bool:
        return task_id in self.tasks_by_id

    def task(self, task_id: str) -> Task:
        try:
            return self.tasks_by_id[task_id]
        except KeyError:
            raise TaskNotFoundError(
                code="E_TASK_NOT_FOUND",
                message=f"task not found in project {self.project_id}: {task_id}",
                path=task_id,
            ) from None

    def successors(self, task_id: str) -> tuple[str, ...]:
        return self._successors.get(task_id, ())

    def predecessors(self, task_id: str) -> tuple[str, ...]:
        return self._predecessors.get(task_id, ())

    def edge_between(self, predecessor_id: str, successor_id: str) -> Optional[Edge]:
        return self._edges_by_pair.get((predecessor_id, successor_id))

    def edge(self, predecessor_id: str, successor_id: str) -> Edge:
        """The edge behind an adjacency entry. KeyError for a pair that is not linked."""
        return self._edges_by_pair[(predecessor_id, successor_id)]


def build_graph(
    tasks: Iterable[Task], edges: Iterable[Edge], project_id: Optional[str] = None
) -> DependencyGraph:
    """Index tasks and edges into forward and reverse adjacency maps.

    Raises DanglingEdgeError when an edge points outside `tasks`, and
    ValidationError for records that violate the per-edge invariants
    (self-loop, duplicate pair) or carry an unusable duration. Acyclicity is
    not checked here; it is enforced before every insert.

    Task records are normalised on the way in, whatever store they came
    from: statuses are lower snake case and a missing duration is 0.0.
    """

    tasks_by_id: dict[str, Task] = {}
    order: list[str] = []
    for t in tasks:
        if t.id in tasks_by_id:
            raise ValidationError(
                code="E_DUPLICATE_ID",
                message=f"duplicate task id: {t.id}",
                path=t.id,
            )
        t = _normalized(t)
        tasks_by_id[t.id] = t
        order.append(t.id)

    succ: dict[str, list[str]] = {tid: [] for tid in order}
    pred: dict[str, list[str]] = {tid: [] for tid in order}
    by_pair: dict[tuple[str, str], Edge] = {}
    kept: list[Edge] = []

    for e in edges:
        for end in (e.predecessor_id, e.successor_id):
            if end not in tasks_by_id:
                logger.error(
                    "dangling edge %s -> %s in project %s: unknown task %s",
                    e.predecessor_id,
                    e.successor_id,
                    project_id,
                    end,
                )
                raise DanglingEdgeError(
                    code="E_DANGLING_EDGE",
                    message=f"edge {e.predecessor_id} -> {e.successor_id} references unknown task: {end}",
                    path=e.id or f"{e.predecessor_id}->{e.successor_id}",
                )
        if e.predecessor_id == e.successor_id:
            raise ValidationError(
                code="E_SELF_LOOP",
                message=f"task cannot depend on itself: {e.predecessor_id}",
                path=e.id or e.predecessor_id,
            )
        pair = (e.predecessor_id, e.successor_id)
        if pair in by_pair:
            raise ValidationError(
                code="E_DUPLICATE_EDGE",
                message=f"duplicate dependency: {pair[0]} -> {pair[1]}",
                path=e.id or f"{pair[0]}->{pair[1]}",
            )
        by_pair[pair] = e
        kept.append(e)
        succ[e.predecessor_id].append(e.successor_id)
        pred[e.successor_id].append(e.predecessor_id)

    logger.debug("built graph for project %s: %d tasks, %d edges", project_id, len(order), len(kept))

    return DependencyGraph(
        project_id=project_id,
        tasks_by_id=tasks_by_id,
        task_ids=tuple(order),
        edges=tuple(kept),
        _successors={k: tuple(v) for k, v in succ.items()},
        _predecessors={k: tuple(v) for k, v in pred.items()},
        _edges_by_pair=by_pair,
    )


def _normalized(t: Task) -> Task:
    try:
        duration = parse_duration(t.duration_hours)
    except ValueError as e:
        raise ValidationError(
            code="E_INVALID_DURATION",
            message=f"{e}, got {t.duration_hours!r}",
            path=f"{t.id}.duration_hours",
        ) from None
    if not isinstance(t.status, str) or not t.status.strip():
        raise ValidationError(
            code="E_INVALID_STATUS",
            message=f"status must be a non-empty string, got {t.status!r}",
            path=f"{t.id}.status",
        )
    status = normalize_status(t.status)
    if duration == t.duration_hours and status == t.status:
        return t
    return replace(t, duration_hours=duration, status=status)
