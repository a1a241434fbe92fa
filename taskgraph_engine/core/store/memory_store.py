from __future__ import annotations

import itertools
import threading
from typing import Iterable

from taskgraph_engine.core.errors import DuplicateEdgeError, EdgeNotFoundError
from taskgraph_engine.core.model import Edge, Task


class InMemoryStore:
    """Task/edge store kept in process memory.

    Each call is atomic on its own; callers that need validate-then-insert to
    be atomic hold their own lock around the sequence.
    """

    def __init__(self, tasks: Iterable[Task] = (), edges: Iterable[Edge] = ()) -> None:
        self._lock = threading.Lock()
        self._tasks: dict[str, Task] = {}
        self._edges: list[Edge] = []
        self._ids = itertools.count(1)
        for t in tasks:
            self._tasks[t.id] = t
        edges = list(edges)
        self._reserved: set[str] = {e.id for e in edges if e.id is not None}
        for e in edges:
            self._edges.append(e if e.id is not None else self._with_id(e))

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    @property
    def edges(self) -> list[Edge]:
        with self._lock:
            return list(self._edges)

    def put_task(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def load_tasks(self, project_id: str) -> list[Task]:
        with self._lock:
            return [t for t in self._tasks.values() if t.project_id == project_id]

    def load_edges(self, project_id: str) -> list[Edge]:
        with self._lock:
            in_project = {tid for tid, t in self._tasks.items() if t.project_id == project_id}
            return [e for e in self._edges if e.predecessor_id in in_project or e.successor_id in in_project]

    def insert_edge(self, predecessor_id: str, successor_id: str, dependency_type: str) -> Edge:
        with self._lock:
            for e in self._edges:
                if e.predecessor_id == predecessor_id and e.successor_id == successor_id:
                    raise DuplicateEdgeError(
                        code="E_DUPLICATE_EDGE",
                        message=f"dependency already exists: {predecessor_id} -> {successor_id}",
                        path=e.id,
                    )
            edge = self._with_id(Edge(predecessor_id, successor_id, dependency_type))
            self._edges.append(edge)
            return edge

    def delete_edge(self, edge_id: str) -> Edge:
        with self._lock:
            for i, e in enumerate(self._edges):
                if e.id == edge_id:
                    return self._edges.pop(i)
        raise EdgeNotFoundError(code="E_EDGE_NOT_FOUND", message=f"dependency not found: {edge_id}", path=edge_id)

    def _with_id(self, edge: Edge) -> Edge:
        taken = {e.id for e in self._edges} | self._reserved
        while True:
            candidate = f"DEP-{next(self._ids)}"
            if candidate not in taken:
                return Edge(edge.predecessor_id, edge.successor_id, edge.dependency_type, id=candidate)
