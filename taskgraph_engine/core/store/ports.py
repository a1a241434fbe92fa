from __future__ import annotations

from typing import Protocol

from taskgraph_engine.core.model import Edge, Task


class TaskReader(Protocol):
    """Read side of the persistence collaborator."""

    def load_tasks(self, project_id: str) -> list[Task]: ...

    def load_edges(self, project_id: str) -> list[Edge]: ...


class EdgeWriter(Protocol):
    """Write side of the persistence collaborator.

    insert_edge raises DuplicateEdgeError for an existing pair and
    delete_edge raises EdgeNotFoundError for an unknown id.
    """

    def insert_edge(self, predecessor_id: str, successor_id: str, dependency_type: str) -> Edge: ...

    def delete_edge(self, edge_id: str) -> Edge: ...


class ProjectStore(TaskReader, EdgeWriter, Protocol):
    pass
