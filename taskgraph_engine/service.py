from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, TypeVar

from taskgraph_engine.core.availability.availability import available_tasks, blocked_tasks
from taskgraph_engine.core.chain.walk_chain import walk_chain
from taskgraph_engine.core.config import EngineConfig
from taskgraph_engine.core.cpm.critical_path import compute_critical_path
from taskgraph_engine.core.errors import (
    CycleRejectedError,
    DanglingEdgeError,
    DependencyChainTooDeepError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    EngineError,
    InvariantViolationError,
    TaskNotFoundError,
    ValidationError,
)
from taskgraph_engine.core.graph.build_graph import DependencyGraph, build_graph
from taskgraph_engine.core.model import (
    FINISH_TO_START,
    BlockedTask,
    CriticalPathReport,
    DependencyChain,
    Edge,
    EdgeValidation,
    Suggestion,
    Task,
    normalize_dependency_type,
)
from taskgraph_engine.core.report.report import (
    DependencyStats,
    GraphView,
    dependency_graph_view,
    dependency_stats,
)
from taskgraph_engine.core.store.ports import ProjectStore
from taskgraph_engine.core.suggest.suggest_dependencies import suggest_dependencies
from taskgraph_engine.core.validate.validate_edge import check_edge


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProjectLocks:
    """One lock per project id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, project_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = self._locks[project_id] = threading.Lock()
            return lock


# Shared by every service in the process unless one is passed in explicitly.
DEFAULT_LOCKS = ProjectLocks()


def _log_level_for(e: EngineError) -> int:
    if isinstance(e, InvariantViolationError):
        return logging.CRITICAL
    if isinstance(e, (TaskNotFoundError, DanglingEdgeError, DependencyChainTooDeepError)):
        return logging.ERROR
    if isinstance(e, EdgeNotFoundError):
        return logging.WARNING
    return logging.INFO


class DependencyService:
    """Entry points used by the request layer.

    Every call loads a fresh graph for the project from the injected store.
    add_dependency and remove_dependency run load -> validate -> write while
    holding the project's lock, so two concurrent inserts cannot each pass
    validation against a graph that lacks the other's edge.
    """

    def __init__(
        self,
        store: ProjectStore,
        config: Optional[EngineConfig] = None,
        locks: Optional[ProjectLocks] = None,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.locks = locks or DEFAULT_LOCKS

    def load_graph(self, project_id: str) -> DependencyGraph:
        tasks = self.store.load_tasks(project_id)
        edges = self.store.load_edges(project_id)
        return build_graph(tasks, edges, project_id=project_id)

    def critical_path(self, project_id: str) -> CriticalPathReport:
        return self._run("critical_path", project_id, lambda: compute_critical_path(self.load_graph(project_id)))

    def dependency_chain(self, project_id: str, task_id: str, allow_partial: bool = False) -> DependencyChain:
        def op() -> DependencyChain:
            graph = self.load_graph(project_id)
            try:
                return walk_chain(graph, task_id, max_depth=self.config.max_chain_depth)
            except DependencyChainTooDeepError as e:
                if not allow_partial:
                    raise
                logger.error("dependency_chain degraded to partial result for project %s: %s", project_id, e)
                return walk_chain(graph, task_id, max_depth=self.config.max_chain_depth, strict=False)

        return self._run("dependency_chain", project_id, op)

    def available_tasks(self, project_id: str, assignee_id: Optional[str] = None) -> list[Task]:
        return self._run(
            "available_tasks",
            project_id,
            lambda: available_tasks(self.load_graph(project_id), assignee_id=assignee_id),
        )

    def blocked_tasks(self, project_id: str) -> list[BlockedTask]:
        return self._run("blocked_tasks", project_id, lambda: blocked_tasks(self.load_graph(project_id)))

    def validate_dependency(self, project_id: str, predecessor_id: str, successor_id: str) -> EdgeValidation:
        """Advisory check; add_dependency validates again under the lock."""
        return self._run(
            "validate_dependency",
            project_id,
            lambda: check_edge(self.load_graph(project_id), predecessor_id, successor_id),
        )

    def add_dependency(
        self,
        project_id: str,
        predecessor_id: str,
        successor_id: str,
        dependency_type: str = FINISH_TO_START,
    ) -> Edge:
        def op() -> Edge:
            if not isinstance(dependency_type, str) or not dependency_type.strip():
                raise ValidationError(
                    code="E_INVALID_DEPENDENCY_TYPE",
                    message="dependency type must be a non-empty string",
                    path="type",
                )
            if predecessor_id == successor_id:
                raise ValidationError(
                    code="E_SELF_LOOP",
                    message=f"task cannot depend on itself: {predecessor_id}",
                    path=predecessor_id,
                )
            dep_type = normalize_dependency_type(dependency_type)

            with self.locks.get(project_id):
                graph = self.load_graph(project_id)
                result = check_edge(graph, predecessor_id, successor_id)
                if not result.is_valid:
                    error_cls = {
                        "E_CYCLE": CycleRejectedError,
                        "E_DUPLICATE_EDGE": DuplicateEdgeError,
                    }.get(result.code or "", ValidationError)
                    raise error_cls(
                        code=result.code or "E_INVALID_DEPENDENCY",
                        message=result.reason or "invalid dependency",
                        path=f"{predecessor_id}->{successor_id}",
                    )
                edge = self.store.insert_edge(predecessor_id, successor_id, dep_type)

            logger.info(
                "dependency created in project %s: %s -> %s (%s, id=%s)",
                project_id,
                predecessor_id,
                successor_id,
                dep_type,
                edge.id,
            )
            return edge

        return self._run("add_dependency", project_id, op)

    def remove_dependency(self, project_id: str, edge_id: str) -> Edge:
        def op() -> Edge:
            with self.locks.get(project_id):
                graph = self.load_graph(project_id)
                if not any(e.id == edge_id for e in graph.edges):
                    raise EdgeNotFoundError(
                        code="E_EDGE_NOT_FOUND",
                        message=f"dependency not found in project {project_id}: {edge_id}",
                        path=edge_id,
                    )
                removed = self.store.delete_edge(edge_id)
            logger.info("dependency removed from project %s: %s", project_id, edge_id)
            return removed

        return self._run("remove_dependency", project_id, op)

    def suggest_dependencies(self, project_id: str, task_id: str, limit: Optional[int] = None) -> list[Suggestion]:
        return self._run(
            "suggest_dependencies",
            project_id,
            lambda: suggest_dependencies(self.load_graph(project_id), task_id, limit=limit, config=self.config),
        )

    def dependency_stats(self, project_id: str) -> DependencyStats:
        return self._run("dependency_stats", project_id, lambda: dependency_stats(self.load_graph(project_id)))

    def dependency_graph(self, project_id: str) -> GraphView:
        return self._run("dependency_graph", project_id, lambda: dependency_graph_view(self.load_graph(project_id)))

    def _run(self, op_name: str, project_id: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except EngineError as e:
            logger.log(_log_level_for(e), "%s failed for project %s: %s", op_name, project_id, e)
            raise
