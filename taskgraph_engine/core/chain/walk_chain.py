from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from taskgraph_engine.core.errors import DependencyChainTooDeepError
from taskgraph_engine.core.graph.build_graph import DependencyGraph
from taskgraph_engine.core.model import ChainEntry, DependencyChain, Edge


logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def walk_chain(
    graph: DependencyGraph,
    task_id: str,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    strict: bool = True,
) -> DependencyChain:
    """All transitive predecessors and successors of a task.

    Direct neighbours are at depth 0. Each related task is reported once per
    direction, at its shortest distance. Needing to go past max_depth raises
    DependencyChainTooDeepError when strict, otherwise the walk stops there
    and the chain comes back with truncated=True.
    """
    graph.task(task_id)

    predecessors, pred_cut = _walk(
        graph,
        task_id,
        neighbours=graph.predecessors,
        edge_for=lambda cur, nxt: graph.edge(nxt, cur),
        max_depth=max_depth,
        strict=strict,
        direction="predecessor",
    )
    successors, succ_cut = _walk(
        graph,
        task_id,
        neighbours=graph.successors,
        edge_for=lambda cur, nxt: graph.edge(cur, nxt),
        max_depth=max_depth,
        strict=strict,
        direction="successor",
    )

    return DependencyChain(
        task_id=task_id,
        predecessors=predecessors,
        successors=successors,
        truncated=pred_cut or succ_cut,
    )


def _walk(
    graph: DependencyGraph,
    start: str,
    *,
    neighbours: Callable[[str], tuple[str, ...]],
    edge_for: Callable[[str, str], Edge],
    max_depth: int,
    strict: bool,
    direction: str,
) -> tuple[list[ChainEntry], bool]:
    out: list[ChainEntry] = []
    seen: set[str] = {start}
    # (task, depth at which its neighbours get recorded)
    q: deque[tuple[str, int]] = deque([(start, 0)])
    truncated = False

    while q:
        cur, depth = q.popleft()
        for nxt in neighbours(cur):
            if nxt in seen:
                continue
            if depth > max_depth:
                if strict:
                    raise DependencyChainTooDeepError(
                        code="E_CHAIN_TOO_DEEP",
                        message=(
                            f"{direction} chain of {start} exceeds max depth {max_depth} "
                            f"at {cur} -> {nxt}; the graph may contain a cycle"
                        ),
                        path=start,
                    )
                truncated = True
                continue
            seen.add(nxt)
            out.append(
                ChainEntry(
                    task=graph.tasks_by_id[nxt],
                    dependency_type=edge_for(cur, nxt).dependency_type,
                    depth=depth,
                )
            )
            q.append((nxt, depth + 1))

    if truncated:
        logger.warning("%s chain of %s truncated at depth %d", direction, start, max_depth)
    return out, truncated
